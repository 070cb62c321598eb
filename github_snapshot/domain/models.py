from datetime import datetime
from typing import Any, List, Optional, Tuple
from pydantic import BaseModel, Field, ConfigDict, model_validator


def to_github_iso(value: datetime) -> str:
    """Renders an aware datetime the way GitHub's search qualifiers expect it."""
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class TimeWindow(BaseModel):
    """
    Reporting window as supplied by the caller: either a relative duration
    ("24h", "7d") or explicit ISO-8601 bounds.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    duration: Optional[str] = Field("24h", description="Relative span, e.g. '24h' or '7d'")
    from_: Optional[str] = Field(None, alias="from", description="Explicit ISO-8601 start")
    to: Optional[str] = Field(None, description="Explicit ISO-8601 end")


class IntervalScheme(BaseModel):
    """Bucket layout covering a resolved window."""
    model_config = ConfigDict(frozen=True)

    size_hours: int = Field(..., ge=1, description="Width of one bucket in hours")
    count: int = Field(..., ge=1, description="Number of buckets")

    @property
    def hour_of_day(self) -> bool:
        # One bucket per clock hour: indices are civil hours 0-23.
        return self.size_hours == 1 and self.count == 24


class ResolvedWindow(BaseModel):
    """Concrete window bounds plus the bucket scheme derived from their span."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    scheme: IntervalScheme
    raw_from: Optional[str] = Field(
        None, description="The caller's literal 'from' value, kept for offset parsing"
    )

    @model_validator(mode="after")
    def _check_order(self) -> "ResolvedWindow":
        if self.start > self.end:
            raise ValueError("window start must not be after window end.")
        return self

    @property
    def span_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600

    @property
    def start_iso(self) -> str:
        return to_github_iso(self.start)

    @property
    def end_iso(self) -> str:
        return to_github_iso(self.end)

    def contains(self, timestamp: datetime) -> bool:
        return self.start <= timestamp <= self.end


class RepoSummary(BaseModel):
    """A repository the user committed to inside the window."""
    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., description="Login name of the repository owner")
    name: str = Field(..., description="Name of the repository")
    description: Optional[str] = None
    url: Optional[str] = None
    is_private: bool = False
    stargazers: Optional[int] = Field(None, ge=0)
    language: Optional[str] = None
    commit_contributions: Optional[int] = Field(
        None, ge=0, description="Commit contributions the user made to this repository in the window"
    )

    @property
    def identity(self) -> Tuple[str, str]:
        return self.owner, self.name

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class CommitRef(BaseModel):
    """A single commit attributed to the user, with the timestamp used for bucketing."""
    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    sha: str
    timestamp: datetime


class CommitStat(BaseModel):
    model_config = ConfigDict(frozen=True)

    sha: str
    additions: int = Field(0, ge=0)
    deletions: int = Field(0, ge=0)

    @property
    def lines_changed(self) -> int:
        return self.additions + self.deletions


class SearchPage(BaseModel):
    """One page of commits from either the search or the listing endpoint."""
    model_config = ConfigDict(frozen=True)

    items: List[CommitRef] = Field(default_factory=list)
    raw_count: int = Field(0, ge=0, description="Entries in the upstream page before filtering")
    total_count: Optional[int] = None
    incomplete_results: bool = False


class RestResult(BaseModel):
    """Outcome of a REST call. A non-success status is a value, not an exception."""
    model_config = ConfigDict(frozen=True)

    ok: bool
    status: int
    payload: Any = None


class ContributionSummary(BaseModel):
    """Totals and contributing repositories from the aggregate GraphQL query."""
    model_config = ConfigDict(frozen=True)

    commits_count: int = Field(0, ge=0)
    issues_count: int = Field(0, ge=0)
    prs_count: int = Field(0, ge=0)
    reviews_count: int = Field(0, ge=0)
    repos: List[RepoSummary] = Field(default_factory=list)


class AggregatedMetrics(BaseModel):
    """
    The engine's output and the whole contract with downstream renderers.

    ``most_active_hour`` is the index of the busiest bucket. With 1-hour
    buckets over a 24-hour window it is a civil hour of day in the target
    timezone; with wider buckets it is only a bucket index, and
    ``interval_size`` tells consumers how many hours each index spans.
    """
    model_config = ConfigDict(frozen=True)

    commits_count: int = Field(0, ge=0)
    lines_changed: int = Field(0, ge=0)
    prs_count: int = Field(0, ge=0)
    issues_count: int = Field(0, ge=0)
    reviews_count: int = Field(0, ge=0)
    repos: List[RepoSummary] = Field(default_factory=list)
    most_active_hour: Optional[int] = Field(None, ge=0)
    hourly_counts: List[int] = Field(default_factory=list)
    interval_size: int = Field(1, ge=1, description="Hours covered by each hourly_counts entry")

    @model_validator(mode="after")
    def _check_peak(self) -> "AggregatedMetrics":
        active = any(count > 0 for count in self.hourly_counts)
        if active != (self.most_active_hour is not None):
            raise ValueError("most_active_hour must be set exactly when some bucket is non-zero.")
        if self.most_active_hour is not None and self.most_active_hour >= len(self.hourly_counts):
            raise ValueError("most_active_hour must index into hourly_counts.")
        return self

    @classmethod
    def empty(cls, scheme: IntervalScheme) -> "AggregatedMetrics":
        return cls(hourly_counts=[0] * scheme.count, interval_size=scheme.size_hours)
