import os
from typing import Literal, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from github_snapshot.domain.exceptions import ConfigurationException
from github_snapshot.domain.models import TimeWindow


class Settings(BaseModel):
    """Runtime settings, read from the environment (and a .env file if present)."""
    model_config = ConfigDict(frozen=True)

    github_token: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    duration: str = "24h"
    window_from: Optional[str] = None
    window_to: Optional[str] = None
    timezone: str = "UTC"
    # Which commit date anchors bucketing and the search range.
    date_field: Literal["committer-date", "author-date"] = "committer-date"
    log_level: str = "INFO"

    @property
    def time_window(self) -> TimeWindow:
        return TimeWindow(duration=self.duration, from_=self.window_from, to=self.window_to)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Builds Settings from ``environ`` (defaults to os.environ after loading .env).

    Raises:
        ConfigurationException: if a required variable is missing or a value is invalid.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    token = environ.get("GITHUB_TOKEN", "").strip()
    if not token:
        raise ConfigurationException("GITHUB_TOKEN is not set in the environment.")
    username = environ.get("GITHUB_USERNAME", "").strip()
    if not username:
        raise ConfigurationException("GITHUB_USERNAME is not set in the environment.")

    try:
        return Settings(
            github_token=token,
            username=username,
            duration=environ.get("SNAPSHOT_DURATION") or "24h",
            window_from=environ.get("SNAPSHOT_FROM") or None,
            window_to=environ.get("SNAPSHOT_TO") or None,
            timezone=environ.get("SNAPSHOT_TIMEZONE") or "UTC",
            date_field=environ.get("SNAPSHOT_DATE_FIELD") or "committer-date",
            log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
        )
    except ValidationError as e:
        raise ConfigurationException(f"Invalid settings: {e}") from e
