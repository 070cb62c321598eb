import logging
from datetime import datetime
from typing import Optional

import aiohttp

from github_snapshot.application.commit_collector import CommitCollector
from github_snapshot.application.contribution_collector import ContributionCollector
from github_snapshot.application.line_aggregator import LineChangeAggregator
from github_snapshot.domain.buckets import bucket_timestamps, select_peak
from github_snapshot.domain.exceptions import GitHubRequestException
from github_snapshot.domain.models import AggregatedMetrics, TimeWindow
from github_snapshot.domain.window import resolve_window
from github_snapshot.infrastructure.github_client import GitHubClient

logger = logging.getLogger(__name__)

# Limit concurrent connections to GitHub across both worker pools
CONNECTOR_LIMIT = 10


class SnapshotService:
    """
    Orchestrates one activity snapshot: resolve the window, query the
    contribution totals, collect commits per repository, sum line changes,
    then bucket the commit timestamps and pick the busiest interval.

    Every run starts from scratch; nothing is cached between runs.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        date_field: str,
        contribution_collector: Optional[ContributionCollector] = None,
        commit_collector: Optional[CommitCollector] = None,
        line_aggregator: Optional[LineChangeAggregator] = None,
    ):
        self.github_client = github_client
        self.contribution_collector = contribution_collector or ContributionCollector(github_client)
        self.commit_collector = commit_collector or CommitCollector(github_client, date_field=date_field)
        self.line_aggregator = line_aggregator or LineChangeAggregator(
            github_client, max_commits=self.commit_collector.max_commits
        )

    async def snapshot(
        self,
        username: str,
        window: Optional[TimeWindow] = None,
        tz_name: Optional[str] = "UTC",
        now: Optional[datetime] = None,
    ) -> AggregatedMetrics:
        resolved = resolve_window(window, now=now)
        scheme = resolved.scheme

        logger.info(
            f"Querying GitHub activity for '{username}' from {resolved.start_iso} to {resolved.end_iso} "
            f"({scheme.count} buckets of {scheme.size_hours}h, timezone {tz_name})."
        )

        async with aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT),
        ) as session:
            try:
                summary = await self.contribution_collector.collect(session, username, resolved)
            except GitHubRequestException as e:
                logger.error(f"Contribution query failed, reporting empty metrics: {e}")
                return AggregatedMetrics.empty(scheme)
            if summary is None:
                return AggregatedMetrics.empty(scheme)

            commits = await self.commit_collector.collect(session, username, summary.repos, resolved)
            lines_changed = await self.line_aggregator.aggregate(session, commits)

        hourly_counts = bucket_timestamps((c.timestamp for c in commits), resolved, tz_name)
        most_active = select_peak(hourly_counts)

        metrics = AggregatedMetrics(
            commits_count=len(commits),
            lines_changed=lines_changed,
            prs_count=summary.prs_count,
            issues_count=summary.issues_count,
            reviews_count=summary.reviews_count,
            repos=summary.repos,
            most_active_hour=most_active,
            hourly_counts=hourly_counts,
            interval_size=scheme.size_hours,
        )

        logger.info(
            f"Metrics collection complete. commits={metrics.commits_count} lines={metrics.lines_changed} "
            f"prs={metrics.prs_count} issues={metrics.issues_count} reviews={metrics.reviews_count} "
            f"most_active={metrics.most_active_hour}."
        )
        return metrics
