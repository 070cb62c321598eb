import logging
from typing import Sequence

import aiohttp

from github_snapshot.application.commit_collector import MAX_COMMITS
from github_snapshot.application.worker_pool import BoundedWorkerPool
from github_snapshot.domain.models import CommitRef, CommitStat
from github_snapshot.infrastructure.acl import GitHubTranslator
from github_snapshot.infrastructure.github_client import GitHubClient

logger = logging.getLogger(__name__)

COMMIT_CONCURRENCY = 5


class LineChangeAggregator:
    """
    Sums additions and deletions over a set of commits.

    Commits whose detail request fails are skipped, not retried, so the
    total is a lower bound.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        max_commits: int = MAX_COMMITS,
        concurrency: int = COMMIT_CONCURRENCY,
    ):
        self.github_client = github_client
        self.max_commits = max_commits
        self.pool: BoundedWorkerPool[CommitRef, CommitStat] = BoundedWorkerPool(concurrency, name="commits")

    async def fetch_stat(self, session: aiohttp.ClientSession, ref: CommitRef) -> CommitStat:
        result = await self.github_client.fetch_commit(session, ref.owner, ref.repo, ref.sha)
        if not result.ok:
            raise ValueError(f"commit detail returned status {result.status}")
        return GitHubTranslator.to_commit_stat(result.payload)

    async def aggregate(self, session: aiohttp.ClientSession, commits: Sequence[CommitRef]) -> int:
        if not commits:
            return 0

        commits = list(commits)[:self.max_commits]
        total = 0

        def add(ref: CommitRef, stat: CommitStat) -> None:
            nonlocal total
            total += stat.lines_changed

        logger.info(f"Fetching commit stats for {len(commits)} commits.")
        results = await self.pool.run(commits, lambda ref: self.fetch_stat(session, ref), on_result=add)

        skipped = len(commits) - len(results)
        if skipped:
            logger.warning(f"Skipped {skipped} commits whose stats could not be fetched.")
        return total
