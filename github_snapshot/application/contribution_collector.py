import logging
from typing import Optional

import aiohttp

from github_snapshot.domain.models import ContributionSummary, ResolvedWindow
from github_snapshot.infrastructure.acl import GitHubTranslator
from github_snapshot.infrastructure.github_client import GitHubClient

logger = logging.getLogger(__name__)

# commitContributionsByRepository accepts at most 100
MAX_REPOS = 100


class ContributionCollector:
    """Fetches contribution totals and contributing repositories in one query."""

    def __init__(self, github_client: GitHubClient, max_repos: int = MAX_REPOS):
        self.github_client = github_client
        self.max_repos = max_repos

    async def collect(
        self, session: aiohttp.ClientSession, username: str, window: ResolvedWindow
    ) -> Optional[ContributionSummary]:
        """
        Returns:
            The user's ContributionSummary, or None if GitHub has no such user.
        """
        raw_user = await self.github_client.fetch_contributions(
            session, username, window.start_iso, window.end_iso, self.max_repos
        )
        if not raw_user:
            logger.warning(f"No user data returned for '{username}'.")
            return None

        summary = GitHubTranslator.to_contribution_summary(raw_user)
        logger.info(
            f"'{username}' has {summary.commits_count} commit contributions "
            f"across {len(summary.repos)} repositories."
        )
        return summary
