import logging
from typing import Awaitable, Callable, List, NamedTuple, Optional, Sequence, Set, Tuple

import aiohttp

from github_snapshot.application.worker_pool import BoundedWorkerPool
from github_snapshot.domain.models import CommitRef, RepoSummary, ResolvedWindow, RestResult, SearchPage
from github_snapshot.infrastructure.acl import GitHubTranslator
from github_snapshot.infrastructure.github_client import DATE_FIELDS, GitHubClient

logger = logging.getLogger(__name__)

MAX_COMMITS = 200
MAX_COMMITS_PER_REPO = 100
REPO_CONCURRENCY = 3
PER_PAGE = 100
# GitHub search stops answering after 1,000 results
MAX_PAGES = 10


class PageSource(NamedTuple):
    """One way of listing a repository's commits, tried in order until one succeeds."""
    name: str
    fetch: Callable[[aiohttp.ClientSession, RepoSummary, ResolvedWindow, int], Awaitable[RestResult]]
    translate: Callable[[object, RepoSummary], SearchPage]


class CommitCollector:
    """
    Finds the user's commits in each contributing repository.

    Repositories are fanned out over a small worker pool. Each repository is
    tried against the commit search first and the repository commit listing
    second. Results are clamped per repository and globally; once the global
    budget is spent no further repositories are queried.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        date_field: str,
        max_commits: int = MAX_COMMITS,
        max_commits_per_repo: int = MAX_COMMITS_PER_REPO,
        concurrency: int = REPO_CONCURRENCY,
        per_page: int = PER_PAGE,
        max_pages: int = MAX_PAGES,
    ):
        if date_field not in DATE_FIELDS:
            raise ValueError(f"date_field must be one of {DATE_FIELDS}, got {date_field!r}.")
        self.github_client = github_client
        self.date_field = date_field
        self.max_commits = max_commits
        self.max_commits_per_repo = max_commits_per_repo
        self.per_page = per_page
        self.max_pages = max_pages
        self.pool: BoundedWorkerPool[RepoSummary, List[CommitRef]] = BoundedWorkerPool(concurrency, name="repos")

    def page_sources(self, username: str) -> Sequence[PageSource]:
        async def search(session, repo, window, page):
            return await self.github_client.search_commits(
                session, repo.owner, repo.name, username, self.date_field,
                window.start_iso, window.end_iso, page=page, per_page=self.per_page,
            )

        async def listing(session, repo, window, page):
            return await self.github_client.list_commits(
                session, repo.owner, repo.name, username,
                window.start_iso, window.end_iso, page=page, per_page=self.per_page,
            )

        return (
            PageSource(
                "search", search,
                lambda payload, repo: GitHubTranslator.to_search_page(payload, repo.owner, repo.name, self.date_field),
            ),
            PageSource(
                "listing", listing,
                lambda payload, repo: GitHubTranslator.to_listing_page(payload, repo.owner, repo.name, self.date_field),
            ),
        )

    async def collect(
        self,
        session: aiohttp.ClientSession,
        username: str,
        repos: Sequence[RepoSummary],
        window: ResolvedWindow,
    ) -> List[CommitRef]:
        """
        Returns at most ``max_commits`` in-window commits across ``repos``.
        """
        collected: List[CommitRef] = []
        seen: Set[Tuple[str, str, str]] = set()
        sources = self.page_sources(username)

        def budget_spent() -> bool:
            return len(collected) >= self.max_commits

        def accept(repo: RepoSummary, refs: List[CommitRef]) -> None:
            for ref in refs:
                if budget_spent():
                    return
                key = (ref.owner, ref.repo, ref.sha)
                if key in seen:
                    continue
                seen.add(key)
                collected.append(ref)

        async def handle(repo: RepoSummary) -> List[CommitRef]:
            return await self.fetch_repo_commits(session, repo, window, sources)

        await self.pool.run(repos, handle, on_result=accept, should_stop=budget_spent)

        if budget_spent():
            logger.info(f"Commit budget of {self.max_commits} reached.")
        logger.info(f"Collected {len(collected)} commits from {len(repos)} repositories.")
        return collected

    async def fetch_repo_commits(
        self,
        session: aiohttp.ClientSession,
        repo: RepoSummary,
        window: ResolvedWindow,
        sources: Sequence[PageSource],
    ) -> List[CommitRef]:
        """
        Tries each page source in order and returns the first one's commits.
        A repository for which every source fails contributes nothing.
        """
        for source in sources:
            commits = await self._paginate(session, source, repo, window)
            if commits is not None:
                return commits
            logger.warning(f"'{source.name}' failed for {repo.full_name}; trying next source.")

        logger.warning(f"No commit source succeeded for {repo.full_name}; counting zero commits.")
        return []

    async def _paginate(
        self,
        session: aiohttp.ClientSession,
        source: PageSource,
        repo: RepoSummary,
        window: ResolvedWindow,
    ) -> Optional[List[CommitRef]]:
        """
        Returns None when the first page is not a success. A later failing
        page only ends pagination; what was gathered so far is kept.
        """
        commits: List[CommitRef] = []
        shas: Set[str] = set()

        for page in range(1, self.max_pages + 1):
            result = await source.fetch(session, repo, window, page)
            if not result.ok:
                logger.warning(
                    f"[{source.name}] {repo.full_name} page {page} returned status {result.status}."
                )
                if page == 1:
                    return None
                break

            search_page = source.translate(result.payload, repo)
            for ref in search_page.items:
                # Upstream occasionally returns commits outside the requested range.
                if not window.contains(ref.timestamp) or ref.sha in shas:
                    continue
                shas.add(ref.sha)
                commits.append(ref)
                if len(commits) >= self.max_commits_per_repo:
                    return commits

            if search_page.raw_count < self.per_page:
                break

        return commits
