import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from github_snapshot.domain.models import (
    CommitRef,
    CommitStat,
    ContributionSummary,
    RepoSummary,
    SearchPage,
)

logger = logging.getLogger(__name__)

# Which person block inside a commit payload carries the bucketing timestamp.
DATE_FIELD_KEYS = {
    "author-date": "author",
    "committer-date": "committer",
}


def _parse_github_datetime(raw: str) -> datetime:
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub JSON payloads into the
    snapshot's domain models. Nothing loosely typed leaves this class.
    """

    @staticmethod
    def to_repo_summary(raw_repo: Dict[str, Any], commit_contributions: Optional[int] = None) -> RepoSummary:
        """
        Transforms a GraphQL ``repository`` node into a RepoSummary.

        Raises:
            ValueError: if the node has no name or owner login.
        """
        owner_data = raw_repo.get('owner') or {}
        stargazers_data = raw_repo.get('stargazers') or {}
        language_data = raw_repo.get('primaryLanguage') or {}

        name = raw_repo.get('name')
        owner = owner_data.get('login')
        if not name or not owner:
            raise ValueError("name and owner.login are required to build RepoSummary.")

        return RepoSummary(
            owner=owner,
            name=name,
            description=raw_repo.get('description'),
            url=raw_repo.get('url'),
            is_private=bool(raw_repo.get('isPrivate', False)),
            stargazers=stargazers_data.get('totalCount'),
            language=language_data.get('name'),
            commit_contributions=commit_contributions,
        )

    @staticmethod
    def to_contribution_summary(raw_user: Dict[str, Any]) -> ContributionSummary:
        """
        Transforms the ``user`` object of the contributions query.

        Malformed repository entries are skipped; a repository listed twice
        keeps its first occurrence.
        """
        collection = raw_user.get('contributionsCollection') or {}

        repos: List[RepoSummary] = []
        seen = set()
        for bucket in collection.get('commitContributionsByRepository') or []:
            bucket = bucket or {}
            raw_repo = bucket.get('repository')
            if not raw_repo:
                continue
            sub_total = (bucket.get('contributions') or {}).get('totalCount')
            try:
                repo = GitHubTranslator.to_repo_summary(raw_repo, sub_total)
            except ValueError as e:
                logger.warning(f"Skipping malformed repository entry: {e}")
                continue
            if repo.identity in seen:
                continue
            seen.add(repo.identity)
            repos.append(repo)

        return ContributionSummary(
            commits_count=collection.get('totalCommitContributions') or 0,
            issues_count=collection.get('totalIssueContributions') or 0,
            prs_count=collection.get('totalPullRequestContributions') or 0,
            reviews_count=collection.get('totalPullRequestReviewContributions') or 0,
            repos=repos,
        )

    @staticmethod
    def to_commit_ref(item: Dict[str, Any], owner: str, repo: str, date_field: str) -> Optional[CommitRef]:
        """
        Builds a CommitRef from a search hit or a listing entry; both share the
        ``sha`` / ``commit.{author,committer}.date`` shape. Returns None when
        the sha or the chosen date is missing or unparseable.
        """
        sha = item.get('sha')
        person = ((item.get('commit') or {}).get(DATE_FIELD_KEYS[date_field])) or {}
        raw_date = person.get('date')
        if not sha or not raw_date:
            return None
        try:
            timestamp = _parse_github_datetime(raw_date)
        except ValueError:
            logger.warning(f"Unparseable commit date {raw_date!r} on {owner}/{repo}@{sha}")
            return None
        return CommitRef(owner=owner, repo=repo, sha=sha, timestamp=timestamp)

    @staticmethod
    def to_search_page(payload: Any, owner: str, repo: str, date_field: str) -> SearchPage:
        """Transforms a ``/search/commits`` response body."""
        payload = payload if isinstance(payload, dict) else {}
        raw_items = payload.get('items') or []
        items = [
            ref for ref in (
                GitHubTranslator.to_commit_ref(item, owner, repo, date_field)
                for item in raw_items if isinstance(item, dict)
            ) if ref is not None
        ]
        return SearchPage(
            items=items,
            raw_count=len(raw_items),
            total_count=payload.get('total_count'),
            incomplete_results=bool(payload.get('incomplete_results', False)),
        )

    @staticmethod
    def to_listing_page(payload: Any, owner: str, repo: str, date_field: str) -> SearchPage:
        """Transforms a ``/repos/{owner}/{repo}/commits`` response body (a bare list)."""
        raw_items = payload if isinstance(payload, list) else []
        items = [
            ref for ref in (
                GitHubTranslator.to_commit_ref(item, owner, repo, date_field)
                for item in raw_items if isinstance(item, dict)
            ) if ref is not None
        ]
        return SearchPage(items=items, raw_count=len(raw_items))

    @staticmethod
    def to_commit_stat(payload: Any) -> CommitStat:
        """
        Transforms a single-commit response into its addition/deletion counts.

        Raises:
            ValueError: if the payload carries no sha or no stats block.
        """
        payload = payload if isinstance(payload, dict) else {}
        stats = payload.get('stats')
        sha = payload.get('sha')
        if not sha or not isinstance(stats, dict):
            raise ValueError("sha and stats are required to build CommitStat.")
        return CommitStat(
            sha=sha,
            additions=int(stats.get('additions') or 0),
            deletions=int(stats.get('deletions') or 0),
        )
