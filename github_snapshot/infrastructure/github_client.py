import aiohttp
import asyncio
import logging
import math
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

from github_snapshot.domain.exceptions import (
    GitHubRequestException,
    InvalidCredentialException,
    MissingCredentialException,
)
from github_snapshot.domain.models import RestResult

logger = logging.getLogger(__name__)

# Totals plus per-repository commit contributions for one user and window.
CONTRIBUTIONS_QUERY = """
query ($login: String!, $from: DateTime!, $to: DateTime!, $maxRepos: Int!) {
  user(login: $login) {
    contributionsCollection(from: $from, to: $to) {
      totalCommitContributions
      totalIssueContributions
      totalPullRequestContributions
      totalPullRequestReviewContributions
      commitContributionsByRepository(maxRepositories: $maxRepos) {
        contributions {
          totalCount
        }
        repository {
          name
          description
          url
          isPrivate
          stargazers {
            totalCount
          }
          primaryLanguage {
            name
          }
          owner {
            login
          }
        }
      }
    }
  }
  rateLimit {
    cost
    remaining
    resetAt
  }
}
"""

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=10)
MAX_RETRIES = 5
LOW_RATE_LIMIT = 10
DATE_FIELDS = ("author-date", "committer-date")
DEFAULT_RETRY_AFTER = 60


def retry_after_seconds(value: Optional[str]) -> int:
    """
    Reads a Retry-After header, which is either delta-seconds or an HTTP date.
    Anything unreadable falls back to DEFAULT_RETRY_AFTER.
    """
    if not value:
        return DEFAULT_RETRY_AFTER
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return DEFAULT_RETRY_AFTER
    if retry_at is None:
        return DEFAULT_RETRY_AFTER
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(math.ceil((retry_at - datetime.now(timezone.utc)).total_seconds()), 0)


class GitHubClient:
    """
    Client for the narrow slice of the GitHub API the snapshot needs: one
    GraphQL aggregate query and three REST endpoints for commits.

    The GraphQL query is retried on transient failures because the whole run
    depends on it. REST calls are not retried; they return a RestResult so a
    non-success status stays confined to the item that produced it.
    """

    def __init__(self, token: str, api_url: str = "https://api.github.com"):
        if not token or not token.strip():
            raise MissingCredentialException()
        self.headers = {
            "Authorization": f"Bearer {token.strip()}",
            "Accept": "application/vnd.github+json",
            "User-Agent": "daily-github-snapshot",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self.rest_url = api_url.rstrip("/")
        self.graphql_url = f"{self.rest_url}/graphql"

    async def fetch_contributions(
        self,
        session: aiohttp.ClientSession,
        login: str,
        from_iso: str,
        to_iso: str,
        max_repos: int,
    ) -> Optional[Dict[str, Any]]:
        """
        Runs the contributions query.

        Returns:
            The raw ``user`` object, or None when GitHub knows no such user.
        """
        payload = {
            "query": CONTRIBUTIONS_QUERY,
            "variables": {"login": login, "from": from_iso, "to": to_iso, "maxRepos": max_repos},
        }
        last_status: Optional[int] = None

        for attempt in range(MAX_RETRIES):
          try:
            async with session.post(self.graphql_url, json=payload, headers=self.headers, timeout=REQUEST_TIMEOUT) as response:
                last_status = response.status

                # Secondary rate limit (abuse detection)
                if response.status == 403:
                  retry_after = response.headers.get('Retry-After')
                  sleep_time = retry_after_seconds(retry_after)
                  logger.warning(f"Secondary rate limit (403). Sleeping {sleep_time}s...")
                  await asyncio.sleep(sleep_time)
                  continue

                if response.status in {500, 502, 503, 504}:
                  sleep_time = (2 ** attempt) + random.uniform(0, 2)
                  logger.warning(
                      f"Server error ({response.status}), "
                      f"retrying in {sleep_time:.1f}s (attempt {attempt + 1}/{MAX_RETRIES})..."
                  )
                  await asyncio.sleep(sleep_time)
                  continue

                if response.status == 401:
                    raise InvalidCredentialException()

                if response.status >= 400:
                    raise GitHubRequestException("GitHub GraphQL request rejected", status=response.status)

                data = await response.json()

                # GraphQL-level errors can arrive with HTTP 200
                if data.get('errors'):
                    error_msg = data['errors'][0].get('message', 'Unknown GraphQL error')
                    if data.get('data') is None:
                        sleep_time = (2 ** attempt) + random.uniform(0, 2)
                        logger.warning(f"GraphQL error: {error_msg}. Retrying in {sleep_time:.1f}s...")
                        await asyncio.sleep(sleep_time)
                        continue
                    logger.warning(f"GraphQL partial error: {error_msg}")

                result = data.get('data') or {}
                rate_limit = result.get('rateLimit') or {}
                remaining = rate_limit.get('remaining')
                if remaining is not None and remaining < LOW_RATE_LIMIT:
                    logger.warning(
                        f"GraphQL rate limit nearly exhausted ({remaining} left, resets at {rate_limit.get('resetAt')})."
                    )

                return result.get('user')

          except (aiohttp.ClientError, asyncio.TimeoutError) as e:
              sleep_time = (2 ** attempt) + random.uniform(0, 2)
              logger.warning(
                  f"Request failed (attempt {attempt + 1}/{MAX_RETRIES}): {e}. "
                  f"Retrying in {sleep_time:.1f}s..."
              )
              await asyncio.sleep(sleep_time)

        raise GitHubRequestException(
            f"Failed to fetch contributions after {MAX_RETRIES} attempts", status=last_status
        )

    async def search_commits(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        repo: str,
        author: str,
        date_field: str,
        from_iso: str,
        to_iso: str,
        page: int = 1,
        per_page: int = 100,
    ) -> RestResult:
        """One page of ``/search/commits`` scoped to a repository, author and date range."""
        if date_field not in DATE_FIELDS:
            raise ValueError(f"date_field must be one of {DATE_FIELDS}, got {date_field!r}.")
        query = f"repo:{owner}/{repo} author:{author} {date_field}:{from_iso}..{to_iso}"
        params = {
            "q": query,
            "sort": date_field,
            "order": "desc",
            "per_page": str(per_page),
            "page": str(page),
        }
        return await self._get_json(session, "/search/commits", params)

    async def list_commits(
        self,
        session: aiohttp.ClientSession,
        owner: str,
        repo: str,
        author: str,
        since_iso: str,
        until_iso: str,
        page: int = 1,
        per_page: int = 100,
    ) -> RestResult:
        """One page of ``/repos/{owner}/{repo}/commits`` filtered by author and date."""
        params = {
            "author": author,
            "since": since_iso,
            "until": until_iso,
            "per_page": str(per_page),
            "page": str(page),
        }
        return await self._get_json(session, f"/repos/{owner}/{repo}/commits", params)

    async def fetch_commit(
        self, session: aiohttp.ClientSession, owner: str, repo: str, sha: str
    ) -> RestResult:
        return await self._get_json(session, f"/repos/{owner}/{repo}/commits/{sha}")

    async def _get_json(
        self,
        session: aiohttp.ClientSession,
        path: str,
        params: Optional[Dict[str, str]] = None,
    ) -> RestResult:
        url = f"{self.rest_url}{path}"
        try:
            async with session.get(url, params=params, headers=self.headers, timeout=REQUEST_TIMEOUT) as response:
                if not 200 <= response.status < 300:
                    if response.status == 403 and response.headers.get('X-RateLimit-Remaining') == '0':
                        logger.warning(f"REST rate limit exhausted on {path}.")
                    return RestResult(ok=False, status=response.status)
                return RestResult(ok=True, status=response.status, payload=await response.json())
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            # Transport failure or undecodable body: report it like a failed status.
            logger.warning(f"GET {path} failed: {e}")
            return RestResult(ok=False, status=0)
