import unittest
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp

from github_snapshot.domain.exceptions import (
    GitHubRequestException,
    InvalidCredentialException,
    MissingCredentialException,
)
from github_snapshot.infrastructure.github_client import DEFAULT_RETRY_AFTER, GitHubClient, retry_after_seconds


def _response(status: int, body=None, headers=None):
    resp = AsyncMock()
    resp.status = status
    resp.headers = headers or {}
    resp.json = AsyncMock(return_value=body)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


USER = {"contributionsCollection": {"totalCommitContributions": 1}}


class TestGitHubClient(unittest.TestCase):
    def test_headers_are_dict(self) -> None:
        token = "test-token"
        client = GitHubClient(token=token)

        self.assertIsInstance(client.headers, dict)
        self.assertEqual(client.headers["Authorization"], f"Bearer {token}")

    def test_headers_include_user_agent(self) -> None:
        client = GitHubClient(token="t")
        self.assertIn("User-Agent", client.headers)
        self.assertIn("Accept", client.headers)

    def test_missing_token_is_fatal(self) -> None:
        for token in ("", "   ", None):
            with self.subTest(token=token):
                with self.assertRaises(MissingCredentialException):
                    GitHubClient(token=token)


class TestFetchContributions(unittest.IsolatedAsyncioTestCase):
    async def test_403_retry_after_is_respected(self) -> None:
        """When GitHub returns 403 + Retry-After, the client sleeps and retries."""
        client = GitHubClient(token="test-token")

        session = AsyncMock()
        session.post = MagicMock(side_effect=[
            _response(403, headers={"Retry-After": "1"}),
            _response(200, {"data": {"user": USER, "rateLimit": {"remaining": 4999}}}),
        ])

        with patch("github_snapshot.infrastructure.github_client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            user = await client.fetch_contributions(session, "octocat", "2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z", 100)

        mock_sleep.assert_any_call(1)
        self.assertEqual(user, USER)
        variables = session.post.call_args.kwargs["json"]["variables"]
        self.assertEqual(variables["login"], "octocat")
        self.assertEqual(variables["maxRepos"], 100)

    async def test_partial_errors_are_tolerated(self) -> None:
        client = GitHubClient(token="test-token")
        session = AsyncMock()
        session.post = MagicMock(return_value=_response(200, {
            "data": {"user": USER},
            "errors": [{"message": "Resource not accessible"}],
        }))

        with self.assertLogs("github_snapshot.infrastructure.github_client", level="WARNING"):
            user = await client.fetch_contributions(session, "octocat", "a", "b", 100)

        self.assertEqual(user, USER)

    async def test_unknown_user_returns_none(self) -> None:
        client = GitHubClient(token="test-token")
        session = AsyncMock()
        session.post = MagicMock(return_value=_response(200, {
            "data": {"user": None},
            "errors": [{"type": "NOT_FOUND", "message": "Could not resolve to a User"}],
        }))

        self.assertIsNone(await client.fetch_contributions(session, "ghost", "a", "b", 100))

    async def test_server_errors_exhaust_retries(self) -> None:
        client = GitHubClient(token="test-token")
        session = AsyncMock()
        session.post = MagicMock(side_effect=lambda *a, **kw: _response(502))

        with patch("github_snapshot.infrastructure.github_client.asyncio.sleep", new_callable=AsyncMock):
            with self.assertRaises(GitHubRequestException) as ctx:
                await client.fetch_contributions(session, "octocat", "a", "b", 100)

        self.assertEqual(ctx.exception.status, 502)

    async def test_bad_credentials_are_not_retried(self) -> None:
        client = GitHubClient(token="expired")
        session = AsyncMock()
        session.post = MagicMock(return_value=_response(401))

        with self.assertRaises(InvalidCredentialException):
            await client.fetch_contributions(session, "octocat", "a", "b", 100)

        self.assertEqual(session.post.call_count, 1)

    async def test_other_client_errors_are_not_retried(self) -> None:
        client = GitHubClient(token="test-token")
        session = AsyncMock()
        session.post = MagicMock(return_value=_response(400))

        with self.assertRaises(GitHubRequestException) as ctx:
            await client.fetch_contributions(session, "octocat", "a", "b", 100)

        self.assertEqual(ctx.exception.status, 400)
        self.assertEqual(session.post.call_count, 1)

    async def test_403_with_http_date_retry_after(self) -> None:
        client = GitHubClient(token="test-token")
        session = AsyncMock()
        session.post = MagicMock(side_effect=[
            _response(403, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}),
            _response(200, {"data": {"user": USER}}),
        ])

        with patch("github_snapshot.infrastructure.github_client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            user = await client.fetch_contributions(session, "octocat", "a", "b", 100)

        # A date already in the past means no wait at all.
        mock_sleep.assert_any_call(0)
        self.assertEqual(user, USER)


class TestRestCalls(unittest.IsolatedAsyncioTestCase):
    async def test_search_builds_scoped_query(self) -> None:
        client = GitHubClient(token="test-token")
        session = AsyncMock()
        session.get = MagicMock(return_value=_response(200, {"items": []}))

        result = await client.search_commits(
            session, "octocat", "hello", "octocat", "committer-date",
            "2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z", page=2,
        )

        self.assertTrue(result.ok)
        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        self.assertTrue(url.endswith("/search/commits"))
        self.assertEqual(
            params["q"],
            "repo:octocat/hello author:octocat committer-date:2024-01-01T00:00:00Z..2024-01-02T00:00:00Z",
        )
        self.assertEqual(params["page"], "2")

    async def test_non_success_status_is_a_value(self) -> None:
        client = GitHubClient(token="test-token")
        session = AsyncMock()
        session.get = MagicMock(return_value=_response(422))

        result = await client.list_commits(session, "octocat", "hello", "octocat", "a", "b")

        self.assertFalse(result.ok)
        self.assertEqual(result.status, 422)

    async def test_network_error_is_a_value(self) -> None:
        client = GitHubClient(token="test-token")
        session = AsyncMock()
        session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("reset"))

        result = await client.fetch_commit(session, "octocat", "hello", "abc")

        self.assertFalse(result.ok)
        self.assertEqual(result.status, 0)

    async def test_unknown_date_field_is_rejected(self) -> None:
        client = GitHubClient(token="test-token")
        with self.assertRaises(ValueError):
            await client.search_commits(AsyncMock(), "o", "r", "u", "pushed-date", "a", "b")


class TestRetryAfterSeconds(unittest.TestCase):
    def test_delta_seconds(self) -> None:
        self.assertEqual(retry_after_seconds("12"), 12)
        self.assertEqual(retry_after_seconds(" 3 "), 3)

    def test_http_date_in_the_future(self) -> None:
        retry_at = datetime.now(timezone.utc) + timedelta(seconds=90)
        seconds = retry_after_seconds(format_datetime(retry_at, usegmt=True))
        self.assertTrue(85 <= seconds <= 91, seconds)

    def test_unreadable_values_fall_back(self) -> None:
        for value in (None, "", "soon", "-5", "1.5"):
            with self.subTest(value=value):
                self.assertEqual(retry_after_seconds(value), DEFAULT_RETRY_AFTER)
