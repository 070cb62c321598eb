import unittest
from datetime import datetime, timezone

from github_snapshot.application.line_aggregator import LineChangeAggregator
from github_snapshot.domain.models import CommitRef, RestResult


def _ref(sha: str) -> CommitRef:
    return CommitRef(
        owner="octocat", repo="hello", sha=sha,
        timestamp=datetime(2024, 5, 1, 9, tzinfo=timezone.utc),
    )


class _FakeStatsClient:
    def __init__(self, stats: dict) -> None:
        self.stats = stats
        self.calls = []

    async def fetch_commit(self, session, owner, repo, sha):
        self.calls.append(sha)
        value = self.stats.get(sha)
        if value is None:
            return RestResult(ok=False, status=404)
        if isinstance(value, Exception):
            raise value
        if value == "no-stats":
            return RestResult(ok=True, status=200, payload={"sha": sha})
        additions, deletions = value
        return RestResult(ok=True, status=200, payload={
            "sha": sha, "stats": {"additions": additions, "deletions": deletions, "total": additions + deletions},
        })


class TestLineChangeAggregator(unittest.IsolatedAsyncioTestCase):
    async def test_sums_additions_and_deletions(self) -> None:
        client = _FakeStatsClient({"a": (10, 2), "b": (0, 5), "c": (1, 1)})
        aggregator = LineChangeAggregator(client)

        total = await aggregator.aggregate(None, [_ref("a"), _ref("b"), _ref("c")])

        self.assertEqual(total, 19)

    async def test_failed_commits_are_skipped_not_retried(self) -> None:
        client = _FakeStatsClient({"a": (3, 3), "c": RuntimeError("connection reset"), "d": "no-stats"})
        aggregator = LineChangeAggregator(client)

        total = await aggregator.aggregate(None, [_ref("a"), _ref("b"), _ref("c"), _ref("d")])

        self.assertEqual(total, 6)
        self.assertEqual(sorted(client.calls), ["a", "b", "c", "d"])

    async def test_caps_commits_examined(self) -> None:
        refs = [_ref(f"sha-{i}") for i in range(300)]
        client = _FakeStatsClient({ref.sha: (1, 0) for ref in refs})
        aggregator = LineChangeAggregator(client, max_commits=200)

        total = await aggregator.aggregate(None, refs)

        self.assertEqual(total, 200)
        self.assertEqual(len(client.calls), 200)

    async def test_no_commits(self) -> None:
        client = _FakeStatsClient({})
        self.assertEqual(await LineChangeAggregator(client).aggregate(None, []), 0)
        self.assertEqual(client.calls, [])
