import asyncio
import unittest
from unittest.mock import AsyncMock, patch

from vigia.core.latest import LatestVersionResolver


class TestLatestVersionResolver(unittest.IsolatedAsyncioTestCase):

    async def test_concurrent_lookups_share_one_request(self):
        calls = []

        async def fetch(name):
            calls.append(name)
            await asyncio.sleep(0.01)
            return "4.17.21"

        resolver = LatestVersionResolver(fetch)
        results = await asyncio.gather(*(resolver.latest("lodash") for _ in range(5)))

        self.assertEqual(results, ["4.17.21"] * 5)
        self.assertEqual(calls, ["lodash"])
        self.assertEqual(len(resolver), 1)

    async def test_cached_after_first_lookup(self):
        fetch = AsyncMock(return_value="1.0.0")
        resolver = LatestVersionResolver(fetch)

        await resolver.latest("a")
        await resolver.latest("a")
        await resolver.latest("b")

        self.assertEqual(fetch.await_count, 2)

    @patch("vigia.core.batching.asyncio.sleep", new_callable=AsyncMock)
    async def test_failure_resolves_to_unknown(self, mock_sleep):
        fetch = AsyncMock(side_effect=ConnectionError("registry down"))
        resolver = LatestVersionResolver(fetch)

        self.assertEqual(await resolver.latest("left-pad"), "unknown")
        self.assertEqual(await resolver.latest("left-pad"), "unknown")
        # two attempts for the first lookup, none for the cached one
        self.assertEqual(fetch.await_count, 2)

    async def test_clear_forgets_answers(self):
        fetch = AsyncMock(return_value="2.0.0")
        resolver = LatestVersionResolver(fetch)
        await resolver.latest("a")

        resolver.clear()
        await resolver.latest("a")

        self.assertEqual(fetch.await_count, 2)


if __name__ == '__main__':
    unittest.main()
