import asyncio
import os
import tempfile
import unittest

import httpx

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

from spotify_api.auth import SpotifyOAuth, TokenGrant
from spotify_api.credential_store import CredentialRecord, CredentialStore
from spotify_api.errors import ConfigurationError, NoCredentialError, SpotifyAPIError
from spotify_api.token_cache import TokenCache, TokenState


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeOAuth:
    """Counts refresh exchanges; yields to the loop so concurrent callers overlap."""

    def __init__(self, *, expires_in: int = 3600, error: Exception = None):
        self.expires_in = expires_in
        self.error = error
        self.calls = 0
        self.refresh_tokens = []

    async def refresh(self, refresh_token: str) -> TokenGrant:
        self.calls += 1
        self.refresh_tokens.append(refresh_token)
        await asyncio.sleep(0.01)
        if self.error is not None:
            raise self.error
        return TokenGrant(access_token=f"token-{self.calls}", expires_in=self.expires_in)


class TokenCacheTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = CredentialStore(os.path.join(self._tmp.name, "tokens.json"))
        self.store.save(CredentialRecord(refresh_token="rt-1", scope="user-read-private"))
        self.clock = FakeClock()

    def tearDown(self):
        self._tmp.cleanup()

    def make_cache(self, oauth) -> TokenCache:
        return TokenCache(self.store, oauth, expiry_margin=60, clock=self.clock)


class TestSingleFlightRefresh(TokenCacheTestCase):
    async def test_concurrent_callers_share_one_exchange(self):
        oauth = FakeOAuth()
        cache = self.make_cache(oauth)

        tokens = await asyncio.gather(*[cache.get_access_token() for _ in range(10)])

        self.assertEqual(oauth.calls, 1)
        self.assertEqual(set(tokens), {"token-1"})
        self.assertEqual(oauth.refresh_tokens, ["rt-1"])
        self.assertIs(cache.state, TokenState.VALID)

    async def test_concurrent_callers_share_the_same_error(self):
        error = SpotifyAPIError(400, "Refresh token revoked", {"error": "invalid_grant"})
        oauth = FakeOAuth(error=error)
        cache = self.make_cache(oauth)

        results = await asyncio.gather(*[cache.get_access_token() for _ in range(5)], return_exceptions=True)

        self.assertEqual(oauth.calls, 1)
        for result in results:
            self.assertIs(result, error)
        self.assertEqual(results[0].status, 400)
        self.assertEqual(results[0].raw_body, {"error": "invalid_grant"})
        self.assertIs(cache.state, TokenState.EMPTY)

    async def test_failed_refresh_is_retried_by_next_caller(self):
        oauth = FakeOAuth(error=SpotifyAPIError(503, "Service Unavailable"))
        cache = self.make_cache(oauth)

        with self.assertRaises(SpotifyAPIError):
            await cache.get_access_token()

        oauth.error = None
        token = await cache.get_access_token()
        self.assertEqual(token, "token-2")
        self.assertEqual(oauth.calls, 2)

    async def test_cancelled_waiter_does_not_cancel_shared_refresh(self):
        oauth = FakeOAuth()
        cache = self.make_cache(oauth)

        first = asyncio.ensure_future(cache.get_access_token())
        second = asyncio.ensure_future(cache.get_access_token())
        await asyncio.sleep(0)
        first.cancel()

        self.assertEqual(await second, "token-1")
        self.assertEqual(oauth.calls, 1)
        self.assertTrue(first.cancelled())

    async def test_state_is_refreshing_while_exchange_runs(self):
        oauth = FakeOAuth()
        cache = self.make_cache(oauth)
        self.assertIs(cache.state, TokenState.EMPTY)

        pending = asyncio.ensure_future(cache.get_access_token())
        await asyncio.sleep(0)
        self.assertIs(cache.state, TokenState.REFRESHING)

        await pending
        self.assertIs(cache.state, TokenState.VALID)


class TestExpiry(TokenCacheTestCase):
    async def test_expiry_margin_boundaries(self):
        oauth = FakeOAuth(expires_in=3600)
        cache = self.make_cache(oauth)

        await cache.get_access_token()
        upstream_expiry = 1000.0 + 3600
        self.assertEqual(cache.expires_at, upstream_expiry - 60)

        # 61s before upstream expiry: still inside the safe window
        self.clock.now = upstream_expiry - 61
        self.assertEqual(await cache.get_access_token(), "token-1")
        self.assertEqual(oauth.calls, 1)

        # 59s before upstream expiry: inside the margin, must refresh
        self.clock.now = upstream_expiry - 59
        self.assertEqual(await cache.get_access_token(), "token-2")
        self.assertEqual(oauth.calls, 2)

    async def test_token_never_returned_at_expiry(self):
        oauth = FakeOAuth(expires_in=3600)
        cache = self.make_cache(oauth)

        await cache.get_access_token()
        self.clock.now = cache.expires_at
        self.assertEqual(await cache.get_access_token(), "token-2")

    async def test_virtual_time_past_lifetime_triggers_second_exchange(self):
        oauth = FakeOAuth(expires_in=3600)
        cache = self.make_cache(oauth)

        await cache.get_access_token()
        await cache.get_access_token()
        self.assertEqual(oauth.calls, 1)

        self.clock.now += 3601
        await cache.get_access_token()
        self.assertEqual(oauth.calls, 2)


class TestMissingCredentials(TokenCacheTestCase):
    async def test_blank_refresh_token_raises_no_credential(self):
        self.store.save(CredentialRecord(refresh_token="   "))
        oauth = FakeOAuth()
        cache = self.make_cache(oauth)

        with self.assertRaises(NoCredentialError):
            await cache.get_access_token()
        self.assertEqual(oauth.calls, 0)
        self.assertIs(cache.state, TokenState.EMPTY)

    async def test_missing_file_raises_no_credential(self):
        store = CredentialStore(os.path.join(self._tmp.name, "missing", "tokens.json"))
        cache = TokenCache(store, FakeOAuth(), clock=self.clock)

        with self.assertRaises(NoCredentialError):
            await cache.get_access_token()

    async def test_missing_client_identity_raises_before_any_request(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"access_token": "x", "expires_in": 3600})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        oauth = SpotifyOAuth({"spotify_client_id": "id", "spotify_client_secret": ""}, http_client=http)
        cache = self.make_cache(oauth)

        with self.assertRaises(ConfigurationError):
            await cache.get_access_token()
        self.assertEqual(requests, [])
        await http.aclose()


class TestInvalidate(TokenCacheTestCase):
    async def test_invalidate_forces_refresh(self):
        oauth = FakeOAuth()
        cache = self.make_cache(oauth)

        await cache.get_access_token()
        cache.invalidate()
        self.assertIs(cache.state, TokenState.EMPTY)

        self.assertEqual(await cache.get_access_token(), "token-2")

    async def test_invalidate_with_stale_token_keeps_newer_one(self):
        oauth = FakeOAuth()
        cache = self.make_cache(oauth)

        await cache.get_access_token()
        cache.invalidate("some-older-token")
        self.assertEqual(await cache.get_access_token(), "token-1")
        self.assertEqual(oauth.calls, 1)

        cache.invalidate("token-1")
        self.assertEqual(await cache.get_access_token(), "token-2")

    async def test_invalidate_during_refresh_joins_inflight(self):
        oauth = FakeOAuth()
        cache = self.make_cache(oauth)

        pending = asyncio.ensure_future(cache.get_access_token())
        await asyncio.sleep(0)
        cache.invalidate()
        self.assertIs(cache.state, TokenState.REFRESHING)

        joined = await cache.get_access_token()
        self.assertEqual(await pending, joined)
        self.assertEqual(oauth.calls, 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
