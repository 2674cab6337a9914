import base64
import os
import tempfile
import unittest
import urllib.parse

import httpx

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

from spotify_api.auth import (
    SpotifyOAuth,
    TokenGrant,
    basic_auth_header,
    check_spotify_credentials,
)
from spotify_api.catalog import SpotifyCatalog, page_from_block, parse_search_limit, parse_search_offset
from spotify_api.credential_store import CredentialRecord, CredentialStore
from spotify_api.errors import ConfigurationError, SpotifyAPIError


class TestSpotifyAuthHelpers(unittest.TestCase):
    def test_basic_auth_header(self):
        header = basic_auth_header("id", "secret")
        self.assertTrue(header.startswith("Basic "))
        self.assertEqual(base64.b64decode(header[6:]).decode(), "id:secret")

    def test_authorize_url_carries_scopes_and_state(self):
        config = {
            "spotify_client_id": "example-client-id",
            "spotify_redirect_uri": "http://127.0.0.1:3001/auth/callback",
            "spotify_scopes": ["user-read-playback-state", "playlist-read-private"],
        }
        url = SpotifyOAuth(config).get_authorize_url(state="abc123")

        self.assertIn("accounts.spotify.com/authorize", url)
        query = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)
        self.assertEqual(query["response_type"], ["code"])
        self.assertEqual(query["client_id"], ["example-client-id"])
        self.assertEqual(query["state"], ["abc123"])
        self.assertEqual(query["scope"], ["user-read-playback-state playlist-read-private"])

    def test_authorize_url_requires_client_id(self):
        with self.assertRaises(ConfigurationError):
            SpotifyOAuth({}).get_authorize_url(state="x")

    def test_generate_state_is_random_hex(self):
        a, b = SpotifyOAuth.generate_state(), SpotifyOAuth.generate_state()
        self.assertEqual(len(a), 32)
        self.assertNotEqual(a, b)
        int(a, 16)

    def test_check_spotify_credentials(self):
        status = check_spotify_credentials({"spotify_client_id": "id", "spotify_redirect_uri": "http://x/cb"})
        self.assertFalse(status["ok"])
        self.assertEqual(status["missing"], ["SPOTIFY_CLIENT_SECRET"])

        status = check_spotify_credentials(
            {"spotify_client_id": "id", "spotify_client_secret": "s", "spotify_redirect_uri": "http://x/cb"}
        )
        self.assertTrue(status["ok"])

    def test_token_grant_defaults_expiry(self):
        grant = TokenGrant.from_spotify_token_response({"access_token": "at"})
        self.assertEqual(grant.expires_in, 3600)
        self.assertIsNone(grant.refresh_token)


class TestTokenEndpointErrors(unittest.IsolatedAsyncioTestCase):
    async def test_non_json_error_body_is_wrapped(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        oauth = SpotifyOAuth({"spotify_client_id": "id", "spotify_client_secret": "s"}, http_client=http)

        with self.assertRaises(SpotifyAPIError) as ctx:
            await oauth.refresh("rt-1")
        await http.aclose()

        self.assertEqual(ctx.exception.status, 502)
        self.assertEqual(ctx.exception.raw_body, {"raw": "Bad Gateway"})

    def test_auth_and_client_share_one_body_parser(self):
        import spotify_api.auth as auth_module
        import spotify_api.client as client_module

        self.assertIs(auth_module.parse_body, client_module.parse_body)


class TestCredentialStore(unittest.TestCase):
    def test_missing_and_corrupt_files_load_empty(self):
        with tempfile.TemporaryDirectory() as td:
            path = os.path.join(td, "tokens.json")
            store = CredentialStore(path)
            self.assertFalse(store.load().has_refresh_token)

            for content in ("", "{not json", "[1, 2]", '{"refresh_token": 42}'):
                with open(path, "w", encoding="utf-8") as f:
                    f.write(content)
                with self.subTest(content=content):
                    self.assertEqual(store.load(), CredentialRecord())

    def test_save_roundtrip_creates_directory(self):
        with tempfile.TemporaryDirectory() as td:
            store = CredentialStore(os.path.join(td, "data", "tokens.json"))
            record = CredentialRecord(refresh_token="rt", scope="a b", updated_at="2025-01-01T00:00:00+00:00")
            store.save(record)
            self.assertEqual(store.load(), record)

    def test_update_keeps_refresh_token_when_response_has_none(self):
        with tempfile.TemporaryDirectory() as td:
            store = CredentialStore(os.path.join(td, "tokens.json"))
            store.save(CredentialRecord(refresh_token="rt-old", scope="old"))

            record = store.update_from_token_response({"access_token": "at", "scope": "new"})
            self.assertEqual(record.refresh_token, "rt-old")
            self.assertEqual(record.scope, "new")
            self.assertIsNotNone(record.updated_at)

            record = store.update_from_token_response({"access_token": "at", "refresh_token": "rt-new"})
            self.assertEqual(store.load().refresh_token, "rt-new")
            self.assertEqual(store.load().scope, "new")


class TestSpotifyAPIError(unittest.TestCase):
    def test_str_and_fields(self):
        err = SpotifyAPIError.from_response(404, {"error": {"status": 404, "message": "Not found"}})
        self.assertEqual(str(err), "Spotify API error 404: Not found")
        self.assertEqual(err.raw_body["error"]["message"], "Not found")

    def test_bool_status_is_ignored(self):
        err = SpotifyAPIError.from_response(403, {"error": {"status": True, "message": "x"}})
        self.assertEqual(err.status, 403)

    def test_reason_phrase_fallback(self):
        err = SpotifyAPIError.from_response(429, None, "Too Many Requests")
        self.assertEqual(err.message, "Too Many Requests")


class FakeSearchClient:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    async def search(self, q, search_type, *, market=None, limit=10, offset=0):
        self.calls.append((q, search_type, market, limit, offset))
        return self.payload


class TestCatalogNormalization(unittest.IsolatedAsyncioTestCase):
    async def test_track_search_filters_placeholders(self):
        payload = {
            "tracks": {
                "items": [
                    None,
                    {"id": "", "uri": "spotify:track:x", "name": "No id"},
                    {
                        "id": "123",
                        "uri": "spotify:track:123",
                        "name": "Song",
                        "artists": [{"name": "A"}, {"name": ""}, {"name": "B"}],
                        "album": {"name": "Album", "images": [{"url": "http://img"}]},
                    },
                ],
                "limit": 10,
                "offset": 0,
                "total": 1,
                "next": None,
            }
        }
        catalog = SpotifyCatalog(FakeSearchClient(payload))
        result = await catalog.search("song", "track", market="BR", limit=10, offset=0)

        self.assertTrue(result["ok"])
        self.assertEqual(len(result["items"]), 1)
        track = result["items"][0]
        self.assertEqual(track["artists"], [{"name": "A"}, {"name": "B"}])
        self.assertEqual(track["album"]["name"], "Album")
        self.assertEqual(result["page"], {"limit": 10, "offset": 0, "total": 1, "next": None, "previous": None})

    async def test_artist_search_exposes_top_artist(self):
        payload = {"artists": {"items": [{"id": "a1", "uri": "spotify:artist:a1", "name": "Band", "genres": ["rock"]}]}}
        catalog = SpotifyCatalog(FakeSearchClient(payload))
        result = await catalog.search("band", "artist", market=None, limit=5, offset=0)

        self.assertEqual(result["artist"], {"id": "a1", "name": "Band", "uri": "spotify:artist:a1"})
        self.assertEqual(result["page"]["limit"], 5)
        self.assertIsNone(result["page"]["total"])

    def test_search_limit_and_offset_parsing(self):
        self.assertEqual(parse_search_limit("50"), 10)
        self.assertEqual(parse_search_limit("-3"), 0)
        self.assertEqual(parse_search_limit("abc"), 10)
        self.assertEqual(parse_search_offset("5000"), 1000)
        self.assertEqual(parse_search_offset(None), 0)

    def test_page_from_non_dict(self):
        self.assertEqual(page_from_block(None, 3, 4)["limit"], 3)


if __name__ == "__main__":
    unittest.main(verbosity=2)
