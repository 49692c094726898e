import os
import unittest

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

import httpx

from spotify_radar import build_services
from spotify_radar.auth import ClientCredentials
from spotify_radar.client import ApiGateway
from spotify_radar.endpoints import ENDPOINTS, get_endpoint
from spotify_radar.errors import (
    DecodeError,
    HttpStatusError,
    InvalidGrantError,
    TransportError,
    UnauthenticatedError,
    UnauthorizedError,
)
from spotify_radar.session import SessionManager, SessionState
from spotify_radar.token_manager import Session, Token, TokenStore

NOW = 1_700_000_000.0


def track_item(track_id="t1", artists=("A", "B")):
    return {
        "id": track_id,
        "name": "Song",
        "duration_ms": 185000,
        "artists": [{"name": n} for n in artists],
        "album": {"images": [{"url": "https://img/1"}, {"url": "https://img/2"}]},
        "external_urls": {"spotify": f"https://open.spotify.com/track/{track_id}"},
    }


class FakeAuthClient:
    def __init__(self, *results):
        self.results = list(results)
        self.grants = []

    async def exchange(self, grant, credentials):
        self.grants.append(grant)
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


class FakeApi:
    """MockTransport handler that replays queued (status, json) responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        status, body = self.responses.pop(0)
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)


class GatewayTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.api = FakeApi()
        self.http = httpx.AsyncClient(transport=httpx.MockTransport(self.api))
        self.auth = FakeAuthClient()
        self.sm = SessionManager(self.auth, ClientCredentials("id", "secret"), store=TokenStore(), clock=lambda: NOW)
        self.gateway = ApiGateway(self.sm, http=self.http)

    async def asyncTearDown(self):
        await self.http.aclose()

    def sign_in(self, access="A", refresh="R"):
        self.sm.store.set(Session(token=Token(access_token=access, expires_at=NOW + 3600, refresh_token=refresh)))

    def respond(self, *responses):
        self.api.responses.extend(responses)


class TestRequestPipeline(GatewayTestCase):
    async def test_no_session_fails_without_network(self):
        with self.assertRaises(UnauthenticatedError):
            await self.gateway.profile()
        self.assertEqual(self.api.requests, [])

    async def test_bearer_header_and_get(self):
        self.sign_in("A")
        self.respond((200, {"id": "me", "display_name": "Me"}))

        profile = await self.gateway.profile()

        request = self.api.requests[0]
        self.assertEqual(request.method, "GET")
        self.assertEqual(str(request.url), "https://api.spotify.com/v1/me")
        self.assertEqual(request.headers["authorization"], "Bearer A")
        self.assertEqual(profile.display_name, "Me")

    async def test_query_parameters_keep_declared_order(self):
        self.sign_in()
        self.respond((200, {"items": []}), (200, {"artists": {"items": []}}), (200, {"items": []}))

        await self.gateway.top_tracks(time_range="short_term", limit=5)
        await self.gateway.search_artists("daft punk", limit=3)
        await self.gateway.recently_played(limit=10)

        urls = [str(r.url) for r in self.api.requests]
        self.assertEqual(urls[0], "https://api.spotify.com/v1/me/top/tracks?time_range=short_term&limit=5")
        self.assertEqual(urls[1], "https://api.spotify.com/v1/search?q=daft+punk&type=artist&limit=3")
        self.assertEqual(urls[2], "https://api.spotify.com/v1/me/player/recently-played?limit=10")

    async def test_path_placeholders_are_resolved(self):
        self.sign_in()
        self.respond((200, {"items": []}), (200, {"items": []}))

        await self.gateway.artist_albums("abc123", limit=2)
        await self.gateway.album_tracks("alb/1")

        self.assertEqual(str(self.api.requests[0].url), "https://api.spotify.com/v1/artists/abc123/albums?limit=2")
        self.assertEqual(self.api.requests[1].url.raw_path, b"/v1/albums/alb%2F1/tracks")

    async def test_top_tracks_flatten_artist_names(self):
        self.sign_in()
        self.respond((200, {"items": [track_item(artists=("A", "B"))]}))

        tracks = await self.gateway.top_tracks()

        self.assertEqual(len(tracks), 1)
        self.assertEqual(tracks[0].artist_names, "A, B")
        self.assertEqual(tracks[0].duration, "3:05")
        self.assertEqual(tracks[0].album_image, "https://img/1")

    async def test_expired_token_is_renewed_before_request(self):
        self.sm.store.set(Session(token=Token(access_token="OLD", expires_at=NOW - 5, refresh_token="R")))
        self.auth.results.append(Token(access_token="NEW", expires_at=NOW + 3600))
        self.respond((200, {"id": "me"}))

        await self.gateway.profile()

        self.assertEqual(len(self.auth.grants), 1)
        self.assertEqual(self.api.requests[0].headers["authorization"], "Bearer NEW")


class TestUnauthorizedRetry(GatewayTestCase):
    async def test_single_401_renews_and_retries_once(self):
        self.sign_in("OLD")
        self.auth.results.append(Token(access_token="NEW", expires_at=NOW + 3600))
        self.respond((401, {"error": {"status": 401}}), (200, {"id": "me"}))

        profile = await self.gateway.profile()

        self.assertEqual(profile.id, "me")
        self.assertEqual(len(self.auth.grants), 1)
        self.assertEqual(
            [r.headers["authorization"] for r in self.api.requests],
            ["Bearer OLD", "Bearer NEW"],
        )

    async def test_second_401_is_unauthorized_without_third_request(self):
        self.sign_in("OLD")
        self.auth.results.append(Token(access_token="NEW", expires_at=NOW + 3600))
        self.respond((401, {}), (401, {}), (200, {"id": "me"}))

        with self.assertRaises(UnauthorizedError):
            await self.gateway.profile()

        self.assertEqual(len(self.api.requests), 2)
        self.assertEqual(len(self.auth.grants), 1)

    async def test_401_with_revoked_refresh_token(self):
        self.sign_in("OLD")
        self.auth.results.append(InvalidGrantError("revoked", status_code=400))
        self.respond((401, {}))

        with self.assertRaises(UnauthorizedError) as ctx:
            await self.gateway.profile()

        self.assertIsInstance(ctx.exception.__cause__, InvalidGrantError)
        self.assertEqual(len(self.api.requests), 1)
        self.assertEqual(self.sm.state, SessionState.SIGNED_OUT)

    async def test_401_without_refresh_token(self):
        self.sign_in("OLD", refresh=None)
        self.respond((401, {}))

        with self.assertRaises(UnauthorizedError):
            await self.gateway.profile()
        self.assertEqual(self.sm.state, SessionState.SIGNED_OUT)

        with self.assertRaises(UnauthenticatedError):
            await self.gateway.profile()
        self.assertEqual(len(self.api.requests), 1)


class TestFailures(GatewayTestCase):
    async def test_decode_failure_reports_payload(self):
        self.sign_in()
        self.respond((200, {"unexpected": True}))

        with self.assertRaises(DecodeError) as ctx:
            await self.gateway.top_artists()

        self.assertEqual(ctx.exception.endpoint, "top_artists")
        self.assertGreater(ctx.exception.payload_size, 0)
        self.assertEqual(ctx.exception.payload_shape, {"unexpected": "bool"})
        self.assertEqual(len(self.api.requests), 1)

    async def test_non_object_items_are_a_decode_failure(self):
        self.sign_in()
        self.respond((200, {"items": [1]}), (200, {"id": "me", "followers": 5}))

        with self.assertRaises(DecodeError) as ctx:
            await self.gateway.top_tracks()
        self.assertGreater(ctx.exception.payload_size, 0)
        self.assertEqual(ctx.exception.payload_shape, {"items": "list"})

        with self.assertRaises(DecodeError) as ctx:
            await self.gateway.profile()
        self.assertEqual(ctx.exception.endpoint, "profile")
        self.assertEqual(ctx.exception.payload_shape, {"id": "str", "followers": "int"})

    async def test_non_json_body_is_a_decode_failure(self):
        self.sign_in()
        self.respond((200, b"<html>oops</html>"))

        with self.assertRaises(DecodeError) as ctx:
            await self.gateway.profile()
        self.assertEqual(ctx.exception.payload_size, len(b"<html>oops</html>"))

    async def test_transport_error_is_not_retried(self):
        self.sign_in()
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("timed out", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            gateway = ApiGateway(self.sm, http=http)
            with self.assertRaises(TransportError) as ctx:
                await gateway.profile()

        self.assertIsInstance(ctx.exception.__cause__, httpx.ReadTimeout)
        self.assertEqual(len(calls), 1)

    async def test_other_status_codes_surface(self):
        self.sign_in()
        self.respond((404, {"error": {"status": 404, "message": "missing"}}))

        with self.assertRaises(HttpStatusError) as ctx:
            await self.gateway.artist("nope")
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(len(self.api.requests), 1)


class TestEndpointTable(unittest.TestCase):
    def test_all_catalog_endpoints_are_authenticated_gets(self):
        for spec in ENDPOINTS.values():
            self.assertEqual(spec.method, "GET")
            self.assertTrue(spec.requires_auth)

    def test_missing_path_parameter(self):
        with self.assertRaises(ValueError):
            get_endpoint("album_tracks").build_url()

    def test_unknown_query_parameter(self):
        with self.assertRaises(ValueError):
            get_endpoint("profile").build_url(params={"limit": 1})

    def test_unknown_endpoint(self):
        with self.assertRaises(ValueError):
            get_endpoint("playlists")


class TestBuildServices(unittest.IsolatedAsyncioTestCase):
    async def test_wiring_from_config(self):
        api = FakeApi((200, {"id": "me", "display_name": "Me"}))
        http = httpx.AsyncClient(transport=httpx.MockTransport(api))
        services = build_services(
            {
                "spotify_client_id": "id",
                "spotify_client_secret": "secret",
                "spotify_cache_tokens": False,
                "spotify_api_base_url": "https://api.example.test",
            },
            http=http,
        )
        services.session_manager.store.set(
            Session(token=Token(access_token="A", expires_at=9_999_999_999.0, refresh_token="R"))
        )

        profile = await services.session_manager.user_profile()
        await services.aclose()

        self.assertEqual(profile.display_name, "Me")
        self.assertEqual(str(api.requests[0].url), "https://api.example.test/v1/me")
        self.assertEqual(services.session_manager.session.user_id, "me")


if __name__ == "__main__":
    unittest.main(verbosity=2)
