"""Tests for client-side route detection."""

import asyncio

from conftest import ORIGIN, FakeContext, FakePageSpec, FakeSite
from sitegraph.monitor import CrawlMonitor, ROUTES_DETECTED
from sitegraph.route_detector import (
    NavigationChannel,
    RouteDetector,
    is_route_template,
    route_from_next_data,
    routes_from_json,
)

SEED = ORIGIN + "/"


class TestHelpers:
    """Pure helpers that turn traffic and payloads into routes."""

    def test_next_data_routes(self):
        """Next.js data requests map back to page routes."""
        assert route_from_next_data(ORIGIN + "/_next/data/abc123/docs/intro.json") == "/docs/intro"
        assert route_from_next_data(ORIGIN + "/_next/data/abc123/index.json") == "/"
        assert route_from_next_data(ORIGIN + "/_next/data/abc123/blog/index.json") == "/blog"
        assert route_from_next_data(ORIGIN + "/api/pages.json") is None

    def test_routes_from_json_walks_nested_listings(self):
        """Route-like keys are collected at any depth; relative values are not."""
        payload = {
            "menu": [
                {"label": "Docs", "path": "/docs"},
                {"label": "Blog", "children": [{"href": "/blog/latest"}]},
                {"label": "Ext", "url": "https://example.com/pricing"},
                {"label": "Rel", "path": "relative/ignored"},
            ],
            "title": "/not-a-route-key",
        }
        assert sorted(routes_from_json(payload)) == [
            "/blog/latest", "/docs", "https://example.com/pricing",
        ]

    def test_templates(self):
        """Parameterized route templates are recognized."""
        assert is_route_template("/blog/[slug]")
        assert is_route_template("/user/:id")
        assert is_route_template("/docs/*")
        assert not is_route_template("/blog/hello-world")


class TestNavigationChannel:
    """History API reports, navigations and requests feed one queue."""

    def test_binding_and_requests_reported(self):
        """Binding calls and data requests are drained in arrival order."""
        class Req:
            url = ORIGIN + "/_next/data/b1/about.json"

        channel = NavigationChannel()
        channel._on_binding(None, ORIGIN + "/app/settings")
        channel._on_request(Req())
        channel.report("")
        assert channel.drain() == [ORIGIN + "/app/settings", "/about"]
        assert channel.drain() == []

    def test_non_string_reports_ignored(self):
        """Only non-empty strings from the page are recorded."""
        channel = NavigationChannel()
        channel._on_binding(None, None)
        channel._on_binding(None, {"url": "/x"})
        channel._on_binding(None, 42)
        assert channel.drain() == []

    def test_pending_reads_cancelled(self):
        """JSON reads still in flight are cancelled before the page closes."""
        async def scenario():
            channel = NavigationChannel()
            task = asyncio.ensure_future(asyncio.sleep(10))
            channel._pending.add(task)
            channel.cancel_pending()
            await asyncio.gather(task, return_exceptions=True)
            return task, channel

        task, channel = asyncio.run(scenario())
        assert task.cancelled()
        assert not channel._pending

    def test_init_script_wraps_history_api(self):
        """The init script hooks pushState and replaceState."""
        assert "pushState" in NavigationChannel.INIT_SCRIPT
        assert "replaceState" in NavigationChannel.INIT_SCRIPT
        assert NavigationChannel.BINDING_NAME in NavigationChannel.INIT_SCRIPT


class TestFilterRoutes:
    """Candidate routes are cleaned before entering the frontier."""

    def test_same_origin_concrete_routes_only(self):
        """Foreign, template, internal and seed routes are dropped."""
        detector = RouteDetector()
        routes = detector.filter_routes(
            [
                "/pricing",
                ORIGIN + "/docs/",
                "https://other.com/x",
                "/blog/[slug]",
                "/_app",
                SEED,
                "",
            ],
            ORIGIN, SEED,
        )
        assert routes == {ORIGIN + "/pricing", ORIGIN + "/docs"}

    def test_malformed_candidates_dropped(self):
        """Unparsable route strings are skipped, not raised."""
        detector = RouteDetector()
        routes = detector.filter_routes(["http://[oops/", "//[bad", "/ok"], ORIGIN, SEED)
        assert routes == {ORIGIN + "/ok"}


class TestDetectClientRoutes:
    """End-to-end route detection on one session."""

    def test_router_metadata_routes(self, fast_config):
        """Router metadata yields concrete routes and closes the page."""
        site = FakeSite({SEED: FakePageSpec(
            title="Home", routes=["/", "/about", "/blog/[slug]", "/_error", "/contact"],
        )})
        monitor = CrawlMonitor("job")
        detector = RouteDetector(fast_config, monitor)
        session = FakeContext(site, {})
        routes = asyncio.run(detector.detect_client_routes(session, ORIGIN, SEED))
        assert routes == {ORIGIN + "/about", ORIGIN + "/contact"}
        assert monitor.events_of(ROUTES_DETECTED)[0].fields["count"] == 2
        page = session.pages[0]
        assert page.closed
        assert NavigationChannel.BINDING_NAME in page.handlers
        assert "framenavigated" in page.handlers

    def test_failures_are_swallowed(self, fast_config):
        """A failing navigation yields no routes and no exception."""
        site = FakeSite({SEED: FakePageSpec(fail_with=RuntimeError("net::ERR_FAILED"))})
        routes = asyncio.run(RouteDetector(fast_config).detect_client_routes(
            FakeContext(site, {}), ORIGIN, SEED,
        ))
        assert routes == set()
