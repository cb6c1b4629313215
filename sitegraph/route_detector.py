"""
Client Route Detector
=====================
Finds routes of client-side-routed single-page apps that never appear as
plain ``<a href>`` anchors.  Runs once per job against the seed page.

Sources (unioned):
1. ``NavigationChannel``: History API calls (``pushState`` / ``replaceState``)
   reported through an exposed binding, main-frame navigations, Next.js
   ``/_next/data/<build>/<route>.json`` requests and JSON route listings
   returned by XHR / fetch
2. Client-router metadata: ``__NEXT_DATA__``, ``__BUILD_MANIFEST``,
   ``__NUXT__``, ``router-link`` / ``nuxt-link`` / ``[data-route]``
3. Active probing: hover + click a few elements per selector, keep any
   same-origin URL change, navigate back to the seed

Every failure is swallowed; detection only adds recall on top of anchors.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Iterable, List, Optional, Set
from urllib.parse import urlparse

from .errors import RouteDetectionError
from .monitor import CrawlMonitor, ROUTES_DETECTED
from .run_config import CrawlerRunConfig
from .utils import URLNormalizer, origin_of

logger = logging.getLogger(__name__)

# XHR / fetch URLs whose JSON body is worth walking for routes
ROUTE_HINT_PATTERN = re.compile(r"route|page|sitemap|menu|nav", re.IGNORECASE)
NEXT_DATA_PATTERN = re.compile(r"/_next/data/[^/]+/(.+)\.json$")
ROUTE_KEYS = ("path", "route", "url", "href", "slug", "to")

# Templates such as /blog/[slug], /user/:id or /docs/*
_TEMPLATE_PATTERN = re.compile(r"\[[^\]]*\]|/:[^/]+|\*")

PROBE_SELECTORS: List[str] = [
    "nav button",
    "header button",
    "[role='tab']",
    "[role='menuitem']",
    "[role='link']:not(a)",
    "[data-route]",
    "li[class*='nav'] [onclick]",
    "[onclick]",
]

_ROUTER_METADATA_JS = """
() => {
    const out = [];
    const add = (v) => { if (typeof v === 'string' && v) out.push(v); };
    document.querySelectorAll('router-link[to], nuxt-link[to], [data-route]').forEach(el => {
        add(el.getAttribute('to') || el.getAttribute('data-route'));
    });
    try {
        const nd = window.__NEXT_DATA__;
        if (nd && typeof nd.page === 'string') add(nd.page);
    } catch (e) {}
    try {
        const bm = window.__BUILD_MANIFEST;
        if (bm && Array.isArray(bm.sortedPages)) bm.sortedPages.forEach(add);
    } catch (e) {}
    try {
        const nx = window.__NUXT__;
        if (nx && Array.isArray(nx.routes)) {
            nx.routes.forEach(r => add(typeof r === 'string' ? r : (r && r.path)));
        }
    } catch (e) {}
    return out;
}
"""


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def route_from_next_data(url: str) -> Optional[str]:
    """``/_next/data/abc123/docs/intro.json`` → ``/docs/intro``."""
    match = NEXT_DATA_PATTERN.search(urlparse(url).path)
    if not match:
        return None
    route = match.group(1)
    if route == "index":
        return "/"
    if route.endswith("/index"):
        route = route[: -len("/index")]
    return "/" + route


def routes_from_json(payload: Any, limit: int = 500) -> List[str]:
    """Collect path-like strings stored under route-ish keys of a JSON tree."""
    found: List[str] = []
    stack = [payload]
    while stack and len(found) < limit:
        node = stack.pop()
        if isinstance(node, dict):
            for key, value in node.items():
                if isinstance(value, str) and key.lower() in ROUTE_KEYS:
                    if value.startswith(("/", "http://", "https://")):
                        found.append(value)
                elif isinstance(value, (dict, list)):
                    stack.append(value)
        elif isinstance(node, list):
            stack.extend(node)
    return found


def is_route_template(route: str) -> bool:
    return bool(_TEMPLATE_PATTERN.search(urlparse(route).path or route))


def _is_internal_route(path: str) -> bool:
    # Next.js /_app, /_error and friends
    return any(seg.startswith("_") for seg in path.split("/") if seg)


# ---------------------------------------------------------------------------
# Navigation channel
# ---------------------------------------------------------------------------

class NavigationChannel:
    """
    Collects navigation targets a page reports while it runs.

    ``attach(page)`` must happen before the first ``goto`` so the History API
    hook is installed by the init script.  Response bodies are read in
    background tasks; ``settle()`` waits for them before ``drain()``.
    """

    BINDING_NAME = "__sitegraphNavigate"

    INIT_SCRIPT = """
    (() => {
        const report = (url) => {
            try {
                if (url !== undefined && url !== null && window.%(binding)s) {
                    window.%(binding)s(String(new URL(String(url), location.href)));
                }
            } catch (e) {}
        };
        for (const name of ['pushState', 'replaceState']) {
            const original = history[name];
            history[name] = function (state, title, url) {
                report(url);
                return original.apply(this, arguments);
            };
        }
    })();
    """ % {"binding": BINDING_NAME}

    def __init__(self):
        self._targets: List[str] = []
        self._pending: Set[asyncio.Task] = set()
        self._page = None

    async def attach(self, page) -> None:
        self._page = page
        await page.expose_binding(self.BINDING_NAME, self._on_binding)
        await page.add_init_script(self.INIT_SCRIPT)
        page.on("framenavigated", self._on_frame_navigated)
        page.on("request", self._on_request)
        page.on("response", self._on_response)

    def report(self, target: str) -> None:
        if isinstance(target, str) and target:
            self._targets.append(target)

    # -- event handlers -------------------------------------------------

    def _on_binding(self, source, url) -> None:
        self.report(url)

    def _on_frame_navigated(self, frame) -> None:
        if self._page is not None and frame == self._page.main_frame:
            self.report(frame.url)

    def _on_request(self, request) -> None:
        route = route_from_next_data(request.url)
        if route:
            self.report(route)

    def _on_response(self, response) -> None:
        request = response.request
        if request.resource_type not in ("xhr", "fetch"):
            return
        if not ROUTE_HINT_PATTERN.search(urlparse(response.url).path):
            return
        content_type = (response.headers or {}).get("content-type", "")
        if "json" not in content_type:
            return
        task = asyncio.ensure_future(self._read_routes(response))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _read_routes(self, response) -> None:
        try:
            payload = await response.json()
        except Exception as e:
            logger.debug(f"[ROUTES] Unreadable JSON from {response.url}: {e}")
            return
        for route in routes_from_json(payload):
            self.report(route)

    # -- consumer side --------------------------------------------------

    async def settle(self, timeout_s: float = 2.0) -> None:
        if not self._pending:
            return
        await asyncio.wait(list(self._pending), timeout=timeout_s)

    def cancel_pending(self) -> None:
        """Drop JSON reads still in flight; the page is about to close."""
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()

    def drain(self) -> List[str]:
        targets, self._targets = self._targets, []
        return targets


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

class RouteDetector:
    """Discovers client-side routes of the seed page."""

    def __init__(self, config: Optional[CrawlerRunConfig] = None,
                 monitor: Optional[CrawlMonitor] = None,
                 normalizer: Optional[URLNormalizer] = None):
        self.config = config or CrawlerRunConfig()
        self.monitor = monitor
        self.normalizer = normalizer or URLNormalizer()

    async def detect_client_routes(self, session, base_origin: str, seed_url: str) -> Set[str]:
        candidates: List[str] = []
        try:
            page = await session.new_page()
        except Exception as e:
            logger.debug(f"[ROUTES] Could not open page: {e}")
            return set()

        channel = NavigationChannel()
        try:
            await channel.attach(page)
            await page.goto(seed_url, wait_until="domcontentloaded",
                            timeout=self.config.discovery_timeout_ms)
            await asyncio.sleep(self.config.discovery_settle_s)

            candidates += await self._stage("router metadata", self._router_metadata(page))
            candidates += await self._stage(
                "probing", self._probe(page, seed_url, base_origin),
            )
            await channel.settle()
        except Exception as e:
            logger.debug(f"[ROUTES] Route detection failed for {seed_url}: {e}")
        finally:
            channel.cancel_pending()
            candidates += channel.drain()
            try:
                await page.close()
            except Exception as e:
                logger.debug(f"[ROUTES] Page close error: {e}")

        routes = self.filter_routes(candidates, base_origin, seed_url)
        if routes:
            logger.info(
                f"[ROUTES] Detected {len(routes)} client routes: "
                + ", ".join(sorted(routes)[:8])
                + ("..." if len(routes) > 8 else "")
            )
        if self.monitor:
            self.monitor.emit(ROUTES_DETECTED, count=len(routes))
        return routes

    def filter_routes(self, candidates: Iterable[str], base_origin: str, seed_url: str) -> Set[str]:
        """Normalize, keep same-origin concrete routes, drop the seed itself."""
        seed = self.normalizer.normalize(seed_url)
        routes: Set[str] = set()
        for raw in candidates:
            if not raw or is_route_template(raw):
                continue
            normalized = self.normalizer.normalize(raw, seed_url)
            if not normalized or normalized == seed:
                continue
            if origin_of(normalized) != base_origin:
                continue
            if _is_internal_route(urlparse(normalized).path):
                continue
            routes.add(normalized)
        return routes

    @staticmethod
    async def _stage(name: str, coro) -> List[str]:
        try:
            return list(await coro or [])
        except Exception as e:
            logger.debug(f"[ROUTES] {name} stage failed: {e}")
            return []

    async def _router_metadata(self, page) -> List[str]:
        values = await page.evaluate(_ROUTER_METADATA_JS)
        if not isinstance(values, list):
            raise RouteDetectionError(f"unexpected router metadata: {type(values).__name__}")
        return [v for v in values if isinstance(v, str)]

    async def _probe(self, page, seed_url: str, base_origin: str) -> List[str]:
        found: List[str] = []
        seed = self.normalizer.normalize(seed_url)
        click_timeout = self.config.overlay_click_timeout_ms
        for selector in PROBE_SELECTORS:
            try:
                count = len(await page.query_selector_all(selector))
            except Exception:
                continue
            for i in range(min(count, self.config.probe_limit)):
                try:
                    # Re-query each time: returning to the seed rebuilds the DOM
                    elements = await page.query_selector_all(selector)
                    if i >= len(elements):
                        break
                    el = elements[i]
                    if not await el.is_visible():
                        continue
                    await el.hover(timeout=click_timeout)
                    await el.click(timeout=click_timeout)
                    await asyncio.sleep(self.config.probe_settle_s)

                    current = self.normalizer.normalize(page.url)
                    if current and current != seed:
                        if origin_of(current) == base_origin:
                            found.append(current)
                            logger.debug(f"[ROUTES] Probe {selector}[{i}] → {current}")
                        await page.goto(seed_url, wait_until="domcontentloaded",
                                        timeout=self.config.discovery_timeout_ms)
                        await asyncio.sleep(self.config.probe_settle_s)
                except Exception as e:
                    logger.debug(f"[ROUTES] Probe {selector}[{i}] failed: {e}")
                    continue
        return found
