"""
Shared fakes for the Playwright objects the crawl pipeline drives.

``FakeSite`` maps URLs to canned pages; ``FakeBrowser`` / ``FakeContext`` /
``FakePage`` implement just enough of the async Playwright surface for the
real extractor, route detector, session pool and orchestrator to run
without a browser.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pytest

from sitegraph.errors import SessionFailure
from sitegraph.run_config import CrawlerRunConfig


ORIGIN = "https://example.com"


@dataclass
class FakePageSpec:
    html: str = "<html><head><title>Page</title></head><body></body></html>"
    title: Optional[str] = None
    text: str = ""
    status: int = 200
    routes: List[str] = field(default_factory=list)   # router metadata
    fail_with: Optional[BaseException] = None
    delay: float = 0.0
    redirect_to: Optional[str] = None


def html_page(title: str, links=(), body: str = "") -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return (
        f"<html><head><title>{title}</title></head>"
        f"<body><h1>{title}</h1>{body}{anchors}</body></html>"
    )


class FakeSite:
    def __init__(self, pages: Dict[str, FakePageSpec] = None):
        self.pages: Dict[str, FakePageSpec] = dict(pages or {})
        self.visits: List[str] = []
        self.active = 0
        self.peak_active = 0

    def add(self, path: str, title: str, links=(), text: str = "", **kw) -> FakePageSpec:
        spec = FakePageSpec(html=html_page(title, links), title=title,
                            text=text or f"{title} page content", **kw)
        self.pages[ORIGIN + path] = spec
        return spec


class FakeResponse:
    def __init__(self, status: int):
        self.status = status


class FakeFrame:
    def __init__(self, page):
        self._page = page

    @property
    def url(self):
        return self._page.url


class FakePage:
    def __init__(self, site: FakeSite):
        self.site = site
        self.url = "about:blank"
        self.spec: Optional[FakePageSpec] = None
        self.main_frame = FakeFrame(self)
        self.handlers = {}
        self.closed = False
        self.style_tags: List[str] = []

    async def goto(self, url, wait_until=None, timeout=None):
        self.site.visits.append(url)
        spec = self.site.pages.get(url)
        self.site.active += 1
        self.site.peak_active = max(self.site.peak_active, self.site.active)
        try:
            await asyncio.sleep(spec.delay if spec else 0)
        finally:
            self.site.active -= 1
        if spec is not None and spec.redirect_to:
            url = spec.redirect_to
            spec = self.site.pages.get(url)
        if spec is None:
            self.url = url
            self.spec = FakePageSpec(status=404)
            return FakeResponse(404)
        if spec.fail_with is not None:
            raise spec.fail_with
        self.url = url
        self.spec = spec
        return FakeResponse(spec.status)

    async def content(self):
        return self.spec.html

    async def title(self):
        return self.spec.title or ""

    async def evaluate(self, script, arg=None):
        if "innerText" in script:
            return self.spec.text
        if "__NEXT_DATA__" in script:
            return list(self.spec.routes)
        return 0

    async def screenshot(self, full_page=False, type="png"):
        return b"\x89PNG fake"

    async def add_style_tag(self, content=None):
        self.style_tags.append(content)

    async def query_selector(self, selector):
        return None

    async def query_selector_all(self, selector):
        return []

    async def expose_binding(self, name, callback):
        self.handlers[name] = callback

    async def add_init_script(self, script):
        pass

    def on(self, event, handler):
        self.handlers[event] = handler

    async def close(self):
        self.closed = True


class FakeContext:
    def __init__(self, site: FakeSite, options: dict):
        self.site = site
        self.options = options
        self.closed = False
        self.pages: List[FakePage] = []

    async def new_page(self):
        page = FakePage(self.site)
        self.pages.append(page)
        return page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, site: FakeSite, fail_after: Optional[int] = None):
        self.site = site
        self.fail_after = fail_after
        self.contexts: List[FakeContext] = []

    async def new_context(self, **options):
        if self.fail_after is not None and len(self.contexts) >= self.fail_after:
            raise RuntimeError("context limit reached")
        ctx = FakeContext(self.site, options)
        self.contexts.append(ctx)
        return ctx


def make_launcher(browser: FakeBrowser):
    @asynccontextmanager
    async def launcher(config):
        yield browser
    return launcher


@asynccontextmanager
async def failing_launcher(config):
    raise SessionFailure("could not launch Chromium: executable missing")
    yield  # pragma: no cover


class RecordingArtifactStore:
    """Artifact store that keeps writes in memory."""

    def __init__(self):
        self.writes: Dict[str, bytes] = {}

    def ref(self, path):
        return f"/temp/{path}"

    def write(self, path, data):
        self.writes[path] = data
        return self.ref(path)


@pytest.fixture
def fast_config():
    return CrawlerRunConfig(
        pool_size=3,
        discovery_settle_s=0,
        extraction_settle_s=0,
        probe_settle_s=0,
    )


@pytest.fixture
def site():
    return FakeSite()
