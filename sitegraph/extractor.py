"""
Page Extractor
==============
Navigates one URL in a browser session and turns it into a ``PageResult``.

Pipeline per page:
1. open a fresh page, ``goto`` with ``domcontentloaded`` and a ceiling timeout
2. settle delay for client-side rendering
3. best-effort overlay removal (``overlays.py``)
4. snapshot the DOM once and parse it with BeautifulSoup (lxml)
5. full-page screenshot + HTML written to the artifact store
6. classify and compute metadata

Any failure raises ``ExtractionError``; a partial ``PageResult`` is never
returned.  ``discover_links`` is the lighter discovery-phase variant.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from .classifier import classify
from .errors import ExtractionError
from .models import Heading, PageMetadata, PageResult
from .monitor import CrawlMonitor, PageTiming
from .overlays import dismiss_overlays
from .run_config import CrawlerRunConfig
from .utils import URLNormalizer, clean_text, origin_of, refine_title

logger = logging.getLogger(__name__)

# Button labels that are UI chrome rather than actions
_BUTTON_NOISE = re.compile(
    r"carousel|arrow|switch|index|prev|next|menu|close|toggle|slide|dismiss",
    re.IGNORECASE,
)
_MAX_BUTTON_LABEL = 60

_DATA_LINK_ATTRS = ("data-href", "data-url", "data-link")

_VISIBLE_TEXT_JS = "() => document.body ? document.body.innerText : ''"


@dataclass
class ExtractionLimits:
    max_images: int = 10
    max_headings: int = 20
    max_buttons: int = 10
    max_text_chars: int = 5000

    @classmethod
    def from_config(cls, config: CrawlerRunConfig) -> "ExtractionLimits":
        return cls(
            max_images=config.max_images,
            max_headings=config.max_headings,
            max_buttons=config.max_buttons,
            max_text_chars=config.max_text_chars,
        )


@dataclass
class ParsedPage:
    """Structured content parsed from one HTML snapshot."""
    title: str = ""
    links: List[str] = field(default_factory=list)
    data_links: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    headings: List[Heading] = field(default_factory=list)
    forms: int = 0
    buttons: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PageCapture:
    url: str
    title: str
    screenshot_ref: str
    html_ref: str


# ---------------------------------------------------------------------------
# HTML parsing (pure)
# ---------------------------------------------------------------------------

def filter_buttons(labels: Iterable[str], cap: int = 10) -> List[str]:
    """Drop navigation chrome labels, deduplicate, keep the first ``cap``."""
    kept: List[str] = []
    seen = set()
    for raw in labels:
        label = clean_text(raw)
        if len(label) < 2 or len(label) > _MAX_BUTTON_LABEL:
            continue
        if _BUTTON_NOISE.search(label):
            continue
        key = label.lower()
        if key in seen:
            continue
        seen.add(key)
        kept.append(label)
        if len(kept) >= cap:
            break
    return kept


def _same_origin_links(hrefs: Iterable[str], base_url: str, origin: str,
                       normalizer: URLNormalizer) -> List[str]:
    links: List[str] = []
    seen = set()
    for href in hrefs:
        normalized = normalizer.normalize(href, base_url)
        if not normalized or normalized in seen:
            continue
        if origin_of(normalized) != origin:
            continue
        seen.add(normalized)
        links.append(normalized)
    return links


def _join(base_url: str, href: str) -> Optional[str]:
    try:
        return urljoin(base_url, href)
    except ValueError:
        return None


def parse_page_html(html: str, page_url: str, origin: Optional[str] = None,
                    limits: Optional[ExtractionLimits] = None,
                    normalizer: Optional[URLNormalizer] = None) -> ParsedPage:
    """
    Parse an HTML snapshot into links, images, headings, forms and buttons.

    Links are resolved against ``<base href>`` when present, normalized and
    restricted to ``origin`` (defaults to the page's own origin).
    """
    limits = limits or ExtractionLimits()
    normalizer = normalizer or URLNormalizer()
    origin = origin or origin_of(page_url)
    soup = BeautifulSoup(html or "", "lxml")

    base_url = page_url
    base_tag = soup.find("base", href=True)
    if base_tag:
        base_url = _join(page_url, base_tag["href"]) or page_url

    parsed = ParsedPage()
    if soup.title and soup.title.string:
        parsed.title = clean_text(soup.title.string)

    parsed.links = _same_origin_links(
        (a.get("href", "") for a in soup.find_all("a", href=True)),
        base_url, origin, normalizer,
    )

    data_values = []
    for attr in _DATA_LINK_ATTRS:
        data_values.extend(el.get(attr, "") for el in soup.find_all(attrs={attr: True}))
    parsed.data_links = [
        u for u in _same_origin_links(data_values, base_url, origin, normalizer)
        if u not in parsed.links
    ]

    seen_images = set()
    for img in soup.find_all("img", src=True):
        src = img["src"].strip()
        if not src or src.lower().startswith("data:"):
            continue
        absolute = _join(base_url, src)
        if not absolute or absolute in seen_images:
            continue
        seen_images.add(absolute)
        parsed.images.append(absolute)
        if len(parsed.images) >= limits.max_images:
            break

    for tag in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]):
        text = clean_text(tag.get_text(" "))
        if not text:
            continue
        parsed.headings.append(Heading(level=int(tag.name[1]), text=text))
        if len(parsed.headings) >= limits.max_headings:
            break

    parsed.forms = len(soup.find_all("form"))

    labels: List[str] = []
    for el in soup.select("button, [role='button'], input[type='submit'], input[type='button']"):
        if el.name == "input":
            labels.append(el.get("value", ""))
        else:
            labels.append(el.get_text(" ") or el.get("aria-label", ""))
    parsed.buttons = filter_buttons(labels, limits.max_buttons)
    return parsed


def make_page_id(index: int) -> str:
    return f"page_{int(time.time() * 1000)}_{index}"


# ---------------------------------------------------------------------------
# Browser-driven extraction
# ---------------------------------------------------------------------------

class PageExtractor:
    """
    Extracts pages through pooled browser sessions.

    ``artifact_store`` is optional: without one (preview runs) screenshots and
    HTML are not captured and the result references are empty strings.
    """

    def __init__(self, config: Optional[CrawlerRunConfig] = None,
                 artifact_store=None, monitor: Optional[CrawlMonitor] = None,
                 normalizer: Optional[URLNormalizer] = None):
        self.config = config or CrawlerRunConfig()
        self.artifact_store = artifact_store
        self.monitor = monitor
        self.normalizer = normalizer or URLNormalizer()
        self.limits = ExtractionLimits.from_config(self.config)

    async def _navigate(self, page, url: str, timeout_ms: int, settle_s: float) -> float:
        started = time.monotonic()
        response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        if response is None:
            raise ExtractionError(url, "no response")
        if response.status >= 400:
            raise ExtractionError(url, f"HTTP {response.status}")
        nav_ms = (time.monotonic() - started) * 1000
        if settle_s > 0:
            await asyncio.sleep(settle_s)
        return nav_ms

    @staticmethod
    async def _close_page(page) -> None:
        try:
            await page.close()
        except Exception as e:
            logger.debug(f"[EXTRACT] Page close error: {e}")

    # ------------------------------------------------------------------
    # Discovery variant
    # ------------------------------------------------------------------

    async def discover_links(self, session, url: str) -> List[str]:
        """Same-origin anchors and ``data-href``-style links of one page."""
        try:
            page = await session.new_page()
        except Exception as e:
            raise ExtractionError(url, f"could not open page: {e}") from e
        try:
            await self._navigate(page, url, self.config.discovery_timeout_ms,
                                 self.config.discovery_settle_s)
            html = await page.content()
            final_url = page.url or url
            parsed = parse_page_html(html, final_url, origin_of(url), self.limits, self.normalizer)
        except ExtractionError:
            raise
        except PlaywrightTimeout as e:
            raise ExtractionError(url, f"timed out after {self.config.discovery_timeout_ms}ms") from e
        except PlaywrightError as e:
            raise ExtractionError(url, str(e)) from e
        except Exception as e:
            raise ExtractionError(url, f"{type(e).__name__}: {e}") from e
        finally:
            await self._close_page(page)
        return parsed.links + parsed.data_links

    # ------------------------------------------------------------------
    # Full extraction
    # ------------------------------------------------------------------

    async def extract(self, session, url: str, job_id: str,
                      index: int, total: int) -> PageResult:
        timing = PageTiming(url=url)
        started = time.monotonic()
        logger.info(f"[EXTRACT] ({index + 1}/{total}) {url}")
        try:
            page = await session.new_page()
        except Exception as e:
            raise ExtractionError(url, f"could not open page: {e}") from e

        try:
            timing.navigate_ms = await self._navigate(
                page, url, self.config.extraction_timeout_ms, self.config.extraction_settle_s,
            )
            await dismiss_overlays(page, self.config.overlay_click_timeout_ms)

            extract_started = time.monotonic()
            html = await page.content()
            live_title = await page.title()
            text = clean_text(await page.evaluate(_VISIBLE_TEXT_JS) or "")
            final_url = page.url or url
            parsed = parse_page_html(html, final_url, origin_of(url), self.limits, self.normalizer)

            page_id = make_page_id(index)
            screenshot_ref, html_ref = await self._capture_artifacts(page, job_id, page_id, html)
            timing.extract_ms = (time.monotonic() - extract_started) * 1000
        except ExtractionError as e:
            self._record_failure(timing, started, e.reason)
            raise
        except PlaywrightTimeout as e:
            self._record_failure(timing, started, "timeout")
            raise ExtractionError(url, f"timed out after {self.config.extraction_timeout_ms}ms") from e
        except Exception as e:
            self._record_failure(timing, started, str(e))
            raise ExtractionError(url, f"{type(e).__name__}: {e}") from e
        finally:
            await self._close_page(page)

        title = refine_title(live_title or parsed.title, url)
        text_content = text[:self.limits.max_text_chars]
        metadata = PageMetadata(
            word_count=len(text_content.split()),
            image_count=len(parsed.images),
            link_count=len(parsed.links),
        )
        result = PageResult(
            id=page_id,
            url=url,
            title=title,
            page_type=classify(url, title),
            links=tuple(parsed.links),
            images=tuple(parsed.images),
            headings=tuple(parsed.headings),
            forms=parsed.forms,
            buttons=tuple(parsed.buttons),
            text_content=text_content,
            screenshot_ref=screenshot_ref,
            html_ref=html_ref,
            timestamp=datetime.now(timezone.utc).isoformat(),
            metadata=metadata,
        )

        timing.total_ms = (time.monotonic() - started) * 1000
        timing.word_count = metadata.word_count
        timing.link_count = metadata.link_count
        if self.monitor:
            self.monitor.record_page(timing)
        return result

    async def _capture_artifacts(self, page, job_id: str, page_id: str,
                                 html: str) -> Tuple[str, str]:
        if self.artifact_store is None:
            return "", ""
        png = await page.screenshot(full_page=True, type="png")
        screenshot_ref = self.artifact_store.write(f"{job_id}/screenshots/{page_id}.png", png)
        html_ref = self.artifact_store.write(f"{job_id}/html/{page_id}.html", html.encode("utf-8"))
        return screenshot_ref, html_ref

    def _record_failure(self, timing: PageTiming, started: float, reason: str) -> None:
        timing.status = "failed"
        timing.total_ms = (time.monotonic() - started) * 1000
        if self.monitor:
            self.monitor.record_page(timing)
        logger.debug(f"[EXTRACT] {timing.url} failed: {reason}")

    # ------------------------------------------------------------------
    # One-off capture
    # ------------------------------------------------------------------

    async def capture(self, session, url: str, capture_id: str) -> PageCapture:
        """Screenshot + HTML of a single page outside any crawl job."""
        if self.artifact_store is None:
            raise ValueError("capture() needs an artifact store")
        try:
            page = await session.new_page()
        except Exception as e:
            raise ExtractionError(url, f"could not open page: {e}") from e
        try:
            await self._navigate(page, url, self.config.extraction_timeout_ms,
                                 self.config.extraction_settle_s)
            await dismiss_overlays(page, self.config.overlay_click_timeout_ms)
            html = await page.content()
            title = refine_title(await page.title(), url)
            screenshot_ref, html_ref = await self._capture_artifacts(
                page, f"captures/{capture_id}", "page", html,
            )
        except ExtractionError:
            raise
        except PlaywrightTimeout as e:
            raise ExtractionError(url, f"timed out after {self.config.extraction_timeout_ms}ms") from e
        except Exception as e:
            raise ExtractionError(url, f"{type(e).__name__}: {e}") from e
        finally:
            await self._close_page(page)
        return PageCapture(url=url, title=title, screenshot_ref=screenshot_ref, html_ref=html_ref)
