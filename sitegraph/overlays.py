"""
Overlay Removal
===============
Best-effort removal of cookie banners, consent dialogs and modal popups
before a page is captured.

The heuristics are plain data so they can be extended without touching the
control flow:
- ``OVERLAY_PATTERNS``       class / id substrings that mark an overlay
- ``OVERLAY_SELECTORS``      extra selectors removed outright
- ``ACCEPT_BUTTON_TEXTS``    visible button labels that dismiss a banner
- ``ACCEPT_BUTTON_SELECTORS`` vendor-specific accept buttons (OneTrust, CookieBot, ...)

Nothing here ever raises: an overlay that survives only makes the
screenshot uglier.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List

logger = logging.getLogger(__name__)

OVERLAY_PATTERNS: List[str] = [
    "cookie",
    "consent",
    "gdpr",
    "banner",
    "modal",
    "popup",
    "didomi",
    "overlay",
]

OVERLAY_SELECTORS: List[str] = [
    ".modal-backdrop",
    ".overlay-backdrop",
    "#onetrust-consent-sdk",
    "#CybotCookiebotDialog",
    "#truste-consent-track",
]

ACCEPT_BUTTON_TEXTS: List[str] = [
    "Accept",
    "Accept All",
    "Accept Cookies",
    "I Accept",
    "Agree",
    "OK",
    "Got it",
    "Allow All",
]

ACCEPT_BUTTON_SELECTORS: List[str] = [
    "#onetrust-accept-btn-handler",
    "#CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll",
    "#truste-consent-button",
    "[id*='accept']",
    "[class*='accept']",
]


def overlay_selectors() -> List[str]:
    """Attribute selectors for every overlay pattern plus the fixed list."""
    selectors: List[str] = []
    for pattern in OVERLAY_PATTERNS:
        # body often carries state classes such as "modal-open"
        selectors.append(f"body *[class*='{pattern}']")
        selectors.append(f"body *[id*='{pattern}']")
    selectors.extend(OVERLAY_SELECTORS)
    return selectors


def build_overlay_css() -> str:
    """Stylesheet that hides every overlay and restores page scrolling."""
    rule = ",\n".join(overlay_selectors())
    return (
        f"{rule} {{\n"
        "  display: none !important;\n"
        "  visibility: hidden !important;\n"
        "  opacity: 0 !important;\n"
        "  pointer-events: none !important;\n"
        "}\n"
        "html, body { overflow: auto !important; }\n"
    )


def accept_button_selectors() -> List[str]:
    selectors = [f'button:has-text("{text}")' for text in ACCEPT_BUTTON_TEXTS]
    selectors.extend(ACCEPT_BUTTON_SELECTORS)
    return selectors


# Removes fixed/absolute elements that match an overlay pattern. Layout
# containers (html, body, main) are never touched even if their class matches.
_REMOVE_OVERLAYS_JS = """
(patterns) => {
    let count = 0;
    const keep = new Set(['HTML', 'BODY', 'MAIN', 'HEADER', 'FOOTER', 'NAV']);
    for (const p of patterns) {
        document.querySelectorAll(`[class*="${p}"], [id*="${p}"]`).forEach(el => {
            if (keep.has(el.tagName)) return;
            const s = window.getComputedStyle(el);
            if (s.position === 'fixed' || s.position === 'absolute' || s.position === 'sticky') {
                el.remove();
                count++;
            }
        });
    }
    return count;
}
"""


async def _click_accept(page, click_timeout_ms: int) -> bool:
    for selector in accept_button_selectors():
        try:
            btn = await page.query_selector(selector)
            if btn and await btn.is_visible():
                await btn.click(timeout=click_timeout_ms)
                logger.debug(f"[OVERLAY] Dismissed via: {selector}")
                return True
        except Exception:
            continue
    return False


async def dismiss_overlays(page, click_timeout_ms: int = 1000) -> None:
    """Hide, remove and dismiss overlays on ``page``. Never raises."""
    # Accept first: the hiding stylesheet makes banner buttons invisible
    if await _click_accept(page, click_timeout_ms):
        await asyncio.sleep(0.3)

    try:
        await page.add_style_tag(content=build_overlay_css())
    except Exception as e:
        logger.debug(f"[OVERLAY] Style injection failed: {e}")

    try:
        removed = await page.evaluate(_REMOVE_OVERLAYS_JS, OVERLAY_PATTERNS)
        if removed:
            logger.debug(f"[OVERLAY] Removed {removed} overlay elements")
    except Exception as e:
        logger.debug(f"[OVERLAY] Removal failed: {e}")
