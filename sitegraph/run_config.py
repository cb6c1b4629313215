"""
Unified Run Configuration
=========================
Single source of truth for ALL crawl defaults and runtime limits.

Every component (orchestrator, session pool, extractor, route detector, CLI)
reads from this object.  Environment variables and CLI flags populate it;
nothing else in the package hard-codes a timeout, a cap or a plan limit.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults, the only place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "max_pages": 100,
    "pool_size": 5,                  # browser contexts used for extraction
    "discovery_timeout_ms": 10000,   # navigation ceiling during discovery
    "discovery_settle_s": 0.5,
    "extraction_timeout_ms": 15000,  # navigation ceiling during extraction
    "extraction_settle_s": 1.0,
    "max_images": 10,
    "max_headings": 20,
    "max_buttons": 10,
    "max_text_chars": 5000,
    "preview_limit": 10,
    "probe_limit": 5,                # elements clicked per probe selector
    "probe_settle_s": 0.5,
    "overlay_click_timeout_ms": 1000,
    "viewport_width": 1280,
    "viewport_height": 800,
    "headless": True,
    "output_dir": "crawl_output",
    "artifact_prefix": "/temp",
    "user_agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
}

# Page budget ceilings per subscription tier
PLAN_LIMITS: Dict[str, int] = {
    "free": 100,
    "pro": 500,
    "enterprise": 1000,
}
# Unknown tiers get the most conservative budget
FALLBACK_PLAN_LIMIT = 5

_ENV_PREFIX = "SITEGRAPH_"


def _coerce(raw: str, default):
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


@dataclass
class CrawlerRunConfig:
    """
    Unified configuration consumed by every crawl subsystem.

    Populate via:
      - ``CrawlerRunConfig()``                 → all defaults
      - ``CrawlerRunConfig(pool_size=3)``      → override one value
      - ``CrawlerRunConfig.from_env()``        → ``SITEGRAPH_*`` variables
      - ``CrawlerRunConfig.from_cli_args(ns)`` → from argparse Namespace
    """

    # ---- Budget ----
    max_pages: int = _DEFAULTS["max_pages"]
    preview_limit: int = _DEFAULTS["preview_limit"]
    plan_limits: Dict[str, int] = field(default_factory=lambda: dict(PLAN_LIMITS))
    fallback_plan_limit: int = FALLBACK_PLAN_LIMIT

    # ---- Concurrency ----
    pool_size: int = _DEFAULTS["pool_size"]

    # ---- Timing ----
    discovery_timeout_ms: int = _DEFAULTS["discovery_timeout_ms"]
    discovery_settle_s: float = _DEFAULTS["discovery_settle_s"]
    extraction_timeout_ms: int = _DEFAULTS["extraction_timeout_ms"]
    extraction_settle_s: float = _DEFAULTS["extraction_settle_s"]
    overlay_click_timeout_ms: int = _DEFAULTS["overlay_click_timeout_ms"]

    # ---- Extraction caps ----
    max_images: int = _DEFAULTS["max_images"]
    max_headings: int = _DEFAULTS["max_headings"]
    max_buttons: int = _DEFAULTS["max_buttons"]
    max_text_chars: int = _DEFAULTS["max_text_chars"]

    # ---- Route probing ----
    probe_limit: int = _DEFAULTS["probe_limit"]
    probe_settle_s: float = _DEFAULTS["probe_settle_s"]

    # ---- Browser ----
    viewport_width: int = _DEFAULTS["viewport_width"]
    viewport_height: int = _DEFAULTS["viewport_height"]
    headless: bool = _DEFAULTS["headless"]
    user_agent: str = _DEFAULTS["user_agent"]

    # ---- Output ----
    output_dir: str = _DEFAULTS["output_dir"]
    artifact_prefix: str = _DEFAULTS["artifact_prefix"]
    output_json: Optional[str] = None

    # -----------------------------------------------------------------------
    # Budget helpers
    # -----------------------------------------------------------------------
    def plan_limit(self, plan_tier: Optional[str]) -> int:
        """Page ceiling for a subscription tier (case-insensitive)."""
        tier = (plan_tier or "").strip().lower()
        if tier in self.plan_limits:
            return self.plan_limits[tier]
        logger.warning(
            f"[CONFIG] Unknown plan tier {plan_tier!r}, "
            f"falling back to {self.fallback_plan_limit} pages"
        )
        return self.fallback_plan_limit

    def effective_budget(self, max_pages: int, plan_tier: Optional[str]) -> int:
        return min(max_pages, self.plan_limit(plan_tier))

    def context_options(self) -> Dict[str, object]:
        """Keyword arguments for ``browser.new_context``."""
        return dict(
            user_agent=self.user_agent,
            viewport={
                'width': self.viewport_width,
                'height': self.viewport_height,
            },
            locale='en-US',
        )

    # -----------------------------------------------------------------------
    # Factory helpers
    # -----------------------------------------------------------------------
    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CrawlerRunConfig":
        """Build config from ``SITEGRAPH_<FIELD>`` environment variables.

        The CLI loads ``.env`` through python-dotenv before calling this, so
        values from the file and the real environment are treated alike.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for key, default in _DEFAULTS.items():
            raw = environ.get(_ENV_PREFIX + key.upper())
            if raw is None or raw == "":
                continue
            try:
                overrides[key] = _coerce(raw, default)
            except ValueError:
                logger.warning(f"[CONFIG] Ignoring {_ENV_PREFIX}{key.upper()}={raw!r} (not a valid value)")
        return cls(**overrides)

    @classmethod
    def from_cli_args(cls, args, base: Optional["CrawlerRunConfig"] = None) -> "CrawlerRunConfig":
        """Build config from an argparse Namespace (``__main__.py``).

        Flags left unset keep the value from ``base`` (env-derived defaults).
        """
        cfg = base or cls()
        pages = getattr(args, "pages", None)
        if pages is not None:
            cfg.max_pages = pages
        workers = getattr(args, "workers", None)
        if workers is not None:
            cfg.pool_size = workers
        timeout = getattr(args, "timeout", None)
        if timeout is not None:
            cfg.extraction_timeout_ms = int(timeout * 1000)
        output_dir = getattr(args, "output_dir", None)
        if output_dir:
            cfg.output_dir = output_dir
        if getattr(args, "headed", False):
            cfg.headless = False
        cfg.output_json = getattr(args, "output_json", None)
        return cfg

    # -----------------------------------------------------------------------
    # Logging helper
    # -----------------------------------------------------------------------
    def log_summary(self, url: str, plan_tier: Optional[str] = None) -> None:
        """Emit a structured summary to the logger."""
        logger.info("=" * 60)
        logger.info("CRAWL RUN CONFIG")
        logger.info("=" * 60)
        logger.info(f"  URL:              {url}")
        logger.info(f"  Max Pages:        {self.max_pages}")
        if plan_tier:
            logger.info(f"  Plan:             {plan_tier} (limit {self.plan_limit(plan_tier)})")
        logger.info(f"  Sessions:         {self.pool_size}")
        logger.info(f"  Timeouts:         discovery {self.discovery_timeout_ms}ms, "
                    f"extraction {self.extraction_timeout_ms}ms")
        logger.info(f"  Viewport:         {self.viewport_width}x{self.viewport_height}")
        logger.info(f"  Headless:         {self.headless}")
        logger.info(f"  Output Dir:       {self.output_dir}")
        logger.info("=" * 60)
