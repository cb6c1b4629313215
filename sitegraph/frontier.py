"""
Crawl Frontier
==============
Bounded breadth-first frontier for a single job.

The frontier and the visited set are one object with a single owner (the
discovery loop).  A URL is admitted at most once, only if it shares the
seed's origin, and only while the page budget has room.  Extraction never
touches the frontier; it receives ``discovered()`` once discovery ends.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional

from .errors import InvalidInputError
from .utils import URLNormalizer, origin_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrontierEntry:
    url: str
    depth: int
    parent_url: Optional[str] = None


class Frontier:
    """
    FIFO queue + visited set with origin and budget admission rules.

    Usage::

        frontier = Frontier("https://example.com", max_pages=50)
        while (entry := frontier.dequeue()) is not None:
            for link in links_of(entry.url):
                frontier.enqueue(link, entry.depth + 1, entry.url)
        urls = frontier.discovered()
    """

    def __init__(self, seed_url: str, max_pages: int,
                 normalizer: Optional[URLNormalizer] = None):
        if max_pages < 1:
            raise InvalidInputError(f"max_pages must be >= 1, got {max_pages}")
        self.normalizer = normalizer or URLNormalizer()
        seed = self.normalizer.normalize(seed_url)
        if seed is None:
            raise InvalidInputError(f"seed URL is not an absolute http(s) page URL: {seed_url!r}")
        self.seed_url = seed
        self.origin = origin_of(seed)
        self.max_pages = max_pages

        self._queue: Deque[FrontierEntry] = deque()
        # Insertion-ordered: doubles as the discovery order
        self._visited: Dict[str, FrontierEntry] = {}
        self.rejected = 0

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def enqueue(self, url: str, depth: int, parent_url: Optional[str] = None) -> bool:
        """Admit ``url`` if it is a new same-origin page and budget remains."""
        if self.is_full:
            return False
        normalized = self.normalizer.normalize(url) if url else None
        if normalized is None or origin_of(normalized) != self.origin:
            self.rejected += 1
            return False
        if normalized in self._visited:
            return False

        entry = FrontierEntry(normalized, depth, parent_url)
        self._visited[normalized] = entry
        self._queue.append(entry)
        if self.is_full:
            logger.info(f"[FRONTIER] Page budget reached ({self.max_pages})")
        return True

    def enqueue_many(self, urls, depth: int, parent_url: Optional[str] = None) -> int:
        added = 0
        for url in urls:
            if self.is_full:
                break
            if self.enqueue(url, depth, parent_url):
                added += 1
        return added

    def dequeue(self) -> Optional[FrontierEntry]:
        if not self._queue:
            return None
        return self._queue.popleft()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_full(self) -> bool:
        return len(self._visited) >= self.max_pages

    def __len__(self) -> int:
        return len(self._visited)

    def __contains__(self, url: str) -> bool:
        normalized = self.normalizer.normalize(url) if url else None
        return normalized is not None and normalized in self._visited

    def discovered(self) -> List[str]:
        """Every admitted URL, in discovery order."""
        return list(self._visited)
