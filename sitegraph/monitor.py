"""
Crawl Monitor
=============
Job-scoped observability sink for the crawl pipeline.

Every component receives the job's ``CrawlMonitor`` instead of writing to a
global logger on its own.  The monitor:
- logs each event with the job id prefix
- keeps a structured event list (tests assert on it)
- keeps counters and per-page timings for the end-of-job summary
"""

from __future__ import annotations

import logging
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

# Event kinds emitted by the pipeline
JOB_STARTED = "job_started"
PAGE_DISCOVERED = "page_discovered"
ROUTES_DETECTED = "routes_detected"
DISCOVERY_FINISHED = "discovery_finished"
PAGE_EXTRACTED = "page_extracted"
PAGE_FAILED = "page_failed"
PROGRESS = "progress"
SESSION_ACQUIRED = "session_acquired"
SESSION_RELEASED = "session_released"
JOB_COMPLETED = "job_completed"
JOB_FAILED = "job_failed"

_WARN_EVENTS = {PAGE_FAILED}
_ERROR_EVENTS = {JOB_FAILED}
_DEBUG_EVENTS = {SESSION_ACQUIRED, SESSION_RELEASED, PAGE_DISCOVERED}


@dataclass
class CrawlEvent:
    kind: str
    fields: Dict[str, Any] = field(default_factory=dict)
    at: float = field(default_factory=time.monotonic)


@dataclass
class PageTiming:
    """Timing breakdown for a single page extraction."""
    url: str = ""
    navigate_ms: float = 0.0
    extract_ms: float = 0.0
    total_ms: float = 0.0
    word_count: int = 0
    link_count: int = 0
    status: str = "ok"   # ok | failed


@dataclass
class CrawlMetrics:
    """Snapshot of a job's metrics at a point in time."""
    pages_discovered: int = 0
    pages_extracted: int = 0
    pages_failed: int = 0
    routes_detected: int = 0
    active_sessions: int = 0
    peak_sessions: int = 0
    total_words: int = 0
    avg_words_per_page: float = 0.0
    avg_page_ms: float = 0.0
    avg_navigate_ms: float = 0.0
    p95_page_ms: float = 0.0
    elapsed_sec: float = 0.0
    stop_reason: str = ""


class CrawlMonitor:
    """
    Collects events and metrics for one job.

    Usage::

        monitor = CrawlMonitor(job_id)
        monitor.emit(PAGE_EXTRACTED, url=url, words=120)
        monitor.record_page(PageTiming(url=url, total_ms=840))
        print(monitor.format_summary(monitor.snapshot()))
    """

    def __init__(self, job_id: str, max_events: int = 5000):
        self.job_id = job_id
        self._start = time.monotonic()
        self._events: Deque[CrawlEvent] = deque(maxlen=max_events)
        self._counts: Counter = Counter()
        self._timings: Deque[PageTiming] = deque(maxlen=1000)
        self._active_sessions = 0
        self._peak_sessions = 0
        self._total_words = 0
        self._stop_reason = ""

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def emit(self, kind: str, **fields: Any) -> CrawlEvent:
        event = CrawlEvent(kind, fields)
        self._events.append(event)
        self._counts[kind] += 1

        if kind == SESSION_ACQUIRED:
            self._active_sessions += 1
            self._peak_sessions = max(self._peak_sessions, self._active_sessions)
        elif kind == SESSION_RELEASED:
            self._active_sessions = max(0, self._active_sessions - 1)
        elif kind in (JOB_COMPLETED, JOB_FAILED):
            self._stop_reason = kind

        detail = " ".join(f"{k}={v}" for k, v in fields.items())
        message = f"[JOB {self.job_id}] {kind} {detail}".rstrip()
        if kind in _ERROR_EVENTS:
            logger.error(message)
        elif kind in _WARN_EVENTS:
            logger.warning(message)
        elif kind in _DEBUG_EVENTS:
            logger.debug(message)
        else:
            logger.info(message)
        return event

    def events(self) -> List[CrawlEvent]:
        return list(self._events)

    def events_of(self, kind: str) -> List[CrawlEvent]:
        return [e for e in self._events if e.kind == kind]

    def count(self, kind: str) -> int:
        return self._counts[kind]

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def record_page(self, timing: PageTiming) -> None:
        self._timings.append(timing)
        if timing.status == "ok":
            self._total_words += timing.word_count

    def snapshot(self) -> CrawlMetrics:
        extracted = self._counts[PAGE_EXTRACTED]
        timings = sorted(t.total_ms for t in self._timings if t.total_ms > 0)
        nav = [t.navigate_ms for t in self._timings if t.navigate_ms > 0]

        p95 = 0.0
        if timings:
            p95 = timings[min(int(len(timings) * 0.95), len(timings) - 1)]

        routes = sum(e.fields.get("count", 0) for e in self.events_of(ROUTES_DETECTED))
        return CrawlMetrics(
            pages_discovered=self._counts[PAGE_DISCOVERED],
            pages_extracted=extracted,
            pages_failed=self._counts[PAGE_FAILED],
            routes_detected=routes,
            active_sessions=self._active_sessions,
            peak_sessions=self._peak_sessions,
            total_words=self._total_words,
            avg_words_per_page=round(self._total_words / extracted, 1) if extracted else 0.0,
            avg_page_ms=round(sum(timings) / len(timings), 1) if timings else 0.0,
            avg_navigate_ms=round(sum(nav) / len(nav), 1) if nav else 0.0,
            p95_page_ms=round(p95, 1),
            elapsed_sec=round(time.monotonic() - self._start, 2),
            stop_reason=self._stop_reason,
        )

    def format_summary(self, metrics: Optional[CrawlMetrics] = None) -> str:
        """Format a human-readable summary string."""
        m = metrics or self.snapshot()
        lines = [
            "=" * 65,
            f"  CRAWL SUMMARY  (job {self.job_id})",
            "=" * 65,
            f"  Pages discovered:    {m.pages_discovered}",
            f"  Client routes:       {m.routes_detected}",
            f"  Pages extracted:     {m.pages_extracted}",
            f"  Pages failed:        {m.pages_failed}",
            "-" * 65,
            f"  Avg page time:       {m.avg_page_ms:.0f} ms",
            f"  Avg navigate time:   {m.avg_navigate_ms:.0f} ms",
            f"  P95 page time:       {m.p95_page_ms:.0f} ms",
            f"  Peak sessions:       {m.peak_sessions}",
            "-" * 65,
            f"  Total words:         {m.total_words:,}",
            f"  Avg words/page:      {m.avg_words_per_page:.0f}",
            f"  Elapsed time:        {m.elapsed_sec:.1f} s",
            f"  Stop reason:         {m.stop_reason or 'running'}",
            "=" * 65,
        ]
        return "\n".join(lines)
