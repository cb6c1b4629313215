"""
Crawl Data Model
================
Records produced and consumed by the crawl pipeline.

- ``CrawlJob``        mutable job record with a guarded status lifecycle
- ``PageResult``      immutable per-page extraction output
- ``NetworkGraph``    nodes + edges derived from the full result set
- ``AnalysisResult``  what a finished job (or preview) hands back

Serialization uses the camelCase keys the API consumers expect.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .classifier import PageType
from .errors import InvalidTransitionError


# ---------------------------------------------------------------------------
# Job lifecycle
# ---------------------------------------------------------------------------

class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.FAILED},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


@dataclass
class CrawlJob:
    """Job record. Only the orchestrator moves it between states."""
    id: str
    seed_url: str
    max_pages: int
    plan_tier: str = "free"
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    created_at: float = field(default_factory=time.time)
    page_count: int = 0
    title: Optional[str] = None
    error: Optional[str] = None

    def _move(self, target: JobStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.id, self.status.value, target.value)
        self.status = target

    def mark_running(self) -> None:
        self._move(JobStatus.RUNNING)

    def set_progress(self, progress: int) -> None:
        if self.status is not JobStatus.RUNNING:
            raise InvalidTransitionError(self.id, self.status.value, "progress update")
        # Progress never goes backwards
        self.progress = max(self.progress, min(100, max(0, int(progress))))

    def complete(self, page_count: int, title: str) -> None:
        self._move(JobStatus.COMPLETED)
        self.progress = 100
        self.page_count = page_count
        self.title = title

    def fail(self, error: str) -> None:
        self._move(JobStatus.FAILED)
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.seed_url,
            "maxPages": self.max_pages,
            "planTier": self.plan_tier,
            "status": self.status.value,
            "progress": self.progress,
            "createdAt": self.created_at,
            "pageCount": self.page_count,
            "title": self.title,
            "error": self.error,
        }


# ---------------------------------------------------------------------------
# Page results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Heading:
    level: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "text": self.text}


@dataclass(frozen=True)
class PageMetadata:
    word_count: int = 0
    image_count: int = 0
    link_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "wordCount": self.word_count,
            "imageCount": self.image_count,
            "linkCount": self.link_count,
        }


@dataclass(frozen=True)
class PageResult:
    """Everything extracted from one page. Created once, never mutated."""
    id: str
    url: str
    title: str
    page_type: PageType
    links: Tuple[str, ...] = ()
    images: Tuple[str, ...] = ()
    headings: Tuple[Heading, ...] = ()
    forms: int = 0
    buttons: Tuple[str, ...] = ()
    text_content: str = ""
    screenshot_ref: str = ""
    html_ref: str = ""
    timestamp: str = ""
    metadata: PageMetadata = field(default_factory=PageMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "pageType": self.page_type.value,
            "links": list(self.links),
            "images": list(self.images),
            "headings": [h.to_dict() for h in self.headings],
            "forms": self.forms,
            "buttons": list(self.buttons),
            "textContent": self.text_content,
            "screenshotPath": self.screenshot_ref,
            "htmlPath": self.html_ref,
            "timestamp": self.timestamp,
            "metadata": self.metadata.to_dict(),
        }


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NetworkNode:
    id: str
    label: str
    color: str
    type: str
    url: str
    title: str
    screenshot: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "label": self.label,
            "color": self.color,
            "type": self.type,
            "url": self.url,
            "title": self.title,
            "screenshot": self.screenshot,
        }


@dataclass(frozen=True)
class NetworkEdge:
    from_id: str
    to_id: str

    def to_dict(self) -> Dict[str, str]:
        return {"from": self.from_id, "to": self.to_id}


@dataclass
class NetworkGraph:
    nodes: List[NetworkNode] = field(default_factory=list)
    edges: List[NetworkEdge] = field(default_factory=list)

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


# ---------------------------------------------------------------------------
# Job output
# ---------------------------------------------------------------------------

@dataclass
class AnalysisResult:
    results: List[PageResult]
    network: NetworkGraph
    is_preview: bool = False
    preview_limit: Optional[int] = None
    message: str = ""

    @property
    def total_pages(self) -> int:
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "networkData": self.network.to_dict(),
            "totalPages": self.total_pages,
            "isPreview": self.is_preview,
            "previewLimit": self.preview_limit,
            "message": self.message,
        }
