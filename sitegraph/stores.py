"""
Job & Artifact Stores
=====================
Interfaces the orchestrator writes through, plus the reference
implementations used by the CLI and the tests.

- ``JobStore``         create / get / update / save_result for job records
- ``ArtifactStore``    write(path, bytes) -> relative reference
- ``InMemoryJobStore`` dict-backed, process-local
- ``LocalArtifactStore`` files under a root directory
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional

from .models import AnalysisResult, CrawlJob

logger = logging.getLogger(__name__)


class JobStore:
    """Persistence boundary for job records and finished results."""

    def create(self, job: CrawlJob) -> None:
        raise NotImplementedError

    def get(self, job_id: str) -> Optional[CrawlJob]:
        raise NotImplementedError

    def update(self, job: CrawlJob) -> None:
        raise NotImplementedError

    def save_result(self, job_id: str, result: AnalysisResult) -> None:
        raise NotImplementedError

    def get_result(self, job_id: str) -> Optional[AnalysisResult]:
        raise NotImplementedError


class ArtifactStore:
    """Binary blob storage addressed by relative POSIX paths."""

    def write(self, path: str, data: bytes) -> str:
        raise NotImplementedError

    def ref(self, path: str) -> str:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Reference implementations
# ---------------------------------------------------------------------------

class InMemoryJobStore(JobStore):
    """Dict-backed job store. Snapshots are copied in and out."""

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[str, Dict[str, Any]] = {}
        self._results: Dict[str, AnalysisResult] = {}

    def create(self, job: CrawlJob) -> None:
        with self._lock:
            if job.id in self._jobs:
                raise KeyError(f"job {job.id} already exists")
            self._jobs[job.id] = dict(job.__dict__)

    def get(self, job_id: str) -> Optional[CrawlJob]:
        with self._lock:
            data = self._jobs.get(job_id)
            return CrawlJob(**data) if data else None

    def update(self, job: CrawlJob) -> None:
        with self._lock:
            if job.id not in self._jobs:
                raise KeyError(f"job {job.id} does not exist")
            self._jobs[job.id] = dict(job.__dict__)

    def save_result(self, job_id: str, result: AnalysisResult) -> None:
        with self._lock:
            self._results[job_id] = result

    def get_result(self, job_id: str) -> Optional[AnalysisResult]:
        with self._lock:
            return self._results.get(job_id)

    def list_jobs(self, limit: int = 20) -> List[CrawlJob]:
        """Most recently created first."""
        with self._lock:
            rows = sorted(self._jobs.values(), key=lambda d: d["created_at"], reverse=True)
            return [CrawlJob(**d) for d in rows[:limit]]


class LocalArtifactStore(ArtifactStore):
    """
    Writes artifacts under ``root`` and returns references of the form
    ``<url_prefix>/<path>`` (``/temp/<job>/screenshots/<page>.png``).
    """

    def __init__(self, root: str, url_prefix: str = "/temp"):
        self.root = Path(root)
        self.url_prefix = "/" + url_prefix.strip("/") if url_prefix.strip("/") else ""

    def _resolve(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise ValueError(f"artifact path must be relative and stay under the root: {path!r}")
        return self.root.joinpath(*rel.parts)

    def ref(self, path: str) -> str:
        return f"{self.url_prefix}/{PurePosixPath(path)}"

    def write(self, path: str, data: bytes) -> str:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return self.ref(path)

