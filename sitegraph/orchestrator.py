"""
Crawl Orchestrator
==================
Owns a crawl job from request to terminal status.

Lifecycle: ``pending → running → completed | failed``

Pipeline per job:
1. launch Chromium and open the session pool
2. discovery: one session, sequential BFS through the ``Frontier``;
   client routes of the seed page are fed in at depth 1
3. extraction: the finalized URL list is spread across the pool, each
   resolved page (success or failure) advances ``progress``
4. results back in discovery order → graph → ``result.json`` +
   ``visualization.html`` → job completed

Per-page failures are omissions.  Browser / pool failures and unexpected
discovery errors fail the job.  Sessions are closed on every path.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Callable, Dict, List, Optional

from .browser import launch_browser
from .errors import ExtractionError, InvalidInputError, SessionFailure
from .extractor import PageCapture, PageExtractor
from .frontier import Frontier
from .graph import build_graph, render_visualization_html
from .models import AnalysisResult, CrawlJob, PageResult
from .monitor import (
    CrawlMonitor,
    DISCOVERY_FINISHED,
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_STARTED,
    PAGE_DISCOVERED,
    PAGE_EXTRACTED,
    PAGE_FAILED,
    PROGRESS,
)
from .route_detector import RouteDetector
from .run_config import CrawlerRunConfig
from .session_pool import SessionPool
from .stores import InMemoryJobStore, JobStore
from .utils import URLNormalizer, is_valid_url

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Website Analysis"


def progress_percent(done: int, total: int) -> int:
    """Round-half-up percentage; an empty job is trivially complete."""
    if total <= 0:
        return 100
    return int(done * 100 / total + 0.5)


class CrawlOrchestrator:
    """
    Runs crawl jobs against a job store and an artifact store.

    Usage::

        orchestrator = CrawlOrchestrator(config, InMemoryJobStore(), LocalArtifactStore("out"))
        job_id = await orchestrator.start_crawl("https://example.com", 50, "pro")
        job = await orchestrator.wait(job_id)
    """

    def __init__(
        self,
        config: Optional[CrawlerRunConfig] = None,
        job_store: Optional[JobStore] = None,
        artifact_store=None,
        browser_launcher: Callable = launch_browser,
        extractor_factory: Callable = PageExtractor,
        route_detector_factory: Callable = RouteDetector,
        monitor_factory: Callable[[str], CrawlMonitor] = CrawlMonitor,
    ):
        self.config = config or CrawlerRunConfig()
        self.job_store = job_store or InMemoryJobStore()
        self.artifact_store = artifact_store
        self._launch = browser_launcher
        self._extractor_factory = extractor_factory
        self._route_detector_factory = route_detector_factory
        self._monitor_factory = monitor_factory
        self.normalizer = URLNormalizer()

        self._jobs: Dict[str, CrawlJob] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._monitors: Dict[str, CrawlMonitor] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start_crawl(self, seed_url: str, max_pages: Optional[int] = None,
                          plan_tier: str = "free") -> str:
        """Validate, create the job record, schedule the pipeline, return the id."""
        seed = self._validate_seed(seed_url)
        requested = self.config.max_pages if max_pages is None else max_pages
        if isinstance(requested, bool) or not isinstance(requested, int) or requested < 1:
            raise InvalidInputError(f"max_pages must be a positive integer, got {max_pages!r}")
        budget = self.config.effective_budget(requested, plan_tier)

        job = CrawlJob(id=uuid.uuid4().hex, seed_url=seed, max_pages=budget,
                       plan_tier=(plan_tier or "").lower())
        self.job_store.create(job)
        job.mark_running()
        self.job_store.update(job)

        monitor = self._monitor_factory(job.id)
        self._jobs[job.id] = job
        self._monitors[job.id] = monitor
        self._tasks[job.id] = asyncio.create_task(self._run_job(job, monitor))
        return job.id

    async def wait(self, job_id: str) -> CrawlJob:
        task = self._tasks.get(job_id)
        if task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return self._jobs[job_id]

    async def run_crawl(self, seed_url: str, max_pages: Optional[int] = None,
                        plan_tier: str = "free") -> CrawlJob:
        job_id = await self.start_crawl(seed_url, max_pages, plan_tier)
        return await self.wait(job_id)

    def get_job(self, job_id: str) -> Optional[CrawlJob]:
        return self._jobs.get(job_id) or self.job_store.get(job_id)

    def get_monitor(self, job_id: str) -> Optional[CrawlMonitor]:
        return self._monitors.get(job_id)

    async def cancel(self, job_id: str) -> bool:
        """Stop a running job; it ends ``failed``. False if nothing to cancel."""
        task = self._tasks.get(job_id)
        if task is None or task.done():
            return False
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        # A task cancelled before its first step never reaches its own handler
        self._fail(self._jobs[job_id], self._monitors[job_id], "cancelled")
        return True

    async def preview_crawl(self, seed_url: str) -> AnalysisResult:
        """Small fixed-budget crawl: no job record, nothing written to storage."""
        seed = self._validate_seed(seed_url)
        limit = self.config.preview_limit
        monitor = self._monitor_factory(f"preview-{uuid.uuid4().hex[:8]}")
        monitor.emit(JOB_STARTED, url=seed, budget=limit, preview=True)
        try:
            result = await self._crawl(seed, limit, monitor.job_id, monitor, artifact_store=None)
        except Exception as e:
            monitor.emit(JOB_FAILED, reason=str(e))
            raise
        monitor.emit(JOB_COMPLETED, pages=result.total_pages)
        result.is_preview = True
        result.preview_limit = limit
        result.message = f"Preview shows up to {limit} pages. Run a full analysis for the whole site."
        return result

    async def capture_page(self, url: str) -> PageCapture:
        """Screenshot + HTML of one page, outside any crawl job."""
        seed = self._validate_seed(url)
        if self.artifact_store is None:
            raise InvalidInputError("page capture needs an artifact store")
        extractor = self._extractor_factory(self.config, self.artifact_store, None)
        async with self._launch(self.config) as browser:
            pool = SessionPool(browser, 1, self.config.context_options())
            await pool.start()
            try:
                async with pool.session() as session:
                    return await extractor.capture(session, seed, uuid.uuid4().hex)
            finally:
                await pool.close()

    # ------------------------------------------------------------------
    # Job runner
    # ------------------------------------------------------------------

    async def _run_job(self, job: CrawlJob, monitor: CrawlMonitor) -> None:
        monitor.emit(JOB_STARTED, url=job.seed_url, budget=job.max_pages, plan=job.plan_tier)

        def on_progress(progress: int) -> None:
            job.set_progress(progress)
            self.job_store.update(job)

        try:
            result = await self._crawl(job.seed_url, job.max_pages, job.id, monitor,
                                       self.artifact_store, on_progress)
            self._persist(job.id, result)
            title = result.results[0].title if result.results else ""
            job.complete(result.total_pages, title or DEFAULT_TITLE)
            self.job_store.update(job)
            monitor.emit(JOB_COMPLETED, pages=result.total_pages)
        except asyncio.CancelledError:
            self._fail(job, monitor, "cancelled")
            raise
        except SessionFailure as e:
            logger.error(f"[JOB {job.id}] Browser session failure: {e}", exc_info=True)
            self._fail(job, monitor, str(e))
        except Exception as e:
            logger.error(f"[JOB {job.id}] Crawl failed: {e}", exc_info=True)
            self._fail(job, monitor, f"{type(e).__name__}: {e}")
        finally:
            logger.info("\n" + monitor.format_summary())

    def _fail(self, job: CrawlJob, monitor: CrawlMonitor, reason: str) -> None:
        if job.status.is_terminal:
            return
        job.fail(reason)
        self.job_store.update(job)
        monitor.emit(JOB_FAILED, reason=reason)

    def _persist(self, job_id: str, result: AnalysisResult) -> None:
        self.job_store.save_result(job_id, result)
        if self.artifact_store is None:
            return
        payload = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
        self.artifact_store.write(f"{job_id}/result.json", payload.encode("utf-8"))
        page = render_visualization_html(result.network, result.results)
        self.artifact_store.write(f"{job_id}/visualization.html", page.encode("utf-8"))

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _crawl(self, seed_url: str, budget: int, job_id: str,
                     monitor: CrawlMonitor, artifact_store=None,
                     on_progress: Optional[Callable[[int], None]] = None) -> AnalysisResult:
        extractor = self._extractor_factory(self.config, artifact_store, monitor)
        detector = self._route_detector_factory(self.config, monitor)
        frontier = Frontier(seed_url, budget, self.normalizer)

        async with self._launch(self.config) as browser:
            pool = SessionPool(browser, self.config.pool_size,
                               self.config.context_options(), monitor)
            await pool.start()
            try:
                async with pool.session() as session:
                    await self._discover(session, frontier, extractor, detector, monitor)
                results = await self._extract_all(
                    pool, frontier.discovered(), extractor, job_id, monitor, on_progress,
                )
            finally:
                await pool.close()

        message = "" if results else "No pages could be extracted"
        return AnalysisResult(results=results, network=build_graph(results), message=message)

    async def _discover(self, session, frontier: Frontier, extractor, detector,
                        monitor: CrawlMonitor) -> None:
        seed = frontier.seed_url
        frontier.enqueue(seed, 0)
        monitor.emit(PAGE_DISCOVERED, url=seed, depth=0)

        routes: List[str] = []
        if not frontier.is_full:
            routes = sorted(await detector.detect_client_routes(session, frontier.origin, seed))

        first = True
        while True:
            if frontier.is_full:
                break
            entry = frontier.dequeue()
            if entry is None:
                break
            try:
                links = await extractor.discover_links(session, entry.url)
            except ExtractionError as e:
                monitor.emit(PAGE_FAILED, url=entry.url, phase="discovery", reason=e.reason)
                links = []
            self._admit(frontier, links, entry.depth + 1, entry.url, monitor)
            if first:
                self._admit(frontier, routes, 1, entry.url, monitor)
                first = False

        monitor.emit(DISCOVERY_FINISHED, pages=len(frontier))

    @staticmethod
    def _admit(frontier: Frontier, urls, depth: int, parent: str,
               monitor: CrawlMonitor) -> None:
        for url in urls:
            if frontier.is_full:
                return
            if frontier.enqueue(url, depth, parent):
                monitor.emit(PAGE_DISCOVERED, url=url, depth=depth)

    async def _extract_all(self, pool: SessionPool, urls: List[str], extractor,
                           job_id: str, monitor: CrawlMonitor,
                           on_progress: Optional[Callable[[int], None]]) -> List[PageResult]:
        total = len(urls)
        results: Dict[int, PageResult] = {}
        done = 0

        async def worker(index: int, url: str) -> None:
            nonlocal done
            try:
                async with pool.session() as session:
                    result = await extractor.extract(session, url, job_id, index, total)
                results[index] = result
                monitor.emit(PAGE_EXTRACTED, url=url, words=result.metadata.word_count)
            except ExtractionError as e:
                monitor.emit(PAGE_FAILED, url=url, phase="extraction", reason=e.reason)
            except SessionFailure:
                raise
            except Exception as e:
                logger.warning(f"[EXTRACT] Unexpected error on {url}: {e}", exc_info=True)
                monitor.emit(PAGE_FAILED, url=url, phase="extraction", reason=str(e))
            done += 1
            progress = progress_percent(done, total)
            monitor.emit(PROGRESS, done=done, total=total, progress=progress)
            if on_progress:
                on_progress(progress)

        tasks = [asyncio.ensure_future(worker(i, url)) for i, url in enumerate(urls)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            # Session loss or cancellation: stop the workers still running
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return [results[i] for i in sorted(results)]

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_seed(self, seed_url) -> str:
        if not isinstance(seed_url, str) or not seed_url.strip():
            raise InvalidInputError("seed URL is required")
        if not is_valid_url(seed_url.strip()):
            raise InvalidInputError(f"seed URL must be an absolute http(s) URL: {seed_url!r}")
        seed = self.normalizer.normalize(seed_url)
        if seed is None:
            raise InvalidInputError(f"seed URL does not point at a page: {seed_url!r}")
        return seed
