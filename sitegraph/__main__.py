#!/usr/bin/env python3
"""
Command-line entry point
========================
Runs one crawl job (or a preview / single-page capture) and prints a summary.

All configuration flows through ``CrawlerRunConfig``: ``.env`` and
``SITEGRAPH_*`` environment variables first, CLI flags on top.

Run with: python -m sitegraph https://example.com
"""

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

from .errors import InvalidInputError, SiteGraphError
from .models import AnalysisResult, CrawlJob, JobStatus
from .orchestrator import CrawlOrchestrator
from .run_config import PLAN_LIMITS, CrawlerRunConfig
from .stores import InMemoryJobStore, LocalArtifactStore

logger = logging.getLogger(__name__)


def _load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / '.env'
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()  # tries CWD


def print_summary(job: CrawlJob, result: AnalysisResult, elapsed: float, output_dir: str) -> None:
    """Print final crawl statistics."""
    print("\n" + "=" * 65)
    print("CRAWL COMPLETE" if job.status is JobStatus.COMPLETED else "CRAWL FAILED")
    print("=" * 65)
    print(f"  Job:                 {job.id}")
    print(f"  Site title:          {job.title or '-'}")
    print(f"  Page budget:         {job.max_pages} ({job.plan_tier})")
    print(f"  Pages extracted:     {job.page_count}")
    if result is not None:
        print(f"  Graph:               {len(result.network.nodes)} nodes, "
              f"{len(result.network.edges)} edges")
    if job.error:
        print(f"  Error:               {job.error}")
    print(f"  Total time:          {elapsed:.1f}s")
    if job.status is JobStatus.COMPLETED:
        print(f"  Output:              {Path(output_dir) / job.id}")
    print("=" * 65)


def _write_json(path: str, payload) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    Path(path).write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding='utf-8')
    print(f"  Exported: {path}")


async def _run_job(orchestrator: CrawlOrchestrator, url: str, pages, plan: str):
    job = await orchestrator.run_crawl(url, pages, plan)
    return job, orchestrator.job_store.get_result(job.id)


def run_cli_with_args(argv=None) -> int:
    """Parse argv, build CrawlerRunConfig, run."""
    parser = argparse.ArgumentParser(
        prog='sitegraph',
        description='Discover a website with a headless browser and build its page graph',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m sitegraph https://example.com                     # free plan, 100 pages max
  python -m sitegraph https://example.com --plan pro --pages 300
  python -m sitegraph https://example.com --preview           # first 10 pages, no files
  python -m sitegraph https://example.com/pricing --capture   # one screenshot + HTML
        """
    )
    parser.add_argument('url', help='Seed URL to crawl')
    parser.add_argument('--pages', type=int, default=None,
                        help='Maximum pages to crawl (default: SITEGRAPH_MAX_PAGES or 100)')
    parser.add_argument('--plan', type=str, default='free',
                        help=f"Plan tier ({', '.join(PLAN_LIMITS)}; unknown tiers get 5 pages)")
    parser.add_argument('--workers', type=int, default=None,
                        help='Parallel browser sessions during extraction (default: 5)')
    parser.add_argument('--timeout', type=float, default=None,
                        help='Per-page extraction timeout in seconds (default: 15)')
    parser.add_argument('--output-dir', type=str, default=None,
                        help='Directory for screenshots, HTML and result.json')
    parser.add_argument('--output-json', type=str, help='Also write the analysis JSON here')
    parser.add_argument('--preview', action='store_true',
                        help='Crawl at most 10 pages and write nothing to disk')
    parser.add_argument('--capture', action='store_true',
                        help='Capture a screenshot and HTML of the URL only')
    parser.add_argument('--headed', action='store_true', help='Show the browser window')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )
    _load_env()

    url = args.url
    if not url.startswith(('http://', 'https://')):
        url = 'https://' + url

    cfg = CrawlerRunConfig.from_cli_args(args, CrawlerRunConfig.from_env())
    cfg.log_summary(url, None if args.preview else args.plan)

    artifact_store = None if args.preview else LocalArtifactStore(cfg.output_dir, cfg.artifact_prefix)
    orchestrator = CrawlOrchestrator(cfg, InMemoryJobStore(), artifact_store)

    start = time.time()
    try:
        if args.capture:
            capture = asyncio.run(orchestrator.capture_page(url))
            print(f"\n  Title:      {capture.title}")
            print(f"  Screenshot: {capture.screenshot_ref}")
            print(f"  HTML:       {capture.html_ref}")
            return 0

        if args.preview:
            result = asyncio.run(orchestrator.preview_crawl(url))
            print(f"\nPreview: {result.total_pages} pages, "
                  f"{len(result.network.edges)} links in {time.time() - start:.1f}s")
            for page in result.results:
                print(f"  [{page.page_type.value:<9}] {page.title[:50]:<50} {page.url}")
            if cfg.output_json:
                _write_json(cfg.output_json, result.to_dict())
            return 0

        job, result = asyncio.run(_run_job(orchestrator, url, args.pages, args.plan))
    except InvalidInputError as e:
        parser.error(str(e))
    except SiteGraphError as e:
        logger.error(f"Crawl failed: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nCrawl interrupted.")
        return 130

    print_summary(job, result, time.time() - start, cfg.output_dir)
    if result is not None and cfg.output_json:
        _write_json(cfg.output_json, result.to_dict())
    return 0 if job.status is JobStatus.COMPLETED else 1


if __name__ == '__main__':
    sys.exit(run_cli_with_args())
