"""
sitegraph
Headless-browser site crawler: discovers a website's pages (including
client-side routes), extracts per-page content and builds a link graph.

CLI Usage:
    python -m sitegraph <url> [options]

    Options:
        --pages         Maximum pages to crawl (capped by --plan)
        --plan          Subscription tier: free | pro | enterprise
        --workers       Parallel browser sessions during extraction
        --timeout       Per-page extraction timeout in seconds
        --output-dir    Where screenshots, HTML and result.json go
        --preview       Small crawl, nothing written to disk
"""

from .classifier import PageType, classify, color_for
from .errors import (
    ExtractionError,
    InvalidInputError,
    InvalidTransitionError,
    RouteDetectionError,
    SessionFailure,
    SiteGraphError,
)
from .frontier import Frontier, FrontierEntry
from .graph import build_graph, render_visualization_html
from .models import AnalysisResult, CrawlJob, JobStatus, NetworkGraph, PageResult
from .monitor import CrawlMonitor
from .orchestrator import CrawlOrchestrator
from .run_config import CrawlerRunConfig
from .stores import InMemoryJobStore, LocalArtifactStore
from .utils import URLNormalizer

__all__ = [
    'AnalysisResult',
    'CrawlJob',
    'CrawlMonitor',
    'CrawlOrchestrator',
    'CrawlerRunConfig',
    'ExtractionError',
    'Frontier',
    'FrontierEntry',
    'InMemoryJobStore',
    'InvalidInputError',
    'InvalidTransitionError',
    'JobStatus',
    'LocalArtifactStore',
    'NetworkGraph',
    'PageResult',
    'PageType',
    'RouteDetectionError',
    'SessionFailure',
    'SiteGraphError',
    'URLNormalizer',
    'build_graph',
    'classify',
    'color_for',
    'render_visualization_html',
]
