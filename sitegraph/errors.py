"""
Crawl Errors
============
Exception taxonomy shared by every crawl component.

- ``InvalidInputError``      rejected before a job is created
- ``ExtractionError``        one page failed; the job continues without it
- ``SessionFailure``         browser / context could not be opened; the job fails
- ``RouteDetectionError``    client-route discovery failed; only reduces recall
- ``InvalidTransitionError`` a job record was moved out of a terminal state
"""

from __future__ import annotations


class SiteGraphError(Exception):
    """Base class for all crawl engine errors."""


class InvalidInputError(SiteGraphError, ValueError):
    """Seed URL or page budget is unusable."""


class ExtractionError(SiteGraphError):
    """A single page could not be navigated or extracted."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class SessionFailure(SiteGraphError):
    """The browser or one of its contexts could not be created."""


class RouteDetectionError(SiteGraphError):
    pass


class InvalidTransitionError(SiteGraphError):
    """A job status change that the lifecycle does not allow."""

    def __init__(self, job_id: str, current: str, target: str):
        super().__init__(f"job {job_id}: cannot move from {current} to {target}")
        self.job_id = job_id
        self.current = current
        self.target = target
