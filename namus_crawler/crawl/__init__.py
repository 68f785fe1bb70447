"""Crawling subsystem.

Structure:
- base.py: categories, stage results and run output types
- errors.py: typed fetch failures
- client.py: one-request-per-call API client (httpx)
- limiter.py: shared admission gate for in-flight requests
- stage.py: concurrent fan-out/fan-in over a list of items
- orchestrator.py: states -> case numbers -> case bodies
- pipeline.py: JSONL writers for a finished run
- runner.py: CLI entrypoint
"""

from .base import Category, CrawlOutput, StageFailure, StageResult
from .errors import BadResponseError, DiscoveryError, FetchError, StatusError, TransportError
from .limiter import ConcurrencyLimiter, Permit
from .orchestrator import CrawlPipeline, PipelineState
from .stage import run_stage

__all__ = [
    "BadResponseError",
    "Category",
    "ConcurrencyLimiter",
    "CrawlOutput",
    "CrawlPipeline",
    "DiscoveryError",
    "FetchError",
    "Permit",
    "PipelineState",
    "StageFailure",
    "StageResult",
    "StatusError",
    "TransportError",
    "run_stage",
]
