from __future__ import annotations

import logging
from enum import Enum
from typing import List, Protocol

from .base import Category, CrawlOutput, Partition, RecordBody, RecordIdentifier
from .errors import DiscoveryError, FetchError
from .limiter import ConcurrencyLimiter
from .stage import run_stage

logger = logging.getLogger(__name__)


class CaseSource(Protocol):
    """The three calls the pipeline needs; NamUsClient is the real one."""

    async def list_partitions(self) -> List[Partition]: ...

    async def search_partition(self, partition: Partition, category: Category) -> List[RecordIdentifier]: ...

    async def get_record(self, case_id: RecordIdentifier, category: Category) -> RecordBody: ...


class PipelineState(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    COLLECTING_IDENTIFIERS = "collecting_identifiers"
    COLLECTING_BODIES = "collecting_bodies"
    DONE = "done"
    FAILED = "failed"


class CrawlPipeline:
    """Two-stage crawl: states -> case numbers -> case bodies.

    Discovery failure is the only fatal condition and raises DiscoveryError.
    Every later failure is kept per item in the returned CrawlOutput.

    A pipeline object performs a single run; the limiter is shared by the
    discovery call and both stages.
    """

    def __init__(self, source: CaseSource, category: Category, limiter: ConcurrencyLimiter) -> None:
        self.source = source
        self.category = category
        self.limiter = limiter
        self.state = PipelineState.IDLE

    def _enter(self, state: PipelineState) -> None:
        logger.debug("Pipeline %s -> %s", self.state.value, state.value)
        self.state = state

    async def run(self) -> CrawlOutput:
        if self.state is not PipelineState.IDLE:
            raise RuntimeError(f"Pipeline already ran (state: {self.state.value})")

        self._enter(PipelineState.DISCOVERING)
        try:
            async with self.limiter.permit():
                partitions = await self.source.list_partitions()
        except FetchError as exc:
            self._enter(PipelineState.FAILED)
            logger.error("Discovery failed: %s", exc)
            raise DiscoveryError(exc) from exc
        except Exception as exc:
            self._enter(PipelineState.FAILED)
            logger.exception("Discovery raised unexpectedly")
            raise DiscoveryError(exc) from exc
        logger.info("Discovered %d partition(s) for %s", len(partitions), self.category.display_name)

        self._enter(PipelineState.COLLECTING_IDENTIFIERS)
        category = self.category

        async def search(partition: Partition) -> List[RecordIdentifier]:
            return await self.source.search_partition(partition, category)

        id_stage = await run_stage(partitions, search, self.limiter, name="search")
        identifiers: List[RecordIdentifier] = [i for _, ids in id_stage.successes for i in ids]
        if id_stage.failures:
            logger.warning(
                "%d partition(s) could not be searched; their cases will not be fetched: %s",
                len(id_stage.failures),
                ", ".join(str(p) for p in id_stage.failed_items()),
            )

        self._enter(PipelineState.COLLECTING_BODIES)

        async def fetch(case_id: RecordIdentifier) -> RecordBody:
            return await self.source.get_record(case_id, category)

        body_stage = await run_stage(identifiers, fetch, self.limiter, name="fetch")

        self._enter(PipelineState.DONE)
        output = CrawlOutput(
            category=category,
            records=list(body_stage.successes),
            failed_records=list(body_stage.failures),
            failed_partitions=list(id_stage.failures),
            partitions_seen=len(partitions),
            identifiers_seen=len(identifiers),
        )
        logger.info("Crawl finished: %s; limiter %s", output.summary(), self.limiter.get_stats())
        return output
