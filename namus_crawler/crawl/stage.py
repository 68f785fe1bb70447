from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

from .base import ItemT, StageFailure, StageResult, ValueT
from .errors import FetchError
from .limiter import ConcurrencyLimiter

logger = logging.getLogger(__name__)

_Outcome = Tuple[bool, object, object]


async def run_stage(
    items: Iterable[ItemT],
    operation: Callable[[ItemT], Awaitable[ValueT]],
    limiter: ConcurrencyLimiter,
    *,
    name: Optional[str] = None,
) -> StageResult[ItemT, ValueT]:
    """Run `operation` once per item, concurrently, and collect the outcomes.

    Every call holds one limiter permit for its whole duration. A failing call
    is recorded against its item and never cancels the others; the function
    returns only once every call has finished. Cancelling the caller cancels
    all pending calls, and each of them gives its permit back on the way out.
    """
    stage = name or getattr(operation, "__name__", "stage")
    batch = list(items)
    logger.info("Stage %s: %d item(s), max %d in flight", stage, len(batch), limiter.max_in_flight)

    async def _one(item: ItemT) -> _Outcome:
        try:
            async with limiter.permit():
                value = await operation(item)
        except FetchError as exc:
            logger.warning("Stage %s: %r failed: %s", stage, item, exc)
            return False, item, exc
        except Exception as exc:
            logger.exception("Stage %s: %r raised unexpectedly", stage, item)
            return False, item, exc
        return True, item, value

    outcomes: List[_Outcome] = await asyncio.gather(*(_one(item) for item in batch))

    result: StageResult[ItemT, ValueT] = StageResult()
    for ok, item, payload in outcomes:
        if ok:
            result.successes.append((item, payload))  # type: ignore[arg-type]
        else:
            result.failures.append(StageFailure(item=item, error=payload))  # type: ignore[arg-type]

    logger.info(
        "Stage %s done: %d succeeded, %d failed",
        stage,
        len(result.successes),
        len(result.failures),
    )
    return result
