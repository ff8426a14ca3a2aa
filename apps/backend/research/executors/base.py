"""Stage executor with status instrumentation.

Every pipeline stage runs through `run_stage_with_status`, which is the
boundary that turns a raised exception into a StageStatus so one failing
stage never cancels its siblings. ParsingError is the exception: it is
re-raised because unparseable model output must reach the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sized
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from exceptions import ParsingError
from observability.metrics import research_stage_errors_total
from research.models import StageStatus
from utils.security import redact_secrets_from_text

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _count(value: object) -> int:
    return len(value) if isinstance(value, Sized) else 0


async def run_stage_with_status(
    stage: str,
    operation: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: Optional[float] = None,
    count: Callable[[T], int] = _count,
) -> Tuple[Optional[T], StageStatus]:
    started = time.monotonic()
    try:
        if timeout_seconds:
            value = await asyncio.wait_for(operation(), timeout=timeout_seconds)
        else:
            value = await operation()
        elapsed_ms = int((time.monotonic() - started) * 1000)
        return value, StageStatus(
            stage=stage,
            status="ok",
            result_count=count(value),
            latency_ms=elapsed_ms,
        )
    except ParsingError:
        research_stage_errors_total.labels(stage=stage).inc()
        raise
    except asyncio.TimeoutError:
        elapsed_ms = int((time.monotonic() - started) * 1000)
        research_stage_errors_total.labels(stage=stage).inc()
        logger.warning(f"[{stage}] Stage timed out after {elapsed_ms}ms")
        return None, StageStatus(
            stage=stage,
            status="timeout",
            latency_ms=elapsed_ms,
            message=f"{stage.capitalize()} stage timed out",
        )
    except Exception as e:
        elapsed_ms = int((time.monotonic() - started) * 1000)
        error_msg = redact_secrets_from_text(str(e))
        research_stage_errors_total.labels(stage=stage).inc()
        logger.error(f"[{stage}] Stage error: {type(e).__name__}: {error_msg}")
        return None, StageStatus(
            stage=stage,
            status="error",
            latency_ms=elapsed_ms,
            message=f"{stage.capitalize()} stage failed: {error_msg[:100]}",
        )
