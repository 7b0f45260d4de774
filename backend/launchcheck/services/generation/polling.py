"""
Launch Checklist Engine - Bounded Generation Polling

The only retry in the engine: an asynchronous generation job is polled a
fixed number of times with a fixed delay, then abandoned.
"""
import asyncio
import logging
import os
from typing import Any, Dict, Optional

from ...errors import GenerationError, GenerationTimeout
from .base import ContentGenerator, GenerationContext, GenerationKind, GenerationResult

logger = logging.getLogger(__name__)

GENERATION_MAX_POLL_ATTEMPTS = int(os.getenv("GENERATION_MAX_POLL_ATTEMPTS", "30"))
GENERATION_POLL_INTERVAL_MS = int(os.getenv("GENERATION_POLL_INTERVAL_MS", "2000"))


async def await_generation(
    generator: ContentGenerator,
    kind: GenerationKind,
    context: GenerationContext,
    options: Optional[Dict[str, Any]] = None,
    max_attempts: int = GENERATION_MAX_POLL_ATTEMPTS,
    poll_interval: float = GENERATION_POLL_INTERVAL_MS / 1000,
) -> GenerationResult:
    """
    Run one generation and wait for it to finish.

    Raises:
        GenerationTimeout: job still pending after `max_attempts` polls
        GenerationError: provider failed or returned nothing usable
    """
    result = await generator.generate(kind, context, options)

    attempts = 0
    while result.is_pending:
        if attempts >= max_attempts:
            logger.warning(f"Generation job {result.pending_job_id} ({kind.value}) timed out")
            raise GenerationTimeout(result.pending_job_id, attempts)
        attempts += 1
        await asyncio.sleep(poll_interval)
        result = await generator.check_job(result.pending_job_id)

    if not (result.text or result.items or result.image_url):
        raise GenerationError(f"Generation returned no {kind.value.replace('_', ' ')}")
    return result
