"""
ARQ Worker Settings — Registers the AI generator background job.

Usage:
    arq workers.worker_settings.WorkerSettings
"""

from __future__ import annotations

import logging
from datetime import timedelta

from arq import cron
from arq.connections import RedisSettings

from core.config import settings
from core.exceptions import GeneratorAlreadyRunningError
from workers.ai_generator.models import parse_frequency

logger = logging.getLogger(__name__)


def schedule_hours(every: timedelta) -> set[int]:
    """Hours of the day a job repeating every `every` fires at (anchored at midnight)."""
    step = int(every.total_seconds() // 3600)
    if step < 1 or step >= 24:
        return {0}
    return set(range(0, 24, step))


async def run_ai_generator(ctx: dict) -> dict | None:
    """ARQ job: run the AI generator with the default config."""
    from workers.ai_generator.orchestrator import run_generation

    try:
        result = await run_generation(source="scheduler")
    except GeneratorAlreadyRunningError as exc:
        logger.info("Scheduled generator run skipped: %s (log #%s)", exc, exc.current_log_id)
        return None
    return {
        "log_id": result.log_id,
        "products_added": result.products_added,
        "products_updated": result.products_updated,
        "coupons_added": result.coupons_added,
        "errors": len(result.errors),
    }


async def startup(ctx: dict) -> None:
    """Called on worker startup."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def shutdown(ctx: dict) -> None:
    """Called on worker shutdown."""
    from core.database import engine

    await engine.dispose()


def _cron_jobs() -> list:
    if not settings.generator_schedule_enabled:
        return []
    return [
        cron(
            run_ai_generator,
            hour=schedule_hours(parse_frequency(settings.generator_frequency)),
            minute={0},
        ),
    ]


class WorkerSettings:
    """ARQ worker configuration."""

    functions = [
        run_ai_generator,
    ]

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = RedisSettings.from_dsn(settings.redis_url)

    # AI generator every settings.generator_frequency (default 4h)
    cron_jobs = _cron_jobs()
