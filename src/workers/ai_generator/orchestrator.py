"""
AI Generator Orchestrator
=========================
One generator run:
1. Takes the database run lock (rejects the call if another run holds it)
2. Opens an ai_generation_log row (RUNNING)
3. Collects candidates from the trend and affiliate adapters
4. Dedupes, enriches and upserts every candidate
5. Generates, dedupes and verifies coupons
6. Closes the log row (COMPLETED / FAILED), releases the lock, pings Slack

Steps 3-5 run sequentially. Per-item and per-adapter failures are collected
into the run's error list; anything else fails the run and is re-raised.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.database import async_session_factory
from core.models import AIGenerationLog, GenerationStatus
from core.notifications.slack import notify_generation_finished
from workers.affiliate.service import AffiliateService
from workers.ai_generator.classifier import ContentClassifier
from workers.ai_generator.coupons import collect_coupon_candidates, process_coupon
from workers.ai_generator.lock import (
    GeneratorStatus,
    acquire_lock,
    attach_log,
    read_status,
    release_lock,
)
from workers.ai_generator.models import CandidateProduct, GenerationResult, GeneratorConfig
from workers.ai_generator.sources import collect_affiliate_candidates, collect_trend_candidates
from workers.ai_generator.upsert import passes_quality_gate, upsert_product

logger = logging.getLogger(__name__)

LOG_TYPE = "product_discovery"


def coerce_config(config: GeneratorConfig | dict[str, Any] | None) -> GeneratorConfig:
    """None and {} both mean the default config; dicts may use camelCase keys."""
    if config is None:
        return GeneratorConfig()
    if isinstance(config, GeneratorConfig):
        return config
    return GeneratorConfig.model_validate(config)


async def run_generation(
    config: GeneratorConfig | dict[str, Any] | None = None,
    *,
    source: str = "multi_source",
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    classifier: ContentClassifier | None = None,
    affiliate_transport: httpx.AsyncBaseTransport | None = None,
) -> GenerationResult:
    """
    Run the pipeline once and return its counts.

    Raises GeneratorAlreadyRunningError (without creating a log row) when
    another run holds the lock.
    """
    config = coerce_config(config)
    factory = session_factory or async_session_factory
    classifier = classifier or ContentClassifier()
    holder = uuid.uuid4().hex
    ttl = timedelta(minutes=settings.generator_lock_ttl_minutes)

    async with factory() as session:
        await acquire_lock(session, holder, ttl)

    started = time.monotonic()
    result = GenerationResult(log_id=0)
    try:
        async with factory() as session:
            log = AIGenerationLog(
                type=LOG_TYPE,
                source=source,
                status=GenerationStatus.RUNNING,
                meta={"config": config.to_log()},
            )
            session.add(log)
            await session.commit()
            result.log_id = log.id
            await attach_log(session, holder, log.id)
            logger.info("🤖 AI generator run #%d started (source=%s)", log.id, source)

            service = AffiliateService(session, transport=affiliate_transport)
            await _process_products(session, service, classifier, config, result)
            await _process_coupons(session, service, classifier, config, result)

            result.duration_ms = int((time.monotonic() - started) * 1000)
            await _close_log(session, result, GenerationStatus.COMPLETED)
    except Exception as exc:
        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.exception("AI generator run #%d failed", result.log_id)
        if result.log_id:
            await _mark_failed(factory, result, exc)
            await notify_generation_finished(result, failure=str(exc))
        raise
    finally:
        async with factory() as session:
            await release_lock(session, holder)

    logger.info(
        "🏁 AI generator run #%d finished: %d found, %d added, %d updated, %d skipped, "
        "%d coupons added, %d errors (%d ms)",
        result.log_id, result.products_found, result.products_added, result.products_updated,
        result.products_skipped, result.coupons_added, len(result.errors), result.duration_ms,
    )
    await notify_generation_finished(result)
    return result


# ── Pipeline steps ────────────────────────────────────────────────────

async def _collect_candidates(
    service: AffiliateService,
    classifier: ContentClassifier,
    config: GeneratorConfig,
    errors: list[str],
) -> list[CandidateProduct]:
    candidates: list[CandidateProduct] = []

    if config.sources.google_trends:
        try:
            candidates.extend(await collect_trend_candidates(classifier, config))
        except Exception as exc:
            logger.warning("Trend adapter failed: %s", exc)
            errors.append(f"Trend adapter: {exc}")

    if config.sources.amazon_api or config.sources.affiliate_feeds:
        try:
            candidates.extend(await collect_affiliate_candidates(service, config, errors))
        except Exception as exc:
            logger.warning("Affiliate adapter failed: %s", exc)
            errors.append(f"Affiliate adapter: {exc}")

    return candidates


async def _process_products(
    session: AsyncSession,
    service: AffiliateService,
    classifier: ContentClassifier,
    config: GeneratorConfig,
    result: GenerationResult,
) -> None:
    candidates = await _collect_candidates(service, classifier, config, result.errors)
    logger.info("  %d product candidates collected", len(candidates))

    for candidate in candidates:
        result.products_found += 1
        if not passes_quality_gate(candidate, config):
            result.products_skipped += 1
            logger.debug("  Skipped %r (below quality gate)", candidate.name)
            continue

        affiliate_url = None
        if candidate.network_id is not None and candidate.product_url:
            affiliate_url = service.generate_tracking_url(candidate.product_url, candidate.network_id)

        try:
            outcome = await upsert_product(session, candidate, classifier, affiliate_url=affiliate_url)
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.warning("  Product %r failed: %s", candidate.name, exc)
            result.errors.append(f"Product {candidate.name!r}: {exc}")
            continue

        if outcome.is_new:
            result.products_added += 1
        else:
            result.products_updated += 1


async def _process_coupons(
    session: AsyncSession,
    service: AffiliateService,
    classifier: ContentClassifier,
    config: GeneratorConfig,
    result: GenerationResult,
) -> None:
    try:
        candidates = await collect_coupon_candidates(session, classifier, service, config, result.errors)
    except Exception as exc:
        await session.rollback()
        logger.warning("Coupon generation failed: %s", exc)
        result.errors.append(f"Coupon generation: {exc}")
        return

    for candidate in candidates:
        result.coupons_found += 1
        try:
            added = await process_coupon(session, service, candidate)
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.warning("  Coupon %s failed: %s", candidate.code, exc)
            result.errors.append(f"Coupon {candidate.code}: {exc}")
            continue
        if added:
            result.coupons_added += 1


# ── Log bookkeeping ───────────────────────────────────────────────────

async def _close_log(session: AsyncSession, result: GenerationResult, status: GenerationStatus) -> None:
    log = await session.get(AIGenerationLog, result.log_id)
    log.products_found = result.products_found
    log.products_added = result.products_added
    log.products_updated = result.products_updated
    log.products_skipped = result.products_skipped
    log.coupons_found = result.coupons_found
    log.coupons_added = result.coupons_added
    log.errors = list(result.errors) or None
    log.meta = {**(log.meta or {}), "durationMs": result.duration_ms}
    log.status = status
    log.completed_at = datetime.now(timezone.utc)
    await session.commit()


async def _mark_failed(
    factory: async_sessionmaker[AsyncSession],
    result: GenerationResult,
    exc: Exception,
) -> None:
    result.errors.append(str(exc))
    try:
        async with factory() as session:
            await _close_log(session, result, GenerationStatus.FAILED)
    except Exception:
        logger.exception("Could not mark AI generator run #%d as failed", result.log_id)


# ── Read side ─────────────────────────────────────────────────────────

async def get_status(session: AsyncSession) -> GeneratorStatus:
    return await read_status(session)


async def get_recent_logs(session: AsyncSession, limit: int = 10) -> list[AIGenerationLog]:
    result = await session.execute(
        select(AIGenerationLog)
        .order_by(AIGenerationLog.started_at.desc(), AIGenerationLog.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
