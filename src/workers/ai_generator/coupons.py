"""
Coupon branch of the generator: collect coupon candidates (LLM ideas for
known merchants plus affiliate coupon feeds), then dedupe by code,
verify and insert them one at a time.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import AffiliateNetworkError
from core.models import Coupon, DiscountType, Merchant, NetworkStatus, VerificationStatus
from workers.affiliate.service import AffiliateService
from workers.ai_generator.classifier import ContentClassifier
from workers.ai_generator.models import CandidateCoupon, GeneratorConfig
from workers.ai_generator.sources import network_enabled
from workers.ai_generator.upsert import resolve_merchant

logger = logging.getLogger(__name__)

MAX_MERCHANTS = 10
MAX_CATEGORIES = 2
IDEAS_PER_PAIR = 3


async def collect_coupon_candidates(
    session: AsyncSession,
    classifier: ContentClassifier,
    service: AffiliateService,
    config: GeneratorConfig,
    errors: list[str],
) -> list[CandidateCoupon]:
    result = await session.execute(
        select(Merchant.id, Merchant.name)
        .where(Merchant.is_active == True)  # noqa: E712
        .order_by(Merchant.id)
        .limit(MAX_MERCHANTS)
    )
    merchants = result.all()

    candidates: list[CandidateCoupon] = []
    for merchant_id, merchant_name in merchants:
        for category in config.categories[:MAX_CATEGORIES]:
            ideas = await classifier.generate_coupon_codes(merchant_name, category, count=IDEAS_PER_PAIR)
            candidates.extend(
                dataclasses.replace(idea, merchant_id=merchant_id, merchant=merchant_name)
                for idea in ideas
            )

    if config.sources.affiliate_feeds:
        for network in await service.list_networks(status=NetworkStatus.ACTIVE):
            if not network_enabled(network, config.sources):
                continue
            try:
                candidates.extend(await service.fetch_coupons(network.id))
            except AffiliateNetworkError as exc:
                logger.warning("  Coupon feed %s failed: %s", network.slug, exc)
                errors.append(f"Coupon feed {exc}")

    logger.info("  Coupons: %d candidates from %d merchants", len(candidates), len(merchants))
    return candidates


async def process_coupon(
    session: AsyncSession,
    service: AffiliateService,
    candidate: CandidateCoupon,
) -> bool:
    """
    Store one candidate. Returns True if a new coupon row was added.
    Existing codes and rejected coupons are skipped without error.
    """
    existing = await session.execute(select(Coupon.id).where(Coupon.code == candidate.code))
    if existing.first() is not None:
        logger.debug("  Coupon %s already exists, skipped", candidate.code)
        return False

    merchant_id = candidate.merchant_id
    if merchant_id is None:
        merchant_id = (await resolve_merchant(session, candidate.merchant)).id

    verification = await service.verify_coupon(candidate.code, merchant_id)
    if verification.status == VerificationStatus.REJECTED:
        logger.info("  Coupon %s rejected: %s", candidate.code, verification.message)
        return False

    now = datetime.now(timezone.utc)
    coupon = Coupon(
        title=candidate.title or candidate.description[:512],
        description=candidate.description,
        code=candidate.code,
        discount_type=DiscountType(candidate.discount_type),
        discount_value=candidate.discount_value,
        minimum_spend=candidate.minimum_spend,
        merchant_id=merchant_id,
        is_active=True,
        is_verified=verification.valid,
        verification_status=verification.status,
        start_date=now,
        expires_at=now + timedelta(days=candidate.expires_in_days),
    )
    try:
        async with session.begin_nested():
            session.add(coupon)
    except IntegrityError:
        logger.debug("  Coupon %s inserted concurrently, skipped", candidate.code)
        return False

    logger.info("  Added coupon %s (%s)", coupon.code, verification.status.value)
    return True
