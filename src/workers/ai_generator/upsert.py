"""
Product Upsert
==============
Dedupes a CandidateProduct against the catalog and either refreshes the
existing row or inserts a new, AI-enriched one.

Lookup is indexed: Product.name_key (normalized source name) or the
network SKU. Both are backed by unique constraints, so a concurrent
insert of the same product surfaces as IntegrityError and is folded
into an update of the row that won.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.models import Category, Merchant, Product, ProductCategory
from workers.ai_generator.classifier import ContentClassifier
from workers.ai_generator.models import CandidateProduct, GeneratorConfig, UpsertOutcome

logger = logging.getLogger(__name__)

DEFAULT_MERCHANT_NAME = "Unknown Merchant"

_WHITESPACE = re.compile(r"\s+")
_SLUG_INVALID = re.compile(r"[^a-z0-9-]")


# ── Pure helpers ──────────────────────────────────────────────────────

def normalize_name(name: str) -> str:
    """Dedupe key: lowercased, whitespace collapsed."""
    return _WHITESPACE.sub(" ", name).strip().lower()


def slugify(text: str) -> str:
    slug = _WHITESPACE.sub("-", text.strip().lower())
    slug = _SLUG_INVALID.sub("", slug)
    return re.sub(r"-{2,}", "-", slug).strip("-")


def merchant_slug(name: str) -> str:
    return _WHITESPACE.sub("-", name.strip().lower())


def discount_percentage(original_price: float | None, sale_price: float | None) -> int:
    if original_price is None or sale_price is None or original_price <= 0:
        return 0
    return round((original_price - sale_price) / original_price * 100)


def passes_quality_gate(candidate: CandidateProduct, config: GeneratorConfig) -> bool:
    """Candidates without rating/review/price data are let through."""
    if candidate.rating is not None and candidate.rating < config.quality_threshold:
        return False
    if candidate.review_count is not None and candidate.review_count < config.min_reviews:
        return False
    if candidate.price is not None and not config.price_range.contains(candidate.price):
        return False
    return True


# ── Lookups ───────────────────────────────────────────────────────────

async def find_existing_product(session: AsyncSession, candidate: CandidateProduct) -> Product | None:
    conditions = [Product.name_key == normalize_name(candidate.name)]
    if candidate.external_id:
        conditions.append(Product.sku == candidate.external_id)
    result = await session.execute(select(Product).where(or_(*conditions)).limit(1))
    return result.scalar_one_or_none()


async def resolve_merchant(session: AsyncSession, name: str | None) -> Merchant:
    """Case-insensitive lookup by name (or derived slug); created on first sight."""
    name = (name or "").strip() or DEFAULT_MERCHANT_NAME
    slug = merchant_slug(name)

    result = await session.execute(
        select(Merchant)
        .where(or_(func.lower(Merchant.name) == name.lower(), Merchant.slug == slug))
        .limit(1)
    )
    merchant = result.scalar_one_or_none()
    if merchant:
        return merchant

    merchant = Merchant(name=name, slug=slug, is_active=True)
    try:
        async with session.begin_nested():
            session.add(merchant)
    except IntegrityError:
        # created concurrently
        result = await session.execute(select(Merchant).where(Merchant.slug == slug))
        return result.scalar_one()

    logger.info("  Created merchant %r (slug=%s)", name, slug)
    return merchant


async def unique_product_slug(session: AsyncSession, title: str) -> str:
    base = slugify(title) or "product"
    result = await session.execute(
        select(Product.slug).where(or_(Product.slug == base, Product.slug.like(f"{base}-%")))
    )
    taken = set(result.scalars().all())
    if base not in taken:
        return base
    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


async def link_category(session: AsyncSession, product: Product, category_name: str | None) -> bool:
    """Persist the product/category link when the category exists. Returns True if linked."""
    if not category_name:
        return False
    result = await session.execute(
        select(Category).where(func.lower(Category.name) == category_name.lower()).limit(1)
    )
    category = result.scalar_one_or_none()
    if category is None:
        logger.debug("  No category named %r, product #%d left unlinked", category_name, product.id)
        return False

    exists = await session.execute(
        select(ProductCategory.id).where(
            ProductCategory.product_id == product.id,
            ProductCategory.category_id == category.id,
        )
    )
    if exists.first() is None:
        session.add(ProductCategory(product_id=product.id, category_id=category.id))
        await session.flush()
    return True


# ── Upsert ────────────────────────────────────────────────────────────

def _refresh(product: Product, candidate: CandidateProduct) -> None:
    if candidate.price is not None:
        product.sale_price = candidate.price
    if candidate.original_price is not None:
        product.original_price = candidate.original_price
    if candidate.price is not None or candidate.original_price is not None:
        product.discount_percentage = discount_percentage(product.original_price, product.sale_price)
    if candidate.rating is not None:
        product.rating = candidate.rating
    if candidate.review_count is not None:
        product.total_reviews = candidate.review_count
    product.updated_at = datetime.now(timezone.utc)


async def upsert_product(
    session: AsyncSession,
    candidate: CandidateProduct,
    classifier: ContentClassifier,
    *,
    affiliate_url: str | None = None,
) -> UpsertOutcome:
    """
    Insert-if-absent-else-update for one candidate. Flushes but does not
    commit; the caller owns the transaction.
    """
    existing = await find_existing_product(session, candidate)
    if existing:
        _refresh(existing, candidate)
        await session.flush()
        logger.info("  Updated product #%d (%s)", existing.id, existing.name)
        return UpsertOutcome(product_id=existing.id, is_new=False)

    categorization = await classifier.categorize_product(candidate.name, candidate.description)
    category_name = categorization.category
    if categorization.fallback and candidate.category:
        category_name = candidate.category

    content = await classifier.generate_product_content(
        candidate.name, candidate.description, category_name
    )
    merchant = await resolve_merchant(session, candidate.merchant)

    product = Product(
        name=content.title,
        name_key=normalize_name(candidate.name),
        slug=await unique_product_slug(session, content.title),
        description=content.description,
        merchant_id=merchant.id,
        original_price=candidate.original_price,
        sale_price=candidate.price,
        discount_percentage=discount_percentage(candidate.original_price, candidate.price),
        rating=candidate.rating,
        total_reviews=candidate.review_count or 0,
        image_url=candidate.image_url,
        product_url=candidate.product_url,
        affiliate_url=affiliate_url,
        sku=candidate.external_id,
        is_active=True,
        ai_generated=True,
        meta={
            "source": candidate.source,
            "networkId": candidate.network_id,
            "aiGenerated": True,
            "category": category_name,
            "subcategory": categorization.subcategory,
            "categoryConfidence": categorization.confidence,
            "keywords": categorization.keywords,
            "features": content.features,
            "benefits": content.benefits,
        },
    )
    try:
        async with session.begin_nested():
            session.add(product)
    except IntegrityError:
        winner = await find_existing_product(session, candidate)
        if winner is None:
            raise
        _refresh(winner, candidate)
        await session.flush()
        logger.info("  Product %r inserted concurrently, updated #%d instead", candidate.name, winner.id)
        return UpsertOutcome(product_id=winner.id, is_new=False)

    await link_category(session, product, category_name)
    logger.info("  Added product #%d %r (merchant=%s)", product.id, product.name, merchant.slug)
    return UpsertOutcome(product_id=product.id, is_new=True)
