"""
Seed script — Populates the catalog reference data.
Inserts: the main categories the classifier assigns, and the supported
affiliate networks (INACTIVE until credentials are set and tested).

Run:  PYTHONPATH=src python scripts/seed_catalog.py
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy import select

from core.database import async_session_factory, engine
from core.models import AffiliateNetwork, Category, NetworkStatus
from workers.ai_generator.classifier import MAIN_CATEGORIES
from workers.ai_generator.upsert import slugify

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

CATEGORY_ICONS = {
    "Electronics": "laptop",
    "Fashion": "shirt",
    "Home & Garden": "home",
    "Sports & Outdoors": "bike",
    "Beauty & Health": "sparkles",
    "Toys & Games": "gamepad",
    "Books & Media": "book",
    "Automotive": "car",
    "Travel": "plane",
    "Food & Beverages": "utensils",
}

NETWORKS = [
    {"name": "Commission Junction", "slug": "commission-junction", "api_endpoint": "https://commissions.api.cj.com"},
    {"name": "Impact", "slug": "impact", "api_endpoint": "https://api.impact.com/Mediapartners"},
    {"name": "Amazon Associates", "slug": "amazon-associates", "api_endpoint": "https://webservices.amazon.com"},
    {"name": "ShareASale", "slug": "shareasale", "api_endpoint": "https://api.shareasale.com"},
]


async def seed() -> None:
    async with async_session_factory() as session:
        # ── Categories ─────────────────────────────────────────────────
        for order, name in enumerate(MAIN_CATEGORIES):
            existing = await session.scalar(select(Category).where(Category.name == name))
            if existing:
                continue
            session.add(Category(
                name=name,
                slug=slugify(name),
                icon=CATEGORY_ICONS.get(name),
                sort_order=order,
                is_active=True,
            ))
            logger.info("  Category: %s", name)

        # ── Affiliate networks ─────────────────────────────────────────
        for data in NETWORKS:
            existing = await session.scalar(
                select(AffiliateNetwork).where(AffiliateNetwork.slug == data["slug"])
            )
            if existing:
                logger.info("  Network %s already exists — skipping", data["slug"])
                continue
            session.add(AffiliateNetwork(**data, status=NetworkStatus.INACTIVE, is_active=True))
            logger.info("  Network: %s", data["name"])

        await session.commit()
        logger.info("✅ Catalog seeding complete.")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
