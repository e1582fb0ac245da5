"""
Content source adapters. Each adapter turns one upstream into a list of
CandidateProduct records; nothing here touches the catalog tables.

- trend adapter: LLM trending keywords -> synthetic "<kw> Pro Model" items
- affiliate adapter: product feeds of every active affiliate network
"""

from __future__ import annotations

import logging
import random

from core.exceptions import AffiliateNetworkError
from core.models import AffiliateNetwork, NetworkStatus
from workers.affiliate.factory import AMAZON_SLUG
from workers.affiliate.service import AffiliateService
from workers.ai_generator.classifier import ContentClassifier
from workers.ai_generator.models import CandidateProduct, GeneratorConfig, SourceToggles

logger = logging.getLogger(__name__)

TRENDS_SOURCE = "google_trends"
KEYWORDS_PER_CATEGORY = 5
PRODUCTS_PER_NETWORK_CATEGORY = 10


def network_enabled(network: AffiliateNetwork, sources: SourceToggles) -> bool:
    """Amazon is gated by the amazon_api toggle, every other network by affiliate_feeds."""
    if network.slug == AMAZON_SLUG:
        return sources.amazon_api
    return sources.affiliate_feeds


async def collect_trend_candidates(
    classifier: ContentClassifier,
    config: GeneratorConfig,
    rng: random.Random | None = None,
) -> list[CandidateProduct]:
    rng = rng or random.Random()
    candidates: list[CandidateProduct] = []

    for category in config.categories:
        keywords = await classifier.trending_keywords(category)
        for keyword in keywords[:KEYWORDS_PER_CATEGORY]:
            price = round(rng.uniform(config.price_range.min, config.price_range.max), 2)
            candidates.append(CandidateProduct(
                name=f"{keyword} Pro Model",
                description=f"Latest {keyword.lower()} with advanced features and premium quality",
                category=category,
                price=price,
                source=TRENDS_SOURCE,
            ))
        logger.info("  Trends: %d candidates for %s", min(len(keywords), KEYWORDS_PER_CATEGORY), category)

    return candidates


async def collect_affiliate_candidates(
    service: AffiliateService,
    config: GeneratorConfig,
    errors: list[str],
) -> list[CandidateProduct]:
    """
    A failing network is logged and recorded in `errors`; the remaining
    networks are still queried.
    """
    networks = await service.list_networks(status=NetworkStatus.ACTIVE)
    candidates: list[CandidateProduct] = []

    for network in networks:
        if not network_enabled(network, config.sources):
            continue
        network_id, slug = network.id, network.slug
        try:
            for category in config.categories:
                products = await service.fetch_products(
                    network_id, category, limit=PRODUCTS_PER_NETWORK_CATEGORY
                )
                candidates.extend(products)
        except AffiliateNetworkError as exc:
            logger.warning("  Affiliate network %s failed: %s", slug, exc)
            errors.append(f"Affiliate network {exc}")
            continue
        logger.info("  Affiliate: collected from %s", slug)

    return candidates
