"""
Content Classifier — LLM-backed categorization and copywriting.

Every public method is best-effort: a failed or malformed model reply
degrades to a documented default (flagged with fallback=True) and is
logged, it never propagates to the pipeline.
"""

from __future__ import annotations

import logging
from typing import Any

from core.ai.base import BaseAIProvider
from core.ai.factory import AIFactory
from workers.ai_generator.models import (
    UNCATEGORIZED,
    CandidateCoupon,
    Categorization,
    ProductContent,
)

logger = logging.getLogger(__name__)

MAIN_CATEGORIES = [
    "Electronics",
    "Fashion",
    "Home & Garden",
    "Sports & Outdoors",
    "Beauty & Health",
    "Toys & Games",
    "Books & Media",
    "Automotive",
    "Travel",
    "Food & Beverages",
]

# ── Prompts ───────────────────────────────────────────────────────────

_CATEGORIZE_SYSTEM = "You are an expert product categorization system. Respond only with valid JSON."
_CATEGORIZE_PROMPT = """Analyze this product and categorize it accurately. Return JSON format.

Product: {name}
Description: {description}

Categorize this product into one of these main categories: {categories}.

Return JSON with: category, subcategory (if applicable), confidence (0-1), keywords (array of relevant tags)."""

_CONTENT_SYSTEM = (
    "You are an expert copywriter specializing in e-commerce product descriptions. "
    "Create compelling, conversion-focused content."
)
_CONTENT_PROMPT = """Create optimized marketing content for this product. Return JSON format.

Product: {name}
Category: {category}
Original Description: {description}

Generate:
1. Optimized title (compelling, SEO-friendly)
2. Enhanced description (engaging, benefit-focused)
3. Key features list (3-5 bullet points)
4. Customer benefits (3-5 value propositions)

Format as JSON with: title, description, features (array), benefits (array)."""

_COUPON_SYSTEM = (
    "You are a marketing specialist creating attractive coupon offers. "
    "Generate realistic, varied discount codes."
)
_COUPON_PROMPT = """Generate {count} unique coupon codes for {merchant} in the {category} category. Return JSON format.

Create varied discount types and values:
- Mix of percentage (10-50%) and fixed amount ($5-100) discounts
- Different minimum spend requirements
- Expiration periods (7-30 days)
- Creative, memorable coupon codes (6-12 characters)

Format as JSON with: codes array containing {{ code, description, discountType, discountValue, minimumSpend, expiresIn }}."""

_TRENDS_SYSTEM = (
    "You are a market research analyst specializing in e-commerce trends. "
    "Provide current, relevant keywords."
)
_TRENDS_PROMPT = """Generate 20 trending product keywords for the {category} category. Return JSON format.

Focus on:
- Popular product types
- Seasonal trends
- Emerging technologies
- Consumer pain points
- Brand-agnostic terms

Return JSON with: keywords (array of strings)."""


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None and str(v).strip()]


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value) if value is not None else 0.5
    except (TypeError, ValueError):
        confidence = 0.5
    return max(0.0, min(1.0, confidence))


class ContentClassifier:
    """
    Wraps a BaseAIProvider with the four prompts the generator needs.
    """

    def __init__(self, provider: BaseAIProvider | None = None) -> None:
        self._provider = provider

    @property
    def provider(self) -> BaseAIProvider:
        # built lazily so importing the pipeline never requires API keys
        if self._provider is None:
            self._provider = AIFactory.create()
        return self._provider

    async def categorize_product(self, name: str, description: str) -> Categorization:
        prompt = _CATEGORIZE_PROMPT.format(
            name=name, description=description, categories=", ".join(MAIN_CATEGORIES)
        )
        try:
            result = await self.provider.generate_json(prompt, system_prompt=_CATEGORIZE_SYSTEM)
        except Exception as exc:
            logger.warning("Categorization failed for %r: %s", name, exc)
            return UNCATEGORIZED

        subcategory = result.get("subcategory")
        return Categorization(
            category=str(result.get("category") or "Uncategorized"),
            subcategory=str(subcategory) if subcategory else None,
            confidence=_clamp_confidence(result.get("confidence")),
            keywords=_str_list(result.get("keywords")),
        )

    async def generate_product_content(self, name: str, description: str, category: str) -> ProductContent:
        prompt = _CONTENT_PROMPT.format(name=name, category=category, description=description)
        try:
            result = await self.provider.generate_json(prompt, system_prompt=_CONTENT_SYSTEM)
        except Exception as exc:
            logger.warning("Content generation failed for %r: %s", name, exc)
            return ProductContent(title=name, description=description, fallback=True)

        return ProductContent(
            title=str(result.get("title") or name),
            description=str(result.get("description") or description),
            features=_str_list(result.get("features")),
            benefits=_str_list(result.get("benefits")),
        )

    async def generate_coupon_codes(self, merchant_name: str, category: str, count: int = 5) -> list[CandidateCoupon]:
        prompt = _COUPON_PROMPT.format(count=count, merchant=merchant_name, category=category)
        try:
            result = await self.provider.generate_json(prompt, system_prompt=_COUPON_SYSTEM)
        except Exception as exc:
            logger.warning("Coupon generation failed for %s/%s: %s", merchant_name, category, exc)
            return []

        codes = result.get("codes")
        if not isinstance(codes, list):
            return []

        coupons: list[CandidateCoupon] = []
        for raw in codes:
            coupon = _coupon_from_json(raw, category)
            if coupon is not None:
                coupons.append(coupon)
            else:
                logger.debug("Dropping malformed coupon idea: %r", raw)
        return coupons

    async def trending_keywords(self, category: str) -> list[str]:
        try:
            result = await self.provider.generate_json(
                _TRENDS_PROMPT.format(category=category), system_prompt=_TRENDS_SYSTEM
            )
        except Exception as exc:
            logger.warning("Trending keywords failed for %s: %s", category, exc)
            return []
        return _str_list(result.get("keywords"))


def _coupon_from_json(raw: Any, category: str) -> CandidateCoupon | None:
    if not isinstance(raw, dict) or not raw.get("code"):
        return None
    discount_type = str(raw.get("discountType", "")).lower()
    if discount_type not in ("percentage", "fixed"):
        return None
    try:
        discount_value = float(raw["discountValue"])
        minimum_spend = float(raw["minimumSpend"]) if raw.get("minimumSpend") is not None else None
        expires_in = int(raw.get("expiresIn") or 7)
    except (KeyError, TypeError, ValueError):
        return None
    return CandidateCoupon(
        code=str(raw["code"]).strip(),
        description=str(raw.get("description") or raw["code"]),
        discount_type=discount_type,
        discount_value=discount_value,
        minimum_spend=minimum_spend,
        expires_in_days=max(1, expires_in),
        category=category,
    )
