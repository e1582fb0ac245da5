"""Data models for the AI generator pipeline (run config, candidates, results)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_CATEGORIES = ["Electronics", "Fashion", "Home & Garden", "Sports", "Beauty"]

Frequency = Literal["2h", "4h", "6h", "12h", "24h"]


# ── Run configuration ─────────────────────────────────────────────────

class _CamelModel(BaseModel):
    """Accepts both snake_case and the admin panel's camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PriceRange(_CamelModel):
    min: float = Field(default=10, ge=0)
    max: float = Field(default=1000)

    @model_validator(mode="after")
    def _max_above_min(self) -> PriceRange:
        if self.max <= self.min:
            raise ValueError("price_range.max must be greater than price_range.min")
        return self

    def contains(self, price: float) -> bool:
        return self.min <= price <= self.max


class SourceToggles(_CamelModel):
    google_trends: bool = True
    amazon_api: bool = Field(default=True, alias="amazonAPI")
    affiliate_feeds: bool = True


class GeneratorConfig(_CamelModel):
    """Configuration of one generator run. Missing fields take the defaults below."""

    frequency: Frequency = "4h"
    quality_threshold: float = Field(default=4.0, ge=0, le=5)
    min_reviews: int = Field(default=100, ge=0)
    price_range: PriceRange = Field(default_factory=PriceRange)
    sources: SourceToggles = Field(default_factory=SourceToggles)
    categories: list[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES))

    def to_log(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def parse_frequency(frequency: str) -> timedelta:
    """'4h' -> 4 hours, '1d' -> 1 day. Anything unparseable falls back to 4 hours."""
    unit, value = frequency[-1:], frequency[:-1]
    if value.isdigit() and int(value) > 0:
        if unit == "h":
            return timedelta(hours=int(value))
        if unit == "d":
            return timedelta(days=int(value))
    return timedelta(hours=4)


# ── Candidates (adapter output) ───────────────────────────────────────

@dataclass(frozen=True, slots=True)
class CandidateProduct:
    """An unpersisted product produced by a source adapter."""

    name: str
    source: str                         # google_trends, commission-junction, ...
    description: str = ""
    category: str | None = None
    price: float | None = None          # sale price
    original_price: float | None = None
    image_url: str | None = None
    product_url: str | None = None
    merchant: str | None = None
    rating: float | None = None         # 0 – 5
    review_count: int | None = None
    external_id: str | None = None      # network SKU
    network_id: int | None = None


@dataclass(frozen=True, slots=True)
class CandidateCoupon:
    """An unpersisted coupon (AI idea or network feed entry)."""

    code: str
    description: str
    discount_type: str                  # percentage | fixed
    discount_value: float
    expires_in_days: int = 7
    title: str | None = None
    minimum_spend: float | None = None
    merchant_id: int | None = None
    merchant: str | None = None
    category: str | None = None
    source: str = "ai_generated"


# ── Classification results ────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class Categorization:
    category: str
    confidence: float
    keywords: list[str] = field(default_factory=list)
    subcategory: str | None = None
    fallback: bool = False              # True when the model call failed


UNCATEGORIZED = Categorization(category="Uncategorized", confidence=0.0, keywords=[], fallback=True)


@dataclass(frozen=True, slots=True)
class ProductContent:
    title: str
    description: str
    features: list[str] = field(default_factory=list)
    benefits: list[str] = field(default_factory=list)
    fallback: bool = False


# ── Outcomes ──────────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class UpsertOutcome:
    product_id: int
    is_new: bool


@dataclass(slots=True)
class GenerationResult:
    """Aggregate counts returned to the caller of run_generation()."""

    log_id: int
    products_found: int = 0
    products_added: int = 0
    products_updated: int = 0
    products_skipped: int = 0
    coupons_found: int = 0
    coupons_added: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0
