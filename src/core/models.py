"""
SQLAlchemy 2.0 ORM Models — Deal Radar catalog
===============================================

Conventions:
  - snake_case table names
  - BIGINT PKs (auto-increment)
  - Explicit FKs
  - created_at / updated_at on most tables

Tables are grouped by functional area:
  1. Catalog (categories, merchants, products)
  2. Coupons
  3. Affiliate networks
  4. AI Generator (run log + run lock)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only auto-increments INTEGER PRIMARY KEY.
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


# ══════════════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════════════

class NetworkStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class DiscountType(str, PyEnum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class VerificationStatus(str, PyEnum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    REJECTED = "rejected"


class GenerationStatus(str, PyEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def _values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


# ══════════════════════════════════════════════════════════════════════
# 1. CATALOG
# ══════════════════════════════════════════════════════════════════════

class Category(Base):
    """
    Top-level browsing category. Products are linked through ProductCategory.
    """
    __tablename__ = "category"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), nullable=True)
    parent_id: Mapped[int | None] = mapped_column(ForeignKey("category.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    product_links: Mapped[list["ProductCategory"]] = relationship("ProductCategory", back_populates="category")


class Merchant(Base):
    """
    A store we link out to. Created lazily the first time the generator
    sees an unknown merchant name; never deleted by the pipeline.
    """
    __tablename__ = "merchant"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    commission_rate: Mapped[float | None] = mapped_column(Numeric(5, 4, asdecimal=False), nullable=True)
    affiliate_network_id: Mapped[int | None] = mapped_column(
        ForeignKey("affiliate_network.id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    products: Mapped[list["Product"]] = relationship("Product", back_populates="merchant")
    coupons: Mapped[list["Coupon"]] = relationship("Coupon", back_populates="merchant")


class Product(Base):
    """
    A discounted product shown in the public catalog.

    name_key holds the normalized source name the product was ingested
    under; together with (merchant_id, sku) it backs the generator's
    dedupe lookup.
    """
    __tablename__ = "product"
    __table_args__ = (UniqueConstraint("merchant_id", "sku", name="uq_product_merchant_sku"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    name_key: Mapped[str] = mapped_column(String(512), unique=True, index=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    merchant_id: Mapped[int] = mapped_column(ForeignKey("merchant.id"), index=True, nullable=False)
    original_price: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    sale_price: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    discount_percentage: Mapped[int] = mapped_column(Integer, default=0)
    rating: Mapped[float | None] = mapped_column(Numeric(3, 2, asdecimal=False), nullable=True)
    total_reviews: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    product_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    affiliate_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    sku: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    ai_generated: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    merchant: Mapped["Merchant"] = relationship("Merchant", back_populates="products")
    category_links: Mapped[list["ProductCategory"]] = relationship(
        "ProductCategory", back_populates="product", cascade="all, delete-orphan"
    )
    coupons: Mapped[list["Coupon"]] = relationship("Coupon", back_populates="product")


class ProductCategory(Base):
    """
    N:N junction between Product and Category.
    """
    __tablename__ = "product_category"
    __table_args__ = (UniqueConstraint("product_id", "category_id", name="uq_product_category"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("product.id"), index=True, nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("category.id"), index=True, nullable=False)

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="category_links")
    category: Mapped["Category"] = relationship("Category", back_populates="product_links")


# ══════════════════════════════════════════════════════════════════════
# 2. COUPONS
# ══════════════════════════════════════════════════════════════════════

class Coupon(Base):
    """
    A coupon code for a merchant. Codes are globally unique.
    verification_status stays UNVERIFIED until a merchant-side check exists.
    """
    __tablename__ = "coupon"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    discount_type: Mapped[DiscountType] = mapped_column(
        Enum(DiscountType, values_callable=_values), nullable=False
    )
    discount_value: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    minimum_spend: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    merchant_id: Mapped[int] = mapped_column(ForeignKey("merchant.id"), index=True, nullable=False)
    product_id: Mapped[int | None] = mapped_column(ForeignKey("product.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    verification_status: Mapped[VerificationStatus] = mapped_column(
        Enum(VerificationStatus, values_callable=_values), default=VerificationStatus.UNVERIFIED
    )
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0)
    max_usage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    merchant: Mapped["Merchant"] = relationship("Merchant", back_populates="coupons")
    product: Mapped["Product | None"] = relationship("Product", back_populates="coupons")


# ══════════════════════════════════════════════════════════════════════
# 3. AFFILIATE NETWORKS
# ══════════════════════════════════════════════════════════════════════

class AffiliateNetwork(Base):
    """
    Credentials and connection status of an upstream affiliate network.
    The slug selects the network client (see workers.affiliate.factory).
    """
    __tablename__ = "affiliate_network"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    api_endpoint: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    api_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    program_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    commission_rate: Mapped[float | None] = mapped_column(Numeric(5, 4, asdecimal=False), nullable=True)
    status: Mapped[NetworkStatus] = mapped_column(
        Enum(NetworkStatus, values_callable=_values), default=NetworkStatus.ACTIVE
    )
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ══════════════════════════════════════════════════════════════════════
# 4. AI GENERATOR
# ══════════════════════════════════════════════════════════════════════

class AIGenerationLog(Base):
    """
    One row per generator run. Goes RUNNING -> COMPLETED | FAILED exactly once.
    """
    __tablename__ = "ai_generation_log"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(100), nullable=False)  # product_discovery, ...
    source: Mapped[str | None] = mapped_column(String(100), nullable=True)  # multi_source, scheduler
    products_found: Mapped[int] = mapped_column(Integer, default=0)
    products_added: Mapped[int] = mapped_column(Integer, default=0)
    products_updated: Mapped[int] = mapped_column(Integer, default=0)
    products_skipped: Mapped[int] = mapped_column(Integer, default=0)
    coupons_found: Mapped[int] = mapped_column(Integer, default=0)
    coupons_added: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    meta: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    status: Mapped[GenerationStatus] = mapped_column(
        Enum(GenerationStatus, values_callable=_values), default=GenerationStatus.RUNNING
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class GeneratorLock(Base):
    """
    Single-row run lock. A run owns the lock while holder is set and
    expires_at is in the future; an expired lock may be taken over.
    """
    __tablename__ = "generator_lock"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    holder: Mapped[str | None] = mapped_column(String(64), nullable=True)
    log_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    acquired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
