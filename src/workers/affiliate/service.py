"""
Affiliate Service
=================
Database-aware facade over the network clients:

- create_network / update_network: admin-managed credentials
- test_connection: probe credentials and persist the resulting status
- fetch_products / fetch_coupons: pull candidates from an active network
- verify_coupon: merchant-side coupon check
- generate_tracking_url: outbound link with attribution parameters
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlencode

import httpx
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import AffiliateNetworkExistsError
from core.models import AffiliateNetwork, Merchant, NetworkStatus, VerificationStatus
from workers.affiliate.base import ConnectionResult
from workers.affiliate.factory import NetworkClientFactory
from workers.ai_generator.models import CandidateCoupon, CandidateProduct

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CouponVerification:
    status: VerificationStatus
    message: str

    @property
    def valid(self) -> bool:
        return self.status == VerificationStatus.VERIFIED


class AffiliateService:
    """
    One instance per session. `transport` lets tests plug an httpx.MockTransport.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        self.session = session
        self._transport = transport
        self._timeout = timeout if timeout is not None else settings.affiliate_request_timeout

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def get_network(self, network_id: int) -> AffiliateNetwork | None:
        return await self.session.get(AffiliateNetwork, network_id)

    async def list_networks(self, *, status: NetworkStatus | None = None) -> list[AffiliateNetwork]:
        stmt = select(AffiliateNetwork).where(AffiliateNetwork.is_active == True).order_by(AffiliateNetwork.id)  # noqa: E712
        if status is not None:
            stmt = stmt.where(AffiliateNetwork.status == status)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create_network(self, **fields: Any) -> AffiliateNetwork:
        """Raises AffiliateNetworkExistsError when the name or slug is taken."""
        network = AffiliateNetwork(**fields)
        try:
            async with self.session.begin_nested():
                self.session.add(network)
        except IntegrityError as exc:
            raise AffiliateNetworkExistsError(fields.get("slug", "")) from exc
        logger.info("Affiliate network %s created (%s)", network.slug, network.status.value)
        return network

    async def update_network(self, network_id: int, **changes: Any) -> AffiliateNetwork | None:
        network = await self.get_network(network_id)
        if network is None:
            return None
        try:
            async with self.session.begin_nested():
                for key, value in changes.items():
                    setattr(network, key, value)
        except IntegrityError as exc:
            raise AffiliateNetworkExistsError(changes.get("slug") or changes.get("name", "")) from exc
        logger.info("Affiliate network %s updated: %s", network.slug, ", ".join(sorted(changes)))
        return network

    async def test_connection(self, network_id: int) -> ConnectionResult:
        network = await self.get_network(network_id)
        if network is None:
            return ConnectionResult(False, "Network not found")

        async with self._http() as http:
            client = NetworkClientFactory.create(network, http)
            result = await client.test_connection()

        network.status = result.status
        if result.success:
            network.last_sync_at = datetime.now(timezone.utc)
        await self.session.flush()

        logger.info(
            "Connection test %s -> %s (%s)", network.slug, result.status.value, result.message
        )
        return result

    async def fetch_products(
        self,
        network_id: int,
        category: str | None = None,
        limit: int = 50,
    ) -> list[CandidateProduct]:
        """Raises AffiliateNetworkError when the network call fails."""
        network = await self.get_network(network_id)
        if network is None or network.status != NetworkStatus.ACTIVE:
            return []

        async with self._http() as http:
            client = NetworkClientFactory.create(network, http)
            products = await client.fetch_products(category, limit)

        logger.info("Fetched %d products from %s (%s)", len(products), network.slug, category)
        return products

    async def fetch_coupons(self, network_id: int, merchant_id: int | None = None) -> list[CandidateCoupon]:
        """Raises AffiliateNetworkError when the network call fails."""
        network = await self.get_network(network_id)
        if network is None or network.status != NetworkStatus.ACTIVE:
            return []

        async with self._http() as http:
            client = NetworkClientFactory.create(network, http)
            coupons = await client.fetch_coupons(merchant_id)

        logger.info("Fetched %d coupons from %s", len(coupons), network.slug)
        return coupons

    async def verify_coupon(self, code: str, merchant_id: int) -> CouponVerification:
        merchant = await self.session.get(Merchant, merchant_id)
        if merchant is None:
            return CouponVerification(VerificationStatus.REJECTED, "Merchant not found")
        # TODO: call the merchant's network coupon-validation endpoint once one is integrated
        return CouponVerification(
            VerificationStatus.UNVERIFIED,
            f"No verification endpoint for {merchant.name}; coupon {code} stored unverified",
        )

    def generate_tracking_url(self, product_url: str, network_id: int, user_id: str | None = None) -> str:
        params = {
            "network": str(network_id),
            "source": settings.tracking_source,
            "utm_source": settings.tracking_source,
            "utm_medium": "affiliate",
            "utm_campaign": "product_click",
        }
        if user_id:
            params["user_id"] = user_id
        params["session_id"] = secrets.token_hex(4)

        separator = "&" if "?" in product_url else "?"
        return f"{product_url}{separator}{urlencode(params)}"
