"""
Base class for affiliate network clients.

A client wraps one AffiliateNetwork row and performs exactly one HTTP
round trip per operation. Clients never write to the database; the
AffiliateService applies the status they report.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httpx

from core.exceptions import AffiliateNetworkError
from core.models import AffiliateNetwork, NetworkStatus
from workers.ai_generator.models import CandidateCoupon, CandidateProduct

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ConnectionResult:
    success: bool
    message: str
    data: dict[str, Any] | None = None
    # status the network row should take after this test
    status: NetworkStatus = NetworkStatus.INACTIVE

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


@dataclass(slots=True)
class NetworkRequest:
    method: str
    path: str
    params: dict[str, Any] = field(default_factory=dict)
    json: dict[str, Any] | None = None


def as_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def as_int(value: Any) -> int | None:
    number = as_float(value)
    return int(number) if number is not None else None


def as_list(value: Any) -> list[Any]:
    """Feed collections may come back as null or as a single object."""
    return value if isinstance(value, list) else []


def feed_items(payload: Any, key: str) -> list[Any]:
    return as_list(payload.get(key)) if isinstance(payload, dict) else []


class BaseNetworkClient(ABC):
    """
    Standard interface for talking to an affiliate network API.
    """

    failure_status: NetworkStatus = NetworkStatus.INACTIVE
    success_message: str = "Connection successful"
    failure_message: str = "API authentication failed"
    error_message: str = "Network connection error"

    def __init__(self, network: AffiliateNetwork, http: httpx.AsyncClient) -> None:
        self.network = network
        self.http = http

    # ── Hooks for subclasses ──────────────────────────────────────────

    @property
    def endpoint(self) -> str:
        return (self.network.api_endpoint or "").rstrip("/")

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.network.api_key or ''}"}

    @abstractmethod
    def connection_request(self) -> NetworkRequest:
        """The request used to probe credentials."""

    def connection_data(self, payload: Any) -> dict[str, Any] | None:
        """Summary extracted from a successful probe response."""
        return None

    def products_request(self, category: str | None, limit: int) -> NetworkRequest | None:
        """None means the network has no product feed."""
        return None

    def parse_products(self, payload: Any) -> list[CandidateProduct]:
        return []

    def coupons_request(self, merchant_id: int | None) -> NetworkRequest | None:
        return NetworkRequest("GET", "/coupons", params={"merchantId": merchant_id} if merchant_id else {})

    # ── Operations ────────────────────────────────────────────────────

    async def test_connection(self) -> ConnectionResult:
        try:
            response = await self._send(self.connection_request())
        except httpx.HTTPError as exc:
            logger.warning("Connection test for %s failed: %s", self.network.slug, exc)
            return ConnectionResult(False, self.error_message, status=NetworkStatus.INACTIVE)

        if response.is_success:
            payload = _json_or_none(response)
            return ConnectionResult(
                True, self.success_message, self.connection_data(payload), status=NetworkStatus.ACTIVE
            )
        logger.info("Connection test for %s answered HTTP %d", self.network.slug, response.status_code)
        return ConnectionResult(False, self.failure_message, status=self.failure_status)

    async def fetch_products(self, category: str | None, limit: int) -> list[CandidateProduct]:
        request = self.products_request(category, limit)
        if request is None:
            return []
        payload = await self._fetch_json(request)
        try:
            products = self.parse_products(payload)
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
            raise AffiliateNetworkError(self.network.slug, f"malformed product feed: {exc}") from exc
        return products[:limit]

    async def fetch_coupons(self, merchant_id: int | None = None) -> list[CandidateCoupon]:
        request = self.coupons_request(merchant_id)
        if request is None:
            return []
        payload = await self._fetch_json(request)
        coupons = []
        try:
            for item in feed_items(payload, "coupons"):
                coupon = self._coupon_from_feed(item)
                if coupon is not None:
                    coupons.append(coupon)
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
            raise AffiliateNetworkError(self.network.slug, f"malformed coupon feed: {exc}") from exc
        return coupons

    # ── Helpers ───────────────────────────────────────────────────────

    async def _send(self, request: NetworkRequest) -> httpx.Response:
        headers = {"Accept": "application/json", **self.auth_headers()}
        return await self.http.request(
            request.method,
            f"{self.endpoint}{request.path}",
            params=request.params or None,
            json=request.json,
            headers=headers,
        )

    async def _fetch_json(self, request: NetworkRequest) -> Any:
        try:
            response = await self._send(request)
        except httpx.HTTPError as exc:
            raise AffiliateNetworkError(self.network.slug, f"request failed: {exc}") from exc
        if not response.is_success:
            raise AffiliateNetworkError(self.network.slug, f"HTTP {response.status_code} on {request.path}")
        payload = _json_or_none(response)
        if payload is None:
            raise AffiliateNetworkError(self.network.slug, f"non-JSON body on {request.path}")
        return payload

    def _coupon_from_feed(self, item: Any) -> CandidateCoupon | None:
        if not isinstance(item, dict) or not item.get("code"):
            return None
        discount_type = str(item.get("discountType", "percentage")).lower()
        discount_value = as_float(item.get("discountValue"))
        if discount_type not in ("percentage", "fixed") or discount_value is None:
            return None
        return CandidateCoupon(
            code=str(item["code"]).strip(),
            title=item.get("title"),
            description=str(item.get("description") or item.get("title") or item["code"]),
            discount_type=discount_type,
            discount_value=discount_value,
            minimum_spend=as_float(item.get("minimumSpend")),
            expires_in_days=_days_until(item.get("expiresAt")) or as_int(item.get("expiresInDays")) or 7,
            merchant=item.get("merchant"),
            source=self.network.slug,
        )


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _days_until(value: Any) -> int | None:
    if not value:
        return None
    try:
        expires = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    days = (expires - datetime.now(timezone.utc)).days
    return days if days > 0 else None
