"""Concrete affiliate network clients (CJ, Impact, Amazon PA-API, ShareASale, generic)."""

from __future__ import annotations

import base64
from typing import Any

from core.models import NetworkStatus
from workers.affiliate.base import (
    BaseNetworkClient,
    NetworkRequest,
    as_float,
    as_int,
    as_list,
    feed_items,
)
from workers.ai_generator.models import CandidateProduct


class CommissionJunctionClient(BaseNetworkClient):
    """Commission Junction (CJ Affiliate) — bearer token, program id in the path."""

    def connection_request(self) -> NetworkRequest:
        return NetworkRequest("GET", f"/publisher/{self.network.program_id}/commissions")

    def connection_data(self, payload: Any) -> dict[str, Any] | None:
        programs = payload.get("programs") if isinstance(payload, dict) else None
        return {"programCount": len(programs or [])}

    def products_request(self, category: str | None, limit: int) -> NetworkRequest | None:
        params = {"website-id": self.network.program_id, "records-per-page": limit}
        if category:
            params["keywords"] = category
        return NetworkRequest("GET", "/product-search", params=params)

    def parse_products(self, payload: Any) -> list[CandidateProduct]:
        items = feed_items(payload, "products")
        products = []
        for item in items:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            sale = as_float(item.get("sale-price"))
            price = as_float(item.get("price"))
            products.append(CandidateProduct(
                name=item["name"],
                description=item.get("description") or "",
                category=item.get("advertiser-category"),
                price=sale if sale is not None else price,
                original_price=price if sale is not None else None,
                image_url=item.get("image-url"),
                product_url=item.get("buy-url"),
                merchant=item.get("advertiser-name"),
                external_id=str(item.get("sku") or item.get("ad-id") or "") or None,
                source=self.network.slug,
                network_id=self.network.id,
            ))
        return products


class ImpactClient(BaseNetworkClient):
    """Impact.com — basic auth with account SID (program id) and token."""

    def auth_headers(self) -> dict[str, str]:
        raw = f"{self.network.program_id or ''}:{self.network.api_key or ''}".encode()
        return {"Authorization": f"Basic {base64.b64encode(raw).decode()}"}

    def connection_request(self) -> NetworkRequest:
        return NetworkRequest("GET", "/Campaigns")

    def connection_data(self, payload: Any) -> dict[str, Any] | None:
        campaigns = payload.get("Campaigns") if isinstance(payload, dict) else None
        return {"campaignCount": len(campaigns or [])}

    def products_request(self, category: str | None, limit: int) -> NetworkRequest | None:
        params: dict[str, Any] = {"PageSize": limit}
        if category:
            params["Query"] = category
        return NetworkRequest("GET", "/Catalogs/ItemSearch", params=params)

    def parse_products(self, payload: Any) -> list[CandidateProduct]:
        items = feed_items(payload, "Items")
        products = []
        for item in items:
            if not isinstance(item, dict) or not item.get("Name"):
                continue
            products.append(CandidateProduct(
                name=item["Name"],
                description=item.get("Description") or "",
                category=item.get("Category"),
                price=as_float(item.get("CurrentPrice")),
                original_price=as_float(item.get("OriginalPrice")),
                image_url=item.get("ImageUrl"),
                product_url=item.get("Url"),
                merchant=item.get("CampaignName") or item.get("Manufacturer"),
                external_id=str(item.get("CatalogItemId") or item.get("Id") or "") or None,
                source=self.network.slug,
                network_id=self.network.id,
            ))
        return products


class AmazonAssociatesClient(BaseNetworkClient):
    """Amazon Product Advertising API 5.0 (SearchItems)."""

    success_message = "Amazon PA-API connection successful"
    failure_message = "Amazon API authentication failed"
    error_message = "Amazon API connection error"

    _TARGET = "com.amazon.paapi5.v1.ProductAdvertisingAPIv1.SearchItems"
    _RESOURCES = [
        "ItemInfo.Title",
        "ItemInfo.ByLineInfo",
        "Offers.Listings.Price",
        "Offers.Listings.SavingBasis",
        "Images.Primary.Large",
        "CustomerReviews.StarRating",
        "CustomerReviews.Count",
    ]

    def auth_headers(self) -> dict[str, str]:
        # request signing (SigV4) is done by the gateway in front of api_endpoint
        return {"X-Amz-Target": self._TARGET, "Content-Type": "application/json"}

    def _search(self, keywords: str, count: int) -> NetworkRequest:
        return NetworkRequest("POST", "/paapi5/searchitems", json={
            "Keywords": keywords,
            "Resources": self._RESOURCES,
            "ItemCount": max(1, min(count, 10)),
            "PartnerTag": self.network.program_id,
            "PartnerType": "Associates",
            "Marketplace": "www.amazon.com",
        })

    def connection_request(self) -> NetworkRequest:
        return self._search("electronics", 1)

    def products_request(self, category: str | None, limit: int) -> NetworkRequest | None:
        return self._search(category or "deals", limit)

    def coupons_request(self, merchant_id: int | None) -> NetworkRequest | None:
        return None

    def parse_products(self, payload: Any) -> list[CandidateProduct]:
        products = []
        for item in as_list(_dig(payload, "SearchResult", "Items")):
            title = _dig(item, "ItemInfo", "Title", "DisplayValue")
            if not title:
                continue
            listings = _dig(item, "Offers", "Listings")
            listing = listings if isinstance(listings, dict) else (as_list(listings) or [{}])[0]
            products.append(CandidateProduct(
                name=title,
                description="",
                price=as_float(_dig(listing, "Price", "Amount")),
                original_price=as_float(_dig(listing, "SavingBasis", "Amount")),
                image_url=_dig(item, "Images", "Primary", "Large", "URL"),
                product_url=item.get("DetailPageURL"),
                merchant=_dig(item, "ItemInfo", "ByLineInfo", "Brand", "DisplayValue"),
                rating=as_float(_dig(item, "CustomerReviews", "StarRating", "Value")),
                review_count=as_int(_dig(item, "CustomerReviews", "Count")),
                external_id=item.get("ASIN"),
                source=self.network.slug,
                network_id=self.network.id,
            ))
        return products


class ShareASaleClient(BaseNetworkClient):
    """ShareASale — token in the query string; a refused probe means pending approval."""

    failure_status = NetworkStatus.PENDING
    success_message = "ShareASale connection successful"
    failure_message = "Pending approval from ShareASale"
    error_message = "ShareASale connection error"

    def auth_headers(self) -> dict[str, str]:
        return {}

    def _action(self, action: str, **extra: Any) -> NetworkRequest:
        params = {
            "type": "json",
            "affiliateId": self.network.program_id,
            "token": self.network.api_key,
            "action": action,
            **extra,
        }
        return NetworkRequest("GET", "/w.cfm", params=params)

    def connection_request(self) -> NetworkRequest:
        return self._action("merchantStatus")

    def connection_data(self, payload: Any) -> dict[str, Any] | None:
        merchants = payload.get("merchants") if isinstance(payload, dict) else None
        return {"merchantCount": len(merchants or [])}

    def coupons_request(self, merchant_id: int | None) -> NetworkRequest | None:
        extra = {"merchantId": merchant_id} if merchant_id else {}
        return self._action("couponDeals", **extra)


class GenericNetworkClient(BaseNetworkClient):
    """Any other network exposing /test, /products and /coupons with a bearer token."""

    failure_message = "API connection failed"
    error_message = "Connection error"

    def connection_request(self) -> NetworkRequest:
        return NetworkRequest("GET", "/test")

    def products_request(self, category: str | None, limit: int) -> NetworkRequest | None:
        params: dict[str, Any] = {"limit": limit}
        if category:
            params["category"] = category
        return NetworkRequest("GET", "/products", params=params)

    def parse_products(self, payload: Any) -> list[CandidateProduct]:
        items = feed_items(payload, "products")
        products = []
        for item in items:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            products.append(CandidateProduct(
                name=item["name"],
                description=item.get("description") or "",
                category=item.get("category"),
                price=as_float(item.get("price")),
                original_price=as_float(item.get("originalPrice")),
                image_url=item.get("imageUrl"),
                product_url=item.get("productUrl"),
                merchant=item.get("merchant"),
                rating=as_float(item.get("rating")),
                review_count=as_int(item.get("reviewCount")),
                external_id=str(item["id"]) if item.get("id") is not None else None,
                source=self.network.slug,
                network_id=self.network.id,
            ))
        return products


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data
