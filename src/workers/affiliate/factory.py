"""
Network Client Factory
======================
Routes an AffiliateNetwork row to the client that speaks its API.
"""

from __future__ import annotations

import httpx

from core.models import AffiliateNetwork
from workers.affiliate.base import BaseNetworkClient
from workers.affiliate.networks import (
    AmazonAssociatesClient,
    CommissionJunctionClient,
    GenericNetworkClient,
    ImpactClient,
    ShareASaleClient,
)

_CLIENTS_BY_SLUG: dict[str, type[BaseNetworkClient]] = {
    "commission-junction": CommissionJunctionClient,
    "impact": ImpactClient,
    "amazon-associates": AmazonAssociatesClient,
    "shareasale": ShareASaleClient,
}

AMAZON_SLUG = "amazon-associates"


class NetworkClientFactory:
    """
    Static factory to create the correct network client.
    """

    @staticmethod
    def create(network: AffiliateNetwork, http: httpx.AsyncClient) -> BaseNetworkClient:
        client_cls = _CLIENTS_BY_SLUG.get(network.slug, GenericNetworkClient)
        return client_cls(network, http)
