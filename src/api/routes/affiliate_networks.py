"""Affiliate network admin API — manage networks, test credentials."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.exceptions import AffiliateNetworkExistsError
from core.models import NetworkStatus
from workers.affiliate.service import AffiliateService

router = APIRouter(prefix="/api/admin/affiliate-networks", tags=["affiliate-networks"])

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class _CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class NetworkCreate(_CamelSchema):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=100, pattern=SLUG_PATTERN)
    api_endpoint: str | None = Field(default=None, max_length=2048)
    api_key: str | None = Field(default=None, max_length=512)
    program_id: str | None = Field(default=None, max_length=255)
    commission_rate: float | None = Field(default=None, ge=0, le=1)
    # stays pending until a connection test succeeds
    status: NetworkStatus = NetworkStatus.PENDING
    is_active: bool = True


class NetworkUpdate(_CamelSchema):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    api_endpoint: str | None = Field(default=None, max_length=2048)
    api_key: str | None = Field(default=None, max_length=512)
    program_id: str | None = Field(default=None, max_length=255)
    commission_rate: float | None = Field(default=None, ge=0, le=1)
    status: NetworkStatus | None = None
    is_active: bool | None = None


class NetworkResponse(_CamelSchema):
    id: int
    name: str
    slug: str
    api_endpoint: str | None
    program_id: str | None
    commission_rate: float | None
    status: NetworkStatus
    last_sync_at: datetime | None
    is_active: bool


@router.get("", response_model=list[NetworkResponse])
async def list_networks(session: AsyncSession = Depends(get_db)):
    networks = await AffiliateService(session).list_networks()
    return [NetworkResponse.model_validate(network) for network in networks]


@router.post("", response_model=NetworkResponse, status_code=201)
async def create_network(req: NetworkCreate, session: AsyncSession = Depends(get_db)):
    try:
        network = await AffiliateService(session).create_network(**req.model_dump())
    except AffiliateNetworkExistsError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return NetworkResponse.model_validate(network)


@router.patch("/{network_id}", response_model=NetworkResponse)
async def update_network(network_id: int, req: NetworkUpdate, session: AsyncSession = Depends(get_db)):
    """Only the fields present in the body are changed."""
    changes = req.model_dump(exclude_unset=True)
    try:
        network = await AffiliateService(session).update_network(network_id, **changes)
    except AffiliateNetworkExistsError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    if network is None:
        raise HTTPException(status_code=404, detail="Network not found")
    return NetworkResponse.model_validate(network)


@router.post("/{network_id}/test")
async def test_network(network_id: int, session: AsyncSession = Depends(get_db)) -> dict:
    result = await AffiliateService(session).test_connection(network_id)
    return result.to_dict()
