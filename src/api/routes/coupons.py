"""Coupon admin API."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.models import VerificationStatus
from workers.affiliate.service import AffiliateService

router = APIRouter(prefix="/api/admin/coupons", tags=["coupons"])


class _CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class VerifyCouponRequest(_CamelSchema):
    code: str = Field(min_length=1, max_length=100)
    merchant_id: int


class VerifyCouponResponse(_CamelSchema):
    valid: bool
    status: VerificationStatus
    message: str


@router.post("/verify", response_model=VerifyCouponResponse)
async def verify_coupon(req: VerifyCouponRequest, session: AsyncSession = Depends(get_db)):
    verification = await AffiliateService(session).verify_coupon(req.code.strip(), req.merchant_id)
    return VerifyCouponResponse(valid=verification.valid, status=verification.status, message=verification.message)
