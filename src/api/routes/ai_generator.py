"""AI Generator admin API — status, manual run, run history, LLM connectivity."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.ai.factory import AIFactory
from core.config import settings
from core.database import get_db, get_session_factory
from core.exceptions import GeneratorAlreadyRunningError
from core.models import GenerationStatus
from workers.ai_generator.models import GeneratorConfig
from workers.ai_generator.orchestrator import get_recent_logs, get_status, run_generation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/ai-generator", tags=["ai-generator"])


# ── Request/Response Schemas ──────────────────────────────────────────

class _CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class StatusResponse(_CamelSchema):
    is_running: bool
    current_log_id: int | None = None


class RunRequest(_CamelSchema):
    config: GeneratorConfig | None = None


class GenerationResultResponse(_CamelSchema):
    log_id: int
    products_found: int
    products_added: int
    products_updated: int
    products_skipped: int
    coupons_found: int
    coupons_added: int
    errors: list[str]
    duration_ms: int


class GenerationLogResponse(_CamelSchema):
    id: int
    type: str
    source: str | None
    status: GenerationStatus
    products_found: int
    products_added: int
    products_updated: int
    products_skipped: int
    coupons_found: int
    coupons_added: int
    errors: list[str] | None = None
    meta: dict | None = Field(default=None, serialization_alias="metadata")
    started_at: datetime | None = None
    completed_at: datetime | None = None


class TestConnectionRequest(_CamelSchema):
    model_name: str | None = None
    api_key: str | None = None


class TestConnectionResponse(_CamelSchema):
    success: bool
    message: str


# ── Endpoints ─────────────────────────────────────────────────────────

@router.get("/status", response_model=StatusResponse)
async def generator_status(session: AsyncSession = Depends(get_db)):
    status = await get_status(session)
    return StatusResponse(is_running=status.is_running, current_log_id=status.current_log_id)


@router.post("/run", response_model=GenerationResultResponse)
async def run_generator(
    req: RunRequest | None = None,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Run the generator synchronously and return its summary.
    409 when another run holds the lock.
    """
    config = req.config if req else None
    try:
        result = await run_generation(config, source="multi_source", session_factory=session_factory)
    except GeneratorAlreadyRunningError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except Exception as exc:
        logger.exception("Manual generator run failed")
        raise HTTPException(status_code=500, detail=f"Generator run failed: {exc}")
    return GenerationResultResponse.model_validate(result)


@router.get("/logs", response_model=list[GenerationLogResponse])
async def generator_logs(
    limit: int = Query(default=10, ge=1, le=100),
    session: AsyncSession = Depends(get_db),
):
    logs = await get_recent_logs(session, limit)
    return [GenerationLogResponse.model_validate(log) for log in logs]


@router.post("/test-connection", response_model=TestConnectionResponse)
async def test_llm_connection(req: TestConnectionRequest | None = None):
    """
    Check connectivity with the configured (or given) LLM model.
    """
    model_name = (req.model_name if req else None) or settings.llm_model
    api_key = req.api_key if req else None
    try:
        provider = AIFactory.create(model_name=model_name, api_key=api_key)
        success = await provider.test_connection()
    except Exception as exc:
        logger.warning("LLM connection test for %s failed: %s", model_name, exc)
        return TestConnectionResponse(success=False, message=str(exc))

    if not success:
        return TestConnectionResponse(
            success=False, message="Failed to connect. Check API key and model name."
        )
    return TestConnectionResponse(success=True, message=f"Successfully connected to {model_name}")
