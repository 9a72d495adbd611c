"""Health and indexer status endpoints."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from statusboard.database import get_db
from statusboard.models import WITHDRAWAL_REQUESTS_TASK, WithdrawalRequest
from statusboard.services.checkpoints import CheckpointStore

router = APIRouter(tags=["health"])


class IndexerStatus(BaseModel):
    """Progress of an indexer task."""

    task_id: str
    last_scanned_block: int
    updated_at: datetime | None
    record_count: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    withdrawal_requests: IndexerStatus


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthResponse:
    """
    Health check endpoint with indexer status.

    Returns the withdrawal indexer checkpoint and the ledger size.
    """
    state = await CheckpointStore(db).get_state(WITHDRAWAL_REQUESTS_TASK)

    count_result = await db.execute(select(func.count(WithdrawalRequest.id)))
    record_count = count_result.scalar() or 0

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        withdrawal_requests=IndexerStatus(
            task_id=WITHDRAWAL_REQUESTS_TASK,
            last_scanned_block=state.last_scanned_block if state else 0,
            updated_at=state.updated_at if state else None,
            record_count=record_count,
        ),
    )


@router.get("/ready")
async def readiness_check() -> dict:
    """Simple readiness probe for container orchestration."""
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict:
    """Simple liveness probe for container orchestration."""
    return {"status": "alive"}
