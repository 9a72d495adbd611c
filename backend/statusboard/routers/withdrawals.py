"""API routes for indexed withdrawal requests."""

import base64
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from statusboard.database import get_db
from statusboard.models import WithdrawalRequest
from statusboard.schemas import WithdrawalRequestOut, WithdrawalRequestsResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/withdrawal_requests", tags=["withdrawals"])


def _encode_cursor(block_number: int, id: int) -> str:
    """Encode cursor for keyset pagination."""
    cursor_str = f"{block_number}|{id}"
    return base64.urlsafe_b64encode(cursor_str.encode()).decode()


def _decode_cursor(cursor: str) -> tuple[int, int]:
    """Decode cursor for keyset pagination."""
    cursor_str = base64.urlsafe_b64decode(cursor.encode()).decode()
    block_number, id = cursor_str.split("|")
    return int(block_number), int(id)


@router.get("", response_model=WithdrawalRequestsResponse)
async def list_withdrawal_requests(
    db: Annotated[AsyncSession, Depends(get_db)],
    cursor: str | None = None,
    limit: int = Query(50, ge=1, le=200),
) -> WithdrawalRequestsResponse:
    """
    List indexed withdrawal requests, newest block first, with cursor pagination.
    """
    query = select(WithdrawalRequest).order_by(
        WithdrawalRequest.block_number.desc(),
        WithdrawalRequest.id.desc(),
    )

    if cursor:
        try:
            cursor_block, cursor_id = _decode_cursor(cursor)
            query = query.where(
                (WithdrawalRequest.block_number < cursor_block)
                | (
                    (WithdrawalRequest.block_number == cursor_block)
                    & (WithdrawalRequest.id < cursor_id)
                )
            )
        except ValueError:
            logger.warning(f"Invalid cursor: {cursor}")

    # Fetch one extra to check for next page
    result = await db.execute(query.limit(limit + 1))
    rows = list(result.scalars().all())

    has_next = len(rows) > limit
    if has_next:
        rows = rows[:limit]

    next_cursor = None
    if has_next and rows:
        next_cursor = _encode_cursor(rows[-1].block_number, rows[-1].id)

    return WithdrawalRequestsResponse(
        withdrawal_requests=[WithdrawalRequestOut.model_validate(row) for row in rows],
        next_cursor=next_cursor,
    )
