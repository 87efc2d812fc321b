from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.security import require_user
from ...schemas.common import success
from ...schemas.favorites import RateRequest
from ...services.ratings import rate_item
from ..deps import get_db_session

router = APIRouter(prefix="/v1", tags=["ratings"])


@router.post("/ratings")
async def rate(payload: RateRequest, session: AsyncSession = Depends(get_db_session)) -> Dict[str, Any]:
    user = await require_user(session, payload.session_token)
    rating = await rate_item(
        session,
        user,
        category=payload.category,
        name=payload.name,
        artist=payload.artist,
        rating=payload.rating,
    )
    return success({"rating": rating.rating}, "Rating saved!")
