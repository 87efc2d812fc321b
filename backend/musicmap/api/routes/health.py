from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ...schemas.common import HealthResponse, success
from ..deps import get_db_session

logger = logging.getLogger("health")

router = APIRouter(prefix="/v1", tags=["health"])


@router.get("/health")
async def get_health(session: AsyncSession = Depends(get_db_session)) -> Dict[str, Any]:
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed: %s", exc)
        return success(HealthResponse(ok=False, database=False))
    return success(HealthResponse(ok=True, database=True))
