from __future__ import annotations

import logging
from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, Query

from ...core.errors import ExternalServiceError
from ...lastfm.client import LastfmClient, LastfmConfigError, LastfmError
from ...schemas.common import success
from ..deps import get_lastfm_client

logger = logging.getLogger("search")

router = APIRouter(prefix="/v1", tags=["search"])

MIN_QUERY_LENGTH = 2
RESULT_LIMIT = 5


@router.get("/search")
async def autocomplete(
    query: str = Query(""),
    type: Literal["track", "album", "artist"] = Query("track"),
    lastfm: LastfmClient = Depends(get_lastfm_client),
) -> Dict[str, Any]:
    query = query.strip()
    if len(query) < MIN_QUERY_LENGTH:
        return success([])
    try:
        items = await lastfm.search(type, query, limit=RESULT_LIMIT)
    except LastfmConfigError as exc:
        raise ExternalServiceError("Last.fm API key is not configured.") from exc
    except LastfmError as exc:
        logger.warning("Autocomplete search failed for %r: %s", query, exc)
        items = []
    return success([{"name": item.name, "artist": item.artist} for item in items])
