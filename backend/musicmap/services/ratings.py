from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ValidationError
from ..core.keys import Category, dedup_key
from ..db import models

logger = logging.getLogger("ratings")

MIN_RATING = 1
MAX_RATING = 5
INVALID_RATING = "Invalid rating data."


async def _find(session: AsyncSession, user_id: int, key: str) -> Optional[models.Rating]:
    result = await session.execute(
        select(models.Rating).where(models.Rating.user_id == user_id, models.Rating.item_key == key).limit(1)
    )
    return result.scalars().first()


async def rate_item(
    session: AsyncSession,
    user: models.User,
    *,
    category: Any,
    name: Optional[str],
    artist: Optional[str],
    rating: Any,
) -> models.Rating:
    """Store ``rating`` for the item, replacing any earlier rating by the same user."""
    try:
        parsed = Category(category)
        value = int(rating)
    except (TypeError, ValueError) as exc:
        raise ValidationError(INVALID_RATING) from exc
    name = (name or "").strip()
    artist = (artist or "").strip() or None
    if parsed is Category.ARTIST:
        artist = None
    if not name or not MIN_RATING <= value <= MAX_RATING:
        raise ValidationError(INVALID_RATING)

    user_id = user.id
    key = dedup_key(parsed, name, artist)
    existing = await _find(session, user_id, key)
    if existing is not None:
        existing.rating = value
    else:
        existing = models.Rating(
            user_id=user_id,
            item_category=parsed,
            item_name=name,
            item_artist=artist,
            item_key=key,
            rating=value,
        )
        session.add(existing)
    try:
        await session.commit()
    except IntegrityError:
        # a concurrent request inserted the same item first; overwrite it
        await session.rollback()
        existing = await _find(session, user_id, key)
        if existing is None:
            raise
        existing.rating = value
        await session.commit()
    logger.info("User %s rated %s -> %s", user_id, key, value)
    return existing
