from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import ConflictError, MusicMapError, NotFoundError, ValidationError
from ..core.keys import Category, dedup_key
from ..db import models

logger = logging.getLogger("favorites")

MAX_FIELD_LENGTH = 255
ALREADY_EXISTS = "This item is already in your favorites."


def validate_item(category: Any, name: Optional[str], artist: Optional[str]) -> Tuple[Category, str, Optional[str]]:
    """Check an item triple and return it cleaned; raises ``ValidationError`` listing every problem."""
    errors: List[str] = []
    try:
        parsed = Category(category)
    except ValueError:
        parsed = None
        errors.append("Invalid category")

    name = (name or "").strip()
    artist = (artist or "").strip() or None
    if not name:
        errors.append("Name is required")
    elif len(name) > MAX_FIELD_LENGTH:
        errors.append("Name is too long")

    if parsed is not None and parsed.requires_artist:
        if not artist:
            errors.append(f"Artist is required for {parsed.label.lower()}s")
        elif len(artist) > MAX_FIELD_LENGTH:
            errors.append("Artist name is too long")
    elif parsed is Category.ARTIST:
        artist = None

    if errors or parsed is None:
        raise ValidationError(", ".join(errors) + ".")
    return parsed, name, artist


async def list_favorites(session: AsyncSession, user_id: int) -> List[models.Favorite]:
    result = await session.execute(
        select(models.Favorite)
        .where(models.Favorite.user_id == user_id)
        .order_by(models.Favorite.created_at.desc(), models.Favorite.id.desc())
    )
    return list(result.scalars().all())


async def _find_by_key(session: AsyncSession, user_id: int, key: str) -> Optional[models.Favorite]:
    result = await session.execute(
        select(models.Favorite).where(models.Favorite.user_id == user_id, models.Favorite.dedup_key == key).limit(1)
    )
    return result.scalars().first()


async def favorite_exists(
    session: AsyncSession, user_id: int, category: Category | str, name: str, artist: Optional[str] = None
) -> bool:
    return await _find_by_key(session, user_id, dedup_key(category, name, artist)) is not None


async def add_favorite(
    session: AsyncSession, user: models.User, *, category: Any, name: Optional[str], artist: Optional[str] = None
) -> models.Favorite:
    parsed, name, artist = validate_item(category, name, artist)
    key = dedup_key(parsed, name, artist)
    if await _find_by_key(session, user.id, key) is not None:
        raise ConflictError(ALREADY_EXISTS)

    favorite = models.Favorite(user_id=user.id, category=parsed, name=name, artist=artist, dedup_key=key)
    session.add(favorite)
    try:
        await session.commit()
    except IntegrityError as exc:
        # lost a race with a concurrent insert of the same item
        await session.rollback()
        raise ConflictError(ALREADY_EXISTS) from exc
    await session.refresh(favorite)
    logger.info("User %s added favorite %s", user.id, key)
    return favorite


async def remove_favorite(session: AsyncSession, user: models.User, favorite_id: int) -> None:
    result = await session.execute(
        delete(models.Favorite).where(models.Favorite.id == favorite_id, models.Favorite.user_id == user.id)
    )
    if not result.rowcount:
        raise NotFoundError("Favorite not found.")
    await session.commit()


async def remove_favorite_by_item(
    session: AsyncSession, user: models.User, *, category: Any, name: Optional[str], artist: Optional[str] = None
) -> None:
    try:
        parsed = Category(category)
    except ValueError as exc:
        raise ValidationError("Invalid category.") from exc
    if not (name or "").strip():
        raise ValidationError("Name is required.")
    key = dedup_key(parsed, name, artist)
    result = await session.execute(
        delete(models.Favorite).where(models.Favorite.user_id == user.id, models.Favorite.dedup_key == key)
    )
    if not result.rowcount:
        raise NotFoundError("Favorite not found.")
    await session.commit()


async def favorite_stats(session: AsyncSession, user_id: int) -> Dict[str, int]:
    result = await session.execute(
        select(models.Favorite.category, func.count())
        .where(models.Favorite.user_id == user_id)
        .group_by(models.Favorite.category)
    )
    stats = {category.value: 0 for category in Category}
    for category, count in result.all():
        stats[Category(category).value] = int(count)
    return stats


@dataclass(slots=True)
class MigrationReport:
    total_received: int = 0
    migrated: int = 0
    skipped: int = 0
    errors: int = 0
    existing: int = 0
    details: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.existing:
            return "Migration not needed: you already have favorites saved."
        text = f"Migration complete: {self.migrated} favorites migrated"
        if self.errors:
            text += f", {self.errors} errors found"
        return text

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_received": self.total_received,
            "migrated": self.migrated,
            "skipped": self.skipped,
            "errors": self.errors,
            "existing": self.existing,
            "details": list(self.details),
        }


async def migrate_favorites(session: AsyncSession, user: models.User, entries: Sequence[Any]) -> MigrationReport:
    """Import favorites saved by the legacy client-side store.

    Runs only for users with an empty favorites list. Invalid entries are
    reported and skipped; the valid ones are written in one transaction.
    """
    user_id = user.id
    report = MigrationReport(total_received=len(entries))
    existing = await session.scalar(
        select(func.count()).select_from(models.Favorite).where(models.Favorite.user_id == user_id)
    )
    if existing:
        report.existing = int(existing)
        return report

    seen: set[str] = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            report.errors += 1
            report.details.append(f"Favorite #{index}: invalid structure")
            continue
        try:
            parsed, name, artist = validate_item(entry.get("type") or entry.get("category"), entry.get("name"), entry.get("artist"))
        except ValidationError as exc:
            report.errors += 1
            report.details.append(f"Favorite #{index}: {exc.message}")
            continue
        key = dedup_key(parsed, name, artist)
        if key in seen:
            report.skipped += 1
            continue
        seen.add(key)
        session.add(models.Favorite(user_id=user_id, category=parsed, name=name, artist=artist, dedup_key=key))
        report.migrated += 1

    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Favorites migration failed for user %s", user_id)
        raise MusicMapError("Migration failed. Please try again.", status_code=500) from exc

    logger.info(
        "Favorites migration for user %s",
        user_id,
        extra={"migration": report.as_dict()},
    )
    return report
