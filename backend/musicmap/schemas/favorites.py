from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from ..core.keys import Category
from .common import SessionRequest


class ItemFields(BaseModel):
    category: str = Field("", validation_alias=AliasChoices("category", "type"))
    name: str = ""
    artist: Optional[str] = None


class FavoriteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: Category
    name: str
    artist: Optional[str] = None
    created_at: Optional[datetime] = None
    image_url: Optional[str] = None


class FavoriteListRequest(SessionRequest):
    pass


class FavoriteAddRequest(SessionRequest, ItemFields):
    pass


class FavoriteRemoveRequest(SessionRequest, ItemFields):
    id: Optional[int] = None


class FavoriteMigrateRequest(SessionRequest):
    # Entries are validated one by one so a bad entry is reported, not fatal
    favorites: List[Any] = []


class RateRequest(SessionRequest, ItemFields):
    rating: int = 0
