from __future__ import annotations

from typing import Iterator, List, Optional

from pydantic import BaseModel, Field

from ..core.keys import Category, dedup_key
from .common import SessionRequest


class Candidate(BaseModel):
    category: Category
    name: str
    artist: Optional[str] = None
    reason: str
    image_url: Optional[str] = None

    @property
    def key(self) -> str:
        return dedup_key(self.category, self.name, self.artist)


class RecommendationBundle(BaseModel):
    music: List[Candidate] = []
    album: List[Candidate] = []
    artist: List[Candidate] = []

    def bucket(self, category: Category) -> List[Candidate]:
        if category is Category.MUSIC:
            return self.music
        if category is Category.ALBUM:
            return self.album
        return self.artist

    def add(self, candidate: Candidate) -> None:
        self.bucket(candidate.category).append(candidate)

    def candidates(self) -> Iterator[Candidate]:
        yield from self.music
        yield from self.album
        yield from self.artist

    def total(self) -> int:
        return len(self.music) + len(self.album) + len(self.artist)


class RecommendRequest(SessionRequest):
    pass


class DayMixRequest(SessionRequest):
    seed: str = Field("", description='Seed track, "track" or "track - artist"')


class DayMixResponse(BaseModel):
    tracks: List[Candidate] = []
