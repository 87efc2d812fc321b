from __future__ import annotations

import enum
import re
import unicodedata

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


class Category(str, enum.Enum):
    """Kind of item a user can favorite, rate or be recommended.

    ``music`` is the wire name for tracks; ``"track"`` is accepted as an alias.
    """

    MUSIC = "music"
    ALBUM = "album"
    ARTIST = "artist"

    @classmethod
    def _missing_(cls, value: object) -> "Category | None":
        if isinstance(value, str):
            cleaned = value.strip().lower()
            if cleaned == "track":
                return cls.MUSIC
            for member in cls:
                if member.value == cleaned:
                    return member
        return None

    @property
    def spotify_type(self) -> str:
        if self is Category.MUSIC:
            return "track"
        return self.value

    @property
    def requires_artist(self) -> bool:
        return self is not Category.ARTIST

    @property
    def label(self) -> str:
        if self is Category.MUSIC:
            return "Track"
        if self is Category.ALBUM:
            return "Album"
        return "Artist"


def _strip_accents(value: str) -> str:
    try:
        decomposed = unicodedata.normalize("NFKD", value)
    except (TypeError, ValueError):
        return value
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def slug(value: str | None) -> str:
    if not value:
        return ""
    text = _strip_accents(str(value).strip()).lower()
    return _NON_ALNUM_RE.sub("", text)


def dedup_key(category: Category | str, name: str | None, artist: str | None = None) -> str:
    """Canonical lookup key for an item.

    Two items are duplicates iff their keys are equal; the comparison ignores
    case, diacritics, whitespace and punctuation. Never raises.
    """
    try:
        category_part = Category(category).value
    except ValueError:
        category_part = slug(str(category))
    return f"{category_part}:{slug(name)}:{slug(artist)}"
