"""Single-seed playlist ("Day Mix") built from Last.fm track similarity.

Unlike the multi-seed aggregator, every stage here fails loudly: the caller
gave one specific seed, so each failure carries its own user-facing message.
"""

from __future__ import annotations

import logging
import random
from collections import Counter
from typing import List, Tuple

from ..core.keys import Category, slug
from ..lastfm.client import LastfmApiError, LastfmClient, LastfmConfigError, LastfmUnavailableError
from ..schemas.recommend import Candidate

logger = logging.getLogger("daymix")

SIMILAR_LIMIT = 100
PLAYLIST_SIZE = 25
MAX_TRACKS_PER_ARTIST = 2
REASON = "Day Mix"

MISSING_API_KEY = "The Last.fm API key (LASTFM_API_KEY) is not configured on the server."
SEARCH_UNAVAILABLE = "Could not reach the Last.fm API to search for the track."
TRACK_NOT_FOUND = 'The seed track was not found. Try being more specific, like "Track Name - Artist Name".'
SIMILAR_UNAVAILABLE = "Could not reach the Last.fm API to fetch similar tracks."
PROVIDER_ERROR = "Last.fm returned an error: {message}"
NO_SIMILAR_TRACKS = "No similar tracks were found for this seed. Try another track."
EMPTY_PLAYLIST = "Could not build a mix from the tracks that were found."


class DayMixError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def parse_seed(seed: str) -> Tuple[str, str | None]:
    """Split ``"track - artist"`` on the first spaced dash."""
    track, sep, artist = seed.strip().partition(" - ")
    if not sep:
        return seed.strip(), None
    return track.strip(), artist.strip() or None


async def generate_day_mix(seed: str, *, lastfm: LastfmClient, rng: random.Random | None = None) -> List[Candidate]:
    if not lastfm.configured:
        raise DayMixError(MISSING_API_KEY)

    rng = rng or random.Random()
    seed_track, seed_artist = parse_seed(seed)

    try:
        match = await lastfm.search_track(seed_track, seed_artist)
    except LastfmConfigError as exc:
        raise DayMixError(MISSING_API_KEY) from exc
    except LastfmApiError as exc:
        raise DayMixError(PROVIDER_ERROR.format(message=exc.message)) from exc
    except LastfmUnavailableError as exc:
        raise DayMixError(SEARCH_UNAVAILABLE) from exc
    if match is None or not match.artist:
        raise DayMixError(TRACK_NOT_FOUND)

    logger.info("Day mix seed resolved to %s - %s", match.name, match.artist)
    try:
        similar = await lastfm.similar_tracks(match.artist, match.name, limit=SIMILAR_LIMIT)
    except LastfmApiError as exc:
        raise DayMixError(PROVIDER_ERROR.format(message=exc.message)) from exc
    except LastfmUnavailableError as exc:
        raise DayMixError(SIMILAR_UNAVAILABLE) from exc
    if not similar:
        raise DayMixError(NO_SIMILAR_TRACKS)

    pool = list(similar)
    rng.shuffle(pool)
    per_artist: Counter[str] = Counter()
    playlist: List[Candidate] = []
    for item in pool:
        if len(playlist) >= PLAYLIST_SIZE:
            break
        if not item.name or not item.artist:
            continue
        artist_key = slug(item.artist) or item.artist
        per_artist[artist_key] += 1
        if per_artist[artist_key] > MAX_TRACKS_PER_ARTIST:
            continue
        playlist.append(Candidate(category=Category.MUSIC, name=item.name, artist=item.artist, reason=REASON))

    if not playlist:
        raise DayMixError(EMPTY_PLAYLIST)
    logger.info("Day mix built with %s tracks from %s similar", len(playlist), len(similar))
    return playlist
