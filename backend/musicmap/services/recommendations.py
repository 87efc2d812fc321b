from __future__ import annotations

import logging
import random
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Set

from ..core.keys import Category, dedup_key
from ..db import models
from ..lastfm.client import LastfmClient, LastfmError, LastfmItem
from ..schemas.recommend import Candidate, RecommendationBundle
from ..spotify.client import SpotifyClient, SpotifyClientError, first_image

logger = logging.getLogger("recommendations")

SEED_COUNT = 5
SPOTIFY_SEED_FAVORITES = 4
SPOTIFY_MAX_ARTIST_SEEDS = 2
SPOTIFY_MAX_TRACK_SEEDS = 3
SPOTIFY_RECOMMENDATION_LIMIT = 20
SIMILAR_ARTIST_LIMIT = 3
TOP_TRACK_LIMIT = 2
TOP_ALBUM_LIMIT = 1

SPOTIFY_REASON = "Suggested by Spotify"


def _reason_for(seed: models.Favorite) -> str:
    return f"Because you like {seed.name}"


def _seed_artist(seed: models.Favorite) -> str:
    # Artist favorites carry their own name and no artist column
    return seed.artist or seed.name


def _accept(candidate: Candidate, seen: Set[str], bundle: RecommendationBundle) -> bool:
    key = candidate.key
    if key in seen:
        return False
    seen.add(key)
    bundle.add(candidate)
    return True


async def _spotify_seed_ids(spotify: SpotifyClient, seeds: Sequence[models.Favorite]) -> tuple[List[str], List[str]]:
    artist_ids: List[str] = []
    track_ids: List[str] = []
    for seed in seeds[:SPOTIFY_SEED_FAVORITES]:
        category = Category(seed.category)
        if category is Category.ALBUM:
            continue
        if category is Category.ARTIST and len(artist_ids) >= SPOTIFY_MAX_ARTIST_SEEDS:
            continue
        if category is Category.MUSIC and len(track_ids) >= SPOTIFY_MAX_TRACK_SEEDS:
            continue
        try:
            item = await spotify.search_item(category.spotify_type, seed.name, seed.artist)
        except SpotifyClientError as exc:
            logger.debug("Spotify seed lookup failed for %s: %s", seed.name, exc)
            continue
        if item is None:
            continue
        if category is Category.ARTIST:
            artist_ids.append(item.id)
        else:
            track_ids.append(item.id)
    return artist_ids, track_ids


def _spotify_track_to_candidate(track: Dict[str, Any]) -> Optional[Candidate]:
    name = track.get("name")
    artists = track.get("artists")
    lead = artists[0] if isinstance(artists, list) and artists else None
    artist = lead.get("name") if isinstance(lead, dict) else None
    if not isinstance(name, str) or not name.strip() or not isinstance(artist, str) or not artist.strip():
        return None
    album = track.get("album")
    return Candidate(
        category=Category.MUSIC,
        name=name,
        artist=artist,
        reason=SPOTIFY_REASON,
        image_url=first_image(album.get("images") if isinstance(album, dict) else None),
    )


async def _collect_from_spotify(
    spotify: SpotifyClient,
    seeds: Sequence[models.Favorite],
    seen: Set[str],
    bundle: RecommendationBundle,
) -> None:
    artist_ids, track_ids = await _spotify_seed_ids(spotify, seeds)
    if not artist_ids and not track_ids:
        logger.info("No spotify seeds resolved; skipping spotify recommendations")
        return
    try:
        tracks = await spotify.get_recommendations(
            seed_artists=artist_ids,
            seed_tracks=track_ids,
            limit=SPOTIFY_RECOMMENDATION_LIMIT,
        )
    except SpotifyClientError as exc:
        logger.warning("Spotify recommendations failed: %s", exc)
        return
    for track in tracks:
        candidate = _spotify_track_to_candidate(track)
        if candidate is not None:
            _accept(candidate, seen, bundle)


async def _lastfm_call(description: str, call: Awaitable[List[LastfmItem]]) -> List[LastfmItem]:
    try:
        return await call
    except LastfmError as exc:
        logger.debug("Last.fm %s failed: %s", description, exc)
        return []


async def _collect_from_lastfm(
    lastfm: LastfmClient,
    seed: models.Favorite,
    seen: Set[str],
    bundle: RecommendationBundle,
) -> None:
    reason = _reason_for(seed)
    seed_artist = _seed_artist(seed)

    similar = await _lastfm_call(
        f"similar artists for {seed_artist}",
        lastfm.similar_artists(seed_artist, limit=SIMILAR_ARTIST_LIMIT),
    )
    pool: List[str] = []
    if Category(seed.category) is not Category.ALBUM:
        pool.append(seed_artist)
    for item in similar:
        _accept(Candidate(category=Category.ARTIST, name=item.name, reason=reason), seen, bundle)
        pool.append(item.name)

    pool_keys: Set[str] = set()
    for artist in pool:
        artist_key = dedup_key(Category.ARTIST, artist)
        if artist_key in pool_keys:
            continue
        pool_keys.add(artist_key)

        for track in await _lastfm_call(f"top tracks for {artist}", lastfm.top_tracks(artist, limit=TOP_TRACK_LIMIT)):
            _accept(Candidate(category=Category.MUSIC, name=track.name, artist=artist, reason=reason), seen, bundle)
        for album in await _lastfm_call(f"top albums for {artist}", lastfm.top_albums(artist, limit=TOP_ALBUM_LIMIT)):
            _accept(Candidate(category=Category.ALBUM, name=album.name, artist=artist, reason=reason), seen, bundle)


async def attach_cover_art(spotify: SpotifyClient, candidates: Sequence[Any]) -> None:
    """Best-effort image lookup; anything that fails keeps ``image_url`` unset."""
    for candidate in candidates:
        if getattr(candidate, "image_url", None):
            continue
        category = Category(candidate.category)
        try:
            item = await spotify.search_item(category.spotify_type, candidate.name, candidate.artist)
        except SpotifyClientError as exc:
            logger.debug("Cover art lookup failed for %s: %s", candidate.name, exc)
            continue
        if item is not None and item.image_url:
            candidate.image_url = item.image_url


async def build_recommendations(
    favorites: Sequence[models.Favorite],
    *,
    lastfm: LastfmClient,
    spotify: SpotifyClient | None = None,
    rng: random.Random | None = None,
) -> RecommendationBundle:
    bundle = RecommendationBundle()
    if not favorites:
        return bundle

    rng = rng or random.Random()
    seen: Set[str] = {dedup_key(fav.category, fav.name, fav.artist) for fav in favorites}
    seeds = rng.sample(list(favorites), k=min(SEED_COUNT, len(favorites)))
    logger.info("Building recommendations from %s seeds (%s favorites)", len(seeds), len(favorites))

    if spotify is not None:
        await _collect_from_spotify(spotify, seeds, seen, bundle)

    if lastfm.configured:
        for seed in seeds:
            await _collect_from_lastfm(lastfm, seed, seen, bundle)
    else:
        logger.warning("Last.fm api key missing; skipping last.fm recommendations")

    if spotify is not None:
        await attach_cover_art(spotify, list(bundle.candidates()))

    rng.shuffle(bundle.music)
    rng.shuffle(bundle.album)
    rng.shuffle(bundle.artist)
    logger.info(
        "Recommendations ready: %s tracks, %s albums, %s artists",
        len(bundle.music),
        len(bundle.album),
        len(bundle.artist),
    )
    return bundle
