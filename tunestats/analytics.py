from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence

from .constants import TIME_RANGE_LABELS, TIME_RANGES
from .models import Artist, RecentlyPlayedItem, Track

GENRES_PER_ARTIST = 2


def _percent(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(part / total * 100)


def top_artists_from_tracks(tracks: Iterable[Track], limit: int = 10) -> list[dict]:
    counts: Counter[str] = Counter()
    for track in tracks:
        counts.update(set(track.artist_names))
    return [{"artist": name, "plays": plays} for name, plays in counts.most_common(limit)]


def genre_mix(artists: Sequence[Artist], top_n: int = 5) -> list[dict]:
    counts: Counter[str] = Counter()
    for artist in artists:
        counts.update(set(artist.genres))
    return [
        {"genre": genre, "percent": _percent(count, len(artists))}
        for genre, count in counts.most_common(top_n)
    ]


def genre_comparison(
    artists_by_range: Mapping[str, Sequence[Artist]], top_n: int = 5
) -> list[dict]:
    """Share of artists per genre in each time range.

    Genres come from the long-term range, which is the most complete, taking
    the first two genres of each artist in ranking order.
    """
    genres: list[str] = []
    for artist in artists_by_range.get("long_term", []):
        for genre in artist.genres[:GENRES_PER_ARTIST]:
            if genre not in genres:
                genres.append(genre)
    genres = genres[:top_n]

    rows = []
    for time_range in TIME_RANGES:
        artists = artists_by_range.get(time_range, [])
        row: dict = {"period": TIME_RANGE_LABELS[time_range]}
        for genre in genres:
            matching = sum(1 for artist in artists if genre in artist.genres)
            row[genre] = _percent(matching, len(artists))
        rows.append(row)
    return rows


def artist_rankings(
    artists_by_range: Mapping[str, Sequence[Artist]], limit: int = 8
) -> list[dict]:
    positions = {
        time_range: {artist.name: index + 1 for index, artist in enumerate(artists)}
        for time_range, artists in artists_by_range.items()
    }
    rows = []
    for artist in list(artists_by_range.get("long_term", []))[:limit]:
        row: dict = {"artist": artist.name}
        for time_range in TIME_RANGES:
            row[time_range] = positions.get(time_range, {}).get(artist.name)
        rows.append(row)
    return rows


def listening_minutes(items: Iterable[RecentlyPlayedItem]) -> float:
    total_ms = sum(item.track.duration_ms for item in items)
    return round(total_ms / 60000, 1)


def build_summary(
    recent: Sequence[RecentlyPlayedItem],
    all_ranges: Mapping[str, Mapping[str, Sequence]],
) -> dict:
    artists_by_range = all_ranges.get("artists", {})
    return {
        "recent_tracks": len(recent),
        "listening_minutes": listening_minutes(recent),
        "top_recent_artists": top_artists_from_tracks(item.track for item in recent),
        "genre_mix": genre_mix(artists_by_range.get("medium_term", [])),
        "genre_comparison": genre_comparison(artists_by_range),
        "artist_rankings": artist_rankings(artists_by_range),
    }
