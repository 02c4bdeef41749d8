from __future__ import annotations

from dataclasses import dataclass, field


def _image_urls(payload: dict) -> list[str]:
    return [image["url"] for image in payload.get("images") or [] if image.get("url")]


@dataclass
class SpotifyUser:
    id: str
    display_name: str | None
    email: str | None = None
    images: list[str] = field(default_factory=list)
    product: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "SpotifyUser":
        return cls(
            id=payload["id"],
            display_name=payload.get("display_name"),
            email=payload.get("email"),
            images=_image_urls(payload),
            product=payload.get("product"),
        )


@dataclass
class Artist:
    id: str | None
    name: str
    genres: list[str] = field(default_factory=list)
    popularity: int | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "Artist":
        return cls(
            id=payload.get("id"),
            name=payload["name"],
            genres=list(payload.get("genres") or []),
            popularity=payload.get("popularity"),
        )


@dataclass
class Track:
    id: str
    name: str
    artists: list[Artist]
    album_name: str | None
    album_images: list[str]
    duration_ms: int
    uri: str | None = None
    external_url: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "Track":
        album = payload.get("album") or {}
        return cls(
            id=payload["id"],
            name=payload["name"],
            artists=[Artist.from_payload(artist) for artist in payload.get("artists") or []],
            album_name=album.get("name"),
            album_images=_image_urls(album),
            duration_ms=int(payload.get("duration_ms") or 0),
            uri=payload.get("uri"),
            external_url=(payload.get("external_urls") or {}).get("spotify"),
        )

    @property
    def artist_names(self) -> list[str]:
        return [artist.name for artist in self.artists]


@dataclass
class AudioFeatures:
    id: str
    danceability: float
    energy: float
    valence: float
    tempo: float
    acousticness: float
    instrumentalness: float
    liveness: float
    speechiness: float
    loudness: float
    key: int
    mode: int
    time_signature: int

    @classmethod
    def from_payload(cls, payload: dict) -> "AudioFeatures":
        return cls(
            id=payload["id"],
            danceability=float(payload.get("danceability", 0.0)),
            energy=float(payload.get("energy", 0.0)),
            valence=float(payload.get("valence", 0.0)),
            tempo=float(payload.get("tempo", 0.0)),
            acousticness=float(payload.get("acousticness", 0.0)),
            instrumentalness=float(payload.get("instrumentalness", 0.0)),
            liveness=float(payload.get("liveness", 0.0)),
            speechiness=float(payload.get("speechiness", 0.0)),
            loudness=float(payload.get("loudness", 0.0)),
            key=int(payload.get("key", -1)),
            mode=int(payload.get("mode", 0)),
            time_signature=int(payload.get("time_signature", 4)),
        )


@dataclass
class RecentlyPlayedItem:
    track: Track
    played_at: str

    @classmethod
    def from_payload(cls, payload: dict) -> "RecentlyPlayedItem":
        return cls(track=Track.from_payload(payload["track"]), played_at=payload["played_at"])
