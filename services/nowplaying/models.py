"""Track and view-state values shared by the fetcher, session and card."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Track:
    id: str
    name: str
    artists: tuple[str, ...] = ()
    album: str = ""
    images: tuple[str, ...] = ()
    url: str = ""

    @classmethod
    def from_api(cls, item: dict) -> "Track":
        """Build a Track from a Spotify Web API track object.

        Raises ValueError when the payload is not a track object.
        """
        if not isinstance(item, dict) or not item.get("id") or not item.get("name"):
            raise ValueError("not a Spotify track object")
        album = item.get("album") or {}
        return cls(
            id=item["id"],
            name=item["name"],
            artists=tuple(a["name"] for a in item.get("artists") or [] if a.get("name")),
            album=album.get("name", ""),
            images=tuple(img["url"] for img in album.get("images") or [] if img.get("url")),
            url=(item.get("external_urls") or {}).get("spotify", ""),
        )

    @property
    def artist_line(self) -> str:
        return ", ".join(self.artists)

    @property
    def cover_url(self) -> str | None:
        return self.images[0] if self.images else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "artists": list(self.artists),
            "album": self.album,
            "images": list(self.images),
            "url": self.url,
        }


@dataclass(frozen=True)
class PlaybackState:
    track: Track | None = None
    is_playing: bool = False


@dataclass(frozen=True)
class ViewState:
    playback: PlaybackState = field(default_factory=PlaybackState)
    is_loading: bool = False
    is_authenticated: bool = False

    @property
    def track(self) -> Track | None:
        return self.playback.track

    @property
    def is_playing(self) -> bool:
        return self.playback.is_playing

    def to_dict(self) -> dict:
        return {
            "track": self.track.to_dict() if self.track else None,
            "is_playing": self.is_playing,
            "is_loading": self.is_loading,
            "is_authenticated": self.is_authenticated,
        }
