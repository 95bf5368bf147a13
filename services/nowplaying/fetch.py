"""
Now-playing retrieval against the Spotify Web API.

One fetch is at most two sequential calls:

    GET /me/player/currently-playing
        200 → Playing (item may be null → Empty)
        204 → nothing active, fall back to
              GET /me/player/recently-played?limit=1
              (any non-200 here → Empty)
        401 → Expired

Every other status, transport error or malformed payload is a
TransientFailure.  Outcomes are returned, never raised, and nothing is
retried — a retry is always a manual refresh.
"""

import asyncio
import logging
from dataclasses import dataclass

import aiohttp

from framelib.config import cfg
from nowplaying.models import Track

log = logging.getLogger('frame-nowplaying')

SPOTIFY_API = "https://api.spotify.com/v1"
DEFAULT_TIMEOUT = 10


@dataclass(frozen=True)
class Playing:
    track: Track
    is_playing: bool = True


@dataclass(frozen=True)
class RecentlyPlayed:
    track: Track


@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class Expired:
    pass


@dataclass(frozen=True)
class TransientFailure:
    reason: str = ""


class NowPlayingFetcher:
    """Runs the currently-playing / recently-played protocol for one token."""

    def __init__(self, session, api_base=None, timeout=None):
        self.session = session
        self.api_base = (api_base or cfg("spotify", "api_base", default=SPOTIFY_API)).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(
            total=timeout or cfg("spotify", "timeout", default=DEFAULT_TIMEOUT))

    async def fetch(self, token):
        try:
            return await self._fetch(token)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning("Spotify request failed: %s", e)
            return TransientFailure(f"network: {e}")
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            log.warning("Malformed Spotify payload: %s", e)
            return TransientFailure(f"payload: {e}")

    async def _fetch(self, token):
        headers = {"Authorization": f"Bearer {token}"}

        async with self.session.get(f"{self.api_base}/me/player/currently-playing",
                                    headers=headers, timeout=self.timeout) as resp:
            status = resp.status
            if status == 200:
                data = await resp.json()
            elif status not in (204, 401):
                return await self._unexpected("currently-playing", resp)

        # 204 must be checked before the generic success branch
        if status == 204:
            return await self._recently_played(headers)
        if status == 401:
            log.info("Spotify rejected the access token (401)")
            return Expired()
        item = data.get("item")
        if not item:
            return Empty()
        return Playing(Track.from_api(item), bool(data.get("is_playing", True)))

    async def _recently_played(self, headers):
        async with self.session.get(f"{self.api_base}/me/player/recently-played",
                                    params={"limit": "1"},
                                    headers=headers, timeout=self.timeout) as resp:
            if resp.status == 200:
                data = await resp.json()
                items = data.get("items") or []
                if not items or not items[0].get("track"):
                    return Empty()
                return RecentlyPlayed(Track.from_api(items[0]["track"]))
            # expiry is decided by the first call only
            body = await resp.text()
            log.warning("Spotify GET recently-played -> %d: %s", resp.status, body[:200])
            return Empty()

    async def _unexpected(self, what, resp):
        body = await resp.text()
        log.warning("Spotify GET %s -> %d: %s", what, resp.status, body[:200])
        return TransientFailure(f"{what}: HTTP {resp.status}")
