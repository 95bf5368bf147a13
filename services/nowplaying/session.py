"""
Session lifecycle for the now-playing frame.

    UNAUTHENTICATED --redirect fragment with access_token--> AUTHENTICATED
    UNAUTHENTICATED --stored token found on mount---------> AUTHENTICATED
    AUTHENTICATED   --fetch outcome Expired---------------> UNAUTHENTICATED
    AUTHENTICATED   --manual refresh----------------------> AUTHENTICATED

AUTHENTICATING is the stretch between gaining a token and the first fetch
for it resolving.

All view-state changes go through _apply(), which runs synchronously on the
event loop, so concurrent fetches only interleave at their HTTP awaits.
Every fetch gets a sequence number; an outcome older than the last one
applied is dropped, so a slow stale fetch cannot overwrite a fresher one.
"""

import asyncio
import enum
import logging
import urllib.parse

from framelib.config import cfg
from nowplaying.fetch import Playing, RecentlyPlayed, Expired
from nowplaying.models import PlaybackState, ViewState

log = logging.getLogger('frame-nowplaying')

DEFAULT_LOGIN_URL = "/api/spotify/login"


class SessionState(enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class Location:
    """The visible page address fragment (the part after '#')."""

    def __init__(self, fragment=""):
        self.fragment = fragment or ""
        self.cleared = False

    def clear_fragment(self):
        self.fragment = ""
        self.cleared = True


def parse_fragment(fragment):
    """Extract access_token from a query-string encoded fragment, or None."""
    if not fragment:
        return None
    params = urllib.parse.parse_qs(fragment.lstrip("#"))
    values = params.get("access_token")
    return values[0] if values and values[0] else None


class SessionController:
    """Owns the view-state and drives the fetcher from the session triggers."""

    def __init__(self, store, fetcher, login_url=None):
        self.store = store
        self.fetcher = fetcher
        self.login_url = login_url or cfg("frame", "login_url", default=DEFAULT_LOGIN_URL)
        self._playback = PlaybackState()
        self._is_loading = False
        self._is_authenticated = False
        self._awaiting_first_fetch = False
        self._seq = 0          # last fetch started
        self._applied_seq = 0  # last fetch whose outcome was applied
        self._listeners = []

    # ── View ──

    @property
    def view(self) -> ViewState:
        return ViewState(
            playback=self._playback,
            is_loading=self._is_loading,
            is_authenticated=self._is_authenticated,
        )

    @property
    def state(self) -> SessionState:
        if not self._is_authenticated:
            return SessionState.UNAUTHENTICATED
        if self._awaiting_first_fetch:
            return SessionState.AUTHENTICATING
        return SessionState.AUTHENTICATED

    def add_listener(self, callback):
        """Register callback(view) — called after every view change."""
        self._listeners.append(callback)

    def _notify(self):
        view = self.view
        for callback in self._listeners:
            try:
                callback(view)
            except Exception:
                log.exception("View listener failed")

    # ── Triggers ──

    async def mount(self, location=None):
        """Run the load-time checks.  Both may fire and both may fetch."""
        triggers = [self._check_stored()]
        if location is not None:
            triggers.append(self.handle_redirect(location))
        await asyncio.gather(*triggers)

    async def _check_stored(self):
        if not self.store.read():
            log.info("No stored Spotify token — showing connect card")
            return
        log.info("Stored Spotify token found")
        await self.refresh()

    async def handle_redirect(self, location) -> bool:
        """Pick up a freshly granted token from the OAuth redirect fragment."""
        token = parse_fragment(location.fragment)
        if not token:
            return False
        self.store.write(token)
        log.info("Access token received from redirect (%s...)", token[:6])
        self._authenticate()
        location.clear_fragment()
        await self.refresh()
        return True

    def connect(self) -> str:
        """URL that starts the OAuth authorization redirect."""
        return self.login_url

    async def refresh(self):
        """Fetch now-playing for the stored token.  No token → no-op."""
        token = self.store.read()
        if not token:
            log.debug("Refresh skipped — no stored token")
            return None
        self._authenticate()

        self._seq += 1
        seq = self._seq
        self._is_loading = True
        self._notify()
        try:
            outcome = await self.fetcher.fetch(token)
            self._apply(seq, token, outcome)
            return outcome
        finally:
            # A newer fetch owns the loading flag now
            if seq == self._seq:
                self._is_loading = False
                self._notify()

    # ── State updates ──

    def _authenticate(self):
        if not self._is_authenticated:
            self._awaiting_first_fetch = True
        self._is_authenticated = True
        self._notify()

    def _apply(self, seq, token, outcome):
        if seq < self._applied_seq:
            log.info("Dropping stale %s (fetch #%d, already applied #%d)",
                     type(outcome).__name__, seq, self._applied_seq)
            return
        self._applied_seq = seq
        self._awaiting_first_fetch = False

        if isinstance(outcome, Playing):
            self._playback = PlaybackState(outcome.track, outcome.is_playing)
            log.info("Now playing: %s — %s", outcome.track.artist_line, outcome.track.name)
        elif isinstance(outcome, RecentlyPlayed):
            self._playback = PlaybackState(outcome.track, False)
            log.info("Last played: %s — %s", outcome.track.artist_line, outcome.track.name)
        elif isinstance(outcome, Expired):
            if self.store.read() != token:
                log.info("Ignoring expiry of a token that was already replaced")
                return
            self.store.clear()
            self._is_authenticated = False
            log.info("Spotify token expired — reconnect required")
        else:
            log.debug("Fetch #%d left playback unchanged (%s)", seq, outcome)
            return
        self._notify()
