"""
Single-slot storage for the Spotify access token.

The token arrives from the implicit OAuth redirect and is used exactly as
received — there is no refresh token and no expiry bookkeeping.  When the
API rejects it, the session clears the slot.

FileCredentialStore keeps the token in a JSON file.  Writes are atomic
(temp file + rename) so a crash mid-write never corrupts.

Storage locations (first match wins):
  1. explicit path / config credentials.path
  2. $NOWPLAYING_CONFIG_DIR/spotify_token.json   (production)
  3. <package_dir>/spotify_token.json             (dev fallback)
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone

from framelib.config import CONFIG_DIR, cfg

log = logging.getLogger('frame-nowplaying')

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))

STORE_PATHS = [
    os.path.join(CONFIG_DIR, "spotify_token.json"),
    os.path.join(SCRIPT_DIR, "spotify_token.json"),
]


def _find_store_path():
    """Find the best token store path (configured, first existing, or first writable)."""
    configured = cfg("credentials", "path")
    if configured:
        return configured
    for path in STORE_PATHS:
        if os.path.exists(path):
            return path
    for path in STORE_PATHS:
        d = os.path.dirname(path)
        if os.path.isdir(d) and os.access(d, os.W_OK):
            return path
    return STORE_PATHS[-1]


class CredentialStore:
    """One persisted access-token slot with get/set/clear semantics."""

    def read(self) -> str | None:
        raise NotImplementedError

    def write(self, token: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    @property
    def is_authenticated(self) -> bool:
        return self.read() is not None


class MemoryCredentialStore(CredentialStore):
    """In-process slot — for tests and embedding without a filesystem."""

    def __init__(self, token=None):
        self._token = token or None

    def read(self):
        return self._token

    def write(self, token):
        if not token:
            raise ValueError("refusing to store an empty token")
        self._token = token

    def clear(self):
        self._token = None


class FileCredentialStore(CredentialStore):
    """Slot persisted as {"access_token", "updated_at"} in a JSON file."""

    def __init__(self, path=None):
        self.path = path or _find_store_path()

    def read(self):
        try:
            with open(self.path) as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            log.warning("Unreadable token file %s: %s", self.path, e)
            return None
        token = data.get("access_token") if isinstance(data, dict) else None
        return token if isinstance(token, str) and token else None

    def write(self, token):
        if not token:
            raise ValueError("refusing to store an empty token")
        data = {
            "access_token": token,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

        d = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(d, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=d, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(tmp, self.path)
        except Exception:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise
        log.info("Access token saved to %s", self.path)

    def clear(self):
        try:
            os.unlink(self.path)
            log.info("Deleted token file: %s", self.path)
        except FileNotFoundError:
            pass
