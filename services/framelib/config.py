"""
Shared configuration loader for frame services.

Loads a single JSON config file.  Search order:
  1. $NOWPLAYING_CONFIG_DIR/config.json  (default /etc/frame-nowplaying)
  2. config.json                         (CWD — handy for local dev)
  3. ../../config/default.json           (repo fallback)

Usage:
    from framelib.config import cfg

    api_base  = cfg("spotify", "api_base", default="https://api.spotify.com/v1")
    ready_url = cfg("frame", "ready_url")
    frame     = cfg("frame")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

CONFIG_DIR = os.getenv("NOWPLAYING_CONFIG_DIR", "/etc/frame-nowplaying")

_config: dict | None = None

_SEARCH_PATHS = [
    os.path.join(CONFIG_DIR, "config.json"),
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _SEARCH_PATHS:
        try:
            with open(path) as f:
                data = json.load(f)
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue
        if not isinstance(data, dict):
            logger.error("Config in %s is not a JSON object — skipping", path)
            continue
        _config = data
        logger.info("Config loaded from %s", path)
        _validate(_config)
        return _config

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def _validate(config: dict):
    """Log warnings for sections the now-playing frame relies on."""
    if "spotify" not in config:
        logger.warning("Config missing 'spotify' section — using default API base")
    frame = config.get("frame")
    if frame is not None and not isinstance(frame, dict):
        logger.warning("Config 'frame' should be an object, got %s",
                       type(frame).__name__)


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("frame")                       → config["frame"]
    cfg("frame", "port")               → config["frame"]["port"]
    cfg("spotify", "timeout", default=10)  → config["spotify"]["timeout"] or 10
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
