from __future__ import annotations

import os
import re
from datetime import timedelta
from pathlib import Path

CONFIG_ENV_VAR = "GRANT_CONFIG"
CONFIG_DIR_NAME = ".grant"
CONFIG_FILENAME = "config.yaml"
CACHE_DIR_NAME = "cache"

DEFAULT_CACHE_TTL = timedelta(hours=4)
API_TIMEOUT_SECONDS = 30.0

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(h|m|s)")


def get_config_dir() -> Path:
    return Path.home() / CONFIG_DIR_NAME


def get_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return get_config_dir() / CONFIG_FILENAME


def get_cache_dir() -> Path:
    return get_config_dir() / CACHE_DIR_NAME


def parse_cache_ttl(value: str | None) -> timedelta:
    """Parse a duration such as ``4h``, ``30m`` or ``1h30m``.

    Empty or unparseable values fall back to ``DEFAULT_CACHE_TTL``.
    """
    text = (value or "").strip().lower()
    if not text:
        return DEFAULT_CACHE_TTL

    pos = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            return DEFAULT_CACHE_TTL
        amount, unit = float(match.group(1)), match.group(2)
        seconds += amount * {"h": 3600, "m": 60, "s": 1}[unit]
        pos = match.end()
    if pos != len(text):
        return DEFAULT_CACHE_TTL
    return timedelta(seconds=seconds)
