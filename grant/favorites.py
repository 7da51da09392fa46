"""
Favorites Module

Persists named elevation favorites and the default settings they rely on.
Only ``load`` and ``save`` touch the filesystem; every other operation is
an in-memory transform of a ``Config``.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from pydantic import ValidationError

from grant.config import get_config_path
from grant.errors import AlreadyExists, NotFound, PersistenceFailure
from grant.models import FALLBACK_PROVIDER, Config, Favorite

logger = logging.getLogger("grant.favorites")


class FavoriteStore:
    """Loads, saves and edits the favorites configuration document."""

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize the store

        Args:
            config_file: Path to the YAML config. Defaults to $GRANT_CONFIG or ~/.grant/config.yaml
        """
        self.config_file = config_file if config_file is not None else get_config_path()

    def load(self) -> Config:
        """Read the config file. A missing file yields an empty Config."""
        if not self.config_file.exists():
            logger.debug("No config at %s, using defaults", self.config_file)
            return Config()

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceFailure(
                f"failed to read config {self.config_file}: {e}", str(self.config_file)
            ) from e

        if not isinstance(data, dict):
            raise PersistenceFailure(
                f"config {self.config_file} is not a mapping", str(self.config_file)
            )

        try:
            config = Config.model_validate(data)
        except ValidationError as e:
            raise PersistenceFailure(
                f"invalid config {self.config_file}: {e}", str(self.config_file)
            ) from e

        logger.debug("Loaded %d favorite(s) from %s", len(config.favorites), self.config_file)
        return config

    def save(self, config: Config) -> None:
        """Rewrite the whole file atomically (temp file + rename)."""
        path = self.config_file
        payload = yaml.safe_dump(config.to_dict(), sort_keys=False, allow_unicode=True)

        tmp_name = None
        try:
            path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceFailure(f"failed to save config {path}: {e}", str(path)) from e

        logger.debug("Saved %d favorite(s) to %s", len(config.favorites), path)

    def get(self, config: Config, name: str) -> Favorite:
        try:
            return config.favorites[name]
        except KeyError:
            raise NotFound(f"favorite {name!r} not found", name) from None

    def exists(self, config: Config, name: str) -> bool:
        return name in config.favorites

    def add(self, config: Config, name: str, favorite: Favorite) -> None:
        """
        Insert a favorite under ``name``. Caller must still ``save``.

        Raises:
            AlreadyExists: ``name`` is already a key
        """
        if name in config.favorites:
            raise AlreadyExists(name)
        if not favorite.provider:
            favorite = favorite.model_copy(update={"provider": FALLBACK_PROVIDER})
        config.favorites[name] = favorite

    def remove(self, config: Config, name: str) -> None:
        if name not in config.favorites:
            raise NotFound(f"favorite {name!r} not found", name)
        del config.favorites[name]

    def list(self, config: Config) -> List[Tuple[str, Favorite]]:
        """All favorites sorted by name (plain code point order)."""
        return sorted(config.favorites.items(), key=lambda item: item[0])
