"""grant: saved elevation favorites and unified target selection.

``__version__`` comes from the installed distribution; a source checkout
without metadata reports a dev version instead of failing.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("grant-favorites")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"


def get_version() -> str:
    return __version__


__all__ = ["__version__", "get_version"]
