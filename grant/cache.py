"""
Eligibility cache.

Eligibility changes rarely, so responses are kept on disk for a TTL and
reused across commands. Reads are best-effort: a missing, expired or
unreadable entry is simply a miss.
"""

from __future__ import annotations

import json
import logging
import os
import time
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from grant.context import CallContext
from grant.eligibility import EligibilityLister, GroupsEligibilityLister
from grant.errors import NetworkFailure
from grant.models import GROUPS_PROVIDER, EligibilityResponse, GroupsEligibilityResponse

logger = logging.getLogger("grant.cache")

M = TypeVar("M", bound=BaseModel)


class CacheStore:
    """One JSON file per key: ``{"cached_at": <epoch>, "response": ...}``."""

    def __init__(
        self,
        cache_dir: Path,
        ttl: timedelta,
        now: Callable[[], float] = time.time,
    ):
        self.cache_dir = cache_dir
        self.ttl = ttl
        self.now = now

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        try:
            entry = json.loads(self._path(key).read_text(encoding="utf-8"))
            cached_at = float(entry["cached_at"])
        except (OSError, ValueError, KeyError, TypeError):
            return None
        if self.now() - cached_at > self.ttl.total_seconds():
            return None
        return entry.get("response")

    def set(self, key: str, value: Any) -> None:
        self.cache_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps({"cached_at": self.now(), "response": value}), encoding="utf-8")
        os.chmod(tmp, 0o600)
        os.replace(tmp, path)

    def invalidate(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass


def eligibility_cache_key(provider: str) -> str:
    return f"eligibility_{provider.lower()}"


def groups_eligibility_cache_key(provider: str = GROUPS_PROVIDER) -> str:
    return f"groups_eligibility_{provider.lower()}"


class CachedEligibilityLister:
    """Caching decorator for the cloud and groups eligibility listers.

    With ``refresh`` the cache is not read, but fresh responses are still
    written back.
    """

    def __init__(
        self,
        cloud_inner: EligibilityLister,
        groups_inner: Optional[GroupsEligibilityLister],
        store: CacheStore,
        refresh: bool = False,
    ):
        self.cloud_inner = cloud_inner
        self.groups_inner = groups_inner
        self.store = store
        self.refresh = refresh

    def list_eligibility(self, ctx: CallContext, provider: str) -> EligibilityResponse:
        key = eligibility_cache_key(provider)
        if self.refresh:
            logger.info("Cache refresh requested for %s eligibility, bypassing cache", provider)
        else:
            resp = self._cached(key, EligibilityResponse)
            if resp is not None:
                logger.info("Cache hit for %s eligibility (%d targets)", provider, len(resp.response))
                return resp
            logger.info("Cache miss for %s eligibility, fetching from API", provider)

        resp = self.cloud_inner.list_eligibility(ctx, provider)
        self._write(key, resp.model_dump(by_alias=True, exclude_none=True), len(resp.response))
        return resp

    def list_groups_eligibility(self, ctx: CallContext) -> GroupsEligibilityResponse:
        if self.groups_inner is None:
            raise NetworkFailure("groups eligibility listing not available", "groups eligibility")

        key = groups_eligibility_cache_key()
        if self.refresh:
            logger.info("Cache refresh requested for groups eligibility, bypassing cache")
        else:
            resp = self._cached(key, GroupsEligibilityResponse)
            if resp is not None:
                logger.info("Cache hit for groups eligibility (%d groups)", len(resp.response))
                return resp
            logger.info("Cache miss for groups eligibility, fetching from API")

        resp = self.groups_inner.list_groups_eligibility(ctx)
        self._write(key, resp.model_dump(by_alias=True, exclude_none=True), len(resp.response))
        return resp

    def _cached(self, key: str, model: Type[M]) -> Optional[M]:
        cached = self.store.get(key)
        if cached is None:
            return None
        try:
            return model.model_validate(cached)
        except ValidationError:
            logger.info("Ignoring unreadable cache entry %s", key)
            return None

    def _write(self, key: str, payload: Any, count: int) -> None:
        try:
            self.store.set(key, payload)
        except OSError as e:
            logger.info("Cache write failed for %s: %s", key, e)
        else:
            logger.info("Cached %s (%d entries)", key, count)
