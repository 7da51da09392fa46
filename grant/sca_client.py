"""
HTTP client for the access service's eligibility endpoints.

Authentication is handled elsewhere: the client is given a callable that
returns a bearer token and asks for it only when a request is made.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Optional

import httpx
from pydantic import ValidationError

from grant.config import API_TIMEOUT_SECONDS
from grant.context import CallContext
from grant.errors import NetworkFailure
from grant.models import GROUPS_PROVIDER, EligibilityResponse, GroupsEligibilityResponse

logger = logging.getLogger("grant.sca")

BASE_URL_ENV_VAR = "GRANT_SCA_URL"
TOKEN_ENV_VAR = "GRANT_SCA_TOKEN"
API_VERSION = "2.0"


def token_from_env() -> str:
    token = os.environ.get(TOKEN_ENV_VAR, "").strip()
    if not token:
        raise NetworkFailure(f"no access token available; set {TOKEN_ENV_VAR}", "authentication")
    return token


class ScaAccessClient:
    """Lists cloud and group eligibility from the access service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Callable[[], str] = token_from_env,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url if base_url is not None else os.environ.get(BASE_URL_ENV_VAR, "")
        self.token_provider = token_provider
        self.transport = transport
        self._client: Optional[httpx.Client] = None
        self._lock = threading.Lock()

    def _http(self) -> httpx.Client:
        # Provider queries run on worker threads; build the client once.
        with self._lock:
            if self._client is None:
                if not self.base_url:
                    raise NetworkFailure(
                        f"access service URL not configured; set {BASE_URL_ENV_VAR}",
                        "configuration",
                    )
                self._client = httpx.Client(
                    base_url=self.base_url,
                    headers={"X-API-Version": API_VERSION},
                    transport=self.transport,
                )
            return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _get(self, ctx: CallContext, route: str, operation: str) -> dict:
        ctx.check(operation)
        remaining = ctx.remaining()
        timeout = API_TIMEOUT_SECONDS if remaining is None else min(API_TIMEOUT_SECONDS, remaining)
        headers = {"Authorization": f"Bearer {self.token_provider()}"}

        logger.debug("GET %s", route)
        try:
            resp = self._http().get(route, headers=headers, timeout=timeout)
        except httpx.HTTPError as e:
            raise NetworkFailure(f"{operation} request failed: {e}", operation) from e

        if resp.status_code >= 400:
            raise NetworkFailure(
                f"{operation} request failed with status {resp.status_code}: {resp.text}",
                operation,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise NetworkFailure(f"failed to decode {operation} response: {e}", operation) from e

    def list_eligibility(self, ctx: CallContext, provider: str) -> EligibilityResponse:
        operation = f"{provider.lower()} eligibility"
        data = self._get(ctx, f"/api/access/{provider.upper()}/eligibility", operation)
        try:
            return EligibilityResponse.model_validate(data)
        except ValidationError as e:
            raise NetworkFailure(f"failed to decode {operation} response: {e}", operation) from e

    def list_groups_eligibility(self, ctx: CallContext) -> GroupsEligibilityResponse:
        operation = "groups eligibility"
        data = self._get(
            ctx, f"/api/access/{GROUPS_PROVIDER.upper()}/eligibility/groups", operation
        )
        try:
            return GroupsEligibilityResponse.model_validate(data)
        except ValidationError as e:
            raise NetworkFailure(f"failed to decode {operation} response: {e}", operation) from e
