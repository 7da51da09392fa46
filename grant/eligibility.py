"""
Eligibility aggregation.

Collects the cloud targets and directory groups the current identity may
elevate into. Cloud targets for several providers are fetched side by side
and merged best-effort: a provider that fails or runs out of time is left
out of the result and recorded in ``EligibilityFetch.failures``.
"""

from __future__ import annotations

import logging
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from grant.context import POLL_INTERVAL, CallContext, run_in_context, spawn
from grant.errors import InvalidArguments, NetworkFailure, OperationCancelled
from grant.models import (
    GROUPS_PROVIDER,
    SUPPORTED_PROVIDERS,
    EligibilityResponse,
    EligibleCloudTarget,
    EligibleGroupTarget,
    GroupsEligibilityResponse,
)

logger = logging.getLogger("grant.eligibility")

DIRECTORY_WORKSPACE = "DIRECTORY"


class EligibilityLister(Protocol):
    def list_eligibility(self, ctx: CallContext, provider: str) -> EligibilityResponse: ...


class GroupsEligibilityLister(Protocol):
    def list_groups_eligibility(self, ctx: CallContext) -> GroupsEligibilityResponse: ...


@dataclass
class EligibilityFetch:
    """Merged cloud targets plus the providers whose query failed."""

    targets: List[EligibleCloudTarget] = field(default_factory=list)
    failures: Dict[str, Exception] = field(default_factory=dict)

    @property
    def failed_providers(self) -> List[str]:
        return list(self.failures)


def directory_name_map(targets: Iterable[EligibleCloudTarget]) -> Dict[str, str]:
    """Map directory ids to display names using cloud eligibility entries.

    DIRECTORY workspaces win; otherwise an organization id maps to the
    first workspace name seen for it.
    """
    targets = list(targets)
    names: Dict[str, str] = {}
    for t in targets:
        if t.workspace_type.upper() == DIRECTORY_WORKSPACE and t.workspace_name:
            names[t.workspace_id] = t.workspace_name
    for t in targets:
        if t.organization_id and t.workspace_name and t.organization_id not in names:
            names[t.organization_id] = t.workspace_name
    return names


class EligibilityAggregator:
    """Fetches cloud and group candidates through the injected listers."""

    def __init__(
        self,
        cloud: EligibilityLister,
        groups: Optional[GroupsEligibilityLister] = None,
        providers: Sequence[str] = SUPPORTED_PROVIDERS,
    ):
        self.cloud = cloud
        self.groups = groups
        self.providers = tuple(p.lower() for p in providers)

    @property
    def has_groups(self) -> bool:
        return self.groups is not None

    def fetch_cloud_targets(
        self, ctx: CallContext, provider: Optional[str] = None
    ) -> EligibilityFetch:
        """
        Fetch eligible cloud targets.

        Args:
            ctx: Deadline/cancellation for the whole fetch
            provider: Only query this provider. When omitted every supported
                provider is queried and each target is tagged with its provider.

        Raises:
            InvalidArguments: ``provider`` is not supported
            NetworkFailure: the single requested provider could not be queried
        """
        if provider:
            return self._fetch_single(ctx, provider.lower())
        return self._fetch_all(ctx)

    def _fetch_single(self, ctx: CallContext, provider: str) -> EligibilityFetch:
        if provider not in self.providers:
            raise InvalidArguments(
                f"provider {provider!r} is not supported, supported providers: "
                + ", ".join(self.providers)
            )
        operation = f"{provider} eligibility"
        try:
            resp = run_in_context(ctx, lambda: self.cloud.list_eligibility(ctx, provider), operation)
        except OperationCancelled:
            raise
        except Exception as e:
            raise NetworkFailure(f"failed to fetch eligible {provider} targets: {e}", operation) from e

        logger.info("Fetched %d %s target(s)", len(resp.response), provider)
        return EligibilityFetch(targets=list(resp.response))

    def _fetch_all(self, ctx: CallContext) -> EligibilityFetch:
        ctx.check("cloud eligibility")
        fetch = EligibilityFetch()

        futures = {
            p: spawn(self.cloud.list_eligibility, ctx, p, name=f"grant-eligibility-{p}")
            for p in self.providers
        }
        pending = set(futures.values())
        while pending and not ctx.done:
            remaining = ctx.remaining()
            step = POLL_INTERVAL if remaining is None else min(POLL_INTERVAL, remaining)
            _, pending = wait_futures(pending, timeout=step)

        for provider, future in futures.items():
            if not future.done():
                fetch.failures[provider] = OperationCancelled(
                    "eligibility query did not finish in time", f"{provider} eligibility"
                )
                logger.info("%s eligibility query abandoned: context ended", provider)
                continue
            exc = future.exception()
            if exc is not None:
                fetch.failures[provider] = exc
                logger.info("%s eligibility query failed: %s", provider, exc)
                continue
            resp = future.result()
            fetch.targets.extend(
                t.model_copy(update={"provider": provider}) for t in resp.response
            )

        if not fetch.targets and fetch.failures and ctx.done:
            ctx.check("cloud eligibility")
        logger.info(
            "Fetched %d cloud target(s) across %d provider(s), %d failed",
            len(fetch.targets),
            len(self.providers),
            len(fetch.failures),
        )
        return fetch

    def fetch_group_targets(
        self,
        ctx: CallContext,
        cloud_pool: Optional[Sequence[EligibleCloudTarget]] = None,
    ) -> List[EligibleGroupTarget]:
        """
        Fetch eligible directory groups and resolve their directory names.

        Args:
            ctx: Deadline/cancellation for the fetch
            cloud_pool: Already fetched, provider-tagged cloud targets to
                resolve directory names from. When omitted the groups
                provider's cloud eligibility is queried (best-effort).

        Raises:
            NetworkFailure: groups listing unavailable or failed
        """
        operation = "groups eligibility"
        if self.groups is None:
            raise NetworkFailure("groups eligibility listing not available", operation)
        try:
            resp = run_in_context(ctx, lambda: self.groups.list_groups_eligibility(ctx), operation)
        except OperationCancelled:
            raise
        except Exception as e:
            raise NetworkFailure(f"failed to fetch eligible groups: {e}", operation) from e

        names = self._resolve_directory_names(ctx, cloud_pool)
        groups = [
            g.model_copy(update={"directory_name": names[g.directory_id]})
            if g.directory_id in names
            else g
            for g in resp.response
        ]
        logger.info("Fetched %d group(s)", len(groups))
        return groups

    def _resolve_directory_names(
        self, ctx: CallContext, cloud_pool: Optional[Sequence[EligibleCloudTarget]]
    ) -> Dict[str, str]:
        if cloud_pool is not None:
            return directory_name_map(t for t in cloud_pool if t.provider == GROUPS_PROVIDER)
        if ctx.done:
            return {}
        try:
            resp = run_in_context(
                ctx,
                lambda: self.cloud.list_eligibility(ctx, GROUPS_PROVIDER),
                "directory names",
            )
        except Exception as e:
            logger.info("Failed to resolve directory names: %s", e)
            return {}
        return directory_name_map(resp.response)
