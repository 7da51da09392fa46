"""Tests for multi-provider eligibility aggregation."""

from __future__ import annotations

import threading

import pytest

from fakes import FakeLister, cloud_target, group_target
from grant.context import CallContext
from grant.eligibility import EligibilityAggregator, directory_name_map
from grant.errors import InvalidArguments, NetworkFailure, OperationCancelled


def test_all_providers_tagged_and_merged(prod_lister):
    agg = EligibilityAggregator(prod_lister, prod_lister)
    fetch = agg.fetch_cloud_targets(CallContext.with_timeout(5))

    assert sorted(prod_lister.calls) == ["aws", "azure"]
    assert fetch.failures == {}
    assert {(t.workspace_name, t.provider) for t in fetch.targets} == {
        ("Prod-EastUS", "azure"),
        ("Contoso", "azure"),
        ("AWS Sandbox", "aws"),
    }


def test_failing_provider_is_left_out():
    lister = FakeLister(
        cloud={"azure": [cloud_target("Prod")]},
        errors={"aws": RuntimeError("credentials expired")},
    )
    fetch = EligibilityAggregator(lister).fetch_cloud_targets(CallContext.with_timeout(5))

    assert [t.workspace_name for t in fetch.targets] == ["Prod"]
    assert fetch.failed_providers == ["aws"]
    assert "credentials expired" in str(fetch.failures["aws"])


def test_every_provider_failing_returns_empty_result():
    lister = FakeLister(errors={"azure": RuntimeError("a"), "aws": RuntimeError("b")})
    fetch = EligibilityAggregator(lister).fetch_cloud_targets(CallContext.with_timeout(5))
    assert fetch.targets == []
    assert sorted(fetch.failed_providers) == ["aws", "azure"]


def test_slow_provider_abandoned_at_deadline():
    release = threading.Event()
    lister = FakeLister(
        cloud={"azure": [cloud_target("Prod")], "aws": [cloud_target("Late")]},
        block={"aws": release},
    )
    try:
        fetch = EligibilityAggregator(lister).fetch_cloud_targets(CallContext.with_timeout(0.3))
    finally:
        release.set()

    assert [t.workspace_name for t in fetch.targets] == ["Prod"]
    assert isinstance(fetch.failures["aws"], OperationCancelled)


def test_abandoned_query_does_not_outlive_fetch():
    lister = FakeLister(
        cloud={"azure": [cloud_target("Prod")]},
        block={"aws": threading.Event()},
    )

    EligibilityAggregator(lister).fetch_cloud_targets(CallContext.with_timeout(0.2))
    workers = [t for t in threading.enumerate() if t.name.startswith("grant-eligibility-")]

    assert all(t.daemon for t in workers)
    for t in workers:
        t.join(timeout=1)
    assert [t.name for t in workers if t.is_alive()] == []


def test_nothing_finished_before_deadline_raises():
    release = threading.Event()
    lister = FakeLister(block={"azure": release, "aws": release})
    try:
        with pytest.raises(OperationCancelled):
            EligibilityAggregator(lister).fetch_cloud_targets(CallContext.with_timeout(0.2))
    finally:
        release.set()


def test_cancelled_context_makes_no_calls():
    lister = FakeLister(cloud={"azure": [cloud_target("Prod")]})
    ctx = CallContext()
    ctx.cancel()
    with pytest.raises(OperationCancelled):
        EligibilityAggregator(lister).fetch_cloud_targets(ctx)
    assert lister.calls == []


def test_single_provider_is_not_tagged(prod_lister):
    fetch = EligibilityAggregator(prod_lister).fetch_cloud_targets(
        CallContext.with_timeout(5), "AWS"
    )
    assert prod_lister.calls == ["aws"]
    assert [(t.workspace_name, t.provider) for t in fetch.targets] == [("AWS Sandbox", None)]


def test_single_provider_failure_is_a_network_failure():
    lister = FakeLister(errors={"aws": RuntimeError("boom")})
    with pytest.raises(NetworkFailure) as exc_info:
        EligibilityAggregator(lister).fetch_cloud_targets(CallContext.with_timeout(5), "aws")
    assert "failed to fetch eligible aws targets" in exc_info.value.message


def test_unsupported_provider_rejected_before_any_call():
    lister = FakeLister()
    with pytest.raises(InvalidArguments):
        EligibilityAggregator(lister).fetch_cloud_targets(CallContext.with_timeout(5), "gcp")
    assert lister.calls == []


def test_directory_name_map_prefers_directory_workspaces():
    targets = [
        cloud_target("Prod", organization_id="tenant-1"),
        cloud_target("Contoso", "Reader", "directory", workspace_id="tenant-1"),
        cloud_target("Fabrikam Sub", organization_id="tenant-2"),
    ]
    assert directory_name_map(targets) == {"tenant-1": "Contoso", "tenant-2": "Fabrikam Sub"}


def test_groups_named_from_cloud_pool(prod_lister):
    agg = EligibilityAggregator(prod_lister, prod_lister)
    ctx = CallContext.with_timeout(5)
    pool = agg.fetch_cloud_targets(ctx).targets
    calls_before = list(prod_lister.calls)

    groups = agg.fetch_group_targets(ctx, cloud_pool=pool)

    assert [(g.group_name, g.directory_name) for g in groups] == [("Engineering", "Contoso")]
    assert prod_lister.calls == calls_before


def test_groups_named_from_best_effort_lookup(prod_lister):
    groups = EligibilityAggregator(prod_lister, prod_lister).fetch_group_targets(
        CallContext.with_timeout(5)
    )
    assert prod_lister.calls == ["azure"]
    assert groups[0].directory_name == "Contoso"


def test_group_names_unresolved_when_lookup_fails():
    lister = FakeLister(
        groups=[group_target("Engineering")], errors={"azure": RuntimeError("nope")}
    )
    groups = EligibilityAggregator(lister, lister).fetch_group_targets(CallContext.with_timeout(5))
    assert [(g.group_name, g.directory_name) for g in groups] == [("Engineering", None)]


def test_groups_without_lister_or_with_failure():
    lister = FakeLister(groups_error=RuntimeError("forbidden"))
    with pytest.raises(NetworkFailure):
        EligibilityAggregator(lister).fetch_group_targets(CallContext.with_timeout(5))
    with pytest.raises(NetworkFailure):
        EligibilityAggregator(lister, lister).fetch_group_targets(CallContext.with_timeout(5))
