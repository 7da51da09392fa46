from __future__ import annotations

import httpx
import pytest

from grant.context import CallContext
from grant.errors import NetworkFailure, OperationCancelled
from grant.sca_client import ScaAccessClient

BASE_URL = "https://sca.example.test"


def make_client(handler, token="tok-123"):
    return ScaAccessClient(
        base_url=BASE_URL,
        token_provider=lambda: token,
        transport=httpx.MockTransport(handler),
    )


def test_list_eligibility_request_and_parse():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["version"] = request.headers.get("X-API-Version")
        return httpx.Response(
            200,
            json={
                "response": [
                    {
                        "organizationId": "o-1",
                        "workspaceId": "123456789012",
                        "workspaceName": "AWS Sandbox",
                        "workspaceType": "ACCOUNT",
                        "roleInfo": {"id": "arn:role/ReadOnly", "name": "ReadOnly"},
                    }
                ],
                "nextToken": None,
                "total": 1,
            },
        )

    resp = make_client(handler).list_eligibility(CallContext.with_timeout(5), "aws")

    assert seen == {
        "path": "/api/access/AWS/eligibility",
        "auth": "Bearer tok-123",
        "version": "2.0",
    }
    target = resp.response[0]
    assert (target.workspace_name, target.role_name, target.provider) == (
        "AWS Sandbox",
        "ReadOnly",
        None,
    )


def test_role_key_is_accepted_in_place_of_role_info():
    def handler(request):
        return httpx.Response(
            200,
            json={"response": [{"workspaceName": "Prod", "role": {"id": "r", "name": "Owner"}}]},
        )

    resp = make_client(handler).list_eligibility(CallContext.with_timeout(5), "azure")
    assert resp.response[0].role_name == "Owner"


def test_list_groups_eligibility():
    def handler(request):
        assert request.url.path == "/api/access/AZURE/eligibility/groups"
        return httpx.Response(
            200,
            json={
                "response": [
                    {"directoryId": "tenant-1", "groupId": "g-1", "groupName": "Engineering"}
                ],
                "total": 1,
            },
        )

    resp = make_client(handler).list_groups_eligibility(CallContext.with_timeout(5))
    assert [(g.directory_id, g.group_name) for g in resp.response] == [("tenant-1", "Engineering")]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="internal error"),
        httpx.Response(403, json={"message": "forbidden"}),
        httpx.Response(200, text="<html>"),
        httpx.Response(200, json={"response": 42}),
    ],
)
def test_bad_responses_are_network_failures(response):
    client = make_client(lambda request: response)
    with pytest.raises(NetworkFailure):
        client.list_eligibility(CallContext.with_timeout(5), "azure")


def test_transport_error_is_a_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkFailure):
        make_client(handler).list_eligibility(CallContext.with_timeout(5), "azure")


def test_missing_base_url(monkeypatch):
    monkeypatch.delenv("GRANT_SCA_URL", raising=False)
    client = ScaAccessClient(token_provider=lambda: "tok")
    with pytest.raises(NetworkFailure, match="GRANT_SCA_URL"):
        client.list_eligibility(CallContext.with_timeout(5), "azure")


def test_missing_token(monkeypatch):
    monkeypatch.delenv("GRANT_SCA_TOKEN", raising=False)
    client = ScaAccessClient(base_url=BASE_URL, transport=httpx.MockTransport(lambda r: None))
    with pytest.raises(NetworkFailure, match="GRANT_SCA_TOKEN"):
        client.list_eligibility(CallContext.with_timeout(5), "azure")


def test_cancelled_context_sends_nothing():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    ctx = CallContext()
    ctx.cancel()
    with pytest.raises(OperationCancelled):
        make_client(handler).list_eligibility(ctx, "azure")
    assert calls == []
