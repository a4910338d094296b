import asyncio
import base64
import json

import httpx
import pytest

from workitem_app.core.ado_client import AzureDevOpsAPI
from workitem_app.core.errors import AuthenticationMissing, TooManyResults, TransportError


def _api(handler, pat="secret-pat"):
    return AzureDevOpsAPI("contoso", pat, transport=httpx.MockTransport(handler))


async def _call(api, method, *args, **kwargs):
    async with api:
        return await getattr(api, method)(*args, **kwargs)


def test_wiql_request_and_auth_header():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"workItems": [{"id": 3}, {"id": 1}, {"id": 2}]})

    ids = asyncio.run(_call(_api(handler), "list_matching_identifiers", "Proj", "Team A", "Proj\\S1", ["Bug"]))
    assert ids == [3, 1, 2]
    assert seen["url"].startswith("https://dev.azure.com/contoso/Proj/Team%20A/_apis/wit/wiql")
    assert "api-version=7.0" in seen["url"]
    expected = "Basic " + base64.b64encode(b":secret-pat").decode()
    assert seen["auth"] == expected
    assert "[System.WorkItemType] IN ('Bug')" in seen["body"]["query"]


def test_too_many_results_is_reported_distinctly():
    def handler(request):
        return httpx.Response(
            400,
            json={"message": "VS403474: The query returned more than 20000 results."},
        )

    with pytest.raises(TooManyResults) as excinfo:
        asyncio.run(_call(_api(handler), "run_wiql", "Proj", "Team", "SELECT"))
    assert "Narrow" in excinfo.value.hint
    assert "VS403474" in excinfo.value.upstream_message


def test_server_error_becomes_transport_error():
    def handler(request):
        return httpx.Response(503, json={"message": "Service Unavailable"})

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(_call(_api(handler), "list_projects"))
    assert excinfo.value.status_code == 503
    assert excinfo.value.detail == {"message": "Service Unavailable"}


def test_network_failure_becomes_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        asyncio.run(_call(_api(handler), "list_projects"))


def test_missing_pat_fails_before_any_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(AuthenticationMissing):
        asyncio.run(_call(_api(handler, pat=""), "list_projects"))
    assert calls == []


def test_fetch_fields_posts_ids_and_fields():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"value": [{"id": 5, "fields": {"System.Id": 5}}]})

    items = asyncio.run(_call(_api(handler), "fetch_fields", [5], ["System.Id"], project="Proj"))
    assert items == [{"id": 5, "fields": {"System.Id": 5}}]
    assert "/Proj/_apis/wit/workitemsbatch" in seen["url"]
    assert seen["body"] == {"ids": [5], "fields": ["System.Id"]}


def test_fetch_fields_rejects_more_than_200_ids():
    api = _api(lambda request: httpx.Response(200, json={"value": []}))
    with pytest.raises(ValueError):
        asyncio.run(_call(api, "fetch_fields", list(range(201)), ["System.Id"]))


def test_revision_history_follows_pages():
    total = 205

    def handler(request):
        skip = int(request.url.params["$skip"])
        top = int(request.url.params["$top"])
        page = [
            {
                "rev": n + 1,
                "fields": {
                    "System.State": "Active" if n else "New",
                    "System.ChangedDate": f"2024-01-01T00:{n // 60:02d}:{n % 60:02d}Z",
                },
            }
            for n in range(skip, min(skip + top, total))
        ]
        return httpx.Response(200, json={"count": len(page), "value": page})

    history = asyncio.run(_call(_api(handler), "fetch_revision_history", 77, "Proj"))
    assert history.identity.id == 77
    assert len(history) == total
    assert [r.rev for r in history.revisions] == list(range(1, total + 1))
    assert history.revisions[0].state == "New"


def test_work_item_types_are_names():
    def handler(request):
        return httpx.Response(200, json={"value": [{"name": "Bug"}, {"name": "Task"}, {}]})

    assert asyncio.run(_call(_api(handler), "list_work_item_types", "Proj")) == ["Bug", "Task"]


def test_non_object_body_becomes_transport_error():
    def handler(request):
        return httpx.Response(200, json=[])

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(_call(_api(handler), "fetch_revision_history", 2, "Proj"))
    assert excinfo.value.status_code == 200
