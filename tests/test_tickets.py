"""
Tests for the Azure DevOps work item backend against a mocked transport.
"""

import base64
import json

import httpx
import pytest

from alert_ticketer.exceptions import UpstreamError
from alert_ticketer.models import TicketRef
from alert_ticketer.tickets import AzureDevOpsBackend, wiql_literal


class Recorder:
    """httpx handler returning canned responses and recording requests."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def backend_for(recorder) -> AzureDevOpsBackend:
    return AzureDevOpsBackend(
        organization="TICMPL",
        project="Training",
        personal_access_token="secret-pat",
        transport=httpx.MockTransport(recorder),
    )


def test_wiql_literal_escapes_quotes():
    assert wiql_literal("ALR-SWF-101") == "'ALR-SWF-101'"
    assert wiql_literal("it's") == "'it''s'"


@pytest.mark.asyncio
async def test_create_work_item():
    recorder = Recorder([httpx.Response(200, json={"id": 42, "url": "https://dev.azure.com/x/42"})])
    backend = backend_for(recorder)

    ticket = await backend.create_work_item("ALR-SWF-101 - Lag", "<strong>body</strong>")

    assert ticket == TicketRef(id=42, url="https://dev.azure.com/x/42")

    request = recorder.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/TICMPL/Training/_apis/wit/workitems/$Bug"
    assert request.url.params["api-version"] == "6.0"
    assert request.headers["Content-Type"] == "application/json-patch+json"
    expected_auth = base64.b64encode(b":secret-pat").decode()
    assert request.headers["Authorization"] == f"Basic {expected_auth}"
    assert json.loads(request.content) == [
        {"op": "add", "path": "/fields/System.Title", "value": "ALR-SWF-101 - Lag"},
        {"op": "add", "path": "/fields/System.Description", "value": "<strong>body</strong>"},
    ]
    await backend.aclose()


@pytest.mark.asyncio
async def test_search_open_tickets():
    recorder = Recorder([
        httpx.Response(200, json={"workItems": [{"id": 7, "url": "u7"}, {"id": 9, "url": "u9"}]})
    ])
    backend = backend_for(recorder)

    tickets = await backend.search_open_tickets("ALR-SWF-101")

    assert [ticket.id for ticket in tickets] == [7, 9]

    request = recorder.requests[0]
    assert request.url.path == "/TICMPL/Training/_apis/wit/wiql"
    query = json.loads(request.content)["query"]
    assert "[System.Title] Contains 'ALR-SWF-101'" in query
    assert "[System.State] <> 'Closed'" in query


@pytest.mark.asyncio
async def test_search_without_matches():
    backend = backend_for(Recorder([httpx.Response(200, json={"workItems": []})]))

    assert await backend.search_open_tickets("ALR-SWF-101") == []


@pytest.mark.asyncio
async def test_close_ticket():
    recorder = Recorder([httpx.Response(200, json={"id": 7})])
    backend = backend_for(recorder)

    await backend.close_ticket(TicketRef(id=7))

    request = recorder.requests[0]
    assert request.method == "PATCH"
    assert request.url.path == "/TICMPL/Training/_apis/wit/workitems/7"
    assert json.loads(request.content) == [
        {"op": "add", "path": "/fields/System.State", "value": "Closed"},
        {"op": "add", "path": "/fields/System.Reason", "value": "Resolved"},
    ]


@pytest.mark.asyncio
async def test_update_work_item():
    recorder = Recorder([httpx.Response(200, json={"id": 7})])
    backend = backend_for(recorder)

    await backend.update_work_item(TicketRef(id=7), "new body")

    assert json.loads(recorder.requests[0].content) == [
        {"op": "add", "path": "/fields/System.Description", "value": "new body"},
    ]


@pytest.mark.asyncio
async def test_authentication_failure_is_upstream_error():
    backend = backend_for(Recorder([httpx.Response(401, text="Unauthorized")]))

    with pytest.raises(UpstreamError) as exc_info:
        await backend.create_work_item("t", "d")

    assert exc_info.value.service == "azure_devops"
    assert "401" in str(exc_info.value)


@pytest.mark.asyncio
async def test_network_failure_is_upstream_error():
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    backend = AzureDevOpsBackend("TICMPL", "Training", "pat", transport=httpx.MockTransport(unreachable))

    with pytest.raises(UpstreamError):
        await backend.search_open_tickets("ALR-SWF-101")


@pytest.mark.asyncio
async def test_create_response_without_id_is_upstream_error():
    backend = backend_for(Recorder([httpx.Response(200, json={"fields": {}})]))

    with pytest.raises(UpstreamError, match="no id"):
        await backend.create_work_item("t", "d")


@pytest.mark.asyncio
async def test_search_items_without_id_are_upstream_error():
    backend = backend_for(Recorder([httpx.Response(200, json={"workItems": [{"url": "u7"}]})]))

    with pytest.raises(UpstreamError):
        await backend.search_open_tickets("ALR-SWF-101")
