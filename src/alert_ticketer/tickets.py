"""
Azure DevOps work item backend.

Thin adapter over the Azure DevOps Work Item Tracking REST API: create a
work item for a firing alert, find open work items carrying an alert ID via
WIQL, update their description and close them once the alert resolves.
"""

import json
from typing import Any, Dict, List, Optional, Protocol

import httpx
import structlog

from .config import Config
from .exceptions import UpstreamError
from .models import TicketRef


logger = structlog.get_logger(__name__)

JSON_PATCH = "application/json-patch+json"


class TicketBackend(Protocol):
    """Work item operations used by the reconciler."""

    async def create_work_item(self, title: str, description: str) -> TicketRef: ...

    async def search_open_tickets(self, containing_text: str) -> List[TicketRef]: ...

    async def update_work_item(self, ticket: TicketRef, description: str) -> None: ...

    async def close_ticket(self, ticket: TicketRef, reason: str = "Resolved") -> None: ...


def wiql_literal(text: str) -> str:
    """Quote a string for use inside a WIQL query."""
    return "'" + text.replace("'", "''") + "'"


class AzureDevOpsBackend:
    """Work item backend talking to dev.azure.com with a personal access token."""

    def __init__(
        self,
        organization: str,
        project: str,
        personal_access_token: str,
        work_item_type: str = "Bug",
        api_version: str = "6.0",
        base_url: str = "https://dev.azure.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.organization = organization
        self.project = project
        self.work_item_type = work_item_type
        self.api_version = api_version
        self.client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/{organization}/{project}/_apis/wit",
            auth=httpx.BasicAuth("", personal_access_token),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None) -> "AzureDevOpsBackend":
        return cls(
            organization=config.ado_organization,
            project=config.ado_project,
            personal_access_token=config.pat,
            work_item_type=config.ado_work_item_type,
            api_version=config.ado_api_version,
            base_url=config.ado_base_url,
            timeout=config.http_timeout_seconds,
            transport=transport,
        )

    async def aclose(self):
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        body: Any,
        content_type: str = "application/json",
    ) -> Dict[str, Any]:
        try:
            response = await self.client.request(
                method,
                path,
                params={"api-version": self.api_version},
                content=json.dumps(body),
                headers={"Content-Type": content_type},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Azure DevOps request rejected",
                method=method,
                path=path,
                status_code=e.response.status_code,
                response_body=e.response.text[:500]
            )
            raise UpstreamError(
                "azure_devops",
                f"{method} {path} returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                "Azure DevOps request failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__
            )
            raise UpstreamError("azure_devops", f"{method} {path} failed: {e}") from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError("azure_devops", f"{method} {path} returned invalid JSON") from e

    async def create_work_item(self, title: str, description: str) -> TicketRef:
        operations = [
            {"op": "add", "path": "/fields/System.Title", "value": title},
            {"op": "add", "path": "/fields/System.Description", "value": description},
        ]
        data = await self._request("POST", f"workitems/${self.work_item_type}", operations, JSON_PATCH)
        if not isinstance(data.get("id"), int):
            raise UpstreamError("azure_devops", "Created work item response has no id")
        ticket = TicketRef(id=data["id"], url=data.get("url"))

        logger.info("Work item created", work_item_id=ticket.id, title=title)
        return ticket

    async def search_open_tickets(self, containing_text: str) -> List[TicketRef]:
        """Find work items in the project whose title contains the text and are not closed."""
        query = (
            "Select [System.Id] From WorkItems "
            "Where [System.TeamProject] = @project "
            f"And [System.Title] Contains {wiql_literal(containing_text)} "
            "And [System.State] <> 'Closed'"
        )
        data = await self._request("POST", "wiql", {"query": query})

        items = data.get("workItems") or []
        if any(not isinstance(item, dict) or not isinstance(item.get("id"), int) for item in items):
            raise UpstreamError("azure_devops", "WIQL response contains work items without an id")

        tickets = [TicketRef(id=item["id"], url=item.get("url")) for item in items]
        logger.info("Open work items found", containing_text=containing_text, count=len(tickets))
        return tickets

    async def update_work_item(self, ticket: TicketRef, description: str) -> None:
        operations = [
            {"op": "add", "path": "/fields/System.Description", "value": description},
        ]
        await self._request("PATCH", f"workitems/{ticket.id}", operations, JSON_PATCH)
        logger.info("Work item updated", work_item_id=ticket.id)

    async def close_ticket(self, ticket: TicketRef, reason: str = "Resolved") -> None:
        operations = [
            {"op": "add", "path": "/fields/System.State", "value": "Closed"},
            {"op": "add", "path": "/fields/System.Reason", "value": reason},
        ]
        await self._request("PATCH", f"workitems/{ticket.id}", operations, JSON_PATCH)
        logger.info("Work item closed", work_item_id=ticket.id, reason=reason)
