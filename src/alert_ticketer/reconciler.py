"""
Alert lifecycle reconciliation.

Turns one webhook payload into the matching side effects: resolve the stable
alert ID, then either notify and open (or refresh) a work item while the alert
is firing, or close every open work item once it resolves.
"""

import asyncio
from enum import Enum
from typing import List

import structlog

from .exceptions import AlertValidationError
from .models import (
    AlertEvent,
    CloseRequest,
    ReconcileAction,
    ReconcileOutcome,
    TicketRef,
    WebhookPayload,
    WorkItemRequest,
)
from .notifier import NotificationSink
from .store import IdentityStore
from .tickets import TicketBackend
from .transform import derive_message, derive_title, render_email_html


logger = structlog.get_logger(__name__)


class TicketPolicy(str, Enum):
    """How a firing alert maps onto work items."""
    ALWAYS_CREATE = "always_create"
    REUSE_OPEN = "reuse_open"


def parse_event(payload: WebhookPayload) -> AlertEvent:
    """
    Validate a webhook payload and extract the alert event.

    Raises:
        AlertValidationError: Title or message missing, or no alert key derivable
    """
    if not payload.title or not payload.message:
        raise AlertValidationError("Invalid payload: title and message are required")

    key = payload.alert_key
    if not key:
        raise AlertValidationError("No unique alert key found in payload")

    return AlertEvent(
        key=key,
        status=payload.effective_status,
        title=payload.title,
        raw_message=payload.message,
        summary=payload.summary,
    )


class LifecycleReconciler:
    """Decides and performs notify / create / update / close for alert events."""

    def __init__(
        self,
        store: IdentityStore,
        notifier: NotificationSink,
        tickets: TicketBackend,
        recipients: List[str],
        from_address: str,
        footer_text: str = "",
        logo_url: str | None = None,
        policy: TicketPolicy = TicketPolicy.ALWAYS_CREATE,
    ):
        self.store = store
        self.notifier = notifier
        self.tickets = tickets
        self.recipients = recipients
        self.from_address = from_address
        self.footer_text = footer_text
        self.logo_url = logo_url
        self.policy = TicketPolicy(policy)

    async def handle(self, payload: WebhookPayload) -> ReconcileOutcome:
        """Process one webhook payload end to end."""
        event = parse_event(payload)
        # File writes run off the event loop; the store serializes allocations itself
        alert_id = await asyncio.to_thread(self.store.resolve_or_allocate, event.key)

        log = logger.bind(alert_id=alert_id, alert_key=event.key, status=event.status)
        log.info("Alert identity resolved")

        if event.is_resolved:
            closed = await self.close(CloseRequest(alert_id=alert_id))
            return ReconcileOutcome(
                alert_id=alert_id,
                action=ReconcileAction.TICKETS_CLOSED,
                tickets=closed,
            )

        title = derive_title(event.title)
        message = derive_message(event.raw_message, event.status, event.summary)

        await self.notify(alert_id, title, message)
        log.info("Alert notification sent")

        request = WorkItemRequest(title=f"{alert_id} - {title}", description=message)
        action, ticket = await self.create_or_update(alert_id, request)
        return ReconcileOutcome(
            alert_id=alert_id,
            action=action,
            tickets=[ticket],
            notified=True,
        )

    async def notify(self, alert_id: str, title: str, message: str):
        html_body = render_email_html(alert_id, title, message, self.footer_text, self.logo_url)
        await self.notifier.send(self.recipients, self.from_address, title, html_body)

    async def create_or_update(self, alert_id: str, request: WorkItemRequest) -> tuple[ReconcileAction, TicketRef]:
        """Create a work item, or refresh an open one under the reuse policy."""
        if self.policy == TicketPolicy.REUSE_OPEN:
            existing = await self.tickets.search_open_tickets(alert_id)
            if existing:
                ticket = existing[0]
                await self.tickets.update_work_item(ticket, request.description)
                logger.info("Reused open work item", alert_id=alert_id, work_item_id=ticket.id)
                return ReconcileAction.TICKET_UPDATED, ticket

        ticket = await self.tickets.create_work_item(request.title, request.description)
        logger.info("Created work item", alert_id=alert_id, work_item_id=ticket.id)
        return ReconcileAction.TICKET_CREATED, ticket

    async def close(self, request: CloseRequest) -> List[TicketRef]:
        """Close every open work item whose title contains the alert ID."""
        open_tickets = await self.tickets.search_open_tickets(request.alert_id)
        if not open_tickets:
            logger.info("No open work items found", alert_id=request.alert_id)
            return []

        for ticket in open_tickets:
            await self.tickets.close_ticket(ticket, request.reason)
            logger.info("Closed work item", alert_id=request.alert_id, work_item_id=ticket.id)

        return open_tickets
