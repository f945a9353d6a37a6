"""
Pytest configuration and shared fixtures.

Provides:
- Webhook payloads as sent by Grafana alerting
- A file-backed identity store in a temporary directory
- In-memory fakes for the email sink and the work item backend
"""

from typing import Any, Dict, List

import pytest

from alert_ticketer.exceptions import UpstreamError
from alert_ticketer.models import TicketRef
from alert_ticketer.reconciler import LifecycleReconciler, TicketPolicy
from alert_ticketer.store import IdentityStore


# ============================================================================
# Collaborator fakes
# ============================================================================

class FakeNotifier:
    """Records every send; optionally fails."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Dict[str, Any]] = []

    async def send(self, to_recipients, from_address, subject, html_body):
        if self.fail:
            raise UpstreamError("email", "SMTP connection refused")
        self.sent.append({
            "to": list(to_recipients),
            "from": from_address,
            "subject": subject,
            "html": html_body,
        })


class FakeTicketBackend:
    """In-memory work item tracker keyed by work item ID."""

    def __init__(self, fail_create: bool = False):
        self.fail_create = fail_create
        self.items: Dict[int, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self._next_id = 1

    def add_open_item(self, title: str, description: str = "") -> TicketRef:
        ticket_id = self._next_id
        self._next_id += 1
        self.items[ticket_id] = {"title": title, "description": description, "state": "New", "reason": None}
        return TicketRef(id=ticket_id)

    async def create_work_item(self, title, description):
        self.calls.append(("create", title))
        if self.fail_create:
            raise UpstreamError("azure_devops", "POST workitems/$Bug returned 401")
        return self.add_open_item(title, description)

    async def search_open_tickets(self, containing_text):
        self.calls.append(("search", containing_text))
        return [
            TicketRef(id=ticket_id)
            for ticket_id, item in self.items.items()
            if containing_text in item["title"] and item["state"] != "Closed"
        ]

    async def update_work_item(self, ticket, description):
        self.calls.append(("update", ticket.id))
        self.items[ticket.id]["description"] = description

    async def close_ticket(self, ticket, reason="Resolved"):
        self.calls.append(("close", ticket.id))
        self.items[ticket.id]["state"] = "Closed"
        self.items[ticket.id]["reason"] = reason

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]


# ============================================================================
# Component fixtures
# ============================================================================

@pytest.fixture
def state_dir(tmp_path):
    return tmp_path / "state"


@pytest.fixture
def store(state_dir) -> IdentityStore:
    return IdentityStore(state_dir / "alertIdCounter.json", state_dir / "alertMapping.json")


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def tickets() -> FakeTicketBackend:
    return FakeTicketBackend()


@pytest.fixture
def reconciler(store, notifier, tickets) -> LifecycleReconciler:
    return LifecycleReconciler(
        store=store,
        notifier=notifier,
        tickets=tickets,
        recipients=["oncall@example.com", "team@example.com"],
        from_address="alerts@example.com",
        footer_text="This Alert is Generated By Software Factory Team",
        policy=TicketPolicy.ALWAYS_CREATE,
    )


# ============================================================================
# Payload fixtures
# ============================================================================

@pytest.fixture
def firing_payload() -> Dict[str, Any]:
    """Grafana webhook for a firing consumer-lag alert."""
    return {
        "receiver": "software-factory",
        "status": "firing",
        "groupKey": "{}/{}:{alertname=\"Queue backlog high\"}",
        "title": "[FIRING:1] Queue backlog high (env=prod)",
        "message": (
            "**Firing**\n\n"
            "Value: B=1234 Messages_behind=1234\n"
            "Labels:\n - alertname = Queue backlog high\n - env = prod\n"
            "Annotations:\n - summary = Consumer group is lagging\n"
        ),
        "commonAnnotations": {"summary": "Consumer group is lagging"},
        "alerts": [
            {"status": "firing", "fingerprint": "f3a9c2d1e0b4"},
        ],
    }


@pytest.fixture
def resolved_payload(firing_payload) -> Dict[str, Any]:
    payload = dict(firing_payload)
    payload["status"] = "resolved"
    payload["title"] = "[RESOLVED] Queue backlog high (env=prod)"
    payload["alerts"] = [{"status": "resolved", "fingerprint": "f3a9c2d1e0b4"}]
    return payload
