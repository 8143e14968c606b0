"""
Pytest configuration and fixtures

Provides an in-process Ticket Store double served through
httpx.MockTransport, ticket factories, and a manually driven sleep so
reconciler timer ticks are deterministic.
"""
import asyncio
import json
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from complaint_desk.models.ticket import Ticket
from complaint_desk.services.ticket_client import TicketClient

BASE_URL = "http://testserver"
CREATED_AT = "2024-05-01T09:30:00Z"
RESOLVED_AT = "2024-05-01T10:15:00Z"
DRAFT_RESPONSE = "We apologize for the double charge. A refund has been requested."


def build_ticket_payload(ticket_id: str = "t-1", status: str = "pending", **overrides) -> Dict[str, Any]:
    """Ticket JSON as the Ticket Store returns it, consistent for the given status"""
    payload: Dict[str, Any] = {
        "id": ticket_id,
        "title": "Refund not received",
        "description": "I was charged twice for order #123 and need a refund.",
        "customer_email": "a@b.com",
        "customer_name": None,
        "category": None,
        "sentiment_score": None,
        "urgency": None,
        "ai_draft_response": None,
        "final_response": None,
        "agent_notes": None,
        "resolved_by": None,
        "resolved_at": None,
        "status": status,
        "error_message": None,
        "processing_attempts": 0,
        "created_at": CREATED_AT,
        "updated_at": CREATED_AT,
    }

    if status in ("processing", "ready", "resolved", "failed"):
        payload["processing_attempts"] = 1
    if status in ("ready", "resolved"):
        payload.update({
            "category": "billing",
            "sentiment_score": 3,
            "urgency": "high",
            "ai_draft_response": DRAFT_RESPONSE,
        })
    if status == "resolved":
        payload.update({
            "final_response": "Refund issued.",
            "resolved_by": "agent1",
            "resolved_at": RESOLVED_AT,
            "updated_at": RESOLVED_AT,
        })
    if status == "failed":
        payload.update({
            "error_message": "AI analysis timed out",
            "processing_attempts": 3,
        })

    payload.update(overrides)
    return payload


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FakeTicketStore:
    """
    In-memory Ticket Store implementing the REST contract.

    Resolve and update reject illegal states with HTTP 400 like the real
    backend. `fail_with` lets a test force the next responses.
    """

    TICKET_PATH = re.compile(r"^/api/tickets/([^/]+)(/resolve)?$")

    def __init__(self):
        self.tickets: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.queued_failures: List[Any] = []
        self._next_id = 1
        self.transport = httpx.MockTransport(self.handle)

    def add(self, ticket_id: Optional[str] = None, status: str = "pending", **fields) -> Dict[str, Any]:
        ticket_id = ticket_id or self._new_id()
        self.tickets[ticket_id] = build_ticket_payload(ticket_id, status, **fields)
        return self.tickets[ticket_id]

    def advance(self, ticket_id: str, status: str, **fields) -> Dict[str, Any]:
        """Simulate the AI collaborator moving a ticket to a new status"""
        ticket = build_ticket_payload(ticket_id, status, **{
            key: self.tickets[ticket_id][key]
            for key in ("title", "description", "customer_email", "customer_name", "created_at")
        })
        ticket.update(fields)
        ticket["updated_at"] = _now()
        self.tickets[ticket_id] = ticket
        return ticket

    def fail_with(self, failure: Any):
        """Queue a Response (or exception) returned for the next request"""
        self.queued_failures.append(failure)

    def calls(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)

    def _new_id(self) -> str:
        ticket_id = f"t-{self._next_id}"
        self._next_id += 1
        return ticket_id

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.queued_failures:
            failure = self.queued_failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return failure

        path = request.url.path
        if path == "/api/tickets/stats/summary" and request.method == "GET":
            return httpx.Response(200, json=self._stats())
        if path == "/api/tickets/":
            if request.method == "POST":
                return self._create(json.loads(request.content))
            if request.method == "GET":
                return self._list(request.url.params)

        match = self.TICKET_PATH.match(path)
        if not match:
            return httpx.Response(404, json={"detail": "Not Found"})

        ticket_id, resolve = match.groups()
        ticket = self.tickets.get(ticket_id)
        if ticket is None:
            return httpx.Response(404, json={"detail": "Ticket not found"})

        if resolve and request.method == "POST":
            return self._resolve(ticket, json.loads(request.content))
        if request.method == "GET":
            return httpx.Response(200, json=ticket)
        if request.method == "PATCH":
            return self._update(ticket, json.loads(request.content))
        if request.method == "DELETE":
            del self.tickets[ticket_id]
            return httpx.Response(204)
        return httpx.Response(405, json={"detail": "Method Not Allowed"})

    def _create(self, body: Dict[str, Any]) -> httpx.Response:
        ticket = self.add(
            title=body["title"],
            description=body["description"],
            customer_email=body["customer_email"],
            customer_name=body.get("customer_name"),
        )
        return httpx.Response(201, json={
            "id": ticket["id"],
            "status": "pending",
            "message": "Ticket created successfully. AI analysis in progress.",
        })

    def _list(self, params) -> httpx.Response:
        items = list(self.tickets.values())
        for key in ("status", "urgency", "category"):
            if key in params:
                items = [t for t in items if t[key] == params[key]]
        total = len(items)
        offset = int(params.get("offset", 0))
        limit = int(params.get("limit", 50))
        return httpx.Response(200, json={"total": total, "items": items[offset:offset + limit]})

    def _update(self, ticket: Dict[str, Any], body: Dict[str, Any]) -> httpx.Response:
        if ticket["status"] == "resolved":
            return httpx.Response(400, json={"detail": "Cannot update a resolved ticket"})
        for key in ("final_response", "agent_notes"):
            if key in body:
                ticket[key] = body[key]
        ticket["updated_at"] = _now()
        return httpx.Response(200, json=ticket)

    def _resolve(self, ticket: Dict[str, Any], body: Dict[str, Any]) -> httpx.Response:
        if ticket["status"] != "ready":
            return httpx.Response(400, json={
                "detail": f"Ticket must be in 'ready' status to resolve (current: {ticket['status']})"
            })
        now = _now()
        ticket.update({
            "status": "resolved",
            "final_response": body["final_response"],
            "agent_notes": body.get("agent_notes", ticket["agent_notes"]),
            "resolved_by": body["resolved_by"],
            "resolved_at": now,
            "updated_at": now,
        })
        return httpx.Response(200, json=ticket)

    def _stats(self) -> Dict[str, Any]:
        by_status = {s: 0 for s in ("pending", "processing", "ready", "resolved", "failed")}
        by_urgency = {u: 0 for u in ("high", "medium", "low")}
        for ticket in self.tickets.values():
            by_status[ticket["status"]] += 1
            if ticket["urgency"]:
                by_urgency[ticket["urgency"]] += 1
        return {"total": len(self.tickets), "by_status": by_status, "by_urgency": by_urgency}


class ManualTicker:
    """
    Replacement for asyncio.sleep whose sleeps only end when tick() is called.
    """

    def __init__(self):
        self._waiters: List[asyncio.Future] = []
        self.intervals: List[float] = []

    async def sleep(self, interval: float) -> None:
        self.intervals.append(interval)
        future = asyncio.get_running_loop().create_future()
        self._waiters.append(future)
        try:
            await future
        finally:
            if future in self._waiters:
                self._waiters.remove(future)

    @property
    def pending(self) -> int:
        """Number of sleeps currently waiting for a tick"""
        return sum(1 for f in self._waiters if not f.done())

    async def tick(self) -> None:
        """End every pending sleep and let the woken tasks run to their next wait"""
        for future in list(self._waiters):
            if not future.done():
                future.set_result(None)
        await settle()


async def settle(rounds: int = 20) -> None:
    """Give scheduled tasks a chance to run"""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def ticket_payload() -> Callable[..., Dict[str, Any]]:
    """Factory for raw ticket JSON"""
    return build_ticket_payload


@pytest.fixture
def make_ticket() -> Callable[..., Ticket]:
    """Factory for parsed Ticket models"""
    def _make(ticket_id: str = "t-1", status: str = "pending", **overrides) -> Ticket:
        return Ticket.model_validate(build_ticket_payload(ticket_id, status, **overrides))
    return _make


@pytest.fixture
def store() -> FakeTicketStore:
    return FakeTicketStore()


@pytest.fixture
def client(store: FakeTicketStore) -> TicketClient:
    """TicketClient wired to the in-memory store, without retries"""
    return TicketClient(base_url=BASE_URL, timeout=10.0, max_retries=1, transport=store.transport)


@pytest.fixture
def ticker() -> ManualTicker:
    return ManualTicker()


@pytest.fixture
def settle_loop():
    return settle
