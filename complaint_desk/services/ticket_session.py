"""
Agent-facing ticket operations

TicketDetailSession pairs a TicketReconciler with a local draft projection.
The canonical ticket is only ever replaced by a fetch or by the response of
a confirmed mutation; local edits live in the draft until saved.

All operations return an OperationResult instead of raising, so callers
render `result.error` and never see a transport exception.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar, Union

from pydantic import ValidationError

from complaint_desk.lifecycle.reconciler import TicketReconciler
from complaint_desk.lifecycle.state_machine import Capabilities, ticket_capabilities
from complaint_desk.models.schemas import (
    TicketCreate,
    TicketCreateResponse,
    TicketResolve,
    TicketUpdate,
)
from complaint_desk.models.ticket import Ticket
from complaint_desk.services.errors import (
    ErrorKind,
    TicketClientError,
    TicketPreconditionError,
    TicketValidationError,
    validation_error_from,
)
from complaint_desk.services.ticket_client import TicketClient
from complaint_desk.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

NO_ACTIONS = Capabilities(can_edit_draft=False, can_resolve=False)


@dataclass
class OperationResult(Generic[T]):
    """Outcome of a user-initiated operation"""
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    field_errors: Dict[str, str] = field(default_factory=dict)
    requires_refresh: bool = False

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc: TicketClientError) -> "OperationResult[T]":
        return cls(
            ok=False,
            error=exc.message,
            kind=exc.kind,
            field_errors=getattr(exc, "field_errors", {}),
            requires_refresh=exc.requires_refresh,
        )


@dataclass(frozen=True)
class DraftEdits:
    """Locally edited response and notes, distinct from the canonical ticket"""
    final_response: str = ""
    agent_notes: str = ""

    @classmethod
    def from_ticket(cls, ticket: Ticket) -> "DraftEdits":
        return cls(
            final_response=ticket.final_response or ticket.ai_draft_response or "",
            agent_notes=ticket.agent_notes or "",
        )


async def submit_ticket(
    client: TicketClient,
    data: Union[TicketCreate, Dict[str, Any]]
) -> OperationResult[TicketCreateResponse]:
    """
    Create a ticket and report the outcome

    Args:
        client: Ticket client
        data: Intake fields

    Returns:
        Acknowledgment on success; on failure the message is surfaced verbatim
        and no ticket is assumed to exist
    """
    try:
        ack = await client.create_ticket(data)
    except TicketClientError as e:
        return OperationResult.failure(e)
    return OperationResult.success(ack)


class TicketDetailSession:
    """
    Detail view session for one ticket.

    Attributes:
        reconciler: Owns the canonical snapshot and the polling timer
        editing: Whether the agent is editing the draft
        resolving: True while a resolve request is outstanding
        error: Message of the last failed operation
    """

    def __init__(
        self,
        client: TicketClient,
        ticket_id: str,
        reconciler: Optional[TicketReconciler] = None,
        **reconciler_kwargs
    ):
        self.client = client
        self.ticket_id = ticket_id
        self.reconciler = reconciler or TicketReconciler(client, ticket_id, **reconciler_kwargs)
        self.editing = False
        self.resolving = False
        self.error: Optional[str] = None
        self._local_draft: Optional[DraftEdits] = None

    async def __aenter__(self) -> "TicketDetailSession":
        await self.reconciler.refresh()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.reconciler.close()

    @property
    def ticket(self) -> Optional[Ticket]:
        return self.reconciler.ticket

    @property
    def capabilities(self) -> Capabilities:
        if self.ticket is None:
            return NO_ACTIONS
        return ticket_capabilities(self.ticket)

    @property
    def draft(self) -> DraftEdits:
        """Local edits while editing, otherwise the canonical values"""
        if self.editing and self._local_draft is not None:
            return self._local_draft
        if self.ticket is None:
            return DraftEdits()
        return DraftEdits.from_ticket(self.ticket)

    async def refresh(self) -> OperationResult[Ticket]:
        """Manual refresh"""
        ticket = await self.reconciler.refresh()
        if self.reconciler.error is not None:
            return OperationResult(ok=False, error=self.reconciler.error, kind=self.reconciler.error_kind)
        return OperationResult.success(ticket)

    def begin_edit(self) -> bool:
        """Start editing the draft; False if the ticket cannot be edited"""
        if not self.capabilities.can_edit_draft:
            return False
        self._local_draft = self.draft
        self.editing = True
        return True

    def edit(
        self,
        final_response: Optional[str] = None,
        agent_notes: Optional[str] = None
    ) -> DraftEdits:
        """Change local draft fields; nothing is sent until save_draft()"""
        if not self.editing:
            raise RuntimeError("begin_edit() must be called before editing the draft")
        current = self.draft
        self._local_draft = DraftEdits(
            final_response=current.final_response if final_response is None else final_response,
            agent_notes=current.agent_notes if agent_notes is None else agent_notes,
        )
        return self._local_draft

    def cancel_edit(self) -> None:
        """Discard local edits"""
        self._local_draft = None
        self.editing = False

    async def save_draft(self) -> OperationResult[Ticket]:
        """
        Persist the local draft; the returned ticket replaces the canonical copy.

        Legal only while the ticket is processing or ready. Status never changes.
        """
        if self.ticket is None or not self.capabilities.can_edit_draft:
            return self._fail(self._not_allowed("edited"))

        draft = self.draft
        payload = TicketUpdate(final_response=draft.final_response, agent_notes=draft.agent_notes)
        try:
            updated = await self.client.update_ticket(self.ticket_id, payload)
        except TicketClientError as e:
            return await self._handle_failure(e)

        self.reconciler.apply(updated)
        self.cancel_edit()
        self.error = None
        logger.info(f"Saved draft of ticket {self.ticket_id}")
        return OperationResult.success(updated)

    async def resolve(
        self,
        resolved_by: str,
        final_response: Optional[str] = None,
        agent_notes: Optional[str] = None
    ) -> OperationResult[Ticket]:
        """
        Resolve the ticket with the current draft.

        A ticket that is not ready is refused first. Input is then validated
        and never reaches the network when invalid. The local status is never
        changed optimistically: the snapshot only becomes resolved when the
        Ticket Store confirms it.

        Args:
            resolved_by: Agent identity
            final_response: Response to send instead of the draft
            agent_notes: Notes to store instead of the draft notes

        Returns:
            Resolved ticket on success
        """
        if self.ticket is None or not self.capabilities.can_resolve:
            return self._fail(self._not_allowed("resolved"))

        draft = self.draft
        if final_response is None:
            final_response = draft.final_response
        if agent_notes is None:
            agent_notes = draft.agent_notes
        try:
            payload = TicketResolve(
                final_response=final_response,
                agent_notes=agent_notes or None,
                resolved_by=resolved_by,
            )
        except ValidationError as e:
            return self._fail(validation_error_from(e))

        if self.editing:
            return self._fail(TicketValidationError("Save or cancel your edits before resolving"))

        self.resolving = True
        try:
            resolved = await self.client.resolve_ticket(self.ticket_id, payload)
        except TicketClientError as e:
            return await self._handle_failure(e)
        finally:
            self.resolving = False

        self.reconciler.apply(resolved)
        self.error = None
        logger.info(f"Ticket {self.ticket_id} resolved by {resolved.resolved_by}")
        return OperationResult.success(resolved)

    def _not_allowed(self, action: str) -> TicketPreconditionError:
        status = self.ticket.status.value if self.ticket is not None else "unknown"
        return TicketPreconditionError(f"Ticket cannot be {action} while {status}")

    def _fail(self, exc: TicketClientError) -> OperationResult[Ticket]:
        self.error = exc.message
        return OperationResult.failure(exc)

    async def _handle_failure(self, exc: TicketClientError) -> OperationResult[Ticket]:
        result = self._fail(exc)
        if exc.requires_refresh:
            logger.warning(f"Ticket {self.ticket_id} changed on the server, re-fetching: {exc.message}")
            await self.reconciler.refresh()
        return result
