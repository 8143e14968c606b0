"""
Ticket lifecycle state machine

pending -> processing -> ready -> resolved, with failed reachable from
processing and a backend retry path failed -> processing. The client only
issues two state-affecting mutations: draft edits (no status change) and
resolve (ready -> resolved). Every other transition is observed.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from complaint_desk.models.ticket import Ticket, TicketStatus
from complaint_desk.utils.logger import get_logger

logger = get_logger(__name__)


class Caller(str, Enum):
    """Who is allowed to cause a transition"""
    CLIENT = "client"
    BACKEND = "backend"


@dataclass(frozen=True)
class Transition:
    source: Optional[TicketStatus]
    target: TicketStatus
    trigger: str
    caller: Caller


TRANSITIONS: Tuple[Transition, ...] = (
    Transition(None, TicketStatus.PENDING, "ticket created", Caller.CLIENT),
    Transition(TicketStatus.PENDING, TicketStatus.PROCESSING, "analysis starts", Caller.BACKEND),
    Transition(TicketStatus.PROCESSING, TicketStatus.READY, "analysis succeeds", Caller.BACKEND),
    Transition(TicketStatus.PROCESSING, TicketStatus.FAILED, "analysis exhausts retries", Caller.BACKEND),
    Transition(TicketStatus.FAILED, TicketStatus.PROCESSING, "retry scheduled", Caller.BACKEND),
    Transition(TicketStatus.READY, TicketStatus.RESOLVED, "agent resolves", Caller.CLIENT),
)

_TRANSITION_INDEX: Dict[Tuple[Optional[TicketStatus], TicketStatus], Transition] = {
    (t.source, t.target): t for t in TRANSITIONS
}

POLLING_ELIGIBLE: FrozenSet[TicketStatus] = frozenset(
    {TicketStatus.PENDING, TicketStatus.PROCESSING}
)
TERMINAL_STATUSES: FrozenSet[TicketStatus] = frozenset(
    {TicketStatus.RESOLVED, TicketStatus.FAILED}
)
EDITABLE_STATUSES: FrozenSet[TicketStatus] = frozenset(
    {TicketStatus.PROCESSING, TicketStatus.READY}
)

StatusLike = Union[TicketStatus, str]


def _as_status(status: StatusLike) -> TicketStatus:
    return status if isinstance(status, TicketStatus) else TicketStatus(status)


def find_transition(
    source: Optional[StatusLike],
    target: StatusLike
) -> Optional[Transition]:
    """Look up a transition in the table, None if it is not allowed"""
    key = (_as_status(source) if source is not None else None, _as_status(target))
    return _TRANSITION_INDEX.get(key)


def is_valid_transition(source: Optional[StatusLike], target: StatusLike) -> bool:
    """
    Check whether a status change is allowed.

    Observing the same status twice is not a transition and is always valid.
    """
    if source is not None and _as_status(source) == _as_status(target):
        return True
    return find_transition(source, target) is not None


def is_polling_eligible(status: Optional[StatusLike]) -> bool:
    """True for statuses the backend may still change on its own"""
    return status is not None and _as_status(status) in POLLING_ELIGIBLE


@dataclass(frozen=True)
class Capabilities:
    """Client-issued mutations allowed in a given state"""
    can_edit_draft: bool
    can_resolve: bool


def capabilities(status: StatusLike) -> Capabilities:
    """
    Derive allowed client mutations from status alone.

    Draft edits are legal while processing or ready; resolve only while ready.
    """
    status = _as_status(status)
    return Capabilities(
        can_edit_draft=status in EDITABLE_STATUSES,
        can_resolve=find_transition(status, TicketStatus.RESOLVED) is not None,
    )


def invariant_violations(ticket: Ticket) -> List[str]:
    """
    List the entity invariants a ticket snapshot breaks.

    Args:
        ticket: Snapshot returned by the Ticket Store

    Returns:
        Human-readable violation descriptions, empty when consistent
    """
    violations = []

    if ticket.status == TicketStatus.READY and ticket.ai_draft_response is None:
        violations.append("ready ticket has no AI draft response")

    if ticket.status == TicketStatus.RESOLVED:
        missing = [
            name for name in ("final_response", "resolved_by", "resolved_at")
            if getattr(ticket, name) is None
        ]
        if missing:
            violations.append(f"resolved ticket is missing {', '.join(missing)}")
    elif ticket.resolved_by is not None or ticket.resolved_at is not None:
        violations.append(f"{ticket.status.value} ticket carries resolution stamps")

    if ticket.status == TicketStatus.FAILED:
        if ticket.error_message is None:
            violations.append("failed ticket has no error message")
        if ticket.processing_attempts < 1:
            violations.append("failed ticket has no processing attempts")

    if ticket.updated_at < ticket.created_at:
        violations.append("updated_at precedes created_at")

    return violations


def ticket_capabilities(ticket: Ticket) -> Capabilities:
    """
    Capabilities for a concrete snapshot.

    Starts from capabilities(status) and withholds every action when the
    snapshot breaks an invariant, so an inconsistent ticket is never offered
    for editing or resolution.
    """
    violations = invariant_violations(ticket)
    if violations:
        logger.warning(f"Ticket {ticket.id} violates invariants: {'; '.join(violations)}")
        return Capabilities(can_edit_draft=False, can_resolve=False)
    return capabilities(ticket.status)


def check_observed_transition(
    ticket_id: str,
    previous: Optional[StatusLike],
    current: StatusLike
) -> bool:
    """
    Validate a transition seen between two fetches.

    The backend is authoritative, so an unexpected change is logged rather
    than rejected. Polling may skip intermediate states (pending -> ready
    between two ticks), which is reported at info level.

    Returns:
        True if the change matches the transition table
    """
    # First observation, nothing to compare against
    if previous is None or is_valid_transition(previous, current):
        return True

    previous_status = _as_status(previous)
    current_status = _as_status(current)

    if previous_status == TicketStatus.RESOLVED:
        logger.warning(
            f"Ticket {ticket_id} left terminal status resolved -> {current_status.value}"
        )
    elif _reachable(previous_status, current_status):
        logger.info(
            f"Ticket {ticket_id} moved {previous_status.value} -> {current_status.value} "
            f"across intermediate states"
        )
    else:
        logger.warning(
            f"Ticket {ticket_id} made unexpected transition "
            f"{previous_status.value} -> {current_status.value}"
        )
    return False


def _reachable(source: TicketStatus, target: TicketStatus) -> bool:
    seen = {source}
    frontier = [source]
    while frontier:
        node = frontier.pop()
        for t in TRANSITIONS:
            if t.source == node and t.target not in seen:
                if t.target == target:
                    return True
                seen.add(t.target)
                frontier.append(t.target)
    return False
