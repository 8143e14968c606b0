"""
Ticket lifecycle: state machine and reconciliation
"""
from complaint_desk.lifecycle.state_machine import (
    Capabilities,
    POLLING_ELIGIBLE,
    TERMINAL_STATUSES,
    capabilities,
    ticket_capabilities,
    invariant_violations,
    is_polling_eligible,
    is_valid_transition,
)
from complaint_desk.lifecycle.reconciler import (
    TicketReconciler,
    DashboardReconciler,
)

__all__ = [
    "Capabilities",
    "POLLING_ELIGIBLE",
    "TERMINAL_STATUSES",
    "capabilities",
    "ticket_capabilities",
    "invariant_violations",
    "is_polling_eligible",
    "is_valid_transition",
    "TicketReconciler",
    "DashboardReconciler",
]
