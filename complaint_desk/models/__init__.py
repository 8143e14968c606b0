"""
Pydantic models for Complaint Desk
"""

from complaint_desk.models.ticket import (
    # Enums
    TicketStatus,
    TicketUrgency,
    TicketCategory,

    # Entity
    Ticket,
)
from complaint_desk.models.schemas import (
    # Request Models
    TicketCreate,
    TicketUpdate,
    TicketResolve,
    TicketListFilters,

    # Response Models
    TicketCreateResponse,
    TicketListResponse,
    TicketStats,
    ErrorResponse,
)

__all__ = [
    # Enums
    "TicketStatus",
    "TicketUrgency",
    "TicketCategory",

    # Entity
    "Ticket",

    # Request Models
    "TicketCreate",
    "TicketUpdate",
    "TicketResolve",
    "TicketListFilters",

    # Response Models
    "TicketCreateResponse",
    "TicketListResponse",
    "TicketStats",
    "ErrorResponse",
]
