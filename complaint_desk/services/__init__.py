"""
Ticket Store client services
"""
from .errors import (
    ErrorKind,
    TicketClientError,
    TicketValidationError,
    TicketPreconditionError,
    TicketServerError,
    TicketConnectionError,
    TicketUnexpectedError,
)
from .ticket_client import TicketClient

__all__ = [
    "ErrorKind",
    "TicketClientError",
    "TicketValidationError",
    "TicketPreconditionError",
    "TicketServerError",
    "TicketConnectionError",
    "TicketUnexpectedError",
    "TicketClient",
]
