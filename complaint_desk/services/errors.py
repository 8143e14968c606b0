"""
Ticket client error taxonomy

Every failure the client can produce is a TicketClientError whose message
is safe to show to a user as-is.
"""
from enum import Enum
from typing import Dict, Optional

from pydantic import ValidationError

NO_RESPONSE_MESSAGE = "No response from server. Please check your connection."
GENERIC_SERVER_MESSAGE = "An error occurred"
UNEXPECTED_MESSAGE = "An unexpected error occurred"


class ErrorKind(str, Enum):
    """Failure classes surfaced to callers"""
    VALIDATION = "validation"
    PRECONDITION = "precondition"
    SERVER = "server"
    CONNECTION = "connection"
    UNEXPECTED = "unexpected"


class TicketClientError(Exception):
    """Base class for ticket client failures"""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def requires_refresh(self) -> bool:
        """Whether the caller should re-fetch before trying again"""
        return False


class TicketValidationError(TicketClientError):
    """Input rejected before any request was sent"""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class TicketPreconditionError(TicketClientError):
    """Mutation rejected because the ticket is not in a state that allows it"""

    kind = ErrorKind.PRECONDITION

    @property
    def requires_refresh(self) -> bool:
        return True


class TicketServerError(TicketClientError):
    """The Ticket Store answered with an error response"""

    kind = ErrorKind.SERVER


class TicketConnectionError(TicketClientError):
    """No response was received (timeout or transport failure)"""

    kind = ErrorKind.CONNECTION

    def __init__(self, message: str = NO_RESPONSE_MESSAGE):
        super().__init__(message)


class TicketUnexpectedError(TicketClientError):
    """Anything that does not fit the other classes"""

    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str = UNEXPECTED_MESSAGE):
        super().__init__(message or UNEXPECTED_MESSAGE)


FIELD_LABELS = {
    "title": "Title",
    "description": "Description",
    "customer_email": "Email address",
    "customer_name": "Name",
    "final_response": "Final response",
    "agent_notes": "Agent notes",
    "resolved_by": "Your name",
}


def validation_error_from(exc: ValidationError) -> TicketValidationError:
    """
    Convert a pydantic ValidationError into a TicketValidationError

    Args:
        exc: Error raised while validating user input

    Returns:
        TicketValidationError with one message per offending field
    """
    field_errors: Dict[str, str] = {}

    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "input"
        label = FIELD_LABELS.get(field, field.replace("_", " ").capitalize())
        ctx = err.get("ctx") or {}
        error_type = err.get("type")

        if error_type == "value_error" and "error" in ctx:
            message = str(ctx["error"])
        elif error_type == "string_too_short":
            message = f"{label} must be at least {ctx.get('min_length')} characters"
        elif error_type == "string_too_long":
            message = f"{label} must be at most {ctx.get('max_length')} characters"
        elif error_type == "missing":
            message = f"{label} is required"
        else:
            message = f"{label}: {err.get('msg')}"

        field_errors.setdefault(field, message)

    return TicketValidationError("; ".join(field_errors.values()), field_errors=field_errors)
