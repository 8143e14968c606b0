"""
Pydantic models for the Ticket Store REST contract

Request models validate user input before anything is sent; response
models parse what the Ticket Store returns.
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from complaint_desk.models.ticket import (
    Ticket,
    TicketCategory,
    TicketStatus,
    TicketUrgency,
)
from complaint_desk.utils.validators import sanitize_input, validate_email

MIN_FINAL_RESPONSE_LENGTH = 10


# ============================================================================
# Request Models
# ============================================================================

class TicketCreate(BaseModel):
    """
    Complaint intake payload.

    Attributes:
        title: Short summary (5-255 chars)
        description: Full complaint (at least 10 chars)
        customer_email: Contact address (valid email syntax)
        customer_name: Optional name (at most 100 chars)
    """
    title: str = Field(..., min_length=5, max_length=255, description="Ticket title")
    description: str = Field(..., min_length=10, description="Complaint description")
    customer_email: str = Field(..., description="Customer email")
    customer_name: Optional[str] = Field(None, max_length=100, description="Customer name")

    @field_validator("title", "description", "customer_email", mode="before")
    @classmethod
    def clean_text(cls, v: Any) -> Any:
        if isinstance(v, str):
            return sanitize_input(v)
        return v

    @field_validator("customer_name", mode="before")
    @classmethod
    def blank_name_to_none(cls, v: Any) -> Any:
        """Empty optional name is not sent"""
        if isinstance(v, str):
            v = sanitize_input(v)
            return v or None
        return v

    @field_validator("customer_email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not validate_email(v):
            raise ValueError("Please enter a valid email address")
        return v


class TicketUpdate(BaseModel):
    """Draft edit payload; unset fields are left untouched by the backend"""
    final_response: Optional[str] = Field(None, description="Edited response")
    agent_notes: Optional[str] = Field(None, description="Agent notes")


class TicketResolve(BaseModel):
    """
    Resolution payload.

    final_response must be non-blank and at least 10 characters; resolved_by
    is the agent identity and must be non-blank.
    """
    final_response: str = Field(..., description="Final response sent to the customer")
    agent_notes: Optional[str] = Field(None, description="Agent notes")
    resolved_by: str = Field(..., description="Resolving agent")

    @field_validator("final_response")
    @classmethod
    def check_final_response(cls, v: str) -> str:
        if not v.strip() or len(v) < MIN_FINAL_RESPONSE_LENGTH:
            raise ValueError(
                f"Please provide a final response (at least {MIN_FINAL_RESPONSE_LENGTH} characters)"
            )
        return v

    @field_validator("resolved_by")
    @classmethod
    def check_resolved_by(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Please enter your name")
        return v.strip()


class TicketListFilters(BaseModel):
    """Server-side list filters; None means no filter"""
    model_config = ConfigDict(frozen=True)

    status: Optional[TicketStatus] = None
    urgency: Optional[TicketUrgency] = None
    category: Optional[TicketCategory] = None
    limit: Optional[int] = Field(None, ge=1, description="Page size")
    offset: Optional[int] = Field(None, ge=0, description="Page offset")

    def to_params(self) -> Dict[str, Union[str, int]]:
        """Query parameters with unset filters omitted"""
        return self.model_dump(mode="json", exclude_none=True)


# ============================================================================
# Response Models
# ============================================================================

class TicketCreateResponse(BaseModel):
    """Acknowledgment returned by a non-blocking create"""
    id: str
    status: TicketStatus
    message: str


class TicketListResponse(BaseModel):
    """List response; see DESIGN.md for the meaning of total"""
    total: int = Field(..., ge=0)
    items: List[Ticket] = Field(default_factory=list)


class StatusCounts(BaseModel):
    pending: int = 0
    processing: int = 0
    ready: int = 0
    resolved: int = 0
    failed: int = 0


class UrgencyCounts(BaseModel):
    high: int = 0
    medium: int = 0
    low: int = 0


class TicketStats(BaseModel):
    """Aggregate counts, independent of list filters"""
    total: int = Field(..., ge=0)
    by_status: StatusCounts = Field(default_factory=StatusCounts)
    by_urgency: UrgencyCounts = Field(default_factory=UrgencyCounts)


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Ticket Store error body"""
    detail: Optional[Union[str, List[Dict[str, Any]]]] = None
