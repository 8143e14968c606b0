"""
Ticket data models

The Ticket Store owns these records; the client only parses what it returns.
Models are deliberately permissive about cross-field invariants so that a
malformed snapshot can still be observed and reported instead of crashing
the view (see complaint_desk.lifecycle.state_machine.invariant_violations).
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses"""
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    RESOLVED = "resolved"
    FAILED = "failed"


class TicketUrgency(str, Enum):
    """AI-assigned urgency"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TicketCategory(str, Enum):
    """AI-assigned category"""
    BILLING = "billing"
    TECHNICAL = "technical"
    FEATURE_REQUEST = "feature_request"


class Ticket(BaseModel):
    """
    Complaint ticket as returned by the Ticket Store.

    Attributes:
        id: Opaque identifier assigned at creation
        title: Intake title (5-255 chars)
        description: Intake description (10+ chars)
        customer_email: Customer email address
        customer_name: Optional customer name
        category: Triage category, null until analysed
        sentiment_score: Triage sentiment 0-10, null until analysed
        urgency: Triage urgency, null until analysed
        ai_draft_response: Triage draft reply, null until analysed
        final_response: Agent-approved reply
        agent_notes: Internal agent notes
        resolved_by: Agent identity that resolved the ticket
        resolved_at: Resolution timestamp
        status: Lifecycle status
        error_message: Failure reason when analysis failed
        processing_attempts: Backend analysis attempt counter
        created_at: Creation timestamp
        updated_at: Last mutation timestamp
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1, description="Ticket ID")
    title: str = Field(..., description="Ticket title")
    description: str = Field(..., description="Complaint description")
    customer_email: str = Field(..., description="Customer email")
    customer_name: Optional[str] = Field(None, description="Customer name")

    category: Optional[TicketCategory] = Field(None, description="Triage category")
    sentiment_score: Optional[int] = Field(None, ge=0, le=10, description="Sentiment score (0-10)")
    urgency: Optional[TicketUrgency] = Field(None, description="Triage urgency")
    ai_draft_response: Optional[str] = Field(None, description="AI draft response")

    final_response: Optional[str] = Field(None, description="Final response")
    agent_notes: Optional[str] = Field(None, description="Agent notes")
    resolved_by: Optional[str] = Field(None, description="Resolved by")
    resolved_at: Optional[datetime] = Field(None, description="Resolution timestamp")

    status: TicketStatus = Field(..., description="Lifecycle status")
    error_message: Optional[str] = Field(None, description="Processing error")
    processing_attempts: int = Field(0, ge=0, description="Processing attempts")

    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @property
    def is_triaged(self) -> bool:
        """True once the AI collaborator has written the triage fields"""
        return self.ai_draft_response is not None
