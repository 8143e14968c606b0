"""
View projections

Pure functions turning reconciler state into display-ready dictionaries and
plain-text renderings. They never fetch and never mutate what they are given.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from complaint_desk.lifecycle.state_machine import (
    Capabilities,
    is_polling_eligible,
    ticket_capabilities,
)
from complaint_desk.models.schemas import TicketStats
from complaint_desk.models.ticket import (
    Ticket,
    TicketCategory,
    TicketStatus,
    TicketUrgency,
)

EMPTY_LIST_MESSAGE = "No tickets found"
EMPTY_LIST_HINT = "Create a new complaint to get started"
AUTO_REFRESH_MESSAGE = "Auto-refreshing... Ticket is being processed by AI"

ACTION_EDIT_DRAFT = "edit_draft"
ACTION_SAVE_DRAFT = "save_draft"
ACTION_CANCEL_EDIT = "cancel_edit"
ACTION_RESOLVE = "resolve"

URGENCY_MARKERS = {
    TicketUrgency.HIGH: "🔴 High",
    TicketUrgency.MEDIUM: "🟡 Medium",
    TicketUrgency.LOW: "🟢 Low",
}

PREVIEW_LENGTH = 160


def format_timestamp(value: Optional[datetime], with_seconds: bool = True) -> Optional[str]:
    """Format as `MMM d, yyyy HH:mm[:ss]`"""
    if value is None:
        return None
    time_format = "%H:%M:%S" if with_seconds else "%H:%M"
    return f"{value:%b} {value.day}, {value:%Y} {value.strftime(time_format)}"


def category_label(category: Optional[TicketCategory]) -> Optional[str]:
    if category is None:
        return None
    return category.value.replace("_", " ").upper()


def sentiment_label(score: Optional[int]) -> Optional[str]:
    if score is None:
        return None
    return f"{score}/10"


def urgency_label(urgency: Optional[TicketUrgency]) -> Optional[str]:
    if urgency is None:
        return None
    return URGENCY_MARKERS[urgency]


def _preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    text = " ".join(text.split())
    if len(text) <= length:
        return text
    return text[:length - 1].rstrip() + "…"


def project_list_row(ticket: Ticket) -> Dict[str, Any]:
    """Project one ticket for the dashboard list"""
    row: Dict[str, Any] = {
        "id": ticket.id,
        "title": ticket.title,
        "status": ticket.status.value,
        "description": _preview(ticket.description),
        "customer_email": ticket.customer_email,
        "customer_name": ticket.customer_name,
        "created": format_timestamp(ticket.created_at, with_seconds=False),
        "urgency": urgency_label(ticket.urgency),
        "category": category_label(ticket.category),
        "sentiment": sentiment_label(ticket.sentiment_score),
        "draft_preview": None,
        "error": None,
        "resolved_info": None,
    }

    if ticket.status == TicketStatus.READY and ticket.ai_draft_response:
        row["draft_preview"] = _preview(ticket.ai_draft_response)
    elif ticket.status == TicketStatus.FAILED and ticket.error_message:
        row["error"] = ticket.error_message
    elif ticket.status == TicketStatus.RESOLVED and ticket.resolved_by:
        info = f"Resolved by {ticket.resolved_by}"
        if ticket.resolved_at is not None:
            info += f" on {format_timestamp(ticket.resolved_at, with_seconds=False)}"
        row["resolved_info"] = info

    return row


def project_list(tickets: List[Ticket]) -> Dict[str, Any]:
    """Project the dashboard list, including the empty state"""
    if not tickets:
        return {"rows": [], "empty_message": EMPTY_LIST_MESSAGE, "empty_hint": EMPTY_LIST_HINT}
    return {"rows": [project_list_row(t) for t in tickets], "empty_message": None, "empty_hint": None}


def project_stats(stats: Optional[TicketStats]) -> Optional[Dict[str, int]]:
    """Stats cards; None hides the section"""
    if stats is None:
        return None
    return {
        "total": stats.total,
        "pending": stats.by_status.pending,
        "processing": stats.by_status.processing,
        "ready": stats.by_status.ready,
        "resolved": stats.by_status.resolved,
        "failed": stats.by_status.failed,
        "high": stats.by_urgency.high,
        "medium": stats.by_urgency.medium,
        "low": stats.by_urgency.low,
    }


def available_actions(caps: Capabilities, editing: bool = False) -> List[str]:
    """
    Actions to offer for a ticket.

    While editing only save/cancel are offered; resolve is hidden until the
    edit is saved or discarded.
    """
    if editing:
        return [ACTION_SAVE_DRAFT, ACTION_CANCEL_EDIT] if caps.can_edit_draft else [ACTION_CANCEL_EDIT]
    actions = []
    if caps.can_edit_draft:
        actions.append(ACTION_EDIT_DRAFT)
    if caps.can_resolve:
        actions.append(ACTION_RESOLVE)
    return actions


def project_detail(
    ticket: Ticket,
    draft_response: Optional[str] = None,
    draft_notes: Optional[str] = None,
    editing: bool = False,
    auto_refresh: bool = False,
    error: Optional[str] = None
) -> Dict[str, Any]:
    """
    Project the ticket detail view

    Args:
        ticket: Canonical snapshot
        draft_response: Response shown in the draft panel (defaults to the
            canonical final or AI draft response)
        draft_notes: Notes shown in the notes panel
        editing: Whether the agent is editing
        auto_refresh: Whether the reconciler is currently polling
        error: Last operation or fetch error to display

    Returns:
        Detail view model
    """
    caps = ticket_capabilities(ticket)
    if draft_response is None:
        draft_response = ticket.final_response or ticket.ai_draft_response

    detail: Dict[str, Any] = {
        "id": ticket.id,
        "title": ticket.title,
        "status": ticket.status.value,
        "urgency": urgency_label(ticket.urgency),
        "category": category_label(ticket.category),
        "sentiment": sentiment_label(ticket.sentiment_score),
        "customer_email": ticket.customer_email,
        "customer_name": ticket.customer_name,
        "created": format_timestamp(ticket.created_at),
        "updated": format_timestamp(ticket.updated_at),
        "description": ticket.description,
        "draft_title": "Edit Response" if editing else "AI Draft Response",
        "draft_response": draft_response if ticket.ai_draft_response else None,
        "agent_notes": draft_notes if draft_notes is not None else ticket.agent_notes,
        "resolution": None,
        "failure": None,
        "auto_refresh_message": None,
        "actions": available_actions(caps, editing=editing),
        "error": error,
    }

    if auto_refresh and is_polling_eligible(ticket.status):
        detail["auto_refresh_message"] = AUTO_REFRESH_MESSAGE

    if ticket.status == TicketStatus.RESOLVED:
        detail["resolution"] = {
            "resolved_by": ticket.resolved_by,
            "resolved_at": format_timestamp(ticket.resolved_at),
            "final_response": ticket.final_response,
        }
    elif ticket.status == TicketStatus.FAILED and ticket.error_message:
        detail["failure"] = {
            "attempts": ticket.processing_attempts,
            "error_message": ticket.error_message,
        }

    return detail


def render_list(listing: Dict[str, Any]) -> str:
    """Plain-text rendering of project_list()"""
    if not listing["rows"]:
        return f"{listing['empty_message']}\n{listing['empty_hint']}"

    blocks = []
    for row in listing["rows"]:
        tags = [t for t in (row["urgency"], row["category"]) if t]
        if row["sentiment"]:
            tags.append(f"Sentiment: {row['sentiment']}")
        lines = [f"[{row['status'].upper()}] {row['title']}  ({row['id']})"]
        if tags:
            lines.append("  " + " | ".join(tags))
        who = row["customer_email"]
        if row["customer_name"]:
            who = f"{row['customer_name']} <{who}>"
        lines.append(f"  {who} - {row['created']}")
        lines.append(f"  {row['description']}")
        if row["draft_preview"]:
            lines.append(f"  AI Draft Response: {row['draft_preview']}")
        if row["error"]:
            lines.append(f"  Error: {row['error']}")
        if row["resolved_info"]:
            lines.append(f"  {row['resolved_info']}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def render_stats(stats: Optional[Dict[str, int]]) -> str:
    if stats is None:
        return "Statistics unavailable"
    return (
        f"Total: {stats['total']}  "
        f"Pending: {stats['pending']}  Processing: {stats['processing']}  "
        f"Ready: {stats['ready']}  Resolved: {stats['resolved']}  Failed: {stats['failed']}\n"
        f"Urgency - High: {stats['high']}  Medium: {stats['medium']}  Low: {stats['low']}"
    )


def render_detail(detail: Dict[str, Any]) -> str:
    """Plain-text rendering of project_detail()"""
    lines = [f"{detail['title']}  [{detail['status'].upper()}]"]
    tags = [t for t in (detail["urgency"], detail["category"]) if t]
    if detail["sentiment"]:
        tags.append(f"Sentiment: {detail['sentiment']}")
    if tags:
        lines.append(" | ".join(tags))
    if detail["auto_refresh_message"]:
        lines.append(detail["auto_refresh_message"])

    lines.append("")
    lines.append(f"Email: {detail['customer_email']}")
    if detail["customer_name"]:
        lines.append(f"Name: {detail['customer_name']}")
    lines.append(f"Created: {detail['created']}")
    lines.append(f"Last Updated: {detail['updated']}")
    lines.append("")
    lines.append("Complaint Description:")
    lines.append(detail["description"])

    if detail["draft_response"]:
        lines.append("")
        lines.append(f"{detail['draft_title']}:")
        lines.append(detail["draft_response"])
    if detail["agent_notes"]:
        lines.append("")
        lines.append("Agent Notes:")
        lines.append(detail["agent_notes"])

    resolution = detail["resolution"]
    if resolution:
        lines.append("")
        lines.append("Ticket Resolved")
        lines.append(f"Resolved by: {resolution['resolved_by']}")
        if resolution["resolved_at"]:
            lines.append(f"Resolved at: {resolution['resolved_at']}")
        if resolution["final_response"]:
            lines.append(f"Final Response: {resolution['final_response']}")

    failure = detail["failure"]
    if failure:
        lines.append("")
        lines.append("Processing Failed")
        lines.append(f"Attempts: {failure['attempts']}")
        lines.append(f"Error: {failure['error_message']}")

    if detail["error"]:
        lines.append("")
        lines.append(f"Error: {detail['error']}")
    if detail["actions"]:
        lines.append("")
        lines.append("Actions: " + ", ".join(detail["actions"]))
    return "\n".join(lines)
