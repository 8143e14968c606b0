"""
Input validation utilities
"""
import re


def validate_ticket_id(ticket_id: str) -> bool:
    """
    Validate ticket ID format

    Ticket IDs are opaque strings assigned by the Ticket Store, so only
    characters that are safe inside a URL path segment are accepted.

    Args:
        ticket_id: Ticket ID to validate

    Returns:
        True if valid format
    """
    return bool(ticket_id) and re.match(r'^[A-Za-z0-9_-]+$', ticket_id) is not None


def validate_email(email: str) -> bool:
    """
    Validate email format

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return re.match(pattern, email) is not None


def sanitize_input(text: str, max_length: int = 10000) -> str:
    """
    Sanitize user input

    Args:
        text: Input text to sanitize
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    # Remove null bytes
    text = text.replace('\x00', '')

    # Truncate to max length
    if len(text) > max_length:
        text = text[:max_length]

    return text.strip()
