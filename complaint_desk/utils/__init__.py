"""
Utility functions
"""
from complaint_desk.utils.logger import setup_logger, get_logger
from complaint_desk.utils.validators import (
    validate_ticket_id,
    validate_email,
    sanitize_input
)

__all__ = [
    "setup_logger",
    "get_logger",
    "validate_ticket_id",
    "validate_email",
    "sanitize_input",
]
