"""
services/validation.py
----------------------
Input checks applied before anything reaches the repositories.
"""

import re

MAX_DESCRIPTION_LENGTH = 200

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class ValidationError(ValueError):
    """Raised when user input is rejected before touching the database."""


def validate_description(text: str) -> str:
    """
    Trim and check a task description.

    Returns:
        The trimmed description.

    Raises:
        ValidationError: If it is empty or longer than MAX_DESCRIPTION_LENGTH.
    """
    text = (text or "").strip()
    if not text:
        raise ValidationError("description is required")
    if len(text) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"description too long (max {MAX_DESCRIPTION_LENGTH} characters)")
    return text


def validate_task_id(raw) -> int:
    """Parse a positive task ID from text or an int."""
    if isinstance(raw, bool):
        raise ValidationError("invalid task ID")
    try:
        task_id = int(str(raw).strip())
    except (TypeError, ValueError):
        raise ValidationError("invalid task ID") from None
    if task_id <= 0:
        raise ValidationError("invalid task ID")
    return task_id


def validate_email(email: str) -> str:
    email = (email or "").strip()
    if not _EMAIL_RE.match(email):
        raise ValidationError("invalid email format")
    return email
