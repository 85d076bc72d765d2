"""
Validation Utilities
====================

Input validation for untrusted text (pairing frames, CLI arguments).
"""

from __future__ import annotations

import unicodedata


class ValidationError(ValueError):
    """Raised when validation fails."""
    pass


def validate_text_safe(
    value: object,
    max_length: int = 1000,
    allow_empty: bool = False,
    field_name: str = "value",
) -> str:
    """
    Validate untrusted text before parsing it.

    Args:
        value: The value to validate
        max_length: Maximum allowed length
        allow_empty: If False, empty or whitespace-only strings are rejected
        field_name: Name of the field for error messages

    Returns:
        The validated string, unchanged

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")

    if not allow_empty and not value.strip():
        raise ValidationError(f"{field_name} cannot be empty")

    if len(value) > max_length:
        raise ValidationError(
            f"{field_name} must be at most {max_length} characters"
        )

    # NUL and other non-whitespace control characters
    for ch in value:
        if unicodedata.category(ch) == "Cc" and not ch.isspace():
            raise ValidationError(f"{field_name} contains control characters")

    return value
