"""
Utils module - Utility functions and helpers.
"""

from auroraid.utils.validators import ValidationError, validate_text_safe

__all__ = [
    "ValidationError",
    "validate_text_safe",
]
