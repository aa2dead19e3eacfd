"""Sanitization helpers for embedding caller-supplied data in generated Lua.

Every identifier, number and string that comes from an automation definition
passes through one of these functions before it is interpolated into source
text. Nothing else in the compiler escapes or checks values.
"""

import math
import re
from typing import Any

from fibaro.automation.errors import (
    InvalidIdentifierError,
    InvalidNumberError,
    SanitizationError,
)

# Letters, digits and underscores, plus the separators used by nested Fibaro
# property names. Never quotes, brackets, whitespace or statement separators.
SAFE_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_.:-]*")

# Sequences that would end a Lua comment or string early when display text is
# written into a generated header.
DANGEROUS_DISPLAY_PATTERN = re.compile(r"--|\\|\[\[|\]\]|[\r\n]")

MAX_DISPLAY_NAME_LENGTH = 200

_NAMED_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def _escape_char(char: str) -> str:
    if char in _NAMED_ESCAPES:
        return _NAMED_ESCAPES[char]
    code = ord(char)
    if code < 0x20 or code == 0x7F:
        # Always three digits so a following digit cannot extend the escape
        return f"\\{code:03d}"
    return char


def escape_string(value: str) -> str:
    """Escape a string for use inside a double-quoted Lua string literal.

    Args:
        value: The raw string

    Returns:
        The escaped text, without surrounding quotes

    Raises:
        SanitizationError: If the value is not a string
    """
    if not isinstance(value, str):
        raise SanitizationError(
            f"Cannot escape {type(value).__name__} as a Lua string"
        )
    return "".join(_escape_char(c) for c in value)


def validate_number(value: Any, context: str) -> int | float:
    """Ensure a value is a finite number before it is rendered as a literal.

    Booleans are rejected even though Python treats them as integers.

    Returns:
        The value, unchanged

    Raises:
        InvalidNumberError: If the value is not a finite number
    """
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
    ):
        raise InvalidNumberError(value, context)
    return value


def format_number(value: int | float) -> str:
    """Render an already validated number as a Lua numeric literal."""
    return str(value)


def format_value(value: Any) -> str:
    """Render a condition literal as Lua source text.

    Raises:
        InvalidNumberError: For NaN or infinite numbers
        SanitizationError: For values outside the supported literal types
    """
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(validate_number(value, "value"))
    if isinstance(value, str):
        return f'"{escape_string(value)}"'
    raise SanitizationError(
        f"Cannot render {type(value).__name__} as a Lua literal"
    )


def validate_identifier(value: Any, context: str) -> str:
    """Ensure a property or variable name is safe to embed in generated Lua.

    Returns:
        The value, unchanged

    Raises:
        InvalidIdentifierError: If the value contains disallowed characters
    """
    if not isinstance(value, str) or SAFE_IDENTIFIER.fullmatch(value) is None:
        raise InvalidIdentifierError(value, context)
    return value


def is_valid_display_name(value: Any) -> bool:
    """Whether text can be written into a generated Lua comment."""
    return (
        isinstance(value, str)
        and 0 < len(value) <= MAX_DISPLAY_NAME_LENGTH
        and DANGEROUS_DISPLAY_PATTERN.search(value) is None
    )


def validate_display_name(value: Any, context: str) -> str:
    """Ensure display text cannot break out of a generated Lua comment.

    Raises:
        SanitizationError: If the text is empty, too long, or contains comment
            or string delimiters
    """
    if not is_valid_display_name(value):
        raise SanitizationError(
            f'Invalid {context}: "{value}" must be 1-{MAX_DISPLAY_NAME_LENGTH} characters '
            "without line breaks or the sequences -- \\ [[ ]]"
        )
    return value
