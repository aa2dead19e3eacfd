"""Exceptions raised while turning automation definitions into Lua.

Sanitizer failures identify which trust-boundary check rejected a value;
compilation failures identify the malformed part of the condition tree.
"""

from typing import Any


class AutomationError(Exception):
    """Base class for all automation definition errors."""


class SanitizationError(AutomationError, ValueError):
    """A value could not be safely embedded in generated Lua."""


class InvalidIdentifierError(SanitizationError):
    """An identifier contains characters that are not safe to embed."""

    def __init__(self, value: Any, context: str):
        self.value = value
        self.context = context
        super().__init__(
            f'Invalid {context}: "{value}" contains characters not allowed in Lua identifiers'
        )


class InvalidNumberError(SanitizationError):
    """A numeric field is not a finite number."""

    def __init__(self, value: Any, context: str):
        self.value = value
        self.context = context
        got = repr(value) if isinstance(value, (int, float)) else type(value).__name__
        super().__init__(f"Invalid {context}: expected a finite number, got {got}")


class CompilationError(AutomationError, ValueError):
    """A condition tree is structurally or semantically malformed."""


class InvalidOperatorError(CompilationError):
    """A comparison operator is not one of the six supported operators."""

    def __init__(self, operator: Any):
        self.operator = operator
        super().__init__(f"Invalid operator: {operator}")


class UnknownConditionTypeError(CompilationError):
    """A condition carries a type tag the compiler does not know."""

    def __init__(self, condition_type: Any):
        self.condition_type = condition_type
        super().__init__(f"Unknown condition type: {condition_type}")


class ConditionDepthError(CompilationError):
    """Condition groups are nested deeper than allowed."""

    def __init__(self, max_depth: int):
        self.max_depth = max_depth
        super().__init__(f"ConditionGroup nesting exceeds maximum depth of {max_depth}")
