"""Structural validation of condition trees.

The validator walks the same tree as the compiler but never raises: every
problem found anywhere in the tree is collected into a ValidationResult, so a
caller can show a complete report. A tree is reported invalid exactly when
compiling it would raise.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from fibaro.automation.condition import MAX_CONDITION_DEPTH
from fibaro.automation.errors import ConditionDepthError, SanitizationError
from fibaro.automation.model import (
    COMPARISON_OPERATORS,
    GROUP_OPERATORS,
    SUN_POSITIONS,
    Condition,
    ConditionGroup,
    CustomCondition,
    DeviceStateCondition,
    SunPositionCondition,
    TimeCondition,
    UnknownCondition,
    ValidationResult,
    VariableCondition,
    parse_condition_group,
)
from fibaro.automation.sanitizer import (
    format_value,
    validate_identifier,
    validate_number,
)

logger = logging.getLogger(__name__)


def validate_group(
    group: ConditionGroup | Mapping[str, Any], max_depth: int = MAX_CONDITION_DEPTH
) -> ValidationResult:
    """Validate a condition group and everything beneath it.

    Args:
        group: The root group, as a model or its JSON-like mapping
        max_depth: The deepest group nesting accepted, the root being 1

    Returns:
        The collected errors and warnings
    """
    errors: list[str] = []
    warnings: list[str] = []
    try:
        parsed = parse_condition_group(group, max_depth)
    except ValidationError as e:
        for err in e.errors():
            location = ".".join(str(part) for part in err["loc"])
            errors.append(f"{location}: {err['msg']}" if location else err["msg"])
    except (ConditionDepthError, TypeError) as e:
        errors.append(str(e))
    else:
        _check_group(parsed, "", 1, max_depth, errors, warnings)

    if errors:
        logger.debug("Condition group validation failed: %s", errors)
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def validate_condition(condition: Condition) -> ValidationResult:
    """Validate a single leaf condition."""
    errors: list[str] = []
    warnings: list[str] = []
    _check_condition(condition, "", errors, warnings)
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _located(path: str, message: str) -> str:
    return f"{path}: {message}" if path else message


def _check_group(
    group: ConditionGroup,
    path: str,
    depth: int,
    max_depth: int,
    errors: list[str],
    warnings: list[str],
):
    if depth > max_depth:
        errors.append(
            _located(path, f"ConditionGroup nesting exceeds maximum depth of {max_depth}")
        )
        return

    if group.operator not in GROUP_OPERATORS:
        errors.append(_located(path, "ConditionGroup must have operator 'AND' or 'OR'"))
    if not group.conditions:
        errors.append(_located(path, "ConditionGroup must have at least one condition"))

    for index, node in enumerate(group.conditions):
        child_path = f"{path}.conditions[{index}]" if path else f"conditions[{index}]"
        if isinstance(node, ConditionGroup):
            _check_group(node, child_path, depth + 1, max_depth, errors, warnings)
        else:
            _check_condition(node, child_path, errors, warnings)


def _check_condition(
    condition: Condition, path: str, errors: list[str], warnings: list[str]
):
    problems: list[str] = []

    if getattr(condition, "operator", None) not in COMPARISON_OPERATORS:
        problems.append(f"Invalid operator: {getattr(condition, 'operator', None)}")

    match condition:
        case DeviceStateCondition():
            if condition.device_id is None:
                problems.append("device_state condition requires deviceId")
            else:
                _check_sanitized(problems, validate_number, condition.device_id, "deviceId")
            if not condition.property:
                problems.append("device_state condition requires property")
            else:
                _check_sanitized(
                    problems, validate_identifier, condition.property, "device property"
                )
            if not condition.has_value:
                problems.append("device_state condition requires value")
            else:
                _check_literal(problems, condition.value)

        case VariableCondition():
            if not condition.variable_name:
                problems.append("variable condition requires variableName")
            else:
                _check_sanitized(
                    problems, validate_identifier, condition.variable_name, "variable name"
                )
            if not condition.has_value:
                problems.append("variable condition requires value")
            else:
                _check_literal(problems, condition.value)

        case TimeCondition():
            if not condition.has_value:
                problems.append("time condition requires value (timestamp)")
            else:
                try:
                    validate_number(condition.value, "time value")
                except SanitizationError:
                    problems.append("time condition value must be a number (Unix timestamp)")

        case SunPositionCondition():
            if not condition.sun_position:
                problems.append("sun_position condition requires sunPosition field")
            elif condition.sun_position not in SUN_POSITIONS:
                problems.append('sunPosition must be "sunrise" or "sunset"')
            if condition.time_offset is not None:
                _check_sanitized(
                    problems, validate_number, condition.time_offset, "timeOffset"
                )

        case CustomCondition():
            if not condition.custom_lua:
                problems.append("custom condition requires customLua field")
            else:
                warnings.append(
                    _located(
                        path,
                        "custom condition Lua is embedded verbatim without sanitization",
                    )
                )

        case UnknownCondition():
            problems.append(f"Unknown condition type: {condition.type}")

        case _:
            problems.append(
                f"Unknown condition type: {getattr(condition, 'type', type(condition).__name__)}"
            )

    errors.extend(_located(path, problem) for problem in problems)


def _check_sanitized(problems: list[str], check, value: Any, context: str):
    try:
        check(value, context)
    except SanitizationError as e:
        problems.append(str(e))


def _check_literal(problems: list[str], value: Any):
    try:
        format_value(value)
    except SanitizationError as e:
        problems.append(str(e))
