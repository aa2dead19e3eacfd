"""Compiles condition trees into Fibaro Lua boolean expressions.

The compiler fails fast: any missing field, unknown operator or unknown
condition type raises, because a partially correct expression could make a
real automation fire at the wrong time. Use the validator for a non-raising
report of everything that is wrong with a tree.
"""

import logging
from collections.abc import Mapping
from typing import Any

from fibaro.automation.errors import (
    CompilationError,
    ConditionDepthError,
    InvalidOperatorError,
    UnknownConditionTypeError,
)
from fibaro.automation.model import (
    GROUP_OPERATORS,
    Condition,
    ConditionGroup,
    CustomCondition,
    DeviceStateCondition,
    SunPositionCondition,
    TimeCondition,
    UnknownCondition,
    VariableCondition,
    parse_condition_group,
)
from fibaro.automation.sanitizer import (
    escape_string,
    format_number,
    format_value,
    validate_identifier,
    validate_number,
)

logger = logging.getLogger(__name__)

MAX_CONDITION_DEPTH = 32

LUA_OPERATORS: dict[str, str] = {
    "==": "==",
    "!=": "~=",
    ">": ">",
    "<": "<",
    ">=": ">=",
    "<=": "<=",
}

SUN_PROPERTIES: dict[str, str] = {
    "sunrise": "sunriseHour",
    "sunset": "sunsetHour",
}

# Device 1 is the controller itself, which exposes the sun times as "HH:MM"
SUN_DEVICE_ID = 1

CURRENT_MINUTES = '(os.date("*t").hour * 60 + os.date("*t").min)'


def lua_operator(operator: Any) -> str:
    """Map a comparison operator to its Lua token.

    Raises:
        InvalidOperatorError: If the operator is not one of the six supported
    """
    if not isinstance(operator, str) or operator not in LUA_OPERATORS:
        raise InvalidOperatorError(operator)
    return LUA_OPERATORS[operator]


def compile_group(
    group: ConditionGroup | Mapping[str, Any], max_depth: int = MAX_CONDITION_DEPTH
) -> str:
    """Compile a condition group into a single Lua boolean expression.

    Args:
        group: The root group, as a model or its JSON-like mapping
        max_depth: The deepest group nesting accepted, the root being 1

    Returns:
        The Lua expression

    Raises:
        CompilationError: If the tree is malformed
        SanitizationError: If a value cannot be embedded safely
    """
    lua = _compile_group(parse_condition_group(group, max_depth), 1, max_depth)
    logger.debug("Compiled condition group: %s", lua)
    return lua


def _compile_group(group: ConditionGroup, depth: int, max_depth: int) -> str:
    if depth > max_depth:
        raise ConditionDepthError(max_depth)
    if group.operator not in GROUP_OPERATORS:
        raise CompilationError(
            f"ConditionGroup must have operator 'AND' or 'OR', got {group.operator!r}"
        )
    if not group.conditions:
        raise CompilationError("ConditionGroup must have at least one condition")

    parts = []
    for node in group.conditions:
        if isinstance(node, ConditionGroup):
            # Nested groups keep their own precedence
            parts.append(f"({_compile_group(node, depth + 1, max_depth)})")
        else:
            parts.append(compile_condition(node))

    joiner = " and " if group.operator == "AND" else " or "
    return joiner.join(parts)


def compile_condition(condition: Condition) -> str:
    """Compile a single leaf condition into a Lua boolean expression.

    Raises:
        CompilationError: If required fields are missing or the type is unknown
        SanitizationError: If a value cannot be embedded safely
    """
    match condition:
        case DeviceStateCondition():
            return _compile_device_state(condition)
        case VariableCondition():
            return _compile_variable(condition)
        case TimeCondition():
            return _compile_time(condition)
        case SunPositionCondition():
            return _compile_sun_position(condition)
        case CustomCondition():
            return _compile_custom(condition)
        case UnknownCondition():
            raise UnknownConditionTypeError(condition.type)
        case _:
            raise UnknownConditionTypeError(
                getattr(condition, "type", type(condition).__name__)
            )


def _compile_device_state(condition: DeviceStateCondition) -> str:
    if condition.device_id is None or not condition.property:
        raise CompilationError("device_state condition requires deviceId and property")
    if not condition.has_value:
        raise CompilationError("device_state condition requires value")
    operator = lua_operator(condition.operator)
    device_id = validate_number(condition.device_id, "deviceId")
    prop = validate_identifier(condition.property, "device property")

    getter = f'fibaro.getValue({format_number(device_id)}, "{escape_string(prop)}")'
    return f"{getter} {operator} {format_value(condition.value)}"


def _compile_variable(condition: VariableCondition) -> str:
    if not condition.variable_name:
        raise CompilationError("variable condition requires variableName")
    if not condition.has_value:
        raise CompilationError("variable condition requires value")
    operator = lua_operator(condition.operator)
    name = validate_identifier(condition.variable_name, "variable name")

    # Global variables are stored as strings, the literal decides the coercion
    getter = f'fibaro.getGlobalVariable("{escape_string(name)}")'
    match condition.value:
        case bool() as flag:
            literal = "true" if flag else "false"
            return f'({getter} {operator} "{literal}")'
        case int() | float():
            return f"tonumber({getter}) {operator} {format_value(condition.value)}"
        case _:
            return f"{getter} {operator} {format_value(condition.value)}"


def _compile_time(condition: TimeCondition) -> str:
    if not condition.has_value:
        raise CompilationError("time condition requires value (timestamp)")
    operator = lua_operator(condition.operator)
    timestamp = validate_number(condition.value, "time value")
    return f"os.time() {operator} {format_number(timestamp)}"


def _compile_sun_position(condition: SunPositionCondition) -> str:
    if not condition.sun_position:
        raise CompilationError("sun_position condition requires sunPosition field")
    if condition.sun_position not in SUN_PROPERTIES:
        raise CompilationError('sunPosition must be "sunrise" or "sunset"')
    operator = lua_operator(condition.operator)
    offset = (
        0
        if condition.time_offset is None
        else validate_number(condition.time_offset, "timeOffset")
    )

    sign = "+" if offset >= 0 else "-"
    sun_property = SUN_PROPERTIES[condition.sun_position]
    sun_minutes = (
        "(function() local h,m = string.match("
        f'fibaro.getValue({SUN_DEVICE_ID}, "{sun_property}"), "(%d+):(%d+)") '
        f"return tonumber(h)*60 + tonumber(m) {sign} {format_number(abs(offset))} end)()"
    )
    return f"{CURRENT_MINUTES} {operator} {sun_minutes}"


def _compile_custom(condition: CustomCondition) -> str:
    if not condition.custom_lua:
        raise CompilationError("custom condition requires customLua field")
    lua_operator(condition.operator)
    # Trusted escape hatch: the fragment is embedded as-is
    return condition.custom_lua
