"""Data models for declarative Fibaro automations.

An automation pairs a tree of conditions with a list of actions and an optional
schedule. The condition tree is made of groups (AND/OR over child nodes) and
leaf conditions, each leaf discriminated by its `type`:
- device_state: a device property compared against a literal
- variable: a global variable compared against a literal
- time: the current Unix timestamp compared against a literal
- sun_position: the time of day compared against sunrise/sunset plus an offset
- custom: a raw Lua fragment supplied by the caller

Fields use snake_case in Python and camelCase on the wire (`deviceId`,
`variableName`, ...). Variant-specific fields are optional here so that a
malformed tree can still be parsed and reported on by the validator; the
compiler enforces them.
"""

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    StrictFloat,
    StrictInt,
    Tag,
)
from pydantic.alias_generators import to_camel

from fibaro.automation.errors import ConditionDepthError

COMPARISON_OPERATORS: tuple[str, ...] = ("==", "!=", ">", "<", ">=", "<=")
GROUP_OPERATORS: tuple[str, ...] = ("AND", "OR")
SUN_POSITIONS: tuple[str, ...] = ("sunrise", "sunset")
CONDITION_TYPES: tuple[str, ...] = (
    "device_state",
    "variable",
    "time",
    "sun_position",
    "custom",
)

# Literal value of a condition. Booleans are matched before numbers.
LiteralValue = Union[bool, int, float, str, None]


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class _ConditionBase(_WireModel):
    operator: Optional[str] = Field(
        default=None,
        description="The comparison operator, one of ==, !=, >, <, >=, <=",
    )
    value: LiteralValue = Field(
        default=None, description="The literal to compare against"
    )

    @property
    def has_value(self) -> bool:
        """Whether a value was supplied, as opposed to left out entirely."""
        return "value" in self.model_fields_set


class DeviceStateCondition(_ConditionBase):
    """Compares a property of a device against a literal value."""

    type: Literal["device_state"] = Field(default="device_state")
    device_id: Optional[StrictInt] = Field(
        default=None, description="The ID of the device to read"
    )
    property: Optional[str] = Field(
        default=None, description="The name of the device property to read"
    )


class VariableCondition(_ConditionBase):
    """Compares a global variable against a literal value.

    Global variables are always strings on the controller, so the type of the
    literal decides how the comparison is coerced.
    """

    type: Literal["variable"] = Field(default="variable")
    variable_name: Optional[str] = Field(
        default=None, description="The name of the global variable to read"
    )


class TimeCondition(_ConditionBase):
    """Compares the current Unix timestamp (seconds) against a literal."""

    type: Literal["time"] = Field(default="time")


class SunPositionCondition(_ConditionBase):
    """Compares the time of day against sunrise or sunset plus an offset."""

    type: Literal["sun_position"] = Field(default="sun_position")
    sun_position: Optional[str] = Field(
        default=None, description="Either 'sunrise' or 'sunset'"
    )
    time_offset: Optional[StrictInt | StrictFloat] = Field(
        default=None,
        description="Minutes added to the sunrise/sunset time, negative for before",
    )


class CustomCondition(_ConditionBase):
    """A raw Lua boolean expression, embedded without any sanitization.

    This is a trusted escape hatch: whoever supplies `custom_lua` takes on the
    injection risk of the fragment.
    """

    type: Literal["custom"] = Field(default="custom")
    custom_lua: Optional[str] = Field(
        default=None, description="The Lua expression to embed verbatim"
    )


class UnknownCondition(_ConditionBase):
    """A leaf whose type tag is not recognized, kept so it can be reported."""

    model_config = ConfigDict(extra="allow")

    type: Any = Field(default=None, description="The unrecognized type tag")


Condition = Union[
    DeviceStateCondition,
    VariableCondition,
    TimeCondition,
    SunPositionCondition,
    CustomCondition,
    UnknownCondition,
]


class ConditionGroup(_WireModel):
    """Combines child conditions and nested groups with AND or OR."""

    operator: Optional[str] = Field(
        default=None, description="The boolean operator, 'AND' or 'OR'"
    )
    conditions: list["ConditionNode"] = Field(
        default_factory=list,
        description="The ordered child conditions and groups",
    )


def _node_tag(node: Any) -> str:
    """A node is a group iff it has `conditions`, otherwise a leaf by `type`."""
    if isinstance(node, dict):
        if "conditions" in node:
            return "group"
        kind = node.get("type")
    elif isinstance(node, ConditionGroup):
        return "group"
    else:
        kind = getattr(node, "type", None)
    return kind if kind in CONDITION_TYPES else "unknown"


ConditionNode = Annotated[
    Union[
        Annotated[ConditionGroup, Tag("group")],
        Annotated[DeviceStateCondition, Tag("device_state")],
        Annotated[VariableCondition, Tag("variable")],
        Annotated[TimeCondition, Tag("time")],
        Annotated[SunPositionCondition, Tag("sun_position")],
        Annotated[CustomCondition, Tag("custom")],
        Annotated[UnknownCondition, Tag("unknown")],
    ],
    Discriminator(_node_tag),
]

ConditionGroup.model_rebuild()


def _nesting_exceeds(group: Mapping[str, Any], max_depth: int) -> bool:
    # Walked with an explicit stack so that very deep input cannot recurse.
    stack = [(group, 1)]
    while stack:
        node, depth = stack.pop()
        if depth > max_depth:
            return True
        children = node.get("conditions")
        if isinstance(children, list):
            stack.extend(
                (child, depth + 1)
                for child in children
                if isinstance(child, Mapping) and "conditions" in child
            )
    return False


def parse_condition_group(
    group: ConditionGroup | Mapping[str, Any], max_depth: Optional[int] = None
) -> ConditionGroup:
    """Accept either a ConditionGroup or its JSON-like mapping form.

    When `max_depth` is given, a mapping nested deeper than that is rejected
    before it reaches the model.

    Raises:
        ConditionDepthError: If the mapping is nested deeper than `max_depth`
        pydantic.ValidationError: If the mapping does not fit the model
        TypeError: If the value is neither a group nor a mapping
    """
    if isinstance(group, ConditionGroup):
        return group
    if isinstance(group, Mapping):
        if max_depth is not None and _nesting_exceeds(group, max_depth):
            raise ConditionDepthError(max_depth)
        return ConditionGroup.model_validate(dict(group))
    raise TypeError(f"Expected a condition group, got {type(group).__name__}")


class Action(_WireModel):
    """An action of an automation.

    Actions are carried through as opaque records; only the type is required.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(description="The kind of action, e.g. 'device_action'")


class Automation(_WireModel):
    """A complete automation rule definition."""

    id: str = Field(description="The automation's unique identifier")
    name: str = Field(description="The automation's name")
    description: Optional[str] = Field(
        default=None, description="A brief description of the automation"
    )
    conditions: ConditionGroup = Field(
        description="The conditions under which the actions run"
    )
    actions: list[Action] = Field(
        default_factory=list, description="The actions to perform"
    )
    schedule: Optional[str] = Field(
        default=None, description="A cron expression for scheduled evaluation"
    )
    enabled: bool = Field(default=True, description="Whether the automation is active")


class ValidationResult(_WireModel):
    """The outcome of validating a condition tree."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class AutomationResult(_WireModel):
    """An automation together with its generated Lua and deployment state."""

    automation: Automation
    lua_code: str = Field(description="The generated scene Lua, empty if invalid")
    scene_id: Optional[int] = Field(
        default=None, description="The controller scene the automation is deployed as"
    )
    validation: ValidationResult
