"""Tests for the structural validator and its agreement with the compiler."""

import math

import pytest

from fibaro.automation.condition import compile_group
from fibaro.automation.model import (
    ConditionGroup,
    CustomCondition,
    DeviceStateCondition,
    SunPositionCondition,
    TimeCondition,
    VariableCondition,
)
from fibaro.automation.validator import validate_condition, validate_group

DEVICE = {"type": "device_state", "deviceId": 5, "property": "value", "operator": ">", "value": 50}
ARMED = {"type": "variable", "variableName": "alarmArmed", "operator": "==", "value": True}
SUNSET = {"type": "sun_position", "sunPosition": "sunset", "operator": "<", "timeOffset": -30}


class TestValidateGroup:
    """Tests for validate_group."""

    def test_valid_tree(self):
        group = {
            "operator": "AND",
            "conditions": [DEVICE, {"operator": "OR", "conditions": [ARMED, SUNSET]}],
        }
        result = validate_group(group)
        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_empty_group(self):
        result = validate_group({"operator": "AND", "conditions": []})
        assert result.valid is False
        assert result.errors == ["ConditionGroup must have at least one condition"]

    def test_missing_operator(self):
        result = validate_group({"conditions": [DEVICE]})
        assert result.errors == ["ConditionGroup must have operator 'AND' or 'OR'"]

    def test_nested_errors_carry_their_location(self):
        group = {
            "operator": "AND",
            "conditions": [
                DEVICE,
                {"operator": "OR", "conditions": [ARMED, {"operator": "AND", "conditions": []}]},
            ],
        }
        result = validate_group(group)
        assert result.errors == [
            "conditions[1].conditions[1]: ConditionGroup must have at least one condition"
        ]

    def test_collects_every_error(self):
        group = {
            "operator": "XOR",
            "conditions": [
                {"type": "device_state", "operator": "=", "value": 1},
                {"type": "time", "operator": "<", "value": "noon"},
                {"type": "weather", "operator": "=="},
            ],
        }
        result = validate_group(group)
        assert result.valid is False
        assert result.errors == [
            "ConditionGroup must have operator 'AND' or 'OR'",
            "conditions[0]: Invalid operator: =",
            "conditions[0]: device_state condition requires deviceId",
            "conditions[0]: device_state condition requires property",
            "conditions[1]: time condition value must be a number (Unix timestamp)",
            "conditions[2]: Unknown condition type: weather",
        ]

    def test_depth_limit(self):
        group = ConditionGroup.model_validate(
            {"operator": "AND", "conditions": [{"operator": "AND", "conditions": [DEVICE]}]}
        )
        assert validate_group(group, max_depth=2).valid is True
        result = validate_group(group, max_depth=1)
        assert result.errors == ["conditions[0]: ConditionGroup nesting exceeds maximum depth of 1"]

    def test_depth_limit_on_mapping(self):
        group = {"operator": "AND", "conditions": [{"operator": "AND", "conditions": [DEVICE]}]}
        assert validate_group(group, max_depth=2).valid is True
        result = validate_group(group, max_depth=1)
        assert result.errors == ["ConditionGroup nesting exceeds maximum depth of 1"]

    def test_very_deep_mapping_reports_depth(self):
        result = validate_group(_nested(1000))
        assert result.valid is False
        assert result.errors == ["ConditionGroup nesting exceeds maximum depth of 32"]

    def test_malformed_mapping_is_reported_not_raised(self):
        result = validate_group({"operator": "AND", "conditions": [{**DEVICE, "deviceId": "five"}]})
        assert result.valid is False
        assert len(result.errors) == 1
        assert "deviceId" in result.errors[0]

    def test_non_mapping_is_reported_not_raised(self):
        result = validate_group(None)
        assert result.valid is False
        assert result.errors

    def test_custom_condition_warns(self):
        custom = {"type": "custom", "operator": "==", "customLua": "true"}
        result = validate_group({"operator": "AND", "conditions": [custom]})
        assert result.valid is True
        assert result.warnings == [
            "conditions[0]: custom condition Lua is embedded verbatim without sanitization"
        ]


class TestValidateCondition:
    """Tests for per-variant checks of validate_condition."""

    def test_device_state_requirements(self):
        result = validate_condition(DeviceStateCondition(operator="=="))
        assert result.errors == [
            "device_state condition requires deviceId",
            "device_state condition requires property",
            "device_state condition requires value",
        ]

    def test_device_state_unsafe_property(self):
        condition = DeviceStateCondition(
            device_id=5, property='x"); os.execute("rm -rf /', operator="==", value=1
        )
        result = validate_condition(condition)
        assert result.valid is False
        assert "device property" in result.errors[0]

    def test_variable_requirements(self):
        result = validate_condition(VariableCondition(operator="=="))
        assert result.errors == [
            "variable condition requires variableName",
            "variable condition requires value",
        ]

    def test_variable_non_finite_value(self):
        condition = VariableCondition(variable_name="t", operator=">", value=math.inf)
        assert validate_condition(condition).valid is False

    def test_time_requirements(self):
        result = validate_condition(TimeCondition(operator="<"))
        assert result.errors == ["time condition requires value (timestamp)"]

    def test_time_rejects_booleans(self):
        result = validate_condition(TimeCondition(operator="<", value=True))
        assert result.errors == ["time condition value must be a number (Unix timestamp)"]

    def test_sun_position_requirements(self):
        assert validate_condition(SunPositionCondition(operator=">")).errors == [
            "sun_position condition requires sunPosition field"
        ]
        assert validate_condition(SunPositionCondition(sun_position="noon", operator=">")).errors == [
            'sunPosition must be "sunrise" or "sunset"'
        ]

    def test_sun_position_offset_must_be_finite(self):
        condition = SunPositionCondition(sun_position="sunset", operator=">", time_offset=math.nan)
        assert validate_condition(condition).valid is False

    def test_custom_requirements(self):
        result = validate_condition(CustomCondition(operator="=="))
        assert result.errors == ["custom condition requires customLua field"]


def _nested(levels: int) -> dict:
    group = {"operator": "AND", "conditions": [DEVICE]}
    for _ in range(levels - 1):
        group = {"operator": "AND", "conditions": [group]}
    return group


def _compiles(group) -> bool:
    try:
        compile_group(group)
    except Exception:
        return False
    return True


CONSISTENCY_CASES = [
    {"operator": "AND", "conditions": [DEVICE, ARMED, SUNSET]},
    {"operator": "OR", "conditions": [{"operator": "AND", "conditions": [DEVICE]}, ARMED]},
    {"operator": "AND", "conditions": []},
    {"operator": "NAND", "conditions": [DEVICE]},
    {"conditions": [DEVICE]},
    {"operator": "AND", "conditions": [{**DEVICE, "operator": "=>"}]},
    {"operator": "AND", "conditions": [{**DEVICE, "property": "a b"}]},
    {"operator": "AND", "conditions": [{**DEVICE, "deviceId": None}]},
    {"operator": "AND", "conditions": [{k: v for k, v in DEVICE.items() if k != "value"}]},
    {"operator": "AND", "conditions": [{**DEVICE, "value": None}]},
    {"operator": "AND", "conditions": [{**DEVICE, "deviceId": "five"}]},
    {"operator": "AND", "conditions": [{**DEVICE, "deviceId": "5"}]},
    {"operator": "AND", "conditions": [{**DEVICE, "deviceId": True}]},
    {"operator": "AND", "conditions": [{**DEVICE, "deviceId": 5.0}]},
    {"operator": "AND", "conditions": [{**ARMED, "variableName": ""}]},
    {"operator": "AND", "conditions": [{**ARMED, "value": 3.5}]},
    {"operator": "AND", "conditions": [{"type": "time", "operator": ">", "value": 1700000000}]},
    {"operator": "AND", "conditions": [{"type": "time", "operator": ">", "value": "1700000000"}]},
    {"operator": "AND", "conditions": [{"type": "time", "operator": ">"}]},
    {"operator": "AND", "conditions": [{**SUNSET, "sunPosition": "dusk"}]},
    {"operator": "AND", "conditions": [{**SUNSET, "timeOffset": None}]},
    {"operator": "AND", "conditions": [{**SUNSET, "timeOffset": "30"}]},
    {"operator": "AND", "conditions": [{**SUNSET, "timeOffset": False}]},
    {"operator": "AND", "conditions": [{"type": "custom", "operator": "==", "customLua": "true"}]},
    {"operator": "AND", "conditions": [{"type": "custom", "operator": "==", "customLua": ""}]},
    {"operator": "AND", "conditions": [{"type": "custom", "customLua": "true"}]},
    {"operator": "AND", "conditions": [{"type": "geofence", "operator": "=="}]},
    {"operator": "AND", "conditions": [{"operator": "=="}]},
    ConditionGroup(
        operator="AND",
        conditions=[VariableCondition(variable_name="t", operator=">", value=math.nan)],
    ),
    ConditionGroup(
        operator="OR",
        conditions=[SunPositionCondition(sun_position="sunrise", operator=">", time_offset=math.inf)],
    ),
    _nested(33),
    _nested(1000),
    None,
]


@pytest.mark.parametrize("group", CONSISTENCY_CASES)
def test_validator_agrees_with_compiler(group):
    assert validate_group(group).valid == _compiles(group)
