"""Assembles complete Fibaro Lua scenes from automation definitions."""

from collections.abc import Sequence

from fibaro.automation.condition import compile_group
from fibaro.automation.model import Automation, AutomationResult
from fibaro.automation.sanitizer import validate_display_name
from fibaro.automation.validator import validate_group

INDENT = "    "


def build_scene_lua(automation: Automation, statements: Sequence[str] = ()) -> str:
    """Build the Lua body of a scene that runs `statements` when the automation's
    conditions hold.

    Statements are Lua the caller has already rendered for the automation's
    actions; like custom conditions they are embedded without sanitization.

    Raises:
        CompilationError: If the condition tree is malformed
        SanitizationError: If the name or description cannot be embedded
    """
    header = [f"-- Automation: {validate_display_name(automation.name, 'automation name')}"]
    if automation.description:
        header.append(
            f"-- {validate_display_name(automation.description, 'automation description')}"
        )
    if automation.schedule:
        header.append(f"-- Schedule: {validate_display_name(automation.schedule, 'schedule')}")

    condition = compile_group(automation.conditions)
    body = [INDENT + line for statement in statements for line in statement.splitlines()]
    return "\n".join([*header, f"if {condition} then", *body, "end", ""])


def generate_automation(
    automation: Automation, statements: Sequence[str] = ()
) -> AutomationResult:
    """Validate an automation and, when valid, generate its scene Lua.

    Invalid automations produce an empty `lua_code` and carry the validation
    errors instead of raising.

    Raises:
        SanitizationError: If the name, description or schedule of a valid
            automation cannot be embedded
    """
    validation = validate_group(automation.conditions)
    lua_code = build_scene_lua(automation, statements) if validation.valid else ""
    return AutomationResult(automation=automation, lua_code=lua_code, validation=validation)
