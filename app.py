"""HTTP entry point for compiling, validating and deploying Fibaro automations.

Condition trees can be validated (always answered with a report) or compiled
to Lua (rejected with the first error), and whole automations can be installed
on the controller as Lua scenes.
"""

import logging

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from quart import Quart, jsonify, request

from fibaro.automation.condition import compile_group
from fibaro.automation.errors import AutomationError
from fibaro.automation.manager import DEFAULT_ROOM_ID, AutomationManager
from fibaro.automation.model import Automation
from fibaro.automation.validator import validate_group
from fibaro.client import FibaroClient, FibaroClientError, FibaroConfig
from util import env_var

logger = logging.getLogger(__name__)


class InstallRequest(BaseModel):
    """Body of an install request"""

    automation: Automation
    statements: list[str] = Field(
        default_factory=list,
        description="Lua statements to run when the automation's conditions hold",
    )


def create_app(manager: AutomationManager) -> Quart:
    """Create the application around an automation manager."""
    app = Quart(__name__)

    @app.before_serving
    async def load_automations():
        await manager.install_saved_automations()

    @app.post("/automations/validate")
    async def validate_conditions():
        """Reports every problem in a condition group"""
        result = validate_group(await request.get_json(silent=True))
        return jsonify(result.model_dump(mode="json"))

    @app.post("/automations/compile")
    async def compile_conditions():
        """Compiles a condition group into a Lua expression"""
        try:
            lua = compile_group(await request.get_json(silent=True))
        except (AutomationError, ValidationError, TypeError) as e:
            return jsonify({"error": str(e)}), 400
        return jsonify({"lua": lua})

    @app.post("/automations")
    async def install_automation():
        """Installs an automation on the controller as a scene"""
        try:
            body = InstallRequest.model_validate(await request.get_json(silent=True))
            result = await manager.install_automation(body.automation, body.statements)
        except (AutomationError, ValidationError) as e:
            return jsonify({"error": str(e)}), 400
        except FibaroClientError as e:
            logger.error("Failed to install automation: %s", e)
            return jsonify({"error": str(e)}), 502
        return jsonify(result.model_dump(mode="json", by_alias=True))

    @app.get("/automations")
    async def list_automations():
        """Lists the installed automations"""
        return jsonify(
            [
                result.model_dump(mode="json", by_alias=True)
                for result in manager.get_installed_automations()
            ]
        )

    @app.get("/automations/<automation_id>")
    async def get_automation(automation_id: str):
        """Describes a single installed automation"""
        result = manager.get_automation(automation_id)
        if result is None:
            return jsonify({"error": f"Automation '{automation_id}' not found"}), 404
        return jsonify(result.model_dump(mode="json", by_alias=True))

    @app.delete("/automations/<automation_id>")
    async def uninstall_automation(automation_id: str):
        """Removes an automation and its scene"""
        try:
            removed = await manager.uninstall_automation(automation_id)
        except FibaroClientError as e:
            logger.error("Failed to uninstall automation '%s': %s", automation_id, e)
            return jsonify({"error": str(e)}), 502
        if not removed:
            return jsonify({"error": f"Automation '{automation_id}' not found"}), 404
        return "", 204

    return app


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(
        level=(env_var("LOG_LEVEL", allow_null=True) or "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    room_id = env_var("FIBARO_ROOM_ID", allow_null=True)
    automation_manager = AutomationManager(
        FibaroClient(FibaroConfig.from_env()),
        room_id=int(room_id) if room_id else DEFAULT_ROOM_ID,
    )
    create_app(automation_manager).run(
        host="0.0.0.0", port=int(env_var("PORT", allow_null=True) or 8080)
    )
