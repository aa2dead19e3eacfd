"""
Deployment and bookkeeping of automations on a Fibaro controller.

Each installed automation is compiled into a Lua scene, created (or updated)
on the controller, and recorded together with its scene id in a JSON file so
the mapping survives restarts.
"""

import asyncio
import logging
import os
from collections.abc import Sequence
from typing import Optional

from fibaro.automation.errors import CompilationError
from fibaro.automation.model import Automation, AutomationResult
from fibaro.automation.script import generate_automation
from fibaro.client import FibaroClient
from util import env_var, load_models_from_json, save_models_to_json

logger = logging.getLogger(__name__)

DEFAULT_ROOM_ID = 0


def _find_project_root(start_path: str) -> str:
    """Find the project root by looking for app.py in parent directories.

    Raises:
        RuntimeError: If no project root is found
    """
    current = start_path
    while current != os.path.dirname(current):
        if os.path.exists(os.path.join(current, "app.py")):
            return current
        current = os.path.dirname(current)
    raise RuntimeError("Could not find project root (directory containing app.py)")


class AutomationManager:
    """Installs automations as controller scenes and keeps track of them."""

    def __init__(
        self,
        client: FibaroClient,
        room_id: int = DEFAULT_ROOM_ID,
        automations_file: Optional[str] = None,
    ):
        self._client = client
        self._room_id = room_id
        # Automation id -> generated result, including the scene id
        self._installed: dict[str, AutomationResult] = {}
        # Held across each scene create/update/delete and the matching record change
        self._lock = asyncio.Lock()
        if automations_file is None:
            automations_file = env_var("AUTOMATIONS_FILE", allow_null=True)
        if automations_file is None:
            project_root = _find_project_root(os.path.dirname(os.path.abspath(__file__)))
            automations_file = os.path.join(project_root, "automations.json")
        self._automations_file = automations_file

    async def _save_automations(self):
        await save_models_to_json(list(self._installed.values()), self._automations_file)

    async def install_saved_automations(self):
        """Load the previously installed automations from the automations file."""
        for result in await load_models_from_json(AutomationResult, self._automations_file):
            self._installed[result.automation.id] = result

    async def install_automation(
        self, automation: Automation, statements: Sequence[str] = ()
    ) -> AutomationResult:
        """Compile an automation and deploy it as a scene.

        An automation whose id is already installed updates its existing scene.

        Args:
            automation: The automation to install
            statements: Lua statements to run when the conditions hold

        Raises:
            CompilationError: If the automation's conditions are invalid
            FibaroClientError: If the controller rejects the scene
        """
        result = generate_automation(automation, statements)
        if not result.validation.valid:
            raise CompilationError(
                f"Automation '{automation.id}' is invalid: "
                + "; ".join(result.validation.errors)
            )

        async with self._lock:
            existing = self._installed.get(automation.id)
            if existing is not None and existing.scene_id is not None:
                await self._client.update_scene(
                    existing.scene_id, name=automation.name, lua=result.lua_code
                )
                scene_id = existing.scene_id
            else:
                scene = await self._client.create_scene(
                    automation.name, self._room_id, result.lua_code
                )
                scene_id = scene.id

            installed = result.model_copy(update={"scene_id": scene_id})
            self._installed[automation.id] = installed
            await self._save_automations()
        logger.info("Installed automation '%s' as scene %s", automation.id, scene_id)
        return installed

    async def uninstall_automation(self, automation_id: str) -> bool:
        """Delete an automation's scene and forget it.

        Returns:
            Whether the automation was installed
        """
        async with self._lock:
            installed = self._installed.get(automation_id)
            if installed is None:
                return False

            if installed.scene_id is not None:
                await self._client.delete_scene(installed.scene_id)
            del self._installed[automation_id]
            await self._save_automations()
        logger.info("Uninstalled automation '%s'", automation_id)
        return True

    def get_installed_automations(self) -> list[AutomationResult]:
        """Get all currently installed automations."""
        return list(self._installed.values())

    def get_automation(self, automation_id: str) -> AutomationResult | None:
        """Get an installed automation by its id."""
        return self._installed.get(automation_id)
