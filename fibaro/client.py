"""Client for the Fibaro Home Center REST API.

Only the scene endpoints are wrapped here: automations are deployed to the
controller as Lua scenes.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from util import env_var

logger = logging.getLogger(__name__)

LUA_SCENE_TYPE = "com.fibaro.luaScene"
REQUEST_TIMEOUT = 30.0


class FibaroClientError(Exception):
    """A request to the controller failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FibaroConfig(BaseModel):
    """Connection settings for a Home Center."""

    host: str
    username: str
    password: str
    port: Optional[int] = None
    https: bool = True

    @property
    def base_url(self) -> str:
        protocol = "https" if self.https else "http"
        port = self.port or (443 if self.https else 80)
        return f"{protocol}://{self.host}:{port}/api"

    @classmethod
    def from_env(cls) -> "FibaroConfig":
        """Read the settings from FIBARO_* environment variables."""
        port = env_var("FIBARO_PORT", allow_null=True)
        use_https = env_var("FIBARO_HTTPS", allow_null=True)
        return cls(
            host=env_var("FIBARO_HOST"),
            username=env_var("FIBARO_USERNAME"),
            password=env_var("FIBARO_PASSWORD"),
            port=int(port) if port else None,
            https=use_https is None or use_https.lower() not in ("0", "false", "no"),
        )


class Scene(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    room_id: Optional[int] = Field(default=None, alias="roomID")
    type: Optional[str] = None
    is_lua: bool = Field(default=False, alias="isLua")
    lua: Optional[str] = None


def _describe_failure(
    method: str,
    path: str,
    status_code: Optional[int] = None,
    error: Optional[Exception] = None,
    detail: Optional[str] = None,
) -> str:
    """Build a message naming the failed request and its most likely cause."""
    parts = [f"Request: {method} {path}"]
    if status_code is not None:
        parts.append(f"HTTP {status_code}")
    elif error is not None:
        parts.append(f"Network error: {type(error).__name__}")

    if status_code in (401, 403):
        parts.append(
            "Likely cause: invalid credentials or insufficient permissions. "
            "Fix: verify FIBARO_USERNAME / FIBARO_PASSWORD and that the user has API access."
        )
    elif isinstance(error, httpx.TimeoutException):
        parts.append(
            "Likely cause: timeout. Fix: verify connectivity and check the controller's load."
        )
    elif isinstance(error, httpx.ConnectError):
        parts.append(
            "Likely cause: host not reachable or connection refused. "
            "Fix: verify FIBARO_HOST, FIBARO_PORT and whether HTTPS is enabled."
        )

    if detail:
        parts.append(f"Details: {detail}")
    elif error is not None and str(error):
        parts.append(f"Details: {error}")
    return "\n".join(parts)


async def _log_request(request: httpx.Request):
    logger.debug("Fibaro request: %s %s", request.method, request.url.path)


async def _log_response(response: httpx.Response):
    request = response.request
    logger.debug(
        "Fibaro response: %s %s -> %s", request.method, request.url.path, response.status_code
    )


class FibaroClient:
    """Wrapper around the Home Center scene API"""

    def __init__(
        self,
        config: FibaroConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            auth=(self._config.username, self._config.password),
            # Home Centers ship with self-signed certificates
            verify=False,
            timeout=REQUEST_TIMEOUT,
            transport=self._transport,
            event_hooks={"request": [_log_request], "response": [_log_response]},
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        async with self._client() as client:
            try:
                resp = await client.request(method, path, **kwargs)
            except httpx.TransportError as e:
                logger.error("Fibaro request %s %s failed: %s", method, path, e)
                raise FibaroClientError(_describe_failure(method, path, error=e)) from e

        if resp.status_code >= 400:
            raise FibaroClientError(
                _describe_failure(method, path, status_code=resp.status_code, detail=resp.text),
                status_code=resp.status_code,
            )
        return resp

    async def get_scenes(self) -> list[Scene]:
        """Gets every scene defined on the controller."""
        resp = await self._request("GET", "/scenes")
        return [Scene.model_validate(scene) for scene in resp.json()]

    async def get_scene(self, scene_id: int) -> Scene:
        """Gets the scene with the specified id."""
        resp = await self._request("GET", f"/scenes/{scene_id}")
        return Scene.model_validate(resp.json())

    async def get_scene_lua(self, scene_id: int) -> str:
        """Gets the Lua code of a scene, empty if it has none."""
        return (await self.get_scene(scene_id)).lua or ""

    async def create_scene(
        self, name: str, room_id: int, lua: str = "", scene_type: str = LUA_SCENE_TYPE
    ) -> Scene:
        """Creates a Lua scene and returns it as stored by the controller."""
        resp = await self._request(
            "POST",
            "/scenes",
            json={
                "name": name,
                "roomID": room_id,
                "type": scene_type,
                "isLua": True,
                "lua": lua,
            },
        )
        return Scene.model_validate(resp.json())

    async def update_scene(
        self,
        scene_id: int,
        name: Optional[str] = None,
        room_id: Optional[int] = None,
        lua: Optional[str] = None,
    ):
        """Updates the given fields of an existing scene."""
        updates: dict[str, Any] = {}
        if name is not None:
            updates["name"] = name
        if room_id is not None:
            updates["roomID"] = room_id
        if lua is not None:
            updates["lua"] = lua
        await self._request("PUT", f"/scenes/{scene_id}", json=updates)

    async def delete_scene(self, scene_id: int):
        """Deletes a scene."""
        await self._request("DELETE", f"/scenes/{scene_id}")

    async def run_scene(self, scene_id: int):
        """Starts a scene."""
        await self._request("POST", f"/scenes/{scene_id}/action/start")
