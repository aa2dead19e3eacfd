"""Shared fixtures: a fake Home Center behind an httpx mock transport."""

import json

import httpx
import pytest

from fibaro.client import FibaroClient, FibaroConfig


class FakeController:
    """In-memory stand-in for the scene endpoints of a Home Center."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.scenes: dict[int, dict] = {}
        self.next_id = 10
        self.fail_with: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, text="controller says no")

        path = request.url.path
        if request.method == "GET" and path == "/api/scenes":
            return httpx.Response(200, json=list(self.scenes.values()))
        if request.method == "POST" and path == "/api/scenes":
            scene = {"id": self.next_id, **json.loads(request.content)}
            self.scenes[self.next_id] = scene
            self.next_id += 1
            return httpx.Response(201, json=scene)

        scene_id = int(path.split("/")[3])
        if scene_id not in self.scenes:
            return httpx.Response(404, text="scene not found")
        if request.method == "GET":
            return httpx.Response(200, json=self.scenes[scene_id])
        if request.method == "PUT":
            self.scenes[scene_id].update(json.loads(request.content))
            return httpx.Response(204)
        if request.method == "DELETE":
            del self.scenes[scene_id]
            return httpx.Response(204)
        if request.method == "POST" and path.endswith("/action/start"):
            return httpx.Response(202)
        return httpx.Response(405)


@pytest.fixture
def config():
    return FibaroConfig(host="hc3.local", username="admin", password="secret")


@pytest.fixture
def controller():
    return FakeController()


@pytest.fixture
def fibaro_client(config, controller):
    return FibaroClient(config, transport=httpx.MockTransport(controller))
