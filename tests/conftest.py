"""Shared fixtures: a scripted HTTP backend, sessions and recording feedback."""
import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from gallery_client.application.session import SessionContext
from gallery_client.infrastructure.backend import BackendClient
from gallery_client.schemas import AuthUser, Session
from gallery_client.state.feedback import Feedback

BASE_URL = "http://backend.test"

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class ScriptedBackend:
    """
    httpx transport handler that answers from registered routes

    Routes are matched on method and path (a trailing '*' matches any
    suffix); the first registered match wins unless it was registered with
    once=True and already used.
    """

    def __init__(self):
        self.routes: List[Tuple[str, str, Responder, bool]] = []
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, responder: Responder, once: bool = False):
        self.routes.append((method.upper(), path, responder, once))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for index, (method, path, responder, once) in enumerate(self.routes):
            if path.endswith("*"):
                path_matches = request.url.path.startswith(path[:-1])
            else:
                path_matches = path == request.url.path
            if method == request.method and path_matches:
                if once:
                    del self.routes[index]
                if callable(responder):
                    return responder(request)
                # Fresh copy so one registered response can answer many requests
                return httpx.Response(
                    responder.status_code, headers=responder.headers, content=responder.content
                )
        return httpx.Response(404, json={"message": f"No route for {request.method} {request.url.path}"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> BackendClient:
        return BackendClient(BASE_URL, "anon-key", transport=self.transport())

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content.decode()) if request.content else None


def param(request: httpx.Request, name: str) -> Optional[str]:
    return request.url.params.get(name)


def run_with_backend(scripted: ScriptedBackend, scenario: Callable[[BackendClient], Any]):
    """Start a backend client on the scripted transport, run scenario, close it"""

    async def main():
        backend = scripted.client()
        await backend.start()
        try:
            return await scenario(backend)
        finally:
            await backend.stop()

    return asyncio.run(main())


class RecordingFeedback(Feedback):
    def __init__(self):
        self.successes: List[str] = []
        self.errors: List[str] = []

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


def make_session(user_id: str = "u1", token: str = "user-token") -> Session:
    return Session(access_token=token, refresh_token="refresh", user=AuthUser(id=user_id))


@pytest.fixture
def scripted() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def feedback() -> RecordingFeedback:
    return RecordingFeedback()


@pytest.fixture
def signed_in() -> SessionContext:
    return SessionContext(make_session())


@pytest.fixture
def signed_out() -> SessionContext:
    return SessionContext()


def profile_row(user_id: str = "u1", username: str = "ada") -> Dict[str, Any]:
    return {"id": user_id, "username": username, "full_name": "Ada L", "avatar_url": None}


def image_row(image_id: str = "img1", **overrides) -> Dict[str, Any]:
    row = {
        "id": image_id,
        "user_id": "owner",
        "title": "Sunset",
        "description": None,
        "image_url": f"{image_id}.jpg",
        "tags": ["sky"],
        "category": "photo",
        "like_count": 3,
        "view_count": 10,
        "comment_count": 1,
        "is_featured": False,
        "is_published": True,
        "published_at": None,
        "created_at": "2024-05-01T12:00:00+00:00",
    }
    row.update(overrides)
    return row
