"""Configure pytest fixtures and environment for the TOEIC admin tests."""

import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from toeic_admin.core.config import get_settings, reset_settings
from toeic_admin.core.models import Session, User
from toeic_admin.data.api_client import ToeicApiClient
from toeic_admin.data.session_store import SessionStore
from toeic_admin.utils.reliability import reset_circuit_breaker

from sample_data import ADMIN_USER

API_PREFIX = "/api"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeBackend:
    """
    Routes requests made through ``httpx.MockTransport`` to canned responses.

    Paths are registered without the ``/api`` prefix of the test base URL.
    Unknown routes answer 404 with a backend-style envelope.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        status: int = 200,
        handler: Optional[Handler] = None,
    ) -> None:
        if handler is None:
            payload = {"success": True} if body is None else body

            def handler(request, payload=payload, status=status):
                return httpx.Response(status, json=payload)

        self.routes[(method.upper(), path)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith(API_PREFIX):
            path = path[len(API_PREFIX):]
        handler = self.routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json={"success": False, "message": f"No route {path}"})
        return handler(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method.upper() and r.url.path == API_PREFIX + path
        ]

    @staticmethod
    def json_of(request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point settings at a temporary session file and a fake backend URL."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TOEIC_API_BASE_URL", "http://api.test" + API_PREFIX)
    monkeypatch.setenv("TOEIC_SESSION_FILE", str(tmp_path / "session.json"))
    monkeypatch.setenv("TOEIC_LOCALE", "en")
    monkeypatch.setenv("MAX_WORKERS", "4")
    monkeypatch.setenv("AI_BATCH_SIZE", "2")
    monkeypatch.setenv("AI_BATCH_DELAY_SECONDS", "0")
    monkeypatch.delenv("DRY_RUN", raising=False)
    reset_settings()
    reset_circuit_breaker("toeic_api")
    yield
    reset_settings()
    reset_circuit_breaker("toeic_api")


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def api_client(backend):
    client = ToeicApiClient(
        get_settings().api, token_provider=lambda: "test-token", transport=backend.transport()
    )
    yield client
    client.close()


@pytest.fixture
def session_store():
    return SessionStore.from_config(get_settings().session)


@pytest.fixture
def logged_in(session_store):
    """A fresh admin session on disk."""
    session = Session(
        token="test-token", user=User.model_validate(ADMIN_USER), last_activity=datetime.utcnow()
    )
    session_store.save(session)
    return session
