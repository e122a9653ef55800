"""Shared test fixtures and configuration for backend tests."""
import json
from typing import List

import pytest
from fastapi.testclient import TestClient

from clinic_chat.ai_provider import AIProvider
from clinic_chat.chat.schemas import Message
from clinic_chat.config import ClinicChatConfig, StoreSettings
from clinic_chat.identity.schemas import Principal
from clinic_chat.main import create_app
from clinic_chat.notifier import Notifier
from clinic_chat.services import ChatServices
from clinic_chat.store.database import DocumentStore

VALID_SUMMARY = {
    "summary": "Reception confirmed tomorrow's appointments.",
    "keyPoints": ["Tomorrow's bookings are confirmed"],
    "actionItems": ["Call the 10:00 patient"],
}


class FakeProvider(AIProvider):
    """AIProvider double that records calls and returns a canned response."""

    name = "fake"

    def __init__(self, response: str = json.dumps(VALID_SUMMARY), error: Exception = None):
        self.response = response
        self.error = error
        self.model = "fake-model"
        self.calls: List[dict] = []

    def generate_structured(self, system, prompt, schema, max_tokens=2048):
        self.calls.append({"system": system, "prompt": prompt, "schema": schema})
        if self.error is not None:
            raise self.error
        return self.response


class RecordingNotifier(Notifier):
    """Notifier double that keeps every (room_name, message) it receives."""

    def __init__(self):
        self.calls = []

    def notify(self, room_name: str, message: Message) -> None:
        self.calls.append((room_name, message))


class FakeClock:
    """Epoch-millisecond clock advancing by ``step`` on every read."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1000):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


@pytest.fixture
def config():
    return ClinicChatConfig(store=StoreSettings(db_path=":memory:"))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    store = DocumentStore(":memory:")
    store.open()
    yield store
    store.close()


@pytest.fixture
def services(config, fake_provider, notifier, clock):
    services = ChatServices(
        config,
        provider_factory=lambda cfg: fake_provider,
        notifier=notifier,
        clock=clock,
    )
    services.init()
    yield services
    services.hub.close_all()
    services.store.close()


@pytest.fixture
def alice(services):
    return services.identity.bind(
        Principal(uid="alice", displayName="Alice", email="alice@clinic.example",
                  photoURL="https://example.com/alice.png")
    )


@pytest.fixture
def bob(services):
    return services.identity.bind(
        Principal(uid="bob", displayName="Bob", email="bob@clinic.example")
    )


@pytest.fixture
def carol(services):
    return services.identity.bind(Principal(uid="carol", displayName="Carol"))


@pytest.fixture
def api_client(services):
    """TestClient whose lifespan owns the ``services`` container.

    Used as a context manager so REST calls and WebSockets share one
    event loop (live subscriptions are bound to it).
    """
    app = create_app(services=services)
    with TestClient(app) as client:
        yield client

