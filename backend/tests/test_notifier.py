"""Tests for the side-effect notifier."""
import json

import httpx
import pytest

from clinic_chat.chat.schemas import Message
from clinic_chat.config import NotifierSettings
from clinic_chat.notifier import HttpNotifier, NullNotifier, build_payload, create_notifier

ENDPOINT = "https://logs.example.com/chat"


def _message(text="明日の予約確認", important=True):
    return Message(
        id="m1", senderId="alice", senderName="Alice", text=text,
        timestamp=1_700_000_000_000, isImportant=important, readBy=["alice"],
    )


def _notifier(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpNotifier(ENDPOINT, client=client)


def test_build_payload():
    assert build_payload("受付連絡", _message()) == {
        "room": "受付連絡",
        "user": "Alice",
        "text": "明日の予約確認",
        "important": True,
    }


def test_create_notifier_disabled():
    assert isinstance(create_notifier(NotifierSettings()), NullNotifier)


def test_create_notifier_enabled():
    notifier = create_notifier(NotifierSettings(enabled=True, endpoint_url=ENDPOINT))
    assert isinstance(notifier, HttpNotifier)
    assert notifier.endpoint_url == ENDPOINT


def test_enabled_without_url_is_rejected():
    with pytest.raises(ValueError, match="endpoint_url"):
        NotifierSettings(enabled=True)


def test_null_notifier_does_nothing():
    assert NullNotifier().notify("room", _message()) is None


@pytest.mark.asyncio
async def test_posts_payload():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    notifier = _notifier(handler)
    notifier.notify("受付連絡", _message())
    assert notifier.pending == 1

    await notifier.aclose()

    assert len(requests) == 1
    assert requests[0].method == "POST"
    assert str(requests[0].url) == ENDPOINT
    assert json.loads(requests[0].content) == {
        "room": "受付連絡", "user": "Alice", "text": "明日の予約確認", "important": True,
    }
    assert notifier.pending == 0


@pytest.mark.asyncio
async def test_server_error_is_swallowed():
    notifier = _notifier(lambda request: httpx.Response(500))
    notifier.notify("受付連絡", _message())
    await notifier.aclose()
    assert notifier.pending == 0


@pytest.mark.asyncio
async def test_transport_error_is_swallowed():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    notifier = _notifier(handler)
    notifier.notify("受付連絡", _message())
    await notifier.aclose()


def test_no_running_loop_drops_message():
    requests = []
    notifier = _notifier(lambda request: requests.append(request) or httpx.Response(200))

    notifier.notify("受付連絡", _message())

    assert notifier.pending == 0
    assert requests == []


@pytest.mark.asyncio
async def test_send_triggers_notifier(services, alice):
    requests = []

    def handler(request):
        requests.append(json.loads(request.content))
        return httpx.Response(204)

    notifier = _notifier(handler)
    services.messages._notifier = notifier
    room = services.rooms.create_room("受付連絡", alice.id)

    services.messages.send(room.id, alice, text="hello", is_important=False)
    await notifier.aclose()

    assert requests == [{"room": "受付連絡", "user": "Alice", "text": "hello", "important": False}]
