"""Side-effect notifier: best-effort logging of sent messages.

``notify`` returns nothing and raises nothing. The HTTP implementation
runs each POST as a detached task; failures are logged and dropped and
nothing is retried.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Set

import httpx

from .chat.schemas import Message
from .config import NotifierSettings

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """Fire-and-forget sink for outgoing messages."""

    @abstractmethod
    def notify(self, room_name: str, message: Message) -> None:
        """Schedule delivery of ``message``. Never blocks and never raises."""

    async def aclose(self) -> None:
        """Release resources, waiting for in-flight deliveries."""


class NullNotifier(Notifier):
    """Used when the notifier is disabled."""

    def notify(self, room_name: str, message: Message) -> None:
        return None


def build_payload(room_name: str, message: Message) -> dict:
    return {
        "room": room_name,
        "user": message.senderName,
        "text": message.text,
        "important": message.isImportant,
    }


class HttpNotifier(Notifier):
    """POSTs ``{room, user, text, important}`` to an external endpoint."""

    def __init__(
        self,
        endpoint_url: str,
        timeout_seconds: float = 10,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def notify(self, room_name: str, message: Message) -> None:
        try:
            task = asyncio.get_running_loop().create_task(
                self._post(build_payload(room_name, message))
            )
        except RuntimeError as e:
            logger.warning(f"[Notifier] No running event loop, dropping message {message.id}: {e}")
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _post(self, payload: dict) -> None:
        try:
            resp = await self._client.post(self.endpoint_url, json=payload)
            resp.raise_for_status()
            logger.debug(f"[Notifier] Logged message for room '{payload['room']}'")
        except Exception as e:
            logger.warning(f"[Notifier] Failed to log message for room '{payload['room']}': {e}")

    async def aclose(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._client.aclose()


def create_notifier(settings: NotifierSettings) -> Notifier:
    if not settings.enabled:
        return NullNotifier()
    return HttpNotifier(settings.endpoint_url, timeout_seconds=settings.timeout_seconds)
