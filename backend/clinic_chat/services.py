"""Service container wiring the store, hub, and domain services.

One ``ChatServices`` instance is created per application and stored on
``app.state``. Routers receive it through the ``get_services`` dependency.

Usage:
    services = ChatServices(config)
    services.init()
    ...
    await services.dispose()
"""
import logging
from typing import Callable, Optional

from fastapi.requests import HTTPConnection

from .ai_provider import AIProvider
from .chat.stream import MessageStream
from .config import ClinicChatConfig
from .errors import AuthorizationError, ConfigurationError
from .identity.binder import IdentityBinder
from .identity.google_service import GoogleSSOService
from .identity.schemas import User
from .notifier import Notifier, create_notifier
from .rooms.directory import RoomDirectory, now_ms
from .store.database import DocumentStore
from .store.hub import ChangeHub
from .summary.summarizer import ConversationSummarizer

logger = logging.getLogger(__name__)


class ChatServices:
    """Owns every long-lived service and their lifecycle."""

    def __init__(
        self,
        config: ClinicChatConfig,
        provider_factory: Optional[Callable[[ClinicChatConfig], AIProvider]] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.config = config
        self.store = DocumentStore(config.store.db_path)
        self.hub = ChangeHub()
        self.notifier = notifier or create_notifier(config.notifier)
        self.identity = IdentityBinder(self.store)
        self.rooms = RoomDirectory(self.store, self.hub, config, clock=clock)
        self.messages = MessageStream(
            self.store, self.hub, config,
            directory=self.rooms, notifier=self.notifier, clock=clock,
        )
        self.summarizer = ConversationSummarizer(config, provider_factory)

    def init(self) -> None:
        self.store.open()
        logger.info("[Services] Initialized")

    async def dispose(self) -> None:
        self.hub.close_all()
        await self.notifier.aclose()
        self.store.close()
        logger.info("[Services] Disposed")

    def require_member(self, room_id: str, user_id: str) -> User:
        """Resolve ``user_id`` and check it participates in ``room_id``.

        Raises:
            NotFoundError: If the user or the room does not exist.
            AuthorizationError: If the user is not a participant.
        """
        user = self.identity.get_user(user_id)
        room = self.rooms.get_room(room_id)
        if user.id not in room.participants:
            raise AuthorizationError("You are not a member of this room")
        return user

    def google_sso(self) -> GoogleSSOService:
        """Build the Google device-flow client.

        Raises:
            ConfigurationError: If Google sign-in is disabled or not configured.
        """
        if not self.config.auth.google.enabled:
            raise ConfigurationError("Google sign-in is not enabled")
        secrets = self.config.secrets.google
        if not secrets.client_id:
            raise ConfigurationError("Google sign-in client_id is not configured")
        return GoogleSSOService(client_id=secrets.client_id, client_secret=secrets.client_secret or "")


def get_services(connection: HTTPConnection) -> ChatServices:
    """FastAPI dependency returning the application's service container."""
    return connection.app.state.services
