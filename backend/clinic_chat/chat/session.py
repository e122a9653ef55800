"""Per-connection chat session.

``ChatSession`` holds one signed-in client's view: the room list, the
active room, its message window, the compose draft, and the last summary.
It owns the live subscriptions behind that view and tears them down when
their scope ends: switching rooms cancels the previous message
subscription before opening the next one, and ``sign_out`` cancels
everything.

State changes are reported as event dicts through the ``emit`` coroutine:
    {"type": "rooms", "rooms": [...]}
    {"type": "active_room", "roomId": "..." | None}
    {"type": "messages", "roomId": "...", "messages": [...]}
    {"type": "summary", "roomId": "...", "summary": {...}, "errorCause": ...}
    {"type": "info", "message": "..."}
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from ..errors import AuthorizationError, InvalidInputError
from ..identity.schemas import User
from ..rooms.schemas import ChatRoom, JoinResult
from ..services import ChatServices
from ..store.hub import Subscription
from ..summary.schemas import SummaryResponse
from ..summary.summarizer import parse_error_cause
from .schemas import Message
from .stream import MessageSubscription

logger = logging.getLogger(__name__)

EmitFn = Callable[[dict], Awaitable[None]]

ALREADY_MEMBER_MESSAGE = "You are already a member of this room."


class ChatSession:
    """Client-side state machine over the room and message services."""

    def __init__(self, services: ChatServices, emit: Optional[EmitFn] = None) -> None:
        self._services = services
        self._emit = emit
        self.user: Optional[User] = None
        self.rooms: List[ChatRoom] = []
        self.active_room_id: Optional[str] = None
        self.messages: List[Message] = []
        self.draft = ""
        self.is_important = False
        self.summary: Optional[SummaryResponse] = None

        self._room_sub: Optional[Subscription] = None
        self._room_pump: Optional[asyncio.Task] = None
        self._message_sub: Optional[MessageSubscription] = None
        self._message_pump: Optional[asyncio.Task] = None
        self._busy = 0

    @property
    def signed_in(self) -> bool:
        return self.user is not None

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def start(self, user: User) -> None:
        """Begin a session for ``user``, replacing any previous one."""
        await self.sign_out()
        self.user = user
        self._room_sub = self._services.rooms.subscribe_rooms(user.id)
        self._room_pump = asyncio.create_task(self._pump_rooms(self._room_sub))
        logger.info(f"[Session] Started for {user.id}")

    async def sign_out(self) -> None:
        """Cancel every subscription and clear all local state."""
        await self._stop_messages()
        if self._room_sub is not None:
            self._room_sub.cancel()
            self._room_sub = None
        await self._stop_task(self._room_pump)
        self._room_pump = None
        if self.user is not None:
            logger.info(f"[Session] Signed out {self.user.id}")
        self.user = None
        self.rooms = []
        self.active_room_id = None
        self.messages = []
        self.draft = ""
        self.is_important = False
        self.summary = None

    async def settle(self, timeout: float = 5.0) -> None:
        """Wait until every delivered snapshot has been applied."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        idle_rounds = 0
        while idle_rounds < 2:
            await asyncio.sleep(0)
            idle_rounds = 0 if self._has_pending_work() else idle_rounds + 1
            if loop.time() > deadline:
                logger.warning("[Session] settle() timed out with work pending")
                return

    # -----------------------------------------------------------------------
    # Rooms
    # -----------------------------------------------------------------------

    async def select_room(self, room_id: Optional[str]) -> None:
        """Make ``room_id`` the active room (None clears the selection)."""
        user = self._require_user()
        if room_id is not None:
            room = self._services.rooms.get_room(room_id)
            if user.id not in room.participants:
                raise AuthorizationError("You are not a member of this room")
        await self._set_active(room_id)

    async def create_room(self, name: str) -> ChatRoom:
        user = self._require_user()
        room = self._services.rooms.create_room(name, user.id)
        await self._set_active(room.id)
        return room

    async def join_room(self, code: str) -> JoinResult:
        user = self._require_user()
        result = self._services.rooms.join_room(code, user.id)
        if result.alreadyMember:
            await self._send_event({"type": "info", "message": ALREADY_MEMBER_MESSAGE})
        await self._set_active(result.room.id)
        return result

    async def delete_room(self, room_id: str) -> None:
        user = self._require_user()
        self._services.rooms.delete_room(room_id, user.id)
        if self.active_room_id == room_id:
            await self._set_active(None)

    # -----------------------------------------------------------------------
    # Messages
    # -----------------------------------------------------------------------

    def set_draft(self, text: str, is_important: Optional[bool] = None) -> None:
        self.draft = text or ""
        if is_important is not None:
            self.is_important = bool(is_important)

    async def send(self, text: Optional[str] = None, image_url: Optional[str] = None) -> Optional[Message]:
        """Send ``text`` (or the draft) to the active room.

        The draft and importance flag are cleared only after the message
        is stored; on failure they are kept for a retry.
        """
        user = self._require_user()
        room_id = self._require_active()
        body = self.draft if text is None else text
        message = self._services.messages.send(
            room_id, user, text=body, image_url=image_url, is_important=self.is_important
        )
        if message is None:
            return None
        self.draft = ""
        self.is_important = False
        return message

    async def summarize(self) -> SummaryResponse:
        room_id = self._require_active()
        summary = await self._services.summarizer.summarize(list(self.messages))
        self.summary = summary
        cause = parse_error_cause(summary)
        await self._send_event({
            "type": "summary",
            "roomId": room_id,
            "summary": summary.model_dump(),
            "errorCause": cause.value if cause else None,
        })
        return summary

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _require_user(self) -> User:
        if self.user is None:
            raise InvalidInputError("Not signed in")
        return self.user

    def _require_active(self) -> str:
        if self.active_room_id is None:
            raise InvalidInputError("No room is selected")
        return self.active_room_id

    def _has_pending_work(self) -> bool:
        if self._busy:
            return True
        for sub in (self._room_sub, self._message_sub):
            if sub is not None and not sub.closed and sub.pending():
                return True
        return False

    async def _send_event(self, event: dict) -> None:
        if self._emit is not None:
            await self._emit(event)

    async def _set_active(self, room_id: Optional[str]) -> None:
        await self._stop_messages()
        self.active_room_id = room_id
        self.messages = []
        self.summary = None
        await self._send_event({"type": "active_room", "roomId": room_id})
        if room_id is None or self.user is None:
            return
        sub = self._services.messages.subscribe(room_id, viewer_id=self.user.id)
        self._message_sub = sub
        self._message_pump = asyncio.create_task(self._pump_messages(sub))
        logger.debug(f"[Session] {self.user.id} now viewing room {room_id}")

    async def _stop_messages(self) -> None:
        if self._message_sub is not None:
            self._message_sub.cancel()
            self._message_sub = None
        await self._stop_task(self._message_pump)
        self._message_pump = None

    @staticmethod
    async def _stop_task(task: Optional[asyncio.Task]) -> None:
        if task is None or task is asyncio.current_task():
            return
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _pump_rooms(self, sub: Subscription) -> None:
        async for rooms in sub:
            if sub.closed:
                break
            self._busy += 1
            try:
                await self._apply_rooms(rooms)
            except Exception as e:
                logger.error(f"[Session] Failed to apply room snapshot: {e}")
            finally:
                self._busy -= 1

    async def _apply_rooms(self, rooms: List[ChatRoom]) -> None:
        self.rooms = rooms
        await self._send_event({"type": "rooms", "rooms": [r.model_dump() for r in rooms]})
        room_ids = {room.id for room in rooms}
        if self.active_room_id is not None and self.active_room_id not in room_ids:
            logger.info(f"[Session] Active room {self.active_room_id} is gone")
            await self._set_active(None)
        if self.active_room_id is None and rooms:
            await self._set_active(rooms[0].id)

    async def _pump_messages(self, sub: MessageSubscription) -> None:
        async for messages in sub:
            if sub.closed:
                break
            self._busy += 1
            try:
                self.messages = messages
                await self._send_event({
                    "type": "messages",
                    "roomId": sub.room_id,
                    "messages": [m.model_dump(exclude_none=True) for m in messages],
                })
            except Exception as e:
                logger.error(f"[Session] Failed to apply message snapshot: {e}")
            finally:
                self._busy -= 1
