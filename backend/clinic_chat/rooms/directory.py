"""Room directory: room creation, invite-code joins, and membership.

Every mutation publishes the ``rooms`` topic so that every live room list
re-queries its snapshot. Deleting a room also publishes the room's message
topic so open message windows see it disappear.
"""
import logging
import time
import uuid
from typing import Callable, List, Optional

import duckdb

from ..config import ClinicChatConfig
from ..errors import AuthorizationError, InvalidInputError, NotFoundError, StoreError
from ..store.codec import decode_room, decode_rooms
from ..store.database import DocumentStore, store_operation
from ..store.hub import ROOMS_TOPIC, ChangeHub, Subscription, messages_topic
from .invite import generate_invite_code, normalize_code
from .schemas import ChatRoom, JoinResult

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class RoomDirectory:
    """Owns the ChatRoom lifecycle."""

    def __init__(
        self,
        store: DocumentStore,
        hub: ChangeHub,
        config: ClinicChatConfig,
        clock: Callable[[], int] = now_ms,
        code_generator: Optional[Callable[[int], str]] = None,
    ) -> None:
        self._store = store
        self._hub = hub
        self._settings = config.chat
        self._clock = clock
        self._generate_code = code_generator or generate_invite_code

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def list_rooms(self, user_id: str) -> List[ChatRoom]:
        """Rooms ``user_id`` participates in, newest first."""
        with store_operation("list rooms"):
            docs = self._store.rooms_for_user(user_id)
        return decode_rooms(docs)

    def subscribe_rooms(self, user_id: str) -> Subscription[List[ChatRoom]]:
        """Live room list for ``user_id``; re-delivered on every room change."""
        return self._hub.subscribe(ROOMS_TOPIC, lambda: self.list_rooms(user_id))

    def get_room(self, room_id: str) -> ChatRoom:
        with store_operation("get room"):
            doc = self._store.get_room(room_id)
        room = decode_room(doc)
        if room is None:
            raise NotFoundError(f"Room {room_id} not found")
        return room

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    def create_room(self, name: str, owner_id: str) -> ChatRoom:
        """Create a room owned by ``owner_id`` with a fresh invite code.

        Raises:
            InvalidInputError: If the name is empty or whitespace.
            StoreError: If no unused code is found within the attempt budget.
        """
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("Room name must not be empty")
        if not owner_id:
            raise InvalidInputError("Room owner is required")

        attempts = self._settings.invite_code_attempts
        with store_operation("create room"):
            for attempt in range(1, attempts + 1):
                code = self._generate_code(self._settings.invite_code_length)
                if self._store.code_exists(code):
                    logger.warning(f"[Rooms] Invite code collision on attempt {attempt}")
                    continue
                doc = {
                    "id": uuid.uuid4().hex,
                    "name": name,
                    "code": code,
                    "createdBy": owner_id,
                    "createdAt": self._clock(),
                }
                try:
                    stored = self._store.insert_room(doc)
                except duckdb.ConstraintException:
                    # Lost a race for the same code
                    logger.warning(f"[Rooms] Invite code taken during insert on attempt {attempt}")
                    continue
                break
            else:
                raise StoreError(f"Could not allocate a unique invite code in {attempts} attempts")

        room = decode_room(stored)
        if room is None:
            raise StoreError(f"Created room {doc['id']} could not be read back")
        logger.info(f"[Rooms] Created room {room.id} '{room.name}' code={room.code} by {owner_id}")
        self._hub.publish(ROOMS_TOPIC)
        return room

    def join_room(self, code: str, user_id: str) -> JoinResult:
        """Redeem an invite code. Joining twice is a no-op success.

        Raises:
            InvalidInputError: If the code is blank.
            NotFoundError: If no room has this code.
        """
        normalized = normalize_code(code)
        if not normalized:
            raise InvalidInputError("Invite code must not be empty")

        with store_operation("join room"):
            matches = decode_rooms(self._store.find_rooms_by_code(normalized))
            if not matches:
                raise NotFoundError(f"No room matches invite code {normalized}")
            if len(matches) > 1:
                logger.warning(
                    f"[Rooms] Invite code {normalized} matches {len(matches)} rooms; using the oldest"
                )
            room = matches[0]
            added = self._store.add_participant(room.id, user_id, self._clock())
            updated = decode_room(self._store.get_room(room.id)) or room

        if not added:
            logger.info(f"[Rooms] {user_id} is already a member of {room.id}")
            return JoinResult(room=updated, alreadyMember=True)

        logger.info(f"[Rooms] {user_id} joined room {room.id}")
        self._hub.publish(ROOMS_TOPIC)
        return JoinResult(room=updated, alreadyMember=False)

    def delete_room(self, room_id: str, requester_id: str) -> None:
        """Delete a room and all of its messages. Creator only.

        Raises:
            NotFoundError: If the room does not exist.
            AuthorizationError: If ``requester_id`` is not the creator.
        """
        room = self.get_room(room_id)
        if room.createdBy != requester_id:
            logger.warning(f"[Rooms] {requester_id} may not delete room {room_id}")
            raise AuthorizationError("Only the room creator can delete this room")

        with store_operation("delete room"):
            deleted = self._store.delete_room(room_id)
        if not deleted:
            raise NotFoundError(f"Room {room_id} not found")

        logger.info(f"[Rooms] Deleted room {room_id} by {requester_id}")
        self._hub.publish(ROOMS_TOPIC)
        self._hub.publish(messages_topic(room_id))
