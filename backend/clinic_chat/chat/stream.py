"""Message stream: per-room append-only log with live windows and receipts.

A subscriber sees the newest ``message_window`` messages ordered by
``timestamp`` ascending, re-delivered in full on every change. A viewer's
subscription marks every message it delivers as read by that viewer,
except the viewer's own messages and those already carrying the receipt,
so receipts are written once per (message, reader).
"""
import logging
import uuid
from typing import Callable, List, Optional

from ..config import ClinicChatConfig
from ..errors import ChatError, NotFoundError
from ..identity.schemas import User
from ..notifier import Notifier, NullNotifier
from ..rooms.directory import RoomDirectory, now_ms
from ..store.codec import decode_message, decode_messages
from ..store.database import DocumentStore, store_operation
from ..store.hub import ChangeHub, Subscription, messages_topic
from .schemas import Message

logger = logging.getLogger(__name__)


class MessageSubscription:
    """Live message window for one viewer.

    Iterating yields full snapshots. Each delivered snapshot counts as
    observed: its unread messages are marked as read by the viewer, which
    publishes a follow-up snapshot with the updated receipts.
    """

    def __init__(self, stream: "MessageStream", inner: Subscription, room_id: str, viewer_id: Optional[str]):
        self._stream = stream
        self._inner = inner
        self.room_id = room_id
        self.viewer_id = viewer_id

    @property
    def closed(self) -> bool:
        return self._inner.closed

    def pending(self) -> int:
        return self._inner.pending()

    def cancel(self) -> None:
        self._inner.cancel()

    def __aiter__(self) -> "MessageSubscription":
        return self

    async def __anext__(self) -> List[Message]:
        snapshot = await self._inner.__anext__()
        self._acknowledge(snapshot)
        return snapshot

    def _is_unread(self, message: Message) -> bool:
        return message.senderId != self.viewer_id and self.viewer_id not in message.readBy

    def _acknowledge(self, snapshot: List[Message]) -> None:
        if not self.viewer_id or self._inner.closed:
            return
        unread = [m.id for m in snapshot if self._is_unread(m)]
        if not unread:
            return
        try:
            self._stream.mark_many_read(self.room_id, unread, self.viewer_id)
        except ChatError as e:
            logger.error(f"[Stream] Auto read receipts failed in room {self.room_id}: {e}")

    async def __aenter__(self) -> "MessageSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class MessageStream:
    """Owns the Message lifecycle within a room."""

    def __init__(
        self,
        store: DocumentStore,
        hub: ChangeHub,
        config: ClinicChatConfig,
        directory: Optional[RoomDirectory] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._hub = hub
        self._window = config.chat.message_window
        self._directory = directory
        self._notifier = notifier or NullNotifier()
        self._clock = clock

    def recent(self, room_id: str) -> List[Message]:
        """The current window: newest messages, oldest first."""
        with store_operation("list messages"):
            docs = self._store.recent_messages(room_id, self._window)
        return decode_messages(docs)

    def subscribe(self, room_id: str, viewer_id: Optional[str] = None) -> MessageSubscription:
        """Open a live window on ``room_id``.

        With a ``viewer_id`` the subscription records read receipts for
        that viewer as snapshots are consumed.
        """
        inner = self._hub.subscribe(messages_topic(room_id), lambda: self.recent(room_id))
        return MessageSubscription(self, inner, room_id, viewer_id)

    def send(
        self,
        room_id: str,
        sender: User,
        text: Optional[str] = None,
        image_url: Optional[str] = None,
        is_important: bool = False,
    ) -> Optional[Message]:
        """Append a message. Returns None when there is nothing to send."""
        text = (text or "").strip()
        image_url = image_url or None
        if not text and not image_url:
            logger.info(f"[Stream] Dropped empty message from {sender.id} in room {room_id}")
            return None

        room_name = self._room_name(room_id)
        doc = {
            "id": uuid.uuid4().hex,
            "senderId": sender.id,
            "senderName": sender.name,
            "senderPhoto": sender.photoURL,
            "text": text,
            "imageUrl": image_url,
            "timestamp": self._clock(),
            "isImportant": bool(is_important),
        }
        with store_operation("send message"):
            stored = self._store.insert_message(room_id, doc)

        message = decode_message(stored)
        if message is None:
            raise NotFoundError(f"Message {doc['id']} could not be read back")
        logger.info(
            f"[Stream] {sender.id} sent {message.id} to room {room_id}"
            f"{' (important)' if message.isImportant else ''}"
        )
        self._hub.publish(messages_topic(room_id))
        self._notifier.notify(room_name, message)
        return message

    def mark_read(self, room_id: str, message_id: str, user_id: str) -> Message:
        """Add ``user_id`` to the message's readers. Repeating it is a no-op."""
        with store_operation("mark read"):
            doc = self._store.get_message(room_id, message_id)
            if doc is None:
                raise NotFoundError(f"Message {message_id} not found in room {room_id}")
            if user_id in doc.get("readBy", []):
                added = False
            else:
                added = self._store.add_reader(message_id, user_id, self._clock())
                if added:
                    doc = self._store.get_message(room_id, message_id)

        if added:
            logger.debug(f"[Stream] {user_id} read {message_id}")
            self._hub.publish(messages_topic(room_id))
        message = decode_message(doc)
        if message is None:
            raise NotFoundError(f"Message {message_id} is malformed")
        return message

    def mark_many_read(self, room_id: str, message_ids: List[str], user_id: str) -> int:
        """Mark several messages read with a single publish. Returns the number added."""
        added = 0
        with store_operation("mark read"):
            for message_id in message_ids:
                if self._store.get_message(room_id, message_id) is None:
                    continue
                if self._store.add_reader(message_id, user_id, self._clock()):
                    added += 1
        if added:
            logger.debug(f"[Stream] {user_id} read {added} message(s) in room {room_id}")
            self._hub.publish(messages_topic(room_id))
        return added

    def _room_name(self, room_id: str) -> str:
        """Resolve the room for sending; unknown rooms are rejected."""
        if self._directory is None:
            return room_id
        return self._directory.get_room(room_id).name
