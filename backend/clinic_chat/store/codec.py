"""Decoding of raw store documents into typed entities.

Documents that fail validation are logged and skipped so a single bad
record never breaks a room list or a message window.
"""
import logging
from typing import Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..chat.schemas import Message
from ..identity.schemas import User
from ..rooms.schemas import ChatRoom

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def decode(model: Type[T], doc: Optional[dict]) -> Optional[T]:
    """Validate one document, returning None if it is missing or malformed."""
    if doc is None:
        return None
    try:
        return model.model_validate(doc)
    except ValidationError as exc:
        logger.warning(
            "Skipping malformed %s document id=%s: %s",
            model.__name__,
            doc.get("id", "?"),
            exc.errors(include_url=False),
        )
        return None


def decode_many(model: Type[T], docs: Iterable[dict]) -> List[T]:
    """Validate documents, dropping those that fail."""
    decoded = []
    for doc in docs:
        item = decode(model, doc)
        if item is not None:
            decoded.append(item)
    return decoded


def decode_user(doc: Optional[dict]) -> Optional[User]:
    return decode(User, doc)


def decode_room(doc: Optional[dict]) -> Optional[ChatRoom]:
    return decode(ChatRoom, doc)


def decode_rooms(docs: Iterable[dict]) -> List[ChatRoom]:
    return decode_many(ChatRoom, docs)


def decode_message(doc: Optional[dict]) -> Optional[Message]:
    return decode(Message, doc)


def decode_messages(docs: Iterable[dict]) -> List[Message]:
    return decode_many(Message, docs)
