"""Identity binder: maps an authenticated principal to a local User.

On every successful sign-in the principal is merge-upserted into the
``users`` table. Fields the provider does not report never overwrite
stored values, and the role is only assigned when the user is first seen.
"""
import logging

from ..errors import NotFoundError, StoreError
from ..store.codec import decode_user
from ..store.database import DocumentStore, store_operation
from .schemas import Principal, User, UserRole

logger = logging.getLogger(__name__)

PLACEHOLDER_NAME = "Unnamed staff"
AVATAR_URL_TEMPLATE = "https://api.dicebear.com/7.x/avataaars/svg?seed={uid}"


def default_avatar_url(uid: str) -> str:
    """Deterministic generated avatar for a principal without a photo."""
    return AVATAR_URL_TEMPLATE.format(uid=uid)


class IdentityBinder:
    """Creates and refreshes local user profiles."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def bind(self, principal: Principal) -> User:
        """Upsert the profile for ``principal`` and return the stored User."""
        with store_operation("bind user"):
            existing = self._store.get_user(principal.uid) or {}
            doc = {
                "id": principal.uid,
                "name": principal.displayName or None,
                "email": principal.email or None,
                "photoURL": principal.photoURL or None,
            }
            if not existing:
                doc["role"] = UserRole.STAFF.value
            # Fallbacks only fill fields that are neither reported nor stored
            if not doc["name"] and not existing.get("name"):
                doc["name"] = PLACEHOLDER_NAME
            if not doc["photoURL"] and not existing.get("photoURL"):
                doc["photoURL"] = default_avatar_url(principal.uid)
            if not doc["email"] and "email" not in existing:
                doc["email"] = ""
            stored = self._store.upsert_user(doc)

        user = decode_user(stored)
        if user is None:
            raise StoreError(f"Stored profile for {principal.uid} is malformed")
        logger.info(f"[Identity] Bound user {user.id} ({'new' if not existing else 'existing'})")
        return user

    def get_user(self, user_id: str) -> User:
        with store_operation("get user"):
            doc = self._store.get_user(user_id)
        user = decode_user(doc)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user
