"""Identity router: Google sign-in and user profiles.

Endpoints:
    POST /auth/google/start   - Start Google OAuth device authorization flow
    POST /auth/google/poll    - Poll for the token, then bind and return the User
    GET  /auth/providers      - List enabled auth providers
    GET  /users/{user_id}     - Fetch a stored user profile
"""
import asyncio
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..errors import AuthenticationError
from ..services import ChatServices, get_services
from .schemas import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["identity"])


class GooglePollRequest(BaseModel):
    """Request body for polling Google OAuth token status."""
    deviceCode: str = Field(..., min_length=1)


@router.post("/auth/google/start")
async def google_start(services: ChatServices = Depends(get_services)) -> dict:
    """Start Google OAuth 2.0 device authorization flow.

    Returns verification URL, user code, device code, and interval.
    """
    service = services.google_sso()
    return await asyncio.to_thread(service.start_device_flow)


@router.post("/auth/google/poll")
async def google_poll(
    request: GooglePollRequest,
    services: ChatServices = Depends(get_services),
) -> dict:
    """Poll for Google OAuth token completion and bind the signed-in user.

    Returns status: pending, complete (with ``user``), or error (with
    ``failure`` and a user-facing ``message``). Errors leave stored
    profiles untouched. The blocking OAuth calls run in a worker thread.
    """
    service = services.google_sso()
    try:
        access_token = await asyncio.to_thread(service.poll_for_token, request.deviceCode)
        if access_token is None:
            return {"status": "pending"}
        principal = await asyncio.to_thread(service.get_identity, access_token)
    except AuthenticationError as e:
        logger.error(f"Google SSO poll failed: {e.failure.value} {e.detail}")
        return {"status": "error", "failure": e.failure.value, "message": e.message}

    user = services.identity.bind(principal)
    return {"status": "complete", "user": user.model_dump()}


@router.get("/auth/providers")
async def auth_providers(services: ChatServices = Depends(get_services)) -> dict:
    """A provider is available only when enabled and configured."""
    config = services.config
    return {
        "google": config.auth.google.enabled and bool(config.secrets.google.client_id),
    }


@router.get("/users/{user_id}", response_model=User)
async def get_user(user_id: str, services: ChatServices = Depends(get_services)) -> User:
    return services.identity.get_user(user_id)
