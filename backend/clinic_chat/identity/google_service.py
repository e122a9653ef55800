"""Google OAuth 2.0 device authorization flow service.

1. Start device authorization (user gets a verification URL + code)
2. Poll for token completion
3. Use the access token to fetch the principal from Google's userinfo endpoint

Terminal OAuth errors are raised as :class:`AuthenticationError` with a
classified :class:`AuthFailure`, so callers can show a distinct message
for a cancelled, expired, or failed sign-in.
"""
import logging

import httpx

from ..errors import AuthenticationError, AuthFailure, classify_auth_error
from .schemas import Principal

logger = logging.getLogger(__name__)


class GoogleSSOService:
    """Handles Google OAuth 2.0 device authorization and identity resolution."""

    DEVICE_CODE_URL = "https://oauth2.googleapis.com/device/code"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
    SCOPES = "openid email profile"

    def __init__(self, client_id: str, client_secret: str):
        self.client_id = client_id
        self.client_secret = client_secret

    def start_device_flow(self) -> dict:
        """Start the device authorization flow.

        Returns:
            Dict with device_code, user_code, verification_url, expires_in, interval.

        Raises:
            AuthenticationError: If Google rejects the request.
        """
        try:
            resp = httpx.post(
                self.DEVICE_CODE_URL,
                data={
                    "client_id": self.client_id,
                    "scope": self.SCOPES,
                },
            )
            resp.raise_for_status()
            data = resp.json()
            return {
                "device_code": data["device_code"],
                "user_code": data["user_code"],
                "verification_url": data.get("verification_url", ""),
                "expires_in": data.get("expires_in", 1800),
                "interval": data.get("interval", 5),
            }
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Google device flow start failed: {e}")
            raise AuthenticationError(AuthFailure.PROVIDER_ERROR, str(e)) from e

    def poll_for_token(self, device_code: str) -> str | None:
        """Poll for token completion.

        Returns:
            The access token string if authorization is complete, None if still pending.

        Raises:
            AuthenticationError: For errors other than authorization_pending or slow_down,
                and when the token endpoint is unreachable or answers with garbage.
        """
        try:
            resp = httpx.post(
                self.TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "device_code": device_code,
                    "grant_type": "urn:ietf:params:oauth:grant-type:device_code",
                },
            )
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Google token poll failed: {e}")
            raise AuthenticationError(AuthFailure.PROVIDER_ERROR, str(e)) from e
        if not isinstance(data, dict):
            raise AuthenticationError(AuthFailure.PROVIDER_ERROR, "Google token response is not an object")

        if "access_token" in data:
            return data["access_token"]

        error = data.get("error", "")
        if error in ("authorization_pending", "slow_down"):
            return None

        # Terminal error
        error_desc = data.get("error_description", error)
        raise AuthenticationError(classify_auth_error(error), f"Google token error: {error_desc}")

    def get_identity(self, access_token: str) -> Principal:
        """Fetch the signed-in principal from Google's userinfo endpoint."""
        try:
            resp = httpx.get(
                self.USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            resp.raise_for_status()
            data = resp.json()
            return Principal(
                uid=data.get("id", ""),
                displayName=data.get("name") or None,
                email=data.get("email") or None,
                photoURL=data.get("picture") or None,
            )
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            # pydantic's ValidationError is a ValueError (missing id)
            logger.error(f"Google userinfo request failed: {e}")
            raise AuthenticationError(AuthFailure.PROVIDER_ERROR, str(e)) from e
