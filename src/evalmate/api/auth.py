"""Bearer-token resolution against the managed auth service."""

from __future__ import annotations

import json
import logging
from typing import Protocol
from urllib import error, request

from fastapi import Request

from evalmate.errors import AuthenticationError

logger = logging.getLogger(__name__)


class AuthProvider(Protocol):
    def resolve_user(self, token: str) -> str | None:
        """Return the user id for a valid access token, otherwise None."""
        ...


class SupabaseAuthProvider:
    def __init__(self, *, auth_url: str, api_key: str, timeout_s: float = 5.0) -> None:
        if not auth_url:
            raise RuntimeError(
                "Missing auth URL. Set EVALMATE_AUTH_URL or SUPABASE_URL before starting the app."
            )
        self.auth_url = auth_url.rstrip("/")
        self._api_key = api_key
        self.timeout_s = timeout_s

    def resolve_user(self, token: str) -> str | None:
        req = request.Request(
            url=f"{self.auth_url}/auth/v1/user",
            method="GET",
            headers={"Authorization": f"Bearer {token}", "apikey": self._api_key},
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                raw = response.read().decode("utf-8")
        except error.HTTPError as exc:
            if exc.code not in (401, 403):
                logger.warning("auth event=lookup_failed status=%s", exc.code)
            return None
        except (error.URLError, TimeoutError) as exc:
            logger.error("auth event=unreachable reason=%s", getattr(exc, "reason", exc))
            return None

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("auth event=bad_response body=%s", raw[:400])
            return None
        user_id = payload.get("id") if isinstance(payload, dict) else None
        return user_id if isinstance(user_id, str) and user_id else None


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def current_user_id(request: Request) -> str:
    """FastAPI dependency: the authenticated caller's user id, or 401."""
    token = bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise AuthenticationError("Missing bearer token")
    provider: AuthProvider = request.app.state.auth_provider
    user_id = provider.resolve_user(token)
    if user_id is None:
        raise AuthenticationError("Invalid user")
    return user_id
