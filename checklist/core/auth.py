from __future__ import annotations

import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

USER_HEADER = "X-Authenticated-User"
ANONYMOUS_USER = "anonymous"


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={
            "success": False,
            "error": "UNAUTHORIZED",
            "message": message,
        },
    )


def _extract_api_key(request: Request) -> str | None:
    header_key = request.headers.get("X-API-Key")
    if header_key is not None:
        normalized = header_key.strip()
        if normalized:
            return normalized

    authorization = request.headers.get("Authorization")
    if authorization is None:
        return None
    prefix = "bearer "
    lowered = authorization.lower()
    if not lowered.startswith(prefix):
        return None
    token = authorization[len(prefix) :].strip()
    return token if token else None


def _extract_user(request: Request) -> str | None:
    raw = request.headers.get(USER_HEADER)
    if raw is None:
        return None
    normalized = raw.strip()
    return normalized or None


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    user_id: str
    anonymous: bool = False


class LocalApiKeyMiddleware(BaseHTTPMiddleware):
    """Guards /api/v1 with a shared key and records the upstream user on request.state.

    Session handling lives in the fronting auth layer; this service only trusts
    the user header it forwards.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        api_key: str | None,
        require_user: bool = False,
    ) -> None:
        super().__init__(app)
        normalized = api_key.strip() if api_key is not None else ""
        self._api_key = normalized or None
        self._require_user = require_user

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.method == "OPTIONS":
            return await call_next(request)
        if not request.url.path.startswith("/api/v1"):
            return await call_next(request)

        if self._api_key is not None:
            provided = _extract_api_key(request)
            if provided is None or not secrets.compare_digest(provided, self._api_key):
                return _unauthorized("Missing or invalid API key.")

        user_id = _extract_user(request)
        if user_id is None and self._require_user:
            return _unauthorized("Authenticated user context is required.")
        request.state.user = AuthenticatedUser(
            user_id=user_id or ANONYMOUS_USER,
            anonymous=user_id is None,
        )
        return await call_next(request)


def get_current_user(request: Request) -> AuthenticatedUser:
    user = getattr(request.state, "user", None)
    if isinstance(user, AuthenticatedUser):
        return user
    return AuthenticatedUser(user_id=ANONYMOUS_USER, anonymous=True)
