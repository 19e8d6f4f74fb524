"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The AuthService instance lives on app.state (created in the lifespan), so
these helpers pull it from the request rather than importing a global.

Token extraction follows the Authorization header only:
  "Bearer <token>"  -> <token>
  "<token>"         -> <token> (prefix is optional)
  missing / empty   -> None, which the service reports as NoToken.

Layer rule: may import fastapi (this module is part of the DI system) but
not api/.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import User
from auth.service import AuthService

_BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an Authorization header value, or None if absent."""
    token = (authorization or "").strip()
    # A bare "Bearer" (value stripped by a proxy) counts as no token.
    if token.startswith(_BEARER_PREFIX) or token == _BEARER_PREFIX.strip():
        token = token[len(_BEARER_PREFIX) :].strip()
    return token or None


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_current_user(request: Request) -> User:
    """Require a valid bearer token. Raises NoToken / InvalidToken otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    return get_auth_service(request).verify(token)
