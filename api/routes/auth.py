"""
api/routes/auth.py -- Authentication REST endpoints.

Routes (mounted under /api/auth by api/main.py):
  POST /login   -- username/password login; returns JWT + public user
  GET  /verify  -- validate a bearer token against the live account
  POST /setup   -- first-run bootstrap of the default admin account

Every failure is raised by AuthService as an AuthError subclass and rendered
by the handler in api/main.py, so handlers here only cover the happy path.

Security:
  [M5] Cache-Control: no-store on login and setup responses (they carry
       credentials).
  /setup is intentionally unauthenticated. It stops working as soon as one
  user exists.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.models import LoginRequest, LoginResponse, PublicUser, SetupResponse, UserIdentity, VerifyResponse
from auth.dependencies import get_auth_service, get_current_user
from auth.models import User
from auth.service import AuthService

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
def login(
    body: Optional[LoginRequest] = None,
    service: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Authenticate with username and password.

    Unknown username and wrong password return the same 401 body.
    """
    body = body or LoginRequest()
    result = service.login(body.username, body.password)
    payload = LoginResponse(
        token=result.token,
        user=PublicUser(**result.user.public()),
    )
    resp = JSONResponse(status_code=200, content=payload.model_dump(mode="json", by_alias=True))
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.get("/verify", response_model=VerifyResponse)
def verify(current_user: User = Depends(get_current_user)) -> VerifyResponse:
    """Return the identity behind a valid bearer token."""
    return VerifyResponse(user=UserIdentity(**current_user.identity()))


@router.post("/setup", response_model=SetupResponse)
def setup(service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Create the default admin account on an empty store."""
    result = service.bootstrap()
    payload = SetupResponse(username=result.username, default_password=result.default_password)
    resp = JSONResponse(status_code=200, content=payload.model_dump(mode="json", by_alias=True))
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp
