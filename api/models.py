"""
API request and response models for Stockroom Auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py, which own the internal
domain representation. Route handlers map between the two.

JSON field names follow the contract the front end already uses (lastLogin,
defaultPassword), hence the camelCase aliases.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login.

    Both fields are optional at the schema level so a missing field reaches
    the service and comes back as 400 missing_credentials instead of a 422.
    Wrongly typed fields get the same 400 from the validation handler.
    """

    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserIdentity(BaseModel):
    id: str
    username: str
    role: str


class PublicUser(UserIdentity):
    """User projection returned by login. Never carries the password hash."""

    model_config = ConfigDict(populate_by_name=True)

    last_login: Optional[datetime] = Field(default=None, alias="lastLogin")


class LoginResponse(BaseModel):
    message: str = "Login successful"
    token: str
    user: PublicUser


class VerifyResponse(BaseModel):
    message: str = "Token is valid"
    user: UserIdentity


class SetupResponse(BaseModel):
    """Response body for POST /api/auth/setup.

    default_password is null when SETUP_ECHO_PASSWORD is disabled.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str = "Default admin user created successfully"
    username: str
    default_password: Optional[str] = Field(default=None, alias="defaultPassword")


class ErrorResponse(BaseModel):
    """Uniform error envelope for every non-2xx response."""

    message: str
    code: str
    path: Optional[str] = None


class RootResponse(BaseModel):
    message: str = "Jewellery Stock Management API is running!"
    status: str = "success"
    timestamp: datetime


class HealthResponse(BaseModel):
    status: Literal["healthy"] = "healthy"
    database: Literal["connected", "disconnected"]
    timestamp: datetime
