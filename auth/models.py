"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class. Dataclasses own domain shape; the store and the service
do the work. The two projection helpers are the only place that decides which
fields leave the process, so the password hash can never leak through a
response built from them.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


def normalize_username(username: str) -> str:
    """Canonical form used for storage and lookup: trimmed, lower-cased."""
    return username.strip().lower()


@dataclass
class User:
    """One account in the credential store.

    id is None until the store assigns one on first save. username is always
    kept in normalized form (see normalize_username). last_login stays None
    until the first successful login.
    """

    username: str
    password_hash: str
    role: str = "user"
    id: str | None = None
    is_active: bool = True
    last_login: datetime | None = None
    created_at: str | None = None

    def public(self) -> dict:
        """Projection returned by login: never includes the hash."""
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "lastLogin": self.last_login,
        }

    def identity(self) -> dict:
        """Projection returned by token verification."""
        return {"id": self.id, "username": self.username, "role": self.role}


@dataclass
class LoginResult:
    token: str
    user: User


@dataclass
class BootstrapResult:
    """Outcome of the first-run admin bootstrap.

    default_password is None when the deployment disabled echoing it back.
    """

    username: str
    default_password: str | None
