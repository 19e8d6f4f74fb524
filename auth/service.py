"""
auth/service.py -- Login, token verification and first-run bootstrap.

AuthService is the only place that decides whether a request is
authenticated. It is constructed once per process with a user store and the
Settings object; nothing here reads the environment.

Login check order (fail fast):
  1. both fields present            -> MissingCredentials
  2. user exists                    -> InvalidCredentials
  3. user active                    -> AccountDisabled
  4. password matches               -> InvalidCredentials
  5. stamp last_login, save, issue token

The disabled-account check runs before the password check and has its own
message, so a disabled account is distinguishable from an unknown one. That
asymmetry is kept as-is; unknown user and wrong password stay identical.

Verification re-reads the account on every call. There is no revocation
list, so disabling or deleting the account is what invalidates its tokens.

Layer rule: no imports from api/. Settings is received, not imported.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Protocol

from auth.errors import (
    AccountDisabled,
    AlreadyInitialized,
    InvalidCredentials,
    InvalidToken,
    MissingCredentials,
    NoToken,
    StoreFailure,
)
from auth.models import BootstrapResult, LoginResult, User, normalize_username
from auth.store import DuplicateUsernameError, StoreError
from auth.tokens import burn_password_check, create_access_token, decode_access_token, hash_password, verify_password

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("stockroom.auth")

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"  # nosec B105 -- well-known first-run credential, see bootstrap()
DEFAULT_ADMIN_ROLE = "admin"


class CredentialStore(Protocol):
    """The slice of UserStore the service depends on."""

    def find_by_username(self, username: str) -> User | None: ...

    def find_by_id(self, user_id: str) -> User | None: ...

    def count_all(self) -> int: ...

    def save(self, user: User) -> User: ...


class AuthService:
    def __init__(self, store: CredentialStore, settings: Settings) -> None:
        self.store = store
        self.settings = settings

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, username: str | None, password: str | None) -> LoginResult:
        """Authenticate username/password and issue a 24 hour token.

        Exactly one store write happens on success (last_login); none on any
        failure path.
        """
        if not username or not password:
            raise MissingCredentials()

        normalized = normalize_username(username)
        try:
            user = self.store.find_by_username(normalized)
            if user is None:
                burn_password_check(password, self.settings.bcrypt_rounds)
                logger.info("Login failed: unknown username %r", normalized)
                raise InvalidCredentials()

            if not user.is_active:
                logger.info("Login refused: account %r is disabled", normalized)
                raise AccountDisabled()

            if not verify_password(password, user.password_hash):
                logger.info("Login failed: bad password for %r", normalized)
                raise InvalidCredentials()

            user.last_login = datetime.now(timezone.utc)
            self.store.save(user)
        except StoreError as exc:
            logger.exception("Login error")
            raise StoreFailure("Server error during login") from exc

        token = create_access_token(user, self.settings.jwt_secret)
        logger.info("Login succeeded for %r", user.username)
        return LoginResult(token=token, user=user)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, token: str | None) -> User:
        """Resolve a bearer token to its live, active account.

        Expired, tampered, malformed and orphaned tokens all raise the same
        InvalidToken.
        """
        if not token:
            raise NoToken()

        payload = decode_access_token(token, self.settings.jwt_secret)
        if payload is None:
            raise InvalidToken()

        try:
            user = self.store.find_by_id(payload["sub"])
        except StoreError as exc:
            logger.warning("Token verification could not reach the store: %s", exc)
            raise InvalidToken() from exc
        if user is None or not user.is_active:
            raise InvalidToken()
        return user

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    def bootstrap(self) -> BootstrapResult:
        """Create the default admin account if the store is empty.

        Open to anyone while no user exists; every later call fails with
        AlreadyInitialized. Two racing first calls are settled by the store's
        unique username constraint and the loser also gets AlreadyInitialized.
        """
        try:
            if self.store.count_all() > 0:
                raise AlreadyInitialized()
            admin = User(
                username=DEFAULT_ADMIN_USERNAME,
                password_hash=hash_password(DEFAULT_ADMIN_PASSWORD, self.settings.bcrypt_rounds),
                role=DEFAULT_ADMIN_ROLE,
            )
            self.store.save(admin)
        except DuplicateUsernameError as exc:
            logger.info("Bootstrap lost a race with a concurrent setup call")
            raise AlreadyInitialized() from exc
        except StoreError as exc:
            logger.exception("Setup error")
            raise StoreFailure("Error creating admin user") from exc

        logger.warning(
            "Default admin account %r created with the well-known password. Change it before exposing this service.",
            admin.username,
        )
        echoed = DEFAULT_ADMIN_PASSWORD if self.settings.setup_echo_password else None
        return BootstrapResult(username=admin.username, default_password=echoed)
