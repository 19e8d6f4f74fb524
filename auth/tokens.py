"""
auth/tokens.py -- Password hashing and JWT utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (user id), username, role,
       iat and exp. Lifetime is fixed at 24 hours. Verification returns None
       on any failure (bad signature, malformed, expired, missing subject) --
       the service turns that into InvalidToken without saying which.

  Passwords: bcrypt used directly. Cost factor comes from Settings and is
       passed in by the caller. dummy_hash() enables timing
       equalization in AuthService.login() so response time does not reveal
       whether a username exists [C1].

  Secret: every function that signs or verifies takes the secret as an
       argument. There is no module-level secret; the caller owns Settings.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

if TYPE_CHECKING:
    from auth.models import User

logger = logging.getLogger("stockroom.auth")

ALGORITHM = "HS256"
TOKEN_TTL = timedelta(hours=24)
DEFAULT_BCRYPT_ROUNDS = 12

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes and bcrypt 4.x raises on longer
    input, so the encoded password is truncated before hashing.
    """
    pw_bytes = plain.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    pw_bytes = plain.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Timing equalization dummy hashes [C1], one per bcrypt cost, built on first use.
@lru_cache(maxsize=None)
def dummy_hash(rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Throwaway hash with the same cost as real hashes made at `rounds`."""
    return hash_password("stockroom_timing_dummy", rounds=rounds)


def burn_password_check(plain: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
    """Run one bcrypt comparison against a throwaway hash of cost `rounds`.

    Called on the unknown-username path so it costs the same as a real
    password check. `rounds` must match the cost stored hashes are made with.
    """
    verify_password(plain, dummy_hash(rounds))


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    user: User,
    secret: str,
    ttl: timedelta = TOKEN_TTL,
    now: datetime | None = None,
) -> str:
    """Encode a signed JWT for user.

    Args:
        user:   Persisted user (id must be set).
        secret: HMAC signing key.
        ttl:    Token lifetime. Login always uses the 24 hour default.
        now:    Issue time; defaults to the current UTC time. Tests pass a
                past value to mint already-expired tokens.
    """
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "role": user.role,
        "iat": issued_at,
        "exp": issued_at + ttl,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure."""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as exc:
        logger.debug("Token rejected: %s", exc)
        return None
    if not payload.get("sub"):
        return None
    return payload
