"""Security utilities: JWT tokens, password hashing and token revocation."""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Dict
import logging

import jwt
from jwt.exceptions import PyJWTError
import bcrypt

from franchisehub.core.config import settings

logger = logging.getLogger(__name__)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hash.

    Uses bcrypt's built-in timing-safe comparison.
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError as e:
        logger.warning(f"Password verification error: {e}")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


def generate_temporary_password(length: int = 12) -> str:
    """Random password satisfying the registration complexity rules."""
    alphabet = string.ascii_letters + string.digits + "@$!%*#?&"
    required = [
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.digits),
        secrets.choice("@$!%*#?&"),
    ]
    rest = [secrets.choice(alphabet) for _ in range(max(length - len(required), 0))]
    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token with a unique JTI for blacklisting support."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({
        "exp": expire,
        "iat": now,
        "jti": secrets.token_urlsafe(16),
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token. Returns None for invalid or revoked tokens."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require_exp": True}
        )
    except PyJWTError as e:
        logger.debug(f"JWT decode error: {e}")
        return None

    jti = payload.get("jti")
    if jti and _is_token_blacklisted(jti):
        logger.debug(f"Token {jti} is blacklisted")
        return None

    return payload


def blacklist_token(token: str) -> bool:
    """Revoke a token until its natural expiry.

    Stored in Redis when REDIS_URL is configured, otherwise in process memory.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require_exp": True, "verify_exp": False}
        )
    except PyJWTError:
        return False

    jti = payload.get("jti")
    if not jti:
        return False

    exp = payload.get("exp", 0)
    ttl = max(int(exp - datetime.now(timezone.utc).timestamp()), 60)

    if settings.redis_url:
        import redis
        try:
            r = redis.from_url(settings.redis_url, socket_connect_timeout=2)
            r.setex(f"token_blacklist:{jti}", ttl, "1")
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis blacklist failed, using memory: {e}")

    _memory_blacklist[jti] = datetime.now(timezone.utc) + timedelta(seconds=ttl)
    return True


def _is_token_blacklisted(jti: str) -> bool:
    """Check if a token JTI is blacklisted."""
    if settings.redis_url:
        import redis
        try:
            r = redis.from_url(settings.redis_url, socket_connect_timeout=1)
            if r.get(f"token_blacklist:{jti}"):
                return True
        except redis.RedisError as e:
            logger.warning(f"Redis blacklist check failed: {e}")

    expiry = _memory_blacklist.get(jti)
    if expiry:
        if datetime.now(timezone.utc) < expiry:
            return True
        del _memory_blacklist[jti]
    return False


# In-memory blacklist used when Redis is not configured or unreachable
_memory_blacklist: Dict[str, datetime] = {}
