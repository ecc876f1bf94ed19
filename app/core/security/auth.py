from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from jose import JWTError, jwt

from app.core.config import settings


class TokenType(str, Enum):
    access = "access"
    mfa = "mfa"
    recovery = "recovery"


class InvalidTokenError(Exception):
    """Raised when a token cannot be decoded, is expired or has the wrong type"""


class WrongTokenType(InvalidTokenError):
    """A valid token issued for a different purpose"""


def _signing_key(token_type: TokenType) -> str:
    # recovery tokens are signed with their own secret
    if token_type == TokenType.recovery:
        return settings.recovery_secret_key
    return settings.secret_key


def _lifetime(token_type: TokenType) -> timedelta:
    minutes = {
        TokenType.access: settings.access_token_expire_minutes,
        TokenType.mfa: settings.mfa_token_expire_minutes,
        TokenType.recovery: settings.recovery_token_expire_minutes,
    }[token_type]
    return timedelta(minutes=minutes)


def create_token(
    data: dict,
    token_type: TokenType = TokenType.access,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Создание JWT токена"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or _lifetime(token_type))
    to_encode.update({"exp": expire, "type": token_type.value})
    return jwt.encode(to_encode, _signing_key(token_type), algorithm=settings.algorithm)


def create_access_token(user_id: str, username: str, role: str) -> str:
    return create_token({"sub": username, "user_id": user_id, "role": role})


def decode_token(token: str, token_type: TokenType = TokenType.access) -> dict:
    """
    Decode and validate a JWT of the given type.

    Raises InvalidTokenError for a bad signature, an expired token or a token
    issued for another purpose.
    """
    try:
        payload = jwt.decode(token, _signing_key(token_type), algorithms=[settings.algorithm])
    except JWTError as e:
        raise InvalidTokenError(str(e)) from e

    if payload.get("type") != token_type.value:
        raise WrongTokenType(f"Expected a {token_type.value} token")
    return payload
