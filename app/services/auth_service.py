from datetime import datetime, timedelta, timezone
from typing import Optional

from loguru import logger
from tortoise.expressions import Q

from app.core.config import settings
from app.core.security.auth import (
    InvalidTokenError,
    TokenType,
    WrongTokenType,
    create_access_token,
    create_token,
    decode_token,
)
from app.core.security.security import get_password_hash, verify_password
from app.models.user import User
from app.services.auth.two_factor_service import TwoFactorService
from app.services.communication.email_service import EmailService


class AccountError(Exception):
    """Account operation refused; status_code says how the API reports it"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def issue_access_token(user: User) -> str:
    return create_access_token(user_id=str(user.id), username=user.username, role=user.role.value)


async def register_user(username: str, email: str, password: str, full_name: str) -> tuple[User, dict]:
    """Create a user with a pending TOTP secret. Returns the user and the MFA setup payload."""
    if await User.exists(username=username):
        raise AccountError("Username already exists")
    if await User.exists(email=email):
        raise AccountError("Email already registered")

    secret = TwoFactorService.generate_secret()
    user = await User.create(
        username=username,
        email=email,
        password_hash=get_password_hash(password),
        full_name=full_name,
        mfa_secret=secret,
        mfa_enabled=False,
    )
    logger.info(f"User registered: {username}")
    return user, TwoFactorService.build_setup(username, secret)


async def login(username: str, password: str) -> dict:
    """
    First login step.

    Users with MFA enabled get a short-lived MFA token to exchange at the
    second step, everyone else gets an access token straight away.
    """
    user = await User.get_or_none(username=username)
    if user is None:
        logger.warning(f"Login attempt for unknown user {username}")
        raise AccountError("User not found", 401)
    if not verify_password(password, user.password_hash):
        logger.warning(f"Failed login attempt for user {username}")
        raise AccountError("Incorrect password", 401)
    if not user.is_active:
        raise AccountError("Inactive user", 401)

    if user.mfa_enabled:
        temp_token = create_token(
            {"sub": user.username, "user_id": str(user.id)},
            token_type=TokenType.mfa,
        )
        return {"requires_mfa": True, "temp_token": temp_token}

    return await _complete_login(user)


async def login_mfa(temp_token: str, code: str) -> dict:
    """Second login step: exchange an MFA token plus a TOTP code for an access token"""
    try:
        payload = decode_token(temp_token, TokenType.mfa)
    except WrongTokenType:
        raise AccountError("Token is not valid for MFA", 400)
    except InvalidTokenError:
        raise AccountError("Invalid or expired token", 401)

    user = await User.get_or_none(id=payload.get("user_id"))
    if user is None:
        raise AccountError("User not found", 404)

    if not TwoFactorService.verify_login(user, code):
        logger.warning(f"Invalid MFA code at login for user {user.username}")
        raise AccountError("Invalid MFA code", 401)

    return await _complete_login(user)


async def _complete_login(user: User) -> dict:
    user.last_login = datetime.now(timezone.utc)
    await user.save()
    logger.info(f"User logged in: {user.username}")
    return {
        "requires_mfa": False,
        "access_token": issue_access_token(user),
        "token_type": "bearer",
        "user": user,
    }


async def verify_mfa(username: str, code: str) -> None:
    user = await User.get_or_none(username=username)
    if user is None:
        raise AccountError("User not found", 404)
    try:
        ok = await TwoFactorService.verify_and_activate(user, code)
    except ValueError as e:
        raise AccountError(str(e), 400)
    if not ok:
        raise AccountError("Invalid MFA code", 401)


async def update_profile(user_id, caller_id, username: str, email: str, full_name: str) -> User:
    if str(user_id) != str(caller_id):
        raise AccountError("Not allowed to modify this user", 403)

    user = await User.get_or_none(id=user_id)
    if user is None:
        raise AccountError("User not found", 404)

    others = User.exclude(id=user.id)
    if await others.filter(username=username).exists():
        raise AccountError("Username is already in use")
    if await others.filter(email=email).exists():
        raise AccountError("Email is already in use")

    user.username = username
    user.email = email
    user.full_name = full_name
    await user.save()
    return user


# ===================== password recovery =====================

async def request_recovery(username: str) -> dict:
    """Issue and store a recovery token, email it when possible"""
    user = await User.get_or_none(username=username)
    if user is None:
        raise AccountError("User not found", 404)

    token = create_token({"sub": user.username, "user_id": str(user.id)}, token_type=TokenType.recovery)
    user.recovery_token = token
    user.recovery_token_expires = datetime.now(timezone.utc) + timedelta(
        minutes=settings.recovery_token_expire_minutes
    )
    await user.save()
    logger.info(f"Recovery token issued for user {username}")

    if user.email:
        await EmailService.send_recovery_code(user.email, token)

    return {"email": bool(user.email)}


def _recovery_token_valid(user: User, token: str) -> bool:
    if not user.recovery_token or user.recovery_token != token:
        return False
    expires: Optional[datetime] = user.recovery_token_expires
    if expires is None:
        return False
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires >= datetime.now(timezone.utc)


async def verify_recovery(username: str, token: str) -> str:
    user = await User.get_or_none(username=username)
    if user is None:
        raise AccountError("User not found", 404)
    if not _recovery_token_valid(user, token):
        raise AccountError("Invalid or expired code", 401)
    return user.recovery_token


async def reset_password(token: str, new_password: str) -> None:
    try:
        payload = decode_token(token, TokenType.recovery)
    except InvalidTokenError:
        raise AccountError("Invalid or expired token", 401)

    user = await User.get_or_none(username=payload.get("sub"))
    if user is None:
        raise AccountError("User not found", 404)
    if not _recovery_token_valid(user, token):
        raise AccountError("Invalid or expired token", 401)

    user.password_hash = get_password_hash(new_password)
    user.recovery_token = None
    user.recovery_token_expires = None
    await user.save()
    logger.info(f"Password changed for user {user.username}")


async def find_users(search: Optional[str] = None) -> list[User]:
    query = User.all()
    if search:
        query = query.filter(Q(username__icontains=search) | Q(full_name__icontains=search))
    return await query.order_by("username")
