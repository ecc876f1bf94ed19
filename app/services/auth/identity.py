from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Protocol
from uuid import UUID

from loguru import logger
from tortoise.exceptions import BaseORMException

from app.core.security.auth import InvalidTokenError, TokenType, decode_token
from app.enums.user_role import UserRole
from app.models.user import User
from app.services.bidding.exceptions import IdentityResolutionFailed


@dataclass(frozen=True)
class Identity:
    """An authenticated caller"""
    user_id: UUID
    display_name: str
    role: UserRole = UserRole.user


class Unauthenticated(Exception):
    """The presented credential does not identify an active user"""


class IdentityDirectory(Protocol):
    async def lookup_display_name(self, user_id: UUID) -> Optional[str]:
        ...

    async def lookup_display_names(self, user_ids: Iterable[UUID]) -> Dict[UUID, str]:
        ...


class IdentityProvider:
    """Resolves bearer tokens and user ids against the users table"""

    async def authenticate(self, token: str) -> Identity:
        try:
            payload = decode_token(token, TokenType.access)
            user_id = UUID(payload["user_id"])
        except (InvalidTokenError, KeyError, ValueError) as e:
            logger.warning(f"Rejected access token: {e}")
            raise Unauthenticated("Invalid or expired token") from e

        user = await User.get_or_none(id=user_id)
        if user is None or not user.is_active:
            logger.warning(f"Token for unknown or inactive user {user_id}")
            raise Unauthenticated("Invalid or expired token")
        return Identity(user_id=user.id, display_name=user.username, role=user.role)

    async def lookup_display_name(self, user_id: UUID) -> Optional[str]:
        names = await self.lookup_display_names([user_id])
        return names.get(user_id)

    async def lookup_display_names(self, user_ids: Iterable[UUID]) -> Dict[UUID, str]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        try:
            rows = await User.filter(id__in=ids).values_list("id", "username")
        except BaseORMException as e:
            logger.exception(f"User lookup failed: {e}")
            raise IdentityResolutionFailed(str(e)) from e
        return {UUID(str(user_id)): username for user_id, username in rows}


identity_provider = IdentityProvider()
