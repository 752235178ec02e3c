"""
User repository for account data access.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import or_, select

from wholesale.core.security import hash_password, verify_password
from wholesale.models.user import User, UserRole, UserStatus
from wholesale.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User model operations."""

    model = User

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by email (case-insensitive)."""
        return await self.get_by(email=email.lower())

    async def get_by_zoho_customer_id(self, zoho_customer_id: str) -> Optional[User]:
        """Get the user linked to a Zoho Books contact."""
        return await self.get_by(zoho_customer_id=zoho_customer_id)

    async def create_user(self, email: str, password: str, **profile: Any) -> User:
        """Register a new account awaiting approval."""
        return await self.create({
            "email": email.lower(),
            "password": hash_password(password),
            "role": UserRole.PENDING.value,
            "status": UserStatus.PENDING.value,
            **profile,
        })

    def check_password(self, user: User, password: str) -> bool:
        return verify_password(password, user.password)

    async def get_users_for_status_check(self, checked_before: datetime) -> list[User]:
        """Users linked to Zoho that were not checked since the given time."""
        stmt = select(User).where(
            User.zoho_customer_id.is_not(None),
            or_(
                User.zoho_last_checked_at.is_(None),
                User.zoho_last_checked_at < checked_before,
            ),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
