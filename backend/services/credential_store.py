"""Persistence for user credential records."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Reads and writes User rows for the session token manager.

    Token fields are only ever written through ``update_credentials``,
    which changes the refresh hash, its expiry and (optionally) the last
    login time in one UPDATE. No method writes one of them alone.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find_one(self, *criteria) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(*criteria).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_username(self, username: str) -> Optional[User]:
        return await self._find_one(User.username == username)

    async def find_by_email(self, email: str) -> Optional[User]:
        return await self._find_one(User.email == email)

    async def find_by_id(self, user_id: int) -> Optional[User]:
        return await self._find_one(User.id == user_id)

    async def create(
        self,
        username: str,
        email: str,
        password_hash: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """
        Insert a user with no active session.

        Uniqueness of username and email is left to the database; the
        IntegrityError is raised to the caller unchanged.
        """
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            first_name=first_name or None,
            last_name=last_name or None,
            is_active=True,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def update_credentials(
        self,
        user_id: int,
        refresh_token_hash: Optional[str],
        refresh_token_expires_at: Optional[datetime],
        touch_last_login: bool,
        expected_refresh_token_hash: Optional[str] = None,
    ) -> int:
        """
        Atomically replace the session fields of one user.

        Passing None for both token fields ends the session. When
        ``expected_refresh_token_hash`` is given the write only applies if
        that hash is still the stored one, which makes a refresh single-use
        even when two requests present the same token concurrently.

        Returns:
            Number of rows affected (0 or 1)

        Raises:
            ValueError: Only one of the two token fields was given
        """
        if (refresh_token_hash is None) != (refresh_token_expires_at is None):
            raise ValueError("refresh token hash and expiry must be set or cleared together")

        values = {
            "refresh_token_hash": refresh_token_hash,
            "refresh_token_expires_at": refresh_token_expires_at,
        }
        if touch_last_login:
            values["last_login_at"] = datetime.now(timezone.utc)

        conditions = [User.id == user_id]
        if expected_refresh_token_hash is not None:
            conditions.append(User.refresh_token_hash == expected_refresh_token_hash)

        result = await self.db.execute(
            update(User)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.debug(f"Credential update for user id={user_id} matched no row")
        return result.rowcount

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
