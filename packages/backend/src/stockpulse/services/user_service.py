"""User service — registration and credential checks.

Learn: Login itself is two steps split across layers. This service
answers "are these credentials right?" and returns the User. The auth
route then asks the SessionStore for a token and sets the cookie.
"""

from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockpulse.auth.password import BCRYPT_ROUNDS, hash_password, verify_password
from stockpulse.auth.sessions import Identity
from stockpulse.db.models import User

logger = structlog.get_logger()


class UsernameTaken(Exception):
    pass


class InvalidCredentials(Exception):
    pass


class UserService:
    """Business logic for user accounts."""

    def __init__(self, db: AsyncSession, bcrypt_rounds: int = BCRYPT_ROUNDS):
        self.db = db
        self.bcrypt_rounds = bcrypt_rounds

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(func.lower(User.username) == username.lower())
        )
        return result.scalars().first()

    async def register(
        self,
        username: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """Create a user. Usernames are unique case-insensitively."""
        if await self.get_by_username(username):
            raise UsernameTaken(f"Username {username!r} is already taken")

        user = User(
            username=username,
            first_name=first_name or None,
            last_name=last_name or None,
            email=email or None,
            password_hash=hash_password(password, rounds=self.bcrypt_rounds),
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("users.registered", user_id=str(user.id), username=username)
        return user

    async def authenticate(self, username: str, password: str) -> User:
        """Return the user for valid credentials, else raise InvalidCredentials."""
        user = await self.get_by_username(username)
        if not user or not verify_password(password, user.password_hash):
            logger.info("users.login_failed", username=username)
            raise InvalidCredentials("Invalid username or password")
        return user


def identity_for(user: User) -> Identity:
    """The slice of a User that lives in the session."""
    return Identity(
        user_id=str(user.id),
        username=user.username,
        display_name=user.first_name,
    )
