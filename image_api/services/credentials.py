from typing import List, Optional, Tuple

import structlog
from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from image_api.core.database import get_db
from image_api.core.errors import BadRequest, Conflict, InvalidInput, NotFound, Unauthorized
from image_api.core.security import TokenService, get_token_service, hash_password, verify_password
from image_api.core.utils import utcnow
from image_api.models.imageRecord import ImageRecord
from image_api.models.user import User
from image_api.schemas.user import UserCreate, UserUpdate

logger = structlog.get_logger(__name__)


class CredentialStore:
    """Users table: registration, login and plain CRUD."""

    def __init__(self, db: AsyncSession, tokens: TokenService):
        self.db = db
        self.tokens = tokens

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def register(self, username: Optional[str], email: Optional[str], password: Optional[str]) -> User:
        if not email or not email.strip() or not password or not password.strip():
            raise InvalidInput("Email and password are required.")

        if await self.get_user_by_email(email):
            raise Conflict("Email is already registered.")

        user = User(
            username=username or "",
            email=email,
            password_hash=await run_in_threadpool(hash_password, password),
            registered_at=utcnow(),
        )
        await self._insert(user)
        logger.info("user.registered", user_id=user.user_id)
        return await self.reload(user.user_id)

    async def login(self, email: str, password: str) -> Tuple[str, int]:
        user = await self.get_user_by_email(email)
        if not user or not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.info("user.login_failed")
            raise Unauthorized("Invalid credentials.")
        token = self.tokens.issue(user)
        logger.info("user.logged_in", user_id=user.user_id)
        return token, user.user_id

    async def list(self) -> List[User]:
        result = await self.db.execute(select(User).order_by(User.user_id))
        return list(result.scalars().all())

    async def get(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound(f"No user with id={user_id}.")
        return user

    async def create(self, data: UserCreate) -> User:
        user = User(
            username=data.username,
            email=data.email,
            password_hash=await run_in_threadpool(hash_password, data.password),
            registered_at=utcnow(),
        )
        await self._insert(user)
        logger.info("user.created", user_id=user.user_id)
        return await self.reload(user.user_id)

    async def update(self, user_id: int, data: UserUpdate) -> None:
        if user_id != data.user_id:
            raise BadRequest("Route id and user id do not match.")
        user = await self.get(user_id)

        user.username = data.username
        user.email = data.email
        if data.password:
            user.password_hash = await run_in_threadpool(hash_password, data.password)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("Email is already registered.")
        logger.info("user.updated", user_id=user_id)

    async def delete(self, user_id: int) -> None:
        user = await self.get(user_id)
        owned = await self.db.scalar(
            select(func.count()).select_from(ImageRecord).where(ImageRecord.user_id == user_id)
        )
        if owned:
            raise Conflict(f"User {user_id} still owns {owned} image(s); delete them first.")
        await self.db.delete(user)
        await self.db.commit()
        logger.info("user.deleted", user_id=user_id)

    async def _insert(self, user: User) -> None:
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("Email is already registered.")

    async def reload(self, user_id: int) -> User:
        """Fresh copy of a user with its images loaded."""
        result = await self.db.execute(
            select(User).where(User.user_id == user_id).execution_options(populate_existing=True)
        )
        return result.scalars().one()


def get_credential_store(
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> CredentialStore:
    return CredentialStore(db, tokens)
