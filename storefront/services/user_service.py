from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from storefront.models.user import User
from storefront.schemas.user import UserCreate
from storefront.core.security import get_password_hash, verify_password
from typing import Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class UserService:
    """User service for business logic"""

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        """Get user by ID"""
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
        """Get user by email"""
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_login(db: AsyncSession, login: str) -> Optional[User]:
        """Get user by email or username"""
        login = login.strip().lower()
        result = await db.execute(
            select(User).where(or_(User.email == login, User.username == login))
        )
        return result.scalars().first()

    @staticmethod
    async def create(db: AsyncSession, user_data: UserCreate) -> Tuple[Optional[User], Optional[str]]:
        """
        Register a new user
        Returns: (User, error_message)
        """
        existing = await db.execute(
            select(User).where(
                or_(User.email == user_data.email, User.username == user_data.username)
            )
        )
        existing_user = existing.scalars().first()
        if existing_user:
            if existing_user.email == user_data.email:
                return None, "Email already exists"
            return None, "Username already taken"

        user = User(
            firstname=user_data.firstname,
            lastname=user_data.lastname,
            username=user_data.username,
            email=user_data.email,
            phone=user_data.phone,
            hashed_password=get_password_hash(user_data.password),
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"User created: {user.email}")
        return user, None

    @staticmethod
    async def authenticate(db: AsyncSession, login: str, password: str) -> Optional[User]:
        """Return the user when login (email or username) and password match"""
        user = await UserService.get_by_login(db, login)
        if not user or not verify_password(password, user.hashed_password):
            return None
        return user

    @staticmethod
    async def set_admin(db: AsyncSession, email: str, is_admin: bool = True) -> Optional[User]:
        """Grant or revoke admin rights by email"""
        user = await UserService.get_by_email(db, email)
        if not user:
            return None
        user.is_admin = is_admin
        await db.commit()
        await db.refresh(user)
        logger.info(f"User {user.email} admin={is_admin}")
        return user


user_service = UserService()
