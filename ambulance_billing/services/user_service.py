"""User Service - Business Logic Layer"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ambulance_billing.core.exceptions import ConflictError, NotFoundError
from ambulance_billing.core.security import get_password_hash, verify_password
from ambulance_billing.models.user import User
from ambulance_billing.schemas.admin import UserCreate, UserResponse, UserUpdate
from ambulance_billing.services.assignment_service import AssignmentService

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user administration and login"""

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
        """
        Get user by ID.

        Args:
            db: Database session
            user_id: User ID

        Returns:
            User or None if not found
        """
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
        """Return the active user matching the credentials, else None."""
        user = await UserService.get_user_by_email(db, email)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    @staticmethod
    async def create_user(db: AsyncSession, data: UserCreate) -> User:
        """
        Create a user and its region/ambulance assignments in one commit.

        Raises:
            ConflictError: Email already registered
            ValidationError: Ambulances given for a non-operator
            NotFoundError: Unknown region or ambulance
        """
        email = data.email.lower()
        if await UserService.get_user_by_email(db, email):
            raise ConflictError(f"Email {email} is already registered")

        user = User(
            name=data.name,
            email=email,
            hashed_password=get_password_hash(data.password),
            role=data.role,
            is_active=True,
        )
        db.add(user)
        try:
            await db.flush()
            await AssignmentService.reconcile_user_regions(db, user.id, data.region_ids)
            await AssignmentService.reconcile_user_ambulances(db, user, data.ambulance_ids)
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise ConflictError(f"Email {email} is already registered") from exc
        except Exception:
            await db.rollback()
            raise
        await db.refresh(user)
        logger.info("User created", extra={"user_id": user.id, "role": user.role.value})
        return user

    @staticmethod
    async def update_user(db: AsyncSession, user_id: str, data: UserUpdate) -> User:
        """
        Update profile fields and reconcile assignments.

        Region/ambulance lists replace the current sets when provided.
        """
        user = await UserService.get_user_by_id(db, user_id)
        if not user:
            raise NotFoundError("User", user_id)

        try:
            if data.name is not None:
                user.name = data.name
            if data.role is not None:
                user.role = data.role
            if data.is_active is not None:
                user.is_active = data.is_active
            if data.password:
                user.hashed_password = get_password_hash(data.password)
            await db.flush()

            if data.region_ids is not None:
                await AssignmentService.reconcile_user_regions(db, user.id, data.region_ids)
            if data.ambulance_ids is not None:
                await AssignmentService.reconcile_user_ambulances(db, user, data.ambulance_ids)
            elif data.role is not None and not user.is_operator:
                # Ambulance assignments are only meaningful for operators.
                await AssignmentService.reconcile_user_ambulances(db, user, [])
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await db.refresh(user)
        logger.info("User updated", extra={"user_id": user.id})
        return user

    @staticmethod
    async def list_users(db: AsyncSession) -> List[User]:
        result = await db.execute(select(User).order_by(User.name, User.id))
        return list(result.scalars().all())

    @staticmethod
    async def to_response(db: AsyncSession, user: User) -> UserResponse:
        return UserResponse(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            is_active=user.is_active,
            region_ids=await AssignmentService.list_region_ids(db, user.id),
            ambulance_ids=await AssignmentService.list_ambulance_ids(db, user.id),
            created_at=user.created_at,
        )
