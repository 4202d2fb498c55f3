from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.models.user import ROLE_PARTICIPANT, USER_STATUS_ACTIVE, User


class UserRepo:
    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_participant_code(db: AsyncSession, code: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.participant_code == code))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def participant_code_exists(db: AsyncSession, code: str) -> bool:
        result = await db.execute(select(User.id).where(User.participant_code == code))
        return result.first() is not None

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        password_hash: Optional[str],
        email: Optional[str] = None,
        participant_code: Optional[str] = None,
        first_name: str = "",
        last_name: str = "",
        title: str = "",
        pronouns: str = "",
        date_of_birth: Optional[str] = None,
        system_role: str = ROLE_PARTICIPANT,
        status: str = USER_STATUS_ACTIVE,
    ) -> User:
        user = User(
            email=email,
            participant_code=participant_code,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            title=title,
            pronouns=pronouns,
            date_of_birth=date_of_birth,
            system_role=system_role,
            status=status,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user
