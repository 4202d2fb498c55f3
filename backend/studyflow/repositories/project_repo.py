from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.database import insert_for
from studyflow.models.project import (
    PROJECT_STATUS_ACTIVE,
    PROJECT_STATUS_PENDING,
    PROJECT_STATUSES,
    SIGNUP_OPEN,
    SIGNUP_STATUSES,
    SIGNUP_WITH_CODE,
    VISIBILITY_CODE,
    VISIBILITY_MODES,
    Project,
    ProjectUserLink,
)
from studyflow.services.errors import MalformedInputError


def check_project_settings(project: Project) -> None:
    """Reject configurations the enrollment rules cannot evaluate."""
    if project.status not in PROJECT_STATUSES:
        raise MalformedInputError(f"invalid project status: {project.status!r}")
    if project.signup_status not in SIGNUP_STATUSES:
        raise MalformedInputError(f"invalid signup status: {project.signup_status!r}")
    if project.participant_visibility not in VISIBILITY_MODES:
        raise MalformedInputError(f"invalid participant visibility: {project.participant_visibility!r}")
    if project.signup_status == SIGNUP_WITH_CODE and not (project.short_code or "").strip():
        raise MalformedInputError("signup status 'with_code' requires a short code")
    if (project.max_participants or 0) < 0 or (project.participant_minimum_age or 0) < 0:
        raise MalformedInputError("participant limits must not be negative")


class ProjectRepo:
    @staticmethod
    async def create(
        db: AsyncSession,
        name: str,
        *,
        description: str = "",
        short_code: str = "",
        status: str = PROJECT_STATUS_PENDING,
        signup_status: str = SIGNUP_OPEN,
        max_participants: int = 0,
        participant_minimum_age: int = 0,
        participant_visibility: str = VISIBILITY_CODE,
        connect_participant_to_consent: bool = True,
        complete_message: str = "",
    ) -> Project:
        project = Project(
            name=name,
            description=description,
            short_code=short_code,
            status=status,
            signup_status=signup_status,
            max_participants=max_participants,
            participant_minimum_age=participant_minimum_age,
            participant_visibility=participant_visibility,
            connect_participant_to_consent=connect_participant_to_consent,
            complete_message=complete_message,
        )
        check_project_settings(project)
        db.add(project)
        await db.commit()
        await db.refresh(project)
        return project

    @staticmethod
    async def get_by_id(db: AsyncSession, project_id: int) -> Optional[Project]:
        result = await db.execute(select(Project).where(Project.id == project_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_active(db: AsyncSession) -> list[Project]:
        result = await db.execute(
            select(Project).where(Project.status == PROJECT_STATUS_ACTIVE).order_by(Project.name)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_for_participant(db: AsyncSession, user_id: int) -> list[Project]:
        result = await db.execute(
            select(Project)
            .join(ProjectUserLink, ProjectUserLink.project_id == Project.id)
            .where(ProjectUserLink.user_id == user_id)
            .order_by(Project.name)
        )
        return list(result.scalars().all())

    # ── participant links ────────────────────────────────────────────────────

    @staticmethod
    async def count_participants(db: AsyncSession, project_id: int) -> int:
        """Live count of linked identities. Never cached."""
        result = await db.execute(
            select(func.count()).select_from(ProjectUserLink).where(ProjectUserLink.project_id == project_id)
        )
        return result.scalar_one()

    @staticmethod
    async def is_linked(db: AsyncSession, user_id: int, project_id: int) -> bool:
        result = await db.execute(
            select(ProjectUserLink.user_id).where(
                ProjectUserLink.user_id == user_id,
                ProjectUserLink.project_id == project_id,
            )
        )
        return result.first() is not None

    @staticmethod
    async def get_link(db: AsyncSession, user_id: int, project_id: int) -> Optional[ProjectUserLink]:
        result = await db.execute(
            select(ProjectUserLink).where(
                ProjectUserLink.user_id == user_id,
                ProjectUserLink.project_id == project_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def link_user(db: AsyncSession, user_id: int, project_id: int) -> None:
        """INSERT … ON CONFLICT DO NOTHING; linking twice is a no-op."""
        insert = insert_for(db)
        stmt = insert(ProjectUserLink).values(user_id=user_id, project_id=project_id).on_conflict_do_nothing(
            index_elements=["user_id", "project_id"]
        )
        await db.execute(stmt)
        await db.commit()

    @staticmethod
    async def unlink_user(db: AsyncSession, user_id: int, project_id: int) -> None:
        await db.execute(
            delete(ProjectUserLink).where(
                ProjectUserLink.user_id == user_id,
                ProjectUserLink.project_id == project_id,
            )
        )
        await db.commit()

    @staticmethod
    async def set_link_status(db: AsyncSession, user_id: int, project_id: int, status: str) -> None:
        await db.execute(
            update(ProjectUserLink)
            .where(
                ProjectUserLink.user_id == user_id,
                ProjectUserLink.project_id == project_id,
            )
            .values(status=status)
        )
        await db.commit()
