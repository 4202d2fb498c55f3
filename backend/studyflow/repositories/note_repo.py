from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.models.note import Note


class NoteRepo:
    @staticmethod
    async def create(db: AsyncSession, note: Note) -> Note:
        db.add(note)
        await db.commit()
        await db.refresh(note)
        return note

    @staticmethod
    async def get(db: AsyncSession, user_id: int, note_id: int) -> Optional[Note]:
        """Notes are only ever visible to their author through this path."""
        result = await db.execute(select(Note).where(Note.id == note_id, Note.user_id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: int, project_id: Optional[int] = None) -> list[Note]:
        stmt = select(Note).where(Note.user_id == user_id)
        if project_id is not None:
            stmt = stmt.where(Note.project_id == project_id)
        result = await db.execute(stmt.order_by(Note.created_on.desc(), Note.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def delete(db: AsyncSession, user_id: int, note_id: int) -> int:
        result = await db.execute(delete(Note).where(Note.id == note_id, Note.user_id == user_id))
        await db.commit()
        return result.rowcount

    @staticmethod
    async def delete_for_project(db: AsyncSession, user_id: int, project_id: int) -> int:
        result = await db.execute(delete(Note).where(Note.user_id == user_id, Note.project_id == project_id))
        await db.commit()
        return result.rowcount
