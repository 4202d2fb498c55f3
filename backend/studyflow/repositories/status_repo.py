"""
BlockUserStatus persistence.

Writes are INSERT … ON CONFLICT DO UPDATE on the full
(user_id, project_id, module_id, block_id) key. Resets and removals are plain
DELETEs, so every operation here can be re-run safely.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.database import insert_for
from studyflow.models.block import BlockUserStatus


class StatusRepo:
    @staticmethod
    async def get(
        db: AsyncSession, user_id: int, project_id: int, module_id: int, block_id: int
    ) -> Optional[BlockUserStatus]:
        result = await db.execute(
            select(BlockUserStatus).where(
                BlockUserStatus.user_id == user_id,
                BlockUserStatus.project_id == project_id,
                BlockUserStatus.module_id == module_id,
                BlockUserStatus.block_id == block_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert(
        db: AsyncSession,
        user_id: int,
        project_id: int,
        module_id: int,
        block_id: int,
        status: str,
        now: Optional[datetime] = None,
    ) -> BlockUserStatus:
        """Overwrite the status unconditionally and refresh last_updated_on."""
        now = now or datetime.now(timezone.utc)
        insert = insert_for(db)
        stmt = (
            insert(BlockUserStatus)
            .values(
                user_id=user_id,
                project_id=project_id,
                module_id=module_id,
                block_id=block_id,
                status=status,
                last_updated_on=now,
            )
            .on_conflict_do_update(
                index_elements=["user_id", "project_id", "module_id", "block_id"],
                set_={"status": status, "last_updated_on": now},
            )
        )
        await db.execute(stmt)
        await db.commit()
        row = await StatusRepo.get(db, user_id, project_id, module_id, block_id)
        await db.refresh(row)
        return row

    @staticmethod
    async def list_for_project(db: AsyncSession, user_id: int, project_id: int) -> list[BlockUserStatus]:
        result = await db.execute(
            select(BlockUserStatus).where(
                BlockUserStatus.user_id == user_id,
                BlockUserStatus.project_id == project_id,
            )
        )
        return list(result.scalars().all())

    # ── resets ───────────────────────────────────────────────────────────────

    @staticmethod
    async def delete_block(db: AsyncSession, user_id: int, project_id: int, module_id: int, block_id: int) -> int:
        """module_id 0 clears the block wherever it appears in the project."""
        stmt = delete(BlockUserStatus).where(
            BlockUserStatus.user_id == user_id,
            BlockUserStatus.project_id == project_id,
            BlockUserStatus.block_id == block_id,
        )
        if module_id:
            stmt = stmt.where(BlockUserStatus.module_id == module_id)
        result = await db.execute(stmt)
        await db.commit()
        return result.rowcount

    @staticmethod
    async def delete_module(db: AsyncSession, user_id: int, project_id: int, module_id: int) -> int:
        result = await db.execute(
            delete(BlockUserStatus).where(
                BlockUserStatus.user_id == user_id,
                BlockUserStatus.project_id == project_id,
                BlockUserStatus.module_id == module_id,
            )
        )
        await db.commit()
        return result.rowcount

    @staticmethod
    async def delete_project(db: AsyncSession, user_id: int, project_id: int) -> int:
        result = await db.execute(
            delete(BlockUserStatus).where(
                BlockUserStatus.user_id == user_id,
                BlockUserStatus.project_id == project_id,
            )
        )
        await db.commit()
        return result.rowcount
