"""
Module and flow-wiring persistence.

Flow wiring is two independent orderings: modules within a project
(project_modules) and blocks within a module (module_blocks). Both links are
upserts on their natural key, so re-linking only moves the item.
"""
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.database import insert_for
from studyflow.models.block import ModuleBlock
from studyflow.models.module import MODULE_STATUS_PENDING, MODULE_STATUSES, Module, ProjectModule
from studyflow.services.errors import MalformedInputError


class ModuleRepo:
    @staticmethod
    async def create(
        db: AsyncSession, name: str, *, description: str = "", status: str = MODULE_STATUS_PENDING
    ) -> Module:
        if status not in MODULE_STATUSES:
            raise MalformedInputError(f"invalid module status: {status!r}")
        module = Module(name=name, description=description, status=status)
        db.add(module)
        await db.commit()
        await db.refresh(module)
        return module

    # ── project ↔ module ─────────────────────────────────────────────────────

    @staticmethod
    async def link_to_project(db: AsyncSession, project_id: int, module_id: int, flow_order: int = 0) -> None:
        insert = insert_for(db)
        stmt = (
            insert(ProjectModule)
            .values(project_id=project_id, module_id=module_id, flow_order=flow_order)
            .on_conflict_do_update(index_elements=["project_id", "module_id"], set_={"flow_order": flow_order})
        )
        await db.execute(stmt)
        await db.commit()

    # ── module ↔ block ───────────────────────────────────────────────────────

    @staticmethod
    async def link_block(db: AsyncSession, module_id: int, block_id: int, flow_order: int = 0) -> None:
        insert = insert_for(db)
        stmt = (
            insert(ModuleBlock)
            .values(module_id=module_id, block_id=block_id, flow_order=flow_order)
            .on_conflict_do_update(index_elements=["module_id", "block_id"], set_={"flow_order": flow_order})
        )
        await db.execute(stmt)
        await db.commit()

    @staticmethod
    async def unlink_block(db: AsyncSession, module_id: int, block_id: int) -> None:
        await db.execute(delete(ModuleBlock).where(ModuleBlock.module_id == module_id, ModuleBlock.block_id == block_id))
        await db.commit()
