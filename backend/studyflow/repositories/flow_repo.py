"""
Read-side flow queries: the joined project → module → block sequence a
participant walks through, optionally with that participant's status rows.
"""
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.models.block import Block, BlockUserStatus, ModuleBlock
from studyflow.models.module import MODULE_STATUS_ACTIVE, Module, ProjectModule

# (project module order, insertion id, block order within module, insertion id)
_FLOW_ORDER = (ProjectModule.flow_order, ProjectModule.id, ModuleBlock.flow_order, ModuleBlock.id)


def _flow_select(project_id: int):
    return (
        select(Module, Block)
        .select_from(ProjectModule)
        .join(Module, Module.id == ProjectModule.module_id)
        .join(ModuleBlock, ModuleBlock.module_id == Module.id)
        .join(Block, Block.id == ModuleBlock.block_id)
        .where(ProjectModule.project_id == project_id, Module.status == MODULE_STATUS_ACTIVE)
    )


class FlowRepo:
    @staticmethod
    async def list_flow(
        db: AsyncSession, project_id: int, user_id: int
    ) -> list[tuple[Module, Block, Optional[BlockUserStatus]]]:
        """
        Every (module, block) of the project's active modules, in flow order,
        paired with the participant's status row or None when there is none yet.
        """
        stmt = (
            _flow_select(project_id)
            .add_columns(BlockUserStatus)
            .outerjoin(
                BlockUserStatus,
                and_(
                    BlockUserStatus.user_id == user_id,
                    BlockUserStatus.project_id == project_id,
                    BlockUserStatus.module_id == Module.id,
                    BlockUserStatus.block_id == Block.id,
                ),
            )
            .order_by(*_FLOW_ORDER)
        )
        result = await db.execute(stmt)
        return [(row[0], row[1], row[2]) for row in result.all()]

    @staticmethod
    async def get_flow_block(
        db: AsyncSession, project_id: int, module_id: int, block_id: int
    ) -> Optional[tuple[Module, Block]]:
        """The block as reached through this project and module, or None if it is not in the flow."""
        stmt = _flow_select(project_id).where(Module.id == module_id, Block.id == block_id)
        row = (await db.execute(stmt)).first()
        if row is None:
            return None
        return row[0], row[1]

    @staticmethod
    async def module_in_flow(db: AsyncSession, project_id: int, module_id: int) -> bool:
        result = await db.execute(
            select(ProjectModule.id)
            .join(Module, Module.id == ProjectModule.module_id)
            .where(
                ProjectModule.project_id == project_id,
                ProjectModule.module_id == module_id,
                Module.status == MODULE_STATUS_ACTIVE,
            )
        )
        return result.first() is not None
