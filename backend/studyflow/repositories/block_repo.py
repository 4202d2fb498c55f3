from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.content import get_handler
from studyflow.models.block import Block


class BlockRepo:
    @staticmethod
    async def create(
        db: AsyncSession,
        name: str,
        block_type: str,
        content: Any,
        *,
        summary: str = "",
        allow_reset: bool = True,
    ) -> Block:
        """Validate content through the handler for block_type, then persist the block."""
        block = Block(name=name, summary=summary, allow_reset=allow_reset)
        get_handler(block_type).save(block, content)
        db.add(block)
        await db.commit()
        await db.refresh(block)
        return block
