"""
Flow Assembler: the participant's ordered walk through a project.

Ordering is (project module order, module block order), ties broken by link
insertion order. Only 'active' modules appear. A block the participant has
never touched is reported as not_started, stamped with the read time. This is
a read-only projection: nothing is written here, unlike ProgressTracker.open_block.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.models.block import STATUS_COMPLETED, STATUS_NOT_STARTED
from studyflow.repositories.flow_repo import FlowRepo


@dataclass(frozen=True)
class FlowStep:
    module_id: int
    module_name: str
    block_id: int
    block_name: str
    block_type: str
    status: str
    last_updated_on: datetime


class FlowAssembler:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_flow(self, user_id: int, project_id: int, now: Optional[datetime] = None) -> list[FlowStep]:
        now = now or datetime.now(timezone.utc)
        steps = []
        for module, block, status in await FlowRepo.list_flow(self.db, project_id, user_id):
            steps.append(FlowStep(
                module_id=module.id,
                module_name=module.name,
                block_id=block.id,
                block_name=block.name,
                block_type=block.block_type,
                status=status.status if status is not None else STATUS_NOT_STARTED,
                last_updated_on=status.last_updated_on if status is not None else now,
            ))
        return steps


def next_step(flow: list[FlowStep]) -> Optional[FlowStep]:
    """The first step not yet completed, or None when the flow is done (or empty)."""
    for step in flow:
        if step.status != STATUS_COMPLETED:
            return step
    return None
