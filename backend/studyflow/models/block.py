from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from studyflow.database import Base

STATUS_NOT_STARTED = "not_started"
STATUS_STARTED = "started"
STATUS_COMPLETED = "completed"
BLOCK_USER_STATUSES = frozenset({STATUS_NOT_STARTED, STATUS_STARTED, STATUS_COMPLETED})


class Block(Base):
    """A unit of participant-facing content. The content shape depends on block_type."""
    __tablename__ = "blocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # text | external | embed | form | file
    block_type: Mapped[str] = mapped_column(String(20), nullable=False, default="text")
    allow_reset: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Normalised by the content handler for block_type before it is stored.
    content: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ModuleBlock(Base):
    """
    Module-level flow: which blocks a module holds and in what order.

    UNIQUE(module_id, block_id); re-linking updates flow_order.
    """
    __tablename__ = "module_blocks"
    __table_args__ = (UniqueConstraint("module_id", "block_id", name="uq_module_block"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module_id: Mapped[int] = mapped_column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)
    block_id: Mapped[int] = mapped_column(Integer, ForeignKey("blocks.id", ondelete="CASCADE"), nullable=False)
    flow_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class BlockUserStatus(Base):
    """
    Per-participant progress on one block, scoped to the project and module it
    was reached through. Written with ON CONFLICT DO UPDATE on the full key.

    Status is meant to move forward only; that is the caller's job. Regressions
    happen through explicit resets, which delete rows instead of updating them.
    """
    __tablename__ = "block_user_statuses"

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    module_id: Mapped[int] = mapped_column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), primary_key=True)
    block_id: Mapped[int] = mapped_column(Integer, ForeignKey("blocks.id", ondelete="CASCADE"), primary_key=True)
    # not_started | started | completed
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_NOT_STARTED)
    last_updated_on: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
