from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from studyflow.database import Base

MODULE_STATUS_ACTIVE = "active"
MODULE_STATUS_PENDING = "pending"
MODULE_STATUS_DISABLED = "disabled"
MODULE_STATUSES = frozenset({MODULE_STATUS_ACTIVE, MODULE_STATUS_PENDING, MODULE_STATUS_DISABLED})


class Module(Base):
    """A reusable container of blocks. Only 'active' modules appear in participant flows."""
    __tablename__ = "modules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # active | pending | disabled
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=MODULE_STATUS_PENDING)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ProjectModule(Base):
    """
    Project-level flow: which modules a project uses and in what order.

    UNIQUE(project_id, module_id); re-linking updates flow_order.
    The surrogate id breaks flow_order ties in insertion order.
    """
    __tablename__ = "project_modules"
    __table_args__ = (UniqueConstraint("project_id", "module_id", name="uq_project_module"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    module_id: Mapped[int] = mapped_column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)
    flow_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
