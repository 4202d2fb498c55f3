from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from studyflow.database import Base

NOTE_TYPE_JOURNAL = "journal"
NOTE_TYPE_PROJECT = "project"

NOTE_VISIBILITY_PRIVATE = "private"
NOTE_VISIBILITY_ADMINS = "admins"


class Note(Base):
    """
    Free-form participant note. project/module/block ids are 0 when the note is
    not attached at that level; project-scoped notes are purged when the
    participant is removed from the project.
    """
    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # journal | project
    note_type: Mapped[str] = mapped_column(String(20), nullable=False, default=NOTE_TYPE_JOURNAL)
    project_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    module_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    block_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # private | admins
    visibility: Mapped[str] = mapped_column(String(20), nullable=False, default=NOTE_VISIBILITY_PRIVATE)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_on: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
