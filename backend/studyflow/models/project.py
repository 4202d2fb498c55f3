from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from studyflow.database import Base

PROJECT_STATUS_PENDING = "pending"
PROJECT_STATUS_ACTIVE = "active"
PROJECT_STATUS_DISABLED = "disabled"
PROJECT_STATUS_COMPLETED = "completed"
PROJECT_STATUSES = frozenset(
    {PROJECT_STATUS_PENDING, PROJECT_STATUS_ACTIVE, PROJECT_STATUS_DISABLED, PROJECT_STATUS_COMPLETED}
)

SIGNUP_OPEN = "open"
SIGNUP_WITH_CODE = "with_code"
SIGNUP_CLOSED = "closed"
SIGNUP_STATUSES = frozenset({SIGNUP_OPEN, SIGNUP_WITH_CODE, SIGNUP_CLOSED})

VISIBILITY_CODE = "code"
VISIBILITY_EMAIL = "email"
VISIBILITY_FULL = "full"
VISIBILITY_MODES = frozenset({VISIBILITY_CODE, VISIBILITY_EMAIL, VISIBILITY_FULL})


class Project(Base):
    """
    A study. Scoping boundary for every enrollment decision.

    The participant count is deliberately not a column: it is always
    recomputed from project_user_links (see ProjectRepo.count_participants).
    """
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Signup code; only consulted when signup_status = 'with_code'.
    short_code: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    # pending | active | disabled | completed
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PROJECT_STATUS_PENDING)
    # open | with_code | closed
    signup_status: Mapped[str] = mapped_column(String(20), nullable=False, default=SIGNUP_OPEN)
    # 0 = unlimited
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # 0 = no age check
    participant_minimum_age: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # code | email | full
    participant_visibility: Mapped[str] = mapped_column(String(20), nullable=False, default=VISIBILITY_CODE)
    # False = consent responses are stored with participant_id 0
    connect_participant_to_consent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Shown to a participant once every block in the flow is completed.
    complete_message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ProjectUserLink(Base):
    """
    Membership of an identity in a project. Existence is what the participant
    count counts. Linking is an upsert (ON CONFLICT DO NOTHING), so re-linking
    is a no-op rather than an error.

    status mirrors the derived project rollup for reporting; it is refreshed
    after each progress write and is never used for gating.
    """
    __tablename__ = "project_user_links"

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    # not_started | started | completed
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="not_started")
    linked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
