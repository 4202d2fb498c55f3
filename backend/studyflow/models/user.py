from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from studyflow.database import Base

ROLE_ADMIN = "admin"
ROLE_PARTICIPANT = "participant"

USER_STATUS_ACTIVE = "active"
USER_STATUS_PENDING = "pending"


class User(Base):
    """
    A login identity. Either a full account (email, names, date of birth) or an
    anonymous participant-code account with no name or email at all. Both kinds
    authenticate the same way: identifier (email or code) plus password.

    Consent data is never read from here; consent responses carry their own
    participant-provided name and contact fields.
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    # Generated for anonymous identities only; login identifier in place of email.
    participant_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)
    # NULL for code identities minted without a password: they can only use the issued session.
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    first_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    last_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    pronouns: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # ISO date string as supplied; parsed on demand by the age check.
    date_of_birth: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    # admin | participant
    system_role: Mapped[str] = mapped_column(String(20), nullable=False, default=ROLE_PARTICIPANT)
    # active | pending
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=USER_STATUS_ACTIVE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.system_role == ROLE_ADMIN

    @property
    def is_code_identity(self) -> bool:
        return self.participant_code is not None
