from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from studyflow.database import Base

CONSENT_ACCEPTED = "accepted"
CONSENT_ACCEPTED_FOR_OTHER = "accepted_for_other"
CONSENT_DECLINED = "declined"
CONSENT_STATUSES = frozenset({CONSENT_ACCEPTED, CONSENT_ACCEPTED_FOR_OTHER, CONSENT_DECLINED})


class ConsentForm(Base):
    """One per project. Locked against edits once the project has participants."""
    __tablename__ = "consent_forms"

    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    content_in_markdown: Mapped[str] = mapped_column(Text, nullable=False, default="")
    contact_information_display: Mapped[str] = mapped_column(Text, nullable=False, default="")
    institution_information_display: Mapped[str] = mapped_column(Text, nullable=False, default="")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class ConsentResponse(Base):
    """
    Append-only consent history: re-consent adds a row, it never updates one.

    participant_id is 0 (not NULL, no FK) when the project does not connect
    participants to their consent; the participant_provided_* fields are what
    the person typed on the form and are independent of any account record.
    """
    __tablename__ = "consent_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    participant_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    # accepted | accepted_for_other | declined
    consent_status: Mapped[str] = mapped_column(String(30), nullable=False, default=CONSENT_DECLINED)
    date_consented: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    participant_comments: Mapped[str] = mapped_column(Text, nullable=False, default="")
    researcher_comments: Mapped[str] = mapped_column(Text, nullable=False, default="")
    participant_provided_first_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    participant_provided_last_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    participant_provided_contact_information: Mapped[str] = mapped_column(Text, nullable=False, default="")
