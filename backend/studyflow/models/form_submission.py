from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from studyflow.database import Base

# Submission-level grading result.
RESULT_NA = "na"
RESULT_NEEDS_INPUT = "needs_input"
RESULT_PASSED = "passed"
RESULT_FAILED = "failed"

# Per-answer correctness.
CORRECT_NA = "na"
CORRECT_PENDING = "pending"
CORRECT_YES = "yes"
CORRECT_NO = "no"


class FormSubmission(Base):
    """One complete submission of a form block by a participant."""
    __tablename__ = "form_submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    module_id: Mapped[int] = mapped_column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False)
    block_id: Mapped[int] = mapped_column(Integer, ForeignKey("blocks.id", ondelete="CASCADE"), nullable=False)
    # na | needs_input | passed | failed
    results: Mapped[str] = mapped_column(String(20), nullable=False, default=RESULT_NA)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class FormSubmissionResponse(Base):
    """
    A single answer inside a submission. Choice answers reference option_id and
    carry a copy of the option text; free-text answers have option_id 0.
    """
    __tablename__ = "form_submission_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("form_submissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(Integer, nullable=False)
    option_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    text_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # na | pending | yes | no
    is_correct: Mapped[str] = mapped_column(String(10), nullable=False, default=CORRECT_NA)
