"""
Enrollment Gate: may this candidate be linked to this project right now?

``evaluate_enrollment`` is a pure function over already-loaded facts. Rules
run in a fixed order and the first failure wins:

  1. project status must be 'active'              → project_unavailable
  2. signup status must not be 'closed'           → signup_closed
  3. 'with_code' signup needs the exact short code → code_mismatch
     (missing and wrong codes fail identically)
  4. max_participants > 0 needs live count < max  → capacity_reached
  5. participant_minimum_age > 0 needs a parseable
     date of birth at least that many whole years ago → age_not_met

An identity that is already linked re-enrolls idempotently: it does not take
a new seat, so rule 4 does not apply to it. Every other rule still does.

``EnrollmentGate`` wraps the pure function with the one piece of live state it
needs, the current participant count. The count read and the later link
write are not atomic; two concurrent enrollments can overshoot the cap.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.models.project import PROJECT_STATUS_ACTIVE, SIGNUP_CLOSED, SIGNUP_WITH_CODE, Project
from studyflow.repositories.project_repo import ProjectRepo
from studyflow.services.errors import DenialReason, PolicyDeniedError
from studyflow.utils.datetimes import age_in_years

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrollmentDecision:
    allowed: bool
    reason: Optional[DenialReason] = None

    def raise_if_denied(self) -> None:
        if not self.allowed:
            raise PolicyDeniedError(self.reason)


ALLOWED = EnrollmentDecision(True)


def _deny(reason: DenialReason) -> EnrollmentDecision:
    return EnrollmentDecision(False, reason)


def evaluate_enrollment(
    project: Project,
    *,
    participant_count: int,
    provided_code: Optional[str] = None,
    date_of_birth: Optional[str] = None,
    already_linked: bool = False,
    now: Optional[datetime] = None,
) -> EnrollmentDecision:
    if project.status != PROJECT_STATUS_ACTIVE:
        return _deny(DenialReason.PROJECT_UNAVAILABLE)

    if project.signup_status == SIGNUP_CLOSED:
        return _deny(DenialReason.SIGNUP_CLOSED)

    if project.signup_status == SIGNUP_WITH_CODE:
        if not provided_code or provided_code != project.short_code:
            return _deny(DenialReason.CODE_MISMATCH)

    if project.max_participants > 0 and not already_linked:
        if participant_count >= project.max_participants:
            return _deny(DenialReason.CAPACITY_REACHED)

    if project.participant_minimum_age > 0:
        age = age_in_years(date_of_birth, now)
        if age is None or age < project.participant_minimum_age:
            return _deny(DenialReason.AGE_NOT_MET)

    return ALLOWED


class EnrollmentGate:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def check(
        self,
        project: Project,
        *,
        user_id: Optional[int] = None,
        provided_code: Optional[str] = None,
        date_of_birth: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> EnrollmentDecision:
        """Evaluate against the live participant count. user_id is None for identities not yet created."""
        already_linked = user_id is not None and await ProjectRepo.is_linked(self.db, user_id, project.id)
        count = await ProjectRepo.count_participants(self.db, project.id)
        decision = evaluate_enrollment(
            project,
            participant_count=count,
            provided_code=provided_code,
            date_of_birth=date_of_birth,
            already_linked=already_linked,
            now=now,
        )
        if not decision.allowed:
            logger.warning(
                "enrollment denied project_id=%s user_id=%s reason=%s",
                project.id, user_id, decision.reason.value,
            )
        return decision
