"""
Consent Ledger.

record_consent runs the full enrollment sequence for one submission:

  plan identity → enrollment gate → create identity (if any) →
  append consent response → link identity to project

Nothing is written until the gate has passed. Responses are append-only:
re-consenting adds a row. When the project does not connect participants to
their consent, the response is stored with participant_id 0 and only carries
the name/contact fields the person typed on the form.

Saving or deleting a project's consent form is refused once anyone is linked
to the project, unless the caller passes override=True.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.models.consent import CONSENT_STATUSES, ConsentForm, ConsentResponse
from studyflow.models.project import PROJECT_STATUS_ACTIVE, Project
from studyflow.models.user import User
from studyflow.repositories.consent_repo import ConsentRepo
from studyflow.repositories.project_repo import ProjectRepo
from studyflow.services.auth_service import IssuedToken
from studyflow.services.enrollment_gate import EnrollmentGate
from studyflow.services.errors import (
    DenialReason,
    MalformedInputError,
    NotFoundError,
    PersistenceError,
    PolicyDeniedError,
)
from studyflow.services.identity_service import IdentityResolver, SubmittedIdentity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsentSubmission:
    consent_status: str
    provided_code: str = ""
    participant_comments: str = ""
    participant_provided_first_name: str = ""
    participant_provided_last_name: str = ""
    participant_provided_contact_information: str = ""
    identity: Optional[SubmittedIdentity] = None


@dataclass(frozen=True)
class ConsentOutcome:
    response: ConsentResponse
    user: User
    # Set when a new identity was created for this consent.
    token: Optional[IssuedToken] = None


class ConsentLedger:
    def __init__(self, db: AsyncSession, resolver: IdentityResolver):
        self.db = db
        self.resolver = resolver
        self.gate = EnrollmentGate(db)

    # ── forms ────────────────────────────────────────────────────────────────

    async def _get_project(self, project_id: int, *, active_only: bool) -> Project:
        project = await ProjectRepo.get_by_id(self.db, project_id)
        if project is None or (active_only and project.status != PROJECT_STATUS_ACTIVE):
            raise NotFoundError("project not found")
        return project

    async def get_form(self, project_id: int, *, active_only: bool = True) -> ConsentForm:
        """Participant-facing lookups treat inactive projects as missing."""
        await self._get_project(project_id, active_only=active_only)
        form = await ConsentRepo.get_form(self.db, project_id)
        if form is None:
            raise NotFoundError("consent form not found")
        return form

    async def _check_form_unlocked(self, project_id: int, override: bool) -> None:
        if override:
            return
        if await ProjectRepo.count_participants(self.db, project_id) > 0:
            logger.warning("consent form locked project_id=%s", project_id)
            raise PolicyDeniedError(
                DenialReason.PARTICIPANTS_NOT_ZERO,
                "project already has participants; pass override to change its consent form",
            )

    async def save_form(
        self,
        project_id: int,
        content_in_markdown: str,
        contact_information_display: str = "",
        institution_information_display: str = "",
        *,
        override: bool = False,
    ) -> ConsentForm:
        await self._get_project(project_id, active_only=False)
        await self._check_form_unlocked(project_id, override)
        form = await ConsentRepo.save_form(
            self.db, project_id, content_in_markdown, contact_information_display, institution_information_display
        )
        logger.info("consent form saved project_id=%s override=%s", project_id, override)
        return form

    async def delete_form(self, project_id: int, *, override: bool = False) -> None:
        await self._get_project(project_id, active_only=False)
        await self._check_form_unlocked(project_id, override)
        await ConsentRepo.delete_form(self.db, project_id)
        logger.info("consent form deleted project_id=%s override=%s", project_id, override)

    # ── responses ────────────────────────────────────────────────────────────

    async def record_consent(
        self,
        caller: Optional[User],
        project_id: int,
        submission: ConsentSubmission,
        now: Optional[datetime] = None,
    ) -> ConsentOutcome:
        if submission.consent_status not in CONSENT_STATUSES:
            raise MalformedInputError(f"invalid consent status: {submission.consent_status!r}")

        project = await ProjectRepo.get_by_id(self.db, project_id)
        if project is None:
            raise NotFoundError("project not found")
        if await ConsentRepo.get_form(self.db, project_id) is None:
            raise NotFoundError("consent form not found")

        plan = self.resolver.plan(caller, project, submission.identity)
        decision = await self.gate.check(
            project,
            user_id=plan.existing_user_id,
            provided_code=submission.provided_code,
            date_of_birth=plan.date_of_birth,
            now=now,
        )
        decision.raise_if_denied()

        resolved = await self.resolver.materialize(plan)
        user = resolved.user

        response = ConsentResponse(
            project_id=project.id,
            participant_id=user.id if project.connect_participant_to_consent else 0,
            consent_status=submission.consent_status,
            participant_comments=submission.participant_comments,
            participant_provided_first_name=submission.participant_provided_first_name,
            participant_provided_last_name=submission.participant_provided_last_name,
            participant_provided_contact_information=submission.participant_provided_contact_information,
        )
        try:
            response = await ConsentRepo.create_response(self.db, response)
            await ProjectRepo.link_user(self.db, user.id, project.id)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception("consent write failed project_id=%s user_id=%s", project.id, user.id)
            raise PersistenceError("could not record consent") from exc

        logger.info(
            "consent recorded project_id=%s user_id=%s response_id=%s status=%s new_identity=%s",
            project.id, user.id, response.id, response.consent_status, resolved.created,
        )
        return ConsentOutcome(response, user, resolved.token)

    async def get_response(self, user: User, project_id: int, response_id: int) -> ConsentResponse:
        """The owner or an admin may read a response; anyone else gets not-found."""
        response = await ConsentRepo.get_response(self.db, project_id, response_id)
        if response is None:
            raise NotFoundError("consent response not found")
        if not user.is_admin and (response.participant_id == 0 or response.participant_id != user.id):
            raise NotFoundError("consent response not found")
        return response

    async def list_responses(self, project_id: int) -> list[ConsentResponse]:
        await self._get_project(project_id, active_only=False)
        return await ConsentRepo.list_responses(self.db, project_id)
