"""
Progress Tracker: per (participant, project, module, block) status.

States run not_started → started → completed. Three ways in:

  open_block   reading a not_started block moves it to started; the only
               write triggered by a read
  set_status   explicit overwrite with any of the three values; form blocks
               are refused (they complete through submit_form)
  reset        deletes status rows for one block, one module, or the whole
               project flow; the most specific non-zero id wins

Project and module rollups are derived from the Flow Assembler's enumeration
and never stored as the source of truth. ProjectUserLink.status only mirrors
the latest project rollup for reporting.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.content import get_handler
from studyflow.content.base import BlockContent
from studyflow.content.form import (
    BLOCK_TYPE_FORM,
    FORM_TYPE_QUIZ,
    FREE_TEXT_QUESTIONS,
    QUESTION_EXPLANATION,
    QUESTION_MULTIPLE,
    FormContent,
)
from studyflow.models.block import (
    BLOCK_USER_STATUSES,
    STATUS_COMPLETED,
    STATUS_NOT_STARTED,
    STATUS_STARTED,
    Block,
    BlockUserStatus,
)
from studyflow.models.form_submission import (
    CORRECT_NA,
    CORRECT_NO,
    CORRECT_PENDING,
    RESULT_FAILED,
    RESULT_NA,
    RESULT_NEEDS_INPUT,
    RESULT_PASSED,
    FormSubmission,
    FormSubmissionResponse,
)
from studyflow.models.module import Module
from studyflow.models.project import PROJECT_STATUS_ACTIVE, Project
from studyflow.repositories.consent_repo import ConsentRepo
from studyflow.repositories.flow_repo import FlowRepo
from studyflow.repositories.note_repo import NoteRepo
from studyflow.repositories.project_repo import ProjectRepo
from studyflow.repositories.status_repo import StatusRepo
from studyflow.repositories.submission_repo import SubmissionRepo
from studyflow.services.errors import (
    MalformedInputError,
    NotFoundError,
    PersistenceError,
    WrongEndpointError,
)
from studyflow.services.flow_assembler import FlowAssembler, FlowStep

logger = logging.getLogger(__name__)

RESET_BLOCK = "block"
RESET_MODULE = "module"
RESET_PROJECT = "project"


def rollup_status(statuses: Iterable[str]) -> str:
    """
    completed   every block completed (and there is at least one block)
    started     anything started or completed
    not_started otherwise, including an empty flow
    """
    statuses = list(statuses)
    if statuses and all(s == STATUS_COMPLETED for s in statuses):
        return STATUS_COMPLETED
    if any(s in (STATUS_STARTED, STATUS_COMPLETED) for s in statuses):
        return STATUS_STARTED
    return STATUS_NOT_STARTED


def module_rollups(flow: list[FlowStep]) -> dict[int, str]:
    """Rollup per module, in flow order."""
    by_module: dict[int, list[str]] = {}
    for step in flow:
        by_module.setdefault(step.module_id, []).append(step.status)
    return {module_id: rollup_status(s) for module_id, s in by_module.items()}


def grade_submission(form: FormContent, responses: list[FormSubmissionResponse]) -> str:
    if form.form_type != FORM_TYPE_QUIZ:
        return RESULT_NA
    marks = [r.is_correct for r in responses]
    if CORRECT_PENDING in marks:
        return RESULT_NEEDS_INPUT
    if CORRECT_NO in marks:
        return RESULT_FAILED
    return RESULT_PASSED


@dataclass(frozen=True)
class FormAnswer:
    question_id: int
    option_id: int = 0
    text_response: str = ""


@dataclass(frozen=True)
class OpenedBlock:
    module: Module
    block: Block
    content: BlockContent
    status: BlockUserStatus


@dataclass(frozen=True)
class StatusUpdate:
    status: BlockUserStatus
    project_status: str
    # Only set when the write completed the project.
    complete_message: Optional[str] = None


@dataclass(frozen=True)
class ResetResult:
    granularity: str
    removed: int
    project_status: str


@dataclass(frozen=True)
class SubmissionRecord:
    submission: FormSubmission
    responses: list[FormSubmissionResponse]


@dataclass(frozen=True)
class RemovalResult:
    consent_responses: int
    statuses: int
    submissions: int
    notes: int


class ProgressTracker:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.flows = FlowAssembler(db)

    # ── lookups ──────────────────────────────────────────────────────────────

    async def require_participation(self, user_id: int, project_id: int) -> Project:
        """The project, if this identity is linked to it; not-found otherwise."""
        project = await ProjectRepo.get_by_id(self.db, project_id)
        if project is None or not await ProjectRepo.is_linked(self.db, user_id, project_id):
            raise NotFoundError("project not found")
        return project

    async def _flow_block(self, user_id: int, project_id: int, module_id: int, block_id: int) -> tuple[Module, Block]:
        await self.require_participation(user_id, project_id)
        found = await FlowRepo.get_flow_block(self.db, project_id, module_id, block_id)
        if found is None:
            raise NotFoundError("block not found")
        return found

    # ── rollups ──────────────────────────────────────────────────────────────

    async def project_rollup(self, user_id: int, project_id: int) -> str:
        flow = await self.flows.get_flow(user_id, project_id)
        return rollup_status(step.status for step in flow)

    async def _refresh_link_status(self, user_id: int, project_id: int) -> str:
        status = await self.project_rollup(user_id, project_id)
        await ProjectRepo.set_link_status(self.db, user_id, project_id, status)
        return status

    # ── status ───────────────────────────────────────────────────────────────

    async def open_block(
        self, user_id: int, project_id: int, module_id: int, block_id: int, now: Optional[datetime] = None
    ) -> OpenedBlock:
        module, block = await self._flow_block(user_id, project_id, module_id, block_id)
        content = get_handler(block.block_type).fetch(block)

        status = await StatusRepo.get(self.db, user_id, project_id, module_id, block_id)
        if status is None or status.status == STATUS_NOT_STARTED:
            status = await StatusRepo.upsert(
                self.db, user_id, project_id, module_id, block_id, STATUS_STARTED, now=now
            )
            await self._refresh_link_status(user_id, project_id)
        return OpenedBlock(module, block, content, status)

    async def set_status(
        self,
        user_id: int,
        project_id: int,
        module_id: int,
        block_id: int,
        status: str,
        now: Optional[datetime] = None,
    ) -> StatusUpdate:
        if status not in BLOCK_USER_STATUSES:
            raise MalformedInputError(f"invalid status: {status!r}")
        _, block = await self._flow_block(user_id, project_id, module_id, block_id)
        if block.block_type == BLOCK_TYPE_FORM:
            raise WrongEndpointError("form blocks are completed by submitting the form")

        row = await StatusRepo.upsert(self.db, user_id, project_id, module_id, block_id, status, now=now)
        project_status = await self._refresh_link_status(user_id, project_id)
        complete_message = None
        if project_status == STATUS_COMPLETED:
            project = await ProjectRepo.get_by_id(self.db, project_id)
            complete_message = project.complete_message
            logger.info("project completed project_id=%s user_id=%s", project_id, user_id)
        return StatusUpdate(row, project_status, complete_message)

    async def reset(self, user_id: int, project_id: int, module_id: int = 0, block_id: int = 0) -> ResetResult:
        """Delete status rows at the most specific granularity named by a non-zero id."""
        if block_id:
            granularity = RESET_BLOCK
            removed = await StatusRepo.delete_block(self.db, user_id, project_id, module_id, block_id)
        elif module_id:
            granularity = RESET_MODULE
            removed = await StatusRepo.delete_module(self.db, user_id, project_id, module_id)
        elif project_id:
            granularity = RESET_PROJECT
            removed = await StatusRepo.delete_project(self.db, user_id, project_id)
        else:
            raise MalformedInputError("a project, module or block id is required")

        project_status = await self._refresh_link_status(user_id, project_id)
        logger.info(
            "progress reset user_id=%s project_id=%s module_id=%s block_id=%s granularity=%s removed=%s",
            user_id, project_id, module_id, block_id, granularity, removed,
        )
        return ResetResult(granularity, removed, project_status)

    # ── forms ────────────────────────────────────────────────────────────────

    async def _form_block(self, user_id: int, project_id: int, module_id: int, block_id: int) -> FormContent:
        _, block = await self._flow_block(user_id, project_id, module_id, block_id)
        if block.block_type != BLOCK_TYPE_FORM:
            raise MalformedInputError("block is not a form")
        return get_handler(block.block_type).fetch(block)

    async def submit_form(
        self,
        user_id: int,
        project_id: int,
        module_id: int,
        block_id: int,
        answers: list[FormAnswer],
        now: Optional[datetime] = None,
    ) -> SubmissionRecord:
        form = await self._form_block(user_id, project_id, module_id, block_id)
        if not form.allow_resubmit and await SubmissionRepo.list_for_block(
            self.db, user_id, project_id, module_id, block_id
        ):
            raise MalformedInputError("this form has already been submitted", code="already_submitted")

        responses = []
        for question in form.ordered_questions():
            if question.question_type == QUESTION_EXPLANATION:
                continue
            options = {o.id: o for o in question.options}
            for answer in answers:
                if answer.question_id != question.id:
                    continue
                if question.question_type in FREE_TEXT_QUESTIONS:
                    responses.append(FormSubmissionResponse(
                        question_id=question.id,
                        option_id=0,
                        text_response=answer.text_response,
                        is_correct=CORRECT_PENDING if form.form_type == FORM_TYPE_QUIZ else CORRECT_NA,
                    ))
                elif answer.option_id in options:
                    option = options[answer.option_id]
                    responses.append(FormSubmissionResponse(
                        question_id=question.id,
                        option_id=option.id,
                        text_response=option.option_text,
                        is_correct=option.is_correct,
                    ))
                else:
                    continue
                if question.question_type != QUESTION_MULTIPLE:
                    break

        submission = FormSubmission(
            user_id=user_id,
            project_id=project_id,
            module_id=module_id,
            block_id=block_id,
            results=grade_submission(form, responses),
            submitted_at=now or datetime.now(timezone.utc),
        )
        submission = await SubmissionRepo.create(self.db, submission, responses)
        await StatusRepo.upsert(self.db, user_id, project_id, module_id, block_id, STATUS_COMPLETED, now=now)
        await self._refresh_link_status(user_id, project_id)
        logger.info(
            "form submitted user_id=%s project_id=%s block_id=%s submission_id=%s results=%s",
            user_id, project_id, block_id, submission.id, submission.results,
        )
        return SubmissionRecord(submission, responses)

    async def list_submissions(
        self, user_id: int, project_id: int, module_id: int, block_id: int
    ) -> list[SubmissionRecord]:
        await self._form_block(user_id, project_id, module_id, block_id)
        submissions = await SubmissionRepo.list_for_block(self.db, user_id, project_id, module_id, block_id)
        responses = await SubmissionRepo.list_responses(self.db, [s.id for s in submissions])
        return [
            SubmissionRecord(s, [r for r in responses if r.submission_id == s.id])
            for s in submissions
        ]

    async def delete_submissions(
        self, user_id: int, project_id: int, module_id: int, block_id: int, now: Optional[datetime] = None
    ) -> int:
        """Remove every submission for the block and put the block back to not_started."""
        await self._form_block(user_id, project_id, module_id, block_id)
        removed = await SubmissionRepo.delete_for_block(self.db, user_id, project_id, module_id, block_id)
        await StatusRepo.upsert(self.db, user_id, project_id, module_id, block_id, STATUS_NOT_STARTED, now=now)
        await self._refresh_link_status(user_id, project_id)
        return removed

    # ── membership ───────────────────────────────────────────────────────────

    async def leave_project(self, user_id: int, project_id: int, clear_progress: bool = False) -> None:
        """Participant self-unlink; only while the project is active."""
        project = await self.require_participation(user_id, project_id)
        if project.status != PROJECT_STATUS_ACTIVE:
            raise NotFoundError("project not found")
        await ProjectRepo.unlink_user(self.db, user_id, project_id)
        if clear_progress:
            await StatusRepo.delete_project(self.db, user_id, project_id)
            await SubmissionRepo.delete_for_project(self.db, user_id, project_id)
        logger.info("participant left project user_id=%s project_id=%s cleared=%s", user_id, project_id, clear_progress)

    async def remove_participant(self, user_id: int, project_id: int) -> RemovalResult:
        """
        Remove an identity from a project completely: consent responses, the
        project link, block statuses, form submissions and project notes.

        Every step is a DELETE scoped to (user, project) and commits on its own,
        so a failure part-way leaves a state that re-running finishes cleanly.
        """
        try:
            consents = await ConsentRepo.delete_responses_for_participant(self.db, user_id, project_id)
            await ProjectRepo.unlink_user(self.db, user_id, project_id)
            statuses = await StatusRepo.delete_project(self.db, user_id, project_id)
            submissions = await SubmissionRepo.delete_for_project(self.db, user_id, project_id)
            notes = await NoteRepo.delete_for_project(self.db, user_id, project_id)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception("participant removal incomplete user_id=%s project_id=%s", user_id, project_id)
            raise PersistenceError("participant removal did not complete; retry to finish") from exc

        logger.info(
            "participant removed user_id=%s project_id=%s consents=%s statuses=%s submissions=%s notes=%s",
            user_id, project_id, consents, statuses, submissions, notes,
        )
        return RemovalResult(consents, statuses, submissions, notes)
