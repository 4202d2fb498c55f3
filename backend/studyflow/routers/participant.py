"""
Participant routes: the caller's projects, flow, block progress, form
submissions and own consent responses. Every route is scoped to the
authenticated identity; projects the caller is not linked to are not found.
"""
from datetime import datetime
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.database import get_db
from studyflow.dependencies import (
    get_consent_ledger,
    get_current_user,
    get_flow_assembler,
    get_progress_tracker,
)
from studyflow.models.block import STATUS_COMPLETED
from studyflow.models.form_submission import FormSubmissionResponse
from studyflow.models.user import User
from studyflow.repositories.project_repo import ProjectRepo
from studyflow.routers.errors import http_error
from studyflow.routers.projects import ConsentRecordResponse
from studyflow.services.consent_ledger import ConsentLedger
from studyflow.services.errors import MalformedInputError, StudyflowError
from studyflow.services.flow_assembler import FlowAssembler, FlowStep, next_step
from studyflow.services.progress_tracker import (
    FormAnswer,
    ProgressTracker,
    ResetResult,
    SubmissionRecord,
    module_rollups,
    rollup_status,
)

router = APIRouter(prefix="/participant", tags=["participant"])


class ParticipantProjectItem(BaseModel):
    id: int
    name: str
    description: str
    status: str
    participant_status: str


class FlowStepResponse(BaseModel):
    module_id: int
    module_name: str
    block_id: int
    block_name: str
    block_type: str
    status: str
    last_updated_on: datetime

    @classmethod
    def from_step(cls, s: FlowStep):
        return cls(
            module_id=s.module_id,
            module_name=s.module_name,
            block_id=s.block_id,
            block_name=s.block_name,
            block_type=s.block_type,
            status=s.status,
            last_updated_on=s.last_updated_on,
        )


class ParticipantProjectDetail(BaseModel):
    id: int
    name: str
    description: str
    participant_status: str
    module_statuses: dict[int, str]
    next_step: Optional[FlowStepResponse]
    complete_message: Optional[str]


class BlockResponse(BaseModel):
    project_id: int
    module_id: int
    block_id: int
    name: str
    summary: str
    block_type: str
    allow_reset: bool
    content: dict[str, Any]
    status: str
    last_updated_on: datetime


class StatusUpdateResponse(BaseModel):
    project_id: int
    module_id: int
    block_id: int
    status: str
    last_updated_on: datetime
    project_status: str
    complete_message: Optional[str]


class ResetResponse(BaseModel):
    reset: str
    removed: int
    project_status: str

    @classmethod
    def from_result(cls, r: ResetResult):
        return cls(reset=r.granularity, removed=r.removed, project_status=r.project_status)


class AnswerRequest(BaseModel):
    question_id: int
    option_id: int = 0
    text_response: str = ""


class SubmissionRequest(BaseModel):
    responses: list[AnswerRequest]


class AnswerResponse(BaseModel):
    question_id: int
    option_id: int
    text_response: Optional[str]
    is_correct: str

    @classmethod
    def from_orm(cls, r: FormSubmissionResponse):
        return cls(
            question_id=r.question_id,
            option_id=r.option_id,
            text_response=r.text_response,
            is_correct=r.is_correct,
        )


class SubmissionResponse(BaseModel):
    id: int
    block_id: int
    results: str
    submitted_at: datetime
    responses: list[AnswerResponse]

    @classmethod
    def from_record(cls, record: SubmissionRecord):
        s = record.submission
        return cls(
            id=s.id,
            block_id=s.block_id,
            results=s.results,
            submitted_at=s.submitted_at,
            responses=[AnswerResponse.from_orm(r) for r in record.responses],
        )


# ── projects & flow ──────────────────────────────────────────────────────────

@router.get("/projects", response_model=list[ParticipantProjectItem])
async def list_my_projects(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    result = []
    for p in await ProjectRepo.list_for_participant(db, current_user.id):
        link = await ProjectRepo.get_link(db, current_user.id, p.id)
        result.append(ParticipantProjectItem(
            id=p.id,
            name=p.name,
            description=p.description,
            status=p.status,
            participant_status=link.status,
        ))
    return result


@router.get("/projects/{project_id}", response_model=ParticipantProjectDetail)
async def get_my_project(
    project_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
    flows: Annotated[FlowAssembler, Depends(get_flow_assembler)],
):
    try:
        project = await tracker.require_participation(current_user.id, project_id)
    except StudyflowError as exc:
        raise http_error(exc)
    flow = await flows.get_flow(current_user.id, project_id)
    overall = rollup_status(s.status for s in flow)
    upcoming = next_step(flow)
    return ParticipantProjectDetail(
        id=project.id,
        name=project.name,
        description=project.description,
        participant_status=overall,
        module_statuses=module_rollups(flow),
        next_step=FlowStepResponse.from_step(upcoming) if upcoming else None,
        complete_message=project.complete_message if overall == STATUS_COMPLETED else None,
    )


@router.get("/projects/{project_id}/flow", response_model=list[FlowStepResponse])
async def get_my_flow(
    project_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
    flows: Annotated[FlowAssembler, Depends(get_flow_assembler)],
):
    try:
        await tracker.require_participation(current_user.id, project_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return [FlowStepResponse.from_step(s) for s in await flows.get_flow(current_user.id, project_id)]


@router.delete("/projects/{project_id}")
async def leave_project(
    project_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
    remove: bool = False,
):
    try:
        await tracker.leave_project(current_user.id, project_id, clear_progress=remove)
    except StudyflowError as exc:
        raise http_error(exc)
    return {"removed": True}


# ── blocks ───────────────────────────────────────────────────────────────────

@router.get("/projects/{project_id}/modules/{module_id}/blocks/{block_id}", response_model=BlockResponse)
async def get_block(
    project_id: int,
    module_id: int,
    block_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
):
    try:
        opened = await tracker.open_block(current_user.id, project_id, module_id, block_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return BlockResponse(
        project_id=project_id,
        module_id=opened.module.id,
        block_id=opened.block.id,
        name=opened.block.name,
        summary=opened.block.summary,
        block_type=opened.block.block_type,
        allow_reset=opened.block.allow_reset,
        content=opened.content.model_dump(),
        status=opened.status.status,
        last_updated_on=opened.status.last_updated_on,
    )


@router.put(
    "/projects/{project_id}/modules/{module_id}/blocks/{block_id}/status/{block_status}",
    response_model=StatusUpdateResponse,
)
async def set_block_status(
    project_id: int,
    module_id: int,
    block_id: int,
    block_status: str,
    current_user: Annotated[User, Depends(get_current_user)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
):
    try:
        update = await tracker.set_status(current_user.id, project_id, module_id, block_id, block_status)
    except StudyflowError as exc:
        raise http_error(exc)
    return StatusUpdateResponse(
        project_id=project_id,
        module_id=module_id,
        block_id=block_id,
        status=update.status.status,
        last_updated_on=update.status.last_updated_on,
        project_status=update.project_status,
        complete_message=update.complete_message,
    )


async def _reset(tracker: ProgressTracker, user: User, project_id: int, module_id: int = 0, block_id: int = 0):
    try:
        result = await tracker.reset(user.id, project_id, module_id=module_id, block_id=block_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return ResetResponse.from_result(result)


@router.delete("/projects/{project_id}/modules/{module_id}/blocks/{block_id}/status", response_model=ResetResponse)
async def reset_block(
    project_id: int,
    module_id: int,
    block_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
):
    return await _reset(tracker, current_user, project_id, module_id, block_id)


@router.delete("/projects/{project_id}/modules/{module_id}/status", response_model=ResetResponse)
async def reset_module(
    project_id: int,
    module_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
):
    return await _reset(tracker, current_user, project_id, module_id)


@router.delete("/projects/{project_id}/status", response_model=ResetResponse)
async def reset_project(
    project_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
):
    return await _reset(tracker, current_user, project_id)


# ── form submissions ─────────────────────────────────────────────────────────

@router.post(
    "/projects/{project_id}/modules/{module_id}/blocks/{block_id}/submissions",
    response_model=SubmissionResponse,
    status_code=201,
)
async def submit_form(
    project_id: int,
    module_id: int,
    block_id: int,
    body: SubmissionRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
):
    answers = [FormAnswer(a.question_id, a.option_id, a.text_response) for a in body.responses]
    try:
        record = await tracker.submit_form(current_user.id, project_id, module_id, block_id, answers)
    except StudyflowError as exc:
        raise http_error(exc)
    return SubmissionResponse.from_record(record)


@router.get(
    "/projects/{project_id}/modules/{module_id}/blocks/{block_id}/submissions",
    response_model=list[SubmissionResponse],
)
async def list_submissions(
    project_id: int,
    module_id: int,
    block_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
):
    try:
        records = await tracker.list_submissions(current_user.id, project_id, module_id, block_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return [SubmissionResponse.from_record(r) for r in records]


@router.delete("/projects/{project_id}/modules/{module_id}/blocks/{block_id}/submissions")
async def delete_submissions(
    project_id: int,
    module_id: int,
    block_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
):
    try:
        removed = await tracker.delete_submissions(current_user.id, project_id, module_id, block_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return {"deleted": removed}


# ── consent ──────────────────────────────────────────────────────────────────

@router.get("/projects/{project_id}/consent/{response_id}", response_model=ConsentRecordResponse)
async def get_my_consent(
    project_id: int,
    response_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    ledger: Annotated[ConsentLedger, Depends(get_consent_ledger)],
):
    try:
        response = await ledger.get_response(current_user, project_id, response_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return ConsentRecordResponse.from_orm(response)


@router.delete("/projects/{project_id}/consent/{response_id}")
async def withdraw_consent(
    project_id: int,
    response_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    ledger: Annotated[ConsentLedger, Depends(get_consent_ledger)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
):
    """Withdrawing consent removes the participant from the project completely."""
    try:
        response = await ledger.get_response(current_user, project_id, response_id)
        if response.participant_id == 0:
            raise MalformedInputError("anonymous consent responses are not linked to a participant")
        await tracker.remove_participant(response.participant_id, project_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return {"withdrawn": True}
