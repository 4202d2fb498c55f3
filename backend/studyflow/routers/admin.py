from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.database import get_db
from studyflow.dependencies import get_consent_ledger, get_progress_tracker, require_admin
from studyflow.models.user import User
from studyflow.repositories.project_repo import ProjectRepo
from studyflow.repositories.user_repo import UserRepo
from studyflow.routers.errors import http_error
from studyflow.routers.projects import ConsentFormResponse, ConsentRecordResponse
from studyflow.services.consent_ledger import ConsentLedger
from studyflow.services.errors import NotFoundError, StudyflowError
from studyflow.services.progress_tracker import ProgressTracker

router = APIRouter(prefix="/admin", tags=["admin"])


class SaveConsentFormRequest(BaseModel):
    content_in_markdown: str
    contact_information_display: str = ""
    institution_information_display: str = ""


class RemovalResponse(BaseModel):
    removed: bool
    consent_responses: int
    statuses: int
    submissions: int
    notes: int


@router.put("/projects/{project_id}/consent", response_model=ConsentFormResponse)
async def save_consent_form(
    project_id: int,
    body: SaveConsentFormRequest,
    _admin: Annotated[User, Depends(require_admin)],
    ledger: Annotated[ConsentLedger, Depends(get_consent_ledger)],
    override: bool = False,
):
    try:
        form = await ledger.save_form(
            project_id,
            body.content_in_markdown,
            body.contact_information_display,
            body.institution_information_display,
            override=override,
        )
    except StudyflowError as exc:
        raise http_error(exc)
    return ConsentFormResponse.from_orm(form)


@router.delete("/projects/{project_id}/consent")
async def delete_consent_form(
    project_id: int,
    _admin: Annotated[User, Depends(require_admin)],
    ledger: Annotated[ConsentLedger, Depends(get_consent_ledger)],
    override: bool = False,
):
    try:
        await ledger.delete_form(project_id, override=override)
    except StudyflowError as exc:
        raise http_error(exc)
    return {"deleted": True}


@router.get("/projects/{project_id}/consent/responses", response_model=list[ConsentRecordResponse])
async def list_consent_responses(
    project_id: int,
    _admin: Annotated[User, Depends(require_admin)],
    ledger: Annotated[ConsentLedger, Depends(get_consent_ledger)],
):
    try:
        responses = await ledger.list_responses(project_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return [ConsentRecordResponse.from_orm(r) for r in responses]


@router.post("/projects/{project_id}/participants/{user_id}")
async def link_participant(
    project_id: int,
    user_id: int,
    _admin: Annotated[User, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Administrative link. Skips the enrollment rules entirely."""
    if await ProjectRepo.get_by_id(db, project_id) is None:
        raise http_error(NotFoundError("project not found"))
    if await UserRepo.get_by_id(db, user_id) is None:
        raise http_error(NotFoundError("user not found"))
    await ProjectRepo.link_user(db, user_id, project_id)
    return {"linked": True, "participant_count": await ProjectRepo.count_participants(db, project_id)}


@router.delete("/projects/{project_id}/participants/{user_id}", response_model=RemovalResponse)
async def remove_participant(
    project_id: int,
    user_id: int,
    _admin: Annotated[User, Depends(require_admin)],
    tracker: Annotated[ProgressTracker, Depends(get_progress_tracker)],
):
    try:
        result = await tracker.remove_participant(user_id, project_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return RemovalResponse(
        removed=True,
        consent_responses=result.consent_responses,
        statuses=result.statuses,
        submissions=result.submissions,
        notes=result.notes,
    )
