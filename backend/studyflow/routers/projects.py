"""
Public project routes: discovery, the consent form, and consent submission.

Submitting consent is the enrollment entry point. Authentication is optional:
anonymous callers supply identity details in the body, and the response
carries a session token for any identity created along the way.
"""
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.database import get_db
from studyflow.dependencies import get_consent_ledger, get_optional_user
from studyflow.models.consent import ConsentForm, ConsentResponse
from studyflow.models.project import PROJECT_STATUS_ACTIVE, Project
from studyflow.models.user import User
from studyflow.repositories.project_repo import ProjectRepo
from studyflow.routers.errors import http_error
from studyflow.services.consent_ledger import ConsentLedger, ConsentSubmission
from studyflow.services.errors import NotFoundError, StudyflowError
from studyflow.services.identity_service import SubmittedIdentity

router = APIRouter(prefix="/projects", tags=["projects"])


class ProjectResponse(BaseModel):
    id: int
    name: str
    description: str
    signup_status: str
    participant_visibility: str
    max_participants: int
    participant_minimum_age: int
    participant_count: int

    @classmethod
    def build(cls, p: Project, participant_count: int):
        return cls(
            id=p.id,
            name=p.name,
            description=p.description,
            signup_status=p.signup_status,
            participant_visibility=p.participant_visibility,
            max_participants=p.max_participants,
            participant_minimum_age=p.participant_minimum_age,
            participant_count=participant_count,
        )


class ConsentFormResponse(BaseModel):
    project_id: int
    content_in_markdown: str
    contact_information_display: str
    institution_information_display: str

    @classmethod
    def from_orm(cls, f: ConsentForm):
        return cls(
            project_id=f.project_id,
            content_in_markdown=f.content_in_markdown,
            contact_information_display=f.contact_information_display,
            institution_information_display=f.institution_information_display,
        )


class ConsentRecordResponse(BaseModel):
    id: int
    project_id: int
    participant_id: int
    consent_status: str
    date_consented: datetime
    participant_comments: str
    researcher_comments: str
    participant_provided_first_name: str
    participant_provided_last_name: str
    participant_provided_contact_information: str

    @classmethod
    def from_orm(cls, r: ConsentResponse):
        return cls(
            id=r.id,
            project_id=r.project_id,
            participant_id=r.participant_id,
            consent_status=r.consent_status,
            date_consented=r.date_consented,
            participant_comments=r.participant_comments,
            researcher_comments=r.researcher_comments,
            participant_provided_first_name=r.participant_provided_first_name,
            participant_provided_last_name=r.participant_provided_last_name,
            participant_provided_contact_information=r.participant_provided_contact_information,
        )


class IdentityRequest(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: Optional[EmailStr] = None
    password: str = ""
    date_of_birth: str = ""
    title: str = ""
    pronouns: str = ""

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ConsentRequest(BaseModel):
    consent_status: str
    code: str = ""
    participant_comments: str = ""
    participant_provided_first_name: str = ""
    participant_provided_last_name: str = ""
    participant_provided_contact_information: str = ""
    identity: Optional[IdentityRequest] = None


class ConsentSubmittedResponse(BaseModel):
    response: ConsentRecordResponse
    user_id: int
    participant_code: Optional[str]
    # Present only when a new identity was created for this consent.
    access_token: Optional[str] = None
    expires_at: Optional[datetime] = None


async def _active_project(db: AsyncSession, project_id: int) -> Project:
    project = await ProjectRepo.get_by_id(db, project_id)
    if project is None or project.status != PROJECT_STATUS_ACTIVE:
        raise http_error(NotFoundError("project not found"))
    return project


@router.get("", response_model=list[ProjectResponse])
async def list_projects(db: Annotated[AsyncSession, Depends(get_db)]):
    result = []
    for p in await ProjectRepo.list_active(db):
        result.append(ProjectResponse.build(p, await ProjectRepo.count_participants(db, p.id)))
    return result


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: int, db: Annotated[AsyncSession, Depends(get_db)]):
    project = await _active_project(db, project_id)
    return ProjectResponse.build(project, await ProjectRepo.count_participants(db, project.id))


@router.get("/{project_id}/consent", response_model=ConsentFormResponse)
async def get_consent_form(
    project_id: int,
    ledger: Annotated[ConsentLedger, Depends(get_consent_ledger)],
):
    try:
        form = await ledger.get_form(project_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return ConsentFormResponse.from_orm(form)


@router.post("/{project_id}/consent", response_model=ConsentSubmittedResponse, status_code=status.HTTP_201_CREATED)
async def submit_consent(
    project_id: int,
    body: ConsentRequest,
    caller: Annotated[Optional[User], Depends(get_optional_user)],
    ledger: Annotated[ConsentLedger, Depends(get_consent_ledger)],
):
    submission = ConsentSubmission(
        consent_status=body.consent_status,
        provided_code=body.code,
        participant_comments=body.participant_comments,
        participant_provided_first_name=body.participant_provided_first_name,
        participant_provided_last_name=body.participant_provided_last_name,
        participant_provided_contact_information=body.participant_provided_contact_information,
        identity=SubmittedIdentity(**body.identity.model_dump(exclude_none=True)) if body.identity else None,
    )
    try:
        outcome = await ledger.record_consent(caller, project_id, submission)
    except StudyflowError as exc:
        raise http_error(exc)
    return ConsentSubmittedResponse(
        response=ConsentRecordResponse.from_orm(outcome.response),
        user_id=outcome.user.id,
        participant_code=outcome.user.participant_code,
        access_token=outcome.token.access_token if outcome.token else None,
        expires_at=outcome.token.expires_at if outcome.token else None,
    )
