from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from studyflow.dependencies import get_current_user, get_note_service
from studyflow.models.note import NOTE_TYPE_JOURNAL, NOTE_VISIBILITY_PRIVATE, Note
from studyflow.models.user import User
from studyflow.routers.errors import http_error
from studyflow.services.errors import StudyflowError
from studyflow.services.note_service import NoteService

router = APIRouter(prefix="/notes", tags=["notes"])


class CreateNoteRequest(BaseModel):
    title: str
    body: str
    note_type: str = NOTE_TYPE_JOURNAL
    project_id: int = 0
    module_id: int = 0
    block_id: int = 0
    visibility: str = NOTE_VISIBILITY_PRIVATE


class NoteResponse(BaseModel):
    id: int
    note_type: str
    project_id: int
    module_id: int
    block_id: int
    visibility: str
    title: str
    body: str
    created_on: datetime

    @classmethod
    def from_orm(cls, n: Note):
        return cls(
            id=n.id,
            note_type=n.note_type,
            project_id=n.project_id,
            module_id=n.module_id,
            block_id=n.block_id,
            visibility=n.visibility,
            title=n.title,
            body=n.body,
            created_on=n.created_on,
        )


@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    body: CreateNoteRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    notes: Annotated[NoteService, Depends(get_note_service)],
):
    try:
        note = await notes.create(
            current_user.id,
            body.title,
            body.body,
            note_type=body.note_type,
            project_id=body.project_id,
            module_id=body.module_id,
            block_id=body.block_id,
            visibility=body.visibility,
        )
    except StudyflowError as exc:
        raise http_error(exc)
    return NoteResponse.from_orm(note)


@router.get("", response_model=list[NoteResponse])
async def list_notes(
    current_user: Annotated[User, Depends(get_current_user)],
    notes: Annotated[NoteService, Depends(get_note_service)],
    project_id: Optional[int] = None,
):
    return [NoteResponse.from_orm(n) for n in await notes.list_notes(current_user.id, project_id)]


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    note_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    notes: Annotated[NoteService, Depends(get_note_service)],
):
    try:
        note = await notes.get(current_user.id, note_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return NoteResponse.from_orm(note)


@router.delete("/{note_id}")
async def delete_note(
    note_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    notes: Annotated[NoteService, Depends(get_note_service)],
):
    try:
        await notes.delete(current_user.id, note_id)
    except StudyflowError as exc:
        raise http_error(exc)
    return {"deleted": True}
