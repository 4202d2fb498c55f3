import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.models.note import (
    NOTE_TYPE_JOURNAL,
    NOTE_TYPE_PROJECT,
    NOTE_VISIBILITY_ADMINS,
    NOTE_VISIBILITY_PRIVATE,
    Note,
)
from studyflow.repositories.flow_repo import FlowRepo
from studyflow.repositories.note_repo import NoteRepo
from studyflow.repositories.project_repo import ProjectRepo
from studyflow.services.errors import MalformedInputError, NotFoundError

logger = logging.getLogger(__name__)

_NOTE_TYPES = frozenset({NOTE_TYPE_JOURNAL, NOTE_TYPE_PROJECT})
_VISIBILITIES = frozenset({NOTE_VISIBILITY_PRIVATE, NOTE_VISIBILITY_ADMINS})


class NoteService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: int,
        title: str,
        body: str,
        *,
        note_type: str = NOTE_TYPE_JOURNAL,
        project_id: int = 0,
        module_id: int = 0,
        block_id: int = 0,
        visibility: str = NOTE_VISIBILITY_PRIVATE,
    ) -> Note:
        """
        A project note whose author is not in that project becomes a journal
        note; module and block references outside the project's flow are dropped.
        """
        if note_type not in _NOTE_TYPES:
            raise MalformedInputError(f"invalid note type: {note_type!r}")
        if visibility not in _VISIBILITIES:
            raise MalformedInputError(f"invalid note visibility: {visibility!r}")
        if not title.strip() or not body.strip():
            raise MalformedInputError("title and body are required")

        if note_type == NOTE_TYPE_PROJECT and not (
            project_id and await ProjectRepo.is_linked(self.db, user_id, project_id)
        ):
            note_type = NOTE_TYPE_JOURNAL
        if note_type == NOTE_TYPE_JOURNAL:
            project_id = module_id = block_id = 0

        if module_id and not await FlowRepo.module_in_flow(self.db, project_id, module_id):
            module_id = block_id = 0
        if block_id and await FlowRepo.get_flow_block(self.db, project_id, module_id, block_id) is None:
            block_id = 0

        note = Note(
            user_id=user_id,
            note_type=note_type,
            project_id=project_id,
            module_id=module_id,
            block_id=block_id,
            visibility=visibility,
            title=title.strip(),
            body=body,
        )
        return await NoteRepo.create(self.db, note)

    async def list_notes(self, user_id: int, project_id: Optional[int] = None) -> list[Note]:
        return await NoteRepo.list_for_user(self.db, user_id, project_id)

    async def get(self, user_id: int, note_id: int) -> Note:
        note = await NoteRepo.get(self.db, user_id, note_id)
        if note is None:
            raise NotFoundError("note not found")
        return note

    async def delete(self, user_id: int, note_id: int) -> None:
        if not await NoteRepo.delete(self.db, user_id, note_id):
            raise NotFoundError("note not found")
