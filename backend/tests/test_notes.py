"""Note service tests: type downgrade, flow-reference scrubbing, ownership."""
import pytest

from studyflow.repositories.block_repo import BlockRepo
from studyflow.repositories.module_repo import ModuleRepo
from studyflow.repositories.project_repo import ProjectRepo
from studyflow.repositories.user_repo import UserRepo
from studyflow.services.errors import MalformedInputError, NotFoundError
from studyflow.services.note_service import NoteService


async def _seed(db):
    project = await ProjectRepo.create(db, "Notes Study", status="active")
    user = await UserRepo.create(db, email="writer@studyflow.org", password_hash=None)
    await ProjectRepo.link_user(db, user.id, project.id)
    module = await ModuleRepo.create(db, "M", status="active")
    block = await BlockRepo.create(db, "B", "text", {"text": "b"})
    await ModuleRepo.link_to_project(db, project.id, module.id)
    await ModuleRepo.link_block(db, module.id, block.id)
    return project, user, module, block


async def test_project_note_keeps_valid_references(db):
    project, user, module, block = await _seed(db)
    note = await NoteService(db).create(
        user.id, "Thoughts", "text", note_type="project",
        project_id=project.id, module_id=module.id, block_id=block.id,
    )
    assert (note.note_type, note.project_id, note.module_id, note.block_id) == (
        "project", project.id, module.id, block.id,
    )


async def test_project_note_from_outsider_becomes_journal(db):
    project, _, module, _ = await _seed(db)
    outsider = await UserRepo.create(db, email="outsider@studyflow.org", password_hash=None)
    note = await NoteService(db).create(
        outsider.id, "Hmm", "text", note_type="project", project_id=project.id, module_id=module.id
    )
    assert (note.note_type, note.project_id, note.module_id, note.block_id) == ("journal", 0, 0, 0)


async def test_references_outside_flow_are_dropped(db):
    project, user, module, _ = await _seed(db)
    loose = await BlockRepo.create(db, "Loose", "text", {"text": "x"})
    other_module = await ModuleRepo.create(db, "Elsewhere", status="active")
    service = NoteService(db)

    note = await service.create(
        user.id, "t", "b", note_type="project", project_id=project.id, module_id=module.id, block_id=loose.id
    )
    assert (note.module_id, note.block_id) == (module.id, 0)

    note = await service.create(
        user.id, "t", "b", note_type="project", project_id=project.id, module_id=other_module.id, block_id=loose.id
    )
    assert (note.module_id, note.block_id) == (0, 0)


async def test_invalid_note_rejected(db):
    _, user, _, _ = await _seed(db)
    service = NoteService(db)
    with pytest.raises(MalformedInputError):
        await service.create(user.id, "t", "b", note_type="diary")
    with pytest.raises(MalformedInputError):
        await service.create(user.id, "t", "b", visibility="public")
    with pytest.raises(MalformedInputError):
        await service.create(user.id, "  ", "b")


async def test_notes_are_private_to_author(db):
    project, user, _, _ = await _seed(db)
    other = await UserRepo.create(db, email="nosy@studyflow.org", password_hash=None)
    service = NoteService(db)
    note = await service.create(user.id, "Mine", "secret")

    assert (await service.get(user.id, note.id)).body == "secret"
    with pytest.raises(NotFoundError):
        await service.get(other.id, note.id)
    with pytest.raises(NotFoundError):
        await service.delete(other.id, note.id)

    await service.delete(user.id, note.id)
    assert await service.list_notes(user.id) == []


async def test_list_filters_by_project(db):
    project, user, _, _ = await _seed(db)
    service = NoteService(db)
    await service.create(user.id, "journal", "j")
    await service.create(user.id, "project", "p", note_type="project", project_id=project.id)
    assert [n.title for n in await service.list_notes(user.id, project.id)] == ["project"]
    assert len(await service.list_notes(user.id)) == 2
