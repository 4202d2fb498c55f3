"""
Flow Assembler tests.

The flow is (project module order, module block order) with insertion order
breaking ties, restricted to active modules, and never writes status rows.
"""
from datetime import datetime

from studyflow.repositories.block_repo import BlockRepo
from studyflow.repositories.module_repo import ModuleRepo
from studyflow.repositories.project_repo import ProjectRepo
from studyflow.repositories.status_repo import StatusRepo
from studyflow.repositories.user_repo import UserRepo
from studyflow.services.flow_assembler import FlowAssembler, next_step

NOW = datetime(2026, 3, 1, 9, 30, 0)


async def _text(db, name):
    return await BlockRepo.create(db, name, "text", {"text": name})


async def _seed(db):
    project = await ProjectRepo.create(db, "Flow Study", status="active")
    user = await UserRepo.create(db, email="walker@studyflow.org", password_hash=None)
    await ProjectRepo.link_user(db, user.id, project.id)

    intro = await ModuleRepo.create(db, "Intro", status="active")
    week = await ModuleRepo.create(db, "Week 1", status="active")
    draft = await ModuleRepo.create(db, "Draft", status="pending")

    # Linked out of order on purpose.
    await ModuleRepo.link_to_project(db, project.id, week.id, flow_order=2)
    await ModuleRepo.link_to_project(db, project.id, draft.id, flow_order=0)
    await ModuleRepo.link_to_project(db, project.id, intro.id, flow_order=1)

    blocks = {}
    for name in ("welcome", "consent-recap", "tie-a", "tie-b", "hidden"):
        blocks[name] = await _text(db, name)
    await ModuleRepo.link_block(db, intro.id, blocks["consent-recap"].id, flow_order=2)
    await ModuleRepo.link_block(db, intro.id, blocks["welcome"].id, flow_order=1)
    await ModuleRepo.link_block(db, week.id, blocks["tie-a"].id, flow_order=5)
    await ModuleRepo.link_block(db, week.id, blocks["tie-b"].id, flow_order=5)
    await ModuleRepo.link_block(db, draft.id, blocks["hidden"].id, flow_order=0)
    return project, user, intro, week, blocks


async def test_flow_order_and_inactive_modules_hidden(db):
    project, user, intro, week, _ = await _seed(db)
    flow = await FlowAssembler(db).get_flow(user.id, project.id, now=NOW)
    assert [s.block_name for s in flow] == ["welcome", "consent-recap", "tie-a", "tie-b"]
    assert [s.module_id for s in flow] == [intro.id, intro.id, week.id, week.id]


async def test_missing_status_rows_reported_not_started_without_writing(db):
    project, user, *_ = await _seed(db)
    flow = await FlowAssembler(db).get_flow(user.id, project.id, now=NOW)
    assert {s.status for s in flow} == {"not_started"}
    assert {s.last_updated_on for s in flow} == {NOW}
    assert await StatusRepo.list_for_project(db, user.id, project.id) == []


async def test_flow_reflects_stored_status(db):
    project, user, intro, _, blocks = await _seed(db)
    stamp = datetime(2026, 2, 1, 8, 0, 0)
    await StatusRepo.upsert(db, user.id, project.id, intro.id, blocks["welcome"].id, "completed", now=stamp)

    flow = await FlowAssembler(db).get_flow(user.id, project.id, now=NOW)
    assert (flow[0].status, flow[0].last_updated_on) == ("completed", stamp)
    assert next_step(flow).block_name == "consent-recap"


async def test_status_is_per_participant(db):
    project, user, intro, _, blocks = await _seed(db)
    other = await UserRepo.create(db, email="other@studyflow.org", password_hash=None)
    await StatusRepo.upsert(db, other.id, project.id, intro.id, blocks["welcome"].id, "completed")
    flow = await FlowAssembler(db).get_flow(user.id, project.id, now=NOW)
    assert flow[0].status == "not_started"


async def test_relinking_moves_module(db):
    project, user, intro, week, _ = await _seed(db)
    await ModuleRepo.link_to_project(db, project.id, week.id, flow_order=0)
    flow = await FlowAssembler(db).get_flow(user.id, project.id, now=NOW)
    assert [s.module_id for s in flow] == [week.id, week.id, intro.id, intro.id]


async def test_unlinked_block_disappears(db):
    project, user, intro, _, blocks = await _seed(db)
    await ModuleRepo.unlink_block(db, intro.id, blocks["welcome"].id)
    flow = await FlowAssembler(db).get_flow(user.id, project.id, now=NOW)
    assert "welcome" not in [s.block_name for s in flow]


async def test_empty_flow(db):
    project = await ProjectRepo.create(db, "Nothing Yet", status="active")
    user = await UserRepo.create(db, email="early@studyflow.org", password_hash=None)
    flow = await FlowAssembler(db).get_flow(user.id, project.id)
    assert flow == []
    assert next_step(flow) is None
