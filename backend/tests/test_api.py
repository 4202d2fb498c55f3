"""
HTTP-level tests through create_app and httpx's ASGITransport.

Rows are seeded straight through the repositories on the ``db`` session; the
app reads the same SQLite file. Tokens are issued with the app's secret.
"""
from types import SimpleNamespace

from studyflow.repositories.block_repo import BlockRepo
from studyflow.repositories.consent_repo import ConsentRepo
from studyflow.repositories.module_repo import ModuleRepo
from studyflow.repositories.project_repo import ProjectRepo
from studyflow.repositories.user_repo import UserRepo

FORM = {
    "form_type": "quiz",
    "questions": [{"id": 1, "question_type": "single", "question": "Ready?", "options": [
        {"id": 1, "option_text": "Yes", "is_correct": "yes"},
        {"id": 2, "option_text": "No", "is_correct": "no"},
    ]}],
}


def _auth(token_issuer, user) -> dict:
    return {"Authorization": f"Bearer {token_issuer.issue(user).access_token}"}


async def _seed(db, **project_fields):
    project_fields.setdefault("status", "active")
    project_fields.setdefault("participant_visibility", "email")
    project = await ProjectRepo.create(db, "API Study", complete_message="Done!", **project_fields)
    await ConsentRepo.save_form(db, project.id, "# Please consent", "irb@studyflow.org", "Studyflow")
    module = await ModuleRepo.create(db, "Module", status="active")
    text = await BlockRepo.create(db, "Read me", "text", {"text": "Hello"})
    form = await BlockRepo.create(db, "Check", "form", FORM)
    await ModuleRepo.link_to_project(db, project.id, module.id)
    await ModuleRepo.link_block(db, module.id, text.id, flow_order=1)
    await ModuleRepo.link_block(db, module.id, form.id, flow_order=2)
    participant = await UserRepo.create(db, email="part@studyflow.org", password_hash=None, date_of_birth="1990-01-01")
    admin = await UserRepo.create(db, email="admin@studyflow.org", password_hash=None, system_role="admin")
    return SimpleNamespace(project=project, module=module, text=text, form=form, participant=participant, admin=admin)


async def _enroll(client, token_issuer, s) -> int:
    resp = await client.post(
        f"/projects/{s.project.id}/consent",
        json={"consent_status": "accepted", "participant_provided_first_name": "Part"},
        headers=_auth(token_issuer, s.participant),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["response"]["id"]


def _block_url(s, block, suffix=""):
    return f"/participant/projects/{s.project.id}/modules/{s.module.id}/blocks/{block.id}{suffix}"


# ── basics ────────────────────────────────────────────────────────────────────

async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


async def test_register_login_me(client):
    body = {"email": "New@StudyFlow.org", "password": "long-password", "first_name": "New", "last_name": "User"}
    resp = await client.post("/auth/register", json=body)
    assert resp.status_code == 201

    dup = await client.post("/auth/register", json=body)
    assert dup.status_code == 409

    login = await client.post("/auth/login", json={"identifier": "new@studyflow.org", "password": "long-password"})
    assert login.status_code == 200
    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {login.json()['access_token']}"})
    assert me.json()["email"] == "new@studyflow.org"

    bad = await client.post("/auth/login", json={"identifier": "new@studyflow.org", "password": "nope-nope"})
    assert bad.status_code == 401


async def test_protected_routes_need_a_valid_token(client):
    assert (await client.get("/participant/projects")).status_code in (401, 403)
    resp = await client.get("/participant/projects", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401


# ── public project routes ─────────────────────────────────────────────────────

async def test_only_active_projects_are_visible(client, db):
    s = await _seed(db)
    hidden = await ProjectRepo.create(db, "Hidden", status="pending")

    listed = await client.get("/projects")
    assert [p["id"] for p in listed.json()] == [s.project.id]
    assert (await client.get(f"/projects/{hidden.id}")).status_code == 404
    assert (await client.get(f"/projects/{hidden.id}/consent")).status_code == 404

    form = await client.get(f"/projects/{s.project.id}/consent")
    assert form.json()["content_in_markdown"] == "# Please consent"


async def test_anonymous_code_enrollment_returns_working_session(client, db):
    s = await _seed(db, participant_visibility="code")
    resp = await client.post(
        f"/projects/{s.project.id}/consent",
        json={"consent_status": "accepted", "identity": {"first_name": "Stripped", "password": "code-pass-1"}},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["participant_code"].startswith(str(s.project.id))
    assert body["response"]["participant_id"] == body["user_id"]

    mine = await client.get("/participant/projects", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert [p["id"] for p in mine.json()] == [s.project.id]

    login = await client.post("/auth/login", json={"identifier": body["participant_code"], "password": "code-pass-1"})
    assert login.status_code == 200


async def test_consent_denials_carry_reason(client, db, token_issuer):
    s = await _seed(db, signup_status="with_code", short_code="ABC123", max_participants=1)
    headers = _auth(token_issuer, s.participant)

    wrong = await client.post(f"/projects/{s.project.id}/consent", json={"consent_status": "accepted", "code": "abc123"}, headers=headers)
    assert wrong.status_code == 403
    assert wrong.json()["detail"]["code"] == "code_mismatch"

    ok = await client.post(f"/projects/{s.project.id}/consent", json={"consent_status": "accepted", "code": "ABC123"}, headers=headers)
    assert ok.status_code == 201

    late = await client.post(
        f"/projects/{s.project.id}/consent",
        json={"consent_status": "accepted", "code": "ABC123"},
        headers=_auth(token_issuer, s.admin),
    )
    assert late.status_code == 403
    assert late.json()["detail"]["code"] == "capacity_reached"


async def test_full_mode_missing_fields_is_malformed(client, db):
    s = await _seed(db, participant_visibility="full")
    resp = await client.post(
        f"/projects/{s.project.id}/consent",
        json={"consent_status": "accepted", "identity": {"first_name": "Only"}},
    )
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "malformed_input"


async def test_full_mode_rejects_invalid_email(client, db):
    s = await _seed(db, participant_visibility="full")
    identity = {
        "first_name": "Ada", "last_name": "Lovelace", "email": "not-an-email",
        "password": "long-enough", "date_of_birth": "1990-05-05",
    }
    resp = await client.post(f"/projects/{s.project.id}/consent", json={"consent_status": "accepted", "identity": identity})
    assert resp.status_code == 422

    identity["email"] = "Ada@StudyFlow.org"
    ok = await client.post(f"/projects/{s.project.id}/consent", json={"consent_status": "accepted", "identity": identity})
    assert ok.status_code == 201, ok.text
    assert (await UserRepo.get_by_email(db, "ada@studyflow.org")).id == ok.json()["user_id"]


# ── participant progress ──────────────────────────────────────────────────────

async def test_block_read_status_write_and_completion(client, db, token_issuer):
    s = await _seed(db)
    await _enroll(client, token_issuer, s)
    headers = _auth(token_issuer, s.participant)

    opened = await client.get(_block_url(s, s.text), headers=headers)
    assert opened.status_code == 200
    assert (opened.json()["status"], opened.json()["content"]) == ("started", {"text": "Hello"})

    flow = await client.get(f"/participant/projects/{s.project.id}/flow", headers=headers)
    assert [step["status"] for step in flow.json()] == ["started", "not_started"]

    done = await client.put(_block_url(s, s.text, "/status/completed"), headers=headers)
    assert done.json()["project_status"] == "started"

    invalid = await client.put(_block_url(s, s.text, "/status/finished"), headers=headers)
    assert invalid.status_code == 422

    wrong = await client.put(_block_url(s, s.form, "/status/completed"), headers=headers)
    assert wrong.status_code == 400
    assert wrong.json()["detail"]["code"] == "wrong_endpoint"

    submitted = await client.post(
        _block_url(s, s.form, "/submissions"), json={"responses": [{"question_id": 1, "option_id": 1}]}, headers=headers
    )
    assert submitted.status_code == 201
    assert submitted.json()["results"] == "passed"

    detail = await client.get(f"/participant/projects/{s.project.id}", headers=headers)
    assert detail.json()["participant_status"] == "completed"
    assert detail.json()["complete_message"] == "Done!"
    assert detail.json()["next_step"] is None


async def test_reset_paths(client, db, token_issuer):
    s = await _seed(db)
    await _enroll(client, token_issuer, s)
    headers = _auth(token_issuer, s.participant)
    await client.put(_block_url(s, s.text, "/status/completed"), headers=headers)

    block = await client.delete(_block_url(s, s.text, "/status"), headers=headers)
    assert block.json() == {"reset": "block", "removed": 1, "project_status": "not_started"}

    await client.put(_block_url(s, s.text, "/status/started"), headers=headers)
    module = await client.delete(f"/participant/projects/{s.project.id}/modules/{s.module.id}/status", headers=headers)
    assert module.json()["reset"] == "module"
    assert module.json()["removed"] == 1

    project = await client.delete(f"/participant/projects/{s.project.id}/status", headers=headers)
    assert project.json()["reset"] == "project"


async def test_submissions_list_and_delete(client, db, token_issuer):
    s = await _seed(db)
    await _enroll(client, token_issuer, s)
    headers = _auth(token_issuer, s.participant)
    url = _block_url(s, s.form, "/submissions")

    await client.post(url, json={"responses": [{"question_id": 1, "option_id": 2}]}, headers=headers)
    listed = await client.get(url, headers=headers)
    assert [sub["results"] for sub in listed.json()] == ["failed"]
    assert listed.json()[0]["responses"][0]["text_response"] == "No"

    deleted = await client.delete(url, headers=headers)
    assert deleted.json() == {"deleted": 1}
    assert (await client.get(url, headers=headers)).json() == []


async def test_unlinked_participant_sees_not_found(client, db, token_issuer):
    s = await _seed(db)
    headers = _auth(token_issuer, s.participant)
    assert (await client.get(f"/participant/projects/{s.project.id}", headers=headers)).status_code == 404
    assert (await client.get(_block_url(s, s.text), headers=headers)).status_code == 404


async def test_leave_project(client, db, token_issuer):
    s = await _seed(db)
    await _enroll(client, token_issuer, s)
    headers = _auth(token_issuer, s.participant)
    resp = await client.delete(f"/participant/projects/{s.project.id}?remove=true", headers=headers)
    assert resp.status_code == 200
    assert (await client.get("/participant/projects", headers=headers)).json() == []


# ── consent responses & admin ─────────────────────────────────────────────────

async def test_consent_response_read_and_withdraw(client, db, token_issuer):
    s = await _seed(db)
    response_id = await _enroll(client, token_issuer, s)
    headers = _auth(token_issuer, s.participant)
    url = f"/participant/projects/{s.project.id}/consent/{response_id}"

    read = await client.get(url, headers=headers)
    assert read.json()["participant_provided_first_name"] == "Part"

    stranger = await UserRepo.create(db, email="stranger@studyflow.org", password_hash=None)
    assert (await client.get(url, headers=_auth(token_issuer, stranger))).status_code == 404

    withdrawn = await client.delete(url, headers=headers)
    assert withdrawn.status_code == 200
    assert not await ProjectRepo.is_linked(db, s.participant.id, s.project.id)
    assert (await client.get(url, headers=headers)).status_code == 404


async def test_admin_consent_form_lock_and_override(client, db, token_issuer):
    s = await _seed(db)
    admin = _auth(token_issuer, s.admin)
    url = f"/admin/projects/{s.project.id}/consent"

    assert (await client.put(url, json={"content_in_markdown": "v2"}, headers=_auth(token_issuer, s.participant))).status_code == 403
    assert (await client.put(url, json={"content_in_markdown": "v2"}, headers=admin)).status_code == 200

    await _enroll(client, token_issuer, s)
    locked = await client.put(url, json={"content_in_markdown": "v3"}, headers=admin)
    assert locked.status_code == 403
    assert locked.json()["detail"]["code"] == "participants_not_zero"
    assert (await client.delete(url, headers=admin)).status_code == 403

    forced = await client.put(f"{url}?override=true", json={"content_in_markdown": "v3"}, headers=admin)
    assert forced.json()["content_in_markdown"] == "v3"

    responses = await client.get(f"{url}/responses", headers=admin)
    assert [r["participant_id"] for r in responses.json()] == [s.participant.id]


async def test_admin_link_bypasses_gate_and_remove_is_complete(client, db, token_issuer):
    s = await _seed(db, signup_status="closed")
    admin = _auth(token_issuer, s.admin)
    url = f"/admin/projects/{s.project.id}/participants/{s.participant.id}"

    linked = await client.post(url, headers=admin)
    assert linked.json() == {"linked": True, "participant_count": 1}

    headers = _auth(token_issuer, s.participant)
    await client.put(_block_url(s, s.text, "/status/completed"), headers=headers)

    removed = await client.delete(url, headers=admin)
    assert removed.json()["statuses"] == 1
    assert not await ProjectRepo.is_linked(db, s.participant.id, s.project.id)
    assert (await client.post(f"/admin/projects/999/participants/{s.participant.id}", headers=admin)).status_code == 404


# ── notes ─────────────────────────────────────────────────────────────────────

async def test_notes_crud(client, db, token_issuer):
    s = await _seed(db)
    headers = _auth(token_issuer, s.participant)

    created = await client.post("/notes", json={"title": "Day 1", "body": "Started"}, headers=headers)
    assert created.status_code == 201
    note_id = created.json()["id"]

    assert [n["id"] for n in (await client.get("/notes", headers=headers)).json()] == [note_id]
    assert (await client.get(f"/notes/{note_id}", headers=headers)).json()["body"] == "Started"
    assert (await client.get(f"/notes/{note_id}", headers=_auth(token_issuer, s.admin))).status_code == 404

    assert (await client.delete(f"/notes/{note_id}", headers=headers)).status_code == 200
    assert (await client.get(f"/notes/{note_id}", headers=headers)).status_code == 404
