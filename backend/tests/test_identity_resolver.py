"""
Identity Resolver tests.

Covers the three plans (reuse caller, mint a code identity, create a full
account), field stripping in code mode, required fields in full mode, and
participant-code collision handling.
"""
import pytest

from studyflow.repositories.project_repo import ProjectRepo
from studyflow.repositories.user_repo import UserRepo
from studyflow.services.auth_service import verify_password
from studyflow.services.errors import MalformedInputError, PersistenceError
from studyflow.services.identity_service import (
    ACTION_CREATE_FULL,
    ACTION_MINT_CODE,
    ACTION_USE_CALLER,
    IdentityResolver,
    SubmittedIdentity,
)

FULL = SubmittedIdentity(
    first_name="Ada",
    last_name="Lovelace",
    email="Ada@StudyFlow.org",
    password="correct-horse",
    date_of_birth="1990-12-10",
    title="Dr",
    pronouns="she/her",
)


async def _seed(db, visibility="email"):
    project = await ProjectRepo.create(db, "Memory Study", status="active", participant_visibility=visibility)
    caller = await UserRepo.create(
        db, email="caller@studyflow.org", password_hash=None, first_name="Cal", date_of_birth="1980-01-01"
    )
    return project, caller


# ── plan ──────────────────────────────────────────────────────────────────────

async def test_plan_uses_caller_outside_code_mode(db, token_issuer):
    project, caller = await _seed(db)
    plan = IdentityResolver(db, token_issuer).plan(caller, project, None)
    assert plan.action == ACTION_USE_CALLER
    assert plan.existing_user_id == caller.id
    assert plan.date_of_birth == "1980-01-01"


async def test_plan_mints_code_identity_even_for_signed_in_caller(db, token_issuer):
    project, caller = await _seed(db, visibility="code")
    plan = IdentityResolver(db, token_issuer).plan(caller, project, None)
    assert plan.action == ACTION_MINT_CODE
    assert plan.existing_user_id is None
    # Falls back to the caller's date of birth for the age rule.
    assert plan.date_of_birth == "1980-01-01"
    assert plan.submitted_date_of_birth is None


async def test_plan_reused_caller_is_judged_on_stored_date_of_birth(db, token_issuer):
    project, caller = await _seed(db)
    plan = IdentityResolver(db, token_issuer).plan(caller, project, SubmittedIdentity(date_of_birth="1950-01-01"))
    assert plan.action == ACTION_USE_CALLER
    assert plan.date_of_birth == "1980-01-01"


async def test_plan_code_mode_strips_identifying_fields(db, token_issuer):
    project, _ = await _seed(db, visibility="code")
    plan = IdentityResolver(db, token_issuer).plan(None, project, FULL)
    assert plan.identity == SubmittedIdentity(password=FULL.password, date_of_birth=FULL.date_of_birth)


async def test_plan_full_mode_requires_fields(db, token_issuer):
    project, _ = await _seed(db, visibility="full")
    resolver = IdentityResolver(db, token_issuer)
    with pytest.raises(MalformedInputError):
        resolver.plan(None, project, None)
    with pytest.raises(MalformedInputError, match="password"):
        resolver.plan(None, project, SubmittedIdentity(first_name="A", last_name="B", email="a@b.org", date_of_birth="1990-01-01"))
    with pytest.raises(MalformedInputError):
        resolver.plan(None, project, SubmittedIdentity(
            first_name="A", last_name="B", email="a@b.org", password="pw-12345", date_of_birth="not a date"
        ))


async def test_plan_full_mode_normalises_email(db, token_issuer):
    project, _ = await _seed(db, visibility="full")
    plan = IdentityResolver(db, token_issuer).plan(None, project, FULL)
    assert plan.action == ACTION_CREATE_FULL
    assert plan.identity.email == "ada@studyflow.org"


# ── materialize ───────────────────────────────────────────────────────────────

async def test_mint_code_identity_has_no_personal_fields(db, token_issuer):
    project, caller = await _seed(db, visibility="code")
    resolver = IdentityResolver(db, token_issuer)
    resolved = await resolver.resolve_or_create(caller, project, FULL)

    user = resolved.user
    assert resolved.created
    assert user.id != caller.id
    assert user.participant_code.startswith(str(project.id))
    assert user.email is None
    assert (user.first_name, user.last_name, user.title, user.pronouns) == ("", "", "", "")
    assert user.date_of_birth == FULL.date_of_birth
    assert verify_password(FULL.password, user.password_hash)

    snapshot = token_issuer.decode(resolved.token.access_token)
    assert snapshot.user_id == user.id
    assert snapshot.participant_code == user.participant_code


async def test_mint_without_password_leaves_hash_empty(db, token_issuer):
    project, _ = await _seed(db, visibility="code")
    resolved = await IdentityResolver(db, token_issuer).resolve_or_create(None, project, None)
    assert resolved.user.password_hash is None
    assert resolved.token is not None


async def test_mint_for_signed_in_caller_does_not_copy_their_date_of_birth(db, token_issuer):
    project, caller = await _seed(db, visibility="code")
    resolved = await IdentityResolver(db, token_issuer).resolve_or_create(caller, project, None)
    assert resolved.user.id != caller.id
    assert resolved.user.date_of_birth is None


async def test_create_full_account(db, token_issuer):
    project, _ = await _seed(db, visibility="full")
    resolved = await IdentityResolver(db, token_issuer).resolve_or_create(None, project, FULL)
    user = resolved.user
    assert user.email == "ada@studyflow.org"
    assert user.participant_code is None
    assert (user.first_name, user.title) == ("Ada", "Dr")


async def test_create_full_account_duplicate_email(db, token_issuer):
    project, _ = await _seed(db, visibility="full")
    resolver = IdentityResolver(db, token_issuer)
    await resolver.resolve_or_create(None, project, FULL)
    with pytest.raises(PersistenceError) as info:
        await resolver.resolve_or_create(None, project, FULL)
    assert info.value.code == "duplicate_account"


async def test_use_caller_creates_nothing(db, token_issuer):
    project, caller = await _seed(db)
    resolved = await IdentityResolver(db, token_issuer).resolve_or_create(caller, project, None)
    assert resolved.user.id == caller.id
    assert not resolved.created
    assert resolved.token is None


# ── code collisions ───────────────────────────────────────────────────────────

async def test_code_collision_draws_again(db, token_issuer):
    project, _ = await _seed(db, visibility="code")
    await UserRepo.create(db, participant_code="taken", password_hash=None)
    codes = iter(["taken", "taken", "fresh"])
    resolver = IdentityResolver(db, token_issuer, code_attempts=5, code_generator=lambda _: next(codes))
    resolved = await resolver.resolve_or_create(None, project, None)
    assert resolved.user.participant_code == "fresh"


async def test_code_collision_gives_up_after_attempts(db, token_issuer):
    project, _ = await _seed(db, visibility="code")
    await UserRepo.create(db, participant_code="taken", password_hash=None)
    resolver = IdentityResolver(db, token_issuer, code_attempts=3, code_generator=lambda _: "taken")
    with pytest.raises(PersistenceError) as info:
        await resolver.resolve_or_create(None, project, None)
    assert info.value.code == "participant_code_exhausted"
