"""
Identity Resolver.

Works out which identity a consent submission is recorded against, in two
steps so the enrollment check can run in between without anything written:

  plan(caller, project, submitted)   pure; validates the payload and decides
                                     between reusing the caller, minting an
                                     anonymous code identity, or creating a
                                     full account
  materialize(plan)                  performs the decided creation and issues
                                     a session for any new identity

A project in 'code' visibility always gets a freshly minted code identity,
even when the caller is already signed in with a full account. The caller's
own session is untouched; only the consent linkage uses the new identity.
"""
import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.models.project import VISIBILITY_CODE, Project
from studyflow.models.user import User
from studyflow.repositories.user_repo import UserRepo
from studyflow.services.auth_service import IssuedToken, TokenIssuer, hash_password
from studyflow.services.errors import MalformedInputError, PersistenceError
from studyflow.utils.datetimes import parse_datetime
from studyflow.utils.participant_codes import generate_participant_code

logger = logging.getLogger(__name__)

ACTION_USE_CALLER = "use_caller"
ACTION_MINT_CODE = "mint_code"
ACTION_CREATE_FULL = "create_full"


@dataclass(frozen=True)
class SubmittedIdentity:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    password: str = ""
    date_of_birth: str = ""
    title: str = ""
    pronouns: str = ""


@dataclass(frozen=True)
class IdentityPlan:
    action: str
    project_id: int
    caller: Optional[User] = None
    identity: Optional[SubmittedIdentity] = None

    @property
    def existing_user_id(self) -> Optional[int]:
        return self.caller.id if self.action == ACTION_USE_CALLER else None

    @property
    def submitted_date_of_birth(self) -> Optional[str]:
        if self.identity is not None and self.identity.date_of_birth:
            return self.identity.date_of_birth
        return None

    @property
    def date_of_birth(self) -> Optional[str]:
        """
        The date of birth the age rule is evaluated against. A reused caller
        is always judged on the stored record, never on what was typed in.
        """
        if self.action == ACTION_USE_CALLER:
            return self.caller.date_of_birth
        submitted = self.submitted_date_of_birth
        if submitted is None and self.caller is not None:
            return self.caller.date_of_birth
        return submitted


@dataclass(frozen=True)
class ResolvedIdentity:
    user: User
    created: bool
    # Only set for identities created by materialize().
    token: Optional[IssuedToken] = None


def _strip_to_code_fields(identity: Optional[SubmittedIdentity]) -> SubmittedIdentity:
    if identity is None:
        return SubmittedIdentity()
    return SubmittedIdentity(password=identity.password, date_of_birth=identity.date_of_birth)


def _check_full_identity(identity: Optional[SubmittedIdentity]) -> SubmittedIdentity:
    if identity is None:
        raise MalformedInputError("identity details are required")
    identity = replace(
        identity,
        first_name=identity.first_name.strip(),
        last_name=identity.last_name.strip(),
        email=identity.email.strip().lower(),
    )
    missing = [
        name
        for name in ("first_name", "last_name", "email", "password", "date_of_birth")
        if not getattr(identity, name)
    ]
    if missing:
        raise MalformedInputError(f"missing required fields: {', '.join(missing)}")
    if parse_datetime(identity.date_of_birth) is None:
        raise MalformedInputError("date_of_birth could not be parsed")
    return identity


class IdentityResolver:
    def __init__(
        self,
        db: AsyncSession,
        token_issuer: TokenIssuer,
        code_attempts: int = 5,
        code_generator: Callable[[int], str] = generate_participant_code,
    ):
        self.db = db
        self.token_issuer = token_issuer
        self.code_attempts = max(1, code_attempts)
        self.code_generator = code_generator

    def plan(
        self, caller: Optional[User], project: Project, submitted: Optional[SubmittedIdentity]
    ) -> IdentityPlan:
        if project.participant_visibility == VISIBILITY_CODE:
            return IdentityPlan(ACTION_MINT_CODE, project.id, caller, _strip_to_code_fields(submitted))
        if caller is not None:
            return IdentityPlan(ACTION_USE_CALLER, project.id, caller, submitted)
        return IdentityPlan(ACTION_CREATE_FULL, project.id, None, _check_full_identity(submitted))

    async def materialize(self, plan: IdentityPlan) -> ResolvedIdentity:
        if plan.action == ACTION_USE_CALLER:
            return ResolvedIdentity(plan.caller, created=False)
        if plan.action == ACTION_MINT_CODE:
            user = await self._mint_code_identity(plan)
        else:
            user = await self._create_full_identity(plan.identity)
        return ResolvedIdentity(user, created=True, token=self.token_issuer.issue(user))

    async def resolve_or_create(
        self, caller: Optional[User], project: Project, submitted: Optional[SubmittedIdentity]
    ) -> ResolvedIdentity:
        return await self.materialize(self.plan(caller, project, submitted))

    # ── creation ─────────────────────────────────────────────────────────────

    async def _free_participant_code(self, project_id: int) -> str:
        for attempt in range(1, self.code_attempts + 1):
            code = self.code_generator(project_id)
            if not await UserRepo.participant_code_exists(self.db, code):
                return code
            logger.warning("participant code collision project_id=%s attempt=%s", project_id, attempt)
        raise PersistenceError(
            f"could not allocate a participant code after {self.code_attempts} attempts",
            code="participant_code_exhausted",
        )

    async def _mint_code_identity(self, plan: IdentityPlan) -> User:
        code = await self._free_participant_code(plan.project_id)
        password = plan.identity.password if plan.identity else ""
        try:
            user = await UserRepo.create(
                self.db,
                participant_code=code,
                password_hash=hash_password(password) if password else None,
                # Only what was submitted; the caller's account data stays off the anonymous identity.
                date_of_birth=plan.submitted_date_of_birth,
            )
        except IntegrityError as exc:
            await self.db.rollback()
            logger.exception("participant code insert failed project_id=%s", plan.project_id)
            raise PersistenceError("could not create participant identity") from exc
        logger.info("minted code identity user_id=%s project_id=%s", user.id, plan.project_id)
        return user

    async def _create_full_identity(self, identity: SubmittedIdentity) -> User:
        if await UserRepo.get_by_email(self.db, identity.email) is not None:
            raise PersistenceError("account already exists", code="duplicate_account")
        try:
            user = await UserRepo.create(
                self.db,
                email=identity.email,
                password_hash=hash_password(identity.password),
                first_name=identity.first_name,
                last_name=identity.last_name,
                title=identity.title,
                pronouns=identity.pronouns,
                date_of_birth=identity.date_of_birth,
            )
        except IntegrityError as exc:
            await self.db.rollback()
            raise PersistenceError("account already exists", code="duplicate_account") from exc
        logger.info("created participant account user_id=%s", user.id)
        return user
