from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.config import Settings
from studyflow.database import get_db
from studyflow.models.user import User
from studyflow.repositories.user_repo import UserRepo
from studyflow.services.auth_service import TokenIssuer
from studyflow.services.consent_ledger import ConsentLedger
from studyflow.services.flow_assembler import FlowAssembler
from studyflow.services.identity_service import IdentityResolver
from studyflow.services.note_service import NoteService
from studyflow.services.progress_tracker import ProgressTracker

_bearer = HTTPBearer()
_optional_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


async def _load_user(token: str, issuer: TokenIssuer, db: AsyncSession) -> User:
    # The token only says who; role and status always come from the store.
    snapshot = issuer.decode(token)
    user = await UserRepo.get_by_id(db, snapshot.user_id) if snapshot is not None else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return user


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Single auth enforcement point. Injected into every protected route."""
    return await _load_user(credentials.credentials, issuer, db)


async def get_optional_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(_optional_bearer)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Optional[User]:
    """None for anonymous callers; a presented but invalid token is still a 401."""
    if credentials is None:
        return None
    return await _load_user(credentials.credentials, issuer, db)


async def require_admin(user: Annotated[User, Depends(get_current_user)]) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


# ── services ─────────────────────────────────────────────────────────────────

def get_identity_resolver(
    db: Annotated[AsyncSession, Depends(get_db)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> IdentityResolver:
    return IdentityResolver(db, issuer, code_attempts=settings.participant_code_attempts)


def get_consent_ledger(
    db: Annotated[AsyncSession, Depends(get_db)],
    resolver: Annotated[IdentityResolver, Depends(get_identity_resolver)],
) -> ConsentLedger:
    return ConsentLedger(db, resolver)


def get_progress_tracker(db: Annotated[AsyncSession, Depends(get_db)]) -> ProgressTracker:
    return ProgressTracker(db)


def get_flow_assembler(db: Annotated[AsyncSession, Depends(get_db)]) -> FlowAssembler:
    return FlowAssembler(db)


def get_note_service(db: Annotated[AsyncSession, Depends(get_db)]) -> NoteService:
    return NoteService(db)
