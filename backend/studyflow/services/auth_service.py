"""
Password hashing, bearer-token issuing and account login.

Tokens carry a small snapshot of the identity (id, role, participant code).
``SessionSnapshot`` is what decoding yields; it can be stale for as long as the
token is valid, so nothing makes policy decisions from it. The current user is
always re-read from the store (see dependencies.get_current_user).
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.config import Settings
from studyflow.models.user import User
from studyflow.repositories.user_repo import UserRepo
from studyflow.services.errors import PersistenceError

logger = logging.getLogger(__name__)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    # Code identities minted without a password cannot log in.
    if not hashed:
        return False
    return _pwd_context.verify(plain, hashed)


@dataclass(frozen=True)
class SessionSnapshot:
    user_id: int
    role: str
    participant_code: Optional[str]
    expires_at: datetime


@dataclass(frozen=True)
class IssuedToken:
    access_token: str
    expires_at: datetime


class TokenIssuer:
    def __init__(self, settings: Settings):
        self._secret = settings.secret_key
        self._lifetime = timedelta(hours=settings.access_token_expire_hours)

    def issue(self, user: User, now: Optional[datetime] = None) -> IssuedToken:
        expires_at = (now or datetime.now(timezone.utc)) + self._lifetime
        payload = {
            "sub": str(user.id),
            "role": user.system_role,
            "code": user.participant_code,
            "exp": expires_at,
        }
        return IssuedToken(jwt.encode(payload, self._secret, algorithm=_ALGORITHM), expires_at)

    def decode(self, token: str) -> Optional[SessionSnapshot]:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
            sub = payload.get("sub")
            if sub is None:
                return None
            return SessionSnapshot(
                user_id=int(sub),
                role=payload.get("role", ""),
                participant_code=payload.get("code"),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (JWTError, KeyError, ValueError):
            return None


class AuthService:
    @staticmethod
    async def register(
        db: AsyncSession,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        date_of_birth: Optional[str] = None,
    ) -> User:
        """Create a full participant account. Duplicate email → PersistenceError."""
        try:
            user = await UserRepo.create(
                db,
                email=email,
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
                date_of_birth=date_of_birth,
            )
        except IntegrityError as exc:
            await db.rollback()
            raise PersistenceError("account already exists", code="duplicate_account") from exc
        logger.info("registered account user_id=%s", user.id)
        return user

    @staticmethod
    async def login(db: AsyncSession, identifier: str, password: str) -> Optional[User]:
        """Authenticate by email or participant code."""
        user = await UserRepo.get_by_email(db, identifier)
        if user is None:
            user = await UserRepo.get_by_participant_code(db, identifier)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user
