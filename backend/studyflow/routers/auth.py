from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from studyflow.database import get_db
from studyflow.dependencies import get_current_user, get_token_issuer
from studyflow.models.user import User
from studyflow.routers.errors import http_error
from studyflow.services.auth_service import AuthService, TokenIssuer
from studyflow.services.errors import StudyflowError
from studyflow.utils.datetimes import parse_datetime

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    first_name: str
    last_name: str
    date_of_birth: Optional[str] = None

    @field_validator("password")
    @classmethod
    def password_min_length(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v

    @field_validator("first_name", "last_name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()

    @field_validator("date_of_birth")
    @classmethod
    def date_parses(cls, v: Optional[str]) -> Optional[str]:
        if v and parse_datetime(v) is None:
            raise ValueError("Date of birth could not be parsed")
        return v


class LoginRequest(BaseModel):
    # Email address or participant code.
    identifier: str
    password: str


class TokenResponse(BaseModel):
    user_id: int
    access_token: str
    expires_at: datetime
    token_type: str = "bearer"


class MeResponse(BaseModel):
    id: int
    email: Optional[str]
    participant_code: Optional[str]
    first_name: str
    last_name: str
    system_role: str

    @classmethod
    def from_orm(cls, u: User):
        return cls(
            id=u.id,
            email=u.email,
            participant_code=u.participant_code,
            first_name=u.first_name,
            last_name=u.last_name,
            system_role=u.system_role,
        )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
):
    try:
        user = await AuthService.register(
            db,
            email=body.email.lower(),
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            date_of_birth=body.date_of_birth,
        )
    except StudyflowError as exc:
        raise http_error(exc)
    token = issuer.issue(user)
    return TokenResponse(user_id=user.id, access_token=token.access_token, expires_at=token.expires_at)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
):
    identifier = body.identifier.strip()
    if "@" in identifier:
        identifier = identifier.lower()
    user = await AuthService.login(db, identifier=identifier, password=body.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = issuer.issue(user)
    return TokenResponse(user_id=user.id, access_token=token.access_token, expires_at=token.expires_at)


@router.get("/me", response_model=MeResponse)
async def me(current_user: Annotated[User, Depends(get_current_user)]):
    return MeResponse.from_orm(current_user)
