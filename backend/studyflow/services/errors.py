"""
Service-layer error taxonomy.

Services raise these; routers translate them to HTTP responses through
``studyflow.routers.errors.http_error``. Nothing here knows about HTTP.
"""
from enum import Enum
from typing import Optional


class DenialReason(str, Enum):
    PROJECT_UNAVAILABLE = "project_unavailable"
    SIGNUP_CLOSED = "signup_closed"
    CODE_MISMATCH = "code_mismatch"
    CAPACITY_REACHED = "capacity_reached"
    AGE_NOT_MET = "age_not_met"
    PARTICIPANTS_NOT_ZERO = "participants_not_zero"


class StudyflowError(Exception):
    """Base class; ``code`` is a stable machine-readable identifier."""
    code = "error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(StudyflowError):
    """Missing, or present but not visible to the caller. The two are indistinguishable on purpose."""
    code = "not_found"


class PolicyDeniedError(StudyflowError):
    code = "policy_denied"

    def __init__(self, reason: DenialReason, message: Optional[str] = None):
        super().__init__(message or reason.value, code=reason.value)
        self.reason = reason


class MalformedInputError(StudyflowError):
    code = "malformed_input"


class WrongEndpointError(MalformedInputError):
    """Form blocks are completed by submitting the form, not by a status write."""
    code = "wrong_endpoint"


class PersistenceError(StudyflowError):
    code = "persistence_failure"
