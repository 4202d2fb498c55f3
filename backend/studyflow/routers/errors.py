import logging

from fastapi import HTTPException, status

from studyflow.services.errors import (
    MalformedInputError,
    NotFoundError,
    PersistenceError,
    PolicyDeniedError,
    StudyflowError,
    WrongEndpointError,
)

logger = logging.getLogger(__name__)


def http_error(exc: StudyflowError) -> HTTPException:
    """Translate a service error into the HTTPException a router raises."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"code": exc.code, "message": exc.message})
    if isinstance(exc, PolicyDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"code": exc.code, "message": exc.message})
    if isinstance(exc, WrongEndpointError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"code": exc.code, "message": exc.message})
    if isinstance(exc, MalformedInputError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail={"code": exc.code, "message": exc.message}
        )
    if isinstance(exc, PersistenceError) and exc.code == "duplicate_account":
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail={"code": exc.code, "message": exc.message})
    logger.error("request failed: %s (%s)", exc.message, exc.code)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": PersistenceError.code, "message": "The request could not be completed"},
    )
