from datetime import date
from typing import Any

from fastapi import HTTPException, status

from ..domain.errors import (
    CapacityExceededError,
    DomainError,
    InvalidCapacityError,
    InvalidTransitionError,
    NoCapacityConfiguredError,
    NotFoundError,
    StoreUnavailableError,
)
from ..utils.audit_log import emit_audit_log
from ..utils.time import parse_iso_date

_STATUS_BY_ERROR: dict[type[DomainError], int] = {
    InvalidCapacityError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NoCapacityConfiguredError: status.HTTP_409_CONFLICT,
    CapacityExceededError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StoreUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def http_error(exc: DomainError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def parse_date_param(value: str, *, name: str = "date") -> date:
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{name} must be an ISO-8601 date (YYYY-MM-DD)",
        ) from exc


def audit(**kwargs: Any) -> None:
    """Emit an audit record, turning a logging failure into a 500."""
    try:
        emit_audit_log(**kwargs)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc
