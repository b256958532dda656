from fastapi import HTTPException

from timesheet.core.exceptions import (
    CapacityExceeded,
    DomainError,
    NotFound,
    PermissionDenied,
    SetupIncomplete,
    SyncFailure,
    ValidationError,
)

_STATUS = (
    (ValidationError, 400),
    (CapacityExceeded, 400),
    (NotFound, 404),
    (PermissionDenied, 403),
    (SetupIncomplete, 500),
    (SyncFailure, 500),
)


def to_http_exception(exc: DomainError) -> HTTPException:
    status_code = 400
    for error_type, code in _STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break

    return HTTPException(
        status_code=status_code,
        detail=str(exc),
        headers={"X-Error-Kind": exc.kind},
    )
