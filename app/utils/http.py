"""Map service results onto HTTP responses."""

from fastapi import HTTPException, status

from app.models.result import ServiceResult

ERROR_STATUS = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "authorization_error": status.HTTP_403_FORBIDDEN,
    "capacity_error": status.HTTP_409_CONFLICT,
    "state_error": status.HTTP_409_CONFLICT,
    "store_error": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def unwrap(result: ServiceResult):
    """Return result.data or raise the HTTPException matching its error code."""
    if result.success:
        return result.data

    error = result.error
    raise HTTPException(
        status_code=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.model_dump(),
    )
