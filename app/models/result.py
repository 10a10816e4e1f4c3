"""Result Envelope - Success/failure wrapper returned by every public service operation."""

import functools
import logging
from typing import Any, Optional

from pydantic import BaseModel, Field
from pymongo.errors import PyMongoError

from app.exceptions import UniRideError

logger = logging.getLogger(__name__)


class ErrorDetail(BaseModel):
    """Typed failure reported to the caller."""
    code: str = Field(..., description="validation_error, not_found, ...")
    message: str
    field: Optional[str] = None
    constraint: Optional[str] = None


class ServiceResult(BaseModel):
    """
    Outcome of a service operation.

    Exactly one of data/error is meaningful, selected by success.
    """
    success: bool
    data: Any = None
    error: Optional[ErrorDetail] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: UniRideError) -> "ServiceResult":
        return cls(
            success=False,
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                field=exc.field,
                constraint=exc.constraint,
            ),
        )

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None


def service_operation(func):
    """
    Wrap an async service method so it returns a ServiceResult.

    UniRideError and store failures become failure results; anything else
    propagates to the caller.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> ServiceResult:
        try:
            data = await func(*args, **kwargs)
        except UniRideError as e:
            logger.warning(f"{func.__qualname__} rejected: [{e.code}] {e.message}")
            return ServiceResult.fail(e)
        except PyMongoError as e:
            logger.error(f"{func.__qualname__} store failure: {e}", exc_info=True)
            return ServiceResult(
                success=False,
                error=ErrorDetail(code="store_error", message="Data store unavailable"),
            )
        return ServiceResult.ok(data)

    return wrapper
