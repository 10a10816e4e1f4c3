"""Input parsing helpers shared by the services."""

from typing import Any, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_model(model_cls: Type[ModelT], data: Any) -> ModelT:
    """
    Validate raw input against a pydantic model.

    Raises ValidationError carrying the first failing field and the
    constraint pydantic reported for it.
    """
    if isinstance(data, model_cls):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    if data is None:
        raise ValidationError("Request body is required")

    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        constraint = first["msg"]
        message = f"Invalid {field}: {constraint}" if field else constraint
        raise ValidationError(message, field=field, constraint=constraint)
