"""Input-shape validation returning tagged results instead of raising."""

from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from src.models.result import Err, ErrorKind, Ok, Result, ServiceError

M = TypeVar("M", bound=BaseModel)

FORM_ERRORS_KEY = "formErrors"


def flatten_errors(exc: ValidationError) -> dict[str, list[str]]:
    """Group pydantic error messages by top-level field.

    Model-level errors (empty ``loc``) are collected under ``formErrors``.
    """
    field_errors: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        key = str(loc[0]) if loc else FORM_ERRORS_KEY
        message = error.get("msg", "Invalid value")
        # "Value error, ..." prefix comes from raising ValueError in validators
        message = message.removeprefix("Value error, ")
        field_errors.setdefault(key, []).append(message)
    return field_errors


def validate(
    shape: Type[M],
    payload: Mapping[str, Any],
    context: Optional[dict[str, Any]] = None,
) -> Result[M]:
    """Validate a raw payload against a request model.

    Args:
        shape: Pydantic model class describing the expected input
        payload: Raw input mapping (form fields or JSON body)
        context: Values passed to validators through ``ValidationInfo.context``

    Returns:
        Ok(model) on success, Err(ServiceError(VALIDATION)) with field detail otherwise
    """
    try:
        return Ok(shape.model_validate(dict(payload), context=context))
    except ValidationError as e:
        return Err(
            ServiceError(
                kind=ErrorKind.VALIDATION,
                message="Validation failed",
                field_errors=flatten_errors(e),
            )
        )
