"""
Boundary validation for request bodies and list queries.

``validate()`` checks a raw payload against one of the three shapes and
reports every problem at once instead of stopping at the first. Routes call
``check()``, which raises ``BookValidationError`` on failure so the global
handler can render a 400.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Type

from pydantic import BaseModel, ValidationError

from ..errors import BookValidationError
from .schemas import Book, BookPatch, ListQuery


class Shape(str, Enum):
    BOOK = "book"
    PATCH = "patch"
    QUERY = "query"


SHAPES: Dict[Shape, Type[BaseModel]] = {
    Shape.BOOK: Book,
    Shape.PATCH: BookPatch,
    Shape.QUERY: ListQuery,
}


@dataclass
class FieldError:
    field: str
    message: str
    type: str


@dataclass
class ValidationResult:
    """Outcome of ``validate()``.

    ``data`` is the accepted payload as a plain dict keyed by the JSON
    names, holding only the keys the caller supplied (for ``Shape.QUERY``
    the defaults are filled in). It is ``None`` when ``valid`` is false.
    """

    valid: bool
    data: Optional[Dict[str, Any]] = None
    model: Optional[BaseModel] = None
    errors: List[FieldError] = field(default_factory=list)

    def error_details(self) -> List[Dict[str, Any]]:
        return [asdict(e) for e in self.errors]


def known_fields(model: Type[BaseModel]) -> Set[str]:
    """JSON names accepted by ``model``."""
    return {f.alias or name for name, f in model.model_fields.items()}


def _field_errors(exc: ValidationError) -> List[FieldError]:
    return [
        FieldError(
            field=".".join(str(loc) for loc in e["loc"]),
            message=e["msg"],
            type=e["type"],
        )
        for e in exc.errors()
    ]


def validate(payload: Any, shape: Shape, unknown_fields: str = "reject") -> ValidationResult:
    """Validate ``payload`` against ``shape``.

    Parameters
    ----------
    payload : Any
        The decoded JSON body or the query parameters as a dict.
    shape : Shape
        Which schema to apply.
    unknown_fields : str
        ``"reject"`` reports keys the schema does not know as errors;
        ``"strip"`` drops them before validating.

    Returns
    -------
    ValidationResult
        Validity, the accepted data and any field-level errors.
    """
    model = SHAPES[shape]
    if not isinstance(payload, dict):
        return ValidationResult(
            valid=False,
            errors=[FieldError(field="", message="must be an object", type="dict_type")],
        )
    if unknown_fields == "strip":
        allowed = known_fields(model)
        payload = {k: v for k, v in payload.items() if k in allowed}

    try:
        instance = model.model_validate(payload)
    except ValidationError as exc:
        return ValidationResult(valid=False, errors=_field_errors(exc))

    data = instance.model_dump(by_alias=True, exclude_unset=shape is not Shape.QUERY)
    return ValidationResult(valid=True, data=data, model=instance)


def check(
    payload: Any,
    shape: Shape,
    unknown_fields: str = "reject",
    message: str = "Validation failed",
    extra: Optional[Dict[str, Any]] = None,
) -> ValidationResult:
    """Like ``validate()`` but raises ``BookValidationError`` when invalid."""
    result = validate(payload, shape, unknown_fields)
    if not result.valid:
        raise BookValidationError(message, result.error_details(), extra)
    return result
