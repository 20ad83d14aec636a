"""
Pydantic schema definitions for the catalog module.

Three request shapes are validated at the HTTP boundary:

* ``Book`` — a complete record. ``title`` is required; ``id``,
  ``createdAt`` and ``updatedAt`` are accepted because the server fills them
  in before validating.
* ``BookPatch`` — the same field constraints with nothing required and the
  system fields forbidden.
* ``ListQuery`` — the parameters of ``GET /api/books``.

All JSON keys are camelCase; the Python attributes are snake_case and the
alias generator maps between the two. Book bodies are validated in strict
mode so a string never silently becomes a number. Defaults are never
written into stored records: callers dump with ``exclude_unset=True``.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, AnyUrl, BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError
from pydantic.alias_generators import to_camel


BookFormat = Literal["Hardcover", "Paperback", "eBook", "Audiobook", "Other"]
Condition = Literal["New", "Like New", "Very Good", "Good", "Acceptable", "Poor"]
ReadStatus = Literal["Unread", "Reading", "Finished", "Abandoned"]
SortKey = Literal[
    "title", "-title",
    "purchaseDate", "-purchaseDate",
    "createdAt", "-createdAt",
    "updatedAt", "-updatedAt",
]

ISBN10_PATTERN = r"^[0-9Xx-]{10,}$"
ISBN13_PATTERN = r"^(97(8|9))?[0-9-]{10,}$"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATETIME_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)
_URL = TypeAdapter(AnyUrl)


def _check_date(value: str) -> str:
    if not _DATE_RE.match(value):
        raise ValueError("must be a date formatted YYYY-MM-DD")
    date.fromisoformat(value)
    return value


def _check_datetime(value: str) -> str:
    if not _DATETIME_RE.match(value):
        raise ValueError("must be an ISO 8601 date-time with a time zone")
    # fromisoformat only learned "Z" in 3.11
    normalised = value[:10] + "T" + value[11:]
    if normalised[-1] in "Zz":
        normalised = normalised[:-1] + "+00:00"
    datetime.fromisoformat(normalised)
    return value


def _check_uri(value: str) -> str:
    try:
        _URL.validate_python(value)
    except ValidationError:
        raise ValueError("must be an absolute URI") from None
    # Keep the client's spelling; AnyUrl would normalise it.
    return value


IsoDate = Annotated[str, AfterValidator(_check_date)]
IsoDateTime = Annotated[str, AfterValidator(_check_datetime)]
Uri = Annotated[str, AfterValidator(_check_uri)]
NonEmptyStr = Annotated[str, Field(min_length=1)]


class BookFields(BaseModel):
    """Fields shared by full records and patches.

    Every field is optional here; ``Book`` adds the required ``title`` and
    the server-owned keys.
    """

    model_config = ConfigDict(alias_generator=to_camel, extra="forbid", strict=True)

    subtitle: Optional[str] = None
    authors: Optional[List[NonEmptyStr]] = None
    publisher: Optional[str] = None
    publication_date: Optional[IsoDate] = None
    isbn10: Optional[str] = Field(default=None, pattern=ISBN10_PATTERN)
    isbn13: Optional[str] = Field(default=None, pattern=ISBN13_PATTERN)
    edition: Optional[str] = None
    format: Optional[BookFormat] = None

    # Ownership / purchase metadata
    purchase_date: Optional[IsoDate] = None
    price_paid: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    currency: Optional[NonEmptyStr] = None
    condition: Optional[Condition] = None
    # Shelf, box, room, etc.
    location: Optional[str] = None

    # Curation
    tags: Optional[List[NonEmptyStr]] = None
    notes: Optional[str] = None
    read_status: Optional[ReadStatus] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)

    cover_url: Optional[Uri] = None


class Book(BookFields):
    """A single book in the collection, as stored and returned."""

    id: Optional[str] = None
    title: NonEmptyStr
    created_at: Optional[IsoDateTime] = None
    updated_at: Optional[IsoDateTime] = None


class BookPatch(BookFields):
    """A partial update. ``title`` may be changed but not blanked."""

    title: Optional[NonEmptyStr] = None


class ListQuery(BaseModel):
    """Query parameters for ``GET /api/books``.

    Values arrive as strings, so this model is not strict: ``limit=5`` in
    the URL becomes the integer 5.
    """

    model_config = ConfigDict(alias_generator=to_camel, extra="forbid")

    q: Optional[str] = None
    author: Optional[str] = None
    tag: Optional[str] = None
    before_purchase_date: Optional[IsoDate] = None
    after_purchase_date: Optional[IsoDate] = None
    sort: SortKey = "title"
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


# ─── Response bodies ────────────────────────────────────────────

class BookPage(BaseModel):
    """One page of ``GET /api/books``; ``total`` counts every match."""

    total: int
    items: List[Dict[str, Any]]


class TagList(BaseModel):
    count: int
    items: List[str]


class ImportResult(BaseModel):
    ok: bool = True
    created: int
    updated: int


class Health(BaseModel):
    ok: bool
    ts: str
