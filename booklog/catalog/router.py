"""
Route definitions for the catalogue API.

Endpoints under /api:
- GET    /books             : list books with filters, sorting and pagination
- GET    /books/{book_id}   : get one book
- POST   /books             : create a book (409 on duplicate ISBN)
- PUT    /books/{book_id}   : replace a book
- PATCH  /books/{book_id}   : merge a partial update, then re-validate
- DELETE /books/{book_id}   : delete a book
- GET    /tags              : distinct tags
- GET    /export/json       : download every book
- POST   /import/json       : bulk merge-or-insert
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from ..config import Settings
from ..errors import BookNotFoundError, BookValidationError, DuplicateIsbnError
from .schemas import BookPage, ImportResult, ListQuery, TagList
from .store import JsonStore, isbn_key, later, timestamp
from .validation import Shape, check, known_fields


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["books"])

# Only these URL parameters are read for a list query; anything else is ignored.
LIST_QUERY_PARAMS = known_fields(ListQuery)


def get_store(request: Request) -> JsonStore:
    return request.app.state.store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _new_id() -> str:
    return str(uuid.uuid4())


def _existing(store: JsonStore, book_id: str) -> Dict[str, Any]:
    book = store.get(book_id)
    if book is None:
        raise BookNotFoundError(book_id)
    return book


@router.get("/books", response_model=BookPage)
async def list_books(
    request: Request,
    store: JsonStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> BookPage:
    """Return one page of books matching the query.

    ``total`` counts every match, so clients can page with ``offset``.
    """
    params = {k: v for k, v in request.query_params.items() if k in LIST_QUERY_PARAMS}
    query: ListQuery = check(params, Shape.QUERY, settings.unknown_fields, message="Invalid query").model

    total, items = store.list(
        q=query.q,
        author=query.author,
        tag=query.tag,
        before_purchase_date=query.before_purchase_date,
        after_purchase_date=query.after_purchase_date,
        sort=query.sort,
        limit=query.limit,
        offset=query.offset,
    )
    return BookPage(total=total, items=items)


@router.get("/books/{book_id}")
async def get_book(book_id: str, store: JsonStore = Depends(get_store)) -> Dict[str, Any]:
    return _existing(store, book_id)


@router.post("/books", status_code=status.HTTP_201_CREATED)
async def create_book(
    payload: Dict[str, Any] = Body(...),
    store: JsonStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Create a book. The server assigns ``id``, ``createdAt`` and ``updatedAt``.

    A book whose normalised ISBN is already in the collection is refused
    with 409 and the id of the record it collides with.
    """
    now = timestamp()
    incoming = {**payload, "id": _new_id(), "createdAt": now, "updatedAt": now}
    book = check(incoming, Shape.BOOK, settings.unknown_fields).data

    dupe = store.find_by_isbn(isbn_key(book))
    if dupe is not None:
        raise DuplicateIsbnError(dupe["id"])

    saved = await store.upsert(book)
    logger.info("Created book %s", saved["id"], extra={"book_id": saved["id"]})
    return saved


@router.put("/books/{book_id}")
async def replace_book(
    book_id: str,
    payload: Dict[str, Any] = Body(...),
    store: JsonStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Replace a book wholesale, keeping its id and ``createdAt``."""
    existing = _existing(store, book_id)
    now = timestamp()
    replacement = {
        **payload,
        "id": existing["id"],
        "createdAt": existing.get("createdAt") or now,
        "updatedAt": now,
    }
    book = check(replacement, Shape.BOOK, settings.unknown_fields).data
    saved = await store.upsert(book)
    logger.info("Replaced book %s", book_id, extra={"book_id": book_id})
    return saved


@router.patch("/books/{book_id}")
async def patch_book(
    book_id: str,
    payload: Dict[str, Any] = Body(...),
    store: JsonStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Merge a partial update over a book.

    The patch is checked on its own first, then the merged record is checked
    as a complete book; either failure leaves the stored record untouched.
    """
    existing = _existing(store, book_id)
    patch = check(payload, Shape.PATCH, settings.unknown_fields).data

    merged = {**existing, **patch, "id": existing["id"], "updatedAt": timestamp()}
    book = check(merged, Shape.BOOK, settings.unknown_fields, message="Validation failed after merge").data

    saved = await store.upsert(book)
    logger.info("Patched book %s", book_id, extra={"book_id": book_id})
    return saved


@router.delete("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_book(book_id: str, store: JsonStore = Depends(get_store)) -> Response:
    if not await store.remove(book_id):
        raise BookNotFoundError(book_id)
    logger.info("Deleted book %s", book_id, extra={"book_id": book_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/tags", response_model=TagList)
async def list_tags(store: JsonStore = Depends(get_store)) -> TagList:
    tags = store.all_tags()
    return TagList(count=len(tags), items=tags)


@router.get("/export/json")
async def export_books(store: JsonStore = Depends(get_store)) -> JSONResponse:
    """Every book as a JSON array, served as a ``books.json`` download."""
    return JSONResponse(
        content=store.export_json(),
        headers={"Content-Disposition": 'attachment; filename="books.json"'},
    )


@router.post("/import/json", response_model=ImportResult)
async def import_books(
    payload: Any = Body(...),
    store: JsonStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
) -> ImportResult:
    """Bulk import an array of books.

    Items keep their ``id`` and ``createdAt`` when they carry them;
    ``updatedAt`` is set to now, or to ``createdAt`` if that is later.
    Every item is validated before anything is written, and the first
    invalid one is echoed back in the 400 response. Books whose normalised
    ISBN is already present update the existing record instead of creating
    a duplicate.
    """
    if not isinstance(payload, list):
        raise BookValidationError("Body must be an array of books")

    now = timestamp()
    incoming: List[Dict[str, Any]] = []
    for raw in payload:
        book = raw
        if isinstance(raw, dict):
            created_at = raw.get("createdAt") or now
            book = {
                **raw,
                "id": raw.get("id") or _new_id(),
                "createdAt": created_at,
                "updatedAt": later(now, created_at),
            }
        result = check(
            book, Shape.BOOK, settings.unknown_fields,
            message="Validation failed for one or more items",
            extra={"item": raw},
        )
        incoming.append(result.data)

    stats = await store.import_json(incoming, dedupe_by_isbn=True)
    return ImportResult(ok=True, created=stats.created, updated=stats.updated)
