"""
JSON file data store for the catalogue API.

The whole collection lives in one JSON document ``{"books": [...]}``. A
``JsonStore`` keeps the authoritative copy in memory and mirrors every
mutation to disk. Writes are serialised through a single ``asyncio.Lock``:
at most one flush runs at a time and queued flushes run in the order they
were requested. Each flush writes the full document to ``<path>.tmp`` and
renames it over the live file, so the live file always holds either the
previous or the new complete document.

Mutations update memory first and then wait for their flush, so reads are
never blocked by a write in progress. A mutation whose flush fails is undone
in memory before the error reaches the caller. Records handed out are copies; no
caller ever holds a reference into the store.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..errors import StorageCorruptError, StorageError


logger = logging.getLogger(__name__)

Record = Dict[str, Any]

# Keys a list query may sort on; "-" prefix means descending.
SORT_FIELDS = ("title", "purchaseDate", "createdAt", "updatedAt")
DEFAULT_SORT = "title"


def timestamp() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_instant(value: str) -> datetime:
    normalised = value[:10] + "T" + value[11:]
    if normalised[-1:] in ("Z", "z"):
        normalised = normalised[:-1] + "+00:00"
    return datetime.fromisoformat(normalised)


def later(a: str, b: str) -> str:
    """The later of two ISO 8601 date-times, or ``a`` if they cannot be compared."""
    try:
        return b if _parse_instant(b) > _parse_instant(a) else a
    except (ValueError, TypeError):
        return a


def _norm(s: Optional[str]) -> str:
    """Normalize a string for case-insensitive comparison.

    Parameters
    ----------
    s : Optional[str]
        The string to normalize.

    Returns
    -------
    str
        The normalized string (lowercased and stripped). An empty string is
        returned when the input is ``None`` or empty.
    """
    return (s or "").strip().lower()


def isbn_key(book: Record) -> str:
    """Dedupe key of a record: ISBN-13 (else ISBN-10), no hyphens, uppercased.

    Returns an empty string when the record carries no ISBN.
    """
    return (book.get("isbn13") or book.get("isbn10") or "").replace("-", "").upper()


def _haystack(book: Record) -> str:
    parts = [
        book.get("title"), book.get("subtitle"), book.get("publisher"), book.get("notes"),
        *(book.get("authors") or []),
        *(book.get("tags") or []),
    ]
    return " ".join(p for p in parts if p).lower()


@dataclass
class ImportStats:
    created: int = 0
    updated: int = 0


class JsonStore:
    """Single-writer persistence of the book collection.

    Parameters
    ----------
    path : Union[str, Path]
        Location of the live JSON document. The temporary file used during
        writes sits next to it with a ``.tmp`` suffix.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.tmp_path = self.path.with_name(self.path.name + ".tmp")
        # Keyed by id; dict order is the collection order.
        self._books: Dict[str, Record] = {}
        self._write_lock = asyncio.Lock()
        self._opened = False

    # ---- lifecycle ----

    async def open(self) -> "JsonStore":
        """Load the backing file, creating an empty document if it is absent.

        Raises
        ------
        StorageCorruptError
            If the file exists but does not hold a library document. The
            store refuses to start rather than run against lost data.
        StorageError
            If the file cannot be read or the initial document written.
        """
        existed = self._load()
        self._opened = True
        if existed:
            logger.info("Loaded %d books from %s", len(self._books), self.path)
        else:
            logger.info("Creating empty library at %s", self.path)
            await self._flush()
        return self

    async def close(self) -> None:
        """Wait for any queued write to finish."""
        async with self._write_lock:
            pass

    def _load(self) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.tmp_path.exists():
                # An interrupted flush; the live file is still the last good state.
                logger.warning("Discarding unfinished write %s", self.tmp_path)
                self.tmp_path.unlink()
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Cannot read library file {self.path}: {exc}") from exc

        try:
            doc = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageCorruptError(str(self.path), f"invalid JSON ({exc})") from exc
        if not isinstance(doc, dict):
            raise StorageCorruptError(str(self.path), "top level is not an object")
        books = doc.get("books", [])
        if not isinstance(books, list):
            raise StorageCorruptError(str(self.path), "'books' is not a list")

        for i, book in enumerate(books):
            if not isinstance(book, dict) or not isinstance(book.get("id"), str):
                raise StorageCorruptError(str(self.path), f"entry {i} is not a book with an id")
            self._books[book["id"]] = book
        return True

    # ---- persistence ----

    async def _flush(self) -> None:
        await self._write_lock.acquire()
        try:
            text = json.dumps({"books": list(self._books.values())}, ensure_ascii=False, indent=2)
            write = asyncio.ensure_future(asyncio.to_thread(self._write_atomic, text))
        except BaseException:
            self._write_lock.release()
            raise
        # The thread cannot be interrupted, so the lock is held until it
        # finishes even if the caller is cancelled while waiting.
        write.add_done_callback(self._write_done)
        try:
            await asyncio.shield(write)
        except OSError as exc:
            raise StorageError(f"Failed to write library file {self.path}: {exc}") from exc
        logger.debug("Flushed %d books to %s", len(self._books), self.path)

    def _write_done(self, write: "asyncio.Future[None]") -> None:
        self._write_lock.release()
        if not write.cancelled() and write.exception() is not None:
            logger.error("Failed to write %s: %s", self.path, write.exception())

    def _write_atomic(self, text: str) -> None:
        with open(self.tmp_path, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(self.tmp_path, self.path)

    def _check_open(self) -> None:
        if not self._opened:
            raise StorageError("Store has not been opened")

    # ---- queries ----

    def list(
        self,
        q: Optional[str] = None,
        author: Optional[str] = None,
        tag: Optional[str] = None,
        before_purchase_date: Optional[str] = None,
        after_purchase_date: Optional[str] = None,
        sort: str = DEFAULT_SORT,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[int, List[Record]]:
        """Filter, sort and paginate the collection.

        Filters apply in order: free text, author, tag, purchase-date range.
        Sorting is stable, so records with equal keys keep collection order
        in either direction. Pagination is applied last.

        Parameters
        ----------
        q : Optional[str]
            Case-insensitive substring matched against title, subtitle,
            publisher, notes, authors and tags joined by spaces.
        author : Optional[str]
            Case-insensitive substring of any author.
        tag : Optional[str]
            Case-insensitive exact match of any tag.
        before_purchase_date, after_purchase_date : Optional[str]
            Inclusive ISO date bounds, compared as strings. Records without a
            purchase date are dropped when either bound is given.
        sort : str
            One of ``SORT_FIELDS``, optionally prefixed with ``-``.
            Unknown keys fall back to ``title``.
        limit : int
            Maximum number of items returned.
        offset : int
            Number of matching items skipped.

        Returns
        -------
        Tuple[int, List[Record]]
            The number of matches before pagination and the requested page.
        """
        self._check_open()
        rows = list(self._books.values())

        nq = _norm(q)
        if nq:
            rows = [b for b in rows if nq in _haystack(b)]

        nauthor = _norm(author)
        if nauthor:
            rows = [b for b in rows if any(nauthor in a.lower() for a in (b.get("authors") or []))]

        ntag = _norm(tag)
        if ntag:
            rows = [b for b in rows if any(t.lower() == ntag for t in (b.get("tags") or []))]

        if before_purchase_date:
            rows = [b for b in rows if b.get("purchaseDate") and b["purchaseDate"] <= before_purchase_date]
        if after_purchase_date:
            rows = [b for b in rows if b.get("purchaseDate") and b["purchaseDate"] >= after_purchase_date]

        field = sort.lstrip("-")
        if field not in SORT_FIELDS:
            field, sort = DEFAULT_SORT, DEFAULT_SORT
        rows.sort(
            key=lambda b: b.get(field) if b.get(field) is not None else "",
            reverse=sort.startswith("-"),
        )

        total = len(rows)
        page = rows[offset:offset + limit]
        return total, copy.deepcopy(page)

    def get(self, book_id: str) -> Optional[Record]:
        self._check_open()
        book = self._books.get(book_id)
        return copy.deepcopy(book) if book is not None else None

    def find_by_isbn(self, key: str) -> Optional[Record]:
        """First record, in title order, whose dedupe key equals ``key``.

        A linear scan: fine for a personal library, not meant to scale.
        """
        self._check_open()
        if not key:
            return None
        _, ordered = self.list(sort="title", limit=len(self._books), offset=0)
        return next((b for b in ordered if isbn_key(b) == key), None)

    def all_tags(self) -> List[str]:
        self._check_open()
        tags = {t for b in self._books.values() for t in (b.get("tags") or [])}
        return sorted(tags)

    def export_json(self) -> List[Record]:
        self._check_open()
        return copy.deepcopy(list(self._books.values()))

    def __len__(self) -> int:
        return len(self._books)

    # ---- mutations ----

    async def upsert(self, record: Record) -> Record:
        """Insert ``record`` or replace the record with the same id.

        A replaced record keeps its position in the collection. Returns once
        the change is on disk; if the write fails the change is undone.
        """
        self._check_open()
        book = copy.deepcopy(record)
        previous = self._books.get(book["id"])
        self._books[book["id"]] = book
        try:
            await self._flush()
        except StorageError:
            self._restore({book["id"]: previous})
            raise
        return copy.deepcopy(book)

    async def remove(self, book_id: str) -> bool:
        """Delete a record by id; returns whether anything was removed."""
        self._check_open()
        if book_id not in self._books:
            return False
        position = list(self._books).index(book_id)
        book = self._books.pop(book_id)
        try:
            await self._flush()
        except StorageError:
            entries = list(self._books.items())
            entries.insert(position, (book_id, book))
            self._books = dict(entries)
            raise
        return True

    def _restore(self, previous: Dict[str, Optional[Record]]) -> None:
        # None marks a record that did not exist before.
        for book_id, book in previous.items():
            if book is None:
                self._books.pop(book_id, None)
            else:
                self._books[book_id] = book

    async def import_json(self, records: Iterable[Record], dedupe_by_isbn: bool = True) -> ImportStats:
        """Merge or insert a batch of records with a single flush.

        An incoming record matches an existing one by dedupe key (when
        ``dedupe_by_isbn`` is set) or else by id. A match has the incoming
        fields written over it, keeps its own id and ``createdAt`` and gets
        a fresh ``updatedAt``. Anything else is appended. If the write
        fails the whole batch is undone.

        Parameters
        ----------
        records : Iterable[Record]
            Complete book records, already validated.
        dedupe_by_isbn : bool
            Whether to match on normalised ISBN.

        Returns
        -------
        ImportStats
            How many records were created and how many updated.
        """
        self._check_open()
        if isinstance(records, (str, bytes, dict)):
            raise TypeError("Import payload must be a sequence of books")

        by_isbn: Dict[str, str] = {}
        if dedupe_by_isbn:
            for book in self._books.values():
                key = isbn_key(book)
                if key:
                    by_isbn[key] = book["id"]

        stats = ImportStats()
        previous: Dict[str, Optional[Record]] = {}
        now = timestamp()
        for raw in records:
            incoming = copy.deepcopy(raw)
            key = isbn_key(incoming) if dedupe_by_isbn else ""
            target_id = by_isbn.get(key) if key else None
            if target_id is None and incoming.get("id") in self._books:
                target_id = incoming["id"]

            if target_id is not None:
                existing = self._books[target_id]
                previous.setdefault(target_id, existing)
                book = {**existing, **incoming, "id": target_id}
                if existing.get("createdAt"):
                    book["createdAt"] = existing["createdAt"]
                book["updatedAt"] = later(now, book.get("createdAt") or now)
                self._books[target_id] = book
                old_key = isbn_key(existing)
                if old_key and old_key != isbn_key(book) and by_isbn.get(old_key) == target_id:
                    del by_isbn[old_key]
                stats.updated += 1
            else:
                incoming.setdefault("id", str(uuid.uuid4()))
                previous.setdefault(incoming["id"], None)
                self._books[incoming["id"]] = incoming
                book = incoming
                stats.created += 1

            if dedupe_by_isbn and isbn_key(book):
                by_isbn[isbn_key(book)] = book["id"]

        try:
            await self._flush()
        except StorageError:
            self._restore(previous)
            raise
        logger.info("Imported books: %d created, %d updated", stats.created, stats.updated)
        return stats
