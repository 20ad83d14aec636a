"""
End-to-end smoke check against a running server.

Creates a book, reads it back, finds it through a list query, patches it
and deletes it. Any unexpected status raises ``SmokeTestFailure``. The
check accepts any ``httpx.Client``, so tests can hand it a FastAPI
``TestClient`` instead of a live server.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

logger = logging.getLogger(__name__)


SAMPLE_BOOK: Dict[str, Any] = {
    "title": "The Art of Computer Programming, Vol. 1",
    "authors": ["Donald E. Knuth"],
    "publisher": "Addison-Wesley",
    "publicationDate": "1997-07-10",
    "isbn13": "978-0201558029",
    "purchaseDate": "2020-01-15",
    "pricePaid": 89.99,
    "tags": ["CS", "Algorithms"],
    "readStatus": "Reading",
}


class SmokeTestFailure(Exception):
    pass


def _expect(response: httpx.Response, status: int, step: str) -> httpx.Response:
    if response.status_code != status:
        raise SmokeTestFailure(f"{step} failed: HTTP {response.status_code} {response.text}")
    return response


def run_smoke(client: httpx.Client) -> None:
    created = _expect(client.post("/api/books", json=SAMPLE_BOOK), 201, "Create").json()
    book_id = created["id"]
    try:
        _expect(client.get(f"/api/books/{book_id}"), 200, "Get")

        listing = _expect(
            client.get("/api/books", params={"q": "Algorithms", "limit": 5, "offset": 0}), 200, "List",
        ).json()
        if not any(item["id"] == book_id for item in listing["items"]):
            raise SmokeTestFailure("List failed: created book not found")

        patched = _expect(
            client.patch(f"/api/books/{book_id}", json={"rating": 5, "readStatus": "Finished"}), 200, "Patch",
        ).json()
        if patched.get("rating") != 5:
            raise SmokeTestFailure("Patch failed: rating not updated")
    finally:
        _expect(client.delete(f"/api/books/{book_id}"), 204, "Delete")
    logger.info("Smoke test passed")
