"""Shared fixtures: a settings object and a TestClient pointed at tmp_path."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from booklog.catalog.store import JsonStore
from booklog.config import Settings
from booklog.main import create_app


def make_book(**overrides: Any) -> Dict[str, Any]:
    """A valid new-book payload; keyword arguments override fields."""
    book: Dict[str, Any] = {
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
    book.update(overrides)
    return book


async def open_store(path: Path) -> JsonStore:
    return await JsonStore(path).open()


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    return tmp_path / "data" / "library.json"


@pytest.fixture
def settings(tmp_path: Path, data_file: Path) -> Settings:
    return Settings(data_file=data_file, public_dir=tmp_path / "public")


@pytest.fixture
def client(settings: Settings) -> TestClient:
    with TestClient(create_app(settings)) as c:
        yield c
