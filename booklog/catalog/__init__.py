"""
Catalog package for the personal library API.

This package holds the book schemas, the boundary validator, the JSON file
store and the REST routes built on them. The store is the only component
that touches the backing file; routes reach it through ``app.state``.
"""

from .router import router as catalog_router  # noqa: F401
from .store import JsonStore  # noqa: F401
