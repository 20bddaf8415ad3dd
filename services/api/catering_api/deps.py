"""FastAPI dependencies for the catering API.

Provides:
- Database session dependency
- Actor resolution for updatedBy (header -> settings fallback)
"""

from typing import Optional

from fastapi import Header

from .db import get_db
from .settings import settings

__all__ = ["get_db", "get_actor"]


def get_actor(x_updated_by: Optional[str] = Header(None, alias="X-Updated-By")) -> str:
    """Who is writing. Recorded as updatedBy on sheets and rows."""
    if x_updated_by and x_updated_by.strip():
        return x_updated_by.strip()[:120]
    return settings.default_updated_by
