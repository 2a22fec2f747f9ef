"""
Session helpers that need to know which database backs a session.
"""

from __future__ import annotations

from sqlalchemy.exc import UnboundExecutionError
from sqlalchemy.orm import Session


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Dialect of the engine behind ``session``; ``default`` when it is unbound."""
    try:
        bind = session.get_bind()
    except UnboundExecutionError:
        return default
    return getattr(getattr(bind, "dialect", None), "name", None) or default
