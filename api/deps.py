from __future__ import annotations

from collections.abc import Generator

from sqlalchemy.orm import Session

from core.db import get_session_factory


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; the assignment engine commits its own unit of work."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
