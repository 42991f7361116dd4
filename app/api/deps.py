"""FastAPI dependency injection: database sessions and the identity resolver."""
from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.settings import get_settings
from app.db.repositories import ContactRepository
from app.db.session import get_session_factory
from app.identity.locking import get_identity_lock
from app.identity.resolver import IdentityResolver


def get_db() -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session; commit on success, rollback on error."""
    db = get_session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_identity_resolver(db: Session = Depends(get_db)) -> IdentityResolver:
    """Return an IdentityResolver bound to the current DB session."""
    settings = get_settings()
    return IdentityResolver(
        ContactRepository(db),
        get_identity_lock(),
        lowercase_email=settings.normalize_email_case,
        phone_e164=settings.phone_e164,
        default_region=settings.default_phone_region,
    )
