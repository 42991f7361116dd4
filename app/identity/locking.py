"""Per-identity locking for the resolve path.

Two requests that share an email or a phone number may touch the same
cluster, so each observation is locked on every identifying key it carries
(``email:<value>``, ``phone:<value>``), always in sorted order.

On PostgreSQL the keys become transaction-scoped advisory locks that are
released by the request's commit or rollback.  Other dialects fall back to
a fixed pool of process-local lock stripes with the same lifetime: a stripe
taken inside a transaction stays held until that session's outermost
transaction ends.  Stripes are plain locks because the commit may run on a
different worker thread than the lookup.
"""
from __future__ import annotations

import logging
import threading
import zlib
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from sqlalchemy import event, text
from sqlalchemy.orm import Session, SessionTransaction

logger = logging.getLogger(__name__)

_DEFAULT_STRIPES = 64

_ADVISORY_LOCK_SQL = text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))")


def identity_keys(email: str | None, phone_number: str | None) -> list[str]:
    """Return the sorted lock keys for an already-normalized observation."""
    keys = []
    if email is not None:
        keys.append(f"email:{email}")
    if phone_number is not None:
        keys.append(f"phone:{phone_number}")
    return sorted(keys)


class IdentityLock:
    """Serialize cluster mutations per identifying key."""

    def __init__(self, stripes: int = _DEFAULT_STRIPES) -> None:
        if stripes < 1:
            raise ValueError("stripes must be >= 1")
        self._stripes = [threading.Lock() for _ in range(stripes)]
        self._info_key = f"identity_lock_stripes:{id(self)}"

    def _stripe_indexes(self, keys: Iterable[str]) -> list[int]:
        return sorted({zlib.crc32(key.encode("utf-8")) % len(self._stripes) for key in keys})

    def _held(self, db: Session) -> set[int]:
        held = db.info.get(self._info_key)
        if held is None:
            held = db.info[self._info_key] = set()
            event.listen(db, "after_transaction_end", self._on_transaction_end)
        return held

    def _on_transaction_end(self, session: Session, transaction: SessionTransaction) -> None:
        if transaction.parent is None:
            self._release(session)

    def _release(self, db: Session) -> None:
        held = db.info.get(self._info_key)
        if not held:
            return
        for index in sorted(held, reverse=True):
            self._stripes[index].release()
        logger.debug("Released %d identity lock stripe(s)", len(held))
        held.clear()

    @contextmanager
    def hold(self, db: Session, keys: Iterable[str]) -> Iterator[None]:
        keys = sorted(set(keys))
        if db.get_bind().dialect.name == "postgresql":
            for key in keys:
                db.execute(_ADVISORY_LOCK_SQL, {"key": key})
            logger.debug("Acquired %d advisory lock(s)", len(keys))
            yield
            return

        held = self._held(db)
        try:
            for index in self._stripe_indexes(keys):
                if index in held:
                    continue
                self._stripes[index].acquire()
                held.add(index)
            yield
        finally:
            # Without an open transaction there is no commit to wait for.
            if not db.in_transaction():
                self._release(db)


_default_lock = IdentityLock()


def get_identity_lock() -> IdentityLock:
    return _default_lock
