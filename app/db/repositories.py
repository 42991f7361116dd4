from __future__ import annotations

from collections.abc import Iterable
from typing import Generic, TypeVar

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from app.db import models

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def create(self, **kwargs) -> ModelT:
        entity = self.model(**kwargs)
        self.db.add(entity)
        self.db.flush()
        return entity

    def get(self, entity_id: int) -> ModelT | None:
        return self.db.get(self.model, entity_id)

    def update(self, entity: ModelT, **kwargs) -> ModelT:
        for key, value in kwargs.items():
            setattr(entity, key, value)
        self.db.flush()
        return entity


class ContactRepository(BaseRepository[models.Contact]):
    """Contact queries used by the identity resolver.

    Every lookup skips soft-deleted rows and returns contacts in seniority
    order (``created_at`` then ``id``).  Nothing here commits; the caller
    owns the transaction.
    """

    model = models.Contact

    def _active(self):
        Contact = self.model
        return (
            select(Contact)
            .where(Contact.deleted_at.is_(None))
            .order_by(Contact.created_at.asc(), Contact.id.asc())
        )

    def find_matching(self, email: str | None, phone_number: str | None) -> list[models.Contact]:
        Contact = self.model
        conditions = []
        if email is not None:
            conditions.append(Contact.email == email)
        if phone_number is not None:
            conditions.append(Contact.phone_number == phone_number)
        if not conditions:
            return []
        return list(self.db.execute(self._active().where(or_(*conditions))).scalars().all())

    def find_secondaries(self, primary_ids: Iterable[int]) -> list[models.Contact]:
        ids = sorted(set(primary_ids))
        if not ids:
            return []
        stmt = self._active().where(
            self.model.linked_id.in_(ids),
            self.model.link_precedence == models.LINK_SECONDARY,
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_by_ids(self, ids: Iterable[int]) -> list[models.Contact]:
        ids = sorted(set(ids))
        if not ids:
            return []
        return list(self.db.execute(self._active().where(self.model.id.in_(ids))).scalars().all())

    def create_primary(self, email: str | None, phone_number: str | None) -> models.Contact:
        return self.create(
            email=email,
            phone_number=phone_number,
            linked_id=None,
            link_precedence=models.LINK_PRIMARY,
        )

    def create_secondary(self, email: str | None, phone_number: str | None, linked_id: int) -> models.Contact:
        return self.create(
            email=email,
            phone_number=phone_number,
            linked_id=linked_id,
            link_precedence=models.LINK_SECONDARY,
        )

    def demote(self, contact: models.Contact, primary_id: int) -> models.Contact:
        return self.update(
            contact,
            link_precedence=models.LINK_SECONDARY,
            linked_id=primary_id,
            updated_at=models.utcnow(),
        )

    def relink_secondaries(self, from_id: int, to_id: int) -> int:
        """Point every active secondary of *from_id* at *to_id*; return the row count."""
        Contact = self.model
        stmt = (
            update(Contact)
            .where(
                Contact.linked_id == from_id,
                Contact.link_precedence == models.LINK_SECONDARY,
                Contact.deleted_at.is_(None),
            )
            .values(linked_id=to_id, updated_at=models.utcnow())
            .execution_options(synchronize_session="fetch")
        )
        result = self.db.execute(stmt)
        self.db.flush()
        return result.rowcount
