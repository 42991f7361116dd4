from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

LINK_PRIMARY = "primary"
LINK_SECONDARY = "secondary"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Contact(Base):
    """One observed (email, phone number) record.

    A contact is either the ``primary`` of its cluster or a ``secondary``
    pointing at that primary through ``linked_id``.  Rows are soft-deleted
    through ``deleted_at`` and never removed by the resolver.
    """

    __tablename__ = "contacts"
    __table_args__ = (
        CheckConstraint(
            "link_precedence IN ('primary', 'secondary')",
            name="ck_contacts_link_precedence",
        ),
        CheckConstraint(
            "email IS NOT NULL OR phone_number IS NOT NULL",
            name="ck_contacts_identifier_present",
        ),
        CheckConstraint(
            "(link_precedence = 'primary' AND linked_id IS NULL) OR "
            "(link_precedence = 'secondary' AND linked_id IS NOT NULL)",
            name="ck_contacts_secondary_linked",
        ),
        Index("ix_contacts_created_at_id", "created_at", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    linked_id: Mapped[int | None] = mapped_column(
        ForeignKey("contacts.id"), nullable=True, index=True
    )
    link_precedence: Mapped[str] = mapped_column(String(16), nullable=False, default=LINK_PRIMARY)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_primary(self) -> bool:
        return self.link_precedence == LINK_PRIMARY

    def __repr__(self) -> str:
        return f"<Contact id={self.id} precedence={self.link_precedence} linked_id={self.linked_id}>"
