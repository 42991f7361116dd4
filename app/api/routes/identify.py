"""POST /identify: resolve one contact observation into its cluster."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.api.deps import get_identity_resolver
from app.identity.resolver import IdentityResolver, MissingIdentifierError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["identity"])


# ---------------------------------------------------------------------------
# Request / response bodies
# ---------------------------------------------------------------------------

class IdentifyBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str | None = None
    phone_number: str | None = Field(default=None, alias="phoneNumber")

    @field_validator("phone_number", mode="before")
    @classmethod
    def _coerce_numeric_phone(cls, value):
        # Clients commonly send phone numbers as JSON numbers.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class ContactView(BaseModel):
    primaryContactId: int
    emails: list[str]
    phoneNumbers: list[str]
    secondaryContactIds: list[int]


class IdentifyResponse(BaseModel):
    contact: ContactView


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("/identify", summary="Resolve a contact observation", response_model=IdentifyResponse)
def identify(body: IdentifyBody, resolver: IdentityResolver = Depends(get_identity_resolver)):
    try:
        result = resolver.resolve(body.email, body.phone_number)
    except MissingIdentifierError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    logger.info(
        "Resolved observation to primary id=%s (%d secondary contact(s))",
        result.primary_contact_id,
        len(result.secondary_contact_ids),
    )
    return {"contact": result.to_response()}
