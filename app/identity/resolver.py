"""Identity resolver.

Consolidates one (email, phone number) observation into the stored contact
clusters:

1. Lookup     - contacts whose email or phone equals the observation's.
2. Expansion  - the primaries those contacts belong to, plus every
                secondary linked to them.
3. Gap check  - create a primary for an unseen identity, or a secondary
                when the observation adds an email or phone the cluster
                does not know yet.
4. Merge      - when the observation bridges several clusters, demote all
                but the most senior primary and re-point their secondaries.
5. Synthesis  - the canonical view of the merged cluster.

Seniority is ``(created_at, id)`` ascending; the repository returns every
list in that order and the steps below rely on it.

The resolver never commits.  It runs inside the caller's session so the
whole sequence succeeds or rolls back together, and store errors propagate
unchanged.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from app.db.models import Contact
from app.db.repositories import ContactRepository
from app.identity.locking import IdentityLock, identity_keys
from app.normalization.email_normalizer import normalize_email
from app.normalization.phone_normalizer import normalize_phone

logger = logging.getLogger(__name__)


class MissingIdentifierError(ValueError):
    """Raised when an observation carries neither an email nor a phone number."""


@dataclass
class IdentityResult:
    """Canonical view of one resolved cluster."""

    primary_contact_id: int
    emails: list[str] = field(default_factory=list)
    phone_numbers: list[str] = field(default_factory=list)
    secondary_contact_ids: list[int] = field(default_factory=list)

    def to_response(self) -> dict:
        return {
            "primaryContactId": self.primary_contact_id,
            "emails": list(self.emails),
            "phoneNumbers": list(self.phone_numbers),
            "secondaryContactIds": list(self.secondary_contact_ids),
        }


def _distinct_primary_first(values: Iterable[str | None], primary_value: str | None) -> list[str]:
    ordered: list[str] = []
    for value in values:
        if value is not None and value not in ordered:
            ordered.append(value)
    if primary_value is not None and primary_value in ordered:
        ordered.remove(primary_value)
        ordered.insert(0, primary_value)
    return ordered


class IdentityResolver:
    """Resolve observations against a contact store.

    Parameters
    ----------
    repository:
        Contact store bound to the current request's session.
    lock:
        Optional ``IdentityLock``; when given, the whole resolve sequence
        runs while holding the observation's identity keys.
    lowercase_email, phone_e164, default_region:
        Input normalisation options, see ``app.normalization``.
    """

    def __init__(
        self,
        repository: ContactRepository,
        lock: IdentityLock | None = None,
        *,
        lowercase_email: bool = True,
        phone_e164: bool = False,
        default_region: str = "US",
    ) -> None:
        self.repository = repository
        self.lock = lock
        self.lowercase_email = lowercase_email
        self.phone_e164 = phone_e164
        self.default_region = default_region

    # -- entry point ----------------------------------------------------------

    def resolve(self, email: str | None, phone_number: str | None) -> IdentityResult:
        email = normalize_email(email, lowercase=self.lowercase_email)
        phone_number = normalize_phone(
            phone_number, e164=self.phone_e164, default_region=self.default_region
        )
        if email is None and phone_number is None:
            raise MissingIdentifierError("Either email or phoneNumber required")

        if self.lock is None:
            return self._resolve(email, phone_number)

        with self.lock.hold(self.repository.db, identity_keys(email, phone_number)):
            return self._resolve(email, phone_number)

    def _resolve(self, email: str | None, phone_number: str | None) -> IdentityResult:
        matches = self.repository.find_matching(email, phone_number)
        if not matches:
            contact = self.repository.create_primary(email, phone_number)
            logger.info("Created primary contact id=%s", contact.id)
            return self.synthesize([contact])

        cluster = self.expand(matches)
        self.fill_gap(cluster, email, phone_number)
        self.merge(cluster)
        return self.synthesize(cluster)

    # -- expansion ------------------------------------------------------------

    def _anchor_id(self, contact: Contact) -> int:
        # Follows linked_id until a primary is reached; tolerates chains left
        # behind by older merges, dangling links and cycles.
        current = contact
        seen: set[int] = set()
        while not current.is_primary and current.linked_id is not None:
            seen.add(current.id)
            parent = self.repository.get(current.linked_id)
            if parent is None or parent.deleted_at is not None or parent.id in seen:
                return current.linked_id
            current = parent
        return current.id

    def expand(self, matches: list[Contact]) -> list[Contact]:
        """Return the working cluster for *matches* in seniority order."""
        anchors = {self._anchor_id(contact) for contact in matches}
        member_ids = anchors | {contact.id for contact in matches}

        frontier = set(anchors)
        while frontier:
            children = {c.id for c in self.repository.find_secondaries(frontier)} - member_ids
            member_ids |= children
            frontier = children

        cluster = self.repository.find_by_ids(member_ids)
        logger.debug(
            "Expanded %d match(es) to %d member(s) across %d anchor(s)",
            len(matches),
            len(cluster),
            len(anchors),
        )
        return cluster

    # -- gap detection ----------------------------------------------------------

    def _current_primary(self, cluster: list[Contact]) -> Contact:
        for contact in cluster:
            if contact.is_primary:
                return contact
        logger.warning(
            "Cluster without a primary, falling back to oldest member (ids=%s)",
            [contact.id for contact in cluster],
        )
        return cluster[0]

    def fill_gap(self, cluster: list[Contact], email: str | None, phone_number: str | None) -> Contact | None:
        """Create a secondary if the observation adds a new email or phone.

        The created contact is appended to *cluster* and returned; ``None``
        means the observation was already fully known.
        """
        if any(c.email == email and c.phone_number == phone_number for c in cluster):
            return None

        known_emails = {c.email for c in cluster}
        known_phones = {c.phone_number for c in cluster}
        has_new_email = email is not None and email not in known_emails
        has_new_phone = phone_number is not None and phone_number not in known_phones
        if not (has_new_email or has_new_phone):
            return None

        primary = self._current_primary(cluster)
        contact = self.repository.create_secondary(email, phone_number, primary.id)
        cluster.append(contact)
        logger.info("Created secondary contact id=%s linked to id=%s", contact.id, primary.id)
        return contact

    # -- merge ------------------------------------------------------------------

    def merge(self, cluster: list[Contact]) -> list[Contact]:
        """Restore a single primary in *cluster*; return the demoted contacts.

        Every primary other than the most senior becomes its secondary, and
        any member still linked elsewhere is re-pointed at the survivor so
        the cluster stays one hop deep.
        """
        primaries = [c for c in cluster if c.is_primary]
        if not primaries:
            return []

        survivor = primaries[0]
        demoted = primaries[1:]
        for contact in demoted:
            self.repository.demote(contact, survivor.id)
            relinked = self.repository.relink_secondaries(contact.id, survivor.id)
            logger.info(
                "Demoted primary id=%s under id=%s (%d secondary contact(s) relinked)",
                contact.id,
                survivor.id,
                relinked,
            )

        for contact in cluster:
            if contact is survivor or contact.linked_id == survivor.id:
                continue
            logger.info("Relinking contact id=%s from id=%s to id=%s", contact.id, contact.linked_id, survivor.id)
            self.repository.update(contact, linked_id=survivor.id)

        return demoted

    # -- synthesis ----------------------------------------------------------------

    def synthesize(self, cluster: list[Contact]) -> IdentityResult:
        primary = self._current_primary(cluster)
        return IdentityResult(
            primary_contact_id=primary.id,
            emails=_distinct_primary_first((c.email for c in cluster), primary.email),
            phone_numbers=_distinct_primary_first((c.phone_number for c in cluster), primary.phone_number),
            secondary_contact_ids=[c.id for c in cluster if c.id != primary.id],
        )
