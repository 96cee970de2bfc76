"""Identity resolution steps: match, resolve primary (merge / orphan recovery), novelty, view.

All storage access goes through the ContactRepository passed in; nothing here keeps state
between calls.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from identilink.application.ports import ContactRepository
from identilink.domain import (
    PRIMARY,
    SECONDARY,
    ConsolidatedIdentity,
    Contact,
    InternalInconsistency,
    InvalidInput,
    oldest,
)

logger = logging.getLogger(__name__)


def find_matches(
    repository: ContactRepository, email: str | None, phone_number: str | None
) -> list[Contact]:
    """Return every contact sharing the email or the phone number (exact equality)."""
    if email is None and phone_number is None:
        raise InvalidInput("Email or phone number must be provided.")
    return repository.find_by_email_or_phone(email, phone_number)


@dataclass(frozen=True)
class _Traversal:
    primaries: list[Contact]
    visited: list[Contact]


def _walk_to_primaries(
    repository: ContactRepository, matches: list[Contact]
) -> _Traversal:
    """Follow linked_id upward from every match, one storage round trip per level.

    Cycles terminate via the visited set; a linked_id whose target does not exist is skipped.
    """
    known: dict[int, Contact] = {c.id: c for c in matches}
    visited: dict[int, Contact] = {}
    primaries: dict[int, Contact] = {}
    frontier = list(known)

    while frontier:
        parent_ids: set[int] = set()
        for contact_id in frontier:
            if contact_id in visited:
                continue
            contact = known[contact_id]
            visited[contact_id] = contact
            if contact.is_primary:
                primaries[contact_id] = contact
            elif contact.linked_id is not None and contact.linked_id not in visited:
                parent_ids.add(contact.linked_id)

        missing = [pid for pid in parent_ids if pid not in known]
        if missing:
            for parent in repository.find_by_ids(missing):
                known[parent.id] = parent
        frontier = [pid for pid in parent_ids if pid in known]

    return _Traversal(
        primaries=list(primaries.values()), visited=list(visited.values())
    )


def _recover_orphans(repository: ContactRepository, matches: list[Contact]) -> Contact:
    candidate = oldest(matches)
    if candidate.is_primary:
        return candidate
    promoted = repository.update(candidate.id, link_precedence=PRIMARY, linked_id=None)
    if promoted is None:
        raise InternalInconsistency(
            f"Contact {candidate.id} vanished while being promoted to primary."
        )
    logger.info(
        "Orphan recovery: promoted contact %s (dangling linked_id %s) to primary",
        candidate.id,
        candidate.linked_id,
    )
    return promoted


def _merge_into(
    repository: ContactRepository, survivor: Contact, traversal: _Traversal
) -> None:
    # Phase one: collect every id that must point at the survivor, walking down from each
    # demoted primary and each misdirected chain link until no new contact appears.
    demote: dict[int, None] = {}
    frontier = [p.id for p in traversal.primaries if p.id != survivor.id]
    frontier += [
        c.id
        for c in traversal.visited
        if not c.is_primary and c.linked_id != survivor.id
    ]
    while frontier:
        found: list[int] = []
        for parent_id in frontier:
            if parent_id == survivor.id or parent_id in demote:
                continue
            demote[parent_id] = None
            for member in repository.find_cluster_members(parent_id):
                if member.id != survivor.id and member.id not in demote:
                    found.append(member.id)
        frontier = found

    # Phase two: apply as one batch.
    ids = sorted(demote)
    changed = repository.batch_update(ids, link_precedence=SECONDARY, linked_id=survivor.id)
    logger.info(
        "Merged %d contact(s) into primary %s: %s", changed, survivor.id, ids
    )


def resolve_primary(repository: ContactRepository, matches: list[Contact]) -> Contact:
    """Return the single authoritative primary for the clusters touched by matches.

    - no reachable primary: the oldest match is promoted (orphan recovery);
    - one reachable primary: returned unchanged;
    - several: the oldest survives, every other primary and its members are relinked to it.
    """
    if not matches:
        raise InternalInconsistency("resolve_primary called without matches.")

    traversal = _walk_to_primaries(repository, matches)
    if not traversal.primaries:
        return _recover_orphans(repository, matches)
    if len(traversal.primaries) == 1:
        return traversal.primaries[0]

    survivor = oldest(traversal.primaries)
    _merge_into(repository, survivor, traversal)
    return survivor


def has_new_information(
    cluster: Iterable[Contact], email: str | None, phone_number: str | None
) -> bool:
    """True if email or phone_number is given and not yet present anywhere in the cluster."""
    cluster = list(cluster)
    if email is not None and email not in {c.email for c in cluster}:
        return True
    if phone_number is not None and phone_number not in {c.phone_number for c in cluster}:
        return True
    return False


def _append_unique(values: list[str], value: str | None) -> None:
    if value and value not in values:
        values.append(value)


def build_identity(cluster: Iterable[Contact]) -> ConsolidatedIdentity:
    """Project a cluster into its consolidated view. Primary's email/phone come first."""
    cluster = list(cluster)
    if not cluster:
        raise InternalInconsistency("Cannot build an identity from an empty cluster.")

    primaries = [c for c in cluster if c.is_primary]
    primary = oldest(primaries) if primaries else oldest(cluster)
    others = [c for c in cluster if c.id != primary.id]

    emails: list[str] = []
    phone_numbers: list[str] = []
    _append_unique(emails, primary.email)
    _append_unique(phone_numbers, primary.phone_number)
    for contact in others:
        _append_unique(emails, contact.email)
        _append_unique(phone_numbers, contact.phone_number)

    return ConsolidatedIdentity(
        primary_contact_id=primary.id,
        emails=emails,
        phone_numbers=phone_numbers,
        secondary_contact_ids=[c.id for c in others],
    )
