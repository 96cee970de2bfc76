"""In-memory implementation of ContactStore / ContactRepository (no DB)."""

import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime

from identilink.domain import Contact
from identilink.domain.entities import utcnow


def _by_age(contacts: Iterable[Contact]) -> list[Contact]:
    return sorted(contacts, key=lambda c: c.age_key)


class InMemoryContactStore:
    """Stores contacts in a dict keyed by id. Ids are assigned from a counter.

    A unit of work holds a re-entrant lock for its whole duration and restores the
    previous rows if the block raises.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._rows: dict[int, Contact] = {}
        self._last_id = 0
        self._clock = clock
        self._lock = threading.RLock()

    @contextmanager
    def unit_of_work(self) -> Iterator["InMemoryContactRepository"]:
        with self._lock:
            snapshot = dict(self._rows)
            last_id = self._last_id
            try:
                yield InMemoryContactRepository(self)
            except BaseException:
                self._rows = snapshot
                self._last_id = last_id
                raise

    def put(self, contact: Contact) -> Contact:
        """Store a fully specified contact as-is (fixtures, imported data)."""
        with self._lock:
            self._rows[contact.id] = contact
            self._last_id = max(self._last_id, contact.id)
        return contact

    def list_all(self) -> list[Contact]:
        """Return all contacts, oldest first."""
        with self._lock:
            return _by_age(self._rows.values())


class InMemoryContactRepository:
    """Repository view over an InMemoryContactStore, valid inside one unit of work."""

    def __init__(self, store: InMemoryContactStore) -> None:
        self._store = store

    def find_by_email_or_phone(
        self, email: str | None, phone_number: str | None
    ) -> list[Contact]:
        return _by_age(
            c
            for c in self._store._rows.values()
            if (email is not None and c.email == email)
            or (phone_number is not None and c.phone_number == phone_number)
        )

    def find_by_id(self, contact_id: int) -> Contact | None:
        return self._store._rows.get(contact_id)

    def find_by_ids(self, contact_ids: Iterable[int]) -> list[Contact]:
        rows = self._store._rows
        return _by_age(rows[i] for i in set(contact_ids) if i in rows)

    def find_cluster_members(self, primary_id: int) -> list[Contact]:
        return _by_age(
            c
            for c in self._store._rows.values()
            if c.id == primary_id or c.linked_id == primary_id
        )

    def insert(
        self,
        *,
        email: str | None,
        phone_number: str | None,
        link_precedence: str,
        linked_id: int | None = None,
    ) -> Contact:
        store = self._store
        now = store._clock()
        store._last_id += 1
        contact = Contact(
            id=store._last_id,
            email=email,
            phone_number=phone_number,
            linked_id=linked_id,
            link_precedence=link_precedence,
            created_at=now,
            updated_at=now,
        )
        store._rows[contact.id] = contact
        return contact

    def update(
        self, contact_id: int, *, link_precedence: str, linked_id: int | None
    ) -> Contact | None:
        contact = self._store._rows.get(contact_id)
        if contact is None:
            return None
        updated = replace(
            contact,
            link_precedence=link_precedence,
            linked_id=linked_id,
            updated_at=self._store._clock(),
        )
        self._store._rows[contact_id] = updated
        return updated

    def batch_update(
        self, contact_ids: Iterable[int], *, link_precedence: str, linked_id: int | None
    ) -> int:
        changed = 0
        for contact_id in set(contact_ids):
            if self.update(contact_id, link_precedence=link_precedence, linked_id=linked_id):
                changed += 1
        return changed
