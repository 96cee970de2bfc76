"""Application ports (interfaces). Implemented by infrastructure adapters."""

from collections.abc import Iterable
from contextlib import AbstractContextManager
from typing import Protocol

from identilink.domain import Contact


class ContactRepository(Protocol):
    """Queries and mutates Contact rows. Lists are returned oldest first (created_at, then id)."""

    def find_by_email_or_phone(
        self, email: str | None, phone_number: str | None
    ) -> list[Contact]:
        """Return contacts whose email equals email OR whose phone_number equals phone_number.
        A None argument does not participate in matching."""
        ...

    def find_by_id(self, contact_id: int) -> Contact | None:
        """Return the contact with the given id, or None."""
        ...

    def find_by_ids(self, contact_ids: Iterable[int]) -> list[Contact]:
        """Return the contacts that exist among contact_ids."""
        ...

    def find_cluster_members(self, primary_id: int) -> list[Contact]:
        """Return the contact with id primary_id plus every contact whose linked_id is primary_id."""
        ...

    def insert(
        self,
        *,
        email: str | None,
        phone_number: str | None,
        link_precedence: str,
        linked_id: int | None = None,
    ) -> Contact:
        """Store a new contact. Assigns id, created_at and updated_at."""
        ...

    def update(
        self, contact_id: int, *, link_precedence: str, linked_id: int | None
    ) -> Contact | None:
        """Set link fields of one contact. Returns the updated contact, or None if not found."""
        ...

    def batch_update(
        self, contact_ids: Iterable[int], *, link_precedence: str, linked_id: int | None
    ) -> int:
        """Set link fields of many contacts at once. Returns the number of rows changed."""
        ...


class ContactStore(Protocol):
    """Hands out repositories bound to one atomic, mutually exclusive unit of work."""

    def unit_of_work(self) -> AbstractContextManager[ContactRepository]:
        """Every call on the yielded repository commits together, or not at all
        if the block raises. Concurrent units of work are serialized."""
        ...
