"""Identify: match an observation to an identity cluster, merging and extending it as needed."""

import logging
from collections.abc import Callable

from identilink.application.ports import ContactStore
from identilink.application.resolution import (
    build_identity,
    find_matches,
    has_new_information,
    resolve_primary,
)
from identilink.domain import PRIMARY, SECONDARY, ConsolidatedIdentity, InvalidInput

logger = logging.getLogger(__name__)


def _clean(value: object) -> str | None:
    """Blank or missing -> None; numbers (e.g. a JSON phone number) become strings."""
    if value is None:
        return None
    return str(value).strip() or None


class IdentityService:
    """Core flow: match -> resolve primary -> (maybe) add secondary -> consolidated view."""

    def __init__(
        self,
        store: ContactStore,
        *,
        normalize_phone: Callable[[str], str] | None = None,
    ) -> None:
        self._store = store
        self._normalize_phone = normalize_phone

    def identify(
        self, email: str | None, phone_number: str | int | None
    ) -> ConsolidatedIdentity:
        """Resolve (email, phone_number) to its consolidated identity.

        Raises InvalidInput when both are missing. Storage failures propagate as StorageError.
        The whole sequence runs inside one unit of work of the store.
        """
        email = _clean(email)
        phone_number = _clean(phone_number)
        if phone_number is not None and self._normalize_phone is not None:
            phone_number = self._normalize_phone(phone_number)
        if email is None and phone_number is None:
            raise InvalidInput("Email or phone number must be provided.")

        with self._store.unit_of_work() as repo:
            matches = find_matches(repo, email, phone_number)
            if not matches:
                contact = repo.insert(
                    email=email,
                    phone_number=phone_number,
                    link_precedence=PRIMARY,
                    linked_id=None,
                )
                logger.info("Created primary contact %s", contact.id)
                return build_identity([contact])

            primary = resolve_primary(repo, matches)
            cluster = repo.find_cluster_members(primary.id)

            if has_new_information(cluster, email, phone_number):
                secondary = repo.insert(
                    email=email,
                    phone_number=phone_number,
                    link_precedence=SECONDARY,
                    linked_id=primary.id,
                )
                logger.info(
                    "Created secondary contact %s linked to primary %s",
                    secondary.id,
                    primary.id,
                )
                cluster.append(secondary)

            return build_identity(cluster)
