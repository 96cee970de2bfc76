"""Domain entities: Contact and the consolidated identity view."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

PRIMARY = "primary"
SECONDARY = "secondary"
LINK_PRECEDENCES = (PRIMARY, SECONDARY)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Contact:
    """
    One partial observation of a customer (email and/or phone number).
    A primary contact represents its cluster; a secondary points at its primary via linked_id.
    """

    id: int
    email: str | None = None
    phone_number: str | None = None
    linked_id: int | None = None
    link_precedence: str = PRIMARY
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    deleted_at: datetime | None = None

    def __post_init__(self):
        if self.link_precedence not in LINK_PRECEDENCES:
            raise ValueError(
                f"Contact link_precedence must be one of {LINK_PRECEDENCES}, "
                f"got {self.link_precedence!r}."
            )

    @property
    def is_primary(self) -> bool:
        return self.link_precedence == PRIMARY

    @property
    def age_key(self) -> tuple[datetime, int]:
        """Total order for "oldest": earliest created_at, then lowest id."""
        return (self.created_at, self.id)


def oldest(contacts) -> Contact:
    """Return the oldest contact by age_key. contacts must be non-empty."""
    return min(contacts, key=lambda c: c.age_key)


@dataclass(frozen=True)
class ConsolidatedIdentity:
    """Externally visible view of one cluster (primary + secondaries)."""

    primary_contact_id: int
    emails: list[str] = field(default_factory=list)
    phone_numbers: list[str] = field(default_factory=list)
    secondary_contact_ids: list[int] = field(default_factory=list)

    def to_response(self) -> dict:
        """Wire shape returned by POST /identify."""
        return {
            "contact": {
                "primaryContactId": self.primary_contact_id,
                "emails": list(self.emails),
                "phoneNumbers": list(self.phone_numbers),
                "secondaryContactIds": list(self.secondary_contact_ids),
            }
        }
