"""
identilink core: clean-architecture layout.

- domain: Contact, ConsolidatedIdentity, error types. No outer dependencies.
- application: IdentityService (identify), resolution steps, ports (ContactStore, ContactRepository).
- infrastructure: adapters (InMemoryContactStore, Neo4jContactStore), phone canonicalization.
"""

from identilink.application import (
    ContactRepository,
    ContactStore,
    IdentityService,
)
from identilink.domain import (
    ConsolidatedIdentity,
    Contact,
    IdentityError,
    InternalInconsistency,
    InvalidInput,
    StorageError,
)
from identilink.infrastructure import InMemoryContactStore, Neo4jContactStore

__all__ = [
    "ConsolidatedIdentity",
    "Contact",
    "ContactRepository",
    "ContactStore",
    "IdentityError",
    "IdentityService",
    "InMemoryContactStore",
    "InternalInconsistency",
    "InvalidInput",
    "Neo4jContactStore",
    "StorageError",
]
