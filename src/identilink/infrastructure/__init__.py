"""Infrastructure layer: concrete implementations of application ports."""

from identilink.infrastructure.memory_repository import (
    InMemoryContactRepository,
    InMemoryContactStore,
)
from identilink.infrastructure.persistence.neo4j_repository import (
    Neo4jContactRepository,
    Neo4jContactStore,
    ensure_contact_schema,
)
from identilink.infrastructure.phone import canonical_phone

__all__ = [
    "InMemoryContactRepository",
    "InMemoryContactStore",
    "Neo4jContactRepository",
    "Neo4jContactStore",
    "canonical_phone",
    "ensure_contact_schema",
]
