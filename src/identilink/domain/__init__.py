"""Domain layer: entities and errors. No dependencies on outer layers."""

from identilink.domain.entities import (
    PRIMARY,
    SECONDARY,
    ConsolidatedIdentity,
    Contact,
    oldest,
)
from identilink.domain.errors import (
    IdentityError,
    InternalInconsistency,
    InvalidInput,
    StorageError,
)

__all__ = [
    "PRIMARY",
    "SECONDARY",
    "ConsolidatedIdentity",
    "Contact",
    "IdentityError",
    "InternalInconsistency",
    "InvalidInput",
    "StorageError",
    "oldest",
]
