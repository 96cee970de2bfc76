"""Application layer: use case, resolution steps, and ports. Depends only on domain."""

from identilink.application.identity_service import IdentityService
from identilink.application.ports import ContactRepository, ContactStore
from identilink.application.resolution import (
    build_identity,
    find_matches,
    has_new_information,
    resolve_primary,
)

__all__ = [
    "ContactRepository",
    "ContactStore",
    "IdentityService",
    "build_identity",
    "find_matches",
    "has_new_information",
    "resolve_primary",
]
