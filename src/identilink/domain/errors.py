"""Error taxonomy for identity resolution."""


class IdentityError(Exception):
    """Base class for errors raised by the identity core."""


class InvalidInput(IdentityError):
    """Neither email nor phone number was given."""


class StorageError(IdentityError):
    """The storage collaborator failed (connectivity, constraint, timeout). Never retried here."""


class InternalInconsistency(IdentityError):
    """Cluster data violates an invariant that cannot be repaired automatically."""
