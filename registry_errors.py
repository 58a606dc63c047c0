"""Error taxonomy for the employee registry persistence layer."""


class RegistryError(Exception):
    """Base class for every error raised by the registry."""


class RuntimeUnavailable(RegistryError):
    """The embedded database engine could not be loaded."""


class CorruptSnapshot(RegistryError):
    """The snapshot in the local store cannot be decoded or opened."""


class DuplicateKey(RegistryError):
    """A write collided with the unique registration constraint."""

    def __init__(self, registration: str):
        super().__init__(f"Registration '{registration}' is already in use.")
        self.registration = registration


class MissingIdentifier(RegistryError):
    """An update was requested for a record without an id."""


class StorageQuotaExceeded(RegistryError):
    """The local store refused a write because it would pass its quota."""


class ImportDecodeFailure(RegistryError):
    """An uploaded file is not a usable SQLite database."""


class MalformedRow(RegistryError, ValueError):
    """A database row does not decode into a valid record."""
