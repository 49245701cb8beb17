"""Exceptions raised by the backup, import and obfuscation layer."""


class SnapshotError(Exception):
    """Base exception for snapshot handling."""

    pass


class SnapshotFormatError(SnapshotError):
    """Raised when an import document cannot be parsed or has the wrong shape."""

    pass


class SnapshotValidationError(SnapshotFormatError):
    """Raised when a snapshot fails validation.

    Carries the field-level messages so callers can show all problems at once.
    """

    def __init__(self, errors: list[str]):
        super().__init__("Invalid backup file format: " + "; ".join(errors))
        self.errors = errors


class DecryptionError(SnapshotError):
    """Raised when an obfuscated payload cannot be restored with the given passphrase."""

    pass
