"""Database-specific exceptions for the progress engine."""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class RecordNotFoundError(DatabaseError):
    """Raised when a required record (user, session, custom word) is missing."""

    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class DuplicateRecordError(DatabaseError):
    """Raised when attempting to create a duplicate record."""

    pass


class ConstraintViolationError(DatabaseError):
    """Raised when a write would break a record's lifecycle rules."""

    pass


class SessionAlreadyClosedError(ConstraintViolationError):
    """Raised when closing a practice session a second time."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} is already closed")
        self.session_id = session_id


class ConnectionError(DatabaseError):
    """Raised when database connection fails."""

    pass
