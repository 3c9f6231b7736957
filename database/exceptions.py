"""Database exceptions."""


class DatabaseError(Exception):
    """Base exception for database provisioning errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when the server cannot be reached or rejects the credentials."""
    pass


class DatabaseSchemaError(DatabaseError):
    """Raised when a schema definition is invalid or cannot be applied."""
    pass
