"""
Error taxonomy for schema conversion, relation management and record access.

Validation-phase errors (unsupported types, bad schemas, bad relation sets) are
raised before any model or table is touched. Errors that aggregate several
problems carry the full list in ``errors`` so a caller gets one complete
diagnostic per round trip.
"""
from typing import Optional


class TablesmithError(Exception):
    """Root of every error raised by the core."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])


class UnsupportedTypeError(TablesmithError):
    """Logical column type missing from the type table (strict mode)."""

    status_code = 400

    def __init__(self, logical_type: str):
        super().__init__(f"Unsupported column type: {logical_type}")
        self.logical_type = logical_type


class SchemaValidationError(TablesmithError):
    """Structural problems in a table schema."""

    status_code = 400


class RelationValidationError(TablesmithError):
    """One or more relations failed referential checks. Always a batch."""

    status_code = 400


class UnknownRelationTypeError(TablesmithError):
    status_code = 400

    def __init__(self, relation_type: str, source: str = ""):
        where = f" on '{source}'" if source else ""
        super().__init__(f"Unknown relation type: {relation_type}{where}")
        self.relation_type = relation_type


class ModelNotFoundError(TablesmithError):
    """A table/model name is not present in the registry."""

    status_code = 404

    def __init__(self, name: str, available: Optional[list[str]] = None):
        super().__init__(f"Model '{name}' not found in registry")
        self.name = name
        self.available = sorted(available or [])


class ConflictError(TablesmithError):
    """Attempted to create a table that already exists."""

    status_code = 409


class DatabaseNotFoundError(TablesmithError):
    status_code = 404

    def __init__(self, name: str, available: Optional[list[str]] = None):
        super().__init__(f"Database '{name}' not found")
        self.name = name
        self.available = sorted(available or [])


class DatabaseConnectionError(TablesmithError):
    """Connect/authenticate failed. Never retried inside the core."""

    status_code = 503


class RecordValidationError(TablesmithError):
    """Row data rejected by column validators or nullability."""

    status_code = 422


class QueryError(TablesmithError):
    """Malformed query input: unknown columns, missing where clause, bad include."""

    status_code = 400
