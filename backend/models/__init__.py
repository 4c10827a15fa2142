from models.connection import DatabaseConfig, DatabaseEntry, DatabaseListResponse, DatabaseStatus  # noqa: F401
from models.records import QueryRequest, InsertRequest, UpdateRequest, DeleteRequest  # noqa: F401
from models.schema import Column, RelationSpec, TableSchema, ValidationResult  # noqa: F401
