from core.converter import SchemaConverter  # noqa: F401
from core.database import Database, DatabaseManager  # noqa: F401
from core.exceptions import TablesmithError  # noqa: F401
from core.model_builder import ConversionOptions  # noqa: F401
from core.registry import Model, ModelRegistry  # noqa: F401
