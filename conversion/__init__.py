"""
Pipeline de conversión de tablas PostgreSQL a colecciones MongoDB.

Cada tabla se declara como un TableTranslation (ver translations/) y el
TableConverter la procesa en orden de dependencias.

Estructura:
    models.py: Configuración declarativa (TableTranslation, columnas, Translator)
    errors.py: Jerarquía de errores (ConfigurationError, PersistenceError, ...)
    naming.py: snake_case → camelCase
    types.py: Registry de tipos (converters y fragmentos de schema)
    dependencies.py: Grafo de dependencias y orden topológico
    schema.py: Generación de JSON Schema (SchemaRegistry por corrida)
    persistence.py: insert_many con InsertResult y updates de embeds
    processor.py: BatchRecordProcessor (cursor server-side, batches)
    table_converter.py: Fachada TableConverter
"""

from .errors import (
    CircularDependencyError,
    ConfigurationError,
    ConversionError,
    EmbedConfigurationError,
    PersistenceError,
    SchemaGenerationError,
    TranslatorConfigurationError,
    UnsupportedTypeError,
)
from .models import (
    ColumnInfo,
    ConversionResult,
    DynamicColumn,
    IndexDefinition,
    PassthroughColumn,
    SchemaOptions,
    TableTranslation,
    TranslatedColumn,
    Translator,
    TranslatorDefinition,
    VirtualColumn,
)
from .naming import to_mongo_name
from .table_converter import TableConverter

__all__ = [
    "CircularDependencyError",
    "ColumnInfo",
    "ConfigurationError",
    "ConversionError",
    "ConversionResult",
    "DynamicColumn",
    "EmbedConfigurationError",
    "IndexDefinition",
    "PassthroughColumn",
    "PersistenceError",
    "SchemaGenerationError",
    "SchemaOptions",
    "TableConverter",
    "TableTranslation",
    "TranslatedColumn",
    "Translator",
    "TranslatorConfigurationError",
    "TranslatorDefinition",
    "UnsupportedTypeError",
    "VirtualColumn",
    "to_mongo_name",
]
