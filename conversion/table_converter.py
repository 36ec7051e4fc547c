"""
Fachada del pipeline: convierte un conjunto de tablas en orden de dependencias.

Responsabilidades:
- Mezclar las opciones del caller sobre config.DEFAULT_CONVERTER_OPTIONS
- Preparar y validar cada unidad (errores de configuración abortan todo)
- Ordenar las unidades con DependencyResolver
- Por unidad: tomar una conexión PostgreSQL nueva, leer la metadata y
  ejecutar el modo pedido (datos, schema o definición de translator)
- Aislar las fallas por unidad: se reportan, se descarta la conexión y se
  sigue con la siguiente unidad

Uso:
    converter = TableConverter(batch_size=1000)
    converter.convert_tables(*translations)
    schemas = converter.generate_schemas(*translations)
    converter.close()
"""

import sys
import traceback

from bson import json_util
from psycopg2.extras import RealDictCursor

import config
import database
import metadata_cache

from .dependencies import DependencyResolver
from .errors import ConfigurationError, ConversionError, PersistenceError
from .models import ColumnInfo, ConverterOptions, TranslatorDefinition
from .processor import BatchRecordProcessor
from .schema import SchemaGenerator, SchemaRegistry

COLUMNS_QUERY = """
    SELECT column_name, data_type, udt_name, is_nullable, column_default
    FROM information_schema.columns
    WHERE table_schema = %s AND table_name = %s
    ORDER BY ordinal_position
"""


class TableConverter:
    """
    Orquesta la conversión de unidades PostgreSQL → MongoDB.

    Attributes:
        options (ConverterOptions): Opciones efectivas de la corrida
        schema_registry (SchemaRegistry): Schemas generados en esta corrida
        connection_provider: Módulo/objeto con get_postgres_connection,
            release_postgres_connection y get_mongo_connection
        pg_connection: Conexión PostgreSQL de la unidad en curso
        mongo_db: Database de MongoDB (una por corrida, compartida)
    """

    def __init__(self, **options):
        self.options = ConverterOptions(**config.get_converter_options(**options))
        self.schema_registry = SchemaRegistry(self.options.base_collection_schema)
        self.schema_generator = SchemaGenerator(
            self.schema_registry, self.options.schema_default_value_converter
        )
        self.metadata_cache = metadata_cache.MetadataCache(self.options.cache_directory)
        self.connection_provider = database
        self.pg_connection = None
        self.mongo_db = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def generated_schemas(self):
        return self.schema_registry.schemas

    # =========================================================================
    # MÉTODOS PÚBLICOS
    # =========================================================================

    def convert_tables(self, *translations):
        """
        Convierte los datos de todas las unidades en orden de dependencias.

        Raises:
            ConfigurationError: Unidad inválida o dependencia circular
                (antes de procesar cualquier unidad)
        """
        for translation in self.resolve(*translations).units:
            self._run_unit(self._convert_table_internal, translation)
        self._purge_connection()

    def convert_table(self, translation):
        """Convierte una única unidad. Los errores se propagan al caller."""
        try:
            return self._convert_table_internal(translation.prepare())
        finally:
            self._purge_connection()

    def generate_schemas(self, *translations):
        """
        Genera los JSON Schema de las colecciones resultantes.

        Returns:
            dict: colección → JSON Schema (el registry de esta corrida)
        """
        for translation in self.resolve(*translations).units:
            self._run_unit(self._generate_schema_internal, translation)
        self._purge_connection()
        return self.schema_registry.schemas

    def create_translator_definitions(self, *translations):
        """
        Describe cómo quedó mapeada cada tabla (campo destino → columna origen).

        Returns:
            list: TranslatorDefinition por unidad procesada sin error
        """
        definitions = []
        for translation in self.resolve(*translations).units:
            definition = self._run_unit(self._create_translator_definition, translation)
            if definition:
                definitions.append(definition)
        self._purge_connection()
        return definitions

    def resolve(self, *translations):
        """
        Prepara las unidades y calcula su orden.

        Returns:
            DependencyResolution: grafo, orden de nodos y unidades preparadas
        """
        prepared = [translation.prepare() for translation in translations]
        return DependencyResolver(prepared).resolve()

    def close(self):
        self._purge_connection()

    # =========================================================================
    # MODOS POR UNIDAD
    # =========================================================================

    def _convert_table_internal(self, translation):
        self._connect()
        print(f"\n🚚 Procesando registros {translation.from_table} => {translation.to_collection}")
        columns = self.get_all_columns(translation.from_schema, translation.from_table)
        processor = BatchRecordProcessor(
            translation, columns, self.pg_connection, self.mongo_db, self.options
        )
        return processor.run()

    def _generate_schema_internal(self, translation):
        self._connect()
        columns = self.get_all_columns(translation.from_schema, translation.from_table)
        self.schema_generator.generate(translation, columns)

    def _create_translator_definition(self, translation):
        self._connect()
        print(f"\n📋 Procesando metadata {translation.from_table} => {translation.to_collection}")
        columns = self.get_all_columns(translation.from_schema, translation.from_table)
        translation.finalize_columns(columns)
        column_mappings = {
            column.to: column_name for column_name, column in translation.columns.items()
        }
        return TranslatorDefinition(
            collection=translation.to_collection,
            table=translation.from_table,
            schema=translation.from_schema,
            column_mappings=column_mappings,
        )

    def _run_unit(self, unit_function, translation):
        """Ejecuta un modo para una unidad aislando sus fallas."""
        try:
            return unit_function(translation)
        except Exception as e:
            self._report_error(translation, e)
            self._purge_connection()
            return None

    # =========================================================================
    # METADATA
    # =========================================================================

    def get_all_columns(self, schema, table):
        """
        Obtiene la metadata de columnas de una tabla (con cache opcional).

        Returns:
            dict: column_name → ColumnInfo, en orden de la tabla

        Raises:
            ConfigurationError: Si la tabla no existe o no tiene columnas
        """
        if self.options.use_metadata_cache:
            cached = self.metadata_cache.load(schema, table)
            if cached is not None:
                print(f"   💾 Metadata cacheada encontrada para {schema}.{table}")
                return cached

        with self.pg_connection.cursor(cursor_factory=RealDictCursor) as cursor:
            cursor.execute(COLUMNS_QUERY, (schema, table))
            rows = cursor.fetchall()

        if not rows:
            raise ConfigurationError(f"La tabla {schema}.{table} no existe o no tiene columnas.")

        columns = {row["column_name"]: ColumnInfo.from_row(row) for row in rows}
        if self.options.create_metadata_cache:
            self.metadata_cache.save(schema, table, columns)
        return columns

    # =========================================================================
    # CONEXIONES
    # =========================================================================

    def _connect(self):
        """Toma una conexión PostgreSQL nueva por unidad; MongoDB se conecta una vez."""
        provider = self.connection_provider
        if self.pg_connection is None:
            print("🔌 Conectando a bases de datos...")
        else:
            self._purge_connection()
        self.pg_connection = provider.get_postgres_connection(
            self.options.postgres_uri, self.options.postgres_ssl
        )
        if self.mongo_db is None:
            self.mongo_db = provider.get_mongo_connection(
                self.options.mongo_uri, self.options.mongo_database_name
            )
            print("✅ Conexiones establecidas")

    def _purge_connection(self):
        if self.pg_connection is not None:
            self.connection_provider.release_postgres_connection(
                self.options.postgres_uri, self.pg_connection
            )
            self.pg_connection = None

    def _report_error(self, translation, error):
        print(
            f"\n❌ Error procesando {translation.from_schema}.{translation.from_table} "
            f"=> {translation.to_collection}: {error}",
            file=sys.stderr,
        )
        if isinstance(error, PersistenceError) and error.documents:
            print(
                f"   Documentos del batch ({len(error.documents)}):\n"
                f"{json_util.dumps(error.documents, indent=2)}",
                file=sys.stderr,
            )
        elif not isinstance(error, ConversionError):
            traceback.print_exc()
