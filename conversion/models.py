"""
Modelo de datos del pipeline de conversión.

Define la configuración declarativa de cada tabla (TableTranslation) y las
variantes de columna, seleccionadas explícitamente al construir la
configuración:

- PassthroughColumn: Se convierte con el registry de tipos (o un converter propio)
- TranslatedColumn: Además se resuelve contra otra colección (Translator)
- VirtualColumn: Solo existe en la configuración, no se convierte
- DynamicColumn: Se sintetiza por documento con una función

Ejemplo:
    TableTranslation(
        from_schema='public',
        from_table='employees',
        mongify_column_names=True,
        columns={
            'dept_id': TranslatedColumn(
                to='department',
                translator=Translator(
                    source_collection='departments',
                    source_id_field='_legacyId',
                ),
            ),
        },
    )
"""

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Union

from .errors import (
    ConfigurationError,
    EmbedConfigurationError,
    TranslatorConfigurationError,
)
from .naming import to_mongo_name

GEO_UDT_NAMES = ("geography", "geometry")


# =========================================================================
# METADATA DE ORIGEN
# =========================================================================


@dataclass
class ColumnInfo:
    """
    Metadata de una columna según information_schema.columns.

    Attributes:
        column_name (str): Nombre de la columna
        data_type (str): Tipo lógico (ej: 'integer', 'USER-DEFINED')
        udt_name (str): Tipo subyacente (ej: 'int4', 'geography')
        is_nullable (str): 'YES' / 'NO'
        column_default (str): Expresión default tal como la reporta PostgreSQL
    """

    column_name: str
    data_type: str
    udt_name: Optional[str] = None
    is_nullable: str = "YES"
    column_default: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "ColumnInfo":
        return cls(
            column_name=row["column_name"],
            data_type=row["data_type"],
            udt_name=row.get("udt_name"),
            is_nullable=row.get("is_nullable") or "YES",
            column_default=row.get("column_default"),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @property
    def nullable(self) -> bool:
        return self.is_nullable == "YES"

    @property
    def is_geo(self) -> bool:
        return (
            self.data_type.lower() == "user-defined"
            and self.udt_name in GEO_UDT_NAMES
        )


@dataclass
class ConversionResult:
    """
    Resultado explícito de un converter de columna.

    Si document_modified es True, el converter ya escribió en el documento
    y la asignación genérica (document[to] = valor) se omite.
    """

    value: Any = None
    document_modified: bool = False


# =========================================================================
# COLUMNAS (UNIÓN ETIQUETADA)
# =========================================================================


@dataclass
class SchemaOptions:
    """Override del fragmento de schema de una columna ('inclusive' | 'exclusive')."""

    json_schema: dict
    mode: str = "inclusive"

    def __post_init__(self):
        if self.mode not in ("inclusive", "exclusive"):
            raise ConfigurationError(
                f"SchemaOptions.mode inválido: '{self.mode}' (usar 'inclusive' o 'exclusive')"
            )


@dataclass
class Translator:
    """
    Regla de lookup contra otra colección ya poblada.

    Por defecto busca documentos de source_collection cuyo source_id_field
    esté en las claves del batch y copia desired_field (o _id) en cada
    documento que comparte la clave.

    Attributes:
        source_collection (str): Colección donde se hace el lookup
        source_id_field (str): Campo de join en source_collection
        desired_field (str): Campo a copiar (default '_id')
        source_query (callable): (translation, documents, keys) -> filtro Mongo
        source_projection (callable): (translation, documents, keys) -> projection
        processor (callable): (translation, groups, results) -> None
    """

    source_collection: str
    source_id_field: Optional[str] = None
    desired_field: Optional[str] = None
    source_query: Optional[Callable] = None
    source_projection: Optional[Callable] = None
    processor: Optional[Callable] = None

    @property
    def lookup_field(self) -> str:
        return self.desired_field or "_id"

    def validate(self):
        """
        Valida la combinación de campos del translator.

        Raises:
            TranslatorConfigurationError: Si falta source_collection, si no hay
                source_id_field ni el par source_query + source_projection, o si
                hay source_projection sin processor
        """
        if not self.source_collection:
            raise TranslatorConfigurationError(
                "Translator requiere source_collection."
            )
        if not self.source_id_field and (
            not self.source_query or not self.source_projection
        ):
            raise TranslatorConfigurationError(
                f"Translator sobre '{self.source_collection}': se requiere "
                f"source_query y source_projection si no se define source_id_field."
            )
        if self.source_projection and not self.processor:
            raise TranslatorConfigurationError(
                f"Translator sobre '{self.source_collection}': si se usa "
                f"source_projection se debe definir un processor."
            )


@dataclass
class ColumnTranslation:
    """
    Base de las variantes de columna.

    Attributes:
        to (str): Campo destino en el documento
        index (bool|dict): Crear índice sobre el campo (dict = opciones)
        schema_options (SchemaOptions): Override del schema generado
    """

    to: Optional[str] = None
    index: Union[bool, dict, None] = None
    schema_options: Optional[SchemaOptions] = None

    converter = None
    translator = None
    is_virtual = False

    def with_target(self, to: str) -> "ColumnTranslation":
        return replace(self, to=to)


@dataclass
class PassthroughColumn(ColumnTranslation):
    converter: Optional[Callable] = None


@dataclass
class TranslatedColumn(ColumnTranslation):
    translator: Optional[Translator] = None
    converter: Optional[Callable] = None

    def __post_init__(self):
        if self.translator is None:
            raise TranslatorConfigurationError(
                f"TranslatedColumn '{self.to}' requiere un Translator."
            )


@dataclass
class VirtualColumn(ColumnTranslation):
    is_virtual = True


@dataclass
class DynamicColumn:
    """
    Columna sintetizada por documento.

    Attributes:
        value (callable): (translation, document) -> valor
        json_schema (dict): Fragmento de schema a documentar
    """

    value: Callable
    json_schema: Optional[dict] = None


@dataclass
class IndexDefinition:
    """Índice declarado a nivel de tabla (aplicado una vez antes del primer batch)."""

    descriptor: Union[dict, list, str]
    options: Optional[dict] = None

    def keys(self):
        """Retorna las claves en el formato de pymongo create_index."""
        if isinstance(self.descriptor, dict):
            return list(self.descriptor.items())
        return self.descriptor

    def to_dict(self) -> dict:
        return {"descriptor": self.descriptor, "options": dict(self.options or {})}


# =========================================================================
# UNIDAD DE CONVERSIÓN
# =========================================================================


@dataclass
class TableTranslation:
    """
    Mapeo declarativo de una tabla PostgreSQL a una colección (o embed) MongoDB.

    Las unidades se preparan con prepare() (copia validada, defaults
    resueltos) y se completan con finalize_columns() una vez conocida la
    metadata de la tabla.
    """

    from_schema: str
    from_table: str
    to_collection: Optional[str] = None

    # Embeds
    embed_in: Optional[str] = None
    embed_in_root: bool = False
    embed_single: bool = False
    embed_array_field: Optional[str] = None
    embed_source_id_column: Optional[str] = None
    embed_target_id_column: str = "_id"
    preserve_embed_source_id: bool = False

    # Columnas
    columns: Dict[str, Any] = field(default_factory=dict)
    dynamic_columns: Dict[str, DynamicColumn] = field(default_factory=dict)
    mongify_column_names: bool = False
    mongify_table_name: bool = False

    # Campos inyectados
    include_id: bool = True
    include_timestamps: bool = True
    include_version: bool = True
    include_nulls: bool = False
    auto_legacy_id: bool = False
    legacy_id_destination_name: str = "_legacyId"

    # Hooks
    post_process: Optional[Callable] = None
    on_persist: Optional[Callable] = None
    ignore_deletes_on_persist: bool = False
    filter: Optional[Callable] = None
    delete_fields: List[str] = field(default_factory=list)

    # Dependencias, índices y filtro SQL
    added_dependencies: List[str] = field(default_factory=list)
    ignore_dependencies: bool = False
    indexes: List[IndexDefinition] = field(default_factory=list)
    custom_where: Optional[str] = None

    finalized: bool = field(default=False, repr=False, compare=False)

    # --- Propiedades derivadas ---

    @property
    def embed_in_parsed(self) -> Optional[List[str]]:
        return self.embed_in.split(".") if self.embed_in else None

    @property
    def has_embed(self) -> bool:
        return bool(self.embed_in or self.embed_in_root)

    @property
    def is_deep_embed(self) -> bool:
        parsed = self.embed_in_parsed
        return bool(parsed) and len(parsed) > 1 and not self.embed_in_root

    @property
    def node_name(self) -> str:
        """Nombre del nodo en el grafo de dependencias."""
        return self.from_table if self.has_embed else self.to_collection

    @property
    def embed_field_path(self) -> Optional[str]:
        """Path del embed sin posicionales ('.$'), para índices."""
        return self.embed_in.replace(".$", "") if self.embed_in else None

    @property
    def embed_source_field(self) -> Optional[str]:
        """Campo del documento que contiene la clave de join del embed."""
        if not self.embed_source_id_column:
            return None
        return self.target_name(self.embed_source_id_column)

    @property
    def label(self) -> str:
        if self.has_embed:
            return f"{self.from_table} -> {self.to_collection}"
        return self.to_collection or self.from_table

    def target_name(self, column_name: str) -> str:
        return to_mongo_name(column_name) if self.mongify_column_names else column_name

    def translated_columns(self):
        """Itera (nombre_columna, columna) de las columnas con translator."""
        for column_name, column in self.columns.items():
            if column.translator is not None:
                yield column_name, column

    # --- Preparación ---

    def prepare(self) -> "TableTranslation":
        """
        Retorna una copia validada con defaults resueltos.

        - to_collection: nombre de la tabla (camelCase si mongify_table_name)
        - columns: str → PassthroughColumn(to=str); 'to' faltante → nombre normalizado

        Raises:
            ConfigurationError: Si la unidad es inválida (ver validate())
        """
        self.validate()

        prepared = replace(
            self,
            columns={},
            dynamic_columns=dict(self.dynamic_columns or {}),
            delete_fields=list(self.delete_fields or []),
            added_dependencies=list(self.added_dependencies or []),
            indexes=list(self.indexes or []),
            finalized=False,
        )
        if not prepared.to_collection:
            prepared.to_collection = (
                to_mongo_name(self.from_table)
                if self.mongify_table_name
                else self.from_table
            )

        for column_name, column in (self.columns or {}).items():
            if isinstance(column, str):
                column = PassthroughColumn(to=column)
            elif not isinstance(column, ColumnTranslation):
                raise ConfigurationError(
                    f"Columna '{column_name}' de {self.from_table}: se esperaba "
                    f"ColumnTranslation o str, se recibió {type(column).__name__}"
                )
            if not column.to:
                column = column.with_target(prepared.target_name(column_name))
            prepared.columns[column_name] = column

        return prepared

    def validate(self):
        """
        Valida los invariantes de la unidad antes de cualquier I/O.

        Raises:
            ConfigurationError: Falta from_schema / from_table
            EmbedConfigurationError: Embed profundo sin on_persist, embed sin
                to_collection o sin embed_source_id_column
            TranslatorConfigurationError: Translator incompleto
        """
        if not self.from_schema:
            raise ConfigurationError("from_schema debe estar definido.")
        if not self.from_table:
            raise ConfigurationError("from_table debe estar definido.")

        if self.is_deep_embed and not self.on_persist:
            raise EmbedConfigurationError(
                f"{self.from_table}: embeds en sub-documentos profundos "
                f"('{self.embed_in}') requieren on_persist."
            )
        if self.has_embed and not self.to_collection:
            raise EmbedConfigurationError(
                f"{self.from_table}: los embeds requieren to_collection."
            )
        if self.has_embed and not self.embed_source_id_column:
            raise EmbedConfigurationError(
                f"{self.from_table}: los embeds requieren embed_source_id_column."
            )

        for column in (self.columns or {}).values():
            translator = getattr(column, "translator", None)
            if translator is not None:
                translator.validate()

    def finalize_columns(self, metadata: Dict[str, ColumnInfo]):
        """
        Completa la configuración de columnas con la metadata de la tabla.

        Se ejecuta una sola vez por unidad preparada:
        1. Legacy id: columna 'id' no-uuid → legacy_id_destination_name (indexada).
           Los 'id' uuid se convierten directo a _id, no requieren legacy.
        2. Columnas de la tabla sin configurar → passthrough con nombre normalizado
        3. Columna de join del embed → resuelta a su campo destino

        Args:
            metadata: Dict column_name → ColumnInfo

        Raises:
            EmbedConfigurationError: Si la columna de join del embed no existe
        """
        if self.finalized:
            return

        if (
            self.auto_legacy_id
            and "id" not in self.columns
            and "id" in metadata
            and metadata["id"].udt_name != "uuid"
        ):
            self.columns["id"] = PassthroughColumn(
                to=self.legacy_id_destination_name, index=True
            )

        merged = {}
        for column_name in metadata:
            merged[column_name] = self.columns.get(column_name) or PassthroughColumn(
                to=self.target_name(column_name)
            )
        for column_name, column in self.columns.items():
            if column_name not in merged:
                merged[column_name] = column
        self.columns = merged

        if self.has_embed:
            source_field = self.embed_source_field
            targets = {column.to for column in self.columns.values()}
            if source_field not in targets:
                if self.embed_source_id_column not in metadata:
                    raise EmbedConfigurationError(
                        f"Columna de join del embed ({self.embed_source_id_column}) "
                        f"no encontrada en {self.from_schema}.{self.from_table}."
                    )
                column = self.columns[self.embed_source_id_column]
                self.columns[self.embed_source_id_column] = column.with_target(
                    source_field
                )

        self.finalized = True


# =========================================================================
# OPCIONES Y RESULTADOS
# =========================================================================


@dataclass
class ConverterOptions:
    """Opciones globales del conversor (ver config.DEFAULT_CONVERTER_OPTIONS)."""

    postgres_uri: Optional[str] = None
    mongo_uri: Optional[str] = None
    mongo_database_name: Optional[str] = None
    postgres_ssl: bool = False
    batch_size: int = 5000
    include_nulls: bool = False
    cache_directory: str = "./ptmTemp"
    use_metadata_cache: bool = False
    create_metadata_cache: bool = False
    base_collection_schema: Optional[dict] = None
    schema_default_value_converter: Optional[Callable] = None

    def __post_init__(self):
        if not self.batch_size or self.batch_size < 1:
            raise ConfigurationError(
                f"batch_size debe ser un entero positivo (recibido: {self.batch_size})"
            )


@dataclass
class DocumentGroup:
    """Documentos de un batch que comparten una misma clave de join."""

    key: Any
    docs: List[dict] = field(default_factory=list)


@dataclass
class TranslatorDefinition:
    """
    Descripción de cómo una tabla quedó mapeada a una colección.

    Attributes:
        collection (str): Colección destino
        table (str): Tabla de origen
        schema (str): Schema de origen
        column_mappings (dict): campo destino → columna de origen
    """

    collection: str
    table: str
    schema: str
    column_mappings: Dict[str, str] = field(default_factory=dict)
