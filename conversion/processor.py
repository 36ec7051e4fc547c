"""
Procesamiento por batches de una unidad de conversión.

Flujo (una unidad, secuencial):
1. Contar filas de origen (respetando custom_where). 0 filas → fin
2. Completar la configuración de columnas (una sola vez, antes del cursor)
3. Aplicar índices declarados en la unidad
4. Abrir un cursor server-side (columnas geo vía ST_AsGeoJSON)
5. Por cada batch de batch_size filas:
   a. Fila → documento (converters, columnas dinámicas, _id, timestamps, __v)
   b. post_process
   c. Translators (lookup contra otras colecciones)
   d. filter, purga de nulls, delete_fields
   e. Persistir: on_persist | insert_many con recuperación | update de embeds
6. Cerrar el cursor cuando el conteo acumulado alcanza el total

El único reintento del sistema es el de insert_many: si el driver reporta
el índice del documento fallido, se descarta hasta ese índice inclusive y
se reintenta el resto.
"""

import asyncio
import inspect
import sys
import uuid
from datetime import datetime, timezone

from bson import ObjectId
from psycopg2 import sql
from psycopg2.extras import RealDictCursor

from .errors import ConfigurationError
from .models import ConversionResult, DocumentGroup
from .persistence import build_embed_update, insert_documents, update_embedded
from .types import get_converter


# =========================================================================
# HELPERS
# =========================================================================


async def _await(awaitable):
    return await awaitable


def purge_nulls(documents):
    """Elimina los campos con valor None de primer nivel de cada documento."""
    for document in documents:
        for key in [key for key, value in document.items() if value is None]:
            del document[key]


def process_deletes(translation, documents):
    """Elimina los delete_fields (campos auxiliares) de cada documento."""
    if not translation.delete_fields:
        return
    for document in documents:
        for field_name in translation.delete_fields:
            document.pop(field_name, None)


def _group_key(value):
    try:
        hash(value)
        return value
    except TypeError:
        return repr(value)


def _source_relation(translation):
    return sql.SQL("{}.{}").format(
        sql.Identifier(translation.from_schema), sql.Identifier(translation.from_table)
    )


def _where_clause(translation):
    if translation.custom_where:
        return sql.SQL(" WHERE ") + sql.SQL(translation.custom_where)
    return sql.SQL("")


def build_count_query(translation):
    return (
        sql.SQL("SELECT COUNT(*) FROM ")
        + _source_relation(translation)
        + _where_clause(translation)
    )


def build_select_query(translation, columns):
    """
    SELECT de todas las columnas; geography/geometry se convierten a GeoJSON
    en el servidor para que el driver retorne texto parseable.
    """
    expressions = []
    for info in columns.values():
        if info.is_geo:
            expressions.append(
                sql.SQL("ST_AsGeoJSON({column}) AS {column}").format(
                    column=sql.Identifier(info.column_name)
                )
            )
        else:
            expressions.append(sql.Identifier(info.column_name))
    return (
        sql.SQL("SELECT ")
        + sql.SQL(", ").join(expressions)
        + sql.SQL(" FROM ")
        + _source_relation(translation)
        + _where_clause(translation)
    )


# =========================================================================
# PROCESADOR
# =========================================================================


class BatchRecordProcessor:
    """
    Lleva una unidad de conversión desde PostgreSQL hasta MongoDB, batch por batch.

    Attributes:
        translation: TableTranslation preparada
        columns (dict): column_name → ColumnInfo
        pg_connection: Conexión psycopg2 (propiedad del TableConverter)
        mongo_db: Database de pymongo
        options: ConverterOptions
        total_count (int): Filas a procesar según COUNT(*)
        count (int): Filas leídas hasta ahora
        batches_read (int): Batches leídos del cursor
        inserted_count (int): Documentos insertados (modo insert)
        skipped_count (int): Documentos descartados por la recuperación de insert
    """

    def __init__(self, translation, columns, pg_connection, mongo_db, options):
        self.translation = translation
        self.columns = columns
        self.pg_connection = pg_connection
        self.mongo_db = mongo_db
        self.options = options
        self.total_count = 0
        self.count = 0
        self.batches_read = 0
        self.inserted_count = 0
        self.skipped_count = 0
        self._converters = {}
        self._indexed_fields = set()
        self._loop = None

    # =========================================================================
    # MÉTODO PÚBLICO
    # =========================================================================

    def run(self):
        """
        Procesa la unidad completa.

        Returns:
            int: Filas leídas del origen

        Raises:
            ConfigurationError: Configuración inválida (antes de leer filas)
            PersistenceError: Falla de persistencia no recuperable
        """
        self.total_count = self.count_rows()
        self.translation.finalize_columns(self.columns)
        self._converters = self._resolve_converters()

        if self.total_count == 0:
            print(f"   ⚠️  No se encontraron registros en {self._source_name()}")
            return 0

        print(f"   📊 Total de filas: {self.total_count:,}")
        print(f"   📦 Tamaño de batch: {self.options.batch_size}")

        self.apply_indexes()

        batches = self.iter_batches()
        try:
            for rows in batches:
                self.process_batch(rows)
                print(
                    f"\r\033[K⏳ Procesadas: {self.count:,}/{self.total_count:,} "
                    f"({self.count * 100 // self.total_count}%)",
                    end="",
                    flush=True,
                )
        finally:
            batches.close()
            self._close_loop()

        print(f"\n   ✅ {self.count:,} filas procesadas de {self._source_name()}")
        return self.count

    # =========================================================================
    # LECTURA DE ORIGEN
    # =========================================================================

    def count_rows(self):
        with self.pg_connection.cursor() as cursor:
            cursor.execute(build_count_query(self.translation))
            row = cursor.fetchone()
        return int(row[0]) if row else 0

    def iter_batches(self):
        """
        Genera batches de filas desde un cursor server-side.

        Termina cuando el conteo acumulado alcanza total_count (o el cursor
        se agota antes). El cursor se cierra una única vez al terminar.
        """
        cursor = self.pg_connection.cursor(
            name=f"ptm_{uuid.uuid4().hex}", cursor_factory=RealDictCursor
        )
        try:
            cursor.itersize = self.options.batch_size
            cursor.execute(build_select_query(self.translation, self.columns))
            while self.count < self.total_count:
                rows = cursor.fetchmany(self.options.batch_size)
                if not rows:
                    print(f"\n   ⚠️  El cursor se agotó en {self.count:,}/{self.total_count:,}")
                    break
                self.count += len(rows)
                self.batches_read += 1
                yield rows
        finally:
            cursor.close()

    # =========================================================================
    # TRANSFORMACIÓN
    # =========================================================================

    def process_batch(self, rows):
        """Transforma y persiste un batch de filas."""
        documents = [self.build_document(row) for row in rows]

        translation = self.translation
        if translation.post_process:
            self.resolve_hook_result(translation.post_process(translation, documents))

        self.apply_translators(documents)
        documents = self.apply_filter(documents)

        if not documents:
            return

        if not self.options.include_nulls and not translation.include_nulls:
            purge_nulls(documents)

        self.persist(documents)

    def build_document(self, row):
        """
        Convierte una fila en documento.

        Args:
            row: Dict column_name → valor (RealDictCursor)

        Returns:
            dict: Documento listo para translators/persistencia
        """
        translation = self.translation
        document = {}

        for column_name, column in translation.columns.items():
            if column.index:
                self.ensure_column_index(column.to, column.index)
            if column.is_virtual:
                continue

            metadata = self.columns.get(column_name)
            value = self._converters[column_name](
                row.get(column_name),
                metadata.data_type if metadata else None,
                row,
                document,
                column_name,
                column.to,
                metadata.udt_name if metadata else None,
            )
            if isinstance(value, ConversionResult):
                if value.document_modified:
                    continue
                value = value.value
            document[column.to] = value

        for column_name, dynamic_column in translation.dynamic_columns.items():
            document[column_name] = dynamic_column.value(translation, document)

        if translation.include_id:
            if not document.get("_id"):
                document["_id"] = ObjectId()
            if translation.has_embed and not translation.embed_in_root:
                self.ensure_column_index("_id", {"unique": True})

        if translation.include_timestamps:
            now = datetime.now(timezone.utc)
            if not document.get("createdAt"):
                document["createdAt"] = now
            if not document.get("updatedAt"):
                document["updatedAt"] = now

        if translation.include_version and not document.get("__v"):
            document["__v"] = 0

        return document

    def apply_translators(self, documents):
        """
        Resuelve las columnas con translator contra su colección de origen.

        Por cada translator: agrupa los documentos por el valor de la columna,
        busca las claves en source_collection y copia el campo deseado en
        todos los documentos del grupo (o delega en el processor).
        """
        translation = self.translation
        for _, column in translation.translated_columns():
            translator = column.translator
            translator.validate()

            groups = {}
            for document in documents:
                key = document.get(column.to)
                group = groups.setdefault(_group_key(key), DocumentGroup(key=key))
                group.docs.append(document)
            keys = [group.key for group in groups.values() if group.key is not None]

            if translator.source_query:
                query = translator.source_query(translation, documents, keys)
            else:
                query = {translator.source_id_field: {"$in": keys}}

            if translator.source_projection:
                projection = translator.source_projection(translation, documents, keys)
            else:
                projection = {translator.lookup_field: 1, translator.source_id_field: 1}

            results = list(
                self.mongo_db[translator.source_collection].find(query, projection)
            )

            if translator.processor:
                translator.processor(translation, groups, results)
                continue

            for result in results:
                group = groups.get(_group_key(result.get(translator.source_id_field)))
                if group is None:
                    continue
                for document in group.docs:
                    document[column.to] = result.get(translator.lookup_field)

    def apply_filter(self, documents):
        if not self.translation.filter:
            return documents
        document_count = len(documents)
        documents = [document for document in documents if self.translation.filter(document)]
        removed = document_count - len(documents)
        print(f"\n   🔎 Filtrado: removidos {removed} de {document_count}")
        return documents

    # =========================================================================
    # ÍNDICES
    # =========================================================================

    def apply_indexes(self):
        """Crea los índices declarados en la unidad (idempotente, background)."""
        collection = self.mongo_db[self.translation.to_collection]
        for index in self.translation.indexes:
            index_options = dict(index.options or {})
            index_options["background"] = True
            collection.create_index(index.keys(), **index_options)
        if self.translation.indexes:
            print(f"   🗂️  Índices aplicados: {len(self.translation.indexes)}")

    def ensure_column_index(self, field_name, index):
        """
        Crea el índice de un campo la primera vez que se lo encuentra.

        En embeds no-raíz el índice se califica con el path del embed y es sparse.
        """
        translation = self.translation
        index_options = dict(index) if isinstance(index, dict) else {}
        index_options["background"] = True

        if translation.has_embed and not translation.embed_in_root:
            index_options["sparse"] = True
            field_path = f"{translation.embed_field_path}.{field_name}"
        else:
            field_path = field_name

        if field_path in self._indexed_fields:
            return
        self.mongo_db[translation.to_collection].create_index(
            [(field_path, 1)], **index_options
        )
        self._indexed_fields.add(field_path)

    # =========================================================================
    # PERSISTENCIA
    # =========================================================================

    def persist(self, documents):
        translation = self.translation

        if translation.on_persist:
            if not translation.ignore_deletes_on_persist:
                process_deletes(translation, documents)
            self.resolve_hook_result(translation.on_persist(translation, documents))
            return

        if not translation.has_embed:
            process_deletes(translation, documents)
            self.insert_with_recovery(documents)
        else:
            self.persist_embedded(documents)

    def insert_with_recovery(self, documents):
        """
        Inserta el batch; si falla un documento identificado, descarta hasta
        ese índice inclusive y reintenta el resto. La lista se achica en cada
        intento, por lo que el reintento es acotado.
        """
        collection = self.mongo_db[self.translation.to_collection]
        remaining = documents
        while remaining:
            result = insert_documents(collection, remaining)
            self.inserted_count += result.inserted_count
            if result.ok:
                return
            self.skipped_count += 1
            print(
                f"\n   ⚠️  Error insertando documento en índice {result.failed_index}, "
                f"reintentando sin él. Error: {result.error}",
                file=sys.stderr,
            )
            remaining = remaining[result.failed_index + 1:]

    def persist_embedded(self, documents):
        """
        Agrupa por la columna de join y actualiza los documentos padre.

        Raises:
            PersistenceError: Cualquier falla de update es fatal para la unidad
        """
        translation = self.translation
        source_field = translation.embed_source_field

        groups = {}
        for document in documents:
            key = document.get(source_field)
            group = groups.setdefault(str(key), DocumentGroup(key=key))
            if not translation.preserve_embed_source_id:
                document.pop(source_field, None)
            group.docs.append(document)

        process_deletes(translation, documents)

        collection = self.mongo_db[translation.to_collection]
        for group in groups.values():
            values = group.docs
            if translation.embed_array_field:
                values = [document.get(translation.embed_array_field) for document in values]
            update_filter, update = build_embed_update(translation, group.key, values)
            update_embedded(collection, update_filter, update, documents)

    # =========================================================================
    # HOOKS
    # =========================================================================

    def resolve_hook_result(self, result):
        """
        Si un hook retorna un awaitable, lo ejecuta hasta completarlo.

        Todos los hooks async de una corrida comparten un mismo event loop
        (creado en el primer awaitable y cerrado al terminar run), así los
        clientes async ligados al loop siguen siendo válidos entre batches.

        Raises:
            RuntimeError: Si el conversor se ejecuta dentro de un event loop
                activo (los hooks se resuelven de forma sincrónica)
        """
        if not inspect.isawaitable(result):
            return result
        if self._loop is None:
            self._loop = asyncio.new_event_loop()
        return self._loop.run_until_complete(_await(result))

    def _close_loop(self):
        if self._loop is not None:
            self._loop.close()
            self._loop = None

    # =========================================================================
    # MÉTODOS PRIVADOS
    # =========================================================================

    def _source_name(self):
        return f"{self.translation.from_schema}.{self.translation.from_table}"

    def _resolve_converters(self):
        """Resuelve el converter de cada columna antes de abrir el cursor."""
        converters = {}
        for column_name, column in self.translation.columns.items():
            if column.is_virtual:
                continue
            if column.converter:
                converters[column_name] = column.converter
                continue
            metadata = self.columns.get(column_name)
            if metadata is None:
                raise ConfigurationError(
                    f"Columna '{column_name}' no existe en {self._source_name()} "
                    f"(declararla como VirtualColumn o con converter propio)."
                )
            converters[column_name] = get_converter(metadata)
        return converters
