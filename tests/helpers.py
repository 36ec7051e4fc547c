"""
Fakes compartidos para todos los tests.

Simulan en memoria lo mínimo de pymongo y psycopg2 que usa el conversor,
para validar el pipeline sin bases de datos reales:
- FakeCollection / FakeDatabase: insert_many, update_many, find, create_index
- FakePgConnection / FakeCursor: COUNT(*), cursor server-side, information_schema
- FakeConnectionProvider: reemplaza al módulo database en TableConverter
"""

import sys
import os
import copy

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pymongo.errors import BulkWriteError
from pymongo.results import InsertManyResult

from conversion.models import ColumnInfo


# =========================================================================
# METADATA
# =========================================================================


def column_row(name, data_type, udt_name=None, is_nullable="YES", column_default=None):
    """Fila de information_schema.columns (como la retorna RealDictCursor)."""
    return {
        "column_name": name,
        "data_type": data_type,
        "udt_name": udt_name or data_type,
        "is_nullable": is_nullable,
        "column_default": column_default,
    }


def columns_from_rows(rows):
    """Lista de filas de information_schema → dict column_name → ColumnInfo."""
    return {row["column_name"]: ColumnInfo.from_row(row) for row in rows}


# =========================================================================
# MONGODB
# =========================================================================


def _matches(document, query):
    for key, condition in query.items():
        value = document.get(key)
        if isinstance(condition, dict) and "$in" in condition:
            if value not in condition["$in"]:
                return False
        elif value != condition:
            return False
    return True


class FakeCollection:
    """
    Colección en memoria.

    Attributes:
        name (str): Nombre de la colección
        documents (list): Documentos insertados
        reject (callable): doc → bool. Si retorna True, insert_many falla en
            ese documento con un BulkWriteError ordenado (como un duplicate key)
        insert_calls (list): Cantidad de documentos recibida en cada insert_many
        updates (list): (filtro, update) de cada update_many
        indexes (list): (keys, opciones) de cada create_index
    """

    def __init__(self, name, documents=None, reject=None):
        self.name = name
        self.documents = list(documents or [])
        self.reject = reject
        self.insert_calls = []
        self.updates = []
        self.indexes = []
        self.queries = []

    def insert_many(self, documents, ordered=True):
        self.insert_calls.append(len(documents))
        inserted = []
        for index, document in enumerate(documents):
            if self.reject and self.reject(document):
                raise BulkWriteError(
                    {
                        "writeErrors": [
                            {"index": index, "code": 11000, "errmsg": "E11000 duplicate key"}
                        ],
                        "nInserted": index,
                    }
                )
            self.documents.append(document)
            inserted.append(document.get("_id"))
        return InsertManyResult(inserted, True)

    def update_many(self, update_filter, update):
        self.updates.append((update_filter, update))
        for document in self.documents:
            if not _matches(document, update_filter):
                continue
            for field_name, spec in update.get("$push", {}).items():
                document.setdefault(field_name, []).extend(spec["$each"])
            for field_name, value in update.get("$set", {}).items():
                document[field_name] = value

    def find(self, query, projection=None):
        self.queries.append((query, projection))
        return [copy.deepcopy(doc) for doc in self.documents if _matches(doc, query)]

    def create_index(self, keys, **options):
        self.indexes.append((keys, options))
        return "_".join(f"{field}_{direction}" for field, direction in keys)


class FakeDatabase:
    """Database en memoria: crea colecciones al primer acceso."""

    def __init__(self, collections=None):
        self.collections = {}
        for collection in collections or []:
            self.collections[collection.name] = collection

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


# =========================================================================
# POSTGRESQL
# =========================================================================


class FakeCursor:
    """
    Cursor psycopg2 simulado.

    Las consultas con parámetros (schema, tabla) son la lectura de
    information_schema y fijan la tabla activa de la conexión. El resto
    son COUNT(*) (fetchone) o SELECT (fetchmany) sobre la tabla activa.
    """

    def __init__(self, connection, name=None):
        self.connection = connection
        self.name = name
        self.itersize = None
        self.close_count = 0
        self._position = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def execute(self, query, params=None):
        self.connection.executed.append((query, params))
        if params:
            self.connection.current_table = params[1]
        self._position = 0

    def fetchone(self):
        return (len(self.connection.rows),)

    def fetchall(self):
        return list(self.connection.columns)

    def fetchmany(self, size):
        rows = self.connection.rows[self._position:self._position + size]
        self._position += len(rows)
        return [dict(row) for row in rows]

    def close(self):
        self.close_count += 1


class FakePgConnection:
    """
    Conexión psycopg2 simulada.

    Args:
        tables (dict): tabla → {'columns': [filas information_schema], 'rows': [filas]}
        current_table (str): Tabla activa inicial
    """

    def __init__(self, tables, current_table=None):
        self.tables = tables
        self.current_table = current_table
        self.executed = []
        self.named_cursors = []

    @property
    def columns(self):
        return self.tables.get(self.current_table, {}).get("columns", [])

    @property
    def rows(self):
        return self.tables.get(self.current_table, {}).get("rows", [])

    def cursor(self, name=None, cursor_factory=None):
        cursor = FakeCursor(self, name=name)
        if name:
            self.named_cursors.append(cursor)
        return cursor


class FakeConnectionProvider:
    """Reemplazo del módulo database para TableConverter.connection_provider."""

    def __init__(self, pg_connection, mongo_db):
        self.pg_connection = pg_connection
        self.mongo_db = mongo_db
        self.pg_requests = 0
        self.pg_releases = 0
        self.mongo_requests = 0

    def get_postgres_connection(self, uri, use_ssl=False):
        self.pg_requests += 1
        return self.pg_connection

    def release_postgres_connection(self, uri, connection):
        self.pg_releases += 1

    def get_mongo_connection(self, uri, database_name=None):
        self.mongo_requests += 1
        return self.mongo_db
