"""
Proveedor de conexiones a PostgreSQL (origen) y MongoDB (destino).

- PostgreSQL: un pool psycopg2 por connection string. El TableConverter
  toma una conexión por unidad y la devuelve al pool antes de la siguiente.
- MongoDB: un único MongoClient por proceso, reutilizado si ya está abierto.

Uso:
    conn = get_postgres_connection(config.POSTGRES_URI, config.POSTGRES_SSL)
    ...
    release_postgres_connection(config.POSTGRES_URI, conn)

    db = get_mongo_connection(config.MONGO_URI, config.MONGO_DATABASE_NAME)
"""

from psycopg2 import OperationalError
from psycopg2.pool import SimpleConnectionPool
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure

MAX_POOL_CONNECTIONS = 5

_pools = {}
_mongo_client = None
_mongo_uri = None


def get_postgres_connection(uri, use_ssl=False):
    """
    Obtiene una conexión del pool asociado a la connection string.

    Args:
        uri: Connection string de PostgreSQL
        use_ssl: Requerir SSL en la conexión

    Returns:
        connection: Conexión psycopg2

    Raises:
        OperationalError: Si no puede conectar
    """
    pool = _pools.get(uri)
    if pool is None:
        try:
            pool = SimpleConnectionPool(
                1,
                MAX_POOL_CONNECTIONS,
                dsn=uri,
                sslmode="require" if use_ssl else "prefer",
            )
        except OperationalError as e:
            print(f"❌ Error de conexión a PostgreSQL: {e}")
            raise
        _pools[uri] = pool
    return pool.getconn()


def release_postgres_connection(uri, connection):
    """Devuelve una conexión a su pool (rollback de la transacción abierta incluido)."""
    pool = _pools.get(uri)
    if pool is None:
        connection.close()
        return
    pool.putconn(connection)


def get_mongo_connection(uri, database_name=None):
    """
    Retorna la Database de MongoDB, reutilizando el cliente abierto si existe.

    Si no hay cliente (o la URI cambió), conecta y espera a que el servidor
    responda ping antes de retornar.

    Args:
        uri: Connection string de MongoDB
        database_name: Base a usar si la URI no define una por defecto

    Returns:
        Database: Base de datos de pymongo

    Raises:
        ConnectionFailure: Si el servidor no responde
    """
    global _mongo_client, _mongo_uri

    if _mongo_client is None or _mongo_uri != uri:
        client = MongoClient(uri, serverSelectionTimeoutMS=5000)
        try:
            client.admin.command("ping")
        except ConnectionFailure as e:
            print(f"❌ Error de conexión a MongoDB: {e}")
            client.close()
            raise
        if _mongo_client is not None:
            _mongo_client.close()
        _mongo_client = client
        _mongo_uri = uri

    return _mongo_client.get_default_database(default=database_name)


def close_all():
    """Cierra todos los pools de PostgreSQL y el cliente de MongoDB."""
    global _mongo_client, _mongo_uri

    for pool in _pools.values():
        pool.closeall()
    _pools.clear()

    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None
        _mongo_uri = None
