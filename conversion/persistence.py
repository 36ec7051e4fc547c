"""
Persistencia de batches en MongoDB.

- insert_documents(): insert_many ordenado que reporta un InsertResult
  tipado (insertados + primer índice fallido) en vez de exponer la forma
  del error del driver.
- build_embed_update(): arma el filtro y el update de un grupo de embed.
- update_embedded(): aplica el update de un grupo sobre la colección padre.
"""

from dataclasses import dataclass
from typing import Optional

from bson import ObjectId
from pymongo.errors import BulkWriteError, PyMongoError

from .errors import PersistenceError
from .types import is_object_id_string


@dataclass
class InsertResult:
    """
    Resultado de un insert_many ordenado.

    Attributes:
        inserted_count (int): Documentos insertados antes de la falla
        failed_index (int): Posición del primer documento fallido (None = todo ok)
        error (Exception): Error original del driver
    """

    inserted_count: int = 0
    failed_index: Optional[int] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.failed_index is None


def insert_documents(collection, documents) -> InsertResult:
    """
    Inserta documentos en orden y reporta dónde falló.

    Args:
        collection: Colección de pymongo
        documents: Lista de documentos

    Returns:
        InsertResult: Con failed_index si el driver identificó el documento fallido

    Raises:
        PersistenceError: Si la falla no identifica un documento (ej: red)
    """
    try:
        result = collection.insert_many(documents, ordered=True)
        return InsertResult(inserted_count=len(result.inserted_ids))
    except BulkWriteError as err:
        write_errors = err.details.get("writeErrors") or []
        if write_errors and write_errors[0].get("index", -1) > -1:
            return InsertResult(
                inserted_count=err.details.get("nInserted", 0),
                failed_index=write_errors[0]["index"],
                error=err,
            )
        raise PersistenceError(
            f"Error insertando en '{collection.name}': {err}",
            documents=documents,
            collection=collection.name,
        ) from err
    except PyMongoError as err:
        raise PersistenceError(
            f"Error insertando en '{collection.name}': {err}",
            documents=documents,
            collection=collection.name,
        ) from err


def normalize_join_value(value):
    """Un string de longitud de ObjectId se coacciona a ObjectId."""
    if is_object_id_string(value):
        return ObjectId(value)
    return value


def build_embed_update(translation, key, documents_or_values):
    """
    Arma (filtro, update) para un grupo de documentos embebidos.

    Modos:
    - Por defecto: $push con $each al path embed_in
    - embed_single: $set de un único valor en embed_in
    - embed_in_root: $set de los campos del documento en la raíz del padre

    Args:
        translation: Unidad preparada con embed
        key: Valor de la columna de join del grupo
        documents_or_values: Documentos (o valores de embed_array_field)

    Returns:
        tuple: (filtro, update)
    """
    update_filter = {translation.embed_target_id_column: normalize_join_value(key)}

    if translation.embed_in_root:
        fields = dict(documents_or_values[0])
        fields.pop("_id", None)
        return update_filter, {"$set": fields}

    if translation.embed_single:
        return update_filter, {"$set": {translation.embed_in: documents_or_values[0]}}

    return update_filter, {
        "$push": {translation.embed_in: {"$each": list(documents_or_values)}}
    }


def update_embedded(collection, update_filter, update, documents):
    """
    Aplica el update de un grupo de embed.

    Raises:
        PersistenceError: Cualquier falla es fatal para la unidad
    """
    try:
        return collection.update_many(update_filter, update)
    except PyMongoError as err:
        raise PersistenceError(
            f"Error actualizando '{collection.name}' con filtro {update_filter}: {err}",
            documents=documents,
            collection=collection.name,
        ) from err
