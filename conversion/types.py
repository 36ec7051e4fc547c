"""
Registry de tipos de columna PostgreSQL.

Para cada columna (data_type + udt_name de information_schema) provee:
1. Un converter: (valor, tipo, fila, documento, columna, campo, udt) → valor
2. Un fragmento de JSON Schema: {'type': ..., 'format': ...}

El mapeo es exhaustivo: un data_type sin entrada es un error de
configuración (UnsupportedTypeError). Un converter definido en la columna
siempre tiene prioridad sobre el registry.

Los valores ya vienen tipados por psycopg2 (int, bool, datetime, dict para
json). Solo se transforman los que BSON no puede codificar o que requieren
forma Mongo (uuid → ObjectId, Decimal → Decimal128, GeoJSON texto → dict).
"""

import copy
import json
import re
import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal

from bson import Decimal128, ObjectId

from .errors import UnsupportedTypeError
from .models import ConversionResult

OBJECT_ID_LENGTH = 24

# Centinelas de default para el schema generado
CURRENT_TIME_DEFAULT = "$$NOW"
GENERATED_ID_DEFAULT = "ObjectId"
UUID_GENERATOR_DEFAULTS = ("uuid_generate_v4()", "gen_random_uuid()")

JSON_TYPES = ("json", "jsonb")
UUID_TYPES = ("uuid",)
TEXT_TYPES = ("text", "character varying", "character")
DATE_TYPES = (
    "date",
    "time",
    "time with time zone",
    "time without time zone",
    "timestamp with time zone",
    "timestamp without time zone",
    "timestamp",
)
BOOLEAN_TYPES = ("boolean",)
INTEGER_TYPES = ("integer", "smallint", "bigint", "smallserial", "serial", "bigserial")
NUMBER_TYPES = ("decimal", "numeric", "real", "double precision")
USER_DEFINED = "user-defined"

_HEX_RE = re.compile(r"^[0-9a-fA-F]{24}$")


# =========================================================================
# CONVERSIÓN DE VALORES
# =========================================================================


def uuid_to_object_id_string(source_value) -> str:
    """
    Convierte un uuid en un string de 24 caracteres hex válido como ObjectId.

    Quita los guiones y trunca a 24 caracteres (un uuid tiene 32 hex).

    Ejemplo:
        >>> uuid_to_object_id_string('0f8fad5b-d9cb-469f-a165-70867728950e')
        '0f8fad5bd9cb469fa1657086'
    """
    return str(source_value).replace("-", "")[:OBJECT_ID_LENGTH].ljust(
        OBJECT_ID_LENGTH, "0"
    )


def is_object_id_string(value) -> bool:
    """True si value es un string hex de longitud de ObjectId."""
    return isinstance(value, str) and bool(_HEX_RE.match(value))


def to_datetime(value):
    """
    Coacciona date / time / epoch en ms / str ISO-8601 a datetime (BSON solo
    guarda datetime).

    Strings aceptados:
    - ISO8601 con 'Z': '2021-03-22T07:49:18.242Z'
    - ISO8601 con timezone: '2022-06-02T13:54:12.273+00:00'
    - Separador espacio (formato de PostgreSQL): '2022-06-02 13:54:12'

    Raises:
        ValueError: Si el string no es ISO8601
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, time):
        return datetime.combine(date(1970, 1, 1), value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        # fromisoformat acepta 'Z' recién desde Python 3.11
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _passthrough(source_value, *args):
    return source_value


def _convert_uuid(
    source_value, source_type, row, document, source_name, target_name, udt_name
):
    destination_value = None
    if source_value:
        if isinstance(source_value, uuid.UUID):
            source_value = source_value.hex
        destination_value = ObjectId(uuid_to_object_id_string(source_value))

    # La columna 'id' sin renombrar es el identificador del documento:
    # se escribe directo en _id para no duplicarla como campo 'id'.
    if source_name == "id" and target_name == source_name:
        document["_id"] = destination_value
        return ConversionResult(document_modified=True)
    return destination_value


def _convert_date(source_value, *args):
    if source_value is None:
        return None
    return to_datetime(source_value)


def _convert_number(source_value, *args):
    if isinstance(source_value, Decimal):
        return Decimal128(source_value)
    return source_value


def _convert_geo_json(source_value, *args):
    if source_value:
        if isinstance(source_value, (dict, list)):
            return source_value
        return json.loads(source_value)
    return None


def _convert_unsupported_user_defined(source_value, *args):
    return None


def get_converter(metadata):
    """
    Retorna el converter del registry para una columna.

    Args:
        metadata: ColumnInfo de la columna

    Returns:
        callable: Converter con firma
            (source_value, source_type, row, document, source_name, target_name, udt_name)

    Raises:
        UnsupportedTypeError: Si el data_type no está registrado
    """
    type_name = metadata.data_type.lower()

    if type_name in JSON_TYPES:
        return _passthrough
    if type_name in UUID_TYPES:
        return _convert_uuid
    if type_name in TEXT_TYPES:
        return _passthrough
    if type_name in DATE_TYPES:
        return _convert_date
    if type_name in BOOLEAN_TYPES or type_name in INTEGER_TYPES:
        return _passthrough
    if type_name in NUMBER_TYPES:
        return _convert_number
    if type_name == USER_DEFINED:
        if metadata.is_geo:
            return _convert_geo_json
        return _convert_unsupported_user_defined

    raise UnsupportedTypeError(metadata.data_type, metadata.udt_name)


# =========================================================================
# FRAGMENTOS DE SCHEMA
# =========================================================================

_SCHEMA_FRAGMENTS = {}
for _name in JSON_TYPES:
    _SCHEMA_FRAGMENTS[_name] = {"type": "object"}
for _name in UUID_TYPES:
    _SCHEMA_FRAGMENTS[_name] = {"type": "string", "format": "ObjectId"}
for _name in TEXT_TYPES:
    _SCHEMA_FRAGMENTS[_name] = {"type": "string"}
for _name in DATE_TYPES:
    _SCHEMA_FRAGMENTS[_name] = {"type": "string", "format": "date"}
for _name in BOOLEAN_TYPES:
    _SCHEMA_FRAGMENTS[_name] = {"type": "boolean"}
for _name in INTEGER_TYPES:
    _SCHEMA_FRAGMENTS[_name] = {"type": "integer"}
for _name in NUMBER_TYPES:
    _SCHEMA_FRAGMENTS[_name] = {"type": "number"}

GEO_JSON_FRAGMENT = {
    "type": "object",
    "format": "geoJSON",
    "properties": {
        "type": {"type": "string"},
        "coordinates": {"type": "array"},
    },
}


def get_schema_for_type(metadata) -> dict:
    """
    Retorna una copia del fragmento de JSON Schema para una columna.

    Raises:
        UnsupportedTypeError: Si el data_type no está registrado
    """
    type_name = metadata.data_type.lower()

    if type_name == USER_DEFINED:
        if metadata.is_geo:
            return copy.deepcopy(GEO_JSON_FRAGMENT)
        # El converter descarta estos valores (siempre null)
        return {"type": "null"}

    fragment = _SCHEMA_FRAGMENTS.get(type_name)
    if fragment is None:
        raise UnsupportedTypeError(metadata.data_type, metadata.udt_name)
    return dict(fragment)


# =========================================================================
# DEFAULTS DEL SCHEMA
# =========================================================================


def _parse_number(schema_type, value_string):
    if schema_type == "integer":
        try:
            return int(value_string)
        except ValueError:
            return int(float(value_string))
    return float(value_string)


def default_value_converter(schema_type, schema_format, value_string):
    """
    Heurística que traduce el column_default de PostgreSQL a un default literal.

    Reglas:
    - Vacío o nextval(...) → None
    - boolean → 'true' (sin importar mayúsculas) es True, el resto False
    - Con cast ('abc'::text) → literal previo al primer cast, parseado por tipo
    - number/integer → parseado numérico
    - string con format date → CURRENT_TIME_DEFAULT ('$$NOW')
    - uuid_generate_v4() / gen_random_uuid() → GENERATED_ID_DEFAULT
    - Resto → el texto tal cual

    Ejemplo:
        >>> default_value_converter('string', None, "'active'::character varying")
        'active'
        >>> default_value_converter('number', None, '0')
        0.0
    """
    if not value_string:
        return None
    # Secuencias (serial): el valor lo genera PostgreSQL, no hay literal
    if value_string.startswith("nextval("):
        return None
    if schema_type == "boolean":
        return value_string.lower() == "true"

    if "::" in value_string:
        extracted = value_string.split("::", 1)[0].strip()
        if extracted.startswith("'") and extracted.endswith("'") and len(extracted) > 1:
            extracted = extracted[1:-1]
        if schema_type == "string":
            return extracted
        if schema_type in ("number", "integer"):
            try:
                return _parse_number(schema_type, extracted)
            except ValueError:
                return extracted
        return value_string

    if schema_type in ("number", "integer"):
        try:
            return _parse_number(schema_type, value_string)
        except ValueError:
            return value_string
    if schema_type == "string":
        if schema_format == "date":
            return CURRENT_TIME_DEFAULT
        if value_string in UUID_GENERATOR_DEFAULTS:
            return GENERATED_ID_DEFAULT
        return value_string
    return value_string
