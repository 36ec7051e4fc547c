"""
Tests del registry de tipos y de la heurística de defaults.
"""

import sys
import os
from datetime import date, datetime, timezone
from decimal import Decimal

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bson import Decimal128, ObjectId

from conversion.errors import UnsupportedTypeError
from conversion.models import ColumnInfo, ConversionResult
from conversion.naming import to_mongo_name
from conversion.types import (
    CURRENT_TIME_DEFAULT,
    GENERATED_ID_DEFAULT,
    default_value_converter,
    get_converter,
    get_schema_for_type,
    to_datetime,
    uuid_to_object_id_string,
)

SAMPLE_UUID = "0f8fad5b-d9cb-469f-a165-70867728950e"


def convert(metadata, value, source_name="col", target_name="col", document=None):
    converter = get_converter(metadata)
    return converter(
        value,
        metadata.data_type,
        {},
        document if document is not None else {},
        source_name,
        target_name,
        metadata.udt_name,
    )


# === TESTS ===


def test_uuid_to_object_id_string():
    print("\n=== TEST 1: uuid → ObjectId ===")

    first = uuid_to_object_id_string(SAMPLE_UUID)
    second = uuid_to_object_id_string(SAMPLE_UUID)

    assert first == second == "0f8fad5bd9cb469fa1657086"
    assert ObjectId.is_valid(first)
    print(f"   ✅ {SAMPLE_UUID} → {first}")


def test_uuid_id_column_writes_document_id():
    print("\n=== TEST 2: Columna id uuid ===")

    metadata = ColumnInfo("id", "uuid", "uuid", "NO")
    document = {}
    result = convert(metadata, SAMPLE_UUID, "id", "id", document)

    assert isinstance(result, ConversionResult)
    assert result.document_modified
    assert document["_id"] == ObjectId("0f8fad5bd9cb469fa1657086")

    renamed = convert(metadata, SAMPLE_UUID, "id", "externalId")
    assert renamed == ObjectId("0f8fad5bd9cb469fa1657086")
    print("   ✅ id → _id, renombrada → valor ObjectId")


def test_dates_become_datetime():
    print("\n=== TEST 3: Fechas ===")

    timestamp = ColumnInfo("created_at", "timestamp with time zone", "timestamptz")
    only_date = ColumnInfo("birthday", "date", "date")

    value = datetime(2024, 5, 1, 12, 30)
    assert convert(timestamp, value) == value
    assert convert(only_date, date(2024, 5, 1)) == datetime(2024, 5, 1)
    assert convert(only_date, None) is None
    assert get_schema_for_type(timestamp) == {"type": "string", "format": "date"}
    print("   ✅ timestamp/date → datetime, schema string/date")


def test_iso_strings_with_z():
    print("\n=== TEST 3b: Strings ISO8601 ===")

    utc = datetime(2021, 3, 22, 7, 49, 18, 242000, tzinfo=timezone.utc)
    assert to_datetime("2021-03-22T07:49:18.242Z") == utc
    assert to_datetime("2021-03-22T07:49:18.242+00:00") == utc
    assert to_datetime("2022-06-02 13:54:12") == datetime(2022, 6, 2, 13, 54, 12)

    try:
        to_datetime("22/03/2021")
        assert False, "Debería lanzar ValueError"
    except ValueError:
        print("   ✅ Texto no ISO rechazado")
    print("   ✅ 'Z' equivale a +00:00")


def test_numbers():
    print("\n=== TEST 4: Números ===")

    numeric = ColumnInfo("price", "numeric", "numeric")
    integer = ColumnInfo("qty", "bigint", "int8")

    assert convert(numeric, Decimal("10.50")) == Decimal128("10.50")
    assert convert(numeric, 1.5) == 1.5
    assert convert(integer, 3) == 3
    assert get_schema_for_type(numeric) == {"type": "number"}
    assert get_schema_for_type(integer) == {"type": "integer"}
    print("   ✅ Decimal → Decimal128")


def test_geo_json():
    print("\n=== TEST 5: GeoJSON ===")

    location = ColumnInfo("location", "USER-DEFINED", "geography")
    value = convert(location, '{"type": "Point", "coordinates": [1, 2]}')

    assert value == {"type": "Point", "coordinates": [1, 2]}
    assert get_schema_for_type(location)["format"] == "geoJSON"
    print("   ✅ Texto GeoJSON parseado")


def test_unsupported_type():
    print("\n=== TEST 6: Tipo no soportado ===")

    metadata = ColumnInfo("amount", "money", "money")

    for function in (get_converter, get_schema_for_type):
        try:
            function(metadata)
            assert False, "Debería lanzar UnsupportedTypeError"
        except UnsupportedTypeError as e:
            assert e.data_type == "money"
    print("   ✅ money → UnsupportedTypeError")


def test_other_user_defined_types_are_null():
    print("\n=== TEST 7: USER-DEFINED no geo ===")

    metadata = ColumnInfo("mood", "USER-DEFINED", "mood_enum")

    assert convert(metadata, "happy") is None
    assert get_schema_for_type(metadata) == {"type": "null"}
    print("   ✅ Valor null, schema null")


def test_default_value_converter():
    print("\n=== TEST 8: default_value_converter ===")

    cases = [
        (("string", None, "'active'::character varying"), "active"),
        (("integer", None, "0"), 0),
        (("number", None, "'1.5'::numeric"), 1.5),
        (("boolean", None, "TRUE"), True),
        (("boolean", None, "false"), False),
        (("string", "date", "now()"), CURRENT_TIME_DEFAULT),
        (("string", "ObjectId", "gen_random_uuid()"), GENERATED_ID_DEFAULT),
        (("string", None, None), None),
    ]
    for args, expected in cases:
        result = default_value_converter(*args)
        assert result == expected, f"{args}: esperado {expected!r}, obtenido {result!r}"
        print(f"   ✅ {args[2]!r} → {result!r}")


def test_to_mongo_name():
    print("\n=== TEST 9: to_mongo_name ===")

    assert to_mongo_name("dept_id") == "deptId"
    assert to_mongo_name("employee_profiles") == "employeeProfiles"
    assert to_mongo_name("name") == "name"
    assert to_mongo_name("createdAt") == "createdAt"
    print("   ✅ snake_case → camelCase")


if __name__ == "__main__":
    test_uuid_to_object_id_string()
    test_uuid_id_column_writes_document_id()
    test_dates_become_datetime()
    test_iso_strings_with_z()
    test_numbers()
    test_geo_json()
    test_unsupported_type()
    test_other_user_defined_types_are_null()
    test_default_value_converter()
    test_to_mongo_name()
    print("\n✅ Todos los tests de tipos pasaron")
