"""
Test de validación para config.py y metadata_cache.py.

Verifica que:
- Las opciones por defecto del conversor están completas
- Los overrides se aplican y las opciones desconocidas se rechazan
- El cache de metadata escribe y relee ColumnInfo
"""

import sys
import os
import tempfile

# === RESOLUCIÓN DE PATH ===
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
from conversion.errors import ConfigurationError
from conversion.models import ColumnInfo, ConverterOptions
from metadata_cache import MetadataCache

# === TESTS ===


def test_default_converter_options():
    """Verifica que los defaults construyen un ConverterOptions válido."""
    print("\n=== TEST 1: DEFAULT_CONVERTER_OPTIONS ===")

    options = ConverterOptions(**config.get_converter_options())

    assert options.batch_size == config.BATCH_SIZE
    assert options.cache_directory == config.CACHE_DIRECTORY
    assert options.postgres_uri.startswith("postgres")
    assert options.mongo_uri.startswith("mongodb")
    print(f"   ✅ batch_size={options.batch_size}, cache={options.cache_directory}")


def test_overrides():
    print("\n=== TEST 2: Overrides ===")

    options = config.get_converter_options(batch_size=10, include_nulls=True)

    assert options["batch_size"] == 10
    assert options["include_nulls"] is True
    assert config.DEFAULT_CONVERTER_OPTIONS["batch_size"] == config.BATCH_SIZE
    print("   ✅ Overrides aplicados sin modificar los defaults")


def test_error_handling():
    """Verifica que errores se manejan apropiadamente."""
    print("\n=== TEST 3: Error handling ===")

    try:
        config.get_converter_options(opcion_inexistente=1)
        assert False, "Debería lanzar KeyError"
    except KeyError as e:
        assert "opcion_inexistente" in str(e)
        assert "disponibles" in str(e).lower()
        print(f"✅ Error manejado correctamente")
        print(f"   Mensaje: {str(e)[:80]}...")

    try:
        ConverterOptions(batch_size=0)
        assert False, "Debería lanzar ConfigurationError"
    except ConfigurationError as e:
        print(f"✅ batch_size inválido rechazado: {e}")


def test_translations_module_name():
    print("\n=== TEST 4: Módulo de traducciones ===")

    assert config.get_translations_module_name() == config.TRANSLATIONS_MODULE
    print(f"   ✅ {config.get_translations_module_name()}")


def test_metadata_cache_roundtrip():
    print("\n=== TEST 5: Cache de metadata ===")

    columns = {
        "id": ColumnInfo("id", "integer", "int4", "NO", "nextval('seq'::regclass)"),
        "name": ColumnInfo("name", "text", "text"),
    }

    with tempfile.TemporaryDirectory() as directory:
        cache = MetadataCache(os.path.join(directory, "nested", "ptmTemp"))

        assert not cache.exists("public", "items")
        assert cache.load("public", "items") is None
        cache.save("public", "items", columns)

        assert cache.exists("public", "items")
        assert cache.path_for("public", "items").name == "public.items.json"
        assert cache.load("public", "items") == columns
        assert list(cache.load("public", "items")) == ["id", "name"]
    print("   ✅ Metadata guardada y releída en orden")


if __name__ == "__main__":
    test_default_converter_options()
    test_overrides()
    test_error_handling()
    test_translations_module_name()
    test_metadata_cache_roundtrip()
    print("\n✅ Todos los tests de config pasaron")
