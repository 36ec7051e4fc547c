"""
Configuración centralizada para el sistema de conversión PostgreSQL → MongoDB.

ARQUITECTURA:
- config.py: Conexiones y opciones por defecto del conversor
- translations/*.py: Definición declarativa de cada tabla a convertir
- conversion/: Pipeline (dependencias, tipos, schemas, batches)

FLUJO DE CONVERSIÓN:
1. Cargar el módulo de traducciones (TRANSLATIONS_MODULE)
2. Ordenar las tablas por dependencias (embeds y lookups primero)
3. Convertir cada tabla en batches de BATCH_SIZE filas

USO DE LAS FUNCIONES HELPER:
    # Opciones del conversor con overrides puntuales
    options = get_converter_options(batch_size=1000)
    converter = TableConverter(**options)

    # Módulo de traducciones a cargar
    module_name = get_translations_module_name()
"""

import os
from dotenv import load_dotenv

# Carga las variables del archivo .env en las variables de entorno del sistema
load_dotenv(override=True)


def _env_flag(name: str, default: bool = False) -> bool:
    """Interpreta una variable de entorno como booleano (1/true/yes/si)."""
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "si", "sí")


# --- Configuración de PostgreSQL (Origen) ---
POSTGRES_URI = os.getenv("POSTGRES_URI") or (
    f"postgresql://{os.getenv('POSTGRES_USER') or ''}:{os.getenv('POSTGRES_PASSWORD') or ''}"
    f"@{os.getenv('POSTGRES_HOST') or 'localhost'}:{os.getenv('POSTGRES_PORT') or '5432'}"
    f"/{os.getenv('POSTGRES_DB') or ''}"
)
POSTGRES_SSL = _env_flag("POSTGRES_SSL")

# --- Configuración de MongoDB (Destino) ---
MONGO_URI = os.getenv("MONGO_URI") or (
    f"mongodb://{os.getenv('MONGO_HOST') or 'localhost'}:{os.getenv('MONGO_PORT') or '27017'}/"
)
MONGO_DATABASE_NAME = os.getenv("MONGO_DATABASE_NAME") or "ptm"

# --- Configuración de Conversión ---
BATCH_SIZE = int(os.getenv("BATCH_SIZE") or 5000)  # Filas leídas del cursor por lote
INCLUDE_NULLS = _env_flag("INCLUDE_NULLS")  # Conservar campos null en los documentos

# --- Cache de metadata ---
# Directorio donde se guarda information_schema.columns por tabla
# (<schema>.<tabla>.json) para no consultar el catálogo en cada corrida.
CACHE_DIRECTORY = os.getenv("CACHE_DIRECTORY") or "./ptmTemp"
USE_METADATA_CACHE = _env_flag("USE_METADATA_CACHE")
CREATE_METADATA_CACHE = _env_flag("CREATE_METADATA_CACHE")

# --- Salidas ---
SCHEMA_OUTPUT_FILE = os.getenv("SCHEMA_OUTPUT_FILE") or "generated_schemas.json"
TRANSLATIONS_MODULE = os.getenv("TRANSLATIONS_MODULE") or "translations.example"

# --- Opciones por defecto del conversor ---
# TableConverter mezcla las opciones del caller sobre este dict.
DEFAULT_CONVERTER_OPTIONS = {
    "postgres_uri": POSTGRES_URI,
    "mongo_uri": MONGO_URI,
    "mongo_database_name": MONGO_DATABASE_NAME,
    "postgres_ssl": POSTGRES_SSL,
    "batch_size": BATCH_SIZE,
    "include_nulls": INCLUDE_NULLS,
    "cache_directory": CACHE_DIRECTORY,
    "use_metadata_cache": USE_METADATA_CACHE,
    "create_metadata_cache": CREATE_METADATA_CACHE,
    "base_collection_schema": None,
    "schema_default_value_converter": None,
}


# --- Funciones Helper ---


def get_converter_options(**overrides) -> dict:
    """
    Obtiene las opciones del conversor mezclando overrides sobre los defaults.

    Args:
        **overrides: Opciones puntuales (ej: batch_size=1000)

    Returns:
        dict: Copia de DEFAULT_CONVERTER_OPTIONS con los overrides aplicados

    Raises:
        KeyError: Si se pasa una opción que no existe

    Ejemplo:
        >>> options = get_converter_options(batch_size=10)
        >>> options['batch_size']
        10
    """
    unknown = [key for key in overrides if key not in DEFAULT_CONVERTER_OPTIONS]
    if unknown:
        available = ", ".join(DEFAULT_CONVERTER_OPTIONS.keys())
        raise KeyError(
            f"Opciones desconocidas: {', '.join(unknown)}.\n"
            f"Opciones disponibles: {available}"
        )
    options = dict(DEFAULT_CONVERTER_OPTIONS)
    options.update(overrides)
    return options


def get_translations_module_name() -> str:
    """
    Retorna el nombre del módulo de traducciones a cargar con importlib.

    El módulo debe exponer una lista TABLES con instancias de TableTranslation.

    Ejemplo:
        >>> get_translations_module_name()
        'translations.example'
    """
    return TRANSLATIONS_MODULE
