r"""
Script principal de conversión de tablas PostgreSQL a colecciones MongoDB.

Arquitectura:
- pgmigra.py: Menú interactivo y carga del módulo de traducciones
- translations/*.py: Definición declarativa de cada tabla (lista TABLES)
- conversion/: Pipeline (dependencias, tipos, schemas, batches)
- config.py: Conexiones y opciones por defecto

Flujo de ejecución:
1. Se carga dinámicamente el módulo de traducciones (TRANSLATIONS_MODULE)
2. Usuario selecciona el modo del menú interactivo
3. TableConverter ordena las tablas por dependencias
4. Cada tabla se procesa en batches (o se genera su schema / definición)

Modos:
- Convertir datos: inserta/actualiza documentos en MongoDB
- Generar schemas: escribe los JSON Schema en SCHEMA_OUTPUT_FILE
- Definiciones de translator: lista campo destino → columna origen por tabla

Uso:
    python pgmigra.py

    # Seleccionar modo del menú interactivo
    # El resto es automático
"""

from pathlib import Path
import sys
import io
import json
import importlib

# Asegurar que el directorio raíz esté en sys.path para imports dinámicos
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import config
import database
from conversion import ConfigurationError, TableConverter

MODES = [
    ("convert", "Convertir datos (PostgreSQL → MongoDB)"),
    ("schemas", "Generar JSON Schemas de las colecciones"),
    ("definitions", "Listar definiciones de translator"),
]


def load_translations(module_name):
    """
    Carga dinámicamente el módulo de traducciones.

    Args:
        module_name: Nombre del módulo (ej: 'translations.example')

    Returns:
        list: TABLES del módulo (instancias de TableTranslation)

    Raises:
        SystemExit: Si no existe el módulo o no expone TABLES
    """
    try:
        module = importlib.import_module(module_name)
    except ModuleNotFoundError as e:
        print(f"❌ No existe el módulo de traducciones '{module_name}'", file=sys.stderr)
        print(f"   Detalle: {e}", file=sys.stderr)
        sys.exit(1)

    tables = getattr(module, "TABLES", None)
    if not tables:
        print(
            f"❌ El módulo {module_name} no define una lista TABLES con traducciones",
            file=sys.stderr,
        )
        sys.exit(1)
    return list(tables)


def select_mode(tables):
    """
    Muestra el menú interactivo y retorna el modo elegido.

    Raises:
        SystemExit: Si el usuario cancela
    """
    print("\n" + "=" * 70)
    print(f"📚 TABLAS CONFIGURADAS ({len(tables)})")
    print("=" * 70)
    for translation in tables:
        print(f"   • {translation.from_schema}.{translation.from_table}")

    print("\n" + "=" * 70)
    print("🧭 MODOS DISPONIBLES")
    print("=" * 70)
    for i, (_, description) in enumerate(MODES, 1):
        print(f"{i}. {description}")
    print("=" * 70)

    while True:
        try:
            choice = input("Seleccione el número de modo (0 para salir): ").strip()

            if choice == "0":
                print("\n👋 Conversión cancelada por usuario")
                sys.exit(0)

            idx = int(choice) - 1

            if 0 <= idx < len(MODES):
                return MODES[idx][0]
            else:
                print("❌ Número fuera de rango. Intente nuevamente.")
        except ValueError:
            print("❌ Entrada inválida. Ingrese un número.")
        except (KeyboardInterrupt, EOFError):
            print("\n\n👋 Conversión cancelada por usuario")
            sys.exit(0)


def write_schemas(schemas, output_file):
    """Escribe los schemas generados como JSON indentado."""
    path = Path(output_file)
    path.write_text(json.dumps(schemas, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"\n💾 {len(schemas)} schemas escritos en {path.resolve()}")


def print_definitions(definitions):
    for definition in definitions:
        print(
            f"\n📋 {definition.schema}.{definition.table} → {definition.collection}"
        )
        for target, source in definition.column_mappings.items():
            print(f"   {source:<30} → {target}")


def run(mode, tables):
    """
    Ejecuta el modo elegido sobre todas las tablas.

    Returns:
        bool: True si terminó sin errores de configuración
    """
    converter = TableConverter()
    try:
        if mode == "convert":
            converter.convert_tables(*tables)
        elif mode == "schemas":
            schemas = converter.generate_schemas(*tables)
            write_schemas(schemas, config.SCHEMA_OUTPUT_FILE)
        elif mode == "definitions":
            print_definitions(converter.create_translator_definitions(*tables))
        return True
    except ConfigurationError as e:
        print(f"\n❌ Error de configuración: {e}", file=sys.stderr)
        return False
    finally:
        converter.close()
        database.close_all()


def main():
    # Forzar UTF-8 en stdout/stderr para emojis en Windows
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8")
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding="utf-8")

    print("=" * 70)
    print("🐘 ➜ 🍃  CONVERSIÓN POSTGRESQL → MONGODB")
    print("=" * 70)

    module_name = config.get_translations_module_name()
    print(f"📦 Módulo de traducciones: {module_name}")
    tables = load_translations(module_name)

    mode = select_mode(tables)
    success = run(mode, tables)

    print("\n" + "=" * 70)
    if success:
        print("✅ PROCESO FINALIZADO")
    else:
        print("❌ PROCESO ABORTADO")
    print("=" * 70)
    return success


if __name__ == "__main__":
    sys.exit(0 if main() else 1)
