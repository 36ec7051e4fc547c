"""
Módulos de traducciones (una lista TABLES de TableTranslation por módulo).

El módulo a usar se configura con TRANSLATIONS_MODULE en config.py / .env
y pgmigra.py lo carga con importlib.import_module().

Estructura:
    example.py: Departamentos, empleados y sus embeds (perfil, tags)
"""
