"""
Normalización de nombres snake_case de PostgreSQL a camelCase de MongoDB.

Ejemplo:
    >>> to_mongo_name('dept_id')
    'deptId'
    >>> to_mongo_name('employees')
    'employees'
"""


def to_mongo_name(name: str) -> str:
    """
    Convierte un identificador snake_case a camelCase.

    Los nombres sin '_' se retornan sin cambios (incluso si ya tienen
    mayúsculas), para no alterar nombres que ya están en formato Mongo.

    Args:
        name: Nombre de tabla o columna en PostgreSQL

    Returns:
        str: Nombre normalizado para MongoDB
    """
    if "_" not in name:
        return name

    words = [word for word in name.split("_") if word]
    if not words:
        return name

    first = words[0][0].lower() + words[0][1:]
    rest = "".join(word[0].upper() + word[1:] for word in words[1:])
    return first + rest
