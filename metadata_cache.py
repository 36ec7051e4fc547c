"""
Cache en disco de la metadata de columnas (information_schema.columns).

Cada tabla se guarda en <directorio>/<schema>.<tabla>.json como JSON
indentado. El directorio se crea en la primera escritura.
"""

import json
from pathlib import Path

from conversion.models import ColumnInfo


class MetadataCache:
    """
    Cache de metadata por tabla.

    Attributes:
        directory (Path): Directorio del cache (resuelto a ruta absoluta)
    """

    def __init__(self, directory):
        self.directory = Path(directory).resolve()

    def path_for(self, schema, table):
        return self.directory / f"{schema}.{table}.json"

    def exists(self, schema, table):
        return self.path_for(schema, table).exists()

    def load(self, schema, table):
        """
        Lee la metadata cacheada.

        Returns:
            dict: column_name → ColumnInfo, o None si no hay cache
        """
        if not self.exists(schema, table):
            return None
        data = json.loads(self.path_for(schema, table).read_text(encoding="utf-8"))
        return {name: ColumnInfo.from_row(row) for name, row in data.items()}

    def save(self, schema, table, columns):
        """Guarda la metadata (dict column_name → ColumnInfo) como JSON indentado."""
        self.directory.mkdir(parents=True, exist_ok=True)
        data = {name: info.to_dict() for name, info in columns.items()}
        self.path_for(schema, table).write_text(
            json.dumps(data, indent=4, ensure_ascii=False), encoding="utf-8"
        )
