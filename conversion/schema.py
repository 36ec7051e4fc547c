"""
Generación de JSON Schema de las colecciones resultantes.

Cada unidad de conversión aporta un fragmento al schema de su colección:
- Unidades top-level: se mezclan como schema raíz de la colección
- Embeds: se insertan dentro del schema padre (array, objeto o raíz)

El estado acumulado vive en un SchemaRegistry, propiedad de una corrida
(TableConverter), no en estado global del módulo.

REGLA DE MERGE:
- dict + dict → merge recursivo
- lista de strings + lista de strings → unión ordenada sin duplicados
- cualquier otro caso → gana el valor más nuevo
"""

import copy

from .errors import SchemaGenerationError
from .types import default_value_converter, get_schema_for_type

OBJECT_ID_FRAGMENT = {"type": "string", "format": "ObjectId"}


def merge_arrays(destination, source):
    """
    Mezcla dos listas: unión sin duplicados si ambas empiezan con strings,
    si no, gana source.
    """
    if (
        destination
        and source
        and isinstance(destination[0], str)
        and isinstance(source[0], str)
    ):
        merged = list(destination)
        for value in source:
            if value not in merged:
                merged.append(value)
        return merged
    return copy.deepcopy(source)


def deep_merge(destination, source):
    """
    Retorna un nuevo dict con source mezclado recursivamente sobre destination.

    Ejemplo:
        >>> deep_merge({'required': ['a']}, {'required': ['a', 'b']})
        {'required': ['a', 'b']}
    """
    result = copy.deepcopy(destination)
    for key, value in source.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        elif isinstance(current, list) and isinstance(value, list):
            result[key] = merge_arrays(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class SchemaRegistry:
    """
    Schemas generados por colección durante una corrida.

    Attributes:
        schemas (dict): colección → JSON Schema acumulado
    """

    def __init__(self, base_schemas=None):
        self.schemas = copy.deepcopy(base_schemas) if base_schemas else {}

    def get(self, collection):
        return self.schemas.get(collection)

    def merge(self, collection, schema):
        """Mezcla schema sobre el acumulado de la colección y lo retorna."""
        current = self.schemas.get(collection)
        if current:
            current = deep_merge(current, schema)
        else:
            current = schema
        self.schemas[collection] = current
        return current

    def to_dict(self):
        return copy.deepcopy(self.schemas)


def apply_schema_options(column, fragment):
    """Aplica el override de schema de la columna (inclusive = merge, exclusive = reemplazo)."""
    options = column.schema_options
    if not options:
        return fragment
    if options.mode == "exclusive":
        return copy.deepcopy(options.json_schema)
    merged = dict(fragment or {})
    merged.update(copy.deepcopy(options.json_schema))
    return merged


def find_schema_property(path, schema):
    """
    Recorre un schema siguiendo un path de segmentos.

    En cada nivel busca en 'properties' y luego en 'items.properties'.
    Los segmentos posicionales ('$') se saltan.

    Args:
        path: Lista de segmentos (ej: ['comments', '$', 'replies'])
        schema: Schema desde donde empezar

    Returns:
        dict: Sub-schema encontrado

    Raises:
        SchemaGenerationError: Nombrando el primer segmento que no existe
    """
    current = schema
    for segment in path:
        if segment == "$":
            continue
        found = None
        properties = current.get("properties")
        if isinstance(properties, dict) and segment in properties:
            found = properties[segment]
        else:
            items = current.get("items")
            if isinstance(items, dict):
                item_properties = items.get("properties")
                if isinstance(item_properties, dict) and segment in item_properties:
                    found = item_properties[segment]
        if not isinstance(found, dict):
            raise SchemaGenerationError(
                f"No se encontró el segmento '{segment}' del path "
                f"{'.'.join(path)} en Schema({schema.get('title')})"
            )
        current = found
    return current


class SchemaGenerator:
    """
    Construye el fragmento de schema de una unidad y lo integra en el registry.

    Attributes:
        registry (SchemaRegistry): Schemas acumulados de la corrida
        default_value_converter (callable): (type, format, column_default) → default
    """

    def __init__(self, registry, value_converter=None):
        self.registry = registry
        self.default_value_converter = value_converter or default_value_converter

    # =========================================================================
    # MÉTODO PÚBLICO
    # =========================================================================

    def generate(self, translation, columns):
        """
        Genera el schema de una unidad y lo mezcla en el registry.

        Args:
            translation: TableTranslation preparada
            columns: Dict column_name → ColumnInfo

        Raises:
            UnsupportedTypeError: Columna con tipo sin registrar
            SchemaGenerationError: Path de embed no encontrado en el padre
        """
        translation.finalize_columns(columns)
        print(f"   🧬 Generando schema '{translation.label}'")

        schema = self.build_schema(translation, columns)

        if not translation.has_embed:
            schema["title"] = translation.to_collection
            self.registry.merge(translation.to_collection, schema)
        else:
            self._embed_schema(translation, schema)

    def build_schema(self, translation, columns):
        """Construye el schema {'type': 'object', 'properties', 'required'} de la unidad."""
        schema = {"type": "object", "properties": {}}
        if translation.indexes:
            schema["indexes"] = [index.to_dict() for index in translation.indexes]

        deleted_fields = set(translation.delete_fields)

        for column_name, column in translation.columns.items():
            if column.to in deleted_fields:
                continue

            metadata = columns.get(column_name)
            target = column.to
            if metadata is not None:
                if target == "id" and metadata.udt_name == "uuid":
                    target = "_id"
                if self._is_required(translation, target, metadata):
                    schema.setdefault("required", []).append(target)

            fragment = self._column_fragment(column, metadata)
            if fragment is None:
                continue
            schema["properties"][target] = fragment

        if "_id" not in schema["properties"] and translation.auto_legacy_id:
            schema["properties"]["_id"] = dict(OBJECT_ID_FRAGMENT)

        for column_name, dynamic_column in translation.dynamic_columns.items():
            if dynamic_column.json_schema:
                fragment = copy.deepcopy(dynamic_column.json_schema)
                if fragment.get("type") in ("object", "array"):
                    fragment["title"] = column_name
                schema["properties"][column_name] = fragment

        return schema

    # =========================================================================
    # MÉTODOS PRIVADOS
    # =========================================================================

    @staticmethod
    def _is_required(translation, target, metadata):
        if target in (
            translation.legacy_id_destination_name,
            translation.embed_source_field,
        ):
            return False
        if metadata.column_default:
            return False
        return not metadata.nullable

    def _column_fragment(self, column, metadata):
        if column.translator is not None:
            if not column.translator.desired_field:
                fragment = dict(OBJECT_ID_FRAGMENT)
            else:
                fragment = {"comment": "Unable to determine schema"}
            return apply_schema_options(column, fragment)

        if column.is_virtual or metadata is None:
            if column.schema_options:
                return apply_schema_options(column, {})
            return None

        fragment = get_schema_for_type(metadata)
        if fragment.get("format") == "geoJSON":
            fragment["title"] = column.to
            fragment["index"] = {"type": "2dsphere"}
        if metadata.column_default:
            default = self.default_value_converter(
                fragment.get("type"), fragment.get("format"), metadata.column_default
            )
            if default is not None:
                fragment["default"] = default
        return apply_schema_options(column, fragment)

    def _embed_schema(self, translation, schema):
        parent_schema = self.registry.get(translation.to_collection)
        if not parent_schema:
            print(
                f"   ⚠️  Schema padre '{translation.to_collection}' no generado, "
                f"se omite el embed de '{translation.from_table}'"
            )
            return

        new_schema = {"type": "array"}
        for _, column in translation.translated_columns():
            new_schema.setdefault("relatedObjects", []).append(
                {
                    "relatedCollection": column.translator.source_collection,
                    "relatedField": column.translator.lookup_field,
                    "localField": column.to,
                }
            )

        if translation.embed_array_field:
            new_schema["items"] = schema["properties"].get(translation.embed_array_field)
        else:
            schema["properties"].pop(translation.embed_source_field, None)
            if translation.embed_single or translation.embed_in_root:
                schema["properties"].pop("_id", None)
                new_schema = schema
            else:
                new_schema["items"] = schema

        if translation.embed_in_root:
            parent_schema["properties"].update(new_schema.get("properties", {}))
            return

        parsed = translation.embed_in_parsed
        if len(parsed) == 1:
            new_schema["title"] = translation.embed_in
            existing = parent_schema["properties"].get(translation.embed_in) or {}
            parent_schema["properties"][translation.embed_in] = deep_merge(
                existing, new_schema
            )
            return

        title = parsed[-1]
        new_schema["title"] = title
        parent_property = find_schema_property(parsed[:-1], parent_schema)
        if "properties" in parent_property:
            parent_property["properties"][title] = new_schema
        elif isinstance(parent_property.get("items"), dict):
            parent_property["items"].setdefault("properties", {})[title] = new_schema
        else:
            raise SchemaGenerationError(
                f"No se puede embeber '{title}' en {'.'.join(parsed[:-1])} "
                f"de Schema({parent_schema.get('title')}): no es objeto ni array de objetos"
            )
