"""
Resolución del orden de conversión por dependencias.

Cada unidad es un nodo del grafo:
- Unidades top-level: nodo = to_collection
- Embeds: nodo = from_table

Aristas (prerrequisitos del nodo), en orden de prioridad:
1. added_dependencies declaradas explícitamente
2. Embed de un segmento (o en raíz): su propia to_collection.
   Embed profundo: las tablas de las unidades que embeben en el path padre
3. La source_collection de cada translator

El orden es un DFS topológico determinístico (respeta el orden de entrada).
Un ciclo es fatal para todo el lote: nunca se rompe en silencio.

Ejemplo:
    resolution = DependencyResolver(translations).resolve()
    for translation in resolution.units:
        ...
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .errors import CircularDependencyError


@dataclass
class DependencyResolution:
    """
    Resultado de la resolución.

    Attributes:
        graph (dict): nodo → lista de prerrequisitos
        order (list): nodos en orden de procesamiento
        units (list): unidades expandidas en orden de procesamiento
    """

    graph: Dict[str, List[str]] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)
    units: list = field(default_factory=list)


def _dedupe(values):
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def _parent_embed_path(parsed):
    parent = list(parsed[:-1])
    while parent and parent[-1] == "$":
        parent.pop()
    return ".".join(parent)


def get_dependency_definition(translation, translations):
    """
    Calcula los prerrequisitos de una unidad.

    Args:
        translation: Unidad preparada
        translations: Todas las unidades del lote (para resolver embeds profundos)

    Returns:
        list: Nombres de nodos requeridos, sin duplicados
    """
    deps = list(translation.added_dependencies or [])

    if translation.has_embed:
        parsed = translation.embed_in_parsed
        if translation.embed_in_root or len(parsed) == 1:
            deps.append(translation.to_collection)
        else:
            parent_path = _parent_embed_path(parsed)
            deps.extend(
                other.from_table
                for other in translations
                if other is not translation and other.embed_in == parent_path
            )

    for _, column in translation.translated_columns():
        deps.append(column.translator.source_collection)

    return _dedupe(deps)


def sort_dependency_graph(graph):
    """
    Ordena topológicamente un grafo {nodo: [prerrequisitos]}.

    Los prerrequisitos que no son nodos del grafo (colecciones ya pobladas
    fuera del lote) no forman parte del resultado.

    Raises:
        CircularDependencyError: Con la cadena del ciclo (ej: a -> b -> a)

    Ejemplo:
        >>> sort_dependency_graph({'b': ['a'], 'a': []})
        ['a', 'b']
    """
    ordered = []
    visited = set()

    def visit(name, ancestors):
        ancestors = ancestors + [name]
        visited.add(name)
        if name not in graph:
            return
        for dep in graph[name]:
            if dep in ancestors:
                cycle = ancestors[ancestors.index(dep):] + [dep]
                raise CircularDependencyError(cycle)
            if dep in visited:
                continue
            visit(dep, ancestors)
        if name not in ordered:
            ordered.append(name)

    for name in graph:
        if name not in visited:
            visit(name, [])
    return ordered


class DependencyResolver:
    """
    Construye el grafo de dependencias y expande el orden a unidades.

    Attributes:
        translations (list): Unidades preparadas, en orden de entrada
    """

    def __init__(self, translations):
        self.translations = list(translations)

    def build_graph(self):
        graph = {}
        for translation in self.translations:
            node = translation.node_name
            if translation.ignore_dependencies:
                deps = []
            else:
                deps = get_dependency_definition(translation, self.translations)
            # Varias unidades pueden compartir nodo (ej: dos tablas → misma colección)
            graph[node] = _dedupe(graph.get(node, []) + deps)
        return graph

    def resolve(self):
        """
        Calcula el orden total de conversión.

        Returns:
            DependencyResolution: grafo, orden de nodos y unidades expandidas

        Raises:
            CircularDependencyError: Si el grafo tiene un ciclo
        """
        graph = self.build_graph()
        order = sort_dependency_graph(graph)

        by_collection = {}
        by_table = {}
        for translation in self.translations:
            if translation.has_embed:
                by_table.setdefault(translation.from_table, []).append(translation)
            else:
                by_collection.setdefault(translation.to_collection, []).append(translation)

        units = []
        for name in order:
            units.extend(by_collection.get(name) or by_table.get(name) or [])

        return DependencyResolution(graph=graph, order=order, units=units)
