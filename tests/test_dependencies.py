"""
Tests del orden de conversión por dependencias.

Valida:
- Colecciones de lookup y padres de embeds se procesan primero
- El orden es determinístico para la misma entrada
- Los ciclos se reportan con la cadena completa
"""

import sys
import os

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conversion.dependencies import (
    DependencyResolver,
    get_dependency_definition,
    sort_dependency_graph,
)
from conversion.errors import CircularDependencyError
from conversion.models import TableTranslation
from translations.example import TABLES


def resolve(translations):
    return DependencyResolver([t.prepare() for t in translations]).resolve()


# === TESTS ===


def test_example_translations_order():
    print("\n=== TEST 1: Orden de translations.example ===")

    resolution = resolve(TABLES)

    assert resolution.order == [
        "departments",
        "employees",
        "employee_tags",
        "employee_profiles",
    ]
    assert [unit.from_table for unit in resolution.units] == [
        "departments",
        "employees",
        "employee_tags",
        "employee_profiles",
    ]
    print(f"   ✅ Orden: {' → '.join(resolution.order)}")


def test_order_is_deterministic():
    print("\n=== TEST 2: Determinismo ===")

    first = resolve(TABLES).order
    second = resolve(TABLES).order

    assert first == second
    print("   ✅ Misma entrada, mismo orden")


def test_cycle_reports_chain():
    print("\n=== TEST 3: Ciclo a → b → a ===")

    units = [
        TableTranslation(from_schema="public", from_table="a", added_dependencies=["b"]),
        TableTranslation(from_schema="public", from_table="b", added_dependencies=["a"]),
    ]

    try:
        resolve(units)
        assert False, "Debería lanzar CircularDependencyError"
    except CircularDependencyError as e:
        assert e.cycle == ["a", "b", "a"]
        assert "a -> b -> a" in str(e)
        print(f"   ✅ {e}")


def test_self_reference_is_a_cycle():
    print("\n=== TEST 4: Auto-referencia ===")

    try:
        sort_dependency_graph({"a": ["a"]})
        assert False, "Debería lanzar CircularDependencyError"
    except CircularDependencyError as e:
        assert e.cycle == ["a", "a"]
        print(f"   ✅ {e}")


def test_external_dependencies_are_not_emitted():
    print("\n=== TEST 5: Dependencias fuera del lote ===")

    order = sort_dependency_graph({"b": ["a", "external"], "a": []})

    assert order == ["a", "b"]
    print(f"   ✅ Orden: {order}")


def test_deep_embed_depends_on_parent_embed():
    print("\n=== TEST 6: Embed profundo ===")

    comments = TableTranslation(
        from_schema="public",
        from_table="comments",
        to_collection="posts",
        embed_in="comments",
        embed_source_id_column="post_id",
    ).prepare()
    replies = TableTranslation(
        from_schema="public",
        from_table="replies",
        to_collection="posts",
        embed_in="comments.$.replies",
        embed_source_id_column="comment_id",
        on_persist=lambda translation, documents: None,
    ).prepare()

    assert get_dependency_definition(comments, [comments, replies]) == ["posts"]
    assert get_dependency_definition(replies, [comments, replies]) == ["comments"]
    print("   ✅ replies → comments → posts")


def test_ignore_dependencies_keeps_unit():
    print("\n=== TEST 7: ignore_dependencies ===")

    resolution = resolve(
        [
            TableTranslation(
                from_schema="public",
                from_table="a",
                added_dependencies=["b"],
                ignore_dependencies=True,
            ),
            TableTranslation(from_schema="public", from_table="b"),
        ]
    )

    assert resolution.graph["a"] == []
    assert resolution.order == ["a", "b"]
    print(f"   ✅ Orden: {resolution.order}")


if __name__ == "__main__":
    test_example_translations_order()
    test_order_is_deterministic()
    test_cycle_reports_chain()
    test_self_reference_is_a_cycle()
    test_external_dependencies_are_not_emitted()
    test_deep_embed_depends_on_parent_embed()
    test_ignore_dependencies_keeps_unit()
    print("\n✅ Todos los tests de dependencias pasaron")
