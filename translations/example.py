"""
Traducciones de ejemplo: schema 'public' de una base de RRHH.

Tablas:
- departments (id int4) → departments, con _legacyId para los lookups
- employees (id uuid, dept_id int4) → employees, dept_id se resuelve al
  _id del departamento vía Translator
- employee_profiles (employee_id uuid) → embed simple en employees.profile
- employee_tags (employee_id uuid, tag text) → array de strings en employees.tags

El orden de la lista no importa: el TableConverter ordena por dependencias
(departments → employees → embeds).
"""

from conversion import (
    IndexDefinition,
    PassthroughColumn,
    SchemaOptions,
    TableTranslation,
    TranslatedColumn,
    Translator,
)

DEPARTMENTS = TableTranslation(
    from_schema="public",
    from_table="departments",
    auto_legacy_id=True,
    mongify_column_names=True,
    indexes=[IndexDefinition({"name": 1}, {"unique": True})],
)

EMPLOYEES = TableTranslation(
    from_schema="public",
    from_table="employees",
    mongify_column_names=True,
    columns={
        "dept_id": TranslatedColumn(
            to="department",
            translator=Translator(
                source_collection="departments",
                source_id_field="_legacyId",
            ),
        ),
        "email": PassthroughColumn(
            to="email",
            index={"unique": True},
            schema_options=SchemaOptions({"format": "email"}),
        ),
    },
)

EMPLOYEE_PROFILES = TableTranslation(
    from_schema="public",
    from_table="employee_profiles",
    to_collection="employees",
    embed_in="profile",
    embed_single=True,
    embed_source_id_column="employee_id",
    include_timestamps=False,
    include_version=False,
    include_id=False,
)

EMPLOYEE_TAGS = TableTranslation(
    from_schema="public",
    from_table="employee_tags",
    to_collection="employees",
    embed_in="tags",
    embed_array_field="tag",
    embed_source_id_column="employee_id",
    include_timestamps=False,
    include_version=False,
    include_id=False,
)

TABLES = [EMPLOYEE_TAGS, EMPLOYEE_PROFILES, EMPLOYEES, DEPARTMENTS]
