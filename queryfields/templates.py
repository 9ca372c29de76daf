# File: queryfields/templates.py
"""
queryfields - Source Template Engine
=====================================

Turns ``EntityDescriptor`` objects into companion source text:

    1. The marker declaration — emitted once per pass, always, whether or
       not any entity uses it.
    2. One fragment per entity with a non-empty field list, holding the
       five joins and the seven CRUD statements as named constants scoped
       to that type.

Two renderings are supported:

    - ``csharp``: a ``partial class`` extending the annotated type.  The
      statements are interpolated constant strings that reference the
      joins and the type's own ``TableName`` constant.
    - ``python``: a mixin module.  The statements are f-strings over the
      join constants in the class body; the table is the resolved value of
      the type's ``TableName`` attribute since a mixin cannot see the
      class that inherits it.

String assembly uses ``List[str]`` + ``"\\n".join()``.  Output carries no
timestamps, so rendering the same entity twice is byte-identical.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from queryfields.models import (
    JOIN_CONSTANTS,
    EntityDescriptor,
    GenerationConfig,
    JoinSet,
    TargetLanguage,
)
from queryfields.statements import (
    build_joins,
    delete_query,
    get_all_query,
    get_by_id_query,
    insert_query,
    patch_query,
    undelete_query,
    update_query,
)
from queryfields.utils import indent_lines, to_snake_case, wrap_in_quotes

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("queryfields.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FIELDS_MEMBER: str = "Fields"
TABLE_NAME_MEMBER: str = "TableName"

_PY_HEADER: str = "# Generated by queryfields {version}. Do not edit."
_CS_HEADER: str = "// <auto-generated>Generated by queryfields {version}. Do not edit.</auto-generated>"


def _generator_version() -> str:
    import queryfields

    return queryfields.__version__


def _placeholder(name: str) -> str:
    return "{" + name + "}"


def symbolic_statements(table_ref: str) -> List[Tuple[str, str]]:
    """
    Statement constants as interpolation bodies over the join constants.

    *table_ref* is inserted verbatim: ``"{TableName}"`` for a symbolic
    reference, or an already-escaped literal table name.
    """
    columns: str = _placeholder("CommaSeparated")
    return [
        ("GetAllQuery", get_all_query(columns, table_ref)),
        ("GetByIdQuery", get_by_id_query(columns, table_ref)),
        (
            "InsertQuery",
            insert_query(columns, _placeholder("ParametersCommaSeparated"), table_ref),
        ),
        ("UpdateQuery", update_query(_placeholder("ParametersAssignment"), table_ref)),
        (
            "PatchQuery",
            patch_query(
                _placeholder("CoalesceParametersAssignment"),
                columns,
                _placeholder("CoalesceValues"),
                table_ref,
            ),
        ),
        ("DeleteQuery", delete_query(table_ref)),
        ("UndeleteQuery", undelete_query(table_ref)),
    ]


def _join_constants(joins: JoinSet) -> List[Tuple[str, str]]:
    return [(const_name, getattr(joins, attr)) for const_name, attr in JOIN_CONSTANTS]


def _escape_fstring_literal(text: str) -> str:
    """Double the braces of literal text placed inside an f-string."""
    return text.replace("{", "{{").replace("}", "}}")


# ---------------------------------------------------------------------------
# Marker declaration
# ---------------------------------------------------------------------------


def _python_marker_lines(marker_name: str) -> List[str]:
    return [
        '"""Marker decorator requesting CRUD query generation."""',
        "",
        "from typing import Tuple",
        "",
        f'__all__ = ["{marker_name}"]',
        "",
        '_MARKER_ATTRIBUTE = "__query_fields__"',
        "",
        "",
        f"class {marker_name}:",
        f'    """Marks a class for CRUD query generation over ``{FIELDS_MEMBER}``."""',
        "",
        f'    __slots__ = ("{FIELDS_MEMBER}",)',
        "",
        "    def __init__(self, *fields: str) -> None:",
        f"        self.{FIELDS_MEMBER}: Tuple[str, ...] = tuple(fields)",
        "",
        "    def __call__(self, cls):",
        "        if not isinstance(cls, type):",
        f'            raise TypeError("{marker_name} can only decorate classes.")',
        "        if _MARKER_ATTRIBUTE in vars(cls):",
        f'            raise TypeError(f"{marker_name} is already applied to {{cls.__qualname__}}.")',
        "        setattr(cls, _MARKER_ATTRIBUTE, self)",
        "        return cls",
    ]


def _csharp_marker_lines(namespace: str, attribute_name: str, version: str) -> List[str]:
    body: List[str] = [
        f'[GeneratedCode("queryfields", "{version}")]',
        "[AttributeUsage(AttributeTargets.Class, Inherited = false, AllowMultiple = false)]",
        f"public sealed class {attribute_name}(params string[] fields) : Attribute",
        "{",
        f"    public string[] {FIELDS_MEMBER} = fields;",
        "}",
    ]
    lines: List[str] = [
        "using System;",
        "using System.CodeDom.Compiler;",
        "",
        f"namespace {namespace}",
        "{",
    ]
    lines.extend(indent_lines(body))
    lines.append("}")
    return lines


def render_marker_declaration(config: Optional[GenerationConfig] = None) -> str:
    """
    Return the source text defining the marker for the configured language.

    Parameter-free apart from configuration and never fails; the result
    depends only on ``language``, ``namespace`` and ``marker_name``.
    """
    config = config or GenerationConfig()
    version: str = _generator_version()

    if config.language == TargetLanguage.CSHARP:
        lines: List[str] = [_CS_HEADER.format(version=version)]
        lines.extend(
            _csharp_marker_lines(config.namespace, config.attribute_name, version)
        )
    else:
        lines = [_PY_HEADER.format(version=version)]
        lines.extend(_python_marker_lines(config.marker_name))

    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# TemplateGenerator
# ---------------------------------------------------------------------------


class TemplateGenerator:
    """
    Stateless rendering engine for one generation pass.

    Holds only the (read-only) configuration; every ``render_*`` method is
    a pure function of its arguments.
    """

    def __init__(self, config: Optional[GenerationConfig] = None) -> None:
        self._config: GenerationConfig = config or GenerationConfig()
        self._version: str = _generator_version()
        logger.debug(
            "TemplateGenerator initialised (language=%s, namespace=%s).",
            self._config.language,
            self._config.namespace,
        )

    @property
    def config(self) -> GenerationConfig:
        return self._config

    @property
    def is_csharp(self) -> bool:
        return self._config.language == TargetLanguage.CSHARP

    # ===================================================================
    # Paths
    # ===================================================================

    def marker_path(self) -> str:
        if self.is_csharp:
            return f"{self._config.attribute_name}.g.cs"
        return f"{to_snake_case(self._config.marker_name)}.py"

    def mixin_name(self, entity: EntityDescriptor) -> str:
        return f"{entity.type_name}{self._config.mixin_suffix}"

    def fragment_path(self, entity: EntityDescriptor) -> str:
        """
        Relative output path for an entity's fragment.

        Python fragments land in the package of the declaring module so the
        annotated class can import its mixin with a relative import.
        """
        if self.is_csharp:
            return f"{entity.type_name}.g.cs"

        file_name: str = f"{to_snake_case(entity.type_name)}{self._config.module_suffix}.py"
        package: str = entity.output_package
        if package:
            return "/".join(package.split(".") + [file_name])
        return file_name

    # ===================================================================
    # 1. Marker declaration
    # ===================================================================

    def render_marker_declaration(self) -> str:
        return render_marker_declaration(self._config)

    # ===================================================================
    # 2. Per-entity fragment
    # ===================================================================

    def render_fragment(self, entity: EntityDescriptor) -> Optional[str]:
        """
        Render the companion fragment for *entity*.

        Returns None for an empty field list: such types get no output at
        all, not an empty file.

        Raises:
            ValueError: Python rendering without a resolved table name.
        """
        fields: Tuple[str, ...] = tuple(entity.field_names)
        if not fields:
            logger.debug("Skipping %s: empty field list.", entity.type_name)
            return None

        joins: JoinSet = build_joins(fields)
        if self.is_csharp:
            return self._render_csharp_fragment(entity, joins)
        return self._render_python_fragment(entity, fields, joins)

    def _render_csharp_fragment(self, entity: EntityDescriptor, joins: JoinSet) -> str:
        members: List[str] = []
        for const_name, value in _join_constants(joins):
            members.append(
                f"private const string {const_name} = {wrap_in_quotes(value)};"
            )
        members.append("")
        for const_name, body in symbolic_statements(_placeholder(TABLE_NAME_MEMBER)):
            members.append(
                f"private const string {const_name} = ${wrap_in_quotes(body)};"
            )

        class_block: List[str] = [f"partial class {entity.type_name}", "{"]
        class_block.extend(indent_lines(members))
        class_block.append("}")

        lines: List[str] = [
            _CS_HEADER.format(version=self._version),
            f"namespace {self._config.namespace}",
            "{",
        ]
        lines.extend(indent_lines(class_block))
        lines.append("}")
        return "\n".join(lines) + "\n"

    def _render_python_fragment(
        self,
        entity: EntityDescriptor,
        fields: Sequence[str],
        joins: JoinSet,
    ) -> str:
        if not entity.table_name:
            raise ValueError(
                f"Type '{entity.type_name}' has no resolvable "
                f"{TABLE_NAME_MEMBER} string constant."
            )

        mixin: str = self.mixin_name(entity)
        table_ref: str = _escape_fstring_literal(entity.table_name)

        body: List[str] = [
            f'"""Query constants for ``{entity.type_name}`` ({", ".join(fields)})."""',
            "",
        ]
        for const_name, value in _join_constants(joins):
            body.append(f"{const_name} = {wrap_in_quotes(value)}")
        body.append("")
        for const_name, template in symbolic_statements(table_ref):
            body.append(f"{const_name} = f{wrap_in_quotes(template)}")

        lines: List[str] = [
            _PY_HEADER.format(version=self._version),
            f'"""CRUD queries for ``{entity.type_name}`` on table ``{entity.table_name}``."""',
            "",
            f'__all__ = ["{mixin}"]',
            "",
            "",
            f"class {mixin}:",
        ]
        lines.extend(indent_lines(body))
        return "\n".join(lines) + "\n"

    # ===================================================================
    # 3. Aggregates
    # ===================================================================

    def generate_for_entity(self, entity: EntityDescriptor) -> Dict[str, str]:
        """``{relative_path: content}`` for one entity; empty when skipped."""
        content: Optional[str] = self.render_fragment(entity)
        if content is None:
            return {}
        return {self.fragment_path(entity): content}

    def generate_all(self, entities: Sequence[EntityDescriptor]) -> Dict[str, str]:
        """
        Render the marker declaration plus every entity fragment.

        Entities are independent; an exception on one propagates to the
        caller, which decides whether to isolate it.
        """
        result: Dict[str, str] = {self.marker_path(): self.render_marker_declaration()}
        for entity in entities:
            result.update(self.generate_for_entity(entity))

        logger.info(
            "Rendered %d file(s) for %d entit(y/ies).", len(result), len(entities)
        )
        return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "FIELDS_MEMBER",
    "TABLE_NAME_MEMBER",
    "symbolic_statements",
    "render_marker_declaration",
    "TemplateGenerator",
]

logger.debug("queryfields.templates loaded.")
