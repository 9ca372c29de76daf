# File: queryfields/validators.py
"""
queryfields - Entity & Configuration Validators
================================================
A pure-function validation pipeline over ``EntityDescriptor`` lists and the
``GenerationConfig``.

Pydantic handles structural correctness of each model.  This module adds
the semantic checks that decide whether an entity's generated SQL would be
well-formed: malformed or duplicate field names, names that collide with
the columns every statement manages, unresolvable table names, repeated
markers, and configuration sanity.

Diagnostics are collected, never raised.  Every entity-level item carries
the entity's position in the input list under ``context["index"]`` so the
orchestrator can skip just the offending entities in non-strict mode.

Usage::

    from queryfields.validators import validate_full
    result = validate_full(entities, config)
    if not result:
        print(result.format_report())
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from queryfields.models import EntityDescriptor, GenerationConfig, TargetLanguage
from queryfields.statements import MANAGED_COLUMNS
from queryfields.templates import TemplateGenerator
from queryfields.utils import PYTHON_KEYWORDS, is_identifier

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("queryfields.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight diagnostic descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    @property
    def entity_index(self) -> Optional[int]:
        return self.context.get("index")

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class ValidationResult:
    """Accumulates ``ValidationError`` items produced by the pipeline."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def add_info(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("info", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def all_items(self) -> List[ValidationError]:
        return list(self._items)

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def has_warnings(self) -> bool:
        return any(e.is_warning for e in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    def invalid_entity_indexes(self) -> Set[int]:
        """Positions of entities with at least one error."""
        return {
            e.entity_index for e in self._items
            if e.is_error and e.entity_index is not None
        }

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), "
            f"{self.warning_count} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            if not include_info and item.level == "info":
                continue
            prefix: str = {
                "error": "✗",
                "warning": "⚠",
                "info": "ℹ",
            }.get(item.level, "•")
            lines.append(f"  {prefix} [{item.code}] {item.message}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Patterns and reserved words
# ---------------------------------------------------------------------------

_DOTTED_IDENTIFIER_RE: re.Pattern[str] = re.compile(
    r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$"
)
_MODULE_SUFFIX_RE: re.Pattern[str] = re.compile(r"^[A-Za-z0-9_]*$")

# Characters that would break the generated string literals.
_UNSAFE_TABLE_CHARS: FrozenSet[str] = frozenset({'"', "\\", "\n", "\r", "{", "}"})

# SQL reserved words (common subset) that need quoting as column names
_SQL_RESERVED_WORDS: FrozenSet[str] = frozenset(
    {
        "select", "insert", "update", "delete", "drop", "create", "alter",
        "table", "column", "index", "from", "where", "join", "inner",
        "outer", "left", "right", "on", "and", "or", "not", "null",
        "true", "false", "in", "between", "like", "is", "as", "order",
        "by", "group", "having", "limit", "offset", "union", "all",
        "distinct", "case", "when", "then", "else", "end", "exists",
        "primary", "foreign", "key", "references", "constraint", "check",
        "default", "unique", "cascade", "set", "values", "into",
        "grant", "revoke", "begin", "commit", "rollback", "transaction",
        "user", "role", "schema", "database", "trigger", "procedure",
        "function", "view", "sequence", "returning", "with", "recursive",
    }
)


def _ctx(index: int, entity: EntityDescriptor, **extra: Any) -> Dict[str, Any]:
    ctx: Dict[str, Any] = {"index": index, "type": entity.type_name}
    ctx.update(extra)
    return ctx


# ---------------------------------------------------------------------------
# Per-entity validation functions
# ---------------------------------------------------------------------------


def validate_type_name(
    index: int, entity: EntityDescriptor, config: GenerationConfig
) -> ValidationResult:
    """The type name must be usable as a class and file name."""
    result: ValidationResult = ValidationResult()
    name: str = entity.type_name

    if not is_identifier(name):
        result.add_error(
            "INVALID_TYPE_NAME",
            f"Type name '{name}' at {entity.location} is not a valid identifier.",
            _ctx(index, entity),
        )
    elif name in PYTHON_KEYWORDS:
        result.add_error(
            "INVALID_TYPE_NAME",
            f"Type name '{name}' at {entity.location} is a Python keyword.",
            _ctx(index, entity),
        )

    if entity.marker_count > 1:
        result.add_error(
            "MULTIPLE_MARKERS",
            f"{config.marker_name} is applied {entity.marker_count} times to "
            f"'{name}' at {entity.location}; it is not repeatable.",
            _ctx(index, entity),
        )
    return result


def validate_field_list(
    index: int, entity: EntityDescriptor, config: GenerationConfig
) -> ValidationResult:
    """
    Check each declared field name.

    An empty list is reported as info only: the entity is skipped, which
    is the intended behaviour rather than a failure.
    """
    result: ValidationResult = ValidationResult()

    if not entity.field_names:
        result.add_info(
            "EMPTY_FIELD_LIST",
            f"'{entity.type_name}' declares no fields; nothing is generated.",
            _ctx(index, entity),
        )
        return result

    malformed: Set[int] = set(entity.malformed_field_indexes)
    for position in sorted(malformed):
        ctx: Dict[str, Any] = _ctx(index, entity, position=position)
        if config.coerce_malformed_fields:
            result.add_warning(
                "MALFORMED_FIELD",
                f"Argument {position} of {config.marker_name} on "
                f"'{entity.type_name}' is not a string; coerced to ''.",
                ctx,
            )
        else:
            result.add_error(
                "MALFORMED_FIELD",
                f"Argument {position} of {config.marker_name} on "
                f"'{entity.type_name}' at {entity.location} is not a string.",
                ctx,
            )

    counts: Counter = Counter(
        name for position, name in enumerate(entity.field_names)
        if position not in malformed
    )
    for name, count in counts.items():
        if count > 1:
            result.add_error(
                "DUPLICATE_FIELD_NAME",
                f"Field '{name}' is listed {count} times on '{entity.type_name}'.",
                _ctx(index, entity, field=name),
            )

    for position, name in enumerate(entity.field_names):
        if position in malformed:
            continue
        ctx = _ctx(index, entity, field=name)

        if not is_identifier(name):
            result.add_error(
                "INVALID_FIELD_NAME",
                f"Field '{name}' on '{entity.type_name}' is not a valid identifier.",
                ctx,
            )
            continue

        if name.lower() in MANAGED_COLUMNS:
            result.add_error(
                "RESERVED_COLUMN_NAME",
                f"Field '{name}' on '{entity.type_name}' collides with a column "
                f"every statement manages ({', '.join(MANAGED_COLUMNS)}).",
                ctx,
            )

        if name.lower() in _SQL_RESERVED_WORDS:
            result.add_warning(
                "FIELD_NAME_SQL_RESERVED",
                f"Field '{name}' on '{entity.type_name}' is a SQL reserved word "
                f"and is emitted unquoted.",
                ctx,
            )

    return result


def validate_table_name(
    index: int, entity: EntityDescriptor, config: GenerationConfig
) -> ValidationResult:
    """
    Python fragments embed the table name; C# fragments reference the
    type's own ``TableName`` constant, so a missing value only matters
    for Python.
    """
    result: ValidationResult = ValidationResult()
    if not entity.field_names:
        return result

    table: Optional[str] = entity.table_name
    if not table:
        if config.language == TargetLanguage.PYTHON:
            result.add_error(
                "UNRESOLVED_TABLE_NAME",
                f"'{entity.type_name}' at {entity.location} has no string-literal "
                f"TableName attribute.",
                _ctx(index, entity),
            )
        else:
            result.add_warning(
                "UNRESOLVED_TABLE_NAME",
                f"'{entity.type_name}' has no TableName value in the input; the "
                f"generated code relies on the type defining it.",
                _ctx(index, entity),
            )
        return result

    if any(ch in _UNSAFE_TABLE_CHARS for ch in table):
        result.add_error(
            "INVALID_TABLE_NAME",
            f"Table name {table!r} of '{entity.type_name}' contains characters "
            f"that cannot be embedded in a string constant.",
            _ctx(index, entity, table=table),
        )
    elif not _DOTTED_IDENTIFIER_RE.match(table):
        result.add_warning(
            "TABLE_NAME_NOT_IDENTIFIER",
            f"Table name {table!r} of '{entity.type_name}' is emitted unquoted.",
            _ctx(index, entity, table=table),
        )
    return result


def validate_entity(
    index: int, entity: EntityDescriptor, config: GenerationConfig
) -> ValidationResult:
    """All per-entity checks for one descriptor."""
    result: ValidationResult = ValidationResult()
    result.merge(validate_type_name(index, entity, config))
    result.merge(validate_field_list(index, entity, config))
    result.merge(validate_table_name(index, entity, config))
    return result


# ---------------------------------------------------------------------------
# Cross-entity validation
# ---------------------------------------------------------------------------


def validate_unique_types(
    entities: Sequence[EntityDescriptor], config: GenerationConfig
) -> ValidationResult:
    """
    Two entities must not render to the same file.

    Paths are compared case-insensitively: ``ItemRepo`` and ``Item_Repo``
    both become ``item_repo_queries.py``, and ``Item.g.cs`` / ``ITEM.g.cs``
    collide on case-insensitive filesystems.  A fragment may not replace
    the marker declaration either.
    """
    result: ValidationResult = ValidationResult()
    template_gen: TemplateGenerator = TemplateGenerator(config)
    marker_path: str = template_gen.marker_path()
    seen: Dict[str, EntityDescriptor] = {}

    for index, entity in enumerate(entities):
        if not entity.field_names:
            continue
        path: str = template_gen.fragment_path(entity)
        key: str = path.casefold()

        if key == marker_path.casefold():
            result.add_error(
                "FRAGMENT_PATH_COLLISION",
                f"The fragment of '{entity.type_name}' at {entity.location} would "
                f"overwrite the marker declaration '{marker_path}'.",
                _ctx(index, entity, path=path),
            )
            continue

        first: Optional[EntityDescriptor] = seen.get(key)
        if first is None:
            seen[key] = entity
            continue
        if first.type_name == entity.type_name:
            result.add_error(
                "DUPLICATE_TYPE_NAME",
                f"'{entity.type_name}' at {entity.location} would overwrite the "
                f"fragment of '{first.type_name}' at {first.location}.",
                _ctx(index, entity, path=path),
            )
        else:
            result.add_error(
                "FRAGMENT_PATH_COLLISION",
                f"'{entity.type_name}' at {entity.location} and '{first.type_name}' "
                f"at {first.location} both render to '{path}'.",
                _ctx(index, entity, path=path),
            )
    return result


def validate_generation_config(config: GenerationConfig) -> ValidationResult:
    """Semantic checks on the configuration beyond pydantic's constraints."""
    result: ValidationResult = ValidationResult()

    if not _DOTTED_IDENTIFIER_RE.match(config.namespace):
        result.add_error(
            "INVALID_NAMESPACE",
            f"Namespace '{config.namespace}' is not a dotted identifier.",
            {"namespace": config.namespace},
        )

    if not is_identifier(config.marker_name):
        result.add_error(
            "INVALID_MARKER_NAME",
            f"Marker name '{config.marker_name}' is not a valid identifier.",
            {"marker_name": config.marker_name},
        )

    if not _MODULE_SUFFIX_RE.match(config.module_suffix):
        result.add_error(
            "INVALID_MODULE_SUFFIX",
            f"Module suffix '{config.module_suffix}' may only contain letters, "
            f"digits and underscores.",
            {"module_suffix": config.module_suffix},
        )

    if not _MODULE_SUFFIX_RE.match(config.mixin_suffix):
        result.add_error(
            "INVALID_MIXIN_SUFFIX",
            f"Mixin suffix '{config.mixin_suffix}' may only contain letters, "
            f"digits and underscores.",
            {"mixin_suffix": config.mixin_suffix},
        )

    if config.coerce_malformed_fields:
        result.add_info(
            "COERCION_ENABLED",
            "Malformed marker arguments will be coerced to '' instead of failing.",
        )

    return result


# ---------------------------------------------------------------------------
# Composite validation orchestrator
# ---------------------------------------------------------------------------


def validate_full(
    entities: Sequence[EntityDescriptor],
    config: GenerationConfig,
) -> ValidationResult:
    """
    **Master validation entry point.**

    Config checks, cross-entity checks, then every entity in order.
    """
    logger.info(
        "Starting validation — %d entit(y/ies), language=%s.",
        len(entities),
        config.language,
    )

    result: ValidationResult = ValidationResult()
    result.merge(validate_generation_config(config))
    result.merge(validate_unique_types(entities, config))
    for index, entity in enumerate(entities):
        result.merge(validate_entity(index, entity, config))

    if result.has_errors:
        logger.error(
            "Validation FAILED with %d error(s). %s",
            result.error_count,
            result.summary(),
        )
    else:
        logger.info("Validation PASSED. %s", result.summary())

    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationError",
    "ValidationResult",
    "validate_type_name",
    "validate_field_list",
    "validate_table_name",
    "validate_entity",
    "validate_unique_types",
    "validate_generation_config",
    "validate_full",
]

logger.debug("queryfields.validators loaded — %d public symbols.", len(__all__))
