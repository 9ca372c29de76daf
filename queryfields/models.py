# File: queryfields/models.py
"""
queryfields - Core Data Models
===============================
Pydantic V2 models describing annotated entities, the artifacts derived from
them and the generation configuration.  These models are the single source
of truth for the pipeline: Discovery → Validation → Synthesis → Export.

Entity descriptors and artifact sets are frozen: an artifact set is a pure
function of one descriptor and is never mutated after it is built.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from queryfields.utils import count_lines

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("queryfields.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TargetLanguage(str, Enum):
    """Languages the companion fragments can be rendered in."""

    PYTHON = "python"
    CSHARP = "csharp"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    frozen=False,
    extra="forbid",
)

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=True,
    frozen=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Entity descriptor: one annotated type
# ---------------------------------------------------------------------------


class EntityDescriptor(BaseModel):
    """
    A type carrying the marker, reduced to what the synthesizer needs.

    ``field_names`` is the ordered field list exactly as declared on the
    marker.  Positions listed in ``malformed_field_indexes`` held a value
    that was not a string; discovery stores ``""`` there and leaves the
    decision (error or coercion) to validation.
    """

    model_config = _FROZEN_CONFIG

    type_name: str = Field(..., min_length=1, alias="name", description="Annotated type name.")
    table_name: Optional[str] = Field(
        default=None,
        alias="table",
        description="Resolved value of the type's TableName constant.",
    )
    field_names: Tuple[str, ...] = Field(
        default=(), alias="fields", description="Ordered marker field list."
    )
    malformed_field_indexes: Tuple[int, ...] = Field(
        default=(), description="Marker argument positions that were not strings."
    )
    marker_count: int = Field(
        default=1, ge=1, description="How many times the marker was applied."
    )
    source_file: Optional[str] = Field(default=None, description="Declaring file.")
    line: Optional[int] = Field(default=None, ge=1, description="Declaration line.")
    module: Optional[str] = Field(default=None, description="Dotted module path.")
    package: Optional[str] = Field(
        default=None,
        description="Dotted package the declaring file lives in ('' for the root).",
    )

    @field_validator("field_names", mode="before")
    @classmethod
    def _snapshot_fields(cls, v: object) -> object:
        # Materialise generators / lists once so every join sees the same order.
        if isinstance(v, (list, tuple)):
            return tuple(v)
        if v is None:
            return ()
        return v

    @computed_field  # type: ignore[misc]
    @property
    def field_count(self) -> int:
        return len(self.field_names)

    @computed_field  # type: ignore[misc]
    @property
    def has_fields(self) -> bool:
        return bool(self.field_names)

    @property
    def output_package(self) -> str:
        """Package a Python fragment is written into, derived from ``module`` if unset."""
        if self.package is not None:
            return self.package
        if self.module:
            return self.module.rpartition(".")[0]
        return ""

    @property
    def location(self) -> str:
        """``file:line`` when known, else the type name."""
        if self.source_file and self.line:
            return f"{self.source_file}:{self.line}"
        return self.source_file or self.type_name

    def __repr__(self) -> str:
        return (
            f"<EntityDescriptor {self.type_name} "
            f"table={self.table_name!r} fields={list(self.field_names)}>"
        )


# ---------------------------------------------------------------------------
# Derived artifacts
# ---------------------------------------------------------------------------


class JoinSet(BaseModel):
    """The five joined strings every statement is composed from."""

    model_config = _FROZEN_CONFIG

    comma_separated: str
    parameters_comma_separated: str
    parameters_assignment: str
    coalesce_parameters_assignment: str
    coalesce_values: str


# Constant name → attribute name, in rendering order.
JOIN_CONSTANTS: Tuple[Tuple[str, str], ...] = (
    ("CommaSeparated", "comma_separated"),
    ("ParametersCommaSeparated", "parameters_comma_separated"),
    ("ParametersAssignment", "parameters_assignment"),
    ("CoalesceParametersAssignment", "coalesce_parameters_assignment"),
    ("CoalesceValues", "coalesce_values"),
)

STATEMENT_CONSTANTS: Tuple[Tuple[str, str], ...] = (
    ("GetAllQuery", "get_all_query"),
    ("GetByIdQuery", "get_by_id_query"),
    ("InsertQuery", "insert_query"),
    ("UpdateQuery", "update_query"),
    ("PatchQuery", "patch_query"),
    ("DeleteQuery", "delete_query"),
    ("UndeleteQuery", "undelete_query"),
)


class GeneratedArtifactSet(BaseModel):
    """Fully materialised joins and statements for one entity."""

    model_config = _FROZEN_CONFIG

    type_name: str
    table_name: str
    joins: JoinSet
    get_all_query: str
    get_by_id_query: str
    insert_query: str
    update_query: str
    patch_query: str
    delete_query: str
    undelete_query: str

    def as_constants(self) -> Dict[str, str]:
        """Constant name → value, joins first, in declaration order."""
        constants: Dict[str, str] = {}
        for const_name, attr in JOIN_CONSTANTS:
            constants[const_name] = getattr(self.joins, attr)
        for const_name, attr in STATEMENT_CONSTANTS:
            constants[const_name] = getattr(self, attr)
        return constants


# ---------------------------------------------------------------------------
# Generation configuration
# ---------------------------------------------------------------------------


class GenerationConfig(BaseModel):
    """
    Settings that control discovery and rendering.

    Read from a manifest's ``config`` section or a config file, then
    overridden by CLI flags.
    """

    model_config = _SHARED_CONFIG

    language: TargetLanguage = Field(
        default=TargetLanguage.PYTHON,
        validate_default=True,
        description="Target rendering language.",
    )
    namespace: str = Field(
        default="Repositories",
        min_length=1,
        description="C# namespace for the marker and partial classes.",
    )
    marker_name: str = Field(
        default="QueryFields",
        min_length=1,
        description="Decorator / attribute name recognised by discovery.",
    )
    module_suffix: str = Field(
        default="_queries", description="Suffix of generated Python modules."
    )
    mixin_suffix: str = Field(
        default="Queries", min_length=1, description="Suffix of generated Python mixins."
    )
    coerce_malformed_fields: bool = Field(
        default=False,
        description="Coerce non-string marker arguments to '' instead of failing.",
    )
    include_hidden: bool = Field(
        default=False, description="Descend into dot-directories while scanning."
    )
    exclude: List[str] = Field(
        default_factory=list, description="Glob patterns skipped while scanning."
    )

    @property
    def attribute_name(self) -> str:
        """C# attribute class name (``QueryFields`` → ``QueryFieldsAttribute``)."""
        if self.marker_name.endswith("Attribute"):
            return self.marker_name
        return f"{self.marker_name}Attribute"


# ---------------------------------------------------------------------------
# Manifest: explicit entity list instead of a source scan
# ---------------------------------------------------------------------------


class ManifestDefinition(BaseModel):
    """Entities declared directly in a JSON/YAML manifest."""

    model_config = _SHARED_CONFIG

    entities: List[EntityDescriptor] = Field(
        default_factory=list, description="Entities to generate for."
    )
    source_file: Optional[str] = Field(
        default=None, description="Manifest file path."
    )

    @computed_field  # type: ignore[misc]
    @property
    def entity_count(self) -> int:
        return len(self.entities)


# ---------------------------------------------------------------------------
# Generated output
# ---------------------------------------------------------------------------


class GeneratedFile(BaseModel):
    """A single file produced by the generator."""

    model_config = _SHARED_CONFIG

    path: str = Field(..., min_length=1, description="Relative file path.")
    content: str = Field(..., description="Full file content.")
    type_name: Optional[str] = Field(
        default=None, description="Entity the file belongs to (None for the marker)."
    )
    line_count: int = Field(default=0, ge=0, description="Number of lines.")
    size_bytes: int = Field(default=0, ge=0, description="Content size in bytes.")

    @model_validator(mode="after")
    def _compute_metrics(self) -> "GeneratedFile":
        # object.__setattr__ avoids re-running validation on assignment.
        object.__setattr__(self, "line_count", count_lines(self.content))
        object.__setattr__(self, "size_bytes", len(self.content.encode("utf-8")))
        return self


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "TargetLanguage",
    "EntityDescriptor",
    "JoinSet",
    "JOIN_CONSTANTS",
    "STATEMENT_CONSTANTS",
    "GeneratedArtifactSet",
    "GenerationConfig",
    "ManifestDefinition",
    "GeneratedFile",
]

logger.debug("queryfields.models loaded — %d public symbols.", len(__all__))
