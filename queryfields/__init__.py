# File: queryfields/__init__.py
"""
queryfields — CRUD Query Constant Generator
============================================

Generates parameterized SQL for classes marked with an ordered field list.
Every marked class gets a companion fragment holding five joins
(``CommaSeparated``, ``ParametersCommaSeparated``, ``ParametersAssignment``,
``CoalesceParametersAssignment``, ``CoalesceValues``) and seven statements
(``GetAllQuery``, ``GetByIdQuery``, ``InsertQuery``, ``UpdateQuery``,
``PatchQuery``, ``DeleteQuery``, ``UndeleteQuery``) over a single table with
soft-delete and optimistic-concurrency columns.

Architecture overview::

    ┌──────────────┐     ┌────────────────┐     ┌───────────────────┐
    │  CLI / Entry │────▶│ QueryGenerator │────▶│ TemplateGenerator │
    │   (cli.py)   │     │ (generator.py) │     │  (templates.py)   │
    └──────────────┘     └───────┬────────┘     └─────────┬─────────┘
                                 │                        ▼
                    ┌────────────┼────────────┐     statements.py
                    ▼            ▼            ▼
             ┌──────────┐ ┌───────────┐ ┌───────────┐
             │discovery │ │validators │ │ exporters │
             └──────────┘ └───────────┘ └───────────┘

Usage::

    from queryfields import QueryFields

    @QueryFields("name", "price")
    class ItemRepository(ItemRepositoryQueries):
        TableName = "items"

    # then, from the command line
    python -m queryfields --source src/app --output src
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from queryfields.marker import QueryFields, get_query_fields
from queryfields.models import (
    EntityDescriptor,
    GeneratedArtifactSet,
    GeneratedFile,
    GenerationConfig,
    JoinSet,
    ManifestDefinition,
    TargetLanguage,
)
from queryfields.statements import build_artifacts, build_joins
from queryfields.validators import ValidationResult, validate_full
from queryfields.utils import Timer, to_snake_case
from queryfields.templates import TemplateGenerator, render_marker_declaration
from queryfields.discovery import discover_entities, scan_source
from queryfields.exporters import ExportManifest, ExportResult, FragmentExporter
from queryfields.generator import GenerationReport, QueryGenerator

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__license__",
    # Marker
    "QueryFields",
    "get_query_fields",
    # Core orchestrator
    "QueryGenerator",
    "GenerationReport",
    # Models
    "EntityDescriptor",
    "GeneratedArtifactSet",
    "GeneratedFile",
    "GenerationConfig",
    "JoinSet",
    "ManifestDefinition",
    "TargetLanguage",
    # Synthesis
    "build_artifacts",
    "build_joins",
    "TemplateGenerator",
    "render_marker_declaration",
    # Discovery
    "discover_entities",
    "scan_source",
    # Validation
    "validate_full",
    "ValidationResult",
    # Exporters
    "FragmentExporter",
    "ExportManifest",
    "ExportResult",
    # Utilities
    "Timer",
    "to_snake_case",
]
