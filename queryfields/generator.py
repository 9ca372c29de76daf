# File: queryfields/generator.py
"""
queryfields - Generation Pipeline (Orchestrator)
=================================================

Connects every phase together:

    Discovery / Manifest → Validation → Synthesis → Export

The ``QueryGenerator`` class provides both a programmatic API and the
backend for the CLI.

Workflow::

    1. Collect entities: scan Python sources (discovery.py) or load a
       JSON/YAML manifest.
    2. Resolve the ``GenerationConfig`` (manifest section, config file,
       explicit overrides, in that order).
    3. Run the validation pipeline (validators.py).
    4. Render the marker declaration plus one fragment per entity
       (templates.py).
    5. Hand the files to ``FragmentExporter`` (exporters.py), unless the
       caller only wants the rendered text.
    6. Return a ``GenerationReport`` with metrics and status.

Error handling strategy:
    - Input problems (missing paths, unparsable sources or manifests) are
      recorded as input errors.
    - Validation errors are collected and surfaced, not swallowed.  Strict
      mode aborts on any error; non-strict mode skips the offending
      entities and generates the rest.
    - Synthesis errors are isolated per entity.
    - Export errors are recorded from the exporter result.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from queryfields.discovery import DiscoveryResult, discover_entities, normalize_field_values
from queryfields.exporters import ExportManifest, ExportResult, FragmentExporter
from queryfields.models import (
    EntityDescriptor,
    GeneratedArtifactSet,
    GeneratedFile,
    GenerationConfig,
    ManifestDefinition,
)
from queryfields.statements import build_artifacts
from queryfields.templates import TemplateGenerator
from queryfields.utils import Timer
from queryfields.validators import ValidationResult, validate_full

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("queryfields.generator")

_CONFIG_KEYS: Tuple[str, ...] = ("config", "generation_config")
_ENTITY_KEYS: Tuple[str, ...] = ("entities", "types")


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Report produced by every ``QueryGenerator.generate*()`` call.

    ``files`` holds the rendered text keyed by relative path whether or not
    it was written to disk; ``artifacts`` holds the literal SQL of every
    entity whose table name is known.
    """

    success: bool = False
    language: str = ""
    output_directory: str = ""

    # Metrics
    total_files: int = 0
    total_bytes: int = 0
    total_lines: int = 0
    total_entities: int = 0
    total_elapsed_seconds: float = 0.0

    # Sub-reports
    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    input_errors: List[str] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    export_errors: List[str] = field(default_factory=list)
    generated_entities: List[str] = field(default_factory=list)
    skipped_entities: List[str] = field(default_factory=list)

    # Outputs
    validation: Optional[ValidationResult] = None
    files: Dict[str, str] = field(default_factory=dict)
    artifacts: Dict[str, GeneratedArtifactSet] = field(default_factory=dict)
    manifest: Optional[ExportManifest] = None

    def summary(self) -> str:
        """Return a human-readable summary string."""
        status: str = "SUCCESS" if self.success else "FAILED"
        lines: List[str] = [
            "=" * 60,
            "  queryfields - Generation Report",
            "=" * 60,
            f"  Status:           {status}",
            f"  Language:         {self.language}",
            f"  Output:           {self.output_directory or '(not written)'}",
            f"  Entities found:   {self.total_entities}",
            f"  Entities emitted: {len(self.generated_entities)}",
            f"  Files generated:  {self.total_files}",
            f"  Total lines:      {self.total_lines:,}",
            f"  Total bytes:      {self.total_bytes:,}",
            f"  Total time:       {self.total_elapsed_seconds:.3f}s",
            "─" * 60,
        ]

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<22s} "
                    f"{step.elapsed_seconds:>7.3f}s  {step.detail}"
                )

        sections: List[Tuple[str, str, List[str]]] = [
            ("Input Errors", "✗", self.input_errors),
            ("Validation Errors", "✗", self.validation_errors),
            ("Validation Warnings", "⚠", self.validation_warnings),
            ("Generation Errors", "✗", self.generation_errors),
            ("Export Errors", "✗", self.export_errors),
            ("Skipped Entities", "⊘", self.skipped_entities),
        ]
        for title, icon, items in sections:
            if not items:
                continue
            lines.append("─" * 60)
            lines.append(f"  {title} ({len(items)}):")
            for item in items:
                lines.append(f"    {icon} {item}")

        lines.append("=" * 60)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Manifest / config loader helpers
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    """Load and parse a JSON file. Raises ValueError on parse errors."""
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a JSON object at top level, got {type(data).__name__}."
        )
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file. Raises ValueError on parse errors."""
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a YAML mapping at top level, got {type(data).__name__}."
        )
    return data


def load_manifest_file(path: Path) -> Dict[str, Any]:
    """
    Load a manifest or config file (JSON or YAML).

    Dispatches based on file extension; unknown extensions are tried as
    JSON first, then YAML.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
    """
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)

    logger.info("Unknown extension '%s' — trying JSON then YAML.", suffix)
    try:
        return _load_json_file(path)
    except ValueError:
        return _load_yaml_file(path)


def _config_section(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for key in _CONFIG_KEYS:
        if key in raw:
            section: Any = raw[key]
            if section is None:
                return {}
            if not isinstance(section, dict):
                raise ValueError(f"'{key}' must be a mapping, got {type(section).__name__}.")
            return section
    return None


def load_config_file(path: Path) -> Dict[str, Any]:
    """
    Read generation settings from *path*.

    The file may hold the settings at top level or under a ``config`` /
    ``generation_config`` key.
    """
    raw: Dict[str, Any] = load_manifest_file(path)
    section: Optional[Dict[str, Any]] = _config_section(raw)
    return dict(section if section is not None else raw)


def build_config(*layers: Optional[Dict[str, Any]]) -> GenerationConfig:
    """
    Merge config mappings left to right (later wins) into a
    ``GenerationConfig``.

    Raises:
        ValueError: If the merged settings fail model validation.
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    try:
        return GenerationConfig.model_validate(merged)
    except PydanticValidationError as exc:
        raise ValueError(f"Config validation failed: {exc}") from exc


def _entity_from_raw(index: int, item: Any, source_file: Optional[str]) -> EntityDescriptor:
    if not isinstance(item, dict):
        raise ValueError(f"Entity #{index} must be a mapping, got {type(item).__name__}.")

    data: Dict[str, Any] = dict(item)
    raw_fields: Any = data.pop("fields", None)
    if raw_fields is None:
        raw_fields = []
    if isinstance(raw_fields, str) or not isinstance(raw_fields, (list, tuple)):
        raise ValueError(
            f"Entity #{index}: 'fields' must be a list, got {type(raw_fields).__name__}."
        )

    names, malformed = normalize_field_values(raw_fields)
    data["fields"] = names
    data["malformed_field_indexes"] = malformed
    data.setdefault("source_file", source_file)
    return EntityDescriptor.model_validate(data)


def parse_raw_manifest(
    raw: Dict[str, Any],
    *,
    source_file: Optional[str] = None,
    config_overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[ManifestDefinition, GenerationConfig]:
    """
    Parse a raw dictionary (from JSON/YAML) into validated models.

    Expected top-level keys:
        - "entities" (or "types"): list of ``{name, table, fields}``
        - "config" or "generation_config": optional generation settings

    Raises:
        ValueError: If required keys are missing or validation fails.
    """
    entity_data: Optional[Any] = None
    for key in _ENTITY_KEYS:
        if key in raw:
            entity_data = raw[key]
            break

    if entity_data is None:
        raise ValueError(
            "Cannot find entity list in manifest. "
            "Expected top-level key: 'entities' or 'types'."
        )
    if not isinstance(entity_data, list):
        raise ValueError(
            f"Entity list must be a list, got {type(entity_data).__name__}."
        )

    config_data: Optional[Dict[str, Any]] = _config_section(raw)
    if config_data is None:
        logger.info("No generation config found in manifest — using defaults.")

    try:
        entities: List[EntityDescriptor] = [
            _entity_from_raw(index, item, source_file)
            for index, item in enumerate(entity_data)
        ]
        manifest: ManifestDefinition = ManifestDefinition(
            entities=entities, source_file=source_file
        )
    except PydanticValidationError as exc:
        raise ValueError(f"Manifest validation failed: {exc}") from exc

    config: GenerationConfig = build_config(config_data, config_overrides)
    return manifest, config


# ---------------------------------------------------------------------------
# QueryGenerator: master orchestrator
# ---------------------------------------------------------------------------


class QueryGenerator:
    """
    Pipeline orchestrator for query-constant generation.

    Usage::

        generator = QueryGenerator()

        # Scan a source tree
        report = generator.generate_from_sources(
            [Path("src/app")], output_dir=Path("src/app")
        )

        # From a manifest
        report = generator.generate_from_manifest(
            Path("queries.yaml"), output_dir=Path("./generated")
        )

        print(report.summary())

    Passing ``output_dir=None`` renders without writing; the text is in
    ``report.files``.  The generator is reusable.
    """

    def __init__(
        self,
        *,
        strict_validation: bool = True,
        fail_on_warnings: bool = False,
        clean_output: bool = False,
        write_manifest: bool = True,
        validate_only: bool = False,
    ) -> None:
        """
        Args:
            strict_validation: If True, abort on any validation error.
                Otherwise skip the invalid entities and generate the rest.
            fail_on_warnings: If True, abort when validation warns.
            clean_output: If True, wipe the output directory before writing.
                Refused when that directory holds a source path or the manifest.
            write_manifest: If True, write ``manifest.json`` on export.
            validate_only: If True, stop after validation.
        """
        self._strict_validation: bool = strict_validation
        self._fail_on_warnings: bool = fail_on_warnings
        self._clean_output: bool = clean_output
        self._write_manifest: bool = write_manifest
        self._validate_only: bool = validate_only

        logger.debug(
            "QueryGenerator initialised: strict=%s, fail_on_warnings=%s, "
            "clean=%s, validate_only=%s.",
            strict_validation,
            fail_on_warnings,
            clean_output,
            validate_only,
        )

    # -----------------------------------------------------------------
    # Public: entry points
    # -----------------------------------------------------------------

    def generate_from_manifest(
        self,
        manifest_path: Path,
        output_dir: Optional[Path] = None,
        *,
        config_overrides: Optional[Dict[str, Any]] = None,
    ) -> GenerationReport:
        """Load a manifest → validate → generate → export."""
        report: GenerationReport = self._new_report(output_dir)
        start: float = time.perf_counter()

        conflict: Optional[str] = self._clean_conflict([manifest_path], output_dir)
        if conflict is not None:
            report.input_errors.append(conflict)
            logger.error("%s", conflict)
            return self._finalise_report(report, time.perf_counter() - start)

        with Timer("load_manifest") as t_load:
            try:
                raw: Dict[str, Any] = load_manifest_file(manifest_path)
                manifest, config = parse_raw_manifest(
                    raw,
                    source_file=str(manifest_path),
                    config_overrides=config_overrides,
                )
            except (FileNotFoundError, ValueError) as exc:
                report.input_errors.append(str(exc))
                failure: Optional[str] = str(exc)
            else:
                failure = None

        report.step_metrics.append(GenerationStepMetric(
            step_name="Load Manifest",
            success=failure is None,
            elapsed_seconds=t_load.elapsed,
            detail=failure or f"{manifest_path.name}",
        ))
        if failure is not None:
            logger.error("Failed to load manifest %s: %s", manifest_path, failure)
            return self._finalise_report(report, time.perf_counter() - start)

        logger.info(
            "Loaded manifest %s: %d entit(y/ies).", manifest_path, manifest.entity_count
        )
        return self._run_pipeline(manifest.entities, config, output_dir, report, start)

    def generate_from_sources(
        self,
        source_paths: Sequence[Path],
        output_dir: Optional[Path] = None,
        *,
        config: Optional[GenerationConfig] = None,
    ) -> GenerationReport:
        """Scan Python sources → validate → generate → export."""
        config = config or GenerationConfig()
        report: GenerationReport = self._new_report(output_dir)
        start: float = time.perf_counter()

        conflict: Optional[str] = self._clean_conflict(source_paths, output_dir)
        if conflict is not None:
            report.input_errors.append(conflict)
            logger.error("%s", conflict)
            return self._finalise_report(report, time.perf_counter() - start)

        with Timer("discovery") as t_scan:
            try:
                found: DiscoveryResult = discover_entities(source_paths, config)
            except FileNotFoundError as exc:
                report.input_errors.append(str(exc))
                found = DiscoveryResult()
                missing: bool = True
            else:
                missing = False

        report.input_errors.extend(found.errors)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Discover Entities",
            success=not missing and found.ok,
            elapsed_seconds=t_scan.elapsed,
            detail=(
                f"{len(found.entities)} entit(y/ies) in "
                f"{found.files_scanned} file(s)"
            ),
        ))
        if missing:
            return self._finalise_report(report, time.perf_counter() - start)

        return self._run_pipeline(found.entities, config, output_dir, report, start)

    def generate(
        self,
        entities: Sequence[EntityDescriptor],
        config: Optional[GenerationConfig] = None,
        output_dir: Optional[Path] = None,
    ) -> GenerationReport:
        """Full pipeline from in-memory descriptors."""
        report: GenerationReport = self._new_report(output_dir)
        return self._run_pipeline(
            list(entities), config or GenerationConfig(), output_dir, report,
            time.perf_counter(),
        )

    # -----------------------------------------------------------------
    # Internal: input safety
    # -----------------------------------------------------------------

    def _clean_conflict(
        self, inputs: Sequence[Path], output_dir: Optional[Path]
    ) -> Optional[str]:
        """
        Message when ``clean_output`` would delete one of *inputs*, else None.

        Cleaning wipes the whole output directory, so it may not be (or
        contain) a scanned source path or the manifest being read.
        """
        if not self._clean_output or self._validate_only or output_dir is None:
            return None
        target: Path = Path(output_dir).resolve()
        for raw in inputs:
            path: Path = Path(raw).resolve()
            if path == target or target in path.parents:
                return (
                    f"Refusing to clean {target}: it contains the input {path}. "
                    f"Write to a separate directory or drop --clean."
                )
        return None

    # -----------------------------------------------------------------
    # Internal: master pipeline
    # -----------------------------------------------------------------

    @staticmethod
    def _new_report(output_dir: Optional[Path]) -> GenerationReport:
        report: GenerationReport = GenerationReport()
        if output_dir is not None:
            report.output_directory = str(Path(output_dir).resolve())
        return report

    def _run_pipeline(
        self,
        entities: List[EntityDescriptor],
        config: GenerationConfig,
        output_dir: Optional[Path],
        report: GenerationReport,
        start: float,
    ) -> GenerationReport:
        report.language = str(config.language)
        report.total_entities = len(entities)

        proceed, skip = self._step_validate(entities, config, report)
        if not proceed or self._validate_only:
            return self._finalise_report(report, time.perf_counter() - start)

        self._step_generate(entities, config, skip, report)

        if output_dir is not None:
            self._step_export(config, Path(output_dir), report)

        return self._finalise_report(report, time.perf_counter() - start)

    # -----------------------------------------------------------------
    # Pipeline step: Validation
    # -----------------------------------------------------------------

    def _step_validate(
        self,
        entities: Sequence[EntityDescriptor],
        config: GenerationConfig,
        report: GenerationReport,
    ) -> Tuple[bool, Set[int]]:
        """
        Returns ``(proceed, indexes_to_skip)``.

        Configuration errors always abort: they affect every entity.
        """
        with Timer("validation") as t:
            result: ValidationResult = validate_full(entities, config)

        report.validation = result
        report.validation_errors.extend(str(e) for e in result.errors)
        report.validation_warnings.extend(str(w) for w in result.warnings)

        invalid: Set[int] = result.invalid_entity_indexes()
        global_errors: bool = any(e.entity_index is None for e in result.errors)

        if result.has_errors:
            detail: str = f"{result.error_count} error(s)"
        elif result.has_warnings:
            detail = f"{result.warning_count} warning(s)"
        else:
            detail = "all checks passed"

        report.step_metrics.append(GenerationStepMetric(
            step_name="Validate",
            success=result.is_valid,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))

        for err in result.errors:
            logger.error("  ✗ %s", err)
        for warn in result.warnings:
            logger.warning("  ⚠ %s", warn)

        if result.has_errors and (self._strict_validation or global_errors):
            logger.error("Validation failed with %d error(s); aborting.", result.error_count)
            return False, invalid

        if result.has_warnings and self._fail_on_warnings:
            report.validation_errors.append(
                f"{result.warning_count} warning(s) treated as errors."
            )
            logger.error("Validation warnings treated as errors; aborting.")
            return False, invalid

        if invalid:
            logger.warning(
                "Non-strict mode: skipping %d invalid entit(y/ies).", len(invalid)
            )
        return True, invalid

    # -----------------------------------------------------------------
    # Pipeline step: Synthesis
    # -----------------------------------------------------------------

    def _step_generate(
        self,
        entities: Sequence[EntityDescriptor],
        config: GenerationConfig,
        skip: Set[int],
        report: GenerationReport,
    ) -> None:
        """
        Render the marker declaration and every entity fragment.

        A failure while rendering one entity is recorded and the others
        are still generated.
        """
        with Timer("synthesis") as t:
            template_gen: TemplateGenerator = TemplateGenerator(config)
            report.files[template_gen.marker_path()] = template_gen.render_marker_declaration()

            for index, entity in enumerate(entities):
                if index in skip:
                    report.skipped_entities.append(f"{entity.type_name} (invalid)")
                    continue
                if not entity.field_names:
                    report.skipped_entities.append(f"{entity.type_name} (no fields)")
                    logger.info("Skipping %s: empty field list.", entity.type_name)
                    continue

                try:
                    rendered: Dict[str, str] = template_gen.generate_for_entity(entity)
                    if entity.table_name:
                        report.artifacts[entity.type_name] = build_artifacts(
                            entity.type_name, entity.field_names, entity.table_name
                        )
                except Exception as exc:
                    error_msg: str = (
                        f"{entity.type_name}: {type(exc).__name__}: {exc}"
                    )
                    report.generation_errors.append(error_msg)
                    logger.error("Generation failed for %s", error_msg, exc_info=True)
                    continue

                report.files.update(rendered)
                report.generated_entities.append(entity.type_name)

        files: List[GeneratedFile] = [
            GeneratedFile(path=path, content=content)
            for path, content in report.files.items()
        ]
        report.total_files = len(files)
        report.total_lines = sum(f.line_count for f in files)
        report.total_bytes = sum(f.size_bytes for f in files)

        detail: str = (
            f"{len(files)} file(s), {len(report.generated_entities)} entit(y/ies)"
        )
        report.step_metrics.append(GenerationStepMetric(
            step_name="Synthesize",
            success=not report.generation_errors,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))
        logger.info("Synthesis complete: %s in %.3fs.", detail, t.elapsed)

    # -----------------------------------------------------------------
    # Pipeline step: Export
    # -----------------------------------------------------------------

    def _step_export(
        self,
        config: GenerationConfig,
        output_dir: Path,
        report: GenerationReport,
    ) -> None:
        """Write all generated files to the filesystem."""
        with Timer("export") as t:
            exporter: FragmentExporter = FragmentExporter(
                config,
                output_dir,
                clean_before_export=self._clean_output,
                atomic_writes=True,
                generate_manifest=self._write_manifest,
            )
            export_result: ExportResult = exporter.export(report.files)

        report.export_errors.extend(export_result.errors)
        report.manifest = export_result.manifest

        report.step_metrics.append(GenerationStepMetric(
            step_name="Export",
            success=export_result.success,
            elapsed_seconds=t.elapsed,
            detail=(
                f"{export_result.manifest.total_files} files, "
                f"{export_result.manifest.total_bytes:,} bytes"
            ),
        ))

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    @staticmethod
    def _finalise_report(
        report: GenerationReport,
        total_elapsed: float,
    ) -> GenerationReport:
        report.total_elapsed_seconds = total_elapsed
        report.success = not (
            report.input_errors
            or report.validation_errors
            or report.generation_errors
            or report.export_errors
        )
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "QueryGenerator",
    "GenerationReport",
    "GenerationStepMetric",
    "load_manifest_file",
    "load_config_file",
    "build_config",
    "parse_raw_manifest",
]

logger.debug("queryfields.generator loaded.")
