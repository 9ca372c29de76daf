# File: queryfields/discovery.py
"""
queryfields - Entity Discovery
===============================

Finds classes carrying the marker by parsing Python sources with ``ast``.
User modules are never imported, so discovery has no side effects and works
on code whose dependencies are not installed.

Recognised forms (``marker_name`` defaults to ``QueryFields``)::

    @QueryFields("name", "price")
    @queryfields.QueryFields("name", "price")
    @QueryFields                       # no fields: generates nothing

The table name is read from a ``TableName = "..."`` (or annotated)
assignment in the class body.  Any other form leaves it unresolved and
validation decides whether that matters for the target language.

Files are visited in sorted order and classes in source order, so the same
tree always yields the same entity list.
"""

from __future__ import annotations

import ast
import fnmatch
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from queryfields.models import EntityDescriptor, GenerationConfig
from queryfields.templates import TABLE_NAME_MEMBER

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("queryfields.discovery")

_SKIPPED_DIRECTORIES: frozenset = frozenset(
    {"__pycache__", "build", "dist", "node_modules", "venv", ".venv", ".tox"}
)


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class DiscoveryResult:
    """Entities found by a scan plus per-file failures."""

    entities: List[EntityDescriptor] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    files_scanned: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Field value normalisation
# ---------------------------------------------------------------------------


def normalize_field_values(values: Iterable[Any]) -> Tuple[Tuple[str, ...], Tuple[int, ...]]:
    """
    Split raw marker arguments into field names and malformed positions.

    Non-string values become ``""`` and their index is reported, so the
    field list keeps its length and order.
    """
    names: List[str] = []
    malformed: List[int] = []
    for index, value in enumerate(values):
        if isinstance(value, str):
            names.append(value)
        else:
            names.append("")
            malformed.append(index)
    return tuple(names), tuple(malformed)


# ---------------------------------------------------------------------------
# AST helpers
# ---------------------------------------------------------------------------


def _decorator_name(node: ast.expr) -> Optional[str]:
    target: ast.expr = node.func if isinstance(node, ast.Call) else node
    if isinstance(target, ast.Name):
        return target.id
    if isinstance(target, ast.Attribute):
        return target.attr
    return None


def _marker_arguments(node: ast.expr) -> List[Any]:
    if not isinstance(node, ast.Call):
        return []
    if node.keywords:
        logger.warning(
            "Keyword arguments on the marker at line %d are ignored.", node.lineno
        )
    # Anything but a literal (names, calls, starred args) is malformed.
    return [arg.value if isinstance(arg, ast.Constant) else None for arg in node.args]


def _table_name(class_node: ast.ClassDef) -> Optional[str]:
    for stmt in class_node.body:
        if isinstance(stmt, ast.Assign):
            targets: List[ast.expr] = stmt.targets
            value: Optional[ast.expr] = stmt.value
        elif isinstance(stmt, ast.AnnAssign):
            targets = [stmt.target]
            value = stmt.value
        else:
            continue
        if not any(isinstance(t, ast.Name) and t.id == TABLE_NAME_MEMBER for t in targets):
            continue
        if isinstance(value, ast.Constant) and isinstance(value.value, str):
            return value.value
        return None
    return None


# ---------------------------------------------------------------------------
# Source scanning
# ---------------------------------------------------------------------------


def scan_source(
    source: str,
    filename: str = "<string>",
    module: Optional[str] = None,
    config: Optional[GenerationConfig] = None,
    package: Optional[str] = None,
) -> List[EntityDescriptor]:
    """
    Return a descriptor for every marked class in *source*.

    Raises:
        ValueError: If *source* is not valid Python.
    """
    config = config or GenerationConfig()
    try:
        tree: ast.Module = ast.parse(source, filename=filename)
    except SyntaxError as exc:
        raise ValueError(f"Cannot parse {filename}: {exc.msg} (line {exc.lineno})") from exc

    classes: List[ast.ClassDef] = sorted(
        (n for n in ast.walk(tree) if isinstance(n, ast.ClassDef)),
        key=lambda n: (n.lineno, n.col_offset),
    )

    entities: List[EntityDescriptor] = []
    for class_node in classes:
        markers: List[ast.expr] = [
            d for d in class_node.decorator_list
            if _decorator_name(d) == config.marker_name
        ]
        if not markers:
            continue

        names, malformed = normalize_field_values(_marker_arguments(markers[0]))
        entity: EntityDescriptor = EntityDescriptor(
            type_name=class_node.name,
            table_name=_table_name(class_node),
            field_names=names,
            malformed_field_indexes=malformed,
            marker_count=len(markers),
            source_file=filename,
            line=class_node.lineno,
            module=module,
            package=package,
        )
        logger.debug("Discovered %r at %s.", entity, entity.location)
        entities.append(entity)

    return entities


def module_name_for(path: Path, root: Path) -> str:
    """Dotted module path of *path* relative to the scan *root*."""
    try:
        relative: Path = path.relative_to(root)
    except ValueError:
        relative = Path(path.name)
    parts: List[str] = list(relative.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts = parts[:-1] or [root.name]
    return ".".join(parts)


def package_name_for(path: Path, root: Path) -> str:
    """
    Dotted package of the directory holding *path*, relative to *root*.

    Unlike :func:`module_name_for` this is the same for ``shop/__init__.py``
    and ``shop/repos.py``: fragments belong next to the declaring file.
    """
    try:
        relative: Path = path.relative_to(root)
    except ValueError:
        return ""
    return ".".join(relative.parent.parts)


def _is_excluded(relative: str, config: GenerationConfig) -> bool:
    return any(fnmatch.fnmatch(relative, pattern) for pattern in config.exclude)


def iter_source_files(root: Path, config: GenerationConfig) -> List[Path]:
    """All ``.py`` files under *root*, sorted, honouring exclusions."""
    if root.is_file():
        return [root]

    found: List[Path] = []
    for path in sorted(root.rglob("*.py")):
        rel_parts: Tuple[str, ...] = path.relative_to(root).parts
        if any(part in _SKIPPED_DIRECTORIES for part in rel_parts[:-1]):
            continue
        if not config.include_hidden and any(part.startswith(".") for part in rel_parts):
            continue
        if _is_excluded(path.relative_to(root).as_posix(), config):
            continue
        found.append(path)
    return found


def discover_entities(
    paths: Sequence[Path],
    config: Optional[GenerationConfig] = None,
) -> DiscoveryResult:
    """
    Scan files and directories for marked classes.

    Unreadable or unparsable files are recorded in ``errors`` and the scan
    continues with the next file.

    Raises:
        FileNotFoundError: If one of *paths* does not exist.
    """
    config = config or GenerationConfig()
    result: DiscoveryResult = DiscoveryResult()

    for raw_path in paths:
        root: Path = Path(raw_path).resolve()
        if not root.exists():
            raise FileNotFoundError(f"Source path not found: {root}")

        base: Path = root.parent if root.is_file() else root
        for path in iter_source_files(root, config):
            result.files_scanned += 1
            try:
                source: str = path.read_text(encoding="utf-8")
                found: List[EntityDescriptor] = scan_source(
                    source,
                    filename=str(path),
                    module=module_name_for(path, base),
                    config=config,
                    package=package_name_for(path, base),
                )
            except (OSError, UnicodeDecodeError, ValueError) as exc:
                message: str = f"{path}: {exc}"
                result.errors.append(message)
                logger.error("Discovery failed for %s", message)
                continue
            result.entities.extend(found)

    logger.info(
        "Discovery complete: %d entit(y/ies) in %d file(s), %d error(s).",
        len(result.entities),
        result.files_scanned,
        len(result.errors),
    )
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DiscoveryResult",
    "normalize_field_values",
    "scan_source",
    "module_name_for",
    "package_name_for",
    "iter_source_files",
    "discover_entities",
]
