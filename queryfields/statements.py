# File: queryfields/statements.py
"""
queryfields - SQL Statement Derivation
=======================================

Pure functions that turn an ordered field list and a table reference into
the join strings and CRUD statement templates.

Every statement function takes *already joined* pieces plus a table
reference.  Passing real joins and a table name yields the final SQL;
passing placeholders such as ``"{CommaSeparated}"`` and ``"{TableName}"``
yields the body of an interpolated string that references those constants.
The renderers in ``queryfields.templates`` rely on the latter, so the shape
of each statement is defined exactly once.

Conventions of the target dialect:
    - parameters are prefixed with ``@``;
    - every table has ``id``, ``created``, ``modified`` and ``deleted``
      columns managed outside the declared field list;
    - ``deleted`` is a nullable timestamp (soft delete);
    - ``modified`` doubles as the optimistic-concurrency version token.
"""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from queryfields.models import GeneratedArtifactSet, JoinSet

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("queryfields.statements")

# ---------------------------------------------------------------------------
# Dialect constants
# ---------------------------------------------------------------------------

PARAMETER_SIGIL: str = "@"
SEPARATOR: str = ","

# Columns every statement manages itself; they never appear in a field list.
MANAGED_COLUMNS: Tuple[str, ...] = ("id", "created", "modified", "deleted")

_AUDIT_COLUMNS: str = "created,modified,deleted"
_CONCURRENCY_GUARD: str = "(@Version IS NULL OR modified=@Version)"


# ---------------------------------------------------------------------------
# Joins
# ---------------------------------------------------------------------------


def comma_separated(fields: Sequence[str]) -> str:
    """``f1,f2,...,fn``"""
    return SEPARATOR.join(fields)


def parameters_comma_separated(fields: Sequence[str]) -> str:
    """``@f1,@f2,...,@fn``"""
    return SEPARATOR.join(f"{PARAMETER_SIGIL}{name}" for name in fields)


def parameters_assignment(fields: Sequence[str]) -> str:
    """``f1=@f1,f2=@f2,...`` — direct overwrite, used by full updates."""
    return SEPARATOR.join(f"{name}={PARAMETER_SIGIL}{name}" for name in fields)


def coalesce_value(name: str) -> str:
    """``COALESCE(@f,f)`` — the incoming value, or the stored one when null."""
    return f"COALESCE({PARAMETER_SIGIL}{name},{name})"


def coalesce_parameters_assignment(fields: Sequence[str]) -> str:
    """``f1=COALESCE(@f1,f1),...`` — null-preserving assignment for patches."""
    return SEPARATOR.join(f"{name}={coalesce_value(name)}" for name in fields)


def coalesce_values(fields: Sequence[str]) -> str:
    """``COALESCE(@f1,f1),COALESCE(@f2,f2),...``"""
    return SEPARATOR.join(coalesce_value(name) for name in fields)


def build_joins(fields: Sequence[str]) -> JoinSet:
    """
    Derive all five joins from one snapshot of *fields*.

    The sequence is copied into a tuple first, so a lazily evaluated or
    mutable source cannot change order between the five joins.
    """
    snapshot: Tuple[str, ...] = tuple(fields)
    return JoinSet(
        comma_separated=comma_separated(snapshot),
        parameters_comma_separated=parameters_comma_separated(snapshot),
        parameters_assignment=parameters_assignment(snapshot),
        coalesce_parameters_assignment=coalesce_parameters_assignment(snapshot),
        coalesce_values=coalesce_values(snapshot),
    )


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


def get_all_query(columns: str, table: str) -> str:
    """Paged select of live rows, bound by ``@Num`` and ``@Start``."""
    return (
        f"SELECT id,{columns},{_AUDIT_COLUMNS} FROM {table} "
        f"WHERE deleted IS NULL LIMIT @Num OFFSET @Start"
    )


def get_by_id_query(columns: str, table: str) -> str:
    """Single live row by ``@Id``."""
    return (
        f"SELECT id,{columns},{_AUDIT_COLUMNS} FROM {table} "
        f"WHERE deleted IS NULL AND id=@Id"
    )


def insert_query(columns: str, parameters: str, table: str) -> str:
    """Insert returning the generated id."""
    return (
        f"INSERT INTO {table} ({columns},{_AUDIT_COLUMNS}) "
        f"VALUES ({parameters},@Created,@Modified,@Deleted) RETURNING id"
    )


def update_query(assignments: str, table: str) -> str:
    """
    Full update of a live row.

    ``@Version`` is compared with the stored ``modified`` timestamp; a null
    ``@Version`` skips the check.
    """
    return (
        f"UPDATE {table} SET {assignments},modified=@Modified "
        f"WHERE deleted IS NULL AND id=@Id AND {_CONCURRENCY_GUARD}"
    )


def patch_query(
    coalesce_assignments: str,
    columns: str,
    coalesced: str,
    table: str,
) -> str:
    """
    Partial update: null parameters keep the stored value.

    Besides the concurrency guard, the row is only touched when at least one
    column actually changes, so a no-op patch leaves ``modified`` alone.
    """
    return (
        f"UPDATE {table} SET {coalesce_assignments},modified=@Modified "
        f"WHERE deleted IS NULL AND id=@Id AND {_CONCURRENCY_GUARD} "
        f"AND ({columns}) IS DISTINCT FROM ({coalesced})"
    )


def delete_query(table: str) -> str:
    """Soft delete; matches nothing when the row is already deleted."""
    return f"UPDATE {table} SET deleted=@Now WHERE id=@Id AND deleted IS NULL"


def undelete_query(table: str) -> str:
    """Reverse of :func:`delete_query`."""
    return f"UPDATE {table} SET deleted=NULL WHERE id=@Id AND deleted IS NOT NULL"


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


def build_artifacts(
    type_name: str,
    fields: Sequence[str],
    table: str,
) -> GeneratedArtifactSet:
    """
    Materialise every join and statement for one entity.

    Raises:
        ValueError: If *fields* is empty.  Callers skip such entities
            before getting here; an empty list has no meaningful SQL.
    """
    snapshot: Tuple[str, ...] = tuple(fields)
    if not snapshot:
        raise ValueError(f"Type '{type_name}' has an empty field list.")

    joins: JoinSet = build_joins(snapshot)
    artifacts: GeneratedArtifactSet = GeneratedArtifactSet(
        type_name=type_name,
        table_name=table,
        joins=joins,
        get_all_query=get_all_query(joins.comma_separated, table),
        get_by_id_query=get_by_id_query(joins.comma_separated, table),
        insert_query=insert_query(
            joins.comma_separated, joins.parameters_comma_separated, table
        ),
        update_query=update_query(joins.parameters_assignment, table),
        patch_query=patch_query(
            joins.coalesce_parameters_assignment,
            joins.comma_separated,
            joins.coalesce_values,
            table,
        ),
        delete_query=delete_query(table),
        undelete_query=undelete_query(table),
    )
    logger.debug(
        "Built artifacts for %s (%d fields, table=%s).",
        type_name,
        len(snapshot),
        table,
    )
    return artifacts


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "PARAMETER_SIGIL",
    "MANAGED_COLUMNS",
    "comma_separated",
    "parameters_comma_separated",
    "parameters_assignment",
    "coalesce_value",
    "coalesce_parameters_assignment",
    "coalesce_values",
    "build_joins",
    "get_all_query",
    "get_by_id_query",
    "insert_query",
    "update_query",
    "patch_query",
    "delete_query",
    "undelete_query",
    "build_artifacts",
]
