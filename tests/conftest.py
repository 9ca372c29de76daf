"""
tests/conftest.py
Shared fixtures for the queryfields test suite.

No external mocking libraries are used; real file I/O is performed inside
temporary directories managed by pytest's tmp_path fixtures.
"""

from __future__ import annotations

import copy
import pathlib
import textwrap
from typing import Any, Dict

import pytest
import yaml

from queryfields.models import EntityDescriptor, GenerationConfig, TargetLanguage


# ---------------------------------------------------------------------------
# Entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def item_entity() -> EntityDescriptor:
    """The two-field entity used throughout the examples."""
    return EntityDescriptor(
        type_name="ItemRepository",
        table_name="items",
        field_names=("name", "price"),
        module="shop.repositories",
    )


@pytest.fixture()
def user_entity() -> EntityDescriptor:
    return EntityDescriptor(
        type_name="UserRepository",
        table_name="users",
        field_names=("email", "display_name", "active"),
        module="shop.repositories",
    )


@pytest.fixture()
def empty_entity() -> EntityDescriptor:
    return EntityDescriptor(type_name="AuditRepository", table_name="audit")


@pytest.fixture()
def python_config() -> GenerationConfig:
    return GenerationConfig()


@pytest.fixture()
def csharp_config() -> GenerationConfig:
    return GenerationConfig(language=TargetLanguage.CSHARP, namespace="Shop.Data")


# ---------------------------------------------------------------------------
# Source tree fixtures
# ---------------------------------------------------------------------------

REPOSITORIES_SOURCE: str = textwrap.dedent(
    '''
    from queryfields import QueryFields


    @QueryFields("name", "price")
    class ItemRepository:
        TableName = "items"


    @QueryFields("email", "display_name")
    class UserRepository:
        TableName: str = "users"


    class NotMarked:
        TableName = "ignored"
    '''
)


@pytest.fixture()
def source_tree(tmp_path: pathlib.Path) -> pathlib.Path:
    """
    A small package on disk::

        src/shop/__init__.py
        src/shop/repositories.py   (two marked classes)
        src/shop/__pycache__/stale.py
    """
    root: pathlib.Path = tmp_path / "src"
    package: pathlib.Path = root / "shop"
    package.mkdir(parents=True)
    (package / "__init__.py").write_text("", encoding="utf-8")
    (package / "repositories.py").write_text(REPOSITORIES_SOURCE, encoding="utf-8")

    cache: pathlib.Path = package / "__pycache__"
    cache.mkdir()
    (cache / "stale.py").write_text(
        '@QueryFields("x")\nclass Stale:\n    TableName = "stale"\n',
        encoding="utf-8",
    )
    return root


# ---------------------------------------------------------------------------
# Manifest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_manifest_dict() -> Dict[str, Any]:
    return {
        "config": {"language": "python"},
        "entities": [
            {"name": "ItemRepository", "table": "items", "fields": ["name", "price"]},
            {"name": "OrderRepository", "table": "orders", "fields": ["item_id", "quantity"]},
            {"name": "AuditRepository", "table": "audit", "fields": []},
        ],
    }


@pytest.fixture()
def manifest_dict(raw_manifest_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_manifest_dict)


@pytest.fixture()
def manifest_yaml_path(manifest_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the manifest dict to a temporary YAML file and return its path."""
    path = tmp_path / "queries.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(manifest_dict, fh, default_flow_style=False, allow_unicode=True)
    return path


@pytest.fixture()
def output_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    return tmp_path / "generated"
