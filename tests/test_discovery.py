"""
tests/test_discovery.py
Static discovery of marked classes with ``ast``.

Tests cover:
- Decorator forms (bare name, attribute access, bare decorator)
- TableName resolution
- Malformed arguments and repeated markers
- Directory walking, skipped directories, exclusions and module names
"""

from __future__ import annotations

import pathlib
import textwrap
from typing import List, Optional, Set

import pytest

from queryfields.discovery import (
    discover_entities,
    iter_source_files,
    module_name_for,
    package_name_for,
    normalize_field_values,
    scan_source,
)
from queryfields.models import EntityDescriptor, GenerationConfig


def _scan(code: str, **kwargs) -> List[EntityDescriptor]:
    return scan_source(textwrap.dedent(code), **kwargs)


def result_names(root: pathlib.Path, config: Optional[GenerationConfig] = None) -> Set[str]:
    return {e.type_name for e in discover_entities([root], config).entities}


# ===========================================================================
# Single-source scanning
# ===========================================================================


class TestScanSource:
    def test_bare_decorator_name(self) -> None:
        entities = _scan(
            '''
            @QueryFields("name", "price")
            class ItemRepository:
                TableName = "items"
            '''
        )
        assert len(entities) == 1
        entity = entities[0]
        assert entity.type_name == "ItemRepository"
        assert entity.table_name == "items"
        assert entity.field_names == ("name", "price")
        assert entity.malformed_field_indexes == ()
        assert entity.line == 3

    def test_attribute_decorator(self) -> None:
        entities = _scan(
            '''
            import queryfields

            @queryfields.QueryFields("title")
            class BookRepository:
                TableName: str = "books"
            '''
        )
        assert [e.type_name for e in entities] == ["BookRepository"]
        assert entities[0].table_name == "books"

    def test_unmarked_classes_are_ignored(self) -> None:
        entities = _scan(
            '''
            class Plain:
                TableName = "plain"

            @dataclass
            class Data:
                pass
            '''
        )
        assert entities == []

    def test_bare_marker_without_call_has_no_fields(self) -> None:
        entities = _scan(
            '''
            @QueryFields
            class Empty:
                TableName = "empty"
            '''
        )
        assert entities[0].field_names == ()

    def test_non_literal_arguments_are_malformed(self) -> None:
        entities = _scan(
            '''
            NAME = "name"

            @QueryFields(NAME, "price", 3)
            class ItemRepository:
                TableName = "items"
            '''
        )
        entity = entities[0]
        assert entity.field_names == ("", "price", "")
        assert entity.malformed_field_indexes == (0, 2)

    def test_non_literal_table_name_is_unresolved(self) -> None:
        entities = _scan(
            '''
            TABLE = "items"

            @QueryFields("name")
            class ItemRepository:
                TableName = TABLE
            '''
        )
        assert entities[0].table_name is None

    def test_repeated_marker_is_counted(self) -> None:
        entities = _scan(
            '''
            @QueryFields("b")
            @QueryFields("a")
            class Twice:
                TableName = "twice"
            '''
        )
        assert entities[0].marker_count == 2

    def test_nested_classes_in_source_order(self) -> None:
        entities = _scan(
            '''
            @QueryFields("a")
            class Outer:
                TableName = "outer"

                @QueryFields("b")
                class Inner:
                    TableName = "inner"

            @QueryFields("c")
            class Last:
                TableName = "last"
            '''
        )
        assert [e.type_name for e in entities] == ["Outer", "Inner", "Last"]

    def test_custom_marker_name(self) -> None:
        code = '''
            @Queryable("a")
            class Custom:
                TableName = "custom"

            @QueryFields("b")
            class Default:
                TableName = "default"
            '''
        entities = _scan(code, config=GenerationConfig(marker_name="Queryable"))
        assert [e.type_name for e in entities] == ["Custom"]

    def test_syntax_error_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Cannot parse broken.py"):
            scan_source("class (:\n", filename="broken.py")


class TestNormalizeFieldValues:
    def test_all_strings(self) -> None:
        assert normalize_field_values(["a", "b"]) == (("a", "b"), ())

    def test_non_strings_become_empty(self) -> None:
        assert normalize_field_values(["a", None, 5]) == (("a", "", ""), (1, 2))


# ===========================================================================
# File-system discovery
# ===========================================================================


class TestDiscoverEntities:
    def test_discovers_marked_classes(self, source_tree: pathlib.Path) -> None:
        result = discover_entities([source_tree])
        assert result.ok
        assert [e.type_name for e in result.entities] == ["ItemRepository", "UserRepository"]
        assert all(e.module == "shop.repositories" for e in result.entities)
        assert result.entities[1].table_name == "users"

    def test_pycache_is_skipped(self, source_tree: pathlib.Path) -> None:
        files = iter_source_files(source_tree, GenerationConfig())
        assert all("__pycache__" not in f.parts for f in files)
        assert result_names(source_tree) == {"ItemRepository", "UserRepository"}

    def test_exclude_patterns(self, source_tree: pathlib.Path) -> None:
        config = GenerationConfig(exclude=["shop/repositories.py"])
        assert discover_entities([source_tree], config).entities == []

    def test_hidden_directories(self, source_tree: pathlib.Path) -> None:
        hidden = source_tree / ".hidden"
        hidden.mkdir()
        (hidden / "secret.py").write_text(
            '@QueryFields("x")\nclass Secret:\n    TableName = "s"\n', encoding="utf-8"
        )
        assert "Secret" not in result_names(source_tree)
        assert "Secret" in result_names(source_tree, GenerationConfig(include_hidden=True))

    def test_single_file(self, source_tree: pathlib.Path) -> None:
        path = source_tree / "shop" / "repositories.py"
        result = discover_entities([path])
        assert result.files_scanned == 1
        assert result.entities[0].module == "repositories"

    def test_unparsable_file_is_recorded(self, source_tree: pathlib.Path) -> None:
        (source_tree / "shop" / "broken.py").write_text("def (:\n", encoding="utf-8")
        result = discover_entities([source_tree])
        assert not result.ok
        assert len(result.errors) == 1
        assert "broken.py" in result.errors[0]
        assert len(result.entities) == 2

    def test_missing_path_raises(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(FileNotFoundError):
            discover_entities([tmp_path / "nope"])


class TestModuleNameFor:
    def test_nested_module(self, tmp_path: pathlib.Path) -> None:
        assert module_name_for(tmp_path / "a" / "b.py", tmp_path) == "a.b"

    def test_package_init(self, tmp_path: pathlib.Path) -> None:
        assert module_name_for(tmp_path / "a" / "__init__.py", tmp_path) == "a"
    def test_package_init_lives_in_its_package(self, tmp_path: pathlib.Path) -> None:
        init = tmp_path / "a" / "__init__.py"
        assert package_name_for(init, tmp_path) == "a"
        assert package_name_for(tmp_path / "a" / "b.py", tmp_path) == "a"

    def test_root_files_have_no_package(self, tmp_path: pathlib.Path) -> None:
        assert package_name_for(tmp_path / "b.py", tmp_path) == ""
        assert package_name_for(tmp_path / "__init__.py", tmp_path) == ""

    def test_class_in_package_init(self, tmp_path: pathlib.Path) -> None:
        package = tmp_path / "src" / "shop"
        package.mkdir(parents=True)
        (package / "__init__.py").write_text(
            '@QueryFields("name")\nclass ItemRepository:\n    TableName = "items"\n',
            encoding="utf-8",
        )
        (entity,) = discover_entities([tmp_path / "src"]).entities
        assert entity.module == "shop"
        assert entity.package == "shop"
        assert entity.output_package == "shop"
