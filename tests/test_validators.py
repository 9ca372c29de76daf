"""
tests/test_validators.py
Unit tests for queryfields.validators.

Tests cover:
- Field list checks (empty, malformed, duplicate, invalid, reserved)
- Type and table name checks, repeated markers
- Cross-entity duplicate detection
- Configuration checks
- The validate_full entry point and its report helpers
"""

from __future__ import annotations

from typing import Any, List

import pytest

from queryfields.models import EntityDescriptor, GenerationConfig, TargetLanguage
from queryfields.validators import (
    ValidationError,
    ValidationResult,
    validate_entity,
    validate_field_list,
    validate_full,
    validate_generation_config,
    validate_table_name,
    validate_type_name,
    validate_unique_types,
)


def _entity(**kwargs: Any) -> EntityDescriptor:
    data = {"type_name": "ItemRepository", "table_name": "items", "field_names": ("name", "price")}
    data.update(kwargs)
    return EntityDescriptor(**data)


# ===========================================================================
# ValidationResult container
# ===========================================================================


class TestValidationResult:
    def test_empty_result_is_valid(self) -> None:
        result = ValidationResult()
        assert result.is_valid
        assert bool(result)
        assert len(result) == 0

    def test_error_makes_result_invalid(self) -> None:
        result = ValidationResult()
        result.add_error("X", "broken", {"index": 2})
        assert not result
        assert result.error_count == 1
        assert result.invalid_entity_indexes() == {2}

    def test_warnings_do_not_invalidate(self) -> None:
        result = ValidationResult()
        result.add_warning("W", "careful", {"index": 0})
        assert result.is_valid
        assert result.invalid_entity_indexes() == set()

    def test_merge_and_codes(self) -> None:
        first = ValidationResult()
        first.add_info("A", "a")
        second = ValidationResult()
        second.add_error("B", "b")
        first.merge(second)
        assert first.codes() == ["A", "B"]

    def test_format_report(self) -> None:
        result = ValidationResult()
        result.add_error("E1", "bad thing")
        result.add_info("I1", "fyi")
        report = result.format_report()
        assert "[E1] bad thing" in report
        assert "I1" not in report
        assert "I1" in result.format_report(include_info=True)

    def test_error_str_and_dict(self) -> None:
        err = ValidationError("error", "CODE", "msg", {"index": 1})
        assert str(err) == "[ERROR] CODE: msg"
        assert err.to_dict()["context"] == {"index": 1}
        assert err.entity_index == 1


# ===========================================================================
# Field list
# ===========================================================================


class TestValidateFieldList:
    def test_valid_fields(self) -> None:
        result = validate_field_list(0, _entity(), GenerationConfig())
        assert len(result) == 0

    def test_empty_fields_is_info_only(self) -> None:
        result = validate_field_list(0, _entity(field_names=()), GenerationConfig())
        assert result.is_valid
        assert result.codes() == ["EMPTY_FIELD_LIST"]

    def test_malformed_field_is_error_by_default(self) -> None:
        entity = _entity(field_names=("name", ""), malformed_field_indexes=(1,))
        result = validate_field_list(3, entity, GenerationConfig())
        assert not result
        assert result.codes() == ["MALFORMED_FIELD"]
        assert result.errors[0].context["position"] == 1
        assert result.invalid_entity_indexes() == {3}

    def test_malformed_field_is_warning_with_coercion(self) -> None:
        entity = _entity(field_names=("name", ""), malformed_field_indexes=(1,))
        result = validate_field_list(0, entity, GenerationConfig(coerce_malformed_fields=True))
        assert result.is_valid
        assert result.warning_count == 1

    def test_duplicate_field(self) -> None:
        result = validate_field_list(0, _entity(field_names=("name", "name")), GenerationConfig())
        assert "DUPLICATE_FIELD_NAME" in result.codes()

    @pytest.mark.parametrize("name", ["1st", "has space", "semi;colon", "", "dash-ed"])
    def test_invalid_field_name(self, name: str) -> None:
        result = validate_field_list(0, _entity(field_names=(name,)), GenerationConfig())
        assert result.codes() == ["INVALID_FIELD_NAME"]

    @pytest.mark.parametrize("name", ["id", "created", "Modified", "deleted"])
    def test_reserved_column(self, name: str) -> None:
        result = validate_field_list(0, _entity(field_names=("title", name)), GenerationConfig())
        assert "RESERVED_COLUMN_NAME" in result.codes()
        assert not result

    def test_sql_reserved_word_is_warning(self) -> None:
        result = validate_field_list(0, _entity(field_names=("order",)), GenerationConfig())
        assert result.is_valid
        assert result.codes() == ["FIELD_NAME_SQL_RESERVED"]


# ===========================================================================
# Type and table names
# ===========================================================================


class TestValidateNames:
    def test_valid_type_name(self) -> None:
        assert len(validate_type_name(0, _entity(), GenerationConfig())) == 0

    @pytest.mark.parametrize("name", ["class", "Bad-Name", "9Lives"])
    def test_invalid_type_name(self, name: str) -> None:
        result = validate_type_name(0, _entity(type_name=name), GenerationConfig())
        assert result.codes() == ["INVALID_TYPE_NAME"]

    def test_multiple_markers(self) -> None:
        result = validate_type_name(0, _entity(marker_count=2), GenerationConfig())
        assert result.codes() == ["MULTIPLE_MARKERS"]

    def test_missing_table_is_error_for_python(self) -> None:
        result = validate_table_name(0, _entity(table_name=None), GenerationConfig())
        assert result.codes() == ["UNRESOLVED_TABLE_NAME"]
        assert not result

    def test_missing_table_is_warning_for_csharp(self) -> None:
        config = GenerationConfig(language=TargetLanguage.CSHARP)
        result = validate_table_name(0, _entity(table_name=None), config)
        assert result.is_valid
        assert result.warning_count == 1

    def test_missing_table_ignored_without_fields(self) -> None:
        entity = _entity(table_name=None, field_names=())
        assert len(validate_table_name(0, entity, GenerationConfig())) == 0

    def test_unsafe_table_name(self) -> None:
        result = validate_table_name(0, _entity(table_name='items"; --'), GenerationConfig())
        assert result.codes() == ["INVALID_TABLE_NAME"]

    def test_schema_qualified_table_is_fine(self) -> None:
        assert len(validate_table_name(0, _entity(table_name="shop.items"), GenerationConfig())) == 0

    def test_quoted_table_name_warns(self) -> None:
        result = validate_table_name(0, _entity(table_name="order items"), GenerationConfig())
        assert result.codes() == ["TABLE_NAME_NOT_IDENTIFIER"]

    def test_validate_entity_combines_checks(self) -> None:
        entity = _entity(type_name="class", field_names=("id",), table_name=None)
        codes: List[str] = validate_entity(0, entity, GenerationConfig()).codes()
        assert codes == ["INVALID_TYPE_NAME", "RESERVED_COLUMN_NAME", "UNRESOLVED_TABLE_NAME"]


# ===========================================================================
# Cross-entity and config
# ===========================================================================


class TestCrossEntity:
    def test_duplicate_type_in_same_package(self) -> None:
        entities = [_entity(module="shop.a"), _entity(module="shop.b")]
        result = validate_unique_types(entities, GenerationConfig())
        assert result.codes() == ["DUPLICATE_TYPE_NAME"]
        assert result.invalid_entity_indexes() == {1}

    def test_same_type_in_different_packages_is_fine(self) -> None:
        entities = [_entity(module="shop.a"), _entity(module="admin.a")]
        assert len(validate_unique_types(entities, GenerationConfig())) == 0

    def test_csharp_output_is_flat(self) -> None:
        entities = [_entity(module="shop.a"), _entity(module="admin.a")]
        config = GenerationConfig(language=TargetLanguage.CSHARP)
        assert validate_unique_types(entities, config).codes() == ["DUPLICATE_TYPE_NAME"]

    def test_names_with_same_snake_case_collide(self) -> None:
        entities = [
            _entity(type_name="ItemRepo", field_names=("name",)),
            _entity(type_name="Item_Repo", field_names=("price",)),
        ]
        result = validate_unique_types(entities, GenerationConfig())
        assert result.codes() == ["FRAGMENT_PATH_COLLISION"]
        assert result.invalid_entity_indexes() == {1}
        assert result.errors[0].context["path"] == "item_repo_queries.py"

    def test_csharp_paths_collide_ignoring_case(self) -> None:
        entities = [_entity(type_name="Item"), _entity(type_name="ITEM")]
        config = GenerationConfig(language=TargetLanguage.CSHARP)
        assert validate_unique_types(entities, config).codes() == ["FRAGMENT_PATH_COLLISION"]

    def test_fragment_may_not_replace_marker(self) -> None:
        config = GenerationConfig(module_suffix="")
        result = validate_unique_types([_entity(type_name="QueryFields")], config)
        assert result.codes() == ["FRAGMENT_PATH_COLLISION"]
        assert result.invalid_entity_indexes() == {0}

    def test_package_init_and_module_share_a_package(self) -> None:
        entities = [
            _entity(module="shop", package="shop"),
            _entity(module="shop.repos"),
        ]
        assert validate_unique_types(entities, GenerationConfig()).codes() == [
            "DUPLICATE_TYPE_NAME"
        ]

    def test_empty_entities_do_not_collide(self) -> None:
        entities = [_entity(field_names=()), _entity()]
        assert len(validate_unique_types(entities, GenerationConfig())) == 0


class TestValidateConfig:
    def test_defaults_are_valid(self) -> None:
        assert len(validate_generation_config(GenerationConfig())) == 0

    def test_invalid_namespace(self) -> None:
        result = validate_generation_config(GenerationConfig(namespace="Shop..Data"))
        assert result.codes() == ["INVALID_NAMESPACE"]

    def test_invalid_module_suffix(self) -> None:
        result = validate_generation_config(GenerationConfig(module_suffix="-q.py"))
        assert result.codes() == ["INVALID_MODULE_SUFFIX"]

    def test_invalid_marker_name(self) -> None:
        result = validate_generation_config(GenerationConfig(marker_name="Query Fields"))
        assert result.codes() == ["INVALID_MARKER_NAME"]

    def test_coercion_is_reported(self) -> None:
        result = validate_generation_config(GenerationConfig(coerce_malformed_fields=True))
        assert result.is_valid
        assert result.codes() == ["COERCION_ENABLED"]


class TestValidateFull:
    def test_valid_pass(self) -> None:
        entities = [_entity(), _entity(type_name="UserRepository", field_names=("email",))]
        assert validate_full(entities, GenerationConfig()).is_valid

    def test_indexes_point_at_offending_entities(self) -> None:
        entities = [
            _entity(),
            _entity(type_name="Broken", field_names=("id",)),
            _entity(type_name="Other", field_names=("a", "a")),
        ]
        result = validate_full(entities, GenerationConfig())
        assert result.invalid_entity_indexes() == {1, 2}

    def test_config_errors_have_no_index(self) -> None:
        result = validate_full([_entity()], GenerationConfig(namespace="1bad"))
        assert not result
        assert all(e.entity_index is None for e in result.errors)
