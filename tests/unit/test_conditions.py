"""Unit tests for condition expressions and field path resolution."""

import pytest
from pydantic import ValidationError

from src.rulegraph.core.conditions import (
    MISSING,
    compile_expression,
    evaluate,
    parse_path,
    resolve_field,
)
from src.rulegraph.models.rules import Expression

DOCUMENT = {
    "name": "storage-01",
    "type": "storage",
    "size": 100,
    "enabled": True,
    "tags": ["prod", "eu"],
    "properties": {
        "encryption": {"enabled": True, "algorithm": "AES256"},
        "replicas": [{"region": "eu-west"}, {"region": "eu-north"}],
    },
    "empty": None,
}


def expr(**data):
    return Expression.model_validate(data)


class TestFieldPaths:
    """Test field path parsing and resolution."""

    def test_parse_dotted_path(self):
        assert parse_path("properties.encryption.enabled") == ("properties", "encryption", "enabled")

    def test_parse_indexes(self):
        assert parse_path("properties.replicas[1].region") == ("properties", "replicas", 1, "region")
        assert parse_path("matrix[0][-1]") == ("matrix", 0, -1)

    @pytest.mark.parametrize("path", ["", "  ", "a..b", "a[x]", "a[0", "a.[0]b"])
    def test_parse_invalid_paths(self, path):
        with pytest.raises(ValueError):
            parse_path(path)

    def test_resolve_nested_value(self):
        assert resolve_field(DOCUMENT, "properties.encryption.algorithm") == "AES256"
        assert resolve_field(DOCUMENT, "properties.replicas[0].region") == "eu-west"
        assert resolve_field(DOCUMENT, "tags[-1]") == "eu"

    def test_resolve_missing_key(self):
        assert resolve_field(DOCUMENT, "properties.network") is MISSING

    def test_resolve_index_out_of_range(self):
        assert resolve_field(DOCUMENT, "tags[5]") is MISSING

    def test_resolve_index_on_non_list(self):
        assert resolve_field(DOCUMENT, "name[0]") is MISSING

    def test_resolve_key_on_scalar(self):
        assert resolve_field(DOCUMENT, "size.unit") is MISSING

    def test_explicit_null_is_not_missing(self):
        assert resolve_field(DOCUMENT, "empty") is None

    def test_missing_is_falsy_singleton(self):
        assert not MISSING
        assert repr(MISSING) == "MISSING"
        assert type(MISSING)() is MISSING


class TestOperators:
    """Test each comparison operator."""

    @pytest.mark.parametrize(
        ("data", "expected"),
        [
            ({"field": "type", "exists": True}, True),
            ({"field": "missing", "exists": True}, False),
            ({"field": "missing", "exists": False}, True),
            ({"field": "empty", "exists": True}, True),
            ({"field": "type", "equals": "storage"}, True),
            ({"field": "size", "equals": 100.0}, True),
            ({"field": "enabled", "equals": 1}, False),
            ({"field": "enabled", "equals": True}, True),
            ({"field": "empty", "equals": None}, True),
            ({"field": "type", "notEquals": "vm"}, True),
            ({"field": "size", "greater": 99}, True),
            ({"field": "size", "greaterOrEquals": 100}, True),
            ({"field": "size", "less": 100}, False),
            ({"field": "size", "lessOrEquals": 100}, True),
            ({"field": "type", "greater": "a"}, True),
            ({"field": "type", "in": ["vm", "storage"]}, True),
            ({"field": "type", "notIn": ["vm", "storage"]}, False),
            ({"field": "tags", "contains": "prod"}, True),
            ({"field": "name", "contains": "-01"}, True),
            ({"field": "properties.encryption", "contains": "enabled"}, True),
            ({"field": "name", "startsWith": "storage"}, True),
            ({"field": "name", "endsWith": "02"}, False),
            ({"field": "name", "match": r"^storage-\d+$"}, True),
            ({"field": "properties.encryption.algorithm", "match": "256"}, True),
        ],
    )
    def test_operator(self, data, expected):
        assert evaluate(expr(**data), DOCUMENT) is expected

    @pytest.mark.parametrize(
        "data",
        [
            {"field": "missing", "equals": None},
            {"field": "missing", "notEquals": "x"},
            {"field": "missing", "notIn": ["x"]},
            {"field": "missing", "less": 1},
        ],
    )
    def test_missing_field_fails_every_operator(self, data):
        assert evaluate(expr(**data), DOCUMENT) is False

    def test_incompatible_types_fail_instead_of_raising(self):
        assert evaluate(expr(field="type", greater=5), DOCUMENT) is False
        assert evaluate(expr(field="size", startsWith="1"), DOCUMENT) is False
        assert evaluate(expr(field="size", match="1"), DOCUMENT) is False

    def test_contains_unhashable_operand_on_mapping(self):
        """Test that a list or mapping operand against a mapping fails instead of raising."""
        predicate = compile_expression(expr(field="properties.encryption", contains=["enabled"]))

        assert predicate(DOCUMENT) is False
        assert evaluate(expr(field="properties", contains={"encryption": {}}), DOCUMENT) is False

    def test_expression_without_field_raises_value_error(self):
        """Test that an unvalidated expression with no clause is rejected explicitly."""
        with pytest.raises(ValueError, match="no field"):
            evaluate(Expression.model_construct(), DOCUMENT)


class TestCombinators:
    """Test allOf, anyOf and not."""

    def test_all_of(self):
        expression = expr(
            allOf=[
                {"field": "type", "equals": "storage"},
                {"field": "properties.encryption.enabled", "equals": True},
            ]
        )
        assert evaluate(expression, DOCUMENT) is True

    def test_any_of(self):
        expression = expr(
            anyOf=[{"field": "type", "equals": "vm"}, {"field": "tags", "contains": "eu"}]
        )
        assert evaluate(expression, DOCUMENT) is True

    def test_not(self):
        assert evaluate(expr(**{"not": {"field": "type", "equals": "vm"}}), DOCUMENT) is True

    def test_nested(self):
        expression = expr(
            allOf=[
                {"field": "size", "greater": 10},
                {"not": {"anyOf": [{"field": "missing", "exists": True}, {"field": "size", "less": 50}]}},
            ]
        )
        assert evaluate(expression, DOCUMENT) is True


class TestExpressionValidation:
    """Test expression shape validation."""

    def test_operator_and_operand(self):
        expression = expr(field="tags", **{"in": ["a"]})

        assert expression.operator == "in_"
        assert expression.operand == ["a"]

    def test_combinator_has_no_operator(self):
        assert expr(allOf=[{"field": "a", "exists": True}]).operator is None

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"field": "a"},
            {"field": "a", "equals": 1, "less": 2},
            {"equals": 1},
            {"field": "a", "allOf": [{"field": "b", "exists": True}]},
            {"allOf": [], "field": None},
            {"allOf": [{"field": "b", "exists": True}], "anyOf": [{"field": "b", "exists": True}]},
            {"not": None},
            {"field": "a", "in": None},
            {"field": "a", "exists": None},
            {"field": "a", "match": "("},
            {"field": "a", "unknown": 1},
        ],
    )
    def test_invalid_expressions(self, data):
        with pytest.raises(ValidationError):
            Expression.model_validate(data)

    def test_compile_expression_returns_predicate(self):
        predicate = compile_expression(expr(field="type", equals="storage"))

        assert predicate(DOCUMENT) is True
        assert predicate({"type": "vm"}) is False

    def test_compile_expression_rejects_bad_nested_path(self):
        expression = expr(allOf=[{"field": "a..b", "exists": True}])

        with pytest.raises(ValueError, match="Invalid field path"):
            compile_expression(expression)
