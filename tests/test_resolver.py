"""
Tests for derived-value resolution.
"""
import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from quote_tool.engine.models import parameters_from_dicts
from quote_tool.engine.resolver import (
    calculate_derived_values,
    dependency_order,
    find_dependency_cycles,
    initialize_derived_calculations,
    update_form_value_with_calculations,
)


def numeric(name):
    return {"id": name, "name": name, "label": name.title(), "type": "NumericValue", "pricing": {}}


def derived(name, formula, dependencies):
    return {
        "id": name, "name": name, "label": name.title(), "type": "DerivedCalc",
        "formula": formula, "dependencies": dependencies, "pricing": {},
    }


@pytest.fixture
def area_schema():
    return parameters_from_dicts([
        numeric("width"),
        numeric("height"),
        derived("area", "width * height / 144", ["width", "height"]),
    ])


def test_area_resolves_from_width_and_height(area_schema):
    values = calculate_derived_values(area_schema, {"width": "12", "height": "24"})
    assert values["area"] == "2"


def test_fractional_result_is_stored_as_shortest_string(area_schema):
    values = calculate_derived_values(area_schema, {"width": 10, "height": 18})
    assert values["area"] == "1.25"


def test_input_mapping_is_not_modified(area_schema):
    original = {"width": "12", "height": "24"}
    calculate_derived_values(area_schema, original)
    assert "area" not in original


def test_missing_or_non_numeric_dependencies_read_as_zero(area_schema):
    assert calculate_derived_values(area_schema, {"width": "12"})["area"] == "0"
    assert calculate_derived_values(area_schema, {"width": "abc", "height": "24"})["area"] == "0"


def test_dependency_values_parse_leading_number(area_schema):
    values = calculate_derived_values(area_schema, {"width": "12in", "height": "24"})
    assert values["area"] == "2"


def test_full_pass_is_idempotent(area_schema):
    once = calculate_derived_values(area_schema, {"width": "7", "height": "9"})
    twice = calculate_derived_values(area_schema, once)
    assert once == twice


def test_chain_listed_out_of_order_resolves_in_one_pass():
    """c depends on b which depends on a; c comes first in the schema."""
    params = parameters_from_dicts([
        derived("c", "b + 1", ["b"]),
        derived("b", "a * 2", ["a"]),
        numeric("a"),
    ])
    values = calculate_derived_values(params, {"a": "10"})
    assert values["b"] == "20"
    assert values["c"] == "21"
    assert [p.name for p in dependency_order(params)] == ["b", "c"]


def test_malformed_formula_is_isolated():
    params = parameters_from_dicts([
        numeric("width"),
        numeric("height"),
        derived("broken", "width * * height", ["width", "height"]),
        derived("area", "width * height / 144", ["width", "height"]),
    ])
    values = calculate_derived_values(params, {"width": "12", "height": "24"})
    assert values["broken"] == "0"
    assert values["area"] == "2"


def test_update_propagates_to_direct_dependents(area_schema):
    values = update_form_value_with_calculations("width", "12", area_schema, {"height": "24"})
    assert values["width"] == "12"
    assert values["area"] == "2"


def test_update_propagates_through_chains():
    params = parameters_from_dicts([
        numeric("a"),
        derived("c", "b + 1", ["b"]),
        derived("b", "a * 2", ["a"]),
    ])
    values = update_form_value_with_calculations("a", "5", params, {})
    assert values["b"] == "10"
    assert values["c"] == "11"


def test_cyclic_dependencies_stop_at_iteration_cap():
    params = parameters_from_dicts([
        derived("x", "y + 1", ["y"]),
        derived("y", "x + 1", ["x"]),
    ])
    values = update_form_value_with_calculations("y", "0", params, {}, max_iterations=3)
    # Each pass advances both values by 2
    assert values["x"] == "5"
    assert values["y"] == "6"

    capped = update_form_value_with_calculations("y", "0", params, {}, max_iterations=10)
    assert capped["x"] == "19"
    assert capped["y"] == "20"


def test_cycles_are_reported():
    params = parameters_from_dicts([
        derived("x", "y + 1", ["y"]),
        derived("y", "x + 1", ["x"]),
        derived("z", "1", []),
    ])
    cycles = find_dependency_cycles(params)
    assert cycles == [["x", "y", "x"]]


def test_initialize_fills_every_derived_value(area_schema):
    values = initialize_derived_calculations(area_schema, {"quantity": "1"})
    assert values == {"quantity": "1", "area": "0"}


@pytest.fixture
def deep_formula_schema():
    deep = "(" * 5000 + "w" + ")" * 5000
    return parameters_from_dicts([
        numeric("w"),
        derived("bad", deep, ["w"]),
        derived("ok", "w * 2", ["w"]),
    ])


def test_deeply_nested_formula_is_isolated_in_full_pass(deep_formula_schema):
    values = calculate_derived_values(deep_formula_schema, {"w": "3"})
    assert values["bad"] == "0"
    assert values["ok"] == "6"


def test_deeply_nested_formula_is_isolated_on_update(deep_formula_schema):
    values = update_form_value_with_calculations("w", "3", deep_formula_schema, {})
    assert values["bad"] == "0"
    assert values["ok"] == "6"
