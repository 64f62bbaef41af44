"""
Tests for QuotingSession and file-metadata auto-fill.
"""
import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from quote_tool.config.settings import get_settings
from quote_tool.engine.models import DerivedResult, NumericInput, Selection
from quote_tool.engine.pricing_engine import PricingEngine
from quote_tool.services.file_connections import (
    MATERIAL_DENSITIES,
    FileUploadConnection,
    apply_file_connections,
    calculate_weight,
)
from quote_tool.services.schema_service import SchemaService


@pytest.fixture(scope="module")
def samples():
    return SchemaService(get_settings().samples_dir)


@pytest.fixture
def banners(samples):
    return samples.load_schema("banners")


@pytest.fixture
def engine():
    return PricingEngine()


def test_new_session_fills_derived_values(engine, banners):
    session = engine.new_session(banners.parameters)
    assert session.form_values == {"quantity": "1", "area": "0"}
    assert not session.has_changes


def test_set_value_propagates_to_derived(engine, banners):
    session = engine.new_session(banners.parameters)
    session.set_value("width", "12").set_value("height", "24")
    assert session.form_values["area"] == "2"
    assert session.has_changes


def test_changing_parent_clears_hidden_child(engine, banners):
    session = engine.new_session(banners.parameters)
    session.set_value("banner_material", "vinyl_13oz").set_value("hemming", "sewn")
    assert session.form_values["hemming"] == "sewn"

    session.set_value("banner_material", "mesh")
    assert session.form_values["hemming"] == ""
    assert "hemming" not in [p.name for p in session.visible_parameters()]


def test_price_and_validate(engine, banners):
    session = engine.new_session(banners.parameters, currency="USD")
    assert not session.is_valid()

    for name, value in [("width", "12"), ("height", "24"),
                        ("banner_material", "vinyl_13oz"), ("grommets", "reinforced")]:
        session.set_value(name, value)

    assert session.validate() == []
    result = session.price()
    # 2 sq ft x 3.5 + reinforced grommets
    assert result.total_price == pytest.approx(7 + 15)


def test_sub_option_selection(engine, samples):
    schema = samples.load_schema("business_cards")
    session = engine.new_session(schema.parameters, {"quantity": "100"})
    session.set_value("material", "premium")
    assert session.validate() == ["Please select a Card Material option for Premium (16pt)"]

    session.select_sub_option("material", "emboss")
    assert session.validate() == []
    assert session.price().unit_total == pytest.approx((5 + 15 + 12) * 1.3)


def test_reset_restores_initial_values(engine, banners):
    session = engine.new_session(banners.parameters)
    session.set_value("width", "48")
    session.reset()
    assert session.form_values == {"quantity": "1", "area": "0"}
    assert not session.has_changes


def test_sessions_are_isolated(engine, banners):
    first = engine.new_session(banners.parameters)
    second = engine.new_session(banners.parameters)
    first.set_value("width", "36")
    assert "width" not in second.form_values


def test_typed_values(engine, banners):
    session = engine.new_session(banners.parameters)
    session.set_value("width", "12").set_value("height", "24").set_value("banner_material", "mesh")
    typed = session.typed_values()

    assert isinstance(typed["width"], NumericInput)
    assert typed["width"].value == 12
    assert isinstance(typed["area"], DerivedResult)
    assert typed["area"].value == 2
    assert isinstance(typed["banner_material"], Selection)
    assert typed["banner_material"].option.label == "Mesh (Wind Resistant)"
    assert "hemming" not in typed


def test_file_metadata_fills_connected_parameters(engine, samples):
    schema = samples.load_schema("packaging")
    session = engine.new_session(schema.parameters)
    session.set_value("length", "4")
    session.apply_file_metadata({"width": 10, "height": 5, "pages": 3}, schema.file_connections)

    assert session.form_values["width"] == "10"
    assert session.form_values["height"] == "5"
    assert session.form_values["volume"] == "200"
    assert "pages" not in session.form_values


def test_apply_file_connections_skips_absent_keys(samples):
    schema = samples.load_schema("packaging")
    connections = [FileUploadConnection.from_dict(
        {"id": "w", "metadataKey": "width", "parameterName": "width"}
    )]
    values = {"length": "2"}
    result = apply_file_connections({"depth": 9}, connections, schema.parameters, values)
    assert result == {"length": "2"}
    assert result is not values


def test_calculate_weight():
    assert calculate_weight(1000, MATERIAL_DENSITIES["PLA"]) == pytest.approx(1.24)
    assert calculate_weight(2000) == pytest.approx(2.48)


def test_file_metadata_uses_engine_iteration_cap(tmp_path):
    from quote_tool.config.settings import Settings
    from quote_tool.engine.models import parameters_from_dicts

    params = parameters_from_dicts([
        {"id": "x", "name": "x", "type": "DerivedCalc", "formula": "y + 1", "dependencies": ["y"], "pricing": {}},
        {"id": "y", "name": "y", "type": "DerivedCalc", "formula": "x + 1", "dependencies": ["x"], "pricing": {}},
    ])
    connections = [FileUploadConnection.from_dict({"id": "seed", "metadataKey": "seed", "parameterName": "y"})]
    settings = Settings(project_root=tmp_path, samples_dir=tmp_path, max_derived_iterations=3)

    session = PricingEngine(settings).new_session(params)
    session.apply_file_metadata({"seed": 0}, connections)

    # Three passes, each advancing both values by 2
    assert session.form_values["x"] == "5"
    assert session.form_values["y"] == "6"
