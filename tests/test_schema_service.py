"""
Tests for schema parsing, structural checks and the sample schemas.
"""
import json
import os
import sys

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from quote_tool.config.settings import get_settings
from quote_tool.engine.models import ParameterType, parameters_from_dicts
from quote_tool.services.schema_service import (
    SchemaError,
    SchemaService,
    check_schema,
    load_schema_file,
    parse_schema,
)


@pytest.fixture(scope="module")
def samples():
    return SchemaService(get_settings().samples_dir)


def derived(name, formula, dependencies):
    return {"id": name, "name": name, "type": "DerivedCalc", "formula": formula,
            "dependencies": dependencies, "pricing": {}}


def numeric(name, **extra):
    data = {"id": name, "name": name, "type": "NumericValue", "pricing": {}}
    data.update(extra)
    return data


class TestSamples:

    def test_samples_are_listed(self, samples):
        assert samples.list_schemas() == ["banners", "business_cards", "packaging", "stickers"]

    def test_every_sample_passes_checks(self, samples):
        results = samples.check_all()
        for name, result in results.items():
            assert result.valid, f"{name}: {result.errors}"

    def test_stats(self, samples):
        stats = samples.get_stats()
        assert stats["total"] == 4
        assert stats["invalid"] == 0
        assert stats["parameters_by_type"]["DerivedCalc"] == 2

    def test_loaded_schema_shape(self, samples):
        schema = samples.load_schema("business_cards")
        assert schema.title == "Business Cards"
        material = schema.get_parameter("material")
        assert material.type == ParameterType.FIXED_OPTION
        premium = material.find_option("premium")
        assert [s.value for s in premium.sub_options] == ["spot_uv", "emboss"]
        quantity = schema.get_parameter("quantity")
        assert quantity.pricing.step_pricing.threshold == 1000


class TestParsing:

    def test_bare_parameter_list(self):
        schema = parse_schema([numeric("width", isMainUnits=True, unitsPerQuantity=2)], name="flat")
        assert schema.name == "flat"
        assert schema.currency == "USD"
        width = schema.parameters[0]
        assert width.is_main_units
        assert width.units_per_quantity == 2

    def test_camel_case_keys_survive(self):
        data = {"parameters": [{
            "id": "finish", "name": "finish", "type": "FixedOption", "pricing": {},
            "conditional": {"parentParameter": "material", "showWhen": ["premium"]},
            "options": [{"label": "Gloss", "value": "gloss",
                         "subOptions": [{"label": "UV", "value": "uv", "price": 2}]}],
        }]}
        param = parse_schema(data).parameters[0]
        assert param.conditional.parent_parameter == "material"
        assert param.options[0].sub_options[0].price == 2
        assert param.to_dict()["conditional"] == {"parentParameter": "material", "showWhen": ["premium"]}

    def test_unknown_type_is_rejected(self):
        with pytest.raises(SchemaError):
            parse_schema([{"name": "x", "type": "Slider"}])

    def test_missing_parameters_is_rejected(self):
        with pytest.raises(SchemaError):
            parse_schema({"name": "empty"})

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_schema_file(tmp_path / "nope.json")

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SchemaError):
            load_schema_file(path)

    def test_check_all_reports_unparseable_files(self, tmp_path):
        (tmp_path / "good.json").write_text(json.dumps([numeric("width")]), encoding="utf-8")
        (tmp_path / "bad.json").write_text("[", encoding="utf-8")
        results = SchemaService(tmp_path).check_all()
        assert results["good"].valid
        assert not results["bad"].valid


class TestStructuralChecks:

    def errors_for(self, items):
        return check_schema(parameters_from_dicts(items)).errors

    def test_duplicate_names(self):
        errors = self.errors_for([numeric("width"), numeric("width")])
        assert errors == ["Duplicate parameter name 'width'"]

    def test_missing_dependency(self):
        errors = self.errors_for([derived("area", "width * 2", ["width"])])
        assert errors == ["area: dependency 'width' does not exist in the schema"]

    def test_formula_name_not_in_dependencies(self):
        errors = self.errors_for([numeric("width"), numeric("height"),
                                  derived("area", "width * height", ["width"])])
        assert errors == ["area: formula uses 'height' which is not listed in dependencies"]

    def test_formula_that_does_not_parse(self):
        errors = self.errors_for([numeric("width"), derived("area", "width * * 2", ["width"])])
        assert len(errors) == 1
        assert "does not parse" in errors[0]

    def test_derived_without_formula(self):
        errors = self.errors_for([{"id": "a", "name": "a", "type": "DerivedCalc", "pricing": {}}])
        assert errors == ["a: DerivedCalc parameter has no formula"]

    def test_cycle(self):
        errors = self.errors_for([derived("x", "y + 1", ["y"]), derived("y", "x + 1", ["x"])])
        assert errors == ["Dependency cycle: x -> y -> x"]

    def test_two_main_units(self):
        errors = self.errors_for([numeric("a", isMainUnits=True), numeric("b", isMainUnits=True)])
        assert errors == ["Only one parameter may set isMainUnits (found: a, b)"]

    def test_min_greater_than_max(self):
        errors = self.errors_for([numeric("width", min=10, max=5)])
        assert errors == ["width: min (10) is greater than max (5)"]

    def test_conditional_parent_missing(self):
        errors = self.errors_for([numeric(
            "hem", conditional={"parentParameter": "material", "showWhen": ["vinyl"]},
        )])
        assert errors == ["hem: conditional parent 'material' does not exist"]

    def test_warnings_do_not_invalidate(self):
        result = check_schema(parameters_from_dicts([
            {"id": "m", "name": "m", "type": "FixedOption", "pricing": {}},
        ]))
        assert result.valid
        assert result.warnings == ["m: FixedOption parameter has no options"]
