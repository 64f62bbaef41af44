"""
Schema Service - validates and loads merchant-authored quote-form schemas.

Raw JSON is checked against pydantic payload models at the boundary, then
converted to engine dataclasses. Structural problems the payload models
cannot see (cycles, dangling references, duplicate names) are reported by
check_schema without raising.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..engine.expression import ExpressionError, parse_formula, referenced_names
from ..engine.models import Parameter, ParameterType, QUANTITY_KEY
from ..engine.resolver import find_dependency_cycles
from .file_connections import FileUploadConnection

logger = logging.getLogger(__name__)


class SchemaError(ValueError):
    """Raised when a schema payload cannot be parsed."""


# Pydantic models for the JSON boundary

class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StepPricingPayload(_Payload):
    threshold: float
    step_amount: float


class PricingRulePayload(_Payload):
    base_price: Optional[float] = None
    unit_price: Optional[float] = None
    multiplier: Optional[float] = None
    step_pricing: Optional[StepPricingPayload] = None


class SubOptionPayload(_Payload):
    id: Optional[str] = None
    label: str
    value: str
    description: Optional[str] = None
    price: float = 0.0
    pricing_scope: Optional[Literal["per_unit", "per_qty"]] = Field(default=None, alias="pricingScope")


class FixedOptionPayload(_Payload):
    label: str
    value: str
    description: Optional[str] = None
    pricing: PricingRulePayload = Field(default_factory=PricingRulePayload)
    sub_options: Optional[list[SubOptionPayload]] = Field(default=None, alias="subOptions")


class ConditionalPayload(_Payload):
    parent_parameter: str = Field(alias="parentParameter")
    show_when: list[str] = Field(default_factory=list, alias="showWhen")


class ParameterPayload(_Payload):
    id: Optional[str] = None
    name: str = Field(min_length=1)
    label: str = ""
    description: Optional[str] = None
    type: Literal["FixedOption", "NumericValue", "DerivedCalc"]
    required: bool = False
    pricing: PricingRulePayload = Field(default_factory=PricingRulePayload)
    options: Optional[list[FixedOptionPayload]] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    unit: Optional[str] = None
    formula: Optional[str] = None
    dependencies: Optional[list[str]] = None
    conditional: Optional[ConditionalPayload] = None
    is_main_units: bool = Field(default=False, alias="isMainUnits")
    units_per_quantity: Optional[float] = Field(default=None, alias="unitsPerQuantity")
    pricing_scope: Optional[Literal["per_unit", "per_qty"]] = Field(default=None, alias="pricingScope")


class FileConnectionPayload(_Payload):
    id: str
    metadata_key: str = Field(alias="metadataKey")
    parameter_name: str = Field(alias="parameterName")
    description: str = ""


class SchemaPayload(_Payload):
    name: str = ""
    title: str = ""
    description: str = ""
    currency: str = "USD"
    parameters: list[ParameterPayload]
    file_connections: list[FileConnectionPayload] = Field(default_factory=list, alias="fileConnections")


@dataclass
class ProductSchema:
    """A loaded quote-form schema with its display metadata."""
    name: str
    title: str
    description: str
    currency: str
    parameters: list[Parameter]
    file_connections: list[FileUploadConnection] = field(default_factory=list)

    def get_parameter(self, name: str) -> Optional[Parameter]:
        return next((p for p in self.parameters if p.name == name), None)


@dataclass
class SchemaCheckResult:
    """Result of structural schema checks."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, message: str):
        self.errors.append(message)
        self.valid = False


def parse_schema(data: Union[dict, list], name: str = "") -> ProductSchema:
    """
    Build a ProductSchema from raw JSON.

    Accepts either a bare parameter list or an object with "parameters".
    Raises SchemaError when the payload does not match the schema format.
    """
    if isinstance(data, list):
        data = {"parameters": data}
    try:
        payload = SchemaPayload.model_validate(data)
    except ValidationError as e:
        raise SchemaError(f"Invalid schema {name or payload_name(data)!r}: {e}") from e

    parameters = [
        Parameter.from_dict(p.model_dump(by_alias=True, exclude_none=True))
        for p in payload.parameters
    ]
    connections = [
        FileUploadConnection.from_dict(c.model_dump(by_alias=True))
        for c in payload.file_connections
    ]
    schema_name = payload.name or name
    return ProductSchema(
        name=schema_name,
        title=payload.title or schema_name,
        description=payload.description,
        currency=payload.currency.upper(),
        parameters=parameters,
        file_connections=connections,
    )


def payload_name(data: Any) -> str:
    if isinstance(data, dict):
        return str(data.get("name", ""))
    return ""


def load_schema_file(path: Path) -> ProductSchema:
    """Load and parse a schema JSON file."""
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise SchemaError(f"{path.name} is not valid JSON: {e}") from e
    return parse_schema(data, name=path.stem)


def check_schema(parameters: list[Parameter]) -> SchemaCheckResult:
    """
    Structural checks on a parsed schema.

    Pricing never depends on these passing; they exist so a merchant can be
    told about a broken schema before buyers see it.
    """
    result = SchemaCheckResult(valid=True)
    names = [p.name for p in parameters]
    known = set(names)

    # Unique parameter names
    seen = set()
    for name in names:
        if name in seen:
            result.add_error(f"Duplicate parameter name '{name}'")
        seen.add(name)

    main_units = [p.name for p in parameters if p.is_main_units]
    if len(main_units) > 1:
        result.add_error(f"Only one parameter may set isMainUnits (found: {', '.join(main_units)})")

    for param in parameters:
        label = param.display_name

        if param.is_fixed_option:
            if not param.options:
                result.warnings.append(f"{label}: FixedOption parameter has no options")
            values = [o.value for o in param.options]
            for dup in sorted({v for v in values if values.count(v) > 1}):
                result.add_error(f"{label}: duplicate option value '{dup}'")
        elif param.options:
            result.warnings.append(f"{label}: options are ignored for {param.type.value} parameters")

        if param.is_derived:
            if not param.formula:
                result.add_error(f"{label}: DerivedCalc parameter has no formula")
            else:
                try:
                    parse_formula(param.formula)
                except ExpressionError as e:
                    result.add_error(f"{label}: formula '{param.formula}' does not parse ({e})")
                used = referenced_names(param.formula)
                for undeclared in sorted(used - set(param.dependencies)):
                    result.add_error(f"{label}: formula uses '{undeclared}' which is not listed in dependencies")
            for dep in param.dependencies:
                if dep not in known:
                    result.add_error(f"{label}: dependency '{dep}' does not exist in the schema")
                elif dep == param.name:
                    result.add_error(f"{label}: depends on itself")

        if param.min is not None and param.max is not None and param.min > param.max:
            result.add_error(f"{label}: min ({param.min:g}) is greater than max ({param.max:g})")

        if param.conditional is not None:
            parent = param.conditional.parent_parameter
            if parent not in known:
                result.add_error(f"{label}: conditional parent '{parent}' does not exist")
            elif not param.conditional.show_when:
                result.warnings.append(f"{label}: conditional has an empty showWhen list and is never shown")

        if param.name == QUANTITY_KEY and param.type != ParameterType.NUMERIC_VALUE:
            result.warnings.append("'quantity' should be a NumericValue parameter")

    for cycle in find_dependency_cycles(parameters):
        if len(cycle) > 2:
            result.add_error(f"Dependency cycle: {' -> '.join(cycle)}")

    return result


class SchemaService:
    """Lists and loads schema JSON files from a directory."""

    def __init__(self, schemas_dir: Path):
        self.schemas_dir = schemas_dir

    def list_schemas(self) -> list[str]:
        """Schema names (file stems) in the directory, sorted."""
        if not self.schemas_dir.exists():
            return []
        return sorted(p.stem for p in self.schemas_dir.glob('*.json'))

    def load_schema(self, name: str) -> ProductSchema:
        """Load a schema by name."""
        return load_schema_file(self.schemas_dir / f'{name}.json')

    def check_all(self) -> dict[str, SchemaCheckResult]:
        """Parse and check every schema; parse failures become errors."""
        results = {}
        for name in self.list_schemas():
            try:
                schema = self.load_schema(name)
            except SchemaError as e:
                results[name] = SchemaCheckResult(valid=False, errors=[str(e)])
                continue
            results[name] = check_schema(schema.parameters)
        return results

    def get_stats(self) -> dict:
        """Get statistics about the schemas in the directory."""
        by_type: dict[str, int] = {}
        loaded = 0
        invalid = 0
        for name in self.list_schemas():
            try:
                schema = self.load_schema(name)
            except SchemaError:
                logger.warning("Skipping unparseable schema %s", name)
                invalid += 1
                continue
            loaded += 1
            for param in schema.parameters:
                by_type[param.type.value] = by_type.get(param.type.value, 0) + 1

        return {
            'total': loaded + invalid,
            'loaded': loaded,
            'invalid': invalid,
            'parameters_by_type': by_type,
        }
