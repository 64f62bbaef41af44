"""
Data models for the quote-form pricing engine.

Uses dataclasses for the merchant-authored parameter schema and for the
priced result. Schemas travel as camelCase JSON between the UI layer and
storage; from_dict/to_dict translate that shape.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .formatting import format_number, parse_number


QUANTITY_KEY = "quantity"
SUB_OPTION_SUFFIX = "_suboption"


def sub_option_key(parameter_name: str) -> str:
    """Form-values key holding the sub-option chosen for a parameter."""
    return f"{parameter_name}{SUB_OPTION_SUFFIX}"


class ParameterType(str, Enum):
    """Kinds of configurable inputs in a quote form."""
    FIXED_OPTION = "FixedOption"
    NUMERIC_VALUE = "NumericValue"
    DERIVED_CALC = "DerivedCalc"


class PricingScope(str, Enum):
    """Advisory tag describing what a price is charged against."""
    PER_UNIT = "per_unit"
    PER_QTY = "per_qty"


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def option_key(value: Any) -> str:
    """Compare option values as text; numbers use their shortest form (1.0 -> "1")."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_number(float(value))
    return str(value)


def _optional_scope(value: Any) -> Optional[PricingScope]:
    if not value:
        return None
    return PricingScope(value)


@dataclass
class StepPricing:
    """Extra per-unit amount charged (or discounted) above a threshold."""
    threshold: float
    step_amount: float

    def amount_for(self, total_units: float) -> float:
        """Step amount for a unit count; zero at or below the threshold."""
        if total_units > self.threshold:
            return self.step_amount * (total_units - self.threshold)
        return 0.0


@dataclass
class PricingRule:
    """Composable pricing primitives, all optional."""
    base_price: Optional[float] = None
    unit_price: Optional[float] = None
    multiplier: Optional[float] = None
    step_pricing: Optional[StepPricing] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'PricingRule':
        """Create a PricingRule from its JSON form (missing -> empty rule)."""
        data = data or {}
        step = data.get('step_pricing')
        return cls(
            base_price=_optional_float(data.get('base_price')),
            unit_price=_optional_float(data.get('unit_price')),
            multiplier=_optional_float(data.get('multiplier')),
            step_pricing=StepPricing(
                threshold=float(step.get('threshold', 0)),
                step_amount=float(step.get('step_amount', 0)),
            ) if step else None,
        )

    def to_dict(self) -> dict:
        out = {}
        if self.base_price is not None:
            out['base_price'] = self.base_price
        if self.unit_price is not None:
            out['unit_price'] = self.unit_price
        if self.multiplier is not None:
            out['multiplier'] = self.multiplier
        if self.step_pricing is not None:
            out['step_pricing'] = {
                'threshold': self.step_pricing.threshold,
                'step_amount': self.step_pricing.step_amount,
            }
        return out


@dataclass
class SubOption:
    """A nested choice refining a selected option (e.g. finish under material)."""
    id: str
    label: str
    value: str
    description: str = ""
    price: float = 0.0
    pricing_scope: Optional[PricingScope] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'SubOption':
        return cls(
            id=str(data.get('id') or data.get('value', '')),
            label=data.get('label', ''),
            value=str(data.get('value', '')),
            description=data.get('description') or "",
            price=float(data.get('price') or 0),
            pricing_scope=_optional_scope(data.get('pricingScope')),
        )

    def to_dict(self) -> dict:
        out = {
            'id': self.id,
            'label': self.label,
            'value': self.value,
            'description': self.description,
            'price': self.price,
        }
        if self.pricing_scope is not None:
            out['pricingScope'] = self.pricing_scope.value
        return out


@dataclass
class FixedOption:
    """One selectable choice within a FixedOption parameter."""
    label: str
    value: str
    description: str = ""
    pricing: PricingRule = field(default_factory=PricingRule)
    sub_options: list[SubOption] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> 'FixedOption':
        return cls(
            label=data.get('label', ''),
            value=str(data.get('value', '')),
            description=data.get('description') or "",
            pricing=PricingRule.from_dict(data.get('pricing')),
            sub_options=[SubOption.from_dict(s) for s in data.get('subOptions') or []],
        )

    def to_dict(self) -> dict:
        out = {
            'label': self.label,
            'value': self.value,
            'description': self.description,
            'pricing': self.pricing.to_dict(),
        }
        if self.sub_options:
            out['subOptions'] = [s.to_dict() for s in self.sub_options]
        return out

    def find_sub_option(self, value: Any) -> Optional[SubOption]:
        """Return the sub-option whose value matches, if any."""
        if value is None or value == "":
            return None
        for sub in self.sub_options:
            if sub.value == option_key(value):
                return sub
        return None


@dataclass
class Conditional:
    """Show a parameter only when a parent parameter holds one of showWhen."""
    parent_parameter: str
    show_when: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional['Conditional']:
        if not data:
            return None
        return cls(
            parent_parameter=data.get('parentParameter', ''),
            show_when=[str(v) for v in data.get('showWhen') or []],
        )

    def to_dict(self) -> dict:
        return {'parentParameter': self.parent_parameter, 'showWhen': list(self.show_when)}


@dataclass
class Parameter:
    """A single configurable input in a quote form."""
    id: str
    name: str
    label: str
    type: ParameterType
    required: bool = False
    description: str = ""
    pricing: PricingRule = field(default_factory=PricingRule)

    # FixedOption
    options: list[FixedOption] = field(default_factory=list)

    # NumericValue (advisory for DerivedCalc)
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    unit: Optional[str] = None

    # DerivedCalc
    formula: Optional[str] = None
    dependencies: list[str] = field(default_factory=list)

    conditional: Optional[Conditional] = None
    is_main_units: bool = False
    units_per_quantity: Optional[float] = None
    pricing_scope: Optional[PricingScope] = None

    @property
    def is_fixed_option(self) -> bool:
        return self.type == ParameterType.FIXED_OPTION

    @property
    def is_numeric(self) -> bool:
        """NumericValue and DerivedCalc both price by unit count."""
        return self.type in (ParameterType.NUMERIC_VALUE, ParameterType.DERIVED_CALC)

    @property
    def is_derived(self) -> bool:
        return self.type == ParameterType.DERIVED_CALC

    @property
    def display_name(self) -> str:
        return self.label or self.name

    def find_option(self, value: Any) -> Optional[FixedOption]:
        """Return the option whose value matches the current form value."""
        if value is None or value == "":
            return None
        for option in self.options:
            if option.value == option_key(value):
                return option
        return None

    @classmethod
    def from_dict(cls, data: dict) -> 'Parameter':
        """Create a Parameter from the camelCase JSON used by the UI layer."""
        name = data.get('name', '')
        return cls(
            id=str(data.get('id') or name),
            name=name,
            label=data.get('label') or "",
            type=ParameterType(data.get('type')),
            required=bool(data.get('required', False)),
            description=data.get('description') or "",
            pricing=PricingRule.from_dict(data.get('pricing')),
            options=[FixedOption.from_dict(o) for o in data.get('options') or []],
            min=_optional_float(data.get('min')),
            max=_optional_float(data.get('max')),
            step=_optional_float(data.get('step')),
            unit=data.get('unit') or None,
            formula=data.get('formula') or None,
            dependencies=list(data.get('dependencies') or []),
            conditional=Conditional.from_dict(data.get('conditional')),
            is_main_units=bool(data.get('isMainUnits', False)),
            units_per_quantity=_optional_float(data.get('unitsPerQuantity')),
            pricing_scope=_optional_scope(data.get('pricingScope')),
        )

    def to_dict(self) -> dict:
        """Convert back to the camelCase JSON shape."""
        out = {
            'id': self.id,
            'name': self.name,
            'label': self.label,
            'type': self.type.value,
            'required': self.required,
            'pricing': self.pricing.to_dict(),
        }
        if self.description:
            out['description'] = self.description
        if self.options:
            out['options'] = [o.to_dict() for o in self.options]
        for key in ('min', 'max', 'step', 'unit', 'formula'):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        if self.dependencies:
            out['dependencies'] = list(self.dependencies)
        if self.conditional is not None:
            out['conditional'] = self.conditional.to_dict()
        if self.is_main_units:
            out['isMainUnits'] = True
        if self.units_per_quantity is not None:
            out['unitsPerQuantity'] = self.units_per_quantity
        if self.pricing_scope is not None:
            out['pricingScope'] = self.pricing_scope.value
        return out


def parameters_from_dicts(items: list[dict]) -> list[Parameter]:
    """Build an ordered parameter list from raw JSON dicts."""
    return [Parameter.from_dict(item) for item in items]


# ---------------------------------------------------------------------------
# Priced output
# ---------------------------------------------------------------------------

@dataclass
class PriceComponent:
    """One contribution to a parameter's sub-total."""
    kind: str  # "base", "option", "sub_option", "unit_price", "step", "multiplier"
    description: str
    amount: Optional[float] = None


@dataclass
class BreakdownItem:
    """A priced line in the quote breakdown."""
    parameter: str
    description: str
    amount: float
    components: list[PriceComponent] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "parameter": self.parameter,
            "description": self.description,
            "amount": self.amount,
        }


@dataclass
class PriceResult:
    """Complete result of a price calculation."""
    total_price: float
    breakdown: list[BreakdownItem] = field(default_factory=list)
    quantity: float = 1.0
    unit_total: float = 0.0
    main_units_value: float = 1.0
    currency: str = "USD"
    values: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to the {totalPrice, breakdown} shape the UI layer reads."""
        return {
            "totalPrice": self.total_price,
            "breakdown": [item.to_dict() for item in self.breakdown],
        }


# ---------------------------------------------------------------------------
# Typed field values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NumericInput:
    """A buyer-entered number."""
    name: str
    raw: Any
    value: Optional[float]


@dataclass(frozen=True)
class Selection:
    """A chosen option, with its sub-option choice if any."""
    name: str
    raw: Any
    option: Optional[FixedOption]
    sub_option: Optional[SubOption] = None


@dataclass(frozen=True)
class DerivedResult:
    """A value computed from a formula."""
    name: str
    raw: Any
    value: float


FieldValue = Union[NumericInput, Selection, DerivedResult]


def typed_value(parameter: Parameter, form_values: dict) -> Optional[FieldValue]:
    """View one parameter's raw form value through its parameter type."""
    raw = form_values.get(parameter.name)
    if raw is None or raw == "":
        return None
    if parameter.is_fixed_option:
        option = parameter.find_option(raw)
        sub = option.find_sub_option(form_values.get(sub_option_key(parameter.name))) if option else None
        return Selection(name=parameter.name, raw=raw, option=option, sub_option=sub)
    number = parse_number(raw)
    if parameter.is_derived:
        return DerivedResult(name=parameter.name, raw=raw, value=number or 0.0)
    return NumericInput(name=parameter.name, raw=raw, value=number)


def typed_values(parameters: list[Parameter], form_values: dict) -> dict[str, FieldValue]:
    """
    Tagged view of a form-values mapping.

    The raw mapping stays the exchange format with the UI layer; this view is
    for callers that want to branch on parameter type without re-parsing.
    Parameters with no value are left out.
    """
    out = {}
    for parameter in parameters:
        value = typed_value(parameter, form_values)
        if value is not None:
            out[parameter.name] = value
    return out
