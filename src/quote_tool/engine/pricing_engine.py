"""
Pricing Engine - composes a quote price from a parameter schema and form values.

Resolution order for every call:
1. Resolve derived values (full pass)
2. Read the order quantity (default 1)
3. Walk visible parameters, skipping "quantity" and empty values
4. Build each parameter's sub-total from its pricing rules
5. Multiply the summed sub-totals by the quantity

Every priced parameter keeps the components that produced its amount, so the
breakdown can explain itself line by line.
"""
import logging
import math
from typing import Any, Optional

from ..config.settings import get_settings, Settings
from .formatting import format_number, format_units, get_currency, parse_decimal, parse_number
from .models import (
    QUANTITY_KEY,
    BreakdownItem,
    Parameter,
    PriceComponent,
    PriceResult,
    sub_option_key,
)
from .resolver import (
    calculate_derived_values,
    initialize_derived_calculations,
    update_form_value_with_calculations,
)
from .visibility import is_parameter_visible, validate_form

logger = logging.getLogger(__name__)


class _LineBuilder:
    """Accumulates one parameter's sub-total and its components."""

    def __init__(self, parameter: Parameter):
        self.parameter = parameter
        self.total = 0.0
        self.components: list[PriceComponent] = []

    def add(self, kind: str, amount: float, description: str):
        self.total += amount
        self.components.append(PriceComponent(kind=kind, description=description, amount=amount))

    def multiply(self, factor: float):
        self.total *= factor
        self.components.append(
            PriceComponent(kind="multiplier", description=f"Multiplier: {format_number(factor)}x")
        )

    def to_item(self) -> BreakdownItem:
        return BreakdownItem(
            parameter=self.parameter.display_name,
            description="; ".join(c.description for c in self.components),
            amount=self.total,
            components=self.components,
        )


def _main_units_value(parameters: list[Parameter], values: dict[str, Any]) -> float:
    main = next((p for p in parameters if p.is_main_units), None)
    if main is None:
        return 1.0
    return parse_decimal(values.get(main.name))


def _price_fixed_option(line: _LineBuilder, value: Any, values: dict[str, Any], symbol: str):
    param = line.parameter
    option = param.find_option(value)
    if option is None:
        return

    if option.pricing.base_price:
        line.add("option", option.pricing.base_price,
                 f"{option.label}: {symbol}{format_number(option.pricing.base_price)}")

    # Options carry no unit count of their own, so unit_price is a flat add
    if option.pricing.unit_price:
        line.add("option", option.pricing.unit_price,
                 f"{option.label}: {symbol}{format_number(option.pricing.unit_price)} per item")

    sub = option.find_sub_option(values.get(sub_option_key(param.name)))
    if sub is not None and sub.price:
        line.add("sub_option", sub.price, f"{sub.label}: {symbol}{format_number(sub.price)}")

    # Multiplier scales this parameter's assembled sub-total only
    if option.pricing.multiplier:
        line.multiply(option.pricing.multiplier)


def _price_numeric(line: _LineBuilder, value: Any, symbol: str):
    param = line.parameter
    pricing = param.pricing
    units_per_quantity = param.units_per_quantity if param.units_per_quantity is not None else 1.0
    total_units = parse_decimal(value) * units_per_quantity

    if pricing.unit_price:
        line.add(
            "unit_price",
            pricing.unit_price * total_units,
            f"Unit price: {symbol}{format_number(pricing.unit_price)} × "
            f"{format_units(total_units)} {param.unit or 'units'}",
        )

    step = pricing.step_pricing
    if step is not None and total_units > step.threshold:
        label = "Volume discount" if step.step_amount < 0 else "Volume surcharge"
        line.add(
            "step",
            step.amount_for(total_units),
            f"{label}: {symbol}{format_number(step.step_amount)} per unit above "
            f"{format_number(step.threshold)}",
        )

    if pricing.multiplier:
        line.multiply(pricing.multiplier)


def _price_parameter(param: Parameter, value: Any, values: dict[str, Any], symbol: str) -> _LineBuilder:
    line = _LineBuilder(param)

    # Parameter-level base price is charged once per item ordered
    if param.pricing.base_price:
        line.add("base", param.pricing.base_price,
                 f"Base: {symbol}{format_number(param.pricing.base_price)} per item")

    if param.is_fixed_option:
        _price_fixed_option(line, value, values, symbol)
    elif param.is_numeric:
        _price_numeric(line, value, symbol)
    return line


def calculate_price(
    parameters: list[Parameter],
    form_values: dict[str, Any],
    currency: str = "USD",
) -> PriceResult:
    """
    Calculate the price breakdown and total for a filled-in quote form.

    Pure function of its inputs. Never raises: an unexpected failure is
    logged and reported as a zero total with an empty breakdown.
    """
    currency_code = get_currency(currency).code
    try:
        return _calculate_price(parameters, form_values, currency_code)
    except Exception:
        logger.exception("Price calculation failed; returning zero total")
        return PriceResult(total_price=0.0, currency=currency_code, values=dict(form_values))


def _calculate_price(parameters: list[Parameter], form_values: dict[str, Any], currency: str) -> PriceResult:
    symbol = get_currency(currency).symbol
    values = calculate_derived_values(parameters, form_values)

    quantity = parse_number(values.get(QUANTITY_KEY))
    if quantity is None:
        quantity = 1.0

    result = PriceResult(
        total_price=0.0,
        quantity=quantity,
        main_units_value=_main_units_value(parameters, values),
        currency=currency,
        values=values,
    )

    for param in parameters:
        if param.name == QUANTITY_KEY or not is_parameter_visible(param, values):
            continue
        value = values.get(param.name)
        if value is None or value == "":
            continue

        line = _price_parameter(param, value, values, symbol)
        if not math.isfinite(line.total):
            logger.warning("Skipping %s: sub-total is not a finite number", param.name)
            continue
        if line.total > 0:
            result.breakdown.append(line.to_item())
            result.unit_total += line.total

    result.total_price = result.unit_total * quantity
    return result


class PricingEngine:
    """
    Settings-aware facade over the resolver, validator and price composer.

    Holds no quoting state of its own; every method takes the schema and the
    form values explicitly.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def default_currency(self) -> str:
        return get_currency(self.settings.default_currency).code

    def initialize(self, parameters: list[Parameter], form_values: Optional[dict] = None) -> dict:
        """Form values for a freshly loaded schema, derived fields filled."""
        values = {QUANTITY_KEY: "1"} if form_values is None else form_values
        return initialize_derived_calculations(parameters, values)

    def resolve(self, parameters: list[Parameter], form_values: dict) -> dict:
        """Full-pass derived-value refresh."""
        return calculate_derived_values(parameters, form_values)

    def update(self, parameters: list[Parameter], form_values: dict, name: str, value: Any) -> dict:
        """Apply one field change and propagate it to derived fields."""
        return update_form_value_with_calculations(
            name, value, parameters, form_values,
            max_iterations=self.settings.max_derived_iterations,
        )

    def calculate(self, parameters: list[Parameter], form_values: dict, currency: Optional[str] = None) -> PriceResult:
        """Price a form in the given (or default) currency."""
        return calculate_price(parameters, form_values, currency or self.default_currency)

    def validate(self, parameters: list[Parameter], form_values: dict) -> list[str]:
        """All validation messages for the form."""
        return validate_form(parameters, form_values)

    def new_session(self, parameters: list[Parameter], form_values: Optional[dict] = None,
                    currency: Optional[str] = None):
        """Start a QuotingSession bound to this engine's settings."""
        from .session import QuotingSession
        return QuotingSession(
            parameters=parameters,
            form_values=self.initialize(parameters, form_values),
            currency=currency or self.default_currency,
            engine=self,
        )
