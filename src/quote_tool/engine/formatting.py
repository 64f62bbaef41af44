"""
Number parsing and currency formatting helpers shared by the engine.

Form values arrive as strings or numbers from the UI layer; these helpers
give them one consistent numeric reading and one consistent string form.
"""
import math
import re
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class CurrencyConfig:
    """Display settings for a supported currency."""
    symbol: str
    code: str
    name: str


CURRENCIES: dict[str, CurrencyConfig] = {
    "USD": CurrencyConfig(symbol="$", code="USD", name="US Dollar"),
    "IDR": CurrencyConfig(symbol="Rp", code="IDR", name="Indonesian Rupiah"),
}

DEFAULT_CURRENCY = "USD"

# Leading numeric prefix, the same prefix a browser's parseFloat accepts
_NUMBER_PREFIX = re.compile(r'^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')


def get_currency(code: Optional[str]) -> CurrencyConfig:
    """Look up a currency, falling back to USD for unknown codes."""
    return CURRENCIES.get(str(code or DEFAULT_CURRENCY).upper(), CURRENCIES[DEFAULT_CURRENCY])


def parse_number(value: Any) -> Optional[float]:
    """
    Read a form value as a float.

    Returns None when the value has no numeric prefix. Strings are read up to
    the first character that cannot continue a number ("12cm" -> 12.0).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    match = _NUMBER_PREFIX.match(str(value))
    if not match:
        return None
    try:
        number = float(match.group(1))
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_decimal(value: Any) -> float:
    """Safe number parsing: anything non-numeric reads as 0."""
    number = parse_number(value)
    return 0.0 if number is None else number


def format_number(value: float) -> str:
    """
    Shortest string form of a number ("2" for 2.0, "2.5" for 2.5).

    Used wherever a computed value is stored back into form values or shown
    inside a breakdown description.
    """
    if not math.isfinite(value):
        return "0"
    if value == int(value) and abs(value) < 1e21:
        return str(int(value))
    return repr(float(value))


def format_units(value: float) -> str:
    """Thousands-separated unit count with at most three decimals."""
    if not math.isfinite(value):
        return format_number(value)
    if value == int(value):
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip('0').rstrip('.')


def format_price(
    amount: float,
    currency: str = DEFAULT_CURRENCY,
    min_decimals: int = 2,
    max_decimals: int = 6,
) -> str:
    """
    Format a price for display with the currency symbol.

    Amounts between 0 and 0.01 keep max_decimals so per-unit prices such as
    0.0035 do not collapse to 0.00.
    """
    config = get_currency(currency)
    if 0 < amount < 0.01:
        return f"{config.symbol}{amount:.{max_decimals}f}"
    return f"{config.symbol}{amount:.{min_decimals}f}"
