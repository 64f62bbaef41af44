"""Engine subpackage - schema model, derived values and price composition."""
from .pricing_engine import PricingEngine, calculate_price
from .models import Parameter, FixedOption, SubOption, PricingRule, PriceResult, BreakdownItem
from .resolver import calculate_derived_values, update_form_value_with_calculations
from .visibility import is_parameter_visible, validate_required_sub_options
from .session import QuotingSession

__all__ = [
    'PricingEngine', 'calculate_price',
    'Parameter', 'FixedOption', 'SubOption', 'PricingRule', 'PriceResult', 'BreakdownItem',
    'calculate_derived_values', 'update_form_value_with_calculations',
    'is_parameter_visible', 'validate_required_sub_options',
    'QuotingSession',
]
