"""
Quoting session - one buyer's pass through a quote form.

Holds the schema, the current form values and the display currency, and
threads them explicitly through the engine calls. Nothing is global: two
sessions over the same schema never see each other's values.
"""
from dataclasses import dataclass, field
from typing import Any, Optional, TYPE_CHECKING

from .models import FieldValue, Parameter, PriceResult, sub_option_key, typed_values
from .visibility import clear_hidden_children, visible_parameters

if TYPE_CHECKING:
    from .pricing_engine import PricingEngine


@dataclass
class QuotingSession:
    """Schema + form values + currency for a single quote."""
    parameters: list[Parameter]
    form_values: dict[str, Any] = field(default_factory=dict)
    currency: str = "USD"
    engine: Optional['PricingEngine'] = None
    initial_values: Optional[dict[str, Any]] = None

    def __post_init__(self):
        if self.engine is None:
            from .pricing_engine import PricingEngine
            self.engine = PricingEngine()
        if self.initial_values is None:
            self.initial_values = dict(self.form_values)

    def set_value(self, name: str, value: Any) -> 'QuotingSession':
        """
        Record a field change.

        Conditional children hidden by the new value are cleared, then the
        change is propagated to derived fields.
        """
        values = dict(self.form_values)
        values[name] = value
        values = clear_hidden_children(name, self.parameters, values)
        self.form_values = self.engine.update(self.parameters, values, name, value)
        return self

    def select_sub_option(self, parameter_name: str, value: Any) -> 'QuotingSession':
        """Record the sub-option chosen under a parameter's selected option."""
        self.form_values = {**self.form_values, sub_option_key(parameter_name): value}
        return self

    def apply_file_metadata(self, metadata: dict[str, Any], connections: list) -> 'QuotingSession':
        """Auto-fill connected parameters from uploaded-file metadata."""
        from ..services.file_connections import apply_file_connections
        self.form_values = apply_file_connections(
            metadata, connections, self.parameters, self.form_values,
            max_iterations=self.engine.settings.max_derived_iterations,
        )
        return self

    def price(self) -> PriceResult:
        return self.engine.calculate(self.parameters, self.form_values, self.currency)

    def validate(self) -> list[str]:
        return self.engine.validate(self.parameters, self.form_values)

    def is_valid(self) -> bool:
        return not self.validate()

    def visible_parameters(self) -> list[Parameter]:
        return visible_parameters(self.parameters, self.form_values)

    def typed_values(self) -> dict[str, FieldValue]:
        return typed_values(self.parameters, self.form_values)

    @property
    def has_changes(self) -> bool:
        return self.form_values != self.initial_values

    def reset(self) -> 'QuotingSession':
        """Back to the values the session started with."""
        self.form_values = dict(self.initial_values)
        return self
