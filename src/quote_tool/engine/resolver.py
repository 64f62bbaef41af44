"""
Derived-Value Resolver - computes DerivedCalc parameters from their formulas.

Every DerivedCalc parameter is evaluated with its dependencies bound to the
current numeric form values, in dependency order, and the result is written
back into a copy of the form-values mapping as a string.

Two call shapes:
- calculate_derived_values: one full pass (initialisation, whole-schema refresh)
- update_form_value_with_calculations: after one field changes, re-evaluate
  until a pass changes nothing or the iteration cap is reached

Both use the same topological order, so a chain A -> B -> C settles in a
single pass whichever entry point is used.
"""
import logging
from typing import Any, Optional

from ..config.settings import get_settings
from .expression import ExpressionError, evaluate_formula
from .formatting import format_number, parse_decimal
from .models import Parameter

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


def _derived(parameters: list[Parameter]) -> list[Parameter]:
    return [p for p in parameters if p.is_derived]


def dependency_order(parameters: list[Parameter]) -> list[Parameter]:
    """
    Order DerivedCalc parameters so each comes after the derived parameters it
    references.

    Kahn's algorithm with schema order as the tie-break. Parameters caught in
    a cycle cannot be ordered; they are appended in schema order.
    """
    derived = _derived(parameters)
    by_name = {p.name: p for p in derived}

    # Only edges between derived parameters matter; inputs are already known
    pending = {
        p.name: {d for d in p.dependencies if d in by_name and d != p.name}
        for p in derived
    }
    ordered: list[Parameter] = []
    placed: set[str] = set()

    progress = True
    while progress:
        progress = False
        for param in derived:
            if param.name in placed:
                continue
            if pending[param.name] <= placed:
                ordered.append(param)
                placed.add(param.name)
                progress = True

    for param in derived:
        if param.name not in placed:
            ordered.append(param)
    return ordered


def find_dependency_cycles(parameters: list[Parameter]) -> list[list[str]]:
    """Return each dependency cycle among DerivedCalc parameters as a name list."""
    derived = {p.name: p for p in _derived(parameters)}
    cycles: list[list[str]] = []
    seen_cycles: set[frozenset] = set()
    state: dict[str, int] = {}  # 1 = on stack, 2 = done

    def visit(name: str, path: list[str]):
        state[name] = 1
        path.append(name)
        for dep in derived[name].dependencies:
            if dep not in derived:
                continue
            if state.get(dep) == 1:
                cycle = path[path.index(dep):]
                key = frozenset(cycle)
                if key not in seen_cycles:
                    seen_cycles.add(key)
                    cycles.append(cycle + [dep])
            elif state.get(dep) is None:
                visit(dep, path)
        path.pop()
        state[name] = 2

    for name in derived:
        if name not in state:
            visit(name, [])
    return cycles


def evaluate_derived(param: Parameter, values: dict[str, Any]) -> str:
    """
    Evaluate one DerivedCalc parameter against the current values.

    Dependencies are read like parseFloat (missing or non-numeric -> 0). A
    formula that fails to evaluate yields "0".
    """
    variables = {dep: parse_decimal(values.get(dep)) for dep in param.dependencies}
    try:
        result = evaluate_formula(param.formula or "", variables)
    except ExpressionError as e:
        logger.warning("Error calculating derived value for %s: %s", param.name, e)
        return "0"
    return format_number(result)


def _max_iterations(max_iterations: Optional[int]) -> int:
    if max_iterations is not None:
        return max_iterations
    return get_settings().max_derived_iterations or DEFAULT_MAX_ITERATIONS


def calculate_derived_values(
    parameters: list[Parameter],
    current_values: dict[str, Any],
) -> dict[str, Any]:
    """
    One full pass over all DerivedCalc parameters in dependency order.

    Returns a new mapping; the input is not modified. Parameters without a
    formula are left untouched.
    """
    new_values = dict(current_values)
    for param in dependency_order(parameters):
        if not param.formula:
            continue
        new_values[param.name] = evaluate_derived(param, new_values)
    return new_values


def initialize_derived_calculations(
    parameters: list[Parameter],
    current_values: dict[str, Any],
) -> dict[str, Any]:
    """Fill every derived value when a schema is first loaded."""
    return calculate_derived_values(parameters, current_values)


def update_form_value_with_calculations(
    name: str,
    value: Any,
    parameters: list[Parameter],
    current_values: dict[str, Any],
    max_iterations: Optional[int] = None,
) -> dict[str, Any]:
    """
    Set one form value and propagate it through the derived parameters.

    Each pass walks the derived parameters in dependency order and
    re-evaluates those that depend directly on the changed field, plus any
    whose dependencies are now present in the values. Passes repeat until
    nothing changes or max_iterations passes have run (settings default: 10).
    Hitting the cap is not an error; the last computed values are kept.
    """
    new_values = dict(current_values)
    new_values[name] = value

    ordered = [p for p in dependency_order(parameters) if p.formula]
    direct = {p.name for p in ordered if name in p.dependencies}
    limit = _max_iterations(max_iterations)

    has_changes = True
    iterations = 0
    while has_changes and iterations < limit:
        has_changes = False
        iterations += 1

        for param in ordered:
            if param.name not in direct and not any(dep in new_values for dep in param.dependencies):
                continue
            result = evaluate_derived(param, new_values)
            if new_values.get(param.name) != result:
                new_values[param.name] = result
                has_changes = True

    if has_changes:
        logger.debug(
            "Derived values for %r still changing after %d passes; keeping last values",
            name, iterations,
        )
    return new_values
