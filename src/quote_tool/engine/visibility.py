"""
Visibility & Validation - which parameters are active, and what is missing.

Validation never raises and never mutates the form values; it returns
human-readable messages for the caller to display.
"""
from typing import Any

from .formatting import parse_number
from .models import Parameter, ParameterType, option_key, sub_option_key


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def is_parameter_visible(param: Parameter, form_values: dict[str, Any]) -> bool:
    """A parameter is visible unless its conditional parent holds another value."""
    if param.conditional is None:
        return True
    parent_value = form_values.get(param.conditional.parent_parameter)
    if parent_value is None:
        return False
    return option_key(parent_value) in param.conditional.show_when


def visible_parameters(parameters: list[Parameter], form_values: dict[str, Any]) -> list[Parameter]:
    """Parameters currently shown to the buyer, in schema order."""
    return [p for p in parameters if is_parameter_visible(p, form_values)]


def clear_hidden_children(
    name: str,
    parameters: list[Parameter],
    form_values: dict[str, Any],
) -> dict[str, Any]:
    """
    Blank out conditional children of `name` that its new value hides.

    Returns a new mapping. Sub-option selections of cleared children are
    cleared as well, and the clearing cascades to grandchildren.
    """
    new_values = dict(form_values)
    parents = [name]
    while parents:
        parent = parents.pop()
        for param in parameters:
            if param.conditional is None or param.conditional.parent_parameter != parent:
                continue
            if is_parameter_visible(param, new_values):
                continue
            if not _is_blank(new_values.get(param.name)):
                new_values[param.name] = ""
                parents.append(param.name)
            if not _is_blank(new_values.get(sub_option_key(param.name))):
                new_values[sub_option_key(param.name)] = ""
    return new_values


def validate_required_sub_options(
    parameters: list[Parameter],
    form_values: dict[str, Any],
) -> list[str]:
    """
    Check that required option parameters have a valid sub-option chosen.

    Applies to visible, required FixedOption parameters whose selected option
    defines sub-options.
    """
    errors = []
    for param in parameters:
        if not (param.required and param.is_fixed_option and is_parameter_visible(param, form_values)):
            continue

        selected_value = form_values.get(param.name)
        if _is_blank(selected_value):
            continue

        option = param.find_option(selected_value)
        if option is None or not option.sub_options:
            continue

        selected_sub = form_values.get(sub_option_key(param.name))
        if _is_blank(selected_sub):
            errors.append(f"Please select a {param.display_name} option for {option.label}")
        elif option.find_sub_option(selected_sub) is None:
            errors.append(
                f'"{selected_sub}" is not a valid {param.display_name} option for {option.label}'
            )
    return errors


def validate_required_parameters(
    parameters: list[Parameter],
    form_values: dict[str, Any],
) -> list[str]:
    """Visible required inputs the buyer has not filled in."""
    errors = []
    for param in parameters:
        if not param.required or param.is_derived:
            continue
        if not is_parameter_visible(param, form_values):
            continue
        if _is_blank(form_values.get(param.name)):
            errors.append(f"{param.display_name} is required")
    return errors


def validate_numeric_ranges(
    parameters: list[Parameter],
    form_values: dict[str, Any],
) -> list[str]:
    """Visible numeric inputs that are not numbers or fall outside min/max."""
    errors = []
    for param in parameters:
        if param.type != ParameterType.NUMERIC_VALUE or not is_parameter_visible(param, form_values):
            continue
        raw = form_values.get(param.name)
        if _is_blank(raw):
            continue

        number = parse_number(raw)
        unit = f" {param.unit}" if param.unit else ""
        if number is None:
            errors.append(f"{param.display_name} must be a number")
        elif param.min is not None and number < param.min:
            errors.append(f"{param.display_name} must be at least {param.min:g}{unit}")
        elif param.max is not None and number > param.max:
            errors.append(f"{param.display_name} must be at most {param.max:g}{unit}")
    return errors


def validate_form(parameters: list[Parameter], form_values: dict[str, Any]) -> list[str]:
    """All validation messages for a form, required fields first."""
    return (
        validate_required_parameters(parameters, form_values)
        + validate_required_sub_options(parameters, form_values)
        + validate_numeric_ranges(parameters, form_values)
    )
