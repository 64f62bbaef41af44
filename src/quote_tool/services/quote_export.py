"""
Quote Export - tabular views of a priced quote.

Turns a PriceResult into pandas DataFrames for display grids and CSV
downloads.
"""
from pathlib import Path

import pandas as pd

from ..engine.formatting import format_price
from ..engine.models import PriceResult


BREAKDOWN_COLUMNS = ['Parameter', 'Description', 'Amount', 'Formatted']


def breakdown_frame(result: PriceResult) -> pd.DataFrame:
    """One row per priced parameter, in breakdown order."""
    rows = [
        {
            'Parameter': item.parameter,
            'Description': item.description,
            'Amount': item.amount,
            'Formatted': format_price(item.amount, result.currency),
        }
        for item in result.breakdown
    ]
    return pd.DataFrame(rows, columns=BREAKDOWN_COLUMNS)


def components_frame(result: PriceResult) -> pd.DataFrame:
    """Every pricing component behind the breakdown, one row each."""
    rows = []
    for item in result.breakdown:
        for component in item.components:
            rows.append({
                'Parameter': item.parameter,
                'Component': component.kind,
                'Description': component.description,
                'Amount': component.amount,
            })
    return pd.DataFrame(rows, columns=['Parameter', 'Component', 'Description', 'Amount'])


def summary_frame(result: PriceResult) -> pd.DataFrame:
    """Unit total, quantity and grand total as a two-column table."""
    return pd.DataFrame([
        {'Field': 'Unit Total', 'Value': format_price(result.unit_total, result.currency)},
        {'Field': 'Quantity', 'Value': f"{result.quantity:g}"},
        {'Field': 'Total', 'Value': format_price(result.total_price, result.currency)},
    ])


def export_quote_csv(result: PriceResult, path: Path) -> Path:
    """Write the breakdown plus a total row to CSV and return the path."""
    df = breakdown_frame(result)
    total_row = pd.DataFrame([{
        'Parameter': 'TOTAL',
        'Description': f"Unit total × {result.quantity:g}",
        'Amount': result.total_price,
        'Formatted': format_price(result.total_price, result.currency),
    }])
    df = pd.concat([df, total_row], ignore_index=True)

    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path
