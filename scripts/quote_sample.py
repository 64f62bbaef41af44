#!/usr/bin/env python
"""
Price a bundled sample schema from the command line.

Usage:
    python scripts/quote_sample.py banners width=48 height=24 banner_material=vinyl_18oz grommets=standard
    python scripts/quote_sample.py business_cards material=premium material_suboption=spot_uv quantity=500 --csv out.csv
"""
import argparse
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from quote_tool.config.settings import get_settings
from quote_tool.engine import PricingEngine
from quote_tool.engine.formatting import format_price
from quote_tool.services.schema_service import SchemaService
from quote_tool.services.quote_export import export_quote_csv
from quote_tool.utils.logger import setup_logging


def main():
    settings = get_settings()
    setup_logging(settings.log_level)

    service = SchemaService(settings.samples_dir)

    parser = argparse.ArgumentParser(description="Price a sample quote form")
    parser.add_argument('schema', choices=service.list_schemas())
    parser.add_argument('values', nargs='*', help="name=value pairs")
    parser.add_argument('--currency', default=None)
    parser.add_argument('--csv', type=Path, default=None, help="write the breakdown to CSV")
    args = parser.parse_args()

    schema = service.load_schema(args.schema)
    engine = PricingEngine(settings)
    session = engine.new_session(schema.parameters, currency=args.currency or schema.currency)

    for pair in args.values:
        if '=' not in pair:
            print(f"ERROR: expected name=value, got '{pair}'")
            sys.exit(2)
        name, value = pair.split('=', 1)
        if name.endswith('_suboption'):
            session.select_sub_option(name[:-len('_suboption')], value)
        else:
            session.set_value(name, value)

    print("=" * 60)
    print(f"QUOTE: {schema.title}")
    print("=" * 60)

    result = session.price()
    for item in result.breakdown:
        print(f"  {item.parameter:<24} {format_price(item.amount, result.currency):>14}")
        print(f"      {item.description}")
    print("-" * 60)
    print(f"  Unit total: {format_price(result.unit_total, result.currency)}  × {result.quantity:g}")
    print(f"  TOTAL:      {format_price(result.total_price, result.currency)}")

    errors = session.validate()
    if errors:
        print()
        print("Validation:")
        for error in errors:
            print(f"  ❌ {error}")

    if args.csv:
        export_quote_csv(result, args.csv)
        print(f"\nBreakdown saved to: {args.csv}")


if __name__ == "__main__":
    main()
