#!/usr/bin/env python
"""
Check quote-form schema files for structural problems.

Usage:
    python scripts/check_schemas.py            # bundled samples
    python scripts/check_schemas.py path/to/schemas
"""
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from quote_tool.config.settings import get_settings
from quote_tool.services.schema_service import SchemaService
from quote_tool.utils.logger import setup_logging


def main():
    settings = get_settings()
    setup_logging(settings.log_level)

    schemas_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else settings.samples_dir
    service = SchemaService(schemas_dir)

    print(f"Checking schemas in {schemas_dir}...")
    results = service.check_all()
    if not results:
        print("No schema files found.")
        sys.exit(1)

    failed = 0
    for name, result in results.items():
        status = "✅" if result.valid else "❌"
        print(f"{status} {name}")
        for error in result.errors:
            print(f"    ERROR: {error}")
        for warning in result.warnings:
            print(f"    WARNING: {warning}")
        if not result.valid:
            failed += 1

    stats = service.get_stats()
    print()
    print(f"Schemas: {stats['total']} ({stats['invalid']} unparseable)")
    for kind, count in sorted(stats['parameters_by_type'].items()):
        print(f"  {kind}: {count}")

    if failed:
        print(f"\n❌ {failed} schema(s) failed checks")
        sys.exit(1)


if __name__ == "__main__":
    main()
