#!/usr/bin/env python3
"""
Create the schema and seed the reference catalogs.

Reads the active settings (formflow_config/settings/default.yaml unless
--config is given), creates all tables, and registers every field type,
input rule and action listed in the catalog file.  Registration is by name
and idempotent, so the script can be re-run after editing catalog.yaml.

Usage:
    python3 scripts/seed_catalog.py
    python3 scripts/seed_catalog.py --config path/to/settings.yaml
    python3 scripts/seed_catalog.py --database-url sqlite:///formflow.db
"""

import argparse
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Create tables and seed field types, input rules and actions.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: formflow_config/settings/default.yaml)",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Override the configured database URL",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the settings and print the catalog without touching the database",
    )
    args = parser.parse_args()

    from formflow_config import get_active_config
    from formflow_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from formflow_kernel.logging_config import configure_logging, get_logger
    from formflow_kernel.services.catalog_service import CatalogService

    settings = get_active_config(args.config)
    configure_logging(level=settings.log_level)
    logger = get_logger("scripts.seed_catalog")

    catalog = settings.catalog
    print(
        f"Catalog {settings.config_id} ({settings.checksum[:12]}): "
        f"{len(catalog.field_types)} field types, "
        f"{len(catalog.input_rules)} input rules, "
        f"{len(catalog.actions)} actions"
    )
    if args.dry_run:
        for ft in catalog.field_types:
            print(f"  field type   {ft.name:<20} kind={ft.kind}")
        for rule in catalog.input_rules:
            print(f"  input rule   {rule.name:<20} code={rule.code}")
        for action in catalog.actions:
            print(f"  action       {action.name:<20} code={action.code}")
        return 0

    db = settings.database
    init_engine_from_url(
        args.database_url or db.url,
        echo=db.echo_sql,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
    )
    create_tables()

    with session_scope() as session:
        service = CatalogService(session)
        for ft in catalog.field_types:
            service.register_field_type(ft.name, ft.kind)
        for rule in catalog.input_rules:
            service.register_input_rule(rule.name, rule.code, rule.description, rule.is_public)
        for action in catalog.actions:
            service.register_action(action.name, action.code, action.description, action.is_public)

    logger.info("catalog_seeded", extra={"config_id": settings.config_id})
    print("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
