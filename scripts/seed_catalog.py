#!/usr/bin/env python3
"""
Seed the database with a classification catalog and its tax rules.

Loads a YAML seed set (gst_config/defaults.yaml by default), creates the
classification codes, then the configurations and rates, all through the
validated write path, and commits once.  Any validation failure rolls the
whole seed back.

Usage:
    gst-seed --database-url sqlite:///gst.db --create-tables
    python3 scripts/seed_catalog.py --seed my_rules.yaml
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from uuid import UUID, uuid4

from gst_config import default_seed_path, load_seed_set
from gst_config.schema import SeedSet
from gst_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from gst_kernel.db.immutability import register_immutability_listeners
from gst_kernel.exceptions import GstKernelError
from gst_kernel.logging_config import get_logger
from gst_kernel.selectors.catalog_selector import CatalogSelector
from gst_kernel.services.audit_sink import DatabaseAuditSink
from gst_kernel.services.catalog_service import CatalogService
from gst_kernel.services.configuration_service import ConfigurationService
from gst_kernel.services.rate_service import RateService

logger = get_logger("scripts.seed_catalog")

DEFAULT_DB_URL = "sqlite:///gst_tax_engine.db"


def apply_seed(session, seed: SeedSet, actor_id: UUID) -> dict[str, int]:
    """
    Apply ``seed`` inside the caller's transaction.

    Codes that already exist are skipped so a seed can be re-run after
    adding entries; rules are always inserted and fail on overlap.

    Returns:
        Counts of created codes, configurations and rates.
    """
    audit = DatabaseAuditSink(session)
    catalog = CatalogService(session)
    configurations = ConfigurationService(session, audit_sink=audit)
    rates = RateService(session, audit_sink=audit)

    counts = {"codes": 0, "configurations": 0, "rates": 0, "codes_skipped": 0}
    lookup = CatalogSelector(session)
    existing = {s.code for s in seed.codes if lookup.find(s.code) is not None}
    for entry in seed.codes:
        if entry.code in existing:
            counts["codes_skipped"] += 1
            continue
        catalog.create_code(
            entry.code,
            entry.description,
            actor_id,
            parent_code=entry.parent_code,
            exemption_available=entry.exemption_available,
            unit_of_measurement=entry.unit_of_measurement,
            business_category_rules=entry.business_category_rules,
            attributes=entry.attributes,
        )
        counts["codes"] += 1
    for draft in seed.configurations:
        configurations.create_configuration(draft, actor_id)
        counts["configurations"] += 1
    for draft in seed.rates:
        rates.create_rate(draft, actor_id)
        counts["rates"] += 1

    logger.info(
        "seed_applied",
        extra={"seed_name": seed.name, "checksum": seed.checksum, **counts},
    )
    return counts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Load a YAML seed set of HSN/SAC codes and GST rules.",
    )
    parser.add_argument(
        "--database-url",
        default=os.environ.get("DATABASE_URL", DEFAULT_DB_URL),
        help="SQLAlchemy URL (default: $DATABASE_URL or %(default)s)",
    )
    parser.add_argument(
        "--seed",
        type=Path,
        default=default_seed_path(),
        help="Seed YAML file (default: the bundled sample)",
    )
    parser.add_argument(
        "--actor-id",
        type=UUID,
        default=None,
        help="Actor recorded as creator (default: a fresh UUID)",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before seeding",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    actor_id = args.actor_id or uuid4()

    seed = load_seed_set(args.seed)
    if seed.is_empty:
        print(f"  Seed {args.seed} is empty, nothing to do.")
        return 0

    init_engine_from_url(args.database_url)
    register_immutability_listeners()
    if args.create_tables:
        create_tables()

    print(f"  Seeding '{seed.name}' from {args.seed}")
    try:
        with session_scope() as session:
            counts = apply_seed(session, seed, actor_id)
    except GstKernelError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1

    print(
        f"  Done. {counts['codes']} codes ({counts['codes_skipped']} already present), "
        f"{counts['configurations']} configurations, {counts['rates']} rates."
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
