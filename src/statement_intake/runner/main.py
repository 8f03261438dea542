"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..extractors import CachingExtractor, ExtractionClient, PdfPasswordChecker
from ..review import AutoReviewer, ConsoleReviewer
from ..roster import RosterError, load_roster
from ..schemas.intake import ItemStatus
from ..services import IntakeSession, VouchingTracker, unvouched_companies, vouch_company_statements
from ..state_store import StateStore
from ..storage import BlobStoreError, LocalBlobStore

logger = logging.getLogger(__name__)

STATUS_ICONS = {
    ItemStatus.UPLOADED: "✅",
    ItemStatus.VOUCHED: "✅",
    ItemStatus.FAILED: "❌",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="statement-intake",
        description="Match, extract and file bank statements into monthly cycles",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init-config command
    subparsers.add_parser("init-config", help="Write a default config file")

    # ingest command
    ingest_parser = subparsers.add_parser("ingest", help="Ingest a batch of statement files")
    ingest_parser.add_argument("files", nargs="+", type=Path, help="Statement files")
    scope = ingest_parser.add_mutually_exclusive_group()
    scope.add_argument(
        "--company-id",
        type=int,
        help="Match only against this company's accounts",
    )
    scope.add_argument(
        "--auto-detect",
        action="store_true",
        help="Match against every company in the roster (default)",
    )
    ingest_parser.add_argument("--month", type=int, required=True, help="Target month (1-12)")
    ingest_parser.add_argument("--year", type=int, required=True, help="Target year")
    ingest_parser.add_argument(
        "--yes",
        action="store_true",
        help="Run unattended: accept all cycles and mismatches, skip password prompts",
    )
    ingest_parser.add_argument(
        "--assign",
        action="append",
        default=[],
        metavar="FILE=BANK_ID",
        help="Assign a file to a roster bank account, overriding automatic matching",
    )
    ingest_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the session report as JSON",
    )

    # cycles command
    subparsers.add_parser("cycles", help="List statement cycles")

    # status command
    status_parser = subparsers.add_parser("status", help="Show intake status")
    status_parser.add_argument("--month", type=int, help="Show records for this month")
    status_parser.add_argument("--year", type=int, help="Show records for this year")

    # vouch command
    vouch_parser = subparsers.add_parser("vouch", help="Vouch a company's statements")
    vouch_parser.add_argument("--company-id", type=int, required=True, help="Company to vouch")
    vouch_parser.add_argument("--month", type=int, help="Limit to this month")
    vouch_parser.add_argument("--year", type=int, help="Limit to this year")
    vouch_parser.add_argument("--undo", action="store_true", help="Remove the vouched flag")
    vouch_parser.add_argument("--notes", type=str, help="Note to store with the sign-off")

    return parser


def cmd_init_config(config_path: Path) -> int:
    """Write a default config file."""
    if config_path.exists():
        print(f"❌ {config_path} already exists")
        return 1
    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}")
    return 0


def parse_assignments(values: list[str]) -> dict[str, int]:
    """Parse --assign FILE=BANK_ID values into {filename: bank_id}."""
    assigned: dict[str, int] = {}
    for value in values:
        filename, sep, bank_id = value.rpartition("=")
        if not sep or not filename or not bank_id.strip().isdigit():
            raise ValueError(f"Invalid --assign value {value!r}, expected FILE=BANK_ID")
        assigned[Path(filename).name] = int(bank_id)
    return assigned


def cmd_ingest(
    config: Config,
    files: list[Path],
    month: int,
    year: int,
    company_id: int | None = None,
    unattended: bool = False,
    as_json: bool = False,
    assignments: list[str] | None = None,
) -> int:
    """Run one intake session over a batch of files."""
    try:
        assigned = parse_assignments(assignments or [])
        roster = load_roster(config.roster_path)
    except (ValueError, RosterError) as e:
        print(f"❌ {e}")
        return 1

    unknown = sorted(set(assigned) - {path.name for path in files})
    if unknown:
        print(f"❌ --assign names files not in this batch: {', '.join(unknown)}")
        return 1
    missing = sorted(b for b in set(assigned.values()) if roster.get(b) is None)
    if missing:
        print(f"❌ --assign names bank accounts not in the roster: {', '.join(str(b) for b in missing)}")
        return 1

    if company_id is not None and not roster.for_company(company_id):
        print(f"❌ Company {company_id} has no bank accounts in the roster")
        return 1

    extractor = CachingExtractor(
        ExtractionClient(
            base_url=config.extraction.base_url,
            token=config.extraction.token,
            timeout=config.extraction.timeout_seconds,
            max_retries=config.extraction.max_retries,
            backoff_factor=config.extraction.backoff_factor,
        ),
        ttl_seconds=config.extraction.cache_ttl_seconds,
    )

    try:
        session = IntakeSession(
            roster=roster,
            store=StateStore(config.state_db_path),
            blob_store=LocalBlobStore(config.storage.blob_root),
            extractor=extractor,
            reviewer=AutoReviewer() if unattended else ConsoleReviewer(),
            password_checker=PdfPasswordChecker(),
            target_month=month,
            target_year=year,
            company_id=company_id,
            password_config=config.passwords,
        )
    except (ValueError, BlobStoreError) as e:
        print(f"❌ {e}")
        return 1

    scope = f"company {company_id}" if company_id is not None else "all companies"
    print(f"📥 Ingesting {len(files)} file(s) for {month:02d}/{year} ({scope})...")

    for path in files:
        try:
            payload = path.read_bytes()
        except OSError as e:
            print(f"  ❌ {path}: {e}")
            continue
        index = session.add_file(path.name, payload)
        if path.name in assigned:
            session.set_manual_match(index, assigned[path.name])
        match = session.arena[index].match
        if match is not None and match.bank is not None:
            print(f"  📄 {path.name} → {match.bank.bank_name} {match.bank.account_number} ({match.tier.value})")
        else:
            print(f"  📄 {path.name} → unmatched")

    report = session.run()

    if as_json:
        print(json.dumps({"cycles": report.cycles, "items": [i.to_dict() for i in report.items]}, indent=2))
    else:
        print()
        for item in report.items:
            icon = STATUS_ICONS.get(item.status, "•")
            detail = f" ({item.error})" if item.error else ""
            ids = f" records {item.statement_ids}" if item.statement_ids else ""
            print(f"  {icon} {item.filename}: {item.status.value}{ids}{detail}")

        pending = [g for g in VouchingTracker(session.store, session.arena).groups() if not g.is_vouched]
        if pending:
            print(f"\n📝 {len(pending)} company group(s) awaiting vouching")

    print(f"\n✓ Uploaded: {report.uploaded}, Failed: {report.failed}")
    return 0 if report.failed == 0 else 2


def cmd_cycles(config: Config) -> int:
    """List statement cycles."""
    store = StateStore(config.state_db_path)
    cycles = store.list_cycles()
    if not cycles:
        print("No statement cycles yet")
        return 0

    print("\n📅 Statement cycles")
    print("=" * 40)
    for cycle in cycles:
        count = len(store.list_statements(month=cycle.cycle_month, year=cycle.cycle_year))
        print(f"  {cycle.month_year}  {cycle.status:<8} {count} statement(s)")
    print()
    return 0


def cmd_status(config: Config, month: int | None = None, year: int | None = None) -> int:
    """Show intake status."""
    store = StateStore(config.state_db_path)
    stats = store.get_stats()

    print("\n📊 Intake Status")
    print("=" * 40)
    print(f"  Cycles:                 {stats['cycles_total']}")
    print(f"  Statements:             {stats['statements_total']}")
    print(f"  Range children:         {stats['range_children']}")
    print(f"  Validated:              {stats['statements_validated']}")
    print(f"  Vouched:                {stats['statements_vouched']}")

    if month is not None and year is not None:
        print(f"\n  {month:02d}/{year}:")
        for record in store.list_statements(month=month, year=year):
            vouched = "vouched" if record.is_vouched else "open"
            print(
                f"    [{record.id}] company {record.company_id} bank {record.bank_id} "
                f"{record.statement_type.value} {record.status.value} {vouched}"
            )
        waiting = unvouched_companies(store, month, year)
        if waiting:
            print(f"  Awaiting vouching: companies {', '.join(str(c) for c in waiting)}")
    print()

    return 0


def cmd_vouch(
    config: Config,
    company_id: int,
    month: int | None = None,
    year: int | None = None,
    undo: bool = False,
    notes: str | None = None,
) -> int:
    """Vouch or un-vouch a company's statement records."""
    store = StateStore(config.state_db_path)
    updated = vouch_company_statements(
        store, company_id, vouched=not undo, month=month, year=year, notes=notes
    )
    if updated == 0:
        print(f"❌ No statements found for company {company_id}")
        return 1

    action = "Un-vouched" if undo else "Vouched"
    print(f"✓ {action} {updated} statement record(s) for company {company_id}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config)

    # Load config
    try:
        config = load_config(parsed.config)
        config.ensure_valid()
    except (ConfigValidationError, OSError, ValueError) as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    # Route to command
    if parsed.command == "ingest":
        return cmd_ingest(
            config,
            parsed.files,
            parsed.month,
            parsed.year,
            company_id=parsed.company_id,
            unattended=parsed.yes,
            as_json=parsed.json,
            assignments=parsed.assign,
        )
    elif parsed.command == "cycles":
        return cmd_cycles(config)
    elif parsed.command == "status":
        return cmd_status(config, parsed.month, parsed.year)
    elif parsed.command == "vouch":
        return cmd_vouch(
            config,
            parsed.company_id,
            month=parsed.month,
            year=parsed.year,
            undo=parsed.undo,
            notes=parsed.notes,
        )
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
