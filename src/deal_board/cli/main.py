"""Main CLI entry point."""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from deal_board.config import Settings
from deal_board.errors import DealBoardError


def main(argv: list[str] | None = None) -> None:
    """Parse args and dispatch to subcommands."""
    settings = Settings()
    parser = argparse.ArgumentParser(prog="deal-board", description="Investor deal filtering and opportunity boards")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level")
    parser.add_argument(
        "--db",
        type=Path,
        default=settings.db_path,
        help=f"Path to SQLite database (default: {settings.db_path})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ingest
    ingest_parser = subparsers.add_parser("ingest", help="Load deals from a source into the catalog")
    ingest_parser.add_argument(
        "--source",
        default="seed",
        choices=["seed", "api"],
        help="Source to ingest from",
    )
    ingest_parser.add_argument(
        "--since",
        type=str,
        default=None,
        help="Only deals submitted on/after this date (YYYY-MM-DD)",
    )
    ingest_parser.add_argument(
        "--path",
        type=Path,
        default=None,
        help="Seed JSON file (seed source; default: bundled sample deals)",
    )
    ingest_parser.add_argument(
        "--api-url",
        type=str,
        default=settings.api_url,
        help="Applicant platform base URL (api source; default: $DEAL_BOARD_API_URL)",
    )

    # catalog
    catalog_parser = subparsers.add_parser("catalog", help="Query the deal catalog")
    catalog_parser.add_argument("action", choices=["list", "count"], help="List deals or show count")
    catalog_parser.add_argument(
        "--status",
        type=str,
        default=None,
        help="Filter by status (pending, under_review, needs_resubmission, approved, rejected)",
    )

    # filters
    filters_parser = subparsers.add_parser("filters", help="Manage investor filter sets")
    filters_parser.add_argument("action", choices=["set", "show"], help="Save a filter set or show one")
    filters_parser.add_argument("--file", type=Path, default=None, help="Filter set YAML (for set)")
    filters_parser.add_argument("--investor", type=str, default=None, help="Investor id (for show)")

    # board
    board_parser = subparsers.add_parser("board", help="Show an investor's opportunity board")
    board_parser.add_argument("--investor", type=str, required=True)
    board_parser.add_argument("--page", type=int, default=1)
    board_parser.add_argument("--page-size", type=int, default=settings.page_size)

    # explain
    explain_parser = subparsers.add_parser("explain", help="Latest evaluation of a deal for an investor")
    explain_parser.add_argument("--deal", type=str, required=True)
    explain_parser.add_argument("--investor", type=str, required=True)

    # resubmit
    resubmit_parser = subparsers.add_parser("resubmit", help="Submit an updated deal record (applicant update)")
    resubmit_parser.add_argument("--file", type=Path, required=True, help="Deal JSON")

    # status
    status_parser = subparsers.add_parser("status", help="Record a review decision for a deal")
    status_parser.add_argument("--deal", type=str, required=True)
    status_parser.add_argument("--set", dest="target", choices=["approved", "rejected"], required=True)

    # events
    events_parser = subparsers.add_parser("events", help="List resubmission events (applicant view)")
    events_parser.add_argument("--deal", type=str, default=None)

    args = parser.parse_args(argv)
    level = logging.INFO if args.verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    from deal_board.pipeline import DealPipeline

    pipeline = DealPipeline.from_settings(settings.model_copy(update={"db_path": args.db}))
    handlers = {
        "ingest": _run_ingest,
        "catalog": _run_catalog,
        "filters": _run_filters,
        "board": _run_board,
        "explain": _run_explain,
        "resubmit": _run_resubmit,
        "status": _run_status,
        "events": _run_events,
    }
    try:
        handlers[args.command](pipeline, args)
    except DealBoardError as e:
        raise SystemExit(f"Error: {e}")


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str, ensure_ascii=False))


def _run_ingest(pipeline, args: argparse.Namespace) -> None:
    """Run ingest command."""
    from deal_board.connectors.registry import SourceRegistry

    since = None
    if args.since:
        try:
            since = datetime.strptime(args.since, "%Y-%m-%d").date()
        except ValueError:
            raise SystemExit("Invalid --since format. Use YYYY-MM-DD.")

    if args.source == "api":
        source = SourceRegistry.get("api", base_url=args.api_url or "")
    else:
        source = SourceRegistry.get("seed", path=args.path)
    deals = source.fetch_incremental(since=since)
    items_new, items_changed = pipeline.ingest(deals)
    print(f"Catalog: {len(deals)} fetched, {items_new} new, {items_changed} changed")


def _run_catalog(pipeline, args: argparse.Namespace) -> None:
    """Run catalog command."""
    catalog = pipeline.catalog
    deals = catalog.get_by_status(args.status) if args.status else catalog.get_all()
    if args.action == "count":
        print(len(deals))
        return
    _print_json([d.model_dump(mode="json") for d in deals])


def _run_filters(pipeline, args: argparse.Namespace) -> None:
    """Run filters command."""
    from deal_board.models.filters import InvestorFilterSet

    if args.action == "set":
        if not args.file:
            raise SystemExit("filters set requires --file")
        stored = pipeline.put_filter_set(InvestorFilterSet.from_yaml(args.file))
        view = pipeline.view_store.get(stored.investor_id)
        visible = len(view.entries) if view else 0
        print(f"Saved filter set for {stored.investor_id} as version {stored.version}; {visible} deals visible")
    else:
        if not args.investor:
            raise SystemExit("filters show requires --investor")
        _print_json(pipeline.get_filter_set(args.investor).model_dump(mode="json"))


def _run_board(pipeline, args: argparse.Namespace) -> None:
    """Run board command."""
    page = pipeline.get_opportunity_view(args.investor, page=args.page, page_size=args.page_size)
    _print_json(page.model_dump(mode="json"))


def _run_explain(pipeline, args: argparse.Namespace) -> None:
    """Run explain command."""
    results = pipeline.get_evaluation(args.deal, args.investor)
    if not results:
        print(f"No evaluation for {args.deal} / {args.investor}", file=sys.stderr)
        raise SystemExit(1)
    _print_json(
        {
            stage.value: {**r.model_dump(mode="json"), "stale": pipeline.is_stale(r)}
            for stage, r in results.items()
        }
    )


def _run_resubmit(pipeline, args: argparse.Namespace) -> None:
    """Run resubmit command."""
    from deal_board.connectors.parsers import normalize_deal
    from deal_board.models.raw import RawDeal

    deal = normalize_deal(RawDeal(data=json.loads(args.file.read_text(encoding="utf-8"))))
    stored = pipeline.resubmit_deal(deal)
    print(f"Deal {stored.id} is now version {stored.version} ({stored.status.value})")


def _run_status(pipeline, args: argparse.Namespace) -> None:
    """Run status command."""
    deal = pipeline.update_status(args.deal, args.target)
    print(f"Deal {deal.id}: {deal.status.value}")


def _run_events(pipeline, args: argparse.Namespace) -> None:
    """Run events command. Prints only the applicant-facing payload."""
    events = pipeline.event_store.list_events(args.deal)
    _print_json([e.applicant_payload() for e in events])


if __name__ == "__main__":
    main()
