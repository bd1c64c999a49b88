"""Command-line entry point: transforms, run status and metric reports.

Usage:
    python -m teampulse init-db
    python -m teampulse transform [--source jira]
    python -m teampulse status
    python -m teampulse space alice@example.com --days 14
    python -m teampulse flow PROJ
    python -m teampulse dora acme/api --from-date 2025-01-01 --to-date 2025-02-01
    python -m teampulse overview acme --kind dora
    python -m teampulse orphans acme
    python -m teampulse slice acme --persona engineering --project acme/api
"""

import argparse
import json
import logging
import sys

from dateutil.parser import isoparse
from rich.console import Console
from rich.table import Table

from config.settings import settings
from teampulse.metrics.service import (
    DEFAULT_WINDOW_DAYS,
    OVERVIEW_KINDS,
    MetricsService,
    resolve_window,
)
from teampulse.models.activity import SOURCES
from teampulse.services.activity_service import count_activities, get_orphan_summary
from teampulse.services.insight_inputs import SLICE_BUILDERS, build_slice
from teampulse.transformers.runner import TransformerRunner
from teampulse.utils.database import init_database, session_scope

logger = logging.getLogger(__name__)

console = Console()


def _print_json(data) -> None:
    console.print_json(json.dumps(data, default=str))


def _status_table(states) -> Table:
    table = Table(title="Transform status")
    table.add_column("Source", style="bold")
    table.add_column("Running")
    table.add_column("Last run")
    table.add_column("Last success")
    table.add_column("Last error", style="red")
    for state in states:
        table.add_row(
            state["source"],
            "yes" if state["is_running"] else "no",
            state["last_run_at"] or "-",
            state["last_success_at"] or "-",
            state["last_error"] or "",
        )
    return table


def _run_table(results) -> Table:
    table = Table(title="Transform results")
    table.add_column("Source", style="bold")
    table.add_column("OK")
    table.add_column("Processed", justify="right")
    table.add_column("Created", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Error", style="red")
    for r in results:
        counts = r.result.to_dict() if r.result else {}
        table.add_row(
            r.source,
            "[green]yes[/green]" if r.success else "[red]no[/red]",
            str(counts.get("processed", "-")),
            str(counts.get("created", "-")),
            str(counts.get("skipped", "-")),
            str(counts.get("errors", "-")),
            str(r.duration_ms),
            r.error or "",
        )
    return table


def _window_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--days",
        type=int,
        default=DEFAULT_WINDOW_DAYS,
        help=f"Number of days to look back (default: {DEFAULT_WINDOW_DAYS})",
    )
    parser.add_argument("--from-date", type=str, help="Window start, ISO-8601 (overrides --days)")
    parser.add_argument("--to-date", type=str, help="Window end, ISO-8601 (defaults to now)")


def _window(args):
    start = isoparse(args.from_date) if args.from_date else None
    end = isoparse(args.to_date) if args.to_date else None
    return {"start": start, "end": end, "days": args.days}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="teampulse",
        description="Activity transforms and SPACE / FLOW / DORA reports",
    )
    parser.add_argument("--log-level", default=settings.agent.log_level, help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables")

    transform = sub.add_parser("transform", help="Run source transformers")
    transform.add_argument("--source", choices=SOURCES, help="Run only this source")

    sub.add_parser("status", help="Show per-source transform state")

    reset = sub.add_parser("reset", help="Clear a stuck running flag")
    reset.add_argument("source", choices=SOURCES)

    space = sub.add_parser("space", help="SPACE metrics for one person")
    space.add_argument("email")
    _window_args(space)

    flow = sub.add_parser("flow", help="FLOW metrics for a project id or Jira alias")
    flow.add_argument("project")
    _window_args(flow)

    dora = sub.add_parser("dora", help="DORA metrics for a project id or repository alias")
    dora.add_argument("project")
    _window_args(dora)

    overview = sub.add_parser("overview", help="Org-wide overview")
    overview.add_argument("org_id")
    overview.add_argument("--kind", choices=OVERVIEW_KINDS, default="space")
    _window_args(overview)

    orphans = sub.add_parser("orphans", help="Activities with unresolved actor or project")
    orphans.add_argument("org_id")

    slice_ = sub.add_parser("slice", help="Data slice handed to the insight summarizer")
    slice_.add_argument("org_id")
    slice_.add_argument("--persona", choices=tuple(SLICE_BUILDERS), default="engineering")
    slice_.add_argument("--project", help="Limit product or engineering slices to one alias")
    _window_args(slice_)

    return parser


def main(argv=None) -> int:
    """Main entry point for CLI execution."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "init-db":
        init_database()
        console.print("[green]Database tables created/verified[/green]")
        return 0

    if args.command == "transform":
        runner = TransformerRunner()
        if args.source:
            results = [runner.run_transformer(args.source)]
        else:
            results = runner.run_all()
        console.print(_run_table(results))
        return 0 if all(r.success for r in results) else 1

    if args.command == "status":
        console.print(_status_table(TransformerRunner().get_transform_status()))
        with session_scope() as db:
            counts = {source: count_activities(db, source=source) for source in SOURCES}
        console.print(
            "Activities: " + ", ".join(f"{source}={n}" for source, n in counts.items())
        )
        return 0

    if args.command == "reset":
        if TransformerRunner().reset_source(args.source):
            console.print(f"[green]{args.source}: running flag cleared[/green]")
            return 0
        console.print(f"[yellow]{args.source}: no transform state recorded[/yellow]")
        return 1

    if args.command == "orphans":
        with session_scope() as db:
            _print_json(get_orphan_summary(db, args.org_id))
        return 0

    try:
        if args.command == "slice":
            start, end = resolve_window(**_window(args))
            with session_scope() as db:
                _print_json(build_slice(db, args.persona, args.org_id, start, end, args.project))
            return 0

        metrics = MetricsService()
        if args.command == "space":
            _print_json(metrics.space(args.email, **_window(args)))
        elif args.command == "flow":
            _print_json(metrics.flow(args.project, **_window(args)))
        elif args.command == "dora":
            _print_json(metrics.dora(args.project, **_window(args)))
        elif args.command == "overview":
            _print_json(metrics.overview(args.org_id, args.kind, **_window(args)))
    except ValueError as e:
        parser.error(str(e))
    return 0


if __name__ == "__main__":
    sys.exit(main())
