from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from track_route import services
from track_route.core.engine import RouteEngine, RouteListener
from track_route.core.models import PositionFix, RouteResult, parse_day


class _ConsoleListener(RouteListener):
    def __init__(self, console: Console):
        self.console = console

    def on_progress(self, percent: int) -> None:
        self.console.print(f"[dim]calculating... {percent}%[/dim]")

    def on_quota_exceeded(self) -> None:
        self.console.print("[yellow]Directions quota exceeded, showing recorded points[/yellow]")


def _read_fixes(path: Path) -> List[PositionFix]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("fixes", [])
    return [PositionFix(**item) for item in data]


def _save_json(path: Path, obj) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2), encoding="utf-8")


def _ingest(user_id: str, path: Path, console: Console) -> None:
    fixes = _read_fixes(path)
    result = services.get_geo_filter().process_batch(user_id, fixes)
    console.print(f"Ingested {len(fixes)} fix(es) for {user_id}: {result.accepted_count} accepted")


def _print_result(result: RouteResult, console: Console) -> None:
    if result.no_data or result.route is None:
        console.print(f"[red]No recorded points for {result.user_id} on day {result.day}[/red]")
        return

    table = Table(title=f"Track {result.user_id} @ {result.day} ({result.source})")
    table.add_column("#")
    table.add_column("Lat")
    table.add_column("Lon")
    table.add_column("Dist m")
    table.add_column("Label")
    table.add_column("Geometry")

    for i, p in enumerate(result.route.points):
        table.add_row(
            str(i),
            f"{p.lat:.5f}",
            f"{p.lon:.5f}",
            f"{p.distance:.0f}",
            p.name or "",
            "yes" if p.polyline else "",
        )

    console.print(table)
    console.print(f"Total: {result.route.total_distance_m / 1000:.2f} km over {len(result.route)} point(s)")
    if result.fallback_reason:
        console.print(f"[yellow]Fallback: {result.fallback_reason}[/yellow]")


def _engine(provider: str) -> RouteEngine:
    engine = services.get_engine()
    if provider != "auto":
        engine.provider = services.build_provider(provider)
    return engine


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="track-route")
    sub = ap.add_subparsers(dest="command", required=True)

    for name in ("route", "points", "recalculate"):
        p = sub.add_parser(name)
        p.add_argument("user_id")
        p.add_argument("day", help="epoch milliseconds or YYYY-MM-DD (UTC)")
        p.add_argument("--provider", default="auto", help="auto, google or mock")
        p.add_argument("--fixes", type=Path, help="JSON file of fixes to ingest first")
        p.add_argument("--json", type=Path, dest="json_out", help="write the result to this file")

    p = sub.add_parser("ingest")
    p.add_argument("user_id")
    p.add_argument("fixes", type=Path)

    sub.add_parser("quota")
    sub.add_parser("reset-quota")

    args = ap.parse_args(argv)
    console = Console()

    if args.command == "ingest":
        _ingest(args.user_id, args.fixes, console)
        return

    if args.command in ("quota", "reset-quota"):
        store = services.get_quota_store()
        if args.command == "reset-quota":
            store.reset()
        console.print(f"Directions requests today: {store.count()} (unlimited: {store.is_unlimited()})")
        return

    if args.fixes:
        _ingest(args.user_id, args.fixes, console)

    engine = _engine(args.provider)
    day = parse_day(args.day)
    listener = _ConsoleListener(console)

    if args.command == "points":
        result = engine.get_raw_points(args.user_id, day)
    elif args.command == "route":
        result = engine.get_route(args.user_id, day, listener)
    else:
        result = engine.recalculate_route(args.user_id, day, listener)

    _print_result(result, console)

    if args.json_out:
        _save_json(args.json_out, result.model_dump())
        console.print(f"Saved: {args.json_out.resolve()}")


if __name__ == "__main__":
    main()
