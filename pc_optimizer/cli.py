"""
CLI - Command-line interface for pc_optimizer.

Sub-commands:
    optimize    Snapshot, then apply the selected categories
    restore     Roll back to a snapshot (latest by default)
    status      Show which categories are currently optimized
    snapshots   List, show or prune snapshots
    categories  List the available categories
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import Config, BACKEND_MODES
from .log import configure_logging
from .protocol.category import Category
from .protocol.errors import SnapshotError
from .runner.engine import OptimizationEngine, create_engine
from .ui.console import ConsoleUI

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="pc-optimizer",
        description="Apply, verify and roll back gaming performance optimizations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    pc-optimizer categories
    pc-optimizer optimize                      # all categories
    pc-optimizer optimize cpu network --yes
    pc-optimizer status
    pc-optimizer restore                       # latest snapshot
    pc-optimizer snapshots list
    pc-optimizer snapshots prune --keep 5

Environment Variables:
    PC_OPTIMIZER_HOME      Data directory (default: ~/.pc_optimizer)
    PC_OPTIMIZER_BACKEND   auto, windows or simulated
    PC_OPTIMIZER_ENV_TAG   Override the computed environment tag
        """,
    )

    # Global options
    parser.add_argument(
        "-c", "--config",
        help="Path to config file (default: search standard locations)"
    )
    parser.add_argument(
        "--backend",
        choices=BACKEND_MODES,
        help="Host backend (default: auto)"
    )
    parser.add_argument(
        "--data-dir",
        help="Data directory for snapshots and simulated state"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON on stdout"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only print warnings and errors"
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    optimize = sub.add_parser("optimize", help="Apply optimization categories")
    optimize.add_argument(
        "categories",
        nargs="*",
        metavar="CATEGORY",
        help="Categories to apply (default: all). See 'pc-optimizer categories'"
    )
    optimize.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Do not ask for confirmation"
    )
    optimize.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip the read-back check after the batch"
    )
    optimize.add_argument(
        "--max-workers",
        type=int,
        help="Concurrent units (default: 12)"
    )

    restore = sub.add_parser("restore", help="Roll back to a snapshot")
    restore.add_argument(
        "snapshot_id",
        nargs="?",
        help="Snapshot to restore (default: latest for this host)"
    )
    restore.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Do not ask for confirmation"
    )

    sub.add_parser("status", help="Show which categories are optimized")
    sub.add_parser("categories", help="List optimization categories")

    snapshots = sub.add_parser("snapshots", help="Manage snapshots")
    snap_sub = snapshots.add_subparsers(dest="snapshot_command", metavar="ACTION")
    snap_sub.required = True

    snap_list = snap_sub.add_parser("list", help="List snapshots (newest first)")
    snap_list.add_argument(
        "--all-environments",
        action="store_true",
        help="Include snapshots taken on other hosts"
    )
    snap_show = snap_sub.add_parser("show", help="Show a snapshot's captured values")
    snap_show.add_argument("snapshot_id")
    snap_prune = snap_sub.add_parser("prune", help="Delete old snapshots")
    snap_prune.add_argument(
        "--keep",
        type=int,
        help="Snapshots to keep (default: [snapshots] keep_latest)"
    )

    return parser.parse_args(argv)


def parse_categories(names: List[str]) -> List[Category]:
    """Parse category names; no names means every category."""
    if not names:
        return list(Category)
    return [Category.parse(name) for name in names]


# =========================================================================
# Commands
# =========================================================================

def cmd_optimize(args, engine: OptimizationEngine, config: Config, ui: ConsoleUI) -> int:
    try:
        selection = parse_categories(args.categories)
    except ValueError as e:
        ui.print_error(str(e))
        return EXIT_USAGE

    ui.print(f"Categories: {', '.join(c.label for c in selection)}")
    if not args.yes and not args.json:
        if not ui.confirm("Snapshot current settings and apply these optimizations?", default=False):
            ui.print("Cancelled")
            return EXIT_OK

    result = engine.run_batch(selection)

    if result.snapshot_id:
        engine.snapshots.prune(config.snapshots.keep_latest)

    if args.json:
        print(result.to_json())
    else:
        ui.display_batch_result(result)
    return EXIT_OK if result.overall_success else EXIT_FAILURE


def cmd_restore(args, engine: OptimizationEngine, config: Config, ui: ConsoleUI) -> int:
    target = args.snapshot_id or engine.snapshots.latest()
    if target is None:
        ui.print_error("No snapshot exists for this environment")
        return EXIT_FAILURE

    if not args.yes and not args.json:
        if not ui.confirm(f"Restore snapshot {target}?", default=False):
            ui.print("Cancelled")
            return EXIT_OK

    try:
        report = engine.restore(target)
    except SnapshotError as e:
        ui.print_error(str(e))
        return EXIT_FAILURE

    if args.json:
        print(report_json(report.to_dict()))
    else:
        ui.display_restore_report(report)
    return EXIT_OK if report.success else EXIT_FAILURE


def cmd_status(args, engine: OptimizationEngine, config: Config, ui: ConsoleUI) -> int:
    report = engine.get_status()
    latest = engine.snapshots.latest()

    if args.json:
        data = report.to_dict()
        data["latest_snapshot"] = latest
        data["environment_tag"] = engine.environment_tag
        print(report_json(data))
    else:
        ui.display_status(report, latest, engine.environment_tag)
    return EXIT_OK


def cmd_categories(args, engine: OptimizationEngine, config: Config, ui: ConsoleUI) -> int:
    if args.json:
        print(report_json([
            {"category": unit.category.label, "id": unit.id, "description": unit.description}
            for unit in engine.catalog
        ]))
    else:
        ui.display_categories(engine.catalog)
    return EXIT_OK


def cmd_snapshots(args, engine: OptimizationEngine, config: Config, ui: ConsoleUI) -> int:
    manager = engine.snapshots

    if args.snapshot_command == "list":
        snapshots = manager.list_snapshots(all_environments=args.all_environments)
        if args.json:
            print(report_json([
                {
                    "id": s.id,
                    "created_at": s.created_at,
                    "environment_tag": s.environment_tag,
                    "categories": list(s.categories),
                    "keys": s.key_count,
                    "services": s.service_count,
                }
                for s in snapshots
            ]))
        else:
            ui.display_snapshots(snapshots)
        return EXIT_OK

    if args.snapshot_command == "show":
        try:
            snapshot = manager.get(args.snapshot_id)
        except SnapshotError as e:
            ui.print_error(str(e))
            return EXIT_FAILURE
        if snapshot is None:
            ui.print_error(f"Snapshot '{args.snapshot_id}' not found")
            return EXIT_FAILURE
        if args.json:
            print(report_json(snapshot.to_dict()))
        else:
            ui.display_snapshot(snapshot)
        return EXIT_OK

    keep = args.keep if args.keep is not None else config.snapshots.keep_latest
    if keep < 0:
        ui.print_error("--keep must not be negative")
        return EXIT_USAGE
    removed = manager.prune(keep)
    if args.json:
        print(report_json({"removed": removed, "kept": keep}))
    else:
        ui.print(f"Removed {removed} snapshot(s)")
    return EXIT_OK


def report_json(data) -> str:
    return json.dumps(data, indent=2)


COMMANDS = {
    "optimize": cmd_optimize,
    "restore": cmd_restore,
    "status": cmd_status,
    "categories": cmd_categories,
    "snapshots": cmd_snapshots,
}


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = Config.load(args.config).override_from_args(args)
    except (FileNotFoundError, ValueError) as e:
        ConsoleUI().print_error(f"Cannot load config: {e}")
        sys.exit(EXIT_USAGE)

    errors = config.validate()
    if errors:
        ui = ConsoleUI()
        for error in errors:
            ui.print_error(error)
        sys.exit(EXIT_USAGE)

    configure_logging(config.output.log_level, quiet=config.output.quiet or args.json)
    ui = ConsoleUI(quiet=config.output.quiet or args.json)

    try:
        engine = create_engine(config)
        if args.command in ("optimize", "restore", "status"):
            ui.print_banner(engine.backend, engine.environment_tag)
        code = COMMANDS[args.command](args, engine, config, ui)

    except KeyboardInterrupt:
        ui.console.print("\nInterrupted by user")
        sys.exit(EXIT_INTERRUPTED)

    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        ui.print_error(str(e))
        sys.exit(EXIT_FAILURE)

    sys.exit(code)


if __name__ == "__main__":
    main()
