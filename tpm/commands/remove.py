"""
tpm remove command (-R).

Uninstall plugins, or print the order in which a plugin and its dependents can
be removed.
"""

import sys
from typing import Any

from trellis.config import Settings
from trellis.plugin.fs_ops import format_bytes
from trellis.plugin.uninstaller import PluginUninstaller, UninstallOptions, UninstallResult
from tpm.commands import print_actions, print_json, print_messages


def remove_command(args: Any, settings: Settings) -> int:
    """
    Execute remove command.

    Args:
        args: Parsed command-line arguments
        settings: Loaded settings

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: tpm -R <plugin>...", file=sys.stderr)
        return 1

    uninstaller = PluginUninstaller(settings)

    if args.order:
        orders = {target: uninstaller.get_uninstall_order(target) for target in args.targets}
        if args.format == "json":
            print_json(orders)
        else:
            for target, order in orders.items():
                print(f"{target}: {' -> '.join(order)}")
        return 0

    if not (args.noconfirm or args.dry_run) and not confirm(args.targets):
        print("Aborted", file=sys.stderr)
        return 1

    options = UninstallOptions(
        force=args.force,
        dry_run=args.dry_run,
        keep_projects=args.keep_projects,
        skip_confirmation=args.noconfirm,
    )
    results = [uninstaller.uninstall(target, options) for target in args.targets]

    if args.format == "json":
        data = [r.to_dict() for r in results]
        print_json(data[0] if len(data) == 1 else data)
    else:
        for result in results:
            report_uninstall(result, args)

    for result in results:
        print_messages(result.errors, result.warnings)

    return 0 if all(r.success for r in results) else 1


def confirm(targets: list[str]) -> bool:
    """Ask before removing; anything but y/yes declines."""
    try:
        answer = input(f":: Remove {', '.join(targets)}? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def report_uninstall(result: UninstallResult, args: Any) -> None:
    """Print the text report for one uninstall run."""
    if not result.success:
        print(f"Failed to remove {result.plugin_id}")
    elif args.dry_run:
        print(f"Would remove {result.plugin_id}")
    else:
        stats = result.stats
        print(
            f"Removed {result.plugin_id} "
            f"({stats.files_removed} files, {format_bytes(stats.bytes_freed)} freed)"
        )
        if stats.projects_archived:
            print(f"  Archived {stats.projects_archived} project(s)")

    if args.verbose or args.dry_run:
        print_actions(result.actions)
