"""
tpm install command (-S).

Install plugins from local source directories.
"""

import sys
from pathlib import Path
from typing import Any

from trellis.config import Settings
from trellis.plugin.installer import InstallOptions, InstallResult, PluginInstaller
from tpm.commands import print_actions, print_json, print_messages


def install_command(args: Any, settings: Settings) -> int:
    """
    Execute install command.

    Args:
        args: Parsed command-line arguments
        settings: Loaded settings

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    if not args.targets:
        print("Error: No targets specified", file=sys.stderr)
        print("Usage: tpm -S <source-dir>...", file=sys.stderr)
        return 1

    installer = PluginInstaller(settings)
    options = InstallOptions(
        kind=args.kind,
        parent_framework=args.parent,
        dry_run=args.dry_run,
        force=args.force,
        target_dir=Path(args.target_dir) if args.target_dir else None,
        skip_dependency_check=args.skip_deps,
    )

    results = [installer.install(target, options) for target in args.targets]

    if args.format == "json":
        data = [r.to_dict() for r in results]
        print_json(data[0] if len(data) == 1 else data)
    else:
        for target, result in zip(args.targets, results):
            report_install(target, result, args)

    for result in results:
        print_messages(result.errors, result.warnings)

    fail_count = sum(1 for r in results if not r.success)

    # Summary
    if args.verbose and len(results) > 1:
        print(f"\nInstalled: {len(results) - fail_count}, Failed: {fail_count}")

    return 0 if fail_count == 0 else 1


def report_install(target: str, result: InstallResult, args: Any) -> None:
    """Print the text report for one install run."""
    if not result.success:
        print(f"Failed to install {target}")
    elif args.dry_run:
        print(f"Would install {result.plugin_id} v{result.version} to {result.install_path}")
    else:
        print(f"Installed {result.plugin_id} v{result.version} to {result.install_path}")

    if args.verbose or args.dry_run:
        print_actions(result.actions)
