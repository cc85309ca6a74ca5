"""
tpm query commands (-Q, -Qk).

Show plugin status, or validate the registry against the filesystem.
"""

import sys
from typing import Any

from trellis.config import Settings
from trellis.plugin.status import PluginStatus
from trellis.plugin.validator import RegistryValidator, ValidationOptions


def query_command(args: Any, settings: Settings) -> int:
    """
    Execute status query.

    With --record, fresh health results are stored in the registry before the
    report is printed.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    status = PluginStatus(settings)
    plugin_id = args.targets[0] if args.targets else None

    if args.record and not args.dry_run:
        status.record_health(plugin_id)

    if plugin_id is not None and not status.get_status(plugin_id=plugin_id):
        print(f"Error: Plugin '{plugin_id}' is not installed", file=sys.stderr)
        return 1

    print(
        status.generate_report(
            kind=args.kind, plugin_id=plugin_id, verbose=args.verbose, format=args.format
        )
    )
    return 0


def check_command(args: Any, settings: Settings) -> int:
    """
    Execute registry validation.

    Returns:
        0 when the registry is valid, 1 otherwise
    """
    threshold = settings.health_stale_hours if args.stale_hours is None else args.stale_hours
    validator = RegistryValidator(
        settings, ValidationOptions(health_stale_threshold_hours=threshold)
    )
    result = validator.validate()

    print(validator.render_report(result, args.format))

    return 0 if result.valid else 1
