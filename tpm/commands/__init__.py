"""
tpm command implementations and shared output helpers.

Reports go to stdout; errors and warnings go to stderr.
"""

import json
import sys
from typing import Any


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def print_messages(errors: list[str], warnings: list[str]) -> None:
    """Print every accumulated error and warning."""
    for warning in warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    for error in errors:
        print(f"Error: {error}", file=sys.stderr)


def print_actions(actions: list) -> None:
    for action in actions:
        marker = "" if action.executed else "(dry-run) "
        print(f"  [{action.kind.value}] {marker}{action.description}")
