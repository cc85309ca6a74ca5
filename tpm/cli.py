"""
tpm CLI - Trellis Plugin Manager.

Pacman-style interface for managing Trellis plugins.

Usage:
    tpm -S <source-dir>...       Install plugin(s) from local directories
    tpm -R <plugin>...           Remove plugin(s)
    tpm -R --order <plugin>      Show the safe removal order
    tpm -Q [plugin]              Show plugin status
    tpm -Qk                      Validate the registry against the filesystem
"""

import argparse
import logging
import sys

from trellis.config import ConfigError, load_settings
from trellis.plugin.errors import PluginError


class TPMError(Exception):
    """Base exception for tpm errors."""

    pass


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="tpm",
        description="Trellis Plugin Manager - Pacman-style plugin manager",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--sync", action="store_true", help="Install plugin")
    ops.add_argument("-R", "--remove", action="store_true", help="Remove plugin")
    ops.add_argument("-Q", "--query", action="store_true", help="Query installed")
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    # Query sub-flags
    parser.add_argument("-k", "--check", action="store_true", help="Validate registry (-Qk)")
    parser.add_argument("--record", action="store_true", help="Store fresh health (-Q)")
    parser.add_argument("--stale-hours", type=float, help="Staleness threshold (-Qk)")

    # Install options
    parser.add_argument(
        "--type", dest="kind", choices=["framework", "add-on", "extension"],
        help="Override or filter by plugin type",
    )
    parser.add_argument("--parent", help="Override parent framework (-S)")
    parser.add_argument("--target-dir", help="Install under this directory (-S)")
    parser.add_argument("--skip-deps", action="store_true", help="Skip dependency check (-S)")

    # Remove options
    parser.add_argument("--keep-projects", action="store_true", help="Archive projects (-R)")
    parser.add_argument("--order", action="store_true", help="Print removal order (-R)")
    parser.add_argument(
        "--noconfirm", action="store_true", help="Skip confirmation prompts"
    )

    # Common options
    parser.add_argument("--dry-run", action="store_true", help="Show what would be done")
    parser.add_argument("--force", action="store_true", help="Skip safety checks")
    parser.add_argument("--format", choices=["text", "json"], default="text")
    parser.add_argument("--root", help="Plugin root (default: $TRELLIS_HOME)")
    parser.add_argument("--config", help="Settings file (default: <root>/trellis.toml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Positional arguments
    parser.add_argument("targets", nargs="*", help="Source directories or plugin ids")

    return parser


def print_help():
    """Print help message."""
    help_text = """
tpm - Trellis Plugin Manager

Usage:
    tpm -S <source-dir>...       Install plugin(s) from local directories
    tpm -R <plugin>...           Remove plugin(s)
    tpm -R --order <plugin>      Show the safe removal order
    tpm -Q [plugin]              Show plugin status
    tpm -Qk                      Validate the registry against the filesystem

Install options:
    --type TYPE                  Override plugin type (framework, add-on, extension)
    --parent ID                  Override parent framework
    --target-dir DIR             Install under DIR instead of the plugin root
    --skip-deps                  Do not require dependencies to be installed

Remove options:
    --keep-projects              Archive framework projects before removal
    --order                      Print the removal order instead of removing
    --noconfirm                  Skip confirmation prompts

Query options:
    --type TYPE                  Only show plugins of TYPE
    --record                     Store fresh health results in the registry
    --stale-hours N              Staleness threshold for -Qk

Options:
    --dry-run                    Show what would be done
    --force                      Skip dependency and conflict checks
    --format text|json           Report format
    --root DIR                   Plugin root (default: $TRELLIS_HOME)
    --config FILE                Settings file
    -v, --verbose                Verbose output
    -h, --help                   Show this help
"""
    print(help_text.strip())


def configure_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for tpm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        # Show help
        if args.help or (not args.sync and not args.remove and not args.query):
            print_help()
            return 0

        settings = load_settings(args.root, args.config)
        configure_logging(settings.log_level, args.verbose)

        # Route to appropriate command
        if args.sync:
            # -S: Install
            from tpm.commands.install import install_command

            return install_command(args, settings)

        elif args.remove:
            # -R: Remove
            from tpm.commands.remove import remove_command

            return remove_command(args, settings)

        elif args.query:
            # -Q: Query, -Qk: Check
            from tpm.commands.query import check_command, query_command

            if args.check:
                return check_command(args, settings)
            return query_command(args, settings)

    except (TPMError, ConfigError, PluginError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
