"""Command-line entry point for the ``pluginscan`` console script.

Sub-commands::

    pluginscan scan       [--custom-json URL] [--skip-wp-org] [--skip-filesystem]
                          [--format table|csv|json|yaml|count|ids] [--timeout N]
    pluginscan whitelist  <plugin> [--github-token TOKEN] [--github-owner ...]
    pluginscan checksum   <slug>... [--timeout N] [--format ...]

Exit status: 0 when everything passed, 1 when any plugin was flagged or
failed verification, 2 on usage or configuration errors.
"""
from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Sequence

import structlog

from pluginscan import __version__
from pluginscan.config import ScannerConfig
from pluginscan.domain.entities import REPORT_FIELDS
from pluginscan.engine.audit import PluginAudit, summarize
from pluginscan.infrastructure.logging import bind_invocation, setup_logging
from pluginscan.presentation.formatters import FORMATTERS, format_items
from pluginscan.shared.exceptions import (
    ComponentNotFoundError,
    ConfigurationError,
    PublishError,
)

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2

CHECKSUM_FIELDS = ("file", "reason")


# ---------------------------------------------------------------------------
# Console messages
# ---------------------------------------------------------------------------

def _success(message: str) -> None:
    print(f"Success: {message}")


def _warning(message: str) -> None:
    print(f"Warning: {message}", file=sys.stderr)


def _error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--plugins-dir", type=Path, help="Plugin storage root (WP_PLUGIN_DIR)")
    common.add_argument(
        "--active", action="append", metavar="PLUGIN_FILE",
        help="Identifier of an active plugin, e.g. akismet/akismet.php (repeatable)",
    )
    common.add_argument("--log-level", choices=["debug", "info", "warning", "error"])
    common.add_argument("--json-logs", action="store_true", default=None, help="Emit JSON log lines on stderr")

    parser = argparse.ArgumentParser(
        prog="pluginscan",
        description="Scan WordPress plugins against WordPress.org and a custom allowlist.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", parents=[common], help="Find suspicious and hidden plugins")
    scan.add_argument("--custom-json", metavar="URL", help="URL of the custom JSON allowlist")
    scan.add_argument("--skip-wp-org", action="store_true", help="Skip the WordPress.org registry check")
    scan.add_argument("--skip-filesystem", action="store_true", help="Skip the hidden plugin directory scan")
    scan.add_argument("--format", choices=list(FORMATTERS), default="table")
    scan.add_argument("--timeout", type=int, help="Timeout for API requests in seconds (default 5)")

    whitelist = sub.add_parser("whitelist", parents=[common], help="Add a plugin to the custom allowlist")
    whitelist.add_argument("plugin", help="Plugin slug or name to whitelist")
    whitelist.add_argument("--github-token", help="GitHub token with repo scope")
    whitelist.add_argument("--custom-json", metavar="URL", help="URL to read the current allowlist from")
    whitelist.add_argument("--github-owner")
    whitelist.add_argument("--github-repo")
    whitelist.add_argument("--github-branch")
    whitelist.add_argument("--github-file")

    checksum = sub.add_parser("checksum", parents=[common], help="Verify plugin files against published checksums")
    checksum.add_argument("slugs", nargs="*", metavar="plugin", help="One or more plugin slugs")
    checksum.add_argument("--timeout", type=int, help="Timeout for fetching checksums (default 10)")
    checksum.add_argument("--format", choices=list(FORMATTERS), default="table")

    return parser


def _config_from_args(args: argparse.Namespace) -> ScannerConfig:
    overrides: dict[str, Any] = {
        "plugins_dir": args.plugins_dir,
        "active_plugins": args.active,
        "log_level": args.log_level,
        "json_logs": args.json_logs,
    }
    if args.command == "scan":
        overrides.update(timeout=args.timeout, allowlist_url=args.custom_json)
    elif args.command == "checksum":
        overrides.update(checksum_timeout=args.timeout)
    elif args.command == "whitelist":
        overrides.update(
            github_owner=args.github_owner,
            github_repo=args.github_repo,
            github_branch=args.github_branch,
            github_file=args.github_file,
        )
    return ScannerConfig.from_env(**overrides)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def cmd_scan(audit: PluginAudit, args: argparse.Namespace) -> int:
    print(f"Starting plugin scan of {audit.config.plugins_dir}...", file=sys.stderr)
    result = await audit.run_scan(
        skip_registry=args.skip_wp_org,
        skip_filesystem=args.skip_filesystem,
    )
    if not result.allowlist_loaded:
        _warning("Custom allowlist could not be loaded; results are not filtered by it.")

    if not result.records:
        _success(
            "All plugins are either in the WordPress.org repository or your custom "
            "allowlist. No suspicious plugins found."
        )
        return EXIT_OK

    print(format_items(args.format, [r.to_dict() for r in result.records], REPORT_FIELDS))
    _warning(f"Found {result.suspicious_count} suspicious plugins.")
    return EXIT_FAILED


async def cmd_checksum(audit: PluginAudit, args: argparse.Namespace) -> int:
    if not args.slugs:
        _error("Please provide a plugin slug. Example: pluginscan checksum elementor-pro")
        return EXIT_USAGE

    outcomes = await audit.run_checksum(args.slugs)
    for outcome in outcomes:
        if outcome.skipped:
            _warning(f"Plugin '{outcome.slug}' is not installed. Skipping.")
        elif outcome.error:
            _error(outcome.error)
        elif outcome.discrepancies:
            print(format_items(args.format, [d.to_dict() for d in outcome.discrepancies], CHECKSUM_FIELDS))
            _error(f"Integrity check failed for {outcome.slug}.")
        else:
            _success(f"Checksums match for {outcome.slug}.")

    summary = summarize(outcomes)
    logger.info("checksum.summary", **summary)
    return EXIT_FAILED if summary["failed"] else EXIT_OK


async def cmd_whitelist(audit: PluginAudit, args: argparse.Namespace) -> int:
    token = args.github_token or os.getenv("PLUGINSCAN_GITHUB_TOKEN")
    try:
        outcome = await audit.run_whitelist(args.plugin, token=token, allowlist_url=args.custom_json)
    except ComponentNotFoundError:
        _error(
            f"Plugin '{args.plugin}' not found. Make sure it's installed or provide "
            "the exact plugin slug."
        )
        return EXIT_FAILED
    except PublishError as exc:
        _error(exc.message)
        return EXIT_FAILED

    if outcome.already_present:
        _success(f"Plugin '{outcome.name}' is already in the allowlist.")
        return EXIT_OK
    if outcome.published:
        _success(f"Plugin '{outcome.name}' has been added to the allowlist.")
        return EXIT_OK

    if not outcome.allowlist_loaded:
        _warning("The current allowlist could not be read; the list below holds only the new entry.")
    print("Updated allowlist (please add this to your allowlist file):", file=sys.stderr)
    sys.stdout.write(outcome.content.decode("utf-8"))
    _warning("To automatically update the allowlist file, provide a GitHub token with --github-token.")
    return EXIT_OK


COMMANDS = {
    "scan": cmd_scan,
    "checksum": cmd_checksum,
    "whitelist": cmd_whitelist,
}


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``pluginscan`` console script."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = _config_from_args(args)
    except ConfigurationError as exc:
        _error(exc.message)
        return EXIT_USAGE

    setup_logging(level=config.log_level, json_output=config.json_logs)
    bind_invocation(args.command)

    audit = PluginAudit.from_config(config)
    return asyncio.run(COMMANDS[args.command](audit, args))


if __name__ == "__main__":
    sys.exit(main())
