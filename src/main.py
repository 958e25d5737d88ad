# src/main.py - v2
"""CLI entry point: analyze, rules, info commands.

Usage:
    guidelint analyze <request.json> [options]
    guidelint rules [--guidelines PATH]
    guidelint info

Responses and listings go to stdout as JSON; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from guidelint.config.settings import ConfigurationError, Settings, load_settings
from guidelint.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args)
    except (ConfigurationError, ValidationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="guidelint",
        description=f"guidelint v{__version__} - guideline compliance analysis for UI text",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- analyze ---
    p_analyze = subparsers.add_parser(
        "analyze", help="Analyze a request file ('-' reads stdin)",
    )
    p_analyze.add_argument("request", help="Path to request JSON, or '-'")
    _add_guidelines_arg(p_analyze)
    p_analyze.add_argument(
        "--cache-backend", choices=["json", "sqlite", "redis"], default=None,
        help="Override CACHE_BACKEND",
    )
    p_analyze.add_argument(
        "--no-cache", action="store_true",
        help="Disable the analysis cache for this run",
    )
    p_analyze.add_argument(
        "--pretty", action="store_true",
        help="Indent the JSON response",
    )
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- rules ---
    p_rules = subparsers.add_parser(
        "rules", help="Print the guideline version and extracted rules",
    )
    _add_guidelines_arg(p_rules)
    p_rules.set_defaults(func=_cmd_rules)

    # --- info ---
    p_info = subparsers.add_parser("info", help="Print service information")
    p_info.set_defaults(func=_cmd_info)

    return parser


def _add_guidelines_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--guidelines", type=Path, default=None,
        help="Guidelines file or database (overrides GUIDELINES_PATH)",
    )


def _load_settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if getattr(args, "guidelines", None) is not None:
        overrides["guidelines_path"] = args.guidelines
        if args.guidelines.suffix in (".db", ".sqlite", ".sqlite3"):
            overrides["guidelines_backend"] = "sqlite"
    if getattr(args, "cache_backend", None):
        overrides["cache_backend"] = args.cache_backend
    if getattr(args, "no_cache", False):
        overrides["cache_enabled"] = False
    return load_settings(**overrides)


async def _cmd_analyze(args: argparse.Namespace, settings: Settings) -> int:
    """Analyze one request and print the response."""
    from guidelint.api.facade import AnalysisService

    try:
        request = _read_request(args.request)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Cannot read request %s: %s", args.request, exc)
        return 1

    service = AnalysisService(settings)
    try:
        response = await service.analyze(request)
    finally:
        # Background cache writes must land before the process exits.
        await service.aclose()

    _print_json(response.to_wire(), args.pretty)
    return 0 if response.success else 1


async def _cmd_rules(args: argparse.Namespace, settings: Settings) -> int:
    """Print guideline version digest and the extracted rule list."""
    from guidelint.guidelines.base_guideline_store import GuidelinesUnavailableError
    from guidelint.guidelines.extractor import extract_rules
    from guidelint.guidelines.store_factory import create_guideline_store
    from guidelint.guidelines.versioning import compute_guidelines_version

    store = create_guideline_store(settings)
    try:
        guidelines = await store.load_active()
    except GuidelinesUnavailableError as exc:
        logger.error("Guidelines unavailable: %s", exc)
        return 1
    finally:
        store.close()

    rules = extract_rules(guidelines, settings.rule_max_depth)
    _print_json(
        {
            "guidelinesVersion": compute_guidelines_version(guidelines),
            "totalGuidelines": len(guidelines),
            "ruleCount": len(rules),
            "rules": [r.model_dump(mode="json", exclude_none=True) for r in rules],
        },
        pretty=True,
    )
    return 0


async def _cmd_info(args: argparse.Namespace, settings: Settings) -> int:
    from guidelint.api.facade import service_info

    _print_json(service_info(settings), pretty=True)
    return 0


def _read_request(source: str) -> dict[str, Any]:
    """Load a request; a bare JSON list is taken as the textLayers array."""
    raw = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    data = json.loads(raw)
    if isinstance(data, list):
        return {"textLayers": data}
    return data


def _print_json(payload: Any, pretty: bool = False) -> None:
    print(json.dumps(payload, indent=2 if pretty else None, ensure_ascii=False))


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from guidelint.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
