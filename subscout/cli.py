#!/usr/bin/env python3
"""
SubScout - CLI Interface

Looks up subdomains for one or more domains and prints a short preview.
"""

import argparse
import getpass
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .core.config import Config
from .core.domain import QueryResult
from .core.errors import ConfigError, RateLimitedError, ValidationError
from .core.logger import setup_logger
from .service import SubdomainService

PREVIEW_LIMIT = 15


def print_result(result: QueryResult, limit: int = PREVIEW_LIMIT) -> None:
    """Print a capped preview of a query result."""
    print(f"\nDomain:     {result.domain}")
    print(f"Subdomains: {result.count}" + ("  (cached, < 24h old)" if result.from_cache else ""))

    if result.failed_sources:
        print(f"Failed sources: {', '.join(result.failed_sources)}")

    if not result.subdomains:
        print("  No subdomains found")
        return

    shown = result.subdomains[:limit] if limit > 0 else result.subdomains
    for i, name in enumerate(shown, 1):
        print(f"  {i:>3}. {name}")

    if len(shown) < result.count:
        print(f"  ... {result.count - len(shown)} more (use --output to save the full list)")


def write_output(results: List[QueryResult], path: Path) -> None:
    """Write every subdomain, one per line."""
    lines = [name for result in results for name in result.subdomains]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "local"


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="subscout",
        description="SubScout - Passive Subdomain Discovery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Look up a single domain
  subscout example.com

  # Several domains, full list written to a file
  subscout example.com example.org --output subdomains.txt

  # Ignore cached results
  subscout example.com --refresh
        """
    )

    parser.add_argument(
        "domains",
        nargs="+",
        metavar="DOMAIN",
        help="Domain to look up (a URL is accepted too)",
    )

    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "-o", "--output",
        metavar="FILE",
        help="Write the full subdomain list to FILE",
    )
    output_group.add_argument(
        "-l", "--limit",
        type=int,
        default=PREVIEW_LIMIT,
        metavar="N",
        help=f"Subdomains to print per domain, 0 for all (default: {PREVIEW_LIMIT})",
    )

    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument(
        "-c", "--config",
        dest="config_file",
        metavar="FILE",
        help="Path to config.yaml file",
    )
    config_group.add_argument(
        "--env",
        dest="env_file",
        metavar="FILE",
        help="Path to .env file with API keys",
    )
    config_group.add_argument(
        "--refresh",
        action="store_true",
        help="Skip the cache and query every source",
    )
    config_group.add_argument(
        "--no-crtsh",
        action="store_true",
        help="Skip Certificate Transparency (crt.sh)",
    )
    config_group.add_argument(
        "--no-otx",
        action="store_true",
        help="Skip AlienVault OTX passive DNS",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"SubScout v{__version__}",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = Config(config_path=args.config_file, env_path=args.env_file)
    except ConfigError as e:
        print(f" Error: {e}", file=sys.stderr)
        return 1

    if args.no_crtsh:
        config.set("sources.crtsh.enabled", False)
    if args.no_otx:
        config.set("sources.alienvault_otx.enabled", False)

    log_settings = config.logging
    # The flag beats both config.yaml and SUBSCOUT_LOG_LEVEL
    if args.verbose:
        log_settings["level"] = "DEBUG"
    setup_logger(
        level=log_settings["level"],
        log_format=log_settings["format"],
        log_file=str(config.log_file) if config.log_file else None,
    )

    try:
        service = SubdomainService.from_config(config)
    except ConfigError as e:
        print(f" Error: {e}", file=sys.stderr)
        return 1

    caller_id = f"cli:{_current_user()}"
    results = []
    exit_code = 0

    try:
        for raw in args.domains:
            try:
                result = service.query(caller_id, raw, refresh=args.refresh)
            except ValidationError as e:
                print(f" {raw}: {e}", file=sys.stderr)
                exit_code = 1
                continue
            except RateLimitedError as e:
                print(f" {raw}: please wait {e.retry_after_seconds}s before searching again", file=sys.stderr)
                exit_code = 2
                continue

            results.append(result)
            print_result(result, args.limit)

        if args.output:
            write_output(results, Path(args.output))
            print(f"\n Full list written to {args.output}")
    except KeyboardInterrupt:
        print("\n\n Interrupted by user")
        return 130
    finally:
        service.close()

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
