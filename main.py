#!/usr/bin/env python3
"""
routescan - OpenAPI contracts from Python service code
======================================================
Static analysis that derives an OpenAPI 3 document from a service written
against a typed operator/router convention. Nothing in the analyzed project
is imported or executed.

Features:
  - Route tree reconstruction from router registrations
  - Request parameters and bodies from annotated operator fields
  - Success responses from output() annotations and response builders
  - Error responses from reachable status errors
  - Custom error formatter detection
  - Deterministic JSON or YAML output

Usage: python main.py [OPTIONS] <path|git-url>
"""

import sys
import os
import argparse
import tempfile
import shutil
import logging
from typing import Dict, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box
from dotenv import load_dotenv
import git

from scanners import (
    Document,
    FatalConfigError,
    GeneratorConfig,
    generate,
)

# =============================================================================
# VERSION
# =============================================================================
__version__ = "1.0.0"

load_dotenv()
console = Console()
err_console = Console(stderr=True)

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None,
                  verbose: bool = False) -> logging.Logger:
    """Configure structured logging for the generator."""
    logger = logging.getLogger("routescan")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Clear existing handlers
    logger.handlers.clear()

    # Console handler with structured format
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    console_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            datefmt='%Y-%m-%dT%H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    return logger

logger = setup_logging()

# =============================================================================
# OUTPUT HELPERS
# =============================================================================
def make_table(document: Document) -> Table:
    t = Table(title=" Generated Operations", box=box.ROUNDED, header_style="bold magenta")
    t.add_column("#", style="dim", width=4)
    t.add_column("Method", width=8)
    t.add_column("Path", max_width=40)
    t.add_column("Operation", style="cyan", max_width=30)
    t.add_column("Tag", style="blue", max_width=20)
    t.add_column("Responses", style="dim", max_width=24)

    operations = list(document.operations())
    for i, (method, path, operation) in enumerate(operations[:100], 1):
        shown = path[:37] + "..." if len(path) > 40 else path
        t.add_row(
            str(i), method.upper(), shown, operation.operation_id,
            ", ".join(operation.tags), ", ".join(sorted(operation.responses)),
        )

    if len(operations) > 100:
        t.add_row("...", "...", f"... +{len(operations) - 100} more", "", "", "")

    return t

def make_summary(document: Document, skipped: Dict[str, str]) -> Panel:
    operations = sum(len(methods) for methods in document.paths.values())
    txt = f"""
[bold cyan] Generation Summary[/bold cyan]

[bold]Paths:[/bold] {len(document.paths)}
[bold]Operations:[/bold] {operations}
[bold]Schemas:[/bold] {len(document.schemas)}
[bold]Security Schemes:[/bold] {len(document.security_schemes)}
[bold]Skipped Operators:[/bold] {len(skipped)}
"""
    return Panel(txt.strip(), border_style="cyan")

def clone_repo(url: str) -> str:
    tmp = tempfile.mkdtemp(prefix="routescan_")
    console.print(f"[cyan]Cloning: {url}[/cyan]")
    git.Repo.clone_from(url, tmp, depth=1)
    console.print(f"[green] Cloned[/green]")
    return tmp

# =============================================================================
# MAIN CLI
# =============================================================================
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="routescan",
        description=f"routescan v{__version__} - OpenAPI generator for operator/router services",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  routescan ./service                              # Write openapi.json
  routescan ./service -o api.yaml --format yaml    # YAML output
  routescan ./service --server https://api.example.com
  routescan ./service --entry-module app.cmd       # Pick the entry module
  routescan https://github.com/org/service.git     # Scan a remote repository
  routescan ./service --fail-on-skipped            # CI gate mode

Environment:
  ROUTESCAN_TITLE, ROUTESCAN_VERSION, ROUTESCAN_SERVERS, ROUTESCAN_OUTPUT,
  ROUTESCAN_FORMAT, ROUTESCAN_ENTRY_MODULE, ROUTESCAN_LOCALE,
  ROUTESCAN_FAIL_ON_SKIPPED, ROUTESCAN_LOG_LEVEL, ROUTESCAN_LOG_FILE
        """
    )

    parser.add_argument("target", help="Directory or Git URL to scan")

    # Output options
    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument("--output", "-o", metavar="FILE",
                              help="Output file or directory (default: openapi.json)")
    output_group.add_argument("--format", choices=["json", "yaml"],
                              help="Output format (default: json)")
    output_group.add_argument("--server", metavar="URL", action="append", default=[],
                              help="Server URL to list in the document (repeatable)")
    output_group.add_argument("--title", metavar="TITLE", help="info.title of the document")
    output_group.add_argument("--api-version", metavar="VERSION", help="info.version of the document")

    # Scan options
    scan_group = parser.add_argument_group("Scan Options")
    scan_group.add_argument("--entry-module", metavar="MODULE",
                            help="Dotted module holding the entry point (default: search all)")
    scan_group.add_argument("--config", metavar="FILE",
                            help="Configuration file (JSON/YAML)")
    scan_group.add_argument("--fail-on-skipped", action="store_true",
                            help="Exit with code 2 if any operator was skipped")

    # Logging
    log_group = parser.add_argument_group("Logging")
    log_group.add_argument("--log-level", metavar="LEVEL",
                           help="Logger level (default: INFO)")
    log_group.add_argument("--log-file", metavar="FILE",
                           help="Write JSON log lines to file")

    # General
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--quiet", "-q", action="store_true", help="Minimal output")
    return parser

def build_config(args: argparse.Namespace) -> GeneratorConfig:
    """Config file or environment first, CLI arguments on top."""
    if args.config:
        config = GeneratorConfig.from_file(args.config)
    else:
        config = GeneratorConfig.from_env()

    if args.output:
        config.output_file = args.output
    if args.format:
        config.output_format = args.format
    for url in args.server:
        if url not in config.servers:
            config.servers.append(url)
    if args.title:
        config.title = args.title
    if args.api_version:
        config.version = args.api_version
    if args.entry_module:
        config.entry_module = args.entry_module
    if args.fail_on_skipped:
        config.fail_on_skipped = True
    if args.log_level:
        config.log_level = args.log_level
    if args.log_file:
        config.log_file = args.log_file
    return config

def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    config = build_config(args)
    setup_logging(config.log_level, config.log_file, verbose=args.verbose)

    # Banner
    if not args.quiet:
        console.print(Panel.fit(
            f"[bold cyan] routescan v{__version__}[/bold cyan]\n"
            "[dim]Router tree | Operators | Status errors | OpenAPI 3[/dim]",
            border_style="cyan"
        ))

    target = args.target
    tmp = None
    exit_code = 0

    try:
        # Clone if URL
        if target.startswith(("http://", "https://", "git@")):
            tmp = clone_repo(target)
            target = tmp
        elif not os.path.exists(target):
            console.print(f"[red]Error: {target} not found[/red]")
            sys.exit(1)

        if not args.quiet:
            console.print(f"\n[bold cyan] Scanning...[/bold cyan] [dim]{args.target}[/dim]")

        generator, document = generate(target, config)
        written = generator.output(config.output_file, config.output_format)

        if not args.quiet:
            console.print("\n" + "=" * 70)
            console.print(make_summary(document, generator.skipped))
            console.print()
            if document.paths:
                console.print(make_table(document))
            for name, reason in sorted(generator.skipped.items()):
                console.print(f"   [yellow]skipped[/yellow] {name}: {reason}")
            console.print(f"\n[green] Saved: {written}[/green]")

        if config.fail_on_skipped and generator.skipped:
            if not args.quiet:
                console.print("\n[bold red] Failed: operators were skipped[/bold red]")
            exit_code = 2

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except FatalConfigError as e:
        logger.error(f"Generation aborted: {e}")
        err_console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[red]Error: {e}[/red]")
        if args.verbose:
            console.print_exception()
        sys.exit(1)
    finally:
        if tmp and os.path.exists(tmp):
            shutil.rmtree(tmp, ignore_errors=True)

    if not args.quiet and exit_code == 0:
        console.print("\n[bold green] Complete![/bold green]")

    sys.exit(exit_code)

if __name__ == "__main__":
    main()
