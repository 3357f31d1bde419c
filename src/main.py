# src/main.py — v2
"""CLI entry point — run, batch, operations commands.

Usage:
    docflow run <definition> [options]
    docflow batch <paths...> [options]
    docflow operations
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from docflow.batch.analyze import run_file_batch
from docflow.config.settings import ConfigurationError, Settings, load_settings
from docflow.core.errors import (
    BatchCancelledError,
    RunCancelledError,
    RunFailedError,
    StepFailedError,
)
from docflow.logging.logger import setup_logging
from docflow.operations.builtin import register_builtin_operations
from docflow.operations.registry import OperationContext, OperationRegistry
from docflow.render.batch_renderer import BATCH_FORMATS, render_batch_summary
from docflow.render.report_renderer import REPORT_FORMATS, render_report
from docflow.version import __version__
from docflow.workflow.executor import run_workflow_file

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None, settings: Settings | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    if settings is None:
        try:
            settings = load_settings()
        except (ConfigurationError, ValidationError) as exc:
            print(f"Configuration error: {exc}", file=sys.stderr)
            return 1
    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

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
        prog="docflow",
        description=f"docflow v{__version__} — step orchestrator and batch runner",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- run ---
    p_run = subparsers.add_parser(
        "run", help="Execute a workflow definition",
    )
    p_run.add_argument("definition", type=Path, help="Workflow file (JSON or YAML)")
    p_run.add_argument(
        "--format", choices=REPORT_FORMATS, default=None,
        help="Report format (default: REPORT_FORMAT setting)",
    )
    p_run.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Write the report to a file instead of stdout",
    )
    p_run.add_argument(
        "--write-policy", choices=("idempotent", "overwrite"), default=None,
        help="Output write policy (default: WRITE_POLICY setting)",
    )
    p_run.add_argument(
        "--operations", default=None,
        help="Comma-separated extra operations: module.attr or name=module.attr",
    )
    p_run.set_defaults(func=_cmd_run)

    # --- batch ---
    p_batch = subparsers.add_parser(
        "batch", help="Run one operation over many files concurrently",
    )
    p_batch.add_argument("paths", nargs="+", help="Files to process")
    p_batch.add_argument(
        "--operation", default=None,
        help="Per-file operation (default: BATCH_DEFAULT_OPERATION setting)",
    )
    p_batch.add_argument(
        "-j", "--max-concurrent", type=int, default=None,
        help="Maximum concurrent jobs (default: BATCH_MAX_CONCURRENCY setting)",
    )
    p_batch.add_argument(
        "-f", "--format", choices=BATCH_FORMATS, default=None,
        help="Summary format (default: BATCH_DEFAULT_FORMAT setting)",
    )
    p_batch.add_argument(
        "--timeout", type=float, default=None,
        help="Cancel the batch after this many seconds",
    )
    p_batch.set_defaults(func=_cmd_batch)

    # --- operations ---
    p_ops = subparsers.add_parser(
        "operations", help="List registered operations",
    )
    p_ops.set_defaults(func=_cmd_operations)

    return parser


async def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    """Execute a workflow and print its report."""
    if args.write_policy:
        settings = settings.model_copy(update={"write_policy": args.write_policy})
    registry = build_registry(settings, args.operations)
    fmt = args.format or settings.report_format

    try:
        report = await run_workflow_file(args.definition, registry, settings=settings)
        code = 0
    except (StepFailedError, RunCancelledError, RunFailedError) as exc:
        logger.error("Workflow failed: %s", exc)
        if exc.report is None:
            return 1
        report = exc.report
        code = 1

    _emit(render_report(report, fmt), args.output)
    return code


async def _cmd_batch(args: argparse.Namespace, settings: Settings) -> int:
    """Run a per-file operation over the given paths and print the summary."""
    registry = build_registry(settings)
    operation = args.operation or settings.batch_default_operation
    if operation not in registry or operation == "batch_analyze":
        logger.error("Unknown per-file operation: %s", operation)
        return 1

    fmt = args.format or settings.batch_default_format
    context = OperationContext(registry=registry, settings=settings)
    try:
        summary = await run_file_batch(
            list(args.paths),
            operation,
            context,
            max_concurrency=args.max_concurrent or settings.batch_max_concurrency,
            timeout=args.timeout or settings.batch_timeout_seconds,
        )
    except BatchCancelledError as exc:
        logger.error("%s", exc)
        if exc.partial is not None:
            _emit(render_batch_summary(exc.partial, fmt), None)
        return 1

    _emit(render_batch_summary(summary, fmt), None)
    return 0 if summary.failed == 0 else 1


async def _cmd_operations(args: argparse.Namespace, settings: Settings) -> int:
    """Print registered operation names with their descriptions."""
    registry = build_registry(settings)
    width = max((len(name) for name in registry.names), default=0)
    for name, description in registry.descriptions.items():
        print(f"{name:<{width}}  {description}".rstrip())
    return 0


def build_registry(settings: Settings, extra: str | None = None) -> OperationRegistry:
    """Create a registry with built-in and configured operations."""
    registry = register_builtin_operations(OperationRegistry())
    paths = list(settings.operation_modules_list)
    if extra:
        paths += [p.strip() for p in extra.split(",") if p.strip()]
    if paths:
        registry.load_from_paths(paths)
    return registry


def _emit(text: str, output: Path | None) -> None:
    if output is None:
        sys.stdout.write(text if text.endswith("\n") else text + "\n")
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    logger.info("Report written to %s", output)


if __name__ == "__main__":
    sys.exit(main())
