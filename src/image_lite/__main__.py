"""CLI entrypoint for image-lite."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from image_lite import __version__
from image_lite.converters.pillow import PillowImageProcessor
from image_lite.core.checkpoint import CheckpointStore
from image_lite.core.config import Config, ConfigurationError
from image_lite.core.error_log import ErrorLog
from image_lite.core.error_recovery import JobAbortedError
from image_lite.core.logger import configure_logging
from image_lite.core.orchestrator import FatalJobError, Orchestrator
from image_lite.core.quality_rules import QualityRuleResolutionEngine
from image_lite.core.types import FileStatus, ImageDimensions, ProcessedFileRecord
from image_lite.core.watcher import ImageWatcher
from image_lite.reporters.batch_reporter import BatchReporter
from image_lite.ui.progress import ProgressDisplayManager

# Rich console for formatted output
console = Console()

# Number of error log entries shown by `status`
STATUS_ERROR_TAIL = 5


@dataclass
class CLIContext:
    """Context object passed between CLI commands."""

    config: Config
    config_path: Path | None
    verbose: bool
    quiet: bool


def _load_config(config_path: Path | None, overrides: dict[str, Any] | None = None) -> Config:
    """Load configuration, exiting with status 1 on invalid configuration."""
    try:
        return Config.load(config_path, overrides=overrides, force_reload=True)
    except ConfigurationError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        sys.exit(1)


def _resolve(path: Path) -> Path:
    path = Path(path).expanduser()
    return path if path.is_absolute() else Path.cwd() / path


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file (default: .imagerc or .imagerc.json).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output (DEBUG level logging).",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    default=False,
    help="Minimal output (only errors and results).",
)
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, verbose: bool, quiet: bool) -> None:
    """Image Lite - Resumable batch image optimization.

    Converts a tree of source images into WebP, AVIF and re-encoded originals
    with per-file quality rules, retries and checkpointed resume.
    """
    config = _load_config(config_path)

    if verbose:
        level: int | str = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = config.log.level

    configure_logging(
        level=level,
        log_dir=config.log.dir,
        console_output=True,
        file_output=config.log.file_output,
    )

    ctx.obj = CLIContext(config=config, config_path=config_path, verbose=verbose, quiet=quiet)


def _build_overrides(
    input_dir: Path | None,
    output_dir: Path | None,
    pull_lfs: bool,
    no_thumbnails: bool,
    continue_on_error: bool,
    max_retries: int | None,
    retry_delay: int | None,
    no_backoff: bool,
    error_log: Path | None,
    state_file: Path | None,
) -> dict[str, Any]:
    """Translate CLI flags into configuration overrides."""
    overrides: dict[str, Any] = {}
    recovery: dict[str, Any] = {}

    if input_dir is not None:
        overrides["input_dir"] = input_dir
    if output_dir is not None:
        overrides["output_dir"] = output_dir
    if pull_lfs:
        overrides["lfs"] = {"auto_pull": True}
    if no_thumbnails:
        overrides["generate_thumbnails"] = False

    if continue_on_error:
        recovery["continue_on_error"] = True
    if max_retries is not None:
        recovery["max_retries"] = max_retries
    if retry_delay is not None:
        recovery["retry_delay"] = retry_delay
    if no_backoff:
        recovery["exponential_backoff"] = False
    if error_log is not None:
        recovery["error_log"] = error_log
    if state_file is not None:
        recovery["state_file"] = state_file

    if recovery:
        overrides["error_recovery"] = recovery
    return overrides


@main.command()
@click.option(
    "--input-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory with source images (default: original).",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for optimized images (default: optimized).",
)
@click.option(
    "--force",
    is_flag=True,
    help="Reprocess images even if their outputs are up to date.",
)
@click.option(
    "--pull-lfs",
    is_flag=True,
    help="Fetch Git LFS pointer files before processing.",
)
@click.option(
    "--no-thumbnails",
    is_flag=True,
    help="Do not generate thumbnails.",
)
@click.option(
    "--continue-on-error",
    is_flag=True,
    help="Keep going after a file fails instead of aborting the job.",
)
@click.option(
    "--resume",
    is_flag=True,
    help="Resume from the checkpoint of an interrupted or failed run.",
)
@click.option(
    "--watch",
    is_flag=True,
    help="After the run, keep watching the input directory for changes.",
)
@click.option(
    "--max-retries",
    type=click.IntRange(min=1),
    default=None,
    help="Total attempts per file (default: 3).",
)
@click.option(
    "--retry-delay",
    type=click.IntRange(min=0),
    default=None,
    help="Base delay between attempts in milliseconds (default: 1000).",
)
@click.option(
    "--no-backoff",
    is_flag=True,
    help="Use a constant retry delay instead of exponential backoff.",
)
@click.option(
    "--error-log",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Error log location (default: image-optimization-errors.log).",
)
@click.option(
    "--state-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Checkpoint location (default: .image-lite-state.json).",
)
@click.pass_context
def optimize(
    ctx: click.Context,
    input_dir: Path | None,
    output_dir: Path | None,
    force: bool,
    pull_lfs: bool,
    no_thumbnails: bool,
    continue_on_error: bool,
    resume: bool,
    watch: bool,
    max_retries: int | None,
    retry_delay: int | None,
    no_backoff: bool,
    error_log: Path | None,
    state_file: Path | None,
) -> None:
    """Optimize every image in the input directory.

    Examples:

        # Optimize original/ into optimized/
        image-lite optimize

        # Keep going past failures, then retry only the failed files
        image-lite optimize --continue-on-error
        image-lite optimize --resume

        # Reprocess everything and keep watching for changes
        image-lite optimize --force --watch
    """
    cli_ctx: CLIContext = ctx.obj

    overrides = _build_overrides(
        input_dir,
        output_dir,
        pull_lfs,
        no_thumbnails,
        continue_on_error,
        max_retries,
        retry_delay,
        no_backoff,
        error_log,
        state_file,
    )
    config = _load_config(cli_ctx.config_path, overrides) if overrides else cli_ctx.config

    orchestrator = Orchestrator(config)

    progress_manager = ProgressDisplayManager(quiet=cli_ctx.quiet, console=console)
    batch_progress = progress_manager.create_batch_progress()
    batch_progress.start()

    try:
        report = asyncio.run(
            orchestrator.run(force=force, resume=resume, on_progress=batch_progress.update)
        )
    except JobAbortedError as e:
        batch_progress.finish()
        console.print(f"[red]✗ Job aborted: {escape(str(e))}[/red]")
        console.print(
            f"[dim]Details in {orchestrator.error_log.path}. Fix the problem and rerun with "
            "--resume, or use --continue-on-error.[/dim]"
        )
        sys.exit(1)
    except FatalJobError as e:
        batch_progress.finish()
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        batch_progress.finish()
        console.print("\n[yellow]Interrupted. Rerun with --resume to continue.[/yellow]")
        sys.exit(130)

    batch_progress.finish()

    if not cli_ctx.quiet:
        console.print()
    click.echo(BatchReporter().format_summary(report))

    if watch:
        _watch(cli_ctx, config, orchestrator)


def _watch(cli_ctx: CLIContext, config: Config, orchestrator: Orchestrator) -> None:
    """Run watch mode until interrupted."""

    def on_record(record: ProcessedFileRecord) -> None:
        if cli_ctx.quiet:
            return
        if record.status is FileStatus.SUCCESS:
            console.print(f"[green]✓[/green] {record.path}")
        elif record.status is FileStatus.FAILED:
            message = record.error.message if record.error else record.reason
            console.print(f"[red]✗[/red] {record.path}: {message}")

    watcher = ImageWatcher(
        orchestrator,
        poll_interval=config.watch.poll_interval,
        settle_time=config.watch.settle_time,
        on_record=on_record,
    )

    if not cli_ctx.quiet:
        console.print(f"[bold]Watching {orchestrator.input_root}[/bold] (Ctrl+C to stop)")

    try:
        asyncio.run(watcher.watch())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching.[/yellow]")


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show checkpoint progress and recent errors.

    Reads the checkpoint and error log without modifying them.

    Examples:

        image-lite status
    """
    cli_ctx: CLIContext = ctx.obj
    recovery = cli_ctx.config.error_recovery

    error_log = ErrorLog(_resolve(recovery.error_log))
    state = CheckpointStore(_resolve(recovery.state_file)).load()

    if state is None:
        console.print("[green]No checkpoint found.[/green] The last run completed or none has started.")
    else:
        table = Table(title="Checkpoint", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("Started", state.started_at)
        table.add_row("Last updated", state.last_updated_at)
        table.add_row("Total", str(state.progress.total))
        table.add_row("Processed", str(state.progress.processed))
        table.add_row("Succeeded", str(state.progress.succeeded))
        table.add_row("Failed", str(state.progress.failed))
        table.add_row("Remaining", str(state.progress.remaining))
        console.print(table)

        failed = [r for r in state.processed if r.status is FileStatus.FAILED]
        if failed:
            console.print()
            console.print("[bold red]Failed files[/bold red]")
            for record in failed:
                message = record.error.message if record.error else record.reason
                console.print(
                    f"  - {escape(record.path)} ({record.attempts} attempt(s)): "
                    f"{escape(str(message))}"
                )

        console.print()
        console.print("[dim]Run 'image-lite optimize --resume' to continue.[/dim]")

    entries = error_log.read()
    if entries:
        console.print()
        console.print(f"[bold]Error log[/bold] ({len(entries)} entries, {error_log.path})")
        for entry in entries[-STATUS_ERROR_TAIL:]:
            code = f" [{entry.code}]" if entry.code else ""
            console.print(
                f"  {entry.timestamp} {escape(entry.file)}{escape(code)}: {escape(entry.message)}"
            )


@main.command()
@click.argument("path")
@click.option("--width", type=click.IntRange(min=1), default=None, help="Image width in pixels.")
@click.option("--height", type=click.IntRange(min=1), default=None, help="Image height in pixels.")
@click.pass_context
def explain(ctx: click.Context, path: str, width: int | None, height: int | None) -> None:
    """Explain which quality rules apply to PATH.

    PATH is relative to the input directory. Without --width and --height,
    dimensions are read from the file when a rule needs them.

    Examples:

        image-lite explain products/shoe-hero.jpg

        image-lite explain banners/wide.png --width 2400 --height 600
    """
    cli_ctx: CLIContext = ctx.obj
    config = cli_ctx.config
    engine = QualityRuleResolutionEngine(config.quality_rules)
    rel_path = Path(path).as_posix()

    dimensions: ImageDimensions | None = None
    if width is not None and height is not None:
        dimensions = ImageDimensions(width=width, height=height)
    elif width is not None or height is not None:
        raise click.UsageError("--width and --height must be given together")
    elif engine.needs_dimensions:
        input_path = _resolve(config.input_dir) / rel_path
        if input_path.is_file():
            dimensions = asyncio.run(PillowImageProcessor().read_dimensions(input_path))

    explanation = engine.explain(rel_path, config.quality, dimensions)

    console.print(f"[bold]{explanation.file_path}[/bold]")
    if dimensions is not None:
        console.print(f"Dimensions: {dimensions.width}x{dimensions.height}")
    elif engine.needs_dimensions:
        console.print("[yellow]Dimensions unknown; size-bounded rules do not match.[/yellow]")
    console.print()

    if explanation.verdicts:
        table = Table(title="Quality rules")
        table.add_column("#", justify="right")
        table.add_column("Pattern")
        table.add_column("Directory")
        table.add_column("Size")
        table.add_column("Specificity", justify="right")
        table.add_column("Match")

        def cell(value: str | None, verdict: bool | None) -> str:
            if verdict is None:
                return "[dim]-[/dim]"
            mark = "[green]✓[/green]" if verdict else "[red]✗[/red]"
            return f"{mark} {value}" if value else mark

        for verdict in explanation.verdicts:
            table.add_row(
                str(verdict.index),
                cell(verdict.rule.pattern, verdict.pattern),
                cell(verdict.rule.directory, verdict.directory),
                cell(None, verdict.size),
                f"{verdict.specificity:.2f}",
                "[green]yes[/green]" if verdict.matched else "no",
            )
        console.print(table)
        applied = ", ".join(str(i) for i in explanation.applied) or "none"
        console.print(f"Applied (in order): {applied}")
    else:
        console.print("[dim]No quality rules configured.[/dim]")

    console.print()
    click.echo(json.dumps(explanation.resolved, indent=2, sort_keys=True))


@main.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """View the effective configuration as JSON.

    Examples:

        image-lite config

        IMAGE_LITE_OUTPUT_DIR=dist/img image-lite config
    """
    cli_ctx: CLIContext = ctx.obj
    click.echo(json.dumps(cli_ctx.config.to_dict(), indent=2))


if __name__ == "__main__":
    main()
