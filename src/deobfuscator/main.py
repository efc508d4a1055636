"""
Command line entry point for the batch JavaScript deobfuscator.

Example:
    Deobfuscate every ``.js`` file in a directory:
    $ js-deobfuscate ./dump --log-level DEBUG --report report.json

Exit codes:
    0: every file was processed successfully
    1: at least one file failed (or was skipped after cancellation)
    2: the directory does not exist or the configuration is invalid
"""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from deobfuscator import __version__
from deobfuscator.core.config import DeobfuscationConfig
from deobfuscator.core.orchestrator import BatchOrchestrator, BatchReport, ProgressInfo
from deobfuscator.core.output_writer import OutputWriter
from deobfuscator.core.profile_manager import ProfileManager
from deobfuscator.exceptions import DirectoryNotFoundError
from deobfuscator.utils.logger import VALID_LOG_LEVELS, setup_logger

EXIT_OK = 0
EXIT_FILE_FAILURES = 1
EXIT_USAGE = 2

console = Console()


def load_config(
    profile_name: str | None,
    config_file: Path | None,
    no_external: bool = False,
    no_format: bool = False,
    workers: int | None = None,
) -> DeobfuscationConfig:
    """Build the run configuration from a profile or file plus CLI overrides.

    Raises:
        ValueError: If the profile or file is invalid.
        FileNotFoundError: If *config_file* does not exist.
    """
    if config_file is not None:
        config = ProfileManager.load_profile(config_file)
    else:
        config = ProfileManager.get_default_profile(profile_name or "Standard")

    if no_external:
        config.features["external_tool"] = False
    if no_format:
        config.features["formatting"] = False
    if workers is not None:
        config.options["max_workers"] = workers

    config.validate()
    return config


def _print_progress(info: ProgressInfo) -> None:
    if info.current_file is None:
        return
    marker = "[green]✓[/green]" if info.log_level == "success" else "[red]✗[/red]"
    timing = f"elapsed {info.formatted_elapsed}"
    if not info.is_complete:
        timing += f", ETA {info.formatted_remaining}"
    console.print(f"{marker} [{info.current_index}/{info.total_files}] {info.message} [dim]({timing})[/dim]")


def print_summary(report: BatchReport) -> None:
    table = Table(title="Deobfuscation Summary")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Output / Reason")

    for result in report.results.values():
        if result.success:
            table.add_row(result.name, "[green]ok[/green]", result.output_path.name)
        else:
            table.add_row(result.name, "[red]failed[/red]", result.reason or "")
    for name in report.skipped:
        table.add_row(name, "[yellow]skipped[/yellow]", "cancelled")

    console.print(table)
    console.print(f"Successfully processed: {len(report.successful)} files")
    console.print(f"Failed to process: {len(report.failed)} files")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="js-deobfuscate")
@click.argument("directory", type=click.Path(path_type=Path))
@click.option(
    "--profile",
    "profile_name",
    type=click.Choice(ProfileManager.list_default_profiles(), case_sensitive=False),
    help="Built-in profile to use (default: Standard)",
)
@click.option("--config", "config_file", type=click.Path(path_type=Path, dir_okay=False), help="JSON profile file")
@click.option("--no-external", is_flag=True, help="Skip the external deobfuscator pass")
@click.option("--no-format", is_flag=True, help="Skip the formatting stage")
@click.option("--workers", type=click.IntRange(min=1), help="Number of files processed in parallel")
@click.option("--report", "report_file", type=click.Path(path_type=Path, dir_okay=False), help="Write the batch report to this file")
@click.option("--report-format", type=click.Choice(["text", "json"]), default="text", show_default=True)
@click.option("--log-file", type=click.Path(path_type=Path, dir_okay=False), help="Also log (at DEBUG) to this file")
@click.option(
    "--log-level",
    type=click.Choice(VALID_LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
)
def main(
    directory: Path,
    profile_name: str | None,
    config_file: Path | None,
    no_external: bool,
    no_format: bool,
    workers: int | None,
    report_file: Path | None,
    report_format: str,
    log_file: Path | None,
    log_level: str,
) -> None:
    """Deobfuscate every JavaScript file in DIRECTORY.

    Outputs are written next to their inputs as <name>Deobs.js and every
    input is backed up first.
    """
    logger = setup_logger("deobfuscator", level=log_level, log_file=log_file)
    logger.debug(f"js-deobfuscate {__version__} starting")

    if profile_name and config_file:
        console.print("[red]Error: --profile and --config are mutually exclusive[/red]")
        raise SystemExit(EXIT_USAGE)

    try:
        config = load_config(profile_name, config_file, no_external, no_format, workers)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: invalid configuration: {e}[/red]")
        raise SystemExit(EXIT_USAGE)

    console.print(f"[blue]Deobfuscating[/blue] {directory} [dim]({config.name})[/dim]")
    orchestrator = BatchOrchestrator(config)
    try:
        report = orchestrator.run(directory, progress_callback=_print_progress)
    except DirectoryNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(EXIT_USAGE)

    if not report.results and not report.skipped:
        console.print("[yellow]No JavaScript files found to process.[/yellow]")
    else:
        print_summary(report)

    if report_file is not None:
        write_result = OutputWriter().write_report(report, report_file, format=report_format)
        if write_result.success:
            console.print(f"[dim]Report written to {report_file}[/dim]")
        else:
            console.print(f"[yellow]Could not write report: {write_result.error}[/yellow]")

    raise SystemExit(EXIT_OK if report.all_succeeded else EXIT_FILE_FAILURES)


if __name__ == "__main__":
    main()
