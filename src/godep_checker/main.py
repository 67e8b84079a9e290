import sys
from typing import NoReturn, Optional, Sequence

import click
from rich.console import Console

from . import __version__
from .cli_config import CheckerConfig, load_config
from .error_handling import (
    ConfigurationError,
    ImportScanError,
    ManifestLoadError,
    get_error_handler,
)
from .reconciler import Reconciler
from .reporting import ReconciliationReporter
from .structured_logging import setup_logging

# Exit status for unreadable manifests, unparsable sources and bad configuration
EXIT_LOAD_FAILURE = 2

console = Console()
err_console = Console(stderr=True)


def exit_with_errors(reason: str, errors: Sequence[object] = ()) -> NoReturn:
    """Print a fatal diagnostic and every collected error, then exit."""
    err_console.print(reason, markup=False, highlight=False, soft_wrap=True)
    for error in errors:
        err_console.print(str(error), markup=False, highlight=False, soft_wrap=True)
    sys.exit(EXIT_LOAD_FAILURE)


def _apply_cli_overrides(
    config: CheckerConfig,
    self_manifest: Optional[str],
    other_manifest: Optional[str],
    source_root: Optional[str],
    gopath: Optional[str],
    self_label: Optional[str],
    other_label: Optional[str],
    output_format: Optional[str],
    show_self_only: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    if gopath:
        config.paths.package_root = gopath
    if self_manifest:
        config.paths.self_manifest = self_manifest
    if other_manifest:
        config.paths.other_manifest = other_manifest
    if source_root:
        config.paths.source_root = source_root
    if self_label:
        config.report.self_label = self_label
    if other_label:
        config.report.other_label = other_label
    if output_format:
        config.report.output_format = output_format.lower()
    if show_self_only:
        config.report.show_self_only = True
    if quiet:
        config.report.quiet = True
    if verbose:
        config.logging.log_level = "DEBUG"
        config.logging.enable_console_logging = True


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--version", is_flag=True, help="Show version information")
@click.option(
    "--self",
    "self_manifest",
    type=click.Path(dir_okay=False),
    help="The first file to compare "
    "(default: $GOPATH/src/github.com/openshift/origin/Godeps/Godeps.json)",
)
@click.option(
    "--other",
    "other_manifest",
    type=click.Path(dir_okay=False),
    help="The other file to compare "
    "(default: $GOPATH/src/k8s.io/kubernetes/Godeps/Godeps.json)",
)
@click.option(
    "--source-root",
    type=click.Path(file_okay=False),
    help="Source tree whose imports are scanned (default: current directory)",
)
@click.option(
    "--gopath",
    type=click.Path(file_okay=False),
    help="Package root holding manifests and dependency checkouts (default: $GOPATH)",
)
@click.option("--self-label", help="Name printed for the first manifest (default: Origin)")
@click.option("--other-label", help="Name printed for the other manifest (default: K8s)")
@click.option(
    "--output-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    help="Output format for results (default: console)",
)
@click.option(
    "--show-self-only",
    is_flag=True,
    help="Also list dependencies pinned only by the first manifest",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file (JSON, YAML or TOML)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress the assumptions preamble")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr")
@click.pass_context
def cli(
    ctx: click.Context,
    version: bool,
    self_manifest: Optional[str],
    other_manifest: Optional[str],
    source_root: Optional[str],
    gopath: Optional[str],
    self_label: Optional[str],
    other_label: Optional[str],
    output_format: Optional[str],
    show_self_only: bool,
    config_file: Optional[str],
    quiet: bool,
    verbose: bool,
) -> None:
    """
    Compare two Godeps manifests.

    Lists dependencies pinned only by the other manifest and, for every
    dependency pinned by both at different revisions, whether each side's
    revision is older or newer according to the dependency's own git history.
    """
    if version:
        console.print(f"godep-checker version {__version__}", style="bold blue")
        ctx.exit()

    try:
        config = load_config(config_file)
        _apply_cli_overrides(
            config,
            self_manifest,
            other_manifest,
            source_root,
            gopath,
            self_label,
            other_label,
            output_format,
            show_self_only,
            quiet,
            verbose,
        )
    except ConfigurationError as e:
        exit_with_errors("Error loading configuration:", [e])

    try:
        setup_logging(config.logging)
    except OSError as e:
        exit_with_errors("Error loading configuration:", [f"cannot open log file: {e}"])
    get_error_handler().reset_stats()

    reporter = ReconciliationReporter(
        console,
        self_label=config.report.self_label,
        other_label=config.report.other_label,
    )
    json_output = config.report.output_format == "json"
    if not json_output and not config.report.quiet:
        reporter.print_preamble()

    reconciler = Reconciler(config)
    try:
        result = reconciler.run()
    except ManifestLoadError as e:
        exit_with_errors(f"Error loading {e.path}:", [e])
    except ImportScanError as e:
        exit_with_errors("Error loading imports:", e.errors)

    if json_output:
        reporter.print_json(
            result,
            str(reconciler.self_manifest_path),
            str(reconciler.other_manifest_path),
        )
    else:
        reporter.print_report(result, show_self_only=config.report.show_self_only)

    if verbose and result.unknown_count:
        err_console.print(
            f"{result.unknown_count} revision pair(s) could not be ordered",
            style="yellow",
        )


if __name__ == "__main__":
    cli()
