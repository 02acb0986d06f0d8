from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from runparts import __version__
from runparts.config import RunPartsConfig, load_config
from runparts.execution import EX_SOFTWARE, EX_USAGE, ConfigError, RunPartsError
from runparts.runner import RunParts


def _usage_error(ctx: click.Context, message: str) -> NoReturn:
    click.echo(message, err=True)
    click.echo("", err=True)
    click.echo(ctx.get_help(), err=True)
    ctx.exit(EX_USAGE)


def _configure_logging(debug: bool) -> None:
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=sys.stderr,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


@click.command("run-parts")
@click.argument(
    "directory", type=click.Path(file_okay=False, path_type=Path), metavar="DIRECTORY"
)
@click.option(
    "--test",
    is_flag=True,
    default=False,
    help="Print the names of the scripts which would be run, but don't run them.",
)
@click.option(
    "--list",
    "list_only",
    is_flag=True,
    default=False,
    help="Print the names of all matching files (not limited to executables). "
    "Cannot be used with --test.",
)
@click.option(
    "-v", "--verbose", is_flag=True, default=False, help="Print each script's name to stderr before running."
)
@click.option(
    "--report",
    is_flag=True,
    default=False,
    help="Print a script's name before its first output, on whichever stream it writes to.",
)
@click.option("--reverse", is_flag=True, default=False, help="Reverse the execution order.")
@click.option(
    "--exit-on-error",
    is_flag=True,
    default=False,
    help="Exit as soon as a script returns a non-zero exit code.",
)
@click.option("--umask", default=None, help="Octal umask to set before running scripts [default: 022].")
@click.option(
    "--lsbsysinit",
    is_flag=True,
    default=False,
    help="Only accept names in the LANANA, LSB or Debian cron namespaces.",
)
@click.option("--regex", default=None, help="Only accept names matching this regular expression.")
@click.option(
    "-a", "--arg", "args", multiple=True, help="Pass an argument to the scripts (repeatable)."
)
@click.option(
    "--no-drain",
    is_flag=True,
    default=False,
    help="Stop reading a script's output as soon as it exits.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="TOML file with a [run] table of default options.",
)
@click.option("--debug", is_flag=True, default=False, help="Log internals to stderr.")
@click.version_option(__version__, prog_name="run-parts")
@click.pass_context
def cli(
    ctx: click.Context,
    directory: Path,
    test: bool,
    list_only: bool,
    verbose: bool,
    report: bool,
    reverse: bool,
    exit_on_error: bool,
    umask: str | None,
    lsbsysinit: bool,
    regex: str | None,
    args: tuple[str, ...],
    no_drain: bool,
    config_path: Path | None,
    debug: bool,
) -> None:
    """Run scripts or programs in a directory."""
    _configure_logging(debug)
    try:
        base = load_config(config_path) if config_path else RunPartsConfig.default()
        config = base.merge_cli(
            args=args,
            report=report,
            verbose=verbose,
            test=test,
            list_only=list_only,
            reverse=reverse,
            exit_on_error=exit_on_error,
            umask=umask,
            lsbsysinit=lsbsysinit,
            regex=regex,
            no_drain=no_drain,
        )
        runner = RunParts(config)
    except ConfigError as exc:
        _usage_error(ctx, str(exc))

    try:
        summary = runner.run(directory)
    except RunPartsError as exc:
        click.echo(f"run-parts: {exc}", err=True)
        ctx.exit(EX_SOFTWARE)
    ctx.exit(summary.exit_code)


def main() -> None:
    cli()
