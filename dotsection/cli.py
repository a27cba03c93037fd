"""
Command line interface for managing sections in dotfiles.

Sections are delimited by marker comments; ``compile`` stamps their hashes,
``update`` pulls them from their sources, and ``apply`` pushes a file into
the target it declares. Sections the user modified are never overwritten.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from .config import ConfigError, DotsectionConfig, build_config
from .constants import EXIT_PARTIAL_FAILURE
from .engine import apply_path, check_path, compile_path, update_file
from .exceptions import ParseFileError
from .filesystem import expand_path
from .metafile import has_metafile, load_metafile
from .models import Metafile, OutcomeStatus, Report
from .parser import parse_file
from .renderer import render_document, render_sections
from .report import (
    format_document_info,
    format_file_report,
    format_metafile_info,
    format_summary,
)

__all__ = ["cli"]


def _warn(message: str) -> None:
    click.echo(message, err=True)


def _configure_logging(verbose: int) -> None:
    if verbose <= 0:
        return
    level = logging.DEBUG if verbose > 1 else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("dotsection").setLevel(level)


def _load_config(path: Path) -> DotsectionConfig:
    search_path = path if path.is_dir() else path.parent
    try:
        return build_config(search_path)
    except ConfigError as error:
        raise click.BadParameter(str(error)) from error


def _parse_or_fail(path: Path, prefix: str | None, config: DotsectionConfig):
    try:
        return parse_file(path, prefix, config)
    except ParseFileError as error:
        raise click.ClickException(str(error)) from error


def _load_metafile_or_fail(path: Path, config: DotsectionConfig) -> Metafile:
    try:
        return load_metafile(path, config)
    except ParseFileError as error:
        raise click.ClickException(str(error)) from error


def _emit(report: Report, print_only: bool) -> None:
    """Print per-file results and the summary, then exit non-zero on errors.

    Unchanged sections are listed too when the group was given ``-v``.
    """
    context = click.get_current_context()
    verbose = (context.obj or {}).get("verbose", 0) > 0
    for file_report in report.files:
        if print_only and file_report.output is not None:
            click.echo(file_report.output, nl=False)
            continue
        for line in format_file_report(file_report, verbose=verbose):
            click.echo(line, err=print_only or file_report.error is not None)

    if not print_only:
        click.echo(format_summary(report))

    if not report.ok:
        context.exit(EXIT_PARTIAL_FAILURE)


@click.group()
@click.version_option()
@click.option("-v", "--verbose", count=True, help="Log progress (-vv for debug output).")
@click.pass_context
def cli(ctx: click.Context, verbose: int):
    """
    Manage marker-delimited sections in dotfiles.

    Examples:
        dotsection compile ~/.bashrc
        dotsection update ~/.config/i3/config
        dotsection apply ~/dotfiles
    """
    ctx.ensure_object(dict)["verbose"] = verbose
    _configure_logging(verbose)


@cli.command("compile")
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--syntax", help="Comment prefix to use instead of detecting it.")
@click.option("--print", "print_only", is_flag=True, help="Print the result, do not write.")
@click.option("--no-wrap", is_flag=True, help="Do not wrap unmanaged files in a main section.")
@click.option(
    "--metafile",
    is_flag=True,
    help="Track each named file as a whole in a metafile instead of markers.",
)
def compile_command(
    paths: tuple[str, ...], syntax: str | None, print_only: bool, no_wrap: bool, metafile: bool
):
    """
    Stamp section hashes so the current content counts as unmodified.

    Each PATH is a file or a directory. A file without sections is wrapped in
    a single main section; directories only compile files that are already
    managed. With --metafile a named file keeps no markers at all: its hash,
    source, target and permissions live in NAME.dotsection.json beside it.
    """
    report = Report()
    for raw_path in paths:
        path = expand_path(raw_path)
        config = _load_config(path)
        result = compile_path(
            path,
            config,
            syntax,
            wrap=not no_wrap,
            dry_run=print_only,
            warn=_warn,
            metafile=metafile,
        )
        report.files.extend(result.files)
    _emit(report, print_only)


@cli.command("update")
@click.argument("target", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-i",
    "--input",
    "inputs",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Take sections from this file instead of their source markers.",
)
@click.option("-s", "--section", "sections", multiple=True, help="Only update this section.")
@click.option("--syntax", help="Comment prefix of TARGET.")
@click.option("--print", "print_only", is_flag=True, help="Print the result, do not write.")
def update_command(
    target: str,
    inputs: tuple[str, ...],
    sections: tuple[str, ...],
    syntax: str | None,
    print_only: bool,
):
    """
    Update unmodified sections of TARGET from their sources.
    """
    path = expand_path(target)
    config = _load_config(path)
    file_report = update_file(
        path,
        config,
        syntax,
        inputs=[expand_path(raw) for raw in inputs],
        sections=sections or None,
        dry_run=print_only,
        warn=_warn,
    )
    _emit(Report(files=[file_report]), print_only)


@cli.command("apply")
@click.argument("path", type=click.Path(exists=True))
@click.option("--target", help="Apply to this file instead of the declared target.")
@click.option("--syntax", help="Comment prefix to use instead of detecting it.")
@click.option("--print", "print_only", is_flag=True, help="Print the result, do not write.")
def apply_command(path: str, target: str | None, syntax: str | None, print_only: bool):
    """
    Push the sections of PATH into the target it declares.

    PATH may be a directory, in which case every file declaring a target is
    applied.
    """
    source_path = expand_path(path)
    config = _load_config(source_path)
    report = apply_path(source_path, config, syntax, target, dry_run=print_only, warn=_warn)
    if not report.files:
        click.echo(click.style("nothing to do", bold=True))
        return
    _emit(report, print_only)


@cli.command("check")
@click.argument("directory", type=click.Path(exists=True))
def check_command(directory: str):
    """
    List modified and unmanaged files below DIRECTORY.
    """
    path = expand_path(directory)
    config = _load_config(path)
    report = check_path(path, config)

    any_modified = False
    for file_report in report.files:
        name = click.style(str(file_report.path), bold=True)
        if file_report.error is not None:
            click.echo(f"{name}: {file_report.error}", err=True)
            continue
        modified = [
            outcome.name
            for outcome in file_report.outcomes
            if outcome.status is OutcomeStatus.SKIPPED_MODIFIED
        ]
        if modified:
            any_modified = True
            click.echo(f"{name} {click.style('modified', fg='red')} ({', '.join(modified)})")
        elif not file_report.outcomes:
            click.echo(f"{name} {click.style('is unmanaged', fg='yellow')}")

    if not any_modified:
        click.echo(click.style("no modified files", fg="green"))
        return
    click.get_current_context().exit(EXIT_PARTIAL_FAILURE)


@cli.command("query")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("-s", "--section", "sections", multiple=True, help="Section to print.")
@click.option("--syntax", help="Comment prefix to use instead of detecting it.")
def query_command(file: str, sections: tuple[str, ...], syntax: str | None):
    """
    Print sections of FILE, or the whole file when no section is named.
    """
    path = expand_path(file)
    config = _load_config(path)
    if has_metafile(path):
        if sections:
            raise click.ClickException(f"{path} is managed by a metafile and has no sections")
        click.echo(_load_metafile_or_fail(path, config).content, nl=False)
        return

    document = _parse_or_fail(path, syntax, config)

    if not sections:
        click.echo(render_document(document), nl=False)
        return

    present = {section.name for section in document.sections}
    missing = [name for name in sections if name not in present]
    click.echo(render_sections(document, list(sections)), nl=False)
    if missing:
        raise click.ClickException(f"No section named {', '.join(missing)} in {path}")


@cli.command("info")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--syntax", help="Comment prefix to use instead of detecting it.")
def info_command(file: str, syntax: str | None):
    """
    Show the comment syntax, sections, and declarations of FILE, or the
    state of its metafile.
    """
    path = expand_path(file)
    config = _load_config(path)
    if has_metafile(path):
        lines = format_metafile_info(_load_metafile_or_fail(path, config))
    else:
        lines = format_document_info(_parse_or_fail(path, syntax, config))
    for line in lines:
        click.echo(line)


if __name__ == "__main__":
    cli()
