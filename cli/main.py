import sys
from pathlib import Path

import click

import diagnostics
import globals_to_tls
import tls_worker
import tls_worker_pool
from caching_file_contents import CachingFileContents
from compilation_database import CompileCommands
from constants import LOG_LEVEL_ENV_VAR, WORKER_SUBCOMMAND
from tls_edits import Edit, WorkItem, encode_worker_response
from tls_errors import ConflictingEdits, FrontEndUnavailable, WorkerProcessFailure

log_level_option = click.option(
    "--log-level",
    default="INFO",
    envvar=LOG_LEVEL_ENV_VAR,
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Minimum level of diagnostics written to stderr.",
)


def unique_posix_paths(paths) -> list[str]:
    """Resolve and deduplicate, keeping first-seen order."""
    seen: dict[str, None] = {}
    for p in paths:
        seen.setdefault(Path(p).resolve().as_posix(), None)
    return list(seen)


def echo_planned_rewrites(edits: dict[str, list[Edit]]) -> None:
    contents = CachingFileContents()
    for path in sorted(edits):
        for e in edits[path]:
            line, col = contents.line_col_at(path, e.offset)
            click.echo(f"{diagnostics.rel_path(path)}:{line}:{col}: insert {e.text!r}")


@click.group()
def cli():
    pass


@cli.command()
@click.option(
    "-I",
    "--include",
    "include_dirs",
    multiple=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Include search directory (repeatable).",
)
@click.option(
    "-c",
    "--source",
    "sources",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="C source file to analyze (repeatable).",
)
@click.option(
    "-r",
    "--source-root",
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Only declarations physically located under this directory are rewritten.",
)
@click.option(
    "--compdb",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Also take C sources and -I directories from this compile_commands.json.",
)
@click.option(
    "-j",
    "--jobs",
    type=click.IntRange(min=1),
    default=None,
    help="Number of worker processes (default: number of CPUs).",
)
@click.option("--dry-run", is_flag=True, help="Print the planned insertions; write nothing.")
@log_level_option
def rewrite_globals(include_dirs, sources, source_root, compdb, jobs, dry_run, log_level):
    """Insert `__thread` into every mutable global and static variable declaration."""
    log = diagnostics.make_logger(log_level)

    all_sources = list(sources)
    all_includes = list(include_dirs)
    if compdb is not None:
        ccs = CompileCommands.from_json_file(compdb)
        all_sources.extend(ccs.get_c_source_files())
        all_includes.extend(ccs.get_include_dirs())

    if not all_sources:
        click.echo("Error: No source files given; pass `-c` or `--compdb`.", err=True)
        sys.exit(1)

    work = WorkItem(
        include_paths=unique_posix_paths(all_includes),
        source_files=unique_posix_paths(all_sources),
        source_root=source_root.resolve().as_posix(),
    )
    parallelism = jobs or tls_worker_pool.default_parallelism()

    try:
        outcome = globals_to_tls.rewrite_globals(log, work, parallelism, dry_run=dry_run)
    except WorkerProcessFailure as e:
        click.echo(f"Error: {e}; no files were modified.", err=True)
        sys.exit(1)
    except ConflictingEdits as e:
        click.echo(f"Error: {e}; no files were modified.", err=True)
        for conflict in e.conflicts:
            click.echo(f"\t{diagnostics.rel_path(conflict.location())}", err=True)
        sys.exit(1)

    if dry_run:
        echo_planned_rewrites(outcome.edits)
    elif not outcome.ok:
        click.echo(f"Error: failed to rewrite {len(outcome.failures)} file(s):", err=True)
        for path, err in outcome.failures.items():
            click.echo(f"\t{diagnostics.rel_path(path)}: {err}", err=True)
        sys.exit(1)


@cli.command(name=WORKER_SUBCOMMAND, hidden=True)
@log_level_option
def rewrite_globals_worker(log_level):
    """Analyze one shard: WorkItem JSON on stdin, edit records JSON on stdout."""
    log = diagnostics.make_logger(log_level)
    item = WorkItem.from_json(sys.stdin.read())  # type: ignore[attr-defined]
    try:
        records = tls_worker.run_work_item(log, item)
    except FrontEndUnavailable as e:
        log.error("%s", e)
        sys.exit(1)
    click.echo(encode_worker_response(records))


if __name__ == "__main__":
    cli()
