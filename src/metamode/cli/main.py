"""Click CLI group: parse, compile, validate, context, precommit, optimize, status."""

from __future__ import annotations

import json
from pathlib import Path

import click

from metamode.annotations.extractor import parse_annotations_file
from metamode.annotations.scanner import scan_directory, scan_roots
from metamode.annotations.types import FileParseResult
from metamode.compiler.builder import compile_database
from metamode.compiler.store import (
    DATABASE_FILE,
    PROD_DATABASE_FILE,
    verify_digest,
    write_database,
)
from metamode.compiler.types import Database
from metamode.config import KNOWN_RULES, Settings, get_settings, split_csv, validate_settings
from metamode.context.builder import ContextOptions, build_context
from metamode.context.suggest import run_pre_commit_check
from metamode.context.templates import AgentType, ContextFormat
from metamode.errors import ConfigError, ScanError
from metamode.logging import bind_context, configure_logging
from metamode.optimizer.production import (
    analyze_bundle_size,
    format_bundle_report,
    optimize_for_production,
    serialize_compact,
)
from metamode.query.api import MetamodeApi
from metamode.validation.engine import (
    ValidatorOptions,
    format_validation_report,
    validate_annotations,
)

ROOT_ARGUMENT = click.argument(
    "root", type=click.Path(file_okay=False, path_type=Path), default=".", required=False
)


def _settings() -> Settings:
    return click.get_current_context().obj


def _scan(root: Path, settings: Settings) -> list[FileParseResult]:
    try:
        return scan_roots(
            root,
            split_csv(settings.source_dirs),
            extensions=tuple(split_csv(settings.extensions)),
            exclude=tuple(split_csv(settings.exclude)),
            max_depth=settings.max_depth or None,
        )
    except ScanError as exc:
        raise click.ClickException(str(exc)) from exc


def _compile(root: Path, settings: Settings) -> tuple[list[FileParseResult], Database]:
    results = _scan(root, settings)
    database = compile_database(results, project_root=root, version=settings.db_version)
    return results, database


def _stored_state(out_dir: Path) -> str:
    if not (out_dir / DATABASE_FILE).exists():
        return "missing"
    return "ok" if verify_digest(out_dir) else "digest mismatch"


def _echo_warnings(results: list[FileParseResult]) -> None:
    for result in results:
        for warning in result.warnings:
            click.echo(f"warning: {result.file_path}: {warning}", err=True)


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """MetaMode annotation compiler CLI."""
    settings = get_settings()
    try:
        validate_settings(settings)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    configure_logging(settings.log_level)
    bind_context(command=ctx.invoked_subcommand)
    ctx.obj = settings


@cli.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path), default=".", required=False)
@click.option("--json", "json_output", is_flag=True, help="Print extracted records as JSON.")
def parse(path: Path, json_output: bool) -> None:
    """Extract annotations from one file or every source file under a directory."""
    settings = _settings()
    if path.is_dir():
        results = scan_directory(
            path,
            extensions=tuple(split_csv(settings.extensions)),
            exclude=tuple(split_csv(settings.exclude)),
            max_depth=settings.max_depth or None,
        )
    else:
        results = [parse_annotations_file(path)]

    if json_output:
        payload = [
            {
                "filePath": result.file_path,
                "annotations": [
                    {
                        "annotation": parsed.annotation.to_dict(),
                        "source": parsed.source.value,
                        "line": parsed.line,
                        "entityName": parsed.entity_name,
                    }
                    for parsed in result.annotations
                ],
                "warnings": list(result.warnings),
            }
            for result in results
        ]
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    _echo_warnings(results)
    for result in results:
        click.echo(f"{result.file_path}: {len(result.annotations)} annotation(s)")
        for parsed in result.annotations:
            record = parsed.annotation
            label = record.id or parsed.entity_name or "-"
            click.echo(f"  line {parsed.line}: {label} [{parsed.source.value}] {record.desc or ''}")


@cli.command("compile")
@ROOT_ARGUMENT
@click.option("--stats", "show_stats", is_flag=True, help="Print database statistics.")
@click.option("--graph", "graph_format", flag_value="json", help="Print the graph as JSON.")
@click.option("--dot", "graph_format", flag_value="dot", help="Print the graph as Graphviz DOT.")
@click.option(
    "--output",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (default: MM_OUTPUT_DIR under ROOT).",
)
def compile_command(
    root: Path, show_stats: bool, graph_format: str | None, output: Path | None
) -> None:
    """Compile annotations under ROOT into the database artifact."""
    settings = _settings()
    results, database = _compile(root, settings)
    _echo_warnings(results)

    api = MetamodeApi(database)
    if graph_format:
        click.echo(api.export_graph(graph_format))
        return

    out_path, hash_path = write_database(database, output or root / settings.output_dir)
    click.echo(f"database: {out_path}")
    click.echo(f"sha256: {hash_path}")
    click.echo(f"annotations: {database.stats.total_annotations} from {len(results)} file(s)")
    click.echo(f"edges: {len(database.graph.edges)}")
    if show_stats:
        click.echo(json.dumps(database.stats.to_dict(), indent=2))
    for cycle in api.find_all_cycles():
        click.echo(f"cycle: {' → '.join(cycle)}", err=True)


@cli.command()
@ROOT_ARGUMENT
@click.option(
    "--warn-only",
    "warn_only",
    multiple=True,
    type=click.Choice(KNOWN_RULES),
    help="Downgrade this rule's errors to warnings (repeatable).",
)
@click.option("--strict", is_flag=True, help="Exit non-zero when any error is found.")
@click.option("--json", "json_output", is_flag=True, help="Print the report as JSON.")
def validate(root: Path, warn_only: tuple[str, ...], strict: bool, json_output: bool) -> None:
    """Run semantic validation rules over annotations under ROOT."""
    settings = _settings()
    results = _scan(root, settings)
    options = ValidatorOptions(
        warn_only=(*split_csv(settings.warn_only_rules), *warn_only),
        required_fields=tuple(split_csv(settings.required_fields)),
        path_segment_match=bool(settings.path_segment_match),
    )
    result = validate_annotations(results, options)
    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        click.echo(format_validation_report(result))
    if strict and not result.passed:
        raise click.ClickException(f"validation failed with {len(result.errors)} error(s)")


@cli.command()
@ROOT_ARGUMENT
@click.option(
    "--agent",
    type=click.Choice([agent.value for agent in AgentType]),
    default=AgentType.GENERIC.value,
    show_default=True,
)
@click.option("--scope", multiple=True, help="Only entries with this tag (repeatable).")
@click.option("--ids", multiple=True, help="Only these annotation ids (repeatable).")
@click.option("--path", "file_paths", multiple=True, help="File path substring (repeatable).")
@click.option(
    "--format",
    "fmt",
    type=click.Choice([fmt.value for fmt in ContextFormat]),
    default=ContextFormat.MARKDOWN.value,
    show_default=True,
)
@click.option("--token-budget", type=int, default=None, help="Default: MM_TOKEN_BUDGET.")
@click.option("--no-deps", is_flag=True, help="Do not pull in runtime dependencies.")
@click.option("--json", "json_output", is_flag=True, help="Print the full context document.")
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), default=None)
def context(
    root: Path,
    agent: str,
    scope: tuple[str, ...],
    ids: tuple[str, ...],
    file_paths: tuple[str, ...],
    fmt: str,
    token_budget: int | None,
    no_deps: bool,
    json_output: bool,
    output: Path | None,
) -> None:
    """Build an agent prompt from annotations under ROOT."""
    settings = _settings()
    if token_budget is not None and token_budget <= 0:
        raise click.ClickException("--token-budget must be > 0")
    _, database = _compile(root, settings)
    built = build_context(
        database,
        ContextOptions(
            agent_type=agent,
            scope=scope,
            ids=ids,
            file_paths=file_paths,
            include_deps=not no_deps,
            format=fmt,
            max_entries=settings.max_entries,
            token_budget=token_budget or settings.token_budget,
        ),
    )
    text = built.prompt
    if json_output:
        text = json.dumps(built.to_dict(), indent=2, ensure_ascii=False)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text + "\n", encoding="utf-8")
        click.echo(f"context: {output} ({len(built.entries)} entries, ~{built.token_count} tokens)")
    else:
        click.echo(text)
    if built.was_trimmed:
        click.echo(
            f"trimmed to {len(built.entries)} of {built.total_selected} entries "
            f"for a {token_budget or settings.token_budget} token budget",
            err=True,
        )


@cli.command()
@click.argument("files", nargs=-1, required=True)
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Project root used to compile the database.",
)
def precommit(files: tuple[str, ...], root: Path) -> None:
    """Suggest annotations for staged source files that have none. Never fails."""
    settings = _settings()
    _, database = _compile(root, settings)
    missing = run_pre_commit_check(files, database, project_root=root)
    if not missing:
        click.echo("all staged source files are annotated")
        return
    click.echo(f"{len(missing)} file(s) without annotations:")
    for item in missing:
        click.echo("")
        click.echo(f"{item.file_path}:")
        click.echo(item.suggestion)


@cli.command()
@ROOT_ARGUMENT
@click.option("--stats", "show_stats", is_flag=True, help="Print production statistics.")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file (default: MM_OUTPUT_DIR/metamode-db.prod.json under ROOT).",
)
def optimize(root: Path, show_stats: bool, output: Path | None) -> None:
    """Write the production database: public entries only, compact JSON."""
    settings = _settings()
    _, database = _compile(root, settings)
    prod = optimize_for_production(database)
    target = output or root / settings.output_dir / PROD_DATABASE_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(serialize_compact(prod.to_dict()), encoding="utf-8")
    click.echo(f"production database: {target}")
    click.echo(format_bundle_report(analyze_bundle_size(database, prod)))
    if show_stats:
        click.echo(json.dumps(prod.stats.to_dict(), indent=2))


@cli.command()
@ROOT_ARGUMENT
def status(root: Path) -> None:
    """Summarize annotations, graph health and integrity under ROOT."""
    settings = _settings()
    results, database = _compile(root, settings)
    api = MetamodeApi(database)
    report = api.validate()
    stats = database.stats
    click.echo(f"files: {len(results)}")
    click.echo(f"annotations: {stats.total_annotations}")
    click.echo(f"edges: {len(database.graph.edges)}")
    click.echo(f"by status: {json.dumps(stats.by_status, sort_keys=True)}")
    click.echo(f"orphaned dependencies: {len(stats.orphaned_dependencies)}")
    click.echo(f"cycles: {len(api.find_all_cycles())}")
    click.echo(f"integrity: {'ok' if report.valid else 'errors'}")
    click.echo(f"stored database: {_stored_state(root / settings.output_dir)}")
    for message in report.errors:
        click.echo(f"  error: {message}")
    for message in report.warnings:
        click.echo(f"  warning: {message}")
