"""CLI for the API documentation interchange tools."""

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import get_docs_dir, get_settings, load_sources, resolve_source_path
from .exceptions import ApiDocError
from .exporters import MERGE_STRATEGIES, OUTPUT_FORMATS, render_document
from .parsers import ApidogParser
from .updater import update_docs_sync

app = typer.Typer(
    name="apidoc",
    help="Convert Apidog Markdown exports to OpenAPI or flat Markdown",
)

SUFFIXES = {"json": ".json", "yaml": ".yaml", "markdown": ".md"}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _check_choice(value: str, choices, option: str) -> None:
    if value not in choices:
        raise typer.BadParameter(f"expected one of: {', '.join(choices)}", param_hint=option)


@app.command()
def convert(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Apidog Markdown export"),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file (default: stdout)",
    ),
    fmt: str = typer.Option("json", "--format", "-f", help="json, yaml or markdown"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Document title"),
    strict: Optional[bool] = typer.Option(
        None,
        "--strict/--lenient",
        help="Fail on schema rows that skip a nesting level",
    ),
    merge: Optional[str] = typer.Option(
        None,
        "--merge",
        "-m",
        help="Schema merge strategy: last-write-wins, keep-first or reject-conflicts",
    ),
) -> None:
    """Convert a single Markdown export."""
    settings = get_settings()
    _check_choice(fmt, OUTPUT_FORMATS, "--format")
    merge = merge or settings.merge_strategy
    _check_choice(merge, MERGE_STRATEGIES, "--merge")
    strict_depth = settings.strict_depth if strict is None else strict

    try:
        result = ApidogParser.parse_file(input_path, strict_depth=strict_depth)
        document = render_document(result.endpoints, title or settings.default_title, fmt, merge)
    except ApiDocError as e:
        typer.secho(f"ERROR {input_path}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    for diagnostic in result.diagnostics:
        typer.secho(f"WARNING {diagnostic}", fg=typer.colors.YELLOW, err=True)

    if output is None:
        typer.echo(document)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(document, encoding="utf-8")
    typer.echo(f"Wrote {len(result.endpoints)} endpoint(s) to {output}")


@app.command()
def build(
    sources_file: Optional[Path] = typer.Option(None, "--sources", "-s", help="sources.yaml to read"),
) -> None:
    """Convert every configured source."""
    settings = get_settings()
    error_count = 0

    for source in load_sources(sources_file):
        input_path = resolve_source_path(source.input, sources_file)
        if not input_path.exists():
            typer.secho(f"  SKIPPED {source.name}: {input_path} not found", fg=typer.colors.YELLOW)
            continue

        fmt = "markdown" if source.format == "markdown" else "json"
        if source.output:
            output_path = resolve_source_path(source.output, sources_file)
        else:
            output_path = get_docs_dir() / f"{input_path.stem}{SUFFIXES[fmt]}"

        try:
            result = ApidogParser.parse_file(input_path, strict_depth=settings.strict_depth)
            document = render_document(
                result.endpoints,
                source.title or source.name,
                fmt,
                settings.merge_strategy,
            )
        except ApiDocError as e:
            typer.secho(f"  ERROR {source.name}: {e}", fg=typer.colors.RED)
            error_count += 1
            continue

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(document, encoding="utf-8")
        typer.secho(f"  BUILT {source.name} -> {output_path}", fg=typer.colors.GREEN)

    if error_count > 0:
        typer.secho(f"{error_count} error(s)", fg=typer.colors.RED)
        raise typer.Exit(1)


@app.command()
def update(
    name: Optional[str] = typer.Option(
        None,
        "--name",
        "-n",
        help="Only refresh sources whose name contains this",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report changes without writing files"),
    sources_file: Optional[Path] = typer.Option(None, "--sources", "-s", help="sources.yaml to read"),
) -> None:
    """Download Markdown exports from their configured urls."""
    results = update_docs_sync(sources_file, name, dry_run)

    colors = {"updated": typer.colors.GREEN, "unchanged": None}
    for result in results:
        label = result.status.split(":", 1)[0].upper()
        detail = f": {result.error}" if result.error else ""
        typer.secho(
            f"  {label} {result.source.name}{detail}",
            fg=colors.get(result.status, typer.colors.RED),
        )

    changed = sum(1 for r in results if r.updated)
    failed = sum(1 for r in results if not r.success)
    verb = "Would refresh" if dry_run else "Refreshed"
    typer.echo(f"{verb} {changed} of {len(results)} source(s)")

    if failed:
        typer.secho(f"{failed} error(s)", fg=typer.colors.RED)
        raise typer.Exit(1)


@app.command()
def list_sources(
    sources_file: Optional[Path] = typer.Option(None, "--sources", "-s", help="sources.yaml to read"),
) -> None:
    """Show the configured documentation sources."""
    for source in load_sources(sources_file):
        typer.secho(source.name, bold=True)
        fields = {
            "Input": source.input,
            "Format": source.format,
            "Title": source.title,
            "URL": source.url,
            "Output": source.output,
            "Description": source.description,
        }
        for label, value in fields.items():
            if value:
                typer.echo(f"  {label}: {value}")


@app.command()
def serve() -> None:
    """Start the MCP server over stdio."""
    typer.echo("Starting MCP server...", err=True)

    # Keeps the MCP stack out of plain conversions
    from .server import run_server

    run_server()


if __name__ == "__main__":
    app()
