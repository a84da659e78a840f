"""CLI entry point: xref-graph.

Subcommands:
    xref-graph run ./src -o xr.dot --image xr.png   # Full pipeline
    xref-graph inspect ./src/foo.core --json        # Calls extracted from one .core file
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from xref_grapher.core.logging import setup_logging

# Tool locations (overridable via env vars)
_DEFAULT_ERLC = os.environ.get("XREF_ERLC", "erlc")
_DEFAULT_DOT = os.environ.get("XREF_DOT", "dot")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"]),
    default=None,
    help="Log renderer (default: $XREF_LOG_FORMAT or console)",
)
def main(verbose: bool, log_format: str | None) -> None:
    """xref-graph: cross-module call graph for Erlang sources."""
    setup_logging(level="DEBUG" if verbose else None, fmt=log_format)


@main.command("run")
@click.argument("root", type=click.Path(exists=True, file_okay=False))
@click.option("-o", "--output", default="xr.dot", show_default=True, help="DOT output file")
@click.option("--image", default="xr.png", show_default=True, help="Rendered image file")
@click.option("--no-image", is_flag=True, help="Write the DOT file only")
@click.option("--name", "graph_name", default="xr", show_default=True, help="Graph name")
@click.option("-j", "--jobs", default=1, show_default=True, type=click.IntRange(min=1),
              help="Parallel erlc processes")
@click.option("--erlc", default=_DEFAULT_ERLC, help="erlc executable")
@click.option("--dot", default=_DEFAULT_DOT, help="Graphviz dot executable")
def run(
    root: str,
    output: str,
    image: str,
    no_image: bool,
    graph_name: str,
    jobs: int,
    erlc: str,
    dot: str,
) -> None:
    """Compile every module under ROOT and draw its cross-module calls."""
    from xref_grapher.pipeline import XrefPipeline
    from xref_grapher.renderer import GraphRenderer
    from xref_grapher.toolchain import DotRenderer, ErlcCompiler

    pipeline = XrefPipeline(
        compiler=ErlcCompiler(executable=erlc),
        renderer=GraphRenderer(graph_name=graph_name),
        image_renderer=DotRenderer(executable=dot),
        jobs=jobs,
    )

    try:
        result = pipeline.run(root, output=output, image=None if no_image else image)
    except OSError as e:
        click.echo(f"Error: cannot write {output}: {e}", err=True)
        sys.exit(1)

    click.echo("\nAnalysis complete:")
    click.echo(f"  Sources: {result.source_count}")
    click.echo(f"  Units: {len(result.results)}")
    click.echo(f"  Calls: {result.call_count}")
    click.echo(f"  Graph: {result.dot_path}")
    if result.image_path:
        click.echo(f"  Image: {result.image_path}")

    if result.failures:
        click.echo(f"\nSkipped units ({len(result.failures)}):")
        for failure in result.failures:
            click.echo(f"  [{failure.phase}] {failure.path}: {failure.error}")

    progress = pipeline.progress
    click.echo(f"\nPipeline summary (total: {progress.total_duration}s):")
    for line in progress.format_summary():
        click.echo(f"  {line}")


@main.command("inspect")
@click.argument("core_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Emit JSON")
def inspect(core_file: str, as_json: bool) -> None:
    """List the cross-module calls found in one .core file."""
    from xref_grapher.cerl.parser import parse_module
    from xref_grapher.exceptions import CoreParseError
    from xref_grapher.extractor import extract_cross_refs
    from xref_grapher.models.call import call_to_dict, format_call

    text = Path(core_file).read_text(encoding="utf-8", errors="replace")
    try:
        result = extract_cross_refs(parse_module(text, filename=core_file))
    except CoreParseError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if as_json:
        payload = {
            "unit": result.unit_name,
            "calls": [call_to_dict(c) for c in result.calls],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo(f"Unit: {result.unit_name}")
    click.echo(f"Calls: {len(result.calls)}")
    for call in result.calls:
        click.echo(f"  {format_call(call)}")


if __name__ == "__main__":
    main()
