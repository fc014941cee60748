import json
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from decouple import config as env_config
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from . import __version__
from .nodes import DocNode, LiquidNode, LiquidTagNode
from .pipeline import parse_markdown_liquid
from .summary import summarize_tree

app = typer.Typer(help="liquiddown: find and check Liquid constructs in Markdown")

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = env_config("LIQUIDDOWN_PREVIEW_LENGTH", default=60, cast=int)


def setup_logging(verbosity: int):
    """Set up logging based on verbosity level.

    Levels:
        0 (no -v): WARNING only
        1 (-v): INFO logs
        2+ (-vv): DEBUG logs
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase log output"),
):
    """liquiddown: find and check Liquid constructs in Markdown"""
    setup_logging(verbose)


def _preview(text: str) -> str:
    text = text.replace("\n", "\\n")
    if len(text) > PREVIEW_LENGTH:
        return text[: PREVIEW_LENGTH - 3] + "..."
    return text


def _read_source(path: Path, console: Console) -> str:
    if str(path) == "-":
        return sys.stdin.read()
    if not path.exists():
        console.print(f"[red]Error: {path} not found[/red]")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


@app.command()
def check(
    markdown_file: Path = typer.Argument(..., help="Markdown file to check ('-' for stdin)"),
    as_json: bool = typer.Option(False, "--json", help="Print the full summary as JSON"),
):
    """Report Liquid expressions, tags and structural problems.

    Exits with status 1 when any construct failed to parse or pair.

    Examples:
        liquiddown check template.md
        cat template.md | liquiddown check - --json
    """
    console = Console()
    source = _read_source(markdown_file, console)
    summary = summarize_tree(parse_markdown_liquid(source))

    if as_json:
        # print() rather than console.print() so rich markup does not eat [..]
        print(json.dumps(summary.model_dump(), indent=2, ensure_ascii=False))
    else:
        console.print(
            f"{len(summary.expressions)} expression(s), {len(summary.tags)} tag(s), "
            f"{len(summary.blocks)} block(s)"
        )
        if summary.ok:
            console.print("[green]✓[/green] No problems found")
        else:
            table = Table("Location", "Construct", "Problem")
            for record in summary.diagnostics:
                table.add_row(record.location(), escape(_preview(record.content)), escape(record.message))
            console.print(table)
            console.print(f"[red]✗ {len(summary.diagnostics)} problem(s)[/red]")

    if not summary.ok:
        raise typer.Exit(1)


@app.command()
def blocks(
    markdown_file: Path = typer.Argument(..., help="Markdown file ('-' for stdin)"),
):
    """List block structures (start, continuations, end) in document order."""
    console = Console()
    source = _read_source(markdown_file, console)
    summary = summarize_tree(parse_markdown_liquid(source))

    if not summary.blocks:
        console.print("[dim]No blocks found[/dim]")
        return

    for block in summary.blocks:
        where = f" (line {block.line})" if block.line else ""
        console.print(f"[cyan]{block.type}[/cyan] [dim]{block.id}[/dim]{where}")
        console.print(f"  start: {escape(_preview(block.start))}")
        for cont in block.continuations:
            console.print(f"  continuation: {escape(_preview(cont))}")
        if block.end is not None:
            console.print(f"  end: {escape(_preview(block.end))}")
        else:
            console.print("  end: [red]<missing>[/red]")


def _label(node: DocNode) -> str:
    if isinstance(node, LiquidNode):
        status = {True: "[green]ok[/green]", False: "[red]error[/red]", None: "[dim]pending[/dim]"}[
            node.parse_success
        ]
        label = f"[magenta]{node.type}[/magenta] {escape(_preview(node.raw_content))} {status}"
        if isinstance(node, LiquidTagNode) and node.block_id:
            label += f" [dim]{node.block_id}[/dim]"
        if node.parse_error:
            label += f" [red]{escape(node.parse_error)}[/red]"
        return label
    if node.value is not None:
        return f"[blue]{node.type}[/blue] {escape(_preview(node.value))}"
    return f"[blue]{node.type}[/blue]"


def _add_branch(branch: Tree, node: DocNode) -> None:
    for child in node.children:
        _add_branch(branch.add(_label(child)), child)


@app.command()
def tree(
    markdown_file: Path = typer.Argument(..., help="Markdown file ('-' for stdin)"),
):
    """Show the annotated document tree."""
    console = Console()
    source = _read_source(markdown_file, console)
    root = parse_markdown_liquid(source)
    view = Tree(_label(root))
    _add_branch(view, root)
    console.print(view)


if __name__ == "__main__":
    app()
