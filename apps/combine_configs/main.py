"""CLI application for combining per-application ETF config files."""

from pathlib import Path

import typer
from rich.console import Console

from mixgraph.cli import ToolCommand
from mixgraph.config_merge import merge_by_app, read_fragment
from mixgraph.etf import term_to_binary
from mixgraph.logs import setup_logging

console = Console(stderr=True)

app = typer.Typer(
    name="combine-configs",
    help="Combine ETF config files, deep merging configs of the same application",
    add_completion=False,
)


@app.command(cls=ToolCommand)
def combine(
    output: str = typer.Argument(help="Path to write the combined config"),
    inputs: list[str] = typer.Argument(help="Config files to merge, in order"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Merge {app, config} (or keyword list) files by application."""
    setup_logging(console, verbose)

    try:
        pairs = [pair for path in inputs for pair in read_fragment(path)]
        merged = merge_by_app(pairs)
        # A single application is written as its bare {app, config} tuple
        term = merged[0] if len(merged) == 1 else merged

        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(term_to_binary(term))
        console.print(f"Combined {len(inputs)} files into {output_path} ({len(merged)} apps)")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
