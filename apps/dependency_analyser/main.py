"""CLI application for analysing Mix projects."""

from pathlib import Path

import typer
from rich.console import Console

from mixgraph.cli import ToolCommand
from mixgraph.logs import setup_logging
from mixgraph.manifest import build_manifest
from mixgraph.report import dumps

console = Console(stderr=True)

app = typer.Typer(
    name="dependency-analyser",
    help="Analyse a Mix project and its locked dependencies for hermetic builds",
    add_completion=False,
)


@app.command(cls=ToolCommand)
def analyse(
    path: str | None = typer.Argument(None, help="Mix project directory (alternative to --dir)"),
    directory: str | None = typer.Option(None, "--dir", "-d", help="Mix project directory (default: current directory)"),
    env: str = typer.Option("dev", "--env", "-e", envvar="MIX_ENV", help="Mix environment"),
    max_concurrency: int = typer.Option(8, "--max-concurrency", min=1, help="Packages inspected in parallel"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Write a JSON manifest of the project and every dependency to stdout."""
    setup_logging(console, verbose)

    try:
        project_dir = Path(directory or path or ".")
        if not project_dir.is_dir():
            console.print(f"Error: Cannot change to directory {project_dir}", style="red")
            raise typer.Exit(1)
        if not (project_dir / "mix.exs").is_file():
            console.print(f"Error: No mix.exs found in {project_dir.resolve()}", style="red")
            console.print("Please specify a valid Mix project directory with --dir or a path argument")
            raise typer.Exit(1)

        console.print(f"Analysing {project_dir.resolve()} (env: {env})")
        manifest = build_manifest(project_dir, env, max_concurrency)
        typer.echo(dumps(manifest))
        console.print(f"Analysed {len(manifest.packages)} packages")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
