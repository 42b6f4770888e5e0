"""CLI application for evaluating config/*.exs into ETF fragments."""

from datetime import datetime, timezone
from pathlib import Path

import typer
from rich.console import Console

from mixgraph.cli import ToolCommand
from mixgraph.config_reader import read_config
from mixgraph.etf import term_to_binary
from mixgraph.logs import setup_logging
from mixgraph.term_text import format_term

console = Console(stderr=True)

app = typer.Typer(
    name="eval-config",
    help="Evaluate Elixir configuration for all applications to ETF",
    add_completion=False,
)


def debug_text(config: list, env: str, base_dir: Path, output: Path) -> str:
    """Human-readable summary written next to the ETF output."""
    lines = [
        f"# Extracted configuration for ALL applications in {env} environment",
        f"# Generated at: {datetime.now(timezone.utc).isoformat()}",
        f"# Base directory: {base_dir}",
        f"# Output file: {output}",
        f"# Number of applications: {len(config)}",
        "",
    ]
    for app_name, app_config in config:
        lines.append(f"## Application: {app_name}")
        lines.append(format_term(app_config))
        lines.append("")
    return "\n".join(lines)


def write_config(config: list, output: Path, env: str, base_dir: Path, debug: bool) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    data = term_to_binary(config)
    output.write_bytes(data)
    console.print(f"Wrote {output} ({len(data)} bytes, {len(config)} apps)")
    if debug:
        debug_path = output.with_name(output.name + ".debug")
        debug_path.write_text(debug_text(config, env, base_dir, output), encoding="utf-8")


@app.command(cls=ToolCommand)
def evaluate(
    env: str | None = typer.Option(None, "--env", "-e", help="Environment to extract (e.g. prod, dev, test)"),
    envs: str | None = typer.Option(None, "--envs", help="Comma separated environments (with --output-dir)"),
    output: str | None = typer.Option(None, "--output", "-o", help="Output ETF file path"),
    output_dir: str | None = typer.Option(None, "--output-dir", help="Output directory for --envs"),
    base_dir: str = typer.Option(".", "--base-dir", "-b", help="Directory containing config/"),
    no_imports: bool = typer.Option(False, "--no-imports", help="Ignore import_config statements"),
    no_debug: bool = typer.Option(False, "--no-debug", help="Don't write the .debug file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Read config/config.exs and config/<env>.exs and write the merged config."""
    setup_logging(console, verbose)

    try:
        base = Path(base_dir)
        if envs and output_dir:
            targets = [
                (name.strip(), Path(output_dir) / f"config_{name.strip()}.eetf")
                for name in envs.split(",")
                if name.strip()
            ]
        elif env and output:
            targets = [(env, Path(output))]
        else:
            console.print("Error: Required arguments missing: --env and --output", style="red")
            raise typer.Exit(1)

        for target_env, target_output in targets:
            config = read_config(base, target_env, imports=not no_imports)
            write_config(config, target_output, target_env, base, debug=not no_debug)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
