"""CLI application for building release sys.config files."""

import shutil
from pathlib import Path

import typer
from rich.console import Console

from mixgraph.cli import ToolCommand
from mixgraph.logs import setup_logging
from mixgraph.sys_config import RuntimeOptions, build_sys_config, write_sys_config

console = Console(stderr=True)

app = typer.Typer(
    name="sys-config-builder",
    help="Build an Erlang sys.config with optional Config.Provider support",
    add_completion=False,
)


def copy_runtime_files(runtime_files: list[str], output: Path) -> None:
    """Copy runtime config files next to the sys.config output."""
    for runtime_file in runtime_files:
        source = Path(runtime_file)
        if not source.is_file():
            raise FileNotFoundError(f"Runtime file {runtime_file} not found")
        destination = output.parent / source.name
        if source.resolve() != destination.resolve():
            shutil.copy2(source, destination)


@app.command(cls=ToolCommand)
def build(
    output: str | None = typer.Option(None, "--output", "-o", help="Output sys.config file path"),
    compile_config: list[str] | None = typer.Option(None, "--compile-config", help="ETF config file (can be repeated)"),
    runtime_config: bool = typer.Option(False, "--runtime-config", help="Enable runtime configuration"),
    runtime_file: list[str] | None = typer.Option(None, "--runtime-file", help="Runtime config file to copy (can be repeated)"),
    runtime_path: str | None = typer.Option(None, "--runtime-path", help="Runtime path template"),
    reboot_after_config: bool = typer.Option(False, "--reboot-after-config", help="Restart VM after loading config"),
    prune_after_boot: bool = typer.Option(True, "--prune-after-boot/--no-prune-after-boot", help="Delete temporary config files after boot"),
    boot_injection: str | None = typer.Option(None, "--boot-injection", help="Output file for boot script injection"),
    extra_app: list[str] | None = typer.Option(None, "--extra-app", help="Application for an extra static config"),
    extra_config: list[str] | None = typer.Option(None, "--extra-config", help="Keyword list config for the matching --extra-app"),
    env: str = typer.Option("prod", "--env", "-e", help="Environment for the runtime config reader"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Merge compile-time configs and write sys.config."""
    setup_logging(console, verbose)

    try:
        if not output:
            console.print("Error: Missing required argument: --output", style="red")
            raise typer.Exit(1)

        extra_apps = extra_app or []
        extra_configs = extra_config or []
        if len(extra_apps) != len(extra_configs):
            console.print("Error: Each --extra-app needs a matching --extra-config", style="red")
            raise typer.Exit(1)

        runtime_opts = None
        if runtime_config:
            runtime_opts = RuntimeOptions(
                runtime_path=runtime_path,
                env=env,
                reboot_after_config=reboot_after_config,
                prune_after_boot=prune_after_boot,
            )

        result = build_sys_config(compile_config or [], list(zip(extra_apps, extra_configs)), runtime_opts)
        output_path = Path(output)
        write_sys_config(result, output_path, boot_injection)

        if runtime_file:
            if runtime_config:
                copy_runtime_files(runtime_file, output_path)
            else:
                console.print("Runtime config is disabled, not copying runtime files", style="yellow")

        console.print(f"Wrote {output_path}")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
