"""Command class shared by the command line tools."""

import typer
from rich.console import Console
from typer.core import TyperCommand

# typer exports BadParameter from the click it is built on
UsageError = typer.BadParameter.__base__


class ToolCommand(TyperCommand):
    """Report usage errors as a red ``Error:`` line and exit with status 1."""

    def parse_args(self, ctx, args):
        try:
            return super().parse_args(ctx, args)
        except UsageError as e:
            Console(stderr=True).print(f"Error: {e.format_message()}", style="red")
            raise typer.Exit(1)
