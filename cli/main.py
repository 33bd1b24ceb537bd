"""VibeReader CLI - Main Entry Point"""

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

# Import command modules
from .commands import jobs, scheduler, worker

console = Console()

# Create main Typer app
app = typer.Typer(
    name="vibereader",
    help="📰 VibeReader - feed reader background job tools",
    rich_markup_mode="rich",
)

# Add command subapps
app.add_typer(worker.app, name="worker")
app.add_typer(scheduler.app, name="scheduler")
app.add_typer(jobs.app, name="jobs")


@app.command()
def version():
    """📎 Show version information"""
    from . import __version__

    console.print(
        Panel(
            f"📰 [bold cyan]VibeReader[/bold cyan]\n\n"
            f"• Version: [green]{__version__}[/green]\n"
            f"• Type: [yellow]Command Line Interface[/yellow]",
            title="Version Info",
            border_style="cyan",
        )
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None, "--version", "-v", help="Show version and exit"
    ),
):
    """
    📰 VibeReader CLI

    Run the job worker and the feed refresh scheduler, inspect the job
    queue and schedule maintenance.
    """
    if version:
        from . import __version__

        console.print(f"VibeReader v{__version__}")
        raise typer.Exit()


if __name__ == "__main__":
    app()
