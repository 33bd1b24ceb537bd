"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "pending": "yellow",
    "processing": "blue",
    "completed": "green",
    "failed": "red",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]", soft_wrap=True)


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]", soft_wrap=True)


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]", soft_wrap=True)


def create_stats_table(stats: dict[str, int]) -> Table:
    """Create a formatted table of job counts by status"""
    table = Table(title="Jobs", box=box.ROUNDED)

    table.add_column("Status", justify="left", style="bold")
    table.add_column("Count", justify="right", style="cyan")

    for status, count in stats.items():
        style = STATUS_STYLES.get(status, "white")
        table.add_row(f"[{style}]{status}[/{style}]", str(count))

    table.add_section()
    table.add_row("total", str(sum(stats.values())))
    return table


def create_job_panel(job: dict[str, Any]) -> Panel:
    """Create formatted panel for a single job"""
    status = job.get("status", "")
    style = STATUS_STYLES.get(status, "white")

    content = (
        f"• Type: [magenta]{job.get('type', '')}[/magenta]\n"
        f"• Status: [{style}]{status}[/{style}]\n"
        f"• Attempts: [cyan]{job.get('attempts', 0)}/{job.get('max_attempts', 0)}[/cyan]\n"
        f"• Payload: {job.get('payload')}\n"
        f"• Created: {job.get('created_at')}\n"
        f"• Updated: {job.get('updated_at')}\n"
        f"• Completed: {job.get('completed_at') or '—'}"
    )
    if job.get("error_message"):
        content += f"\n\n[red]Last error:[/red] {job['error_message']}"

    return Panel(content, title=f"Job {job.get('id')}", border_style=style)
