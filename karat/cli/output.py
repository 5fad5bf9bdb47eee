"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich table output (default) and machine-parseable
JSON output (--json flag). All formatting goes through these functions
so the CLI commands stay clean.
"""

import json

from rich.console import Console
from rich.table import Table

from karat.orchestrator.models.mode import ModeConfig
from karat.orchestrator.security.content_filter import ContentFilterResult

console = Console()


def format_verdict(text: str, result: ContentFilterResult, as_json: bool = False) -> str:
    """Format a content-filter verdict as a Rich table or JSON.

    Args:
        text: The classified message.
        result: Verdict from the content filter.
        as_json: If True, return JSON string instead of Rich table.

    Returns:
        Formatted string output.
    """
    if as_json:
        return json.dumps(result.model_dump(mode="json"), indent=2)

    table = Table(title="Content Filter", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Message", text)
    verdict = "[green]safe[/green]" if result.safe else "[red]rejected[/red]"
    table.add_row("Verdict", verdict)
    table.add_row("Category", result.category.value if result.category else "-")
    table.add_row("Reason", result.reason or "-")
    table.add_row("Confidence", f"{result.confidence:.2f}")

    # Render to string
    with console.capture() as capture:
        console.print(table)
    return capture.get()


def format_mode(location: str, config: ModeConfig, as_json: bool = False) -> str:
    """Format a resolved mode and its capabilities."""
    if as_json:
        return json.dumps(
            {"location": location, **config.model_dump(mode="json")}, indent=2
        )

    table = Table(title=f"Mode for {location}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Mode", f"[cyan]{config.mode.value}[/cyan]")
    table.add_row("Display name", config.display_name)
    table.add_row("Allowed actions", ", ".join(config.allowed_actions) or "-")
    table.add_row("Executes actions", "yes" if config.can_execute_actions else "no")
    table.add_row("Requires sign-in", "yes" if config.requires_authentication else "no")
    table.add_row("Persists history", "yes" if config.persists_history else "no")

    with console.capture() as capture:
        console.print(table)
    return capture.get()
