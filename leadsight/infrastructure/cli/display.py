import json
import logging
from typing import Any, Dict, Optional, Sequence

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from leadsight.domain.events.progress_events import (
    BatchErrorEvent,
    BatchEvent,
    CompleteEvent,
    ProgressEvent,
    StatusEvent,
)
from leadsight.domain.models.common import CredentialStatus
from leadsight.domain.models.insights import InsightReport, ProspectInsight

logger = logging.getLogger(__name__)


class ConsoleDisplay:
    """Renders progress events and messages using the rich library."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message."""
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message."""
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def emit_json(self, event: ProgressEvent) -> None:
        """Writes one event as a single NDJSON line."""
        self.emit_payload(event.to_dict())

    def emit_payload(self, payload: Dict[str, Any]) -> None:
        # out() skips markup and wrapping, keeping one object per line
        self.console.out(json.dumps(payload, ensure_ascii=False), highlight=False)

    def render_event(self, event: ProgressEvent) -> None:
        """Renders one progress event for humans."""
        if isinstance(event, StatusEvent):
            if event.truncated:
                self.display_warning(
                    f"Input has {event.total_items_in_input} prospects; only the first "
                    f"{event.items_to_process} will be analyzed ({event.dropped_items} dropped)."
                )
            self.display_info(f"{event.message} across {event.total_batches} batch(es).")
        elif isinstance(event, BatchEvent):
            progress = event.progress
            self.console.print(
                f"[bold green]Batch {progress.batch_index}/{progress.total_batches}[/bold green] "
                f"[dim]·[/dim] {len(event.results)} insight(s) "
                f"[dim]·[/dim] {progress.cumulative_progress_percent}%"
            )
            self.display_insights(event.results)
        elif isinstance(event, BatchErrorEvent):
            progress = event.progress
            prefix = "Run stopped" if event.fatal else f"Batch {progress.batch_index}/{progress.total_batches} failed"
            self.display_error(f"{prefix} ({event.error_kind}): {event.message}")
        elif isinstance(event, CompleteEvent):
            self.display_report(event.report)
            if event.failed_batches:
                self.display_warning(
                    f"Failed batches: {', '.join(str(i) for i in event.failed_batches)}"
                )
            self.display_info(event.message)
        else:
            logger.warning(f"Unknown event type: {type(event).__name__}")

    def display_insights(self, insights: Sequence[ProspectInsight]) -> None:
        if not insights:
            return
        table = Table(box=ROUNDED, border_style="cyan", show_lines=True)
        table.add_column("Prospect", style="bold")
        table.add_column("Profile notes")
        table.add_column("Pitches")
        table.add_column("Conversation starter")
        for insight in insights:
            who = f"{insight.name}\n[dim]{insight.role} @ {insight.company}[/dim]"
            pitches = "\n".join(f"• {p.pitch}" for p in insight.pitch_suggestions)
            table.add_row(who, insight.profile_notes, pitches, insight.conversation_starter)
        self.console.print(table)

    def display_expanded_pitch(self, prospect_name: str, text: str) -> None:
        panel = Panel(
            Text(text, style="white"),
            title=f"[bold green]Pitch for {prospect_name}[/bold green]",
            border_style="green",
            box=ROUNDED,
            padding=(1, 2)
        )
        self.console.print(panel)

    def display_report(self, report: InsightReport) -> None:
        table = Table(title="Ideal Client Framework", box=ROUNDED, border_style="magenta")
        table.add_column("Category", style="bold")
        table.add_column("Description")
        table.add_column("Needs")
        for summary in report.per_category_summaries:
            table.add_row(summary.category, summary.description, "\n".join(summary.needs))
        self.console.print(table)

    def display_credentials(self, statuses: Sequence[CredentialStatus]) -> None:
        table = Table(
            title="Configured credentials", caption="State at startup of this process",
            box=ROUNDED, border_style="cyan",
        )
        table.add_column("Identity", style="bold")
        table.add_column("Failures", justify="right")
        table.add_column("Cooldown", justify="right")
        for status in statuses:
            cooldown = f"{status.cooldown_remaining:.0f}s" if status.cooldown_remaining else "ready"
            table.add_row(status.identity, str(status.failure_count), cooldown)
        self.console.print(table)
