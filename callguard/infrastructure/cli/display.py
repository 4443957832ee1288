import logging
from datetime import datetime
from typing import Any, Dict, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from callguard.domain.interfaces.user_interface import UserInterface
from callguard.domain.models.common import ProcessedOutput, PromptText
from callguard.domain.models.resilience import CircuitState, CircuitStatus

logger = logging.getLogger(__name__)

STATE_STYLES = {
    CircuitState.CLOSED: ("✅", "green"),
    CircuitState.HALF_OPEN: ("⚠️", "yellow"),
    CircuitState.OPEN: ("🚫", "red"),
}

STATE_LEGEND = (
    "✅ CLOSED - Normal operation\n"
    "⚠️ HALF_OPEN - Testing recovery\n"
    "🚫 OPEN - Blocking requests\n\n"
    "/connectivity reset <endpoint> - Reset specific circuit\n"
    "/connectivity reset all - Reset all circuits"
)


def format_failure_age(last_failure_time: Optional[float], now_ms: float) -> str:
    """Renders the time since the last failure as whole minutes ('3m ago')."""
    if not last_failure_time:
        return "-"
    minutes_ago = int(max(0.0, now_ms - last_failure_time) // 60000)
    return f"{minutes_ago}m ago"


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def display_output(self, output: ProcessedOutput, **kwargs: Any) -> None:
        """Displays output text to the user, rendering Markdown in a panel.

        Args:
            output: The processed output string to display.
            **kwargs: Additional arguments including:
                - title: The title/sender of the message (default: "AI")
        """
        title = kwargs.get("title", "AI")
        timestamp = datetime.now().strftime("%H:%M:%S")
        header = f"[bold white]{title}[/bold white] [dim]·[/dim] [dim white]{timestamp}[/dim white]"
        panel = Panel(
            Markdown(str(output)),
            title=header,
            title_align="left",
            border_style="blue",
            box=ROUNDED,
            padding=(0, 1),
        )
        self.console.print(panel)

    def get_prompt(self, prompt_message: str = "> ") -> PromptText:
        """Gets input prompt from the user.

        Args:
            prompt_message: The message to display before the input cursor.

        Returns:
            The text input by the user.
        """
        return PromptText(self.console.input(f"[bold green]{prompt_message}[/bold green]"))

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
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=ROUNDED,
            padding=(0, 1)
        )
        self.console.print(panel)

    def build_circuit_table(self, statuses: Dict[str, CircuitStatus], now_ms: float) -> Table:
        """Builds the connectivity table, one row per tracked endpoint."""
        table = Table(title="Circuit Breaker Status", box=ROUNDED, title_style="bold")
        table.add_column("Endpoint", style="cyan")
        table.add_column("State")
        table.add_column("Failures", justify="right")
        table.add_column("Last Failure", justify="right")

        for endpoint, status in sorted(statuses.items()):
            marker, style = STATE_STYLES[status.state]
            table.add_row(
                endpoint,
                f"[{style}]{marker} {status.state.value}[/{style}]",
                str(status.failure_count),
                format_failure_age(status.last_failure_time, now_ms),
            )
        return table

    def display_circuit_statuses(self, statuses: Dict[str, CircuitStatus], now_ms: float) -> None:
        if not statuses:
            self.display_info("No connection issues detected. All endpoints are healthy.")
            return
        self.console.print(self.build_circuit_table(statuses, now_ms))
        self.console.print(Panel(Text(STATE_LEGEND), title="Circuit Breaker States", box=SIMPLE))
