"""
Dashboard TUI

Architectural Intent:
- Textual-based dashboard over the rollout history repository
- Shows the latest rollout's resources with their status, and recent autoscale decisions
- Configurable refresh interval (+/- keys)
"""

from textual.app import App, ComposeResult
from textual.widgets import Header, Footer, DataTable, Log
from textual.containers import Vertical
from typing import Optional
import logging
from datetime import datetime

from stagegate.infrastructure.repositories.sqlite_repository import SQLiteRepository

logger = logging.getLogger(__name__)

SEVERITY_STYLES = {
    "info": "green",
    "warning": "yellow",
    "error": "red",
}

STATUS_STYLES = {
    "ready": "green",
    "failed": "red",
    "waiting_ready": "yellow",
    "applying": "yellow",
}


class Dashboard(App):
    """A Textual app showing stagegate rollouts and autoscaling."""

    CSS = """
    Screen {
        layout: vertical;
    }
    #resources {
        height: 2fr;
        border: solid green;
    }
    #scaling {
        height: 1fr;
        border: solid blue;
    }
    Log {
        height: 1fr;
        border: solid yellow;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("+", "increase_interval", "Slower"),
        ("-", "decrease_interval", "Faster"),
    ]

    def __init__(
        self,
        repository: SQLiteRepository,
        namespace: Optional[str] = None,
        refresh_interval: float = 5.0,
    ):
        super().__init__()
        self.repository = repository
        self.namespace = namespace
        self._refresh_interval = refresh_interval
        self._last_rollout: Optional[str] = None
        self._timer = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Vertical(
            DataTable(id="resources"),
            DataTable(id="scaling"),
            Log(id="activity_log"),
        )
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#resources", DataTable).add_columns(
            "Stage", "Resource", "Status", "Detail"
        )
        self.query_one("#scaling", DataTable).add_columns(
            "Time", "Workload", "Action", "Replicas", "Reason"
        )
        self.log_message("stagegate dashboard initialized.")
        self.refresh_view()
        self._timer = self.set_interval(self._refresh_interval, self.refresh_view)

    def log_message(self, message: str, severity: str = "info") -> None:
        timestamp = datetime.now().strftime("%H:%M:%S")
        line = f"[{timestamp}] [{severity.upper()}] {message}"
        style = SEVERITY_STYLES.get(severity, "")
        log_widget = self.query_one(Log)
        if style:
            log_widget.write_line(f"[{style}]{line}[/{style}]")
        else:
            log_widget.write_line(line)

    def action_refresh(self) -> None:
        self.refresh_view()

    def action_increase_interval(self) -> None:
        self._refresh_interval = min(60.0, self._refresh_interval + 1.0)
        self._restart_timer()
        self.log_message(f"Refresh interval: {self._refresh_interval}s")

    def action_decrease_interval(self) -> None:
        self._refresh_interval = max(1.0, self._refresh_interval - 1.0)
        self._restart_timer()
        self.log_message(f"Refresh interval: {self._refresh_interval}s")

    def _restart_timer(self) -> None:
        if self._timer:
            self._timer.stop()
        self._timer = self.set_interval(self._refresh_interval, self.refresh_view)

    def refresh_view(self) -> None:
        self._show_rollout()
        self._show_scaling()

    def _show_rollout(self) -> None:
        table = self.query_one("#resources", DataTable)
        table.clear()
        state = self.repository.latest_rollout(self.namespace)
        if state is None:
            self.sub_title = "no rollouts recorded"
            return

        outcome = "settled" if state.succeeded else (
            "cancelled" if state.cancelled else f"aborted: {state.aborted_reason}"
        )
        self.sub_title = f"rollout {state.rollout_id} ({state.namespace}) {outcome}"
        if state.rollout_id != self._last_rollout:
            self._last_rollout = state.rollout_id
            severity = "info" if state.succeeded else "error"
            self.log_message(f"Rollout {state.rollout_id}: {outcome}", severity=severity)

        for record in sorted(state.records.values(), key=lambda r: (r.stage, r.name)):
            status = record.status.value
            style = STATUS_STYLES.get(status)
            label = f"[{style}]{status}[/{style}]" if style else status
            table.add_row(
                str(record.stage),
                record.name,
                label,
                record.error or record.last_observed,
            )

    def _show_scaling(self) -> None:
        table = self.query_one("#scaling", DataTable)
        table.clear()
        for event in self.repository.recent_scale_events(limit=20):
            table.add_row(
                event["decided_at"][11:19],
                event["workload"],
                event["action"],
                f"{event['previous_replicas']} -> {event['replicas']}",
                event["reason"],
            )
