"""Rich output formatting for the autopublish CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from autopublish.execution.orchestrator import OrchestratorState

if TYPE_CHECKING:
    from autopublish.core.job import Job
    from autopublish.execution.orchestrator import OrchestratorOutcome
    from autopublish.host.supervisor import SupervisedExit

console = Console()


class StatusColors:
    """Color per orchestrator state."""

    STATE: dict[OrchestratorState, str] = {
        OrchestratorState.IDLE: "dim",
        OrchestratorState.WAITING_FOR_HOST_READY: "yellow",
        OrchestratorState.WAITING_FOR_DEPENDENCY_READY: "yellow",
        OrchestratorState.PREFLIGHT_CONSENT: "blue",
        OrchestratorState.PUBLISHING: "blue",
        OrchestratorState.SUCCEEDED: "green",
        OrchestratorState.FAILED: "red",
    }

    @classmethod
    def for_state(cls, state: OrchestratorState) -> str:
        return cls.STATE.get(state, "white")


def format_duration(seconds: float | None) -> str:
    """Format seconds as ``45.2s``, ``3m 12s`` or ``1h 5m``."""
    if seconds is None:
        return "N/A"
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        minutes, secs = divmod(int(seconds), 60)
        return f"{minutes}m {secs}s"
    hours, rest = divmod(int(seconds), 3600)
    return f"{hours}h {rest // 60}m"


def job_table(job: Job, title: str = "Job") -> Table:
    table = Table(title=title, show_header=False, title_justify="left")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Name", job.name)
    table.add_row("Content id", job.content_id)
    table.add_row("Scene", job.scene)
    table.add_row("Thumbnail", job.thumbnail)
    table.add_row("Platform", f"{job.platform.value} ({job.build_target})")
    if job.commit_hash:
        table.add_row("Commit", job.commit_hash)
    return table


def outcome_panel(outcome: OrchestratorOutcome) -> Panel:
    color = StatusColors.for_state(outcome.state)
    lines = [f"[bold]{outcome.job.name}[/bold] ({outcome.job.content_id})"]
    lines.append(f"State: [{color}]{outcome.state.value}[/{color}]")
    if outcome.failure_reason is not None:
        lines.append(f"Reason: {outcome.failure_reason.value}")
    if outcome.error is not None:
        lines.append(f"Error: {escape(str(outcome.error))}")
    lines.append(f"Exit code: {outcome.exit_code}")
    return Panel("\n".join(lines), title="Publish result", border_style=color)


def host_exit_panel(result: SupervisedExit) -> Panel:
    if result.success:
        status, color = "exited cleanly", "green"
    elif result.stalled:
        status, color = f"stalled for {format_duration(result.idle_seconds)}, killed", "red"
    elif result.exit_signal is not None:
        status, color = f"killed by signal {result.exit_signal}", "red"
    else:
        status, color = f"exit code {result.returncode}", "red"
    body = f"Host {status}\nRuntime: {format_duration(result.duration_seconds)}"
    return Panel(body, title="Host process", border_style=color)


__all__ = [
    "StatusColors",
    "console",
    "format_duration",
    "host_exit_panel",
    "job_table",
    "outcome_panel",
]
