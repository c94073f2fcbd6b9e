"""
Live step progress for workflow runs, rendered with rich.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text

from .events import StepCompleted, StepSkipped, StepStarted
from .log_manager import LogManager


class ProgressTracker:
    """Progress bar plus one status line per finished step."""

    def __init__(self, log_manager: LogManager, console: Optional[Console] = None):
        self.log_manager = log_manager
        self.console = console or Console()
        self._progress: Optional[Progress] = None
        self._current_task: Optional[TaskID] = None
        self._step_messages: List[str] = []
        self._live: Optional[Live] = None

    def start_execution_progress(self, total_steps: int, title: str = "labkit") -> None:
        """Start tracking execution progress."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
        )
        self._current_task = self._progress.add_task(title, total=total_steps)
        self._live = Live(
            self._create_display(), console=self.console, refresh_per_second=10
        )
        self._live.start()

    def _create_display(self):
        if not self._progress:
            return Text("")

        step_text = Text()
        for msg in self._step_messages:
            step_text.append(f"{msg}\n")
        return Group(self._progress, step_text)

    def _refresh(self) -> None:
        if self._live:
            self._live.update(self._create_display())

    def update_step_progress(self, increment: int = 1) -> None:
        """Advance the progress counter."""
        if self._progress and self._current_task is not None:
            self._progress.advance(self._current_task, increment)
            self._refresh()

    def add_step_message(self, message: str, indent: int = 0) -> None:
        """Show a line below the progress bar."""
        self._step_messages.append(f"{'    ' * indent}{message}")
        self._refresh()

    def log_step_success(self, message: str, indent: int = 0) -> None:
        self.update_step_progress()
        self.add_step_message(f"{message} ✅", indent)

    def log_step_failure(self, message: str, indent: int = 0) -> None:
        self.update_step_progress()
        self.add_step_message(f"{message} ❌", indent)

    async def log_step_skipped(
        self,
        step_id: str,
        step_name: str,
        reason: str,
        correlation_id: str,
        execution_id: str,
    ) -> None:
        """Record a step excluded by its condition."""
        self.update_step_progress()
        self.add_step_message(f"{step_name} ⏭  ({reason})")
        await self.log_manager.emit_event(
            StepSkipped(
                correlation_id=correlation_id,
                execution_id=execution_id,
                step_id=step_id,
                step_name=step_name,
                reason=reason,
            )
        )

    def complete_execution_progress(self) -> None:
        """Stop the live display."""
        if self._live:
            self._live.stop()
            self._live = None
        self._progress = None
        self._current_task = None
        self._step_messages = []

    @contextmanager
    def paused(self) -> Iterator[None]:
        """Hand the terminal to an interactive command, then resume."""
        live = self._live
        if live is None:
            yield
            return

        live.stop()
        try:
            yield
        finally:
            live.start()
            self._refresh()

    def track_step_execution(
        self,
        step_id: str,
        step_name: str,
        correlation_id: str,
        execution_id: str,
        tool: str = "",
        action: str = "",
    ):
        """Async context manager that emits start/complete events for a step."""

        class StepTracker:
            def __init__(self, tracker: "ProgressTracker"):
                self.tracker = tracker
                self.start_time: Optional[datetime] = None
                self.success: Optional[bool] = None
                self.error_message: Optional[str] = None

            def mark_failed(self, error_message: Optional[str]) -> None:
                """Record a failure reported through a result rather than raised."""
                self.success = False
                self.error_message = error_message

            async def __aenter__(self):
                self.start_time = datetime.utcnow()
                await self.tracker.log_manager.emit_event(
                    StepStarted(
                        timestamp=self.start_time,
                        correlation_id=correlation_id,
                        execution_id=execution_id,
                        step_id=step_id,
                        step_name=step_name,
                        tool=tool,
                        action=action,
                    )
                )
                return self

            async def __aexit__(self, exc_type, exc_val, exc_tb):
                end_time = datetime.utcnow()
                duration = (end_time - (self.start_time or end_time)).total_seconds()
                success = exc_type is None and self.success is not False
                error = str(exc_val) if exc_val else self.error_message

                if success:
                    self.tracker.log_step_success(step_name)
                else:
                    self.tracker.log_step_failure(step_name)

                await self.tracker.log_manager.emit_event(
                    StepCompleted(
                        timestamp=end_time,
                        correlation_id=correlation_id,
                        execution_id=execution_id,
                        step_id=step_id,
                        step_name=step_name,
                        success=success,
                        duration_seconds=duration,
                        error_message=error,
                    )
                )

        return StepTracker(self)
