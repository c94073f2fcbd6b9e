"""
Workflow event log.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..security import mask_sensitive
from ..utils.directories import get_secure_app_directory
from .events import LogEvent


class LogManager:
    """Appends workflow events to ``events.jsonl`` and reads them back."""

    def __init__(self, log_dir: Optional[str] = None):
        if log_dir is None:
            self.log_dir = get_secure_app_directory("labkit", "logs")
        else:
            self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger("LogManager")
        self.event_log_file = self.log_dir / "events.jsonl"

    async def emit_event(self, event: LogEvent) -> None:
        """Record an event."""
        self._write_event_to_file(event)

    def _write_event_to_file(self, event: LogEvent) -> None:
        """Write event to JSONL file."""
        reserved = ["event_type", "timestamp", "correlation_id", "execution_id", "metadata"]
        event_dict = {
            "event_type": event.event_type,
            "timestamp": event.timestamp.isoformat() if event.timestamp else "",
            "correlation_id": event.correlation_id,
            "execution_id": event.execution_id,
            **{k: v for k, v in event.__dict__.items() if k not in reserved},
            **mask_sensitive(event.metadata or {}),
        }

        try:
            with open(self.event_log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(event_dict, default=str) + "\n")
        except OSError as e:
            self.logger.error(f"Failed to write event to file: {e}")

    def read_events(
        self, count: int = 50, execution_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Return the most recent recorded events, optionally for one execution."""
        if not self.event_log_file.exists():
            return []

        events = []
        with open(self.event_log_file, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    self.logger.warning(
                        f"Skipping malformed event on line {line_number}"
                    )
                    continue
                if execution_id and event.get("execution_id") != execution_id:
                    continue
                events.append(event)

        return events[-count:]
