"""
Unit test specific fixtures and configurations.
"""

import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

from labkit.logging_utils.log_manager import LogManager
from labkit.logging_utils.progress_tracker import ProgressTracker


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_progress_tracker():
    """Create a mock progress tracker for testing."""
    mock_log_manager = Mock(spec=LogManager)
    mock_log_manager.emit_event = AsyncMock()

    step_tracker = MagicMock()
    step_tracker.__aenter__ = AsyncMock(return_value=step_tracker)
    step_tracker.__aexit__ = AsyncMock(return_value=False)

    progress_tracker = Mock(spec=ProgressTracker)
    progress_tracker.log_manager = mock_log_manager
    progress_tracker.update_step_progress = Mock()
    progress_tracker.add_step_message = Mock()
    progress_tracker.log_step_success = Mock()
    progress_tracker.log_step_failure = Mock()
    progress_tracker.log_step_skipped = AsyncMock()
    progress_tracker.start_execution_progress = Mock()
    progress_tracker.complete_execution_progress = Mock()
    progress_tracker.paused = MagicMock()
    progress_tracker.track_step_execution = Mock(return_value=step_tracker)
    return progress_tracker
