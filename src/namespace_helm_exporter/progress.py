"""Progress reporting while resource endpoints are fetched."""
from __future__ import annotations

import logging
import sys
import threading
import time
from typing import Dict

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from .types import ProgressCallback


class ProgressTracker(ProgressCallback):
    """Single-line console progress written to stderr."""

    def __init__(self, enabled: bool = True, show_percentage: bool = True):
        self.enabled = enabled
        self.show_percentage = show_percentage
        self.logger = logging.getLogger(__name__)
        self._last_update = 0.0
        self._update_interval = 0.1  # seconds
        self._lock = threading.Lock()

    def update(self, current: int, total: int, message: str = "") -> None:
        """Redraw the progress line; updates are throttled except the last one."""
        if not self.enabled:
            return

        with self._lock:
            now = time.monotonic()
            if now - self._last_update < self._update_interval and current < total:
                return
            self._last_update = now

            if total > 0 and self.show_percentage:
                line = f"Fetched {current}/{total} endpoints ({current / total * 100:.1f}%)"
            else:
                line = f"Fetched {current}/{total} endpoints"
            if message:
                line += f" - {message}"

            end = "" if current < total else "\n"
            print(f"\r{line}", end=end, file=sys.stderr, flush=True)

    def finish(self, message: str = "Complete") -> None:
        if self.enabled:
            print(f"\r{message}", file=sys.stderr)


class SilentProgressTracker(ProgressCallback):
    """Reports progress through the logger only."""

    def __init__(self, log_interval: int = 10):
        self.log_interval = log_interval
        self.logger = logging.getLogger(__name__)

    def update(self, current: int, total: int, message: str = "") -> None:
        if current % self.log_interval == 0 or current == total:
            self.logger.info("Fetched %d/%d endpoints %s", current, total, message)

    def finish(self, message: str = "Complete") -> None:
        self.logger.info(message)


class RichProgressTracker(ProgressCallback):
    """Progress bar rendered with rich."""

    def __init__(self, description: str = "Fetching resources"):
        self.description = description
        self.progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=Console(stderr=True),
            transient=False,
        )
        self.task_id = None
        self._lock = threading.Lock()

    def update(self, current: int, total: int, message: str = "") -> None:
        with self._lock:
            if self.task_id is None:
                self.progress.start()
                self.task_id = self.progress.add_task(self.description, total=total)
            self.progress.update(self.task_id, completed=current, total=total, description=message or self.description)

    def finish(self, message: str = "Complete") -> None:
        with self._lock:
            if self.task_id is None:
                return
            self.progress.update(self.task_id, description=message)
            self.progress.stop()
            self.task_id = None


def create_progress_tracker(
    enabled: bool = True,
    use_rich: bool = True,
    silent: bool = False,
) -> ProgressCallback:
    """
    Create the progress tracker for a run.

    Args:
        enabled: Whether progress is shown on the console at all
        use_rich: Use a rich progress bar instead of a plain status line
        silent: Report progress through the logger only

    Returns:
        Progress tracker instance
    """
    if not enabled or silent:
        return SilentProgressTracker()
    if use_rich and sys.stderr.isatty():
        return RichProgressTracker()
    return ProgressTracker(enabled=enabled)


class TimedProgressTracker:
    """Wraps a tracker and logs how long each pipeline phase took."""

    def __init__(self, progress_tracker: ProgressCallback):
        self.tracker = progress_tracker
        self.start_time = time.monotonic()
        self.phase_start_times: Dict[str, float] = {}
        self.logger = logging.getLogger(__name__)

    def update(self, current: int, total: int, message: str = "") -> None:
        self.tracker.update(current, total, message)

    def start_phase(self, phase_name: str) -> None:
        self.phase_start_times[phase_name] = time.monotonic()
        self.logger.info("Starting phase: %s", phase_name)

    def end_phase(self, phase_name: str) -> None:
        started = self.phase_start_times.pop(phase_name, self.start_time)
        self.logger.info("Completed phase '%s' in %.2fs", phase_name, time.monotonic() - started)

    def finish(self) -> float:
        """Close the wrapped tracker; return the total elapsed seconds."""
        total_time = time.monotonic() - self.start_time
        self.logger.info("Export completed in %.2fs", total_time)
        finish = getattr(self.tracker, "finish", None)
        if finish is not None:
            finish(f"Complete (took {total_time:.1f}s)")
        return total_time
