"""Heartbeat service driving the periodic time monitoring sweep.

A background daemon thread wakes up every check interval and runs one
sweep. Sweeps never overlap: a trigger that arrives while a sweep is still
running is skipped.
"""

import threading
from typing import Callable, List, Optional

from .. import config
from .logging_config import get_logger
from .time_monitor_service import SweepReport, TimeMonitorService

logger = get_logger("heartbeat")


class HeartbeatService:
    """Runs TimeMonitorService.sweep on a fixed interval.

    Usage:
        service = HeartbeatService(monitor)
        service.add_status_callback(on_status)
        service.start()  # Begin sweeping
        # ... later ...
        service.stop()   # Stop sweeping
    """

    def __init__(self, monitor: TimeMonitorService, interval: float = config.CHECK_INTERVAL):
        """Initialize heartbeat service.

        Args:
            monitor: Engine whose sweep runs on every beat
            interval: Seconds between sweeps (at least MIN_CHECK_INTERVAL)
        """
        self._monitor = monitor
        self._is_running = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._sweep_lock = threading.Lock()
        self._interval = float(config.FIXED_CHECK_INTERVAL)
        self.set_interval(interval)

        self.last_report: Optional[SweepReport] = None
        self.sweep_count = 0

        # Callbacks for status updates
        self._on_status_update: List[Callable[[str], None]] = []
        self._on_error: List[Callable[[str], None]] = []

    def set_interval(self, seconds: float) -> None:
        """Set the sweep interval."""
        self._interval = max(float(config.MIN_CHECK_INTERVAL), float(seconds))
        logger.info(f"Heartbeat interval set to {self._interval}s")

    def get_interval(self) -> float:
        """Get the current interval."""
        return self._interval

    def add_status_callback(self, callback: Callable[[str], None]) -> None:
        """Add a callback for status updates."""
        self._on_status_update.append(callback)

    def add_error_callback(self, callback: Callable[[str], None]) -> None:
        """Add a callback for errors."""
        self._on_error.append(callback)

    def _notify_status(self, message: str) -> None:
        """Notify status callbacks."""
        for callback in self._on_status_update:
            try:
                callback(message)
            except Exception as e:
                logger.error(f"Error in status callback: {e}")

    def _notify_error(self, message: str) -> None:
        """Notify error callbacks."""
        for callback in self._on_error:
            try:
                callback(message)
            except Exception as e:
                logger.error(f"Error in error callback: {e}")

    @property
    def is_running(self) -> bool:
        """Check if heartbeat is running."""
        return self._is_running

    @property
    def is_sweeping(self) -> bool:
        """True while a sweep is in progress."""
        return self._sweep_lock.locked()

    def start(self) -> None:
        """Start the heartbeat service."""
        if self._is_running:
            return

        self._stop_event.clear()
        self._is_running = True
        self._thread = threading.Thread(target=self._heartbeat_loop, daemon=True)
        self._thread.start()
        self._notify_status("Heartbeat started")
        logger.info(f"Heartbeat started with {self._interval}s interval")

    def stop(self) -> None:
        """Stop the heartbeat service (non-blocking)."""
        if not self._is_running:
            return

        self._stop_event.set()
        self._is_running = False

        # Thread is daemon; a sweep in progress finishes on its own
        self._thread = None

        self._notify_status("Heartbeat stopped")
        logger.info("Heartbeat stopped")

    def run_once(self) -> Optional[SweepReport]:
        """Run one sweep now. Returns None if a sweep is already running."""
        if not self._sweep_lock.acquire(blocking=False):
            logger.warning("Skipping sweep: previous sweep still running")
            return None
        try:
            report = self._monitor.sweep()
            self.last_report = report
            self.sweep_count += 1
            if report.warnings_sent:
                self._notify_status(f"Sent {report.warnings_sent} time warnings")
            return report
        finally:
            self._sweep_lock.release()

    def _heartbeat_loop(self) -> None:
        """Main loop: wait one interval, sweep, repeat until stopped."""
        logger.info("Heartbeat loop started")

        while not self._stop_event.wait(self._interval):
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Heartbeat loop error: {e}", exc_info=True)
                self._notify_error(f"Heartbeat error: {str(e)}")

        logger.info("Heartbeat loop ended")

    def get_status(self) -> dict:
        """Snapshot for status endpoints."""
        return {
            'running': self._is_running,
            'sweeping': self.is_sweeping,
            'interval': self._interval,
            'sweep_count': self.sweep_count,
            'last_report': self.last_report.to_dict() if self.last_report else None
        }
