# CobberSlopeTimer.py
# QTimer-backed scheduler for the CobberSlope auto-run.

from typing import Callable, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from labs.CobberLog import get_logger

logger = get_logger(__name__)


class QtStepScheduler(QObject):
    """
    Repeating timer that calls back into the step controller.

    Only one task is ever scheduled: ``schedule`` stops the timer before
    re-arming it, and ``cancel`` stops it outright. Both run on the GUI
    thread, so no timeout is delivered after ``cancel`` returns.
    """

    ticked = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.timer = QTimer(self)
        self.timer.timeout.connect(self._on_timeout)
        self._callback: Optional[Callable[[], object]] = None

    @property
    def is_active(self) -> bool:
        return self.timer.isActive()

    @property
    def interval(self) -> int:
        return self.timer.interval()

    def schedule(self, interval_ms: int, callback: Callable[[], object]) -> None:
        self.timer.stop()
        self._callback = callback
        self.timer.start(max(0, int(interval_ms)))
        logger.debug(f"Scheduled step every {self.timer.interval()} ms")

    def cancel(self) -> None:
        if self.timer.isActive():
            logger.debug("Cancelled scheduled step")
        self.timer.stop()
        self._callback = None

    def _on_timeout(self):
        callback = self._callback
        if callback is None:
            return
        callback()
        self.ticked.emit()
