# CobberSlopeRun.py
# Gradient descent run state for the CobberSlope lab: history log and step controller.
#
# The controller is the single writer of the run state. Timed stepping is
# delegated to a scheduler object (see CobberSlopeTimer.QtStepScheduler) so the
# state machine itself stays free of any GUI toolkit.

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

import numpy as np

from labs.CobberLog import get_logger
from labs.CobberSlopeConfig import (
    RESET_POINTS, DEFAULT_POINTS, DEFAULT_INITIAL_SLOPE, Hyperparameters, SlopeLabConfig, coerce_float
)
from labs.CobberSlopeEngine import (
    Dataset, PointGradient, PointLike, calculate_gradient_details, calculate_mse,
    mse_curve, model_line, residual_segments
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class StepRecord:
    step: int
    a: float
    mse: float
    gradient: float


class HistoryLog:
    """Append-only record of completed steps; ``log[i].step == i`` always holds."""

    def __init__(self):
        self._records: List[StepRecord] = []

    def append(self, record: StepRecord) -> None:
        if record.step != len(self._records):
            raise ValueError(f"Expected step {len(self._records)}, got step {record.step}.")
        self._records.append(record)

    def clear(self) -> None:
        self._records.clear()

    @property
    def records(self) -> Tuple[StepRecord, ...]:
        return tuple(self._records)

    @property
    def last(self) -> Optional[StepRecord]:
        return self._records[-1] if self._records else None

    def steps(self) -> np.ndarray:
        return np.array([r.step for r in self._records], dtype=int)

    def slopes(self) -> np.ndarray:
        return np.array([r.a for r in self._records], dtype=float)

    def errors(self) -> np.ndarray:
        return np.array([r.mse for r in self._records], dtype=float)

    def gradients(self) -> np.ndarray:
        return np.array([r.gradient for r in self._records], dtype=float)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[StepRecord]:
        return iter(self._records)

    def __getitem__(self, index: int) -> StepRecord:
        return self._records[index]


class RunPhase(str, Enum):
    """Where the run sits in its life cycle"""
    IDLE = "idle"
    STEPPING = "stepping"
    TERMINAL = "terminal"


@dataclass
class RunState:
    current_slope: float = DEFAULT_INITIAL_SLOPE
    current_step: int = 0
    is_running: bool = False


@dataclass(frozen=True)
class StepDetail:
    """Full breakdown of the most recent step, for the calculation panel."""
    start_slope: float
    final_gradient: float
    point_gradients: Tuple[PointGradient, ...]
    learning_rate: float

    @property
    def update(self) -> float:
        return self.learning_rate * self.final_gradient

    @property
    def next_slope(self) -> float:
        return self.start_slope - self.update


class StepController:
    """
    Drives gradient descent one step at a time, by hand or on a timer.

    ``current_slope`` is one step ahead of the history: after ``step()`` it
    already holds the slope the *next* step will start from.

    The optional scheduler needs ``schedule(interval_ms, callback)``,
    ``cancel()`` and ``is_active``. Without one, ``run()`` only flips the
    running flag and the caller is expected to call ``tick()`` itself.
    """

    def __init__(self, data: Optional[Iterable[PointLike]] = None,
                 hyperparameters: Optional[Hyperparameters] = None,
                 config: Optional[SlopeLabConfig] = None, scheduler=None):
        self.data = Dataset(DEFAULT_POINTS if data is None else data)
        # Own a copy: edits below must not leak into the caller's object
        self.hyperparameters = replace(hyperparameters) if hyperparameters is not None else Hyperparameters()
        self.config = config or SlopeLabConfig()
        self.scheduler = scheduler
        self.history = HistoryLog()
        self.state = RunState(current_slope=self.hyperparameters.initial_slope)
        self.detail: Optional[StepDetail] = None
        self._listeners: List[Callable[["StepController"], None]] = []

    # --- Observers ---

    def subscribe(self, callback: Callable[["StepController"], None]) -> None:
        self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[["StepController"], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self)

    # --- Read-only views ---

    @property
    def current_slope(self) -> float:
        return self.state.current_slope

    @property
    def current_step(self) -> int:
        return self.state.current_step

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    @property
    def current_mse(self) -> float:
        return calculate_mse(self.state.current_slope, self.data)

    @property
    def current_gradient(self) -> float:
        return calculate_gradient_details(self.state.current_slope, self.data).final_gradient

    @property
    def phase(self) -> RunPhase:
        if not self.history:
            return RunPhase.IDLE
        if self.is_terminal:
            return RunPhase.TERMINAL
        return RunPhase.STEPPING

    @property
    def is_terminal(self) -> bool:
        return bool(self.history) and self.state.current_step + 1 > self.config.max_iterations

    def mse_curve(self) -> Tuple[np.ndarray, np.ndarray]:
        return mse_curve(self.data)

    def model_line(self):
        return model_line(self.state.current_slope, self.data)

    def residual_segments(self):
        return residual_segments(self.state.current_slope, self.data)

    # --- State machine ---

    def reset(self) -> None:
        self._cancel()
        self.history.clear()
        self.detail = None
        self.state.current_step = 0
        self.state.current_slope = self.hyperparameters.initial_slope
        logger.info(f"Run reset: initial slope {self.hyperparameters.initial_slope}, "
                    f"learning rate {self.hyperparameters.learning_rate}")
        self._notify()

    def step(self) -> Optional[StepRecord]:
        """Apply one gradient descent update; returns None once the iteration cap is reached."""
        if self.history:
            start_slope = self.state.current_slope
            next_index = self.state.current_step + 1
        else:
            start_slope = self.hyperparameters.initial_slope
            next_index = 0

        if next_index > self.config.max_iterations:
            return None

        mse = calculate_mse(start_slope, self.data)
        details = calculate_gradient_details(start_slope, self.data)
        digits = self.config.precision
        record = StepRecord(
            step=next_index,
            a=round(start_slope, digits),
            mse=round(mse, digits),
            gradient=round(details.final_gradient, digits),
        )
        self.history.append(record)
        learning_rate = self.hyperparameters.learning_rate
        self.detail = StepDetail(start_slope, details.final_gradient, details.point_gradients, learning_rate)
        self.state.current_step = next_index
        self.state.current_slope = start_slope - learning_rate * details.final_gradient
        logger.debug(f"Step {record.step}: a={record.a}, mse={record.mse}, gradient={record.gradient}")
        if self.is_terminal:
            logger.info(f"Reached the iteration cap of {self.config.max_iterations}")
        self._notify()
        return record

    def run(self, interval_ms: Optional[int] = None) -> bool:
        """Start timed stepping. Returns False when there is nothing left to run."""
        if self.is_terminal:
            return False
        if not self.history:
            self.state.current_slope = self.hyperparameters.initial_slope
            self.state.current_step = 0
        interval = self.config.step_interval_ms if interval_ms is None else interval_ms
        self._cancel()
        self.state.is_running = True
        if self.scheduler is not None:
            self.scheduler.schedule(interval, self.tick)
        logger.info(f"Auto-run started every {interval} ms")
        self._notify()
        return True

    def tick(self) -> Optional[StepRecord]:
        """One scheduled step. Does nothing once the run has been stopped."""
        if not self.state.is_running:
            return None
        record = self.step()
        if record is None or self.is_terminal:
            self.stop()
        return record

    def stop(self) -> None:
        was_running = self.state.is_running
        self._cancel()
        if was_running:
            logger.info(f"Auto-run stopped at step {self.state.current_step}")
            self._notify()

    def toggle_run(self) -> bool:
        """Pause if running, otherwise start. Returns the new running flag."""
        if self.state.is_running:
            self.stop()
        else:
            self.run()
        return self.state.is_running

    def _cancel(self) -> None:
        self.state.is_running = False
        if self.scheduler is not None:
            self.scheduler.cancel()

    # --- Edits ---

    def set_slope(self, value) -> None:
        """Manual override of the current slope; the history is left alone."""
        self._cancel()
        self.state.current_slope = coerce_float(value, label="slope")
        self._notify()

    def set_hyperparameters(self, initial_slope=None, learning_rate=None) -> None:
        if initial_slope is not None:
            self.hyperparameters.initial_slope = coerce_float(initial_slope, label="initial slope")
        if learning_rate is not None:
            self.hyperparameters.learning_rate = coerce_float(learning_rate, label="learning rate")
        self.reset()

    def edit_point(self, index: int, field: str, value) -> None:
        self.data.set_coordinate(index, field, value)
        self.reset()

    def replace_data(self, points: Iterable[PointLike]) -> None:
        self.data.replace(points)
        self.reset()

    def reset_to_defaults(self) -> None:
        self.data.replace(RESET_POINTS)
        self.hyperparameters.initial_slope = DEFAULT_INITIAL_SLOPE
        self.reset()
