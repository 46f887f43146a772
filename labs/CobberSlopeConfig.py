# CobberSlopeConfig.py
# Constants, default datasets and hyperparameters for the CobberSlope lab.

import math
from dataclasses import dataclass
from typing import List, Tuple

from labs.CobberLog import get_logger

logger = get_logger(__name__)

# --- Lab Constants ---

MAX_ITERATIONS = 30
STEP_INTERVAL_MS = 500
PRECISION = 4

DEFAULT_INITIAL_SLOPE = 0.0
DEFAULT_LEARNING_RATE = 0.01
DEFAULT_MANUAL_SLOPE = 1.5

# (start, stop, step) for the MSE-vs-slope curve; stop is inclusive.
CURVE_RANGE = (-1.0, 4.5, 0.1)
# (min, max, step) for the manual slope slider.
SLIDER_RANGE = (-1.0, 4.0, 0.05)

# Classroom dataset shown when the lab opens.
DEFAULT_POINTS: List[Tuple[float, float]] = [
    (20, 45), (22, 50), (24, 55),
    (25, 60), (28, 65), (30, 72),
    (31, 76), (33, 82), (34, 85),
    (35, 90),
]

# Dataset restored by "Reset All".
RESET_POINTS: List[Tuple[float, float]] = [
    (1, 2), (2, 4), (3, 5),
    (4, 7), (5, 11), (6, 11),
    (7, 14), (8, 17), (9, 20),
    (10, 21),
]


def coerce_float(value, default: float = 0.0, label: str = "value") -> float:
    """Parse user input as a float, falling back to ``default`` instead of raising.

    Blank text, non-numeric text, None, NaN and infinities all map to ``default``.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Could not parse {label} {value!r}; using {default}")
        return default
    if not math.isfinite(number):
        logger.warning(f"{label} {value!r} is not a finite number; using {default}")
        return default
    return number


@dataclass
class SlopeLabConfig:
    """Fixed lab settings"""
    max_iterations: int = MAX_ITERATIONS
    step_interval_ms: int = STEP_INTERVAL_MS
    precision: int = PRECISION  # Decimal places kept in history records


@dataclass
class Hyperparameters:
    """User-editable gradient descent settings"""
    initial_slope: float = DEFAULT_INITIAL_SLOPE
    learning_rate: float = DEFAULT_LEARNING_RATE

    @classmethod
    def from_inputs(cls, initial_slope, learning_rate) -> "Hyperparameters":
        return cls(
            initial_slope=coerce_float(initial_slope, label="initial slope"),
            learning_rate=coerce_float(learning_rate, label="learning rate"),
        )
