# CobberSlopeEngine.py
# Numeric core of the CobberSlope lab: error and gradient of the model y = a*x.
# Nothing in here touches Qt, so the lab logic can be exercised headless.

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Sequence, Tuple, Union

import numpy as np

from labs.CobberSlopeConfig import CURVE_RANGE, coerce_float


@dataclass(frozen=True)
class DataPoint:
    x: float
    y: float


PointLike = Union[DataPoint, Tuple[float, float]]


def _as_point(point: PointLike) -> DataPoint:
    if isinstance(point, DataPoint):
        return point
    x, y = point
    return DataPoint(float(x), float(y))


class Dataset:
    """Ordered, editable collection of data points that is never empty."""

    FIELDS = ("x", "y")

    def __init__(self, points: Iterable[PointLike]):
        self._points: List[DataPoint] = []
        self.replace(points)

    def replace(self, points: Iterable[PointLike]) -> None:
        new_points = [_as_point(p) for p in points]
        if not new_points:
            raise ValueError("A dataset needs at least one point.")
        self._points = new_points

    def set_coordinate(self, index: int, field: str, value) -> DataPoint:
        """Replace one coordinate of one point; unparseable input becomes 0."""
        if field not in self.FIELDS:
            raise ValueError(f"Unknown coordinate {field!r}; expected 'x' or 'y'.")
        old = self._points[index]
        number = coerce_float(value, label=f"point #{index + 1} {field}")
        new = DataPoint(number, old.y) if field == "x" else DataPoint(old.x, number)
        self._points[index] = new
        return new

    @property
    def xs(self) -> np.ndarray:
        return np.array([p.x for p in self._points], dtype=float)

    @property
    def ys(self) -> np.ndarray:
        return np.array([p.y for p in self._points], dtype=float)

    def as_tuples(self) -> List[Tuple[float, float]]:
        return [(p.x, p.y) for p in self._points]

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[DataPoint]:
        return iter(self._points)

    def __getitem__(self, index: int) -> DataPoint:
        return self._points[index]

    def __repr__(self) -> str:
        return f"Dataset({self.as_tuples()!r})"


@dataclass(frozen=True)
class PointGradient:
    """One point's share of the gradient, dE/da = 2(ax - y) * x."""
    index: int
    x: float
    y: float
    prediction: float
    error_term: float
    contribution: float

    @property
    def id(self) -> int:
        # 1-based label used in tables
        return self.index + 1


@dataclass(frozen=True)
class GradientDetails:
    final_gradient: float
    point_gradients: Tuple[PointGradient, ...]


# --- Metric Engine ---

def calculate_mse(slope: float, data: Sequence[PointLike]) -> float:
    points = [_as_point(p) for p in data]
    n = len(points)
    if n == 0: return 0.0
    total = 0.0
    for p in points:
        # Multiply rather than **: a float power raises OverflowError instead of giving inf
        error = slope * p.x - p.y
        total += error * error
    return total / n


# --- Gradient Engine ---

def calculate_gradient_details(slope: float, data: Sequence[PointLike]) -> GradientDetails:
    points = [_as_point(p) for p in data]
    n = len(points)
    if n == 0:
        raise ValueError("The gradient is undefined for an empty dataset.")
    point_gradients = []
    total = 0.0
    for index, p in enumerate(points):
        # Chain rule: d/da (ax - y)^2 = 2(ax - y) * x
        prediction = slope * p.x
        error_term = prediction - p.y
        contribution = 2 * error_term * p.x
        total += contribution
        point_gradients.append(PointGradient(index, p.x, p.y, prediction, error_term, contribution))
    return GradientDetails(total / n, tuple(point_gradients))


# --- Chart Views ---

def mse_curve(data: Sequence[PointLike], start: float = CURVE_RANGE[0], stop: float = CURVE_RANGE[1],
              step: float = CURVE_RANGE[2]) -> Tuple[np.ndarray, np.ndarray]:
    """Sample the error surface: MSE at each slope in [start, stop], stop included."""
    points = [_as_point(p) for p in data]
    slopes = np.round(np.arange(start, stop + step / 2, step), 2)
    if not points:
        return slopes, np.zeros_like(slopes)
    x = np.array([p.x for p in points], dtype=float)
    y = np.array([p.y for p in points], dtype=float)
    residuals = slopes[:, np.newaxis] * x - y
    return slopes, np.mean(residuals ** 2, axis=1)


def model_line(slope: float, data: Sequence[PointLike]) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """End points of the fitted line y = a*x, from the origin to one unit past the largest x."""
    max_x = max(_as_point(p).x for p in data) + 1
    return (0.0, 0.0), (max_x, slope * max_x)


def residual_segments(slope: float, data: Sequence[PointLike]) -> List[Tuple[Tuple[float, float], Tuple[float, float]]]:
    """Vertical segments from each observed point to the model's prediction."""
    segments = []
    for p in map(_as_point, data):
        segments.append(((p.x, p.y), (p.x, slope * p.x)))
    return segments
