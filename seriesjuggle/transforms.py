"""Point-by-point transforms of a time series: derivative, integral, filters, scaling."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Iterable, Optional

from .plotdata import Point, TimeSeries

DEG_TO_RAD = 3.14159265359 / 180
RAD_TO_DEG = 180.0 / 3.14159265359


def _to_float(text: Any, default: float = 0.0) -> float:
    """Parse a number leniently: anything unparsable becomes ``default``."""
    try:
        value = float(text)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def _to_int(text: Any, default: int = 0) -> int:
    try:
        return int(str(text).strip())
    except (TypeError, ValueError):
        return default


def estimate_sample_period(points: Iterable[Point]) -> float:
    """Estimate the sampling period of a series from the gaps between its times.

    With more than ten points the gaps are sorted and only the middle
    three fifths are averaged, so that occasional holes do not matter.
    """
    times = [point.x for point in points]
    if len(times) < 2:
        raise ValueError("at least two points are needed to estimate the period")
    gaps = [current - previous for previous, current in zip(times, times[1:])]
    if len(times) > 10:
        gaps.sort()
        count = len(gaps)
        gaps = gaps[count // 5 : (count * 4) // 5]
    return sum(gaps) / len(gaps)


class TimeSeriesTransform(ABC):
    """A transform that turns each sample of ``source`` into at most one output point.

    :meth:`calculate` is incremental: it only processes the source samples
    added since the previous call. :meth:`init` starts over.
    """

    name = ""

    def __init__(self, source: Optional[TimeSeries] = None) -> None:
        self.source = source
        self.output = TimeSeries(source.name if source is not None else "")
        self._next_index = 0

    def init(self) -> None:
        """Forget everything computed so far."""
        self.output.clear()
        self._next_index = 0

    def calculate(self) -> TimeSeries:
        """Process the new samples of the source and return the output series."""
        if self.source is None:
            raise ValueError("the transform has no data source")
        if len(self.source) < self._next_index:
            self.init()
        self.output.maximum_range_x = self.source.maximum_range_x
        for index in range(self._next_index, len(self.source)):
            point = self.calculate_next_point(index)
            if point is not None:
                self.output.push_back(point)
        self._next_index = len(self.source)
        return self.output

    @abstractmethod
    def calculate_next_point(self, index: int) -> Optional[Point]:
        """The output point for the source sample at ``index``, or None to skip it."""

    def save_state(self) -> dict[str, str]:
        """The options of the transform as text attributes."""
        return {}

    def load_state(self, state: dict[str, str]) -> None:
        """Restore options saved by :meth:`save_state`."""


class _SamplePeriodTransform(TimeSeriesTransform):
    """A transform that uses either the actual time step or a fixed one."""

    def __init__(
        self,
        source: Optional[TimeSeries] = None,
        use_custom_dt: bool = False,
        custom_dt: float = 0.0,
    ) -> None:
        super().__init__(source)
        self.use_custom_dt = use_custom_dt
        self.custom_dt = custom_dt

    @property
    def dt(self) -> float:
        """The fixed time step in use, or 0.0 when the actual one is used."""
        return self.custom_dt if self.use_custom_dt else 0.0

    def _step(self, index: int) -> Optional[tuple[Point, Point, float]]:
        if index == 0:
            return None
        previous = self.source[index - 1]
        current = self.source[index]
        dt = self.dt if self.dt != 0.0 else current.x - previous.x
        if dt <= 0:
            return None
        return previous, current, dt

    def compute_sample_period(self) -> Optional[float]:
        """Estimate the period of the source and store it as the custom step."""
        if self.source is None or len(self.source) < 2:
            return None
        self.custom_dt = estimate_sample_period(self.source)
        return self.custom_dt

    def save_state(self) -> dict[str, str]:
        return {
            "radioChecked": "radioCustom" if self.use_custom_dt else "radioActual",
            "lineEdit": repr(self.custom_dt),
        }

    def load_state(self, state: dict[str, str]) -> None:
        self.custom_dt = _to_float(state.get("lineEdit", ""))
        self.use_custom_dt = state.get("radioChecked") != "radioActual"


class FirstDerivative(_SamplePeriodTransform):
    """Finite difference between consecutive samples, placed at the earlier time."""

    name = "Derivative"

    def calculate_next_point(self, index: int) -> Optional[Point]:
        step = self._step(index)
        if step is None:
            return None
        previous, current, dt = step
        return Point(previous.x, (current.y - previous.y) / dt)


class IntegralTransform(_SamplePeriodTransform):
    """Running trapezoidal integral of the source."""

    name = "Integral"

    def __init__(
        self,
        source: Optional[TimeSeries] = None,
        use_custom_dt: bool = False,
        custom_dt: float = 0.0,
    ) -> None:
        super().__init__(source, use_custom_dt, custom_dt)
        self._accumulated = 0.0

    def init(self) -> None:
        self._accumulated = 0.0
        super().init()

    def calculate_next_point(self, index: int) -> Optional[Point]:
        step = self._step(index)
        if step is None:
            return None
        previous, current, dt = step
        self._accumulated += (current.y + previous.y) * dt / 2.0
        return Point(current.x, self._accumulated)


class MovingAverageFilter(TimeSeriesTransform):
    """Mean of the last ``samples`` values, optionally centred in time."""

    name = "Moving Average"

    def __init__(
        self,
        source: Optional[TimeSeries] = None,
        samples: int = 10,
        compensate_offset: bool = False,
    ) -> None:
        super().__init__(source)
        self.samples = samples
        self.compensate_offset = compensate_offset
        self._ring: deque[Point] = deque(maxlen=1)

    def init(self) -> None:
        self._ring = deque(maxlen=1)
        self._ring.clear()
        self._ring_size = 0
        super().init()

    def calculate_next_point(self, index: int) -> Optional[Point]:
        buffer_size = max(1, min(self.samples, len(self.source)))
        if buffer_size != self._ring.maxlen or getattr(self, "_ring_size", None) == 0:
            self._ring = deque(maxlen=buffer_size)
            self._ring_size = buffer_size
        point = self.source[index]
        self._ring.append(point)
        while len(self._ring) < buffer_size:
            self._ring.append(point)

        total = sum(sample.y for sample in self._ring)
        time = point.x
        if self.compensate_offset:
            time = (self._ring[-1].x + self._ring[0].x) / 2.0
        return Point(time, total / len(self._ring))

    def save_state(self) -> dict[str, str]:
        return {
            "value": str(self.samples),
            "compensate_offset": "true" if self.compensate_offset else "false",
        }

    def load_state(self, state: dict[str, str]) -> None:
        self.samples = _to_int(state.get("value", ""))
        self.compensate_offset = state.get("compensate_offset") == "true"


class OutlierRemovalFilter(TimeSeriesTransform):
    """Drop isolated spikes whose jump exceeds ``factor`` times the local range.

    The output lags the source by one sample.
    """

    name = "Outlier Removal"

    def __init__(self, source: Optional[TimeSeries] = None, factor: float = 100.0) -> None:
        super().__init__(source)
        self.factor = factor
        self._ring: deque[float] = deque(maxlen=4)

    def init(self) -> None:
        self._ring.clear()
        super().init()

    def calculate_next_point(self, index: int) -> Optional[Point]:
        point = self.source[index]
        self._ring.append(point.y)
        if index <= 2:
            return point
        if index == 3:
            return None

        v0, v1, v2, v3 = self._ring
        d1 = v1 - v2
        d2 = v2 - v3
        if d1 * d2 < 0:
            low = min(v0, v1, v3)
            high = max(v0, v1, v3)
            threshold = (high - low) * self.factor
            if max(abs(d1), abs(d2)) > threshold:
                return None
        return self.source[index - 1]

    def save_state(self) -> dict[str, str]:
        return {"factor": repr(self.factor)}

    def load_state(self, state: dict[str, str]) -> None:
        text = state.get("factor", state.get("value", "100.0"))
        self.factor = _to_float(text)


class ScaleTransform(TimeSeriesTransform):
    """``(x + time_offset, value_scale * y + value_offset)``."""

    name = "Scale/Offset"

    def __init__(
        self,
        source: Optional[TimeSeries] = None,
        time_offset: float = 0.0,
        value_offset: float = 0.0,
        value_scale: float = 1.0,
    ) -> None:
        super().__init__(source)
        self.time_offset = time_offset
        self.value_offset = value_offset
        self.value_scale = value_scale

    def degrees_to_radians(self) -> None:
        """Set the scale that turns degrees into radians."""
        self.value_scale = float(f"{DEG_TO_RAD:.5g}")

    def radians_to_degrees(self) -> None:
        """Set the scale that turns radians into degrees."""
        self.value_scale = float(f"{RAD_TO_DEG:.5g}")

    def calculate_next_point(self, index: int) -> Optional[Point]:
        point = self.source[index]
        return Point(
            point.x + self.time_offset, self.value_scale * point.y + self.value_offset
        )

    def save_state(self) -> dict[str, str]:
        return {
            "time_offset": repr(self.time_offset),
            "value_offset": repr(self.value_offset),
            "value_scale": repr(self.value_scale),
        }

    def load_state(self, state: dict[str, str]) -> None:
        self.time_offset = _to_float(state.get("time_offset", ""))
        self.value_offset = _to_float(state.get("value_offset", ""))
        self.value_scale = _to_float(state.get("value_scale", ""))