"""Time series containers, the map that holds them and helpers to merge maps."""

from __future__ import annotations

import bisect
import math
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional


@dataclass(frozen=True)
class Point:
    """A single sample: a time ``x`` and a value ``y`` (a number or a string)."""

    x: float
    y: Any


@dataclass
class PlotGroup:
    """A named group of series that share attributes."""

    name: str
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class TimeSeries:
    """An ordered sequence of points with a name, attributes and an optional group."""

    name: str
    group: Optional[PlotGroup] = None
    attributes: dict[str, Any] = field(default_factory=dict)
    maximum_range_x: float = math.inf
    points: list[Point] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[Point]:
        return iter(self.points)

    def __getitem__(self, index: int) -> Point:
        return self.points[index]

    def push_back(self, point: Point | tuple[float, Any]) -> None:
        """Append a point; a ``(x, y)`` pair is accepted as well."""
        if not isinstance(point, Point):
            point = Point(*point)
        self.points.append(point)

    def clear(self) -> None:
        """Remove every point."""
        self.points.clear()

    def index_from_x(self, x: float) -> Optional[int]:
        """Index of the point whose time is closest to ``x``, or None if empty."""
        if not self.points:
            return None
        index = bisect.bisect_left(self.points, x, key=lambda p: p.x)
        if index >= len(self.points):
            return len(self.points) - 1
        if index == 0:
            return 0
        previous = self.points[index - 1]
        current = self.points[index]
        if (x - previous.x) < (current.x - x):
            return index - 1
        return index


class PlotDataMap:
    """Numeric, string and user-defined series, indexed by name, plus their groups."""

    def __init__(self) -> None:
        self.numeric: dict[str, TimeSeries] = {}
        self.strings: dict[str, TimeSeries] = {}
        self.user_defined: dict[str, TimeSeries] = {}
        self.groups: dict[str, PlotGroup] = {}

    @staticmethod
    def _add(
        series_map: dict[str, TimeSeries], name: str, group: Optional[PlotGroup]
    ) -> TimeSeries:
        series = series_map.get(name)
        if series is None:
            series = TimeSeries(name, group)
            series_map[name] = series
        return series

    def add_numeric(self, name: str, group: Optional[PlotGroup] = None) -> TimeSeries:
        """Return the numeric series called ``name``, creating it if needed."""
        return self._add(self.numeric, name, group)

    def add_string_series(
        self, name: str, group: Optional[PlotGroup] = None
    ) -> TimeSeries:
        """Return the string series called ``name``, creating it if needed."""
        return self._add(self.strings, name, group)

    def get_or_create_group(self, name: str) -> PlotGroup:
        """Return the group called ``name``, creating it if needed."""
        group = self.groups.get(name)
        if group is None:
            group = PlotGroup(name)
            self.groups[name] = group
        return group

    def clear(self) -> None:
        """Drop every series and group."""
        self.numeric.clear()
        self.strings.clear()
        self.user_defined.clear()
        self.groups.clear()


class MonitoredValue:
    """A number that notifies a callback whenever it really changes."""

    def __init__(
        self,
        value: float = 0.0,
        on_change: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._value = value
        self.on_change = on_change

    @property
    def value(self) -> float:
        return self._value

    def set(self, value: float) -> None:
        """Store ``value``; call ``on_change`` if it differs by more than epsilon."""
        previous = self._value
        self._value = value
        if abs(value - previous) > sys.float_info.epsilon and self.on_change:
            self.on_change(value)


@dataclass
class MoveDataResult:
    """What :func:`move_data` did to the destination."""

    added_curves: list[str] = field(default_factory=list)
    curves_updated: bool = False
    data_pushed: bool = False


def _move_series(
    source_map: dict[str, TimeSeries],
    destination_map: dict[str, TimeSeries],
    destination: PlotDataMap,
    remove_older: bool,
    result: MoveDataResult,
) -> None:
    for series_id, source_series in source_map.items():
        target = destination_map.get(series_id)
        if target is None:
            result.added_curves.append(series_id)
            if source_series.group is not None:
                destination.get_or_create_group(source_series.group.name)
            target = TimeSeries(source_series.name)
            destination_map[series_id] = target
            result.curves_updated = True

        for name, value in source_series.attributes.items():
            if target.attributes.get(name) != value:
                target.attributes[name] = value
                result.curves_updated = True

        source_group = source_series.group
        if source_group is not None:
            target_group = target.group
            if target_group is None or target_group.name != source_group.name:
                target_group = destination.get_or_create_group(source_group.name)
                target.group = target_group
            for name, value in source_group.attributes.items():
                if target_group.attributes.get(name) != value:
                    target_group.attributes[name] = value
                    result.curves_updated = True

        if remove_older:
            target.clear()
        if len(source_series) > 0:
            result.data_pushed = True
        target.points.extend(source_series.points)
        target.maximum_range_x = source_series.maximum_range_x
        source_series.clear()


def move_data(
    source: PlotDataMap, destination: PlotDataMap, remove_older: bool
) -> MoveDataResult:
    """Move every point of ``source`` into ``destination``, emptying the source series."""
    result = MoveDataResult()
    for source_map, destination_map in (
        (source.numeric, destination.numeric),
        (source.strings, destination.strings),
        (source.user_defined, destination.user_defined),
    ):
        _move_series(source_map, destination_map, destination, remove_older, result)
    return result