"""Load comma separated files into numeric series of a plot data map."""

from __future__ import annotations

import math
import os
import warnings
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Union

from .plotdata import PlotDataMap, Point, TimeSeries

EXTENSIONS = ("csv",)
SEPARATOR = ","
DEFAULT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

PathLike = Union[str, os.PathLike]


class CsvLoadError(ValueError):
    """Raised when a CSV file cannot be loaded."""


def _lines(path: PathLike) -> Iterator[str]:
    """Lines of the file without their line terminators."""
    try:
        with open(path, encoding="utf-8", newline="") as stream:
            for line in stream:
                if line.endswith("\n"):
                    line = line[:-1]
                if line.endswith("\r"):
                    line = line[:-1]
                yield line
    except OSError as error:
        raise CsvLoadError(f"Failed to open the file [{path}]") from error


def _parse_number(text: str) -> Optional[float]:
    """The number written in ``text``, or None if it is not a number."""
    stripped = text.strip()
    if not stripped or "_" in stripped:
        return None
    try:
        return float(stripped)
    except ValueError:
        return None


def parse_header(path: PathLike) -> tuple[list[str], int]:
    """Column names of the first line and the number of lines that follow it.

    Empty column names are replaced by ``_Column_<index>``.
    """
    lines = _lines(path)
    first_line = next(lines, "")
    names = [
        item if item else f"_Column_{index}"
        for index, item in enumerate(first_line.split(SEPARATOR))
    ]
    row_count = sum(1 for _ in lines)
    return names, row_count


class CsvLoader:
    """Reads CSV files; remembers which column was used as the time axis."""

    name = "DataLoad CSV"
    extensions = EXTENSIONS

    def __init__(self, time_axis: Optional[str] = None) -> None:
        self.time_axis = time_axis

    def _time_index(self, names: list[str], time_column: Optional[str]) -> Optional[int]:
        if time_column is None:
            if self.time_axis and self.time_axis in names:
                return names.index(self.time_axis)
            return None
        if time_column == "":
            return None
        if time_column not in names:
            raise CsvLoadError(f"Unknown time column [{time_column}]")
        self.time_axis = time_column
        return names.index(time_column)

    def read_data(
        self,
        path: PathLike,
        plot_data: PlotDataMap,
        time_column: Optional[str] = None,
        time_format: Optional[str] = None,
    ) -> int:
        """Load ``path`` into ``plot_data``; return the number of data rows read.

        ``time_column`` names the column used as time; ``None`` uses the saved
        time axis (or the row index if there is none) and ``""`` the row index.
        Timestamps that are not numbers are parsed with the ``strptime``
        pattern ``time_format``, as local time.
        """
        names, _ = parse_header(path)
        column_count = len(names)
        series: list[TimeSeries] = [plot_data.add_numeric(name) for name in names]
        time_index = self._time_index(names, time_column)

        lines = _lines(path)
        next(lines, None)

        previous_time = -math.inf
        monotonic_warning = False
        parse_as_date = False
        row_count = 0

        for line in lines:
            items = line.split(SEPARATOR)
            if len(items) != column_count:
                raise CsvLoadError(
                    f"The number of values at line {row_count + 1} is {len(items)},\n"
                    f"but the expected number of columns is {column_count}.\n"
                    "Aborting..."
                )
            t = float(row_count)

            if time_index is not None:
                number = None
                if not parse_as_date:
                    number = _parse_number(items[time_index])
                    if number is None:
                        parse_as_date = True
                if number is None:
                    t = self._parse_date(items[time_index], time_format)
                else:
                    t = number

                if t < previous_time:
                    raise CsvLoadError(
                        "Selected time in not strictly monotonic. "
                        "Loading will be aborted"
                    )
                if t == previous_time:
                    monotonic_warning = True
                previous_time = t

            for target, item in zip(series, items):
                value = _parse_number(item)
                if value is not None:
                    target.push_back(Point(t, value))
            row_count += 1

        if monotonic_warning:
            warnings.warn(
                "Two consecutive samples had the same X value (i.e. time).\n"
                "Since timeseries are assumed to be strictly monotonic, you "
                "might experience undefined behaviours.",
                UserWarning,
                stacklevel=2,
            )
        return row_count

    @staticmethod
    def _parse_date(text: str, time_format: Optional[str]) -> float:
        if not time_format:
            raise CsvLoadError(
                "One of the timestamps is not a valid number, "
                "please provide a time format"
            )
        try:
            stamp = datetime.strptime(text, time_format)
        except ValueError as error:
            raise CsvLoadError("Couldn't parse timestamp. Aborting.") from error
        return round(stamp.timestamp() * 1000) / 1000.0

    def save_state(self) -> dict[str, str]:
        """The loader options as text attributes."""
        return {"time_axis": self.time_axis or ""}

    def load_state(self, state: dict[str, str]) -> bool:
        """Restore options saved by :meth:`save_state`; False if nothing was found."""
        if "time_axis" not in state:
            return False
        self.time_axis = state["time_axis"]
        return True