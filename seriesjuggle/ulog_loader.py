"""Load ULog files into a plot data map and present their metadata as rows."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Union

from .plotdata import PlotDataMap, Point
from .ulog_format import FieldType, ULogError
from .ulog_parser import ULogParser

EXTENSIONS = ("ulg",)

_LEVEL_NAMES = {
    "0": "EMERGENCY",
    "1": "ALERT",
    "2": "CRITICAL",
    "3": "ERROR",
    "4": "WARNING",
    "5": "NOTICE",
    "6": "INFO",
    "7": "DEBUG",
}


def load_ulog(path: Union[str, os.PathLike], plot_data: PlotDataMap) -> ULogParser:
    """Read the ULog file at ``path`` into numeric series; return the parser."""
    try:
        data = Path(path).read_bytes()
    except OSError as error:
        raise ULogError("ULog: Failed to open file") from error

    parser = ULogParser(data)
    for topic, series in parser.timeseries.items():
        for column, values in series.data:
            target = plot_data.add_numeric(topic + column)
            for stamp, value in zip(series.timestamps, values):
                target.push_back(Point(stamp * 0.000001, value))
    return parser


def log_level_name(level: str) -> str:
    """Name of a logged message level; unknown levels show their character code."""
    return _LEVEL_NAMES.get(level, str(ord(level)))


def format_log_time(timestamp: int) -> str:
    """Seconds of a microsecond timestamp, truncated to milliseconds, two decimals."""
    return f"{0.001 * (timestamp // 1000):.2f}"


def parameter_rows(parser: ULogParser) -> list[tuple[str, str]]:
    """Parameter names and values as text, ordered by name."""
    rows = []
    for parameter in parser.parameters:
        if parameter.val_type is FieldType.FLOAT:
            text = f"{parameter.value:.6g}"
        else:
            text = str(int(parameter.value))
        rows.append((parameter.name, text))
    return sorted(rows, key=lambda row: row[0])


def info_rows(parser: ULogParser) -> list[tuple[str, str]]:
    """Information keys and values, ordered by key."""
    return sorted(parser.info.items(), key=lambda row: row[0])