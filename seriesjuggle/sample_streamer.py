"""A streamer that produces synthetic sine waves, for trying things out."""

from __future__ import annotations

import math
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .plotdata import PlotDataMap, Point

SERIES_COUNT = 150
PERIOD = 0.02  # 50 Hz
COLORS = ("RED", "BLUE", "GREEN")


@dataclass(frozen=True)
class _Parameters:
    a: float
    b: float
    c: float
    d: float

    def value(self, stamp: float) -> float:
        return self.a * math.sin(self.b * stamp + self.c) + self.d


class DataStreamSample:
    """Pushes a new sample to every series of ``data_map`` at 50 Hz.

    Set ``on_data_received`` to a callable to be notified after each cycle
    pushed by the background loop.
    """

    name = "Dummy Streamer"
    is_debug_plugin = True

    def __init__(self, seed: Optional[int] = None) -> None:
        self.data_map = PlotDataMap()
        self.mutex = threading.Lock()
        self.on_data_received: Optional[Callable[[], None]] = None
        self._random = random.Random(seed)
        self._parameters: dict[str, _Parameters] = {}
        self._count = 0
        self._initial_wall: Optional[float] = None
        self._initial_perf = 0.0
        self._running = False
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        rand = self._random.random
        for index in range(SERIES_COUNT):
            name = f"data_vect/{index}"
            self._parameters[name] = _Parameters(
                a=6 * rand() - 3, b=3 * rand(), c=3 * rand(), d=20 * rand()
            )
            series = self.data_map.add_numeric(name)
            if index % 5 == 0:
                series.attributes["label_color"] = "red"

        self.data_map.add_string_series("color")

        tc_group = self.data_map.get_or_create_group("tc")
        tc_group.attributes["text_color"] = "blue"
        self.data_map.add_numeric("tc/default")
        tc_red = self.data_map.add_numeric("tc/red")
        tc_red.attributes["text_color"] = "red"

    @property
    def parameters(self) -> dict[str, _Parameters]:
        """Amplitude, frequency, phase and offset of every sine wave."""
        return dict(self._parameters)

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """Push one cycle and start the background loop."""
        if self._running:
            return True
        self._running = True
        self._stop.clear()
        self.push_single_cycle()
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()
        return True

    def shutdown(self) -> None:
        """Stop the background loop and wait for it to end."""
        self._running = False
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def __enter__(self) -> "DataStreamSample":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _stamp(self) -> float:
        now = time.perf_counter()
        if self._initial_wall is None:
            self._initial_wall = time.time()
            self._initial_perf = now
        return self._initial_wall + (now - self._initial_perf)

    def push_single_cycle(self) -> None:
        """Append one sample, stamped now, to every series."""
        with self.mutex:
            stamp = self._stamp()
            numeric = self.data_map.numeric
            for name, parameters in self._parameters.items():
                numeric[name].push_back(Point(stamp, parameters.value(stamp)))
            self.data_map.strings["color"].push_back(
                Point(stamp, COLORS[(self._count // 10) % 3])
            )
            numeric["tc/default"].push_back(Point(stamp, float(self._count)))
            numeric["tc/red"].push_back(Point(stamp, float(self._count)))
            self._count += 1

    def _loop(self) -> None:
        while self._running:
            started = time.monotonic()
            self.push_single_cycle()
            if self.on_data_received is not None:
                self.on_data_received()
            remaining = PERIOD - (time.monotonic() - started)
            if remaining > 0 and self._stop.wait(remaining):
                break