"""User-defined series computed from other series, and their XML snippets."""

from __future__ import annotations

import sys
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Union

from .plotdata import PlotDataMap, Point, TimeSeries


class SnippetParseError(ValueError):
    """Raised when a snippet library is not well-formed XML."""


@dataclass
class SnippetData:
    """The definition of a custom function."""

    name: str = ""
    global_vars: str = ""
    function: str = ""
    linked_source: str = ""
    additional_sources: list[str] = field(default_factory=list)


def _child_text(element: ET.Element, tag: str) -> str:
    child = element.find(tag)
    return "" if child is None else "".join(child.itertext())


def snippet_from_xml(element: ET.Element) -> SnippetData:
    """Read a ``<snippet>`` element."""
    snippet = SnippetData(
        name=element.get("name", ""),
        global_vars=_child_text(element, "global").strip(),
        function=_child_text(element, "function").strip(),
        linked_source=_child_text(element, "linkedSource").strip(),
    )
    additional = element.find("additionalSources")
    if additional is not None:
        count = 1
        source = additional.find(f"v{count}")
        while source is not None:
            snippet.additional_sources.append("".join(source.itertext()))
            count += 1
            source = additional.find(f"v{count}")
    return snippet


def snippet_to_xml(snippet: SnippetData) -> ET.Element:
    """Build a ``<snippet>`` element."""
    element = ET.Element("snippet", {"name": snippet.name})
    for tag, text in (
        ("global", snippet.global_vars),
        ("function", snippet.function),
        ("linkedSource", snippet.linked_source),
    ):
        ET.SubElement(element, tag).text = text
    if snippet.additional_sources:
        sources = ET.SubElement(element, "additionalSources")
        for count, curve_name in enumerate(snippet.additional_sources, start=1):
            ET.SubElement(sources, f"v{count}").text = curve_name
    return element


def snippets_from_xml(
    source: Union[str, bytes, ET.Element],
) -> dict[str, SnippetData]:
    """Read every ``<snippet>`` under a root element or an XML text, sorted by name."""
    if isinstance(source, ET.Element):
        root = source
    else:
        if not source:
            return {}
        try:
            root = ET.fromstring(source)
        except ET.ParseError as error:
            line = error.position[0]
            raise SnippetParseError(
                f"Failed to parse snippets (xml), error {error} at line {line}"
            ) from error
    snippets: dict[str, SnippetData] = {}
    for element in root.findall("snippet"):
        snippet = snippet_from_xml(element)
        snippets.setdefault(snippet.name, snippet)
    return dict(sorted(snippets.items()))


def export_snippets(snippets: dict[str, SnippetData]) -> ET.Element:
    """Build a ``<snippets>`` element holding every snippet, ordered by name."""
    root = ET.Element("snippets")
    for name in sorted(snippets):
        root.append(snippet_to_xml(snippets[name]))
    return root


class CustomFunction(ABC):
    """A series computed point by point from a linked source and extra channels."""

    def __init__(self, snippet: SnippetData) -> None:
        self.snippet = snippet
        self.linked_plot_name = snippet.linked_source
        self.name = snippet.name
        self.used_channels = list(snippet.additional_sources)

    def calculate_and_add(self, plot_data: PlotDataMap) -> None:
        """Recompute this function into its own numeric series of ``plot_data``."""
        destination = plot_data.numeric.get(self.name)
        newly_added = destination is None
        if destination is None:
            destination = plot_data.add_numeric(self.name)
        destination.clear()
        try:
            self.calculate(plot_data, destination)
        except Exception:
            if newly_added:
                del plot_data.numeric[self.name]
            raise

    def calculate(self, plot_data: PlotDataMap, destination: TimeSeries) -> None:
        """Append to ``destination`` the points newer than its last one."""
        source = plot_data.numeric.get(self.linked_plot_name)
        if source is None or len(source) == 0:
            return
        destination.maximum_range_x = source.maximum_range_x

        channels = []
        for channel in self.used_channels:
            try:
                channels.append(plot_data.numeric[channel])
            except KeyError:
                raise ValueError("Invalid channel name") from None

        last_stamp = destination[-1].x if len(destination) else -sys.float_info.max
        for index, point in enumerate(source):
            if point.x > last_stamp:
                for new_point in self.calculate_points(source, channels, index):
                    destination.push_back(new_point)

    @abstractmethod
    def calculate_points(
        self, source: TimeSeries, channels: list[TimeSeries], index: int
    ) -> Iterable[Point]:
        """Points produced by the sample at ``index`` of ``source``."""

    def to_xml(self) -> ET.Element:
        """The snippet of this function as XML."""
        return snippet_to_xml(self.snippet)