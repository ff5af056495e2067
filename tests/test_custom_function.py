import xml.etree.ElementTree as ET

import pytest

from seriesjuggle.custom_function import (
    CustomFunction,
    SnippetData,
    SnippetParseError,
    export_snippets,
    snippet_from_xml,
    snippet_to_xml,
    snippets_from_xml,
)
from seriesjuggle.plotdata import PlotDataMap, Point


class Doubler(CustomFunction):
    def calculate_points(self, source, channels, index):
        p = source[index]
        extra = sum(ch[ch.index_from_x(p.x)].y for ch in channels)
        return [Point(p.x, 2 * p.y + extra)]


class Failing(CustomFunction):
    def calculate_points(self, source, channels, index):
        raise RuntimeError("boom")


def _snippet(**kwargs):
    base = dict(
        name="double",
        global_vars="k = 2",
        function="return value * k",
        linked_source="src",
    )
    base.update(kwargs)
    return SnippetData(**base)


def _data():
    data = PlotDataMap()
    src = data.add_numeric("src")
    for x, y in [(0.0, 1.0), (1.0, 2.0), (2.0, 3.0)]:
        src.push_back((x, y))
    src.maximum_range_x = 7.0
    return data


def test_snippet_xml_round_trip():
    snippet = _snippet(additional_sources=["a", "b"])
    assert snippet_from_xml(snippet_to_xml(snippet)) == snippet


def test_snippet_xml_layout():
    element = snippet_to_xml(_snippet(additional_sources=["a", "b"]))
    assert element.tag == "snippet"
    assert element.get("name") == "double"
    assert [child.tag for child in element] == [
        "global",
        "function",
        "linkedSource",
        "additionalSources",
    ]
    assert [c.tag for c in element.find("additionalSources")] == ["v1", "v2"]


def test_no_additional_sources_element_when_empty():
    assert snippet_to_xml(_snippet()).find("additionalSources") is None


def test_snippet_text_is_trimmed():
    element = ET.fromstring(
        "<snippet name='n'><function>\n  return value \n</function></snippet>"
    )
    snippet = snippet_from_xml(element)
    assert snippet.function == "return value"
    assert snippet.global_vars == ""


def test_additional_sources_stop_at_gap():
    element = ET.fromstring(
        "<snippet name='n'><additionalSources><v1>a</v1><v3>c</v3>"
        "</additionalSources></snippet>"
    )
    assert snippet_from_xml(element).additional_sources == ["a"]


def test_snippets_round_trip_sorted():
    snippets = {"z": _snippet(name="z"), "a": _snippet(name="a")}
    text = ET.tostring(export_snippets(snippets))
    loaded = snippets_from_xml(text)
    assert list(loaded) == ["a", "z"]
    assert loaded == snippets


def test_snippets_from_empty_text():
    assert snippets_from_xml("") == {}


def test_snippets_first_duplicate_wins():
    root = ET.Element("snippets")
    root.append(snippet_to_xml(_snippet(function="first")))
    root.append(snippet_to_xml(_snippet(function="second")))
    assert snippets_from_xml(root)["double"].function == "first"


def test_snippets_parse_error():
    with pytest.raises(SnippetParseError):
        snippets_from_xml("<snippets>")


def test_calculate_and_add():
    data = _data()
    function = Doubler(_snippet())
    function.calculate_and_add(data)
    src = data.numeric["src"]
    result = data.numeric["double"]
    assert list(result) == [Point(p.x, 2 * p.y) for p in src]
    assert result.maximum_range_x == src.maximum_range_x


def test_calculate_uses_channels():
    data = _data()
    other = data.add_numeric("other")
    for p in data.numeric["src"]:
        other.push_back((p.x, 100.0))
    function = Doubler(_snippet(additional_sources=["other"]))
    function.calculate_and_add(data)
    src = data.numeric["src"]
    assert [p.y for p in data.numeric["double"]] == [2 * p.y + 100.0 for p in src]


def test_calculate_only_appends_newer_points():
    data = _data()
    function = Doubler(_snippet())
    destination = data.add_numeric("out")
    destination.push_back((1.0, -1.0))
    function.calculate(data, destination)
    assert [p.x for p in destination] == [1.0, 2.0]


def test_calculate_missing_source_keeps_empty():
    data = PlotDataMap()
    function = Doubler(_snippet())
    function.calculate_and_add(data)
    assert len(data.numeric["double"]) == 0


def test_invalid_channel_removes_new_series():
    data = _data()
    function = Doubler(_snippet(additional_sources=["missing"]))
    with pytest.raises(ValueError, match="Invalid channel name"):
        function.calculate_and_add(data)
    assert "double" not in data.numeric


def test_failure_keeps_existing_series():
    data = _data()
    data.add_numeric("double")
    with pytest.raises(RuntimeError):
        Failing(_snippet()).calculate_and_add(data)
    assert "double" in data.numeric


def test_to_xml_matches_snippet():
    snippet = _snippet()
    assert snippet_from_xml(Doubler(snippet).to_xml()) == snippet