import time

from seriesjuggle.sample_streamer import SERIES_COUNT, DataStreamSample


def test_series_are_created():
    streamer = DataStreamSample(seed=1)
    numeric = streamer.data_map.numeric
    assert len(numeric) == SERIES_COUNT + 2
    assert "tc/default" in numeric and "tc/red" in numeric
    assert "color" in streamer.data_map.strings
    assert numeric["data_vect/0"].attributes.get("label_color") == "red"
    assert numeric["data_vect/5"].attributes.get("label_color") == "red"
    assert "label_color" not in numeric["data_vect/1"].attributes
    assert numeric["tc/red"].attributes["text_color"] == "red"
    assert streamer.data_map.groups["tc"].attributes["text_color"] == "blue"


def test_parameters_are_in_range():
    streamer = DataStreamSample(seed=3)
    for params in streamer.parameters.values():
        assert -3 <= params.a <= 3
        assert 0 <= params.b <= 3
        assert 0 <= params.c <= 3
        assert 0 <= params.d <= 20


def test_same_seed_same_parameters():
    first = DataStreamSample(seed=7).parameters
    second = DataStreamSample(seed=7).parameters
    assert len(first) == SERIES_COUNT
    assert list(first) == [f"data_vect/{i}" for i in range(SERIES_COUNT)]
    assert first["data_vect/0"] == second["data_vect/0"]
    assert first == second
    assert DataStreamSample(seed=8).parameters["data_vect/0"] != first["data_vect/0"]


def test_single_cycle_values():
    streamer = DataStreamSample(seed=2)
    streamer.push_single_cycle()
    numeric = streamer.data_map.numeric
    for name, params in streamer.parameters.items():
        series = numeric[name]
        assert len(series) == 1
        assert abs(series[0].y - params.d) <= abs(params.a) + 1e-9
    assert numeric["tc/default"][0].y == 0.0
    assert numeric["tc/red"][0].y == 0.0


def test_counter_and_colors():
    streamer = DataStreamSample(seed=0)
    for _ in range(21):
        streamer.push_single_cycle()
    colors = [p.y for p in streamer.data_map.strings["color"]]
    assert colors[:10] == ["RED"] * 10
    assert colors[10:20] == ["BLUE"] * 10
    assert colors[20] == "GREEN"
    counts = [p.y for p in streamer.data_map.numeric["tc/default"]]
    assert counts == [float(i) for i in range(21)]
    stamps = [p.x for p in streamer.data_map.numeric["tc/default"]]
    assert stamps == sorted(stamps)


def test_start_and_shutdown():
    received = []
    streamer = DataStreamSample(seed=4)
    streamer.on_data_received = lambda: received.append(1)
    assert streamer.start() is True
    assert streamer.is_running is True
    time.sleep(0.1)
    streamer.shutdown()
    assert streamer.is_running is False
    length = len(streamer.data_map.numeric["tc/default"])
    assert length >= 2
    assert len(received) >= 1
    time.sleep(0.05)
    assert len(streamer.data_map.numeric["tc/default"]) == length


def test_context_manager():
    with DataStreamSample(seed=5) as streamer:
        assert streamer.is_running is True
    assert streamer.is_running is False
    assert len(streamer.data_map.numeric["data_vect/0"]) >= 1