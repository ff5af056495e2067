import struct

import pytest

from seriesjuggle.ulog_format import FieldType, ULogError
from seriesjuggle.ulog_parser import ULogParser

START_TIME = 1000
HEADER = b"ULog\x01\x12\x35\x01" + struct.pack("<Q", START_TIME)
FORMAT = b"vehicle_status:uint64_t timestamp;float x;uint8_t[2] arr;uint8_t _padding0;"


def message(kind: bytes, payload: bytes) -> bytes:
    return struct.pack("<HB", len(payload), kind[0]) + payload


def keyed(key: str, value: bytes) -> bytes:
    raw = key.encode()
    return bytes([len(raw)]) + raw + value


def add(msg_id: int, name: str, multi_id: int = 0) -> bytes:
    return message(b"A", bytes([multi_id]) + struct.pack("<H", msg_id) + name.encode())


def data(msg_id: int, stamp: int, x: float, a: int, b: int) -> bytes:
    return message(b"D", struct.pack("<HQf3B", msg_id, stamp, x, a, b, 0))


def definitions() -> bytes:
    return b"".join(
        [
            message(b"B", bytes(40)),
            message(b"F", FORMAT),
            message(b"I", keyed("char[3] sys_name", b"abc")),
            message(b"P", keyed("int32_t SYS_ID", struct.pack("<i", 7))),
            message(b"P", keyed("float GAIN", struct.pack("<f", 0.5))),
        ]
    )


def sample_log() -> bytes:
    return (
        HEADER
        + definitions()
        + add(1, "vehicle_status")
        + data(1, 100, 0.5, 1, 2)
        + data(1, 200, 2.0, 3, 4)
        + message(b"L", b"6" + struct.pack("<Q", 300) + b"hello")
    )


def test_start_time_is_read_from_header():
    assert ULogParser(sample_log()).file_start_time == START_TIME


def test_columns_and_values():
    parser = ULogParser(sample_log())
    series = parser.timeseries["vehicle_status"]
    assert list(parser.timeseries) == ["vehicle_status"]
    assert [name for name, _ in series.data] == ["/x", "/arr.00", "/arr.01"]
    assert dict(series.data) == {
        "/x": [0.5, 2.0],
        "/arr.00": [1.0, 3.0],
        "/arr.01": [2.0, 4.0],
    }
    assert series.timestamps == [100, 200]


def test_logged_messages():
    (log,) = ULogParser(sample_log()).logs
    assert (log.level, log.timestamp, log.msg) == ("6", 300, "hello")


def test_info_and_parameters():
    parser = ULogParser(sample_log())
    assert parser.info == {"sys_name": "abc"}
    assert [(p.name, p.value, p.val_type) for p in parser.parameters] == [
        ("SYS_ID", 7, FieldType.INT32),
        ("GAIN", 0.5, FieldType.FLOAT),
    ]


def test_duplicate_info_key_keeps_first():
    log = (
        HEADER
        + message(b"I", keyed("char[3] sys_name", b"abc"))
        + message(b"I", keyed("char[3] sys_name", b"xyz"))
        + add(1, "x")
    )
    assert ULogParser(log).info["sys_name"] == "abc"


def test_multi_id_suffix():
    log = HEADER + message(b"F", FORMAT) + add(3, "vehicle_status", multi_id=1)
    log += data(3, 10, 1.0, 0, 0)
    assert list(ULogParser(log).timeseries) == ["vehicle_status.01"]


def test_nested_formats():
    inner = b"inner:uint64_t timestamp;float a"
    outer = b"outer:uint64_t timestamp;inner[2] in"
    body = struct.pack("<HQ", 2, 50) + struct.pack("<Qf", 0, 1.5) + struct.pack("<Qf", 0, 2.5)
    log = HEADER + message(b"F", inner) + message(b"F", outer) + add(2, "outer")
    log += message(b"D", body)
    series = ULogParser(log).timeseries["outer"]
    assert series.data == [("/in.00/a", [1.5]), ("/in.01/a", [2.5])]


def test_data_for_unknown_subscription_is_ignored():
    log = HEADER + message(b"F", FORMAT) + add(1, "vehicle_status")
    log += data(9, 10, 1.0, 0, 0)
    assert ULogParser(log).timeseries == {}


def test_removed_subscription_stops_data():
    log = HEADER + message(b"F", FORMAT) + add(1, "vehicle_status")
    log += data(1, 10, 1.0, 0, 0)
    log += message(b"R", struct.pack("<H", 1))
    log += data(1, 20, 2.0, 0, 0)
    parser = ULogParser(log)
    assert parser.timeseries["vehicle_status"].timestamps == [10]
    assert parser.subscriptions == {}


def test_wrong_magic():
    log = b"XLog\x01\x12\x35\x01" + sample_log()[8:]
    with pytest.raises(ULogError, match="wrong header"):
        ULogParser(log)


def test_missing_subscription_section():
    with pytest.raises(ULogError, match="error loading definitions"):
        ULogParser(HEADER + message(b"F", FORMAT))


def test_appended_data_offset_is_recorded():
    flags = bytes(8) + bytes([1]) + bytes(7) + struct.pack("<3Q", 1234, 0, 0)
    log = HEADER + message(b"B", flags) + add(1, "x")
    assert ULogParser(log).read_until_file_position == 1234


def test_unknown_incompat_bits_rejected():
    flags = bytes(8) + bytes([2]) + bytes(31)
    with pytest.raises(ULogError):
        ULogParser(HEADER + message(b"B", flags) + add(1, "x"))


def test_unknown_parameter_type():
    log = HEADER + message(b"P", keyed("double X", bytes(8))) + add(1, "x")
    with pytest.raises(ULogError, match="unknown parameter type"):
        ULogParser(log)