"""Reader for ULog flight logs: definitions, subscriptions, data, logged messages."""

from __future__ import annotations

import logging
import struct
from typing import Optional

from .ulog_format import (
    FILE_HEADER,
    MESSAGE_HEADER,
    FieldType,
    Format,
    MessageLog,
    MessageType,
    Parameter,
    Subscription,
    ULogError,
    ULogTimeseries,
    check_file_header,
    parse_flag_bits,
    parse_format,
    parse_info,
    parse_parameter,
)

_log = logging.getLogger(__name__)

_UINT16 = struct.Struct("<H")
_UINT64 = struct.Struct("<Q")
_DEFAULT_READ_LIMIT = 1 << 60


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


class ULogParser:
    """Parse a whole ULog file held in memory.

    After construction the parsed content is available as ``timeseries``,
    ``parameters``, ``info``, ``logs`` and ``file_start_time``.
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self.file_start_time = check_file_header(self._data)
        self.formats: dict[str, Format] = {}
        self.parameters: list[Parameter] = []
        self.logs: list[MessageLog] = []
        self.read_until_file_position = _DEFAULT_READ_LIMIT
        self._info: dict[str, str] = {}
        self._subscriptions: dict[int, Subscription] = {}
        self._timeseries: dict[str, ULogTimeseries] = {}
        self._names_with_multi_id: set[str] = set()

        data_section_start = self._read_definitions(FILE_HEADER.size)
        self._read_data_section(data_section_start)

    @property
    def timeseries(self) -> dict[str, ULogTimeseries]:
        """Every topic's series, ordered by name."""
        return dict(sorted(self._timeseries.items()))

    @property
    def info(self) -> dict[str, str]:
        """Information key/value pairs, ordered by key."""
        return dict(sorted(self._info.items()))

    @property
    def subscriptions(self) -> dict[int, Subscription]:
        """Subscriptions still active at the end of the file, by message id."""
        return dict(sorted(self._subscriptions.items()))

    def _read_definitions(self, offset: int) -> int:
        """Read the definitions section; return the offset of the first subscription."""
        length = len(self._data)
        while True:
            header = self._data[offset : offset + MESSAGE_HEADER.size]
            start = offset + MESSAGE_HEADER.size
            if len(header) < MESSAGE_HEADER.size or start >= length:
                raise ULogError("ULog: error loading definitions")
            size, msg_type = MESSAGE_HEADER.unpack(header)
            end = start + size
            payload = self._data[start:end]

            if msg_type == MessageType.ADD_LOGGED_MSG:
                return offset
            if msg_type == MessageType.FLAG_BITS:
                appended = parse_flag_bits(payload)
                if appended is not None:
                    self.read_until_file_position = appended
            elif msg_type in (
                MessageType.FORMAT,
                MessageType.PARAMETER,
                MessageType.INFO,
            ):
                if end >= length:
                    raise ULogError("ULog: error loading definitions")
                if msg_type == MessageType.FORMAT:
                    parsed = parse_format(payload)
                    self.formats[parsed.name] = parsed
                elif msg_type == MessageType.PARAMETER:
                    self.parameters.append(parse_parameter(payload))
                else:
                    key, value = parse_info(payload)
                    self._info.setdefault(key, value)
            elif msg_type not in (
                MessageType.INFO_MULTIPLE,
                MessageType.PARAMETER_DEFAULT,
            ):
                _log.debug(
                    "unknown log definition type %d, size %d (offset %d)",
                    msg_type,
                    size,
                    start,
                )
            offset = end

    def _read_data_section(self, offset: int) -> None:
        length = len(self._data)
        while offset < length:
            header = self._data[offset : offset + MESSAGE_HEADER.size]
            if len(header) < MESSAGE_HEADER.size:
                break
            size, msg_type = MESSAGE_HEADER.unpack(header)
            start = offset + MESSAGE_HEADER.size
            offset = start + size
            payload = self._data[start:offset]
            if len(payload) < size:
                break

            if msg_type == MessageType.ADD_LOGGED_MSG:
                self._add_subscription(payload)
            elif msg_type == MessageType.REMOVE_LOGGED_MSG:
                if len(payload) >= _UINT16.size:
                    (msg_id,) = _UINT16.unpack_from(payload, 0)
                    self._subscriptions.pop(msg_id, None)
            elif msg_type == MessageType.DATA:
                if len(payload) < _UINT16.size:
                    raise ULogError("truncated data message")
                (msg_id,) = _UINT16.unpack_from(payload, 0)
                subscription = self._subscriptions.get(msg_id)
                if subscription is not None:
                    self._parse_data_message(subscription, payload[_UINT16.size :])
            elif msg_type == MessageType.LOGGING:
                self._add_log(payload)
            elif msg_type == MessageType.PARAMETER:
                _log.info("PARAMETER changed at run-time. Ignored")

    def _add_subscription(self, payload: bytes) -> None:
        if len(payload) < 3:
            raise ULogError("truncated subscription message")
        (msg_id,) = _UINT16.unpack_from(payload, 1)
        name = _text(payload[3:])
        subscription = Subscription(
            msg_id=msg_id,
            multi_id=payload[0],
            message_name=name,
            format=self.formats.get(name),
        )
        self._subscriptions.setdefault(msg_id, subscription)
        if subscription.multi_id > 0:
            self._names_with_multi_id.add(name)

    def _add_log(self, payload: bytes) -> None:
        if len(payload) < 1 + _UINT64.size:
            raise ULogError("truncated logging message")
        (timestamp,) = _UINT64.unpack_from(payload, 1)
        self.logs.append(
            MessageLog(
                level=chr(payload[0]),
                timestamp=timestamp,
                msg=_text(payload[1 + _UINT64.size :]),
            )
        )

    def _parse_data_message(self, subscription: Subscription, message: bytes) -> None:
        if subscription.format is None:
            raise ULogError(f"no format for message {subscription.message_name!r}")
        name = subscription.message_name
        if name in self._names_with_multi_id:
            name += f".{subscription.multi_id:02d}"

        series = self._timeseries.get(name)
        if series is None:
            series = self._create_timeseries(subscription.format)
            self._timeseries[name] = series

        if len(message) < _UINT64.size:
            raise ULogError("truncated data message")
        (timestamp,) = _UINT64.unpack_from(message, 0)
        series.timestamps.append(timestamp)
        self._parse_fields(series, subscription.format, message, _UINT64.size, 0)

    def _parse_fields(
        self,
        series: ULogTimeseries,
        fmt: Format,
        message: bytes,
        offset: int,
        index: int,
    ) -> tuple[int, int]:
        """Append the values of ``fmt`` read at ``offset``; return new offset and column."""
        for fld in fmt.fields:
            if fld.field_name.startswith("_padding"):
                offset += fld.array_size
                continue
            for _ in range(fld.array_size):
                if fld.type is FieldType.OTHER:
                    child = self._format(fld.other_type_id)
                    offset += _UINT64.size  # nested timestamp
                    offset, index = self._parse_fields(
                        series, child, message, offset, index
                    )
                else:
                    series.data[index][1].append(fld.type.unpack(message, offset))
                    offset += fld.type.size
                    index += 1
        return offset, index

    def _format(self, name: str) -> Format:
        try:
            return self.formats[name]
        except KeyError:
            raise ULogError(f"unknown nested format {name!r}") from None

    def _create_timeseries(self, fmt: Format) -> ULogTimeseries:
        series = ULogTimeseries()

        def append_columns(current: Format, prefix: str) -> None:
            for fld in current.fields:
                if fld.field_name.startswith("_padding"):
                    continue
                column = f"{prefix}/{fld.field_name}"
                for position in range(fld.array_size):
                    suffix = f".{position:02d}" if fld.array_size > 1 else ""
                    if fld.type is FieldType.OTHER:
                        append_columns(self._format(fld.other_type_id), column + suffix)
                    else:
                        series.data.append((column + suffix, []))

        append_columns(fmt, "")
        return series

    def subscription(self, msg_id: int) -> Optional[Subscription]:
        """The active subscription for ``msg_id``, if any."""
        return self._subscriptions.get(msg_id)