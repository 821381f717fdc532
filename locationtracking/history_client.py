"""RPC client and server glue for the location history service."""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from typing import Any, Callable

import grpc

from .model import Location, LocationInfo

SERVICE_NAME = "locationhistory.LocationHistoryManagement"
_UPDATE_METHOD = "UpdateUserLocation"
_UPDATE_PATH = f"/{SERVICE_NAME}/{_UPDATE_METHOD}"


def _varint(value: int) -> bytes:
    value &= (1 << 64) - 1
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = shift = 0
    while True:
        if pos >= len(data):
            raise ValueError("truncated varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift >= 70:
            raise ValueError("varint too long")


def _field(number: int, payload: bytes) -> bytes:
    return _varint(number << 3 | 2) + _varint(len(payload)) + payload


def _encode_location(location: Location) -> bytes:
    out = b""
    if location.type:
        out += _field(1, location.type.encode("utf-8"))
    if location.coordinates:
        out += _field(2, b"".join(struct.pack("<d", c) for c in location.coordinates))
    return out


def encode_location_info(info: LocationInfo) -> bytes:
    """Encode a location update as a protobuf message (distance is not sent)."""
    out = b""
    if info.username:
        out += _field(1, info.username.encode("utf-8"))
    out += _field(2, _encode_location(info.location))
    if info.timestamp:
        out += _varint(3 << 3) + _varint(info.timestamp)
    return out


def _fields(data: bytes):
    pos = 0
    while pos < len(data):
        key, pos = _read_varint(data, pos)
        number, wire = key >> 3, key & 7
        if wire == 0:
            value, pos = _read_varint(data, pos)
        elif wire == 1:
            value, pos = data[pos:pos + 8], pos + 8
        elif wire == 2:
            length, pos = _read_varint(data, pos)
            value, pos = data[pos:pos + length], pos + length
        elif wire == 5:
            value, pos = data[pos:pos + 4], pos + 4
        else:
            raise ValueError(f"unsupported wire type {wire}")
        if pos > len(data):
            raise ValueError("truncated message")
        yield number, wire, value


def _decode_location(data: bytes) -> Location:
    location = Location(type="", coordinates=[])
    for number, wire, value in _fields(data):
        if number == 1 and wire == 2:
            location.type = value.decode("utf-8")
        elif number == 2 and wire == 2:
            if len(value) % 8:
                raise ValueError("bad packed double field")
            location.coordinates.extend(c for (c,) in struct.iter_unpack("<d", value))
        elif number == 2 and wire == 1:
            location.coordinates.append(struct.unpack("<d", value)[0])
    return location


def decode_location_info(data: bytes) -> LocationInfo:
    info = LocationInfo(location=Location(type="", coordinates=[]))
    for number, wire, value in _fields(data):
        if number == 1 and wire == 2:
            info.username = value.decode("utf-8")
        elif number == 2 and wire == 2:
            info.location = _decode_location(value)
        elif number == 3 and wire == 0:
            info.timestamp = value - (1 << 64) if value >= 1 << 63 else value
    return info


class GRPCClient(ABC):
    @abstractmethod
    def close(self) -> None: ...

    @abstractmethod
    def update_user_location(self, info: LocationInfo, timeout: float | None = None) -> None: ...


class LHMGRPCClient(GRPCClient):
    """Client for the history service over an RPC channel."""

    def __init__(self, channel: grpc.Channel) -> None:
        self._channel = channel
        self._update = channel.unary_unary(
            _UPDATE_PATH,
            request_serializer=encode_location_info,
            response_deserializer=lambda _data: None,
        )

    def close(self) -> None:
        self._channel.close()

    def update_user_location(self, info, timeout=None) -> None:
        self._update(info, timeout=timeout)


class MockGRPCClient(GRPCClient):
    """Client that accepts every update and remembers it."""

    def __init__(self) -> None:
        self.updates: list[LocationInfo] = []
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def update_user_location(self, info, timeout=None) -> None:
        self.updates.append(info)


def create_client(target: str) -> LHMGRPCClient:
    return LHMGRPCClient(grpc.insecure_channel(target))


def add_update_user_location_handler(server: Any, handler: Callable[[LocationInfo], None]) -> None:
    """Register handler(info) as the UpdateUserLocation method on server."""

    def call(request: LocationInfo, _context: Any) -> None:
        handler(request)
        return None

    method = grpc.unary_unary_rpc_method_handler(
        call,
        request_deserializer=decode_location_info,
        response_serializer=lambda _response: b"",
    )
    server.add_generic_rpc_handlers(
        (grpc.method_handlers_generic_handler(SERVICE_NAME, {_UPDATE_METHOD: method}),)
    )