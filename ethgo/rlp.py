"""Recursive Length Prefix encoding and decoding."""

from __future__ import annotations

from typing import Union

Item = Union[bytes, list["Item"]]


class RLPError(ValueError):
    """Raised when RLP data cannot be encoded or decoded."""


def int_to_bytes(value: int) -> bytes:
    """Return the minimal big-endian encoding of a non-negative integer."""
    if value < 0:
        raise ValueError("cannot encode a negative integer")
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def bytes_to_int(data: bytes) -> int:
    """Interpret ``data`` as a big-endian unsigned integer."""
    return int.from_bytes(data, "big")


def _prefix(length: int, offset: int) -> bytes:
    if length < 56:
        return bytes([offset + length])
    encoded = int_to_bytes(length)
    return bytes([offset + 55 + len(encoded)]) + encoded


def encode(item) -> bytes:
    """Encode bytes, non-negative ints and (nested) lists of them."""
    if isinstance(item, int):
        item = int_to_bytes(item)
    if isinstance(item, (bytes, bytearray, memoryview)):
        data = bytes(item)
        if len(data) == 1 and data[0] < 0x80:
            return data
        return _prefix(len(data), 0x80) + data
    if isinstance(item, (list, tuple)):
        payload = b"".join(encode(element) for element in item)
        return _prefix(len(payload), 0xC0) + payload
    raise TypeError(f"cannot RLP encode {type(item).__name__}")


def _read_length(data: bytes, start: int, size: int, limit: int) -> int:
    if start + size > limit:
        raise RLPError("unexpected end of input in length")
    raw = data[start : start + size]
    if raw[0] == 0:
        raise RLPError("length has leading zeros")
    length = bytes_to_int(raw)
    if length < 56:
        raise RLPError("long form used for a short length")
    return length


def _decode_at(data: bytes, pos: int, limit: int) -> tuple[Item, int]:
    if pos >= limit:
        raise RLPError("unexpected end of input")
    prefix = data[pos]
    if prefix < 0x80:
        return data[pos : pos + 1], pos + 1

    is_list = prefix >= 0xC0
    base = 0xC0 if is_list else 0x80
    short = prefix - base
    if short < 56:
        length, start = short, pos + 1
    else:
        size = short - 55
        length = _read_length(data, pos + 1, size, limit)
        start = pos + 1 + size
    end = start + length
    if end > limit:
        raise RLPError("unexpected end of input")

    if not is_list:
        payload = data[start:end]
        if short == 1 and payload[0] < 0x80:
            raise RLPError("single byte below 0x80 must not be prefixed")
        return payload, end

    elements: list[Item] = []
    cursor = start
    while cursor < end:
        element, cursor = _decode_at(data, cursor, end)
        elements.append(element)
    return elements, end


def decode(data: bytes) -> Item:
    """Decode a single RLP item; trailing bytes are an error."""
    data = bytes(data)
    item, end = _decode_at(data, 0, len(data))
    if end != len(data):
        raise RLPError(f"{len(data) - end} trailing bytes after RLP item")
    return item