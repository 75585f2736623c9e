"""Core value types: addresses, hashes, Keccak-256 and ether units."""

from __future__ import annotations

from Crypto.Hash import keccak

ADDRESS_LENGTH = 20
HASH_LENGTH = 32


def keccak256(data: bytes) -> bytes:
    """Return the legacy Keccak-256 digest of ``data``."""
    return keccak.new(digest_bits=256, data=bytes(data)).digest()


class _FixedBytes(bytes):
    """Immutable byte string of a fixed length."""

    length = 0

    def __new__(cls, data: bytes | bytearray | None = None):
        if data is None:
            data = bytes(cls.length)
        elif isinstance(data, int):
            raise TypeError(f"{cls.__name__} expects bytes, not int")
        raw = bytes(data)
        if len(raw) != cls.length:
            raise ValueError(
                f"{cls.__name__} must be {cls.length} bytes but {len(raw)} given"
            )
        return super().__new__(cls, raw)

    def __str__(self) -> str:
        return "0x" + self.hex()

    def __repr__(self) -> str:
        return f"{type(self).__name__}('{self}')"


class Address(_FixedBytes):
    """A 20-byte account address; ``str()`` gives the checksummed form."""

    length = ADDRESS_LENGTH

    def __str__(self) -> str:
        lower = self.hex()
        digest = keccak256(lower.encode("ascii")).hex()
        chars = (
            char.upper() if char.isalpha() and int(nibble, 16) >= 8 else char
            for char, nibble in zip(lower, digest)
        )
        return "0x" + "".join(chars)


class Hash(_FixedBytes):
    """A 32-byte hash; ``str()`` gives lower-case hex with a 0x prefix."""

    length = HASH_LENGTH


def _loose_hex(text: str) -> bytes:
    if text.startswith(("0x", "0X")):
        text = text[2:]
    if len(text) % 2:
        text = "0" + text
    return bytes.fromhex(text)


def _fit(data: bytes, size: int) -> bytes:
    data = bytes(data)
    if len(data) > size:
        return data[-size:]
    return data.rjust(size, b"\x00")


def bytes_to_address(data: bytes) -> Address:
    """Build an address from the rightmost 20 bytes, left-padding short input."""
    return Address(_fit(data, ADDRESS_LENGTH))


def bytes_to_hash(data: bytes) -> Hash:
    """Build a hash from the rightmost 32 bytes, left-padding short input."""
    return Hash(_fit(data, HASH_LENGTH))


def hex_to_address(text: str) -> Address:
    """Build an address from a hex string of any length."""
    return bytes_to_address(_loose_hex(text))


def hex_to_hash(text: str) -> Hash:
    """Build a hash from a hex string of any length."""
    return bytes_to_hash(_loose_hex(text))


def _strict_hex(text: str | bytes, size: int) -> bytes:
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("ascii")
    text = text.strip('"')
    if not text.startswith("0x"):
        raise ValueError("0x prefix not found")
    raw = bytes.fromhex(text[2:])
    if len(raw) != size:
        raise ValueError(f"length {len(raw)} is not correct, expected {size}")
    return raw


def parse_address(text: str | bytes) -> Address:
    """Parse a 0x-prefixed hex address of exactly 20 bytes."""
    return Address(_strict_hex(text, ADDRESS_LENGTH))


def parse_hash(text: str | bytes) -> Hash:
    """Parse a 0x-prefixed hex hash of exactly 32 bytes."""
    return Hash(_strict_hex(text, HASH_LENGTH))


def _convert(value: int, decimals: int) -> int:
    if value < 0:
        raise ValueError("value must not be negative")
    return value * 10**decimals


def ether(value: int) -> int:
    """Convert whole ether to wei (18 decimals)."""
    return _convert(value, 18)


def gwei(value: int) -> int:
    """Convert gwei to wei (9 decimals)."""
    return _convert(value, 9)