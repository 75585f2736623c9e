import pytest

from ethgo.primitives import (
    Address,
    Hash,
    bytes_to_address,
    bytes_to_hash,
    ether,
    gwei,
    hex_to_address,
    hex_to_hash,
    keccak256,
    parse_address,
    parse_hash,
)


def test_keccak256_empty_input():
    assert keccak256(b"").hex() == (
        "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    )


def test_keccak256_digest_length_and_determinism():
    assert len(keccak256(b"abc")) == 32
    assert keccak256(b"abc") == keccak256(bytearray(b"abc"))
    assert keccak256(b"abc") != keccak256(b"abd")


def test_address_checksum_known_vector():
    text = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
    assert str(hex_to_address(text.lower())) == text


def test_hash_string_is_padded_lowercase():
    assert str(hex_to_hash("0xa")) == "0x" + "0" * 63 + "a"


def test_address_string_lowercases_to_plain_hex():
    addr = Address(bytes(range(20)))
    assert str(addr).lower() == "0x" + addr.hex()


def test_default_values_are_zero():
    assert Address() == bytes(20)
    assert Hash() == bytes(32)


@pytest.mark.parametrize("cls, size", [(Address, 20), (Hash, 32)])
def test_wrong_length_rejected(cls, size):
    with pytest.raises(ValueError):
        cls(bytes(size - 1))
    with pytest.raises(TypeError):
        cls(size)


def test_parse_round_trip():
    addr = Address(bytes(range(100, 120)))
    digest = Hash(bytes(range(32)))
    assert parse_address(str(addr)) == addr
    assert parse_hash(str(digest)) == digest
    assert parse_hash(f'"{digest}"'.encode()) == digest


def test_parse_requires_prefix():
    with pytest.raises(ValueError, match="0x prefix not found"):
        parse_hash("00" * 32)


def test_parse_requires_exact_length():
    with pytest.raises(ValueError, match="expected 20"):
        parse_address("0x" + "11" * 19)


def test_bytes_to_address_keeps_rightmost_bytes():
    data = bytes(range(25))
    assert bytes_to_address(data) == data[5:]


def test_bytes_to_hash_left_pads():
    result = bytes_to_hash(b"\x01\x02")
    assert result[-2:] == b"\x01\x02"
    assert result[:30] == bytes(30)


def test_hex_to_address_accepts_odd_length():
    assert hex_to_address("0x123") == hex_to_address("0x0123")
    assert hex_to_address("0x123")[-2:] == b"\x01\x23"


def test_units():
    assert ether(0) == 0
    assert ether(5) == gwei(5 * 10**9)
    assert gwei(7) * 10**9 == ether(7)
    with pytest.raises(ValueError):
        ether(-1)