"""secp256k1 keys: signing, public key recovery and addresses."""

from __future__ import annotations

import hashlib
import hmac
import secrets

from ..primitives import Address, keccak256

# secp256k1 domain parameters
_P = 2**256 - 2**32 - 977
_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_G = (
    0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
    0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
)

Point = tuple[int, int]


def _add(a: Point | None, b: Point | None) -> Point | None:
    if a is None:
        return b
    if b is None:
        return a
    if a[0] == b[0]:
        if (a[1] + b[1]) % _P == 0:
            return None
        slope = 3 * a[0] * a[0] * pow(2 * a[1], -1, _P)
    else:
        slope = (b[1] - a[1]) * pow(b[0] - a[0], -1, _P)
    x = (slope * slope - a[0] - b[0]) % _P
    y = (slope * (a[0] - x) - a[1]) % _P
    return x, y


def _mul(scalar: int, point: Point | None) -> Point | None:
    result = None
    addend = point
    scalar %= _N
    while scalar:
        if scalar & 1:
            result = _add(result, addend)
        addend = _add(addend, addend)
        scalar >>= 1
    return result


def _digest_to_int(digest: bytes) -> int:
    return int.from_bytes(bytes(digest)[:32], "big")


def _nonces(private: int, digest: bytes):
    """Yield deterministic nonces as in RFC 6979 with HMAC-SHA256."""

    def mac(key: bytes, data: bytes) -> bytes:
        return hmac.new(key, data, hashlib.sha256).digest()

    x = private.to_bytes(32, "big")
    h1 = (_digest_to_int(digest) % _N).to_bytes(32, "big")
    v = b"\x01" * 32
    k = b"\x00" * 32
    k = mac(k, v + b"\x00" + x + h1)
    v = mac(k, v)
    k = mac(k, v + b"\x01" + x + h1)
    v = mac(k, v)
    while True:
        v = mac(k, v)
        candidate = int.from_bytes(v, "big")
        if 1 <= candidate < _N:
            yield candidate
        k = mac(k, v + b"\x00")
        v = mac(k, v)


def _sign(private: int, digest: bytes) -> tuple[int, int, int]:
    e = _digest_to_int(digest)
    for k in _nonces(private, digest):
        point = _mul(k, _G)
        r = point[0] % _N
        if r == 0:
            continue
        s = pow(k, -1, _N) * (e + r * private) % _N
        if s == 0:
            continue
        recid = (point[1] & 1) | (2 if point[0] >= _N else 0)
        if s > _N // 2:
            s = _N - s
            recid ^= 1
        return r, s, recid
    raise RuntimeError("unreachable")


def pubkey_to_address(pub: Point) -> Address:
    """Derive the account address of an uncompressed public key."""
    x, y = pub
    digest = keccak256(x.to_bytes(32, "big") + y.to_bytes(32, "big"))
    return Address(digest[12:])


class Key:
    """A secp256k1 private key together with its public key and address."""

    __slots__ = ("_private", "_public", "_address")

    def __init__(self, private: int):
        if not 1 <= private < _N:
            raise ValueError("private key out of range")
        self._private = private
        self._public = _mul(private, _G)
        self._address = pubkey_to_address(self._public)

    @property
    def public_key(self) -> Point:
        return self._public

    def address(self) -> Address:
        return self._address

    def marshal_private_key(self) -> bytes:
        return self._private.to_bytes(32, "big")

    def sign_msg(self, msg: bytes) -> bytes:
        """Sign the Keccak-256 digest of ``msg``."""
        return self.sign(keccak256(msg))

    def sign(self, digest: bytes) -> bytes:
        """Return a 65-byte signature ``r || s || v`` with ``v`` being 0 or 1."""
        r, s, recid = _sign(self._private, digest)
        term = 1 if recid == 1 else 0
        return r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([term])

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Key) and other._private == self._private

    def __hash__(self) -> int:
        return hash(self._address)

    def __repr__(self) -> str:
        return f"Key(address={self._address})"


def generate_key() -> Key:
    """Create a new random key."""
    return Key(secrets.randbelow(_N - 1) + 1)


def parse_private_key(data: bytes) -> int:
    """Interpret big-endian bytes as a private key scalar."""
    private = int.from_bytes(bytes(data), "big")
    if not 1 <= private < _N:
        raise ValueError("private key out of range")
    return private


def new_wallet_from_priv_key(data: bytes) -> Key:
    return Key(parse_private_key(data))


def _lift_x(x: int, odd: bool) -> Point:
    y_squared = (pow(x, 3, _P) + 7) % _P
    y = pow(y_squared, (_P + 1) // 4, _P)
    if y * y % _P != y_squared:
        raise ValueError("invalid signature: point not on curve")
    if (y & 1) != odd:
        y = _P - y
    return x, y


def recover_pubkey(signature: bytes, digest: bytes) -> Point:
    """Recover the public key from a 65-byte ``r || s || v`` signature."""
    signature = bytes(signature)
    if len(signature) != 65:
        raise ValueError(f"invalid compact signature size {len(signature)}")
    recid = 1 if signature[-1] == 1 else 0
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    if not (0 < r < _N and 0 < s < _N):
        raise ValueError("invalid signature: r or s out of range")
    point = _lift_x(r, bool(recid & 1))
    e = _digest_to_int(digest)
    r_inv = pow(r, -1, _N)
    u1 = (-e * r_inv) % _N
    u2 = (s * r_inv) % _N
    public = _add(_mul(u1, _G), _mul(u2, point))
    if public is None:
        raise ValueError("invalid signature: recovered point at infinity")
    return public


def ecrecover(digest: bytes, signature: bytes) -> Address:
    return pubkey_to_address(recover_pubkey(signature, digest))


def ecrecover_msg(msg: bytes, signature: bytes) -> Address:
    return ecrecover(keccak256(msg), signature)