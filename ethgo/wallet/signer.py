"""EIP-155 and typed transaction signing."""

from __future__ import annotations

from .. import rlp
from ..primitives import Address, keccak256
from ..structs import Transaction, TransactionType, access_list_rlp_item
from .key import Key, ecrecover

_UINT64 = (1 << 64) - 1


def trim_bytes_zeros(data: bytes) -> bytes:
    """Strip leading zero bytes."""
    return bytes(data).lstrip(b"\x00")


def encode_signature(r: bytes, s: bytes, v: int) -> bytes:
    """Lay out ``r``, ``s`` left-padded to 32 bytes each, followed by ``v``."""
    r, s = bytes(r), bytes(s)
    if len(r) > 32 or len(s) > 32:
        raise ValueError("signature values must not exceed 32 bytes")
    return r.rjust(32, b"\x00") + s.rjust(32, b"\x00") + bytes([v & 0xFF])


def sign_hash(tx: Transaction, chain_id: int) -> bytes:
    """Return the digest a transaction is signed over."""
    typed = tx.type != TransactionType.LEGACY
    fields: list = []
    if typed:
        fields.append(chain_id)
    fields.append(tx.nonce)
    if tx.type == TransactionType.DYNAMIC_FEE:
        fields.append(tx.max_priority_fee_per_gas or 0)
        fields.append(tx.max_fee_per_gas or 0)
    else:
        fields.append(tx.gas_price)
    fields.append(tx.gas)
    fields.append(b"" if tx.to is None else bytes(tx.to))
    fields.append(tx.value or 0)
    fields.append(bytes(tx.input))
    if typed:
        fields.append(access_list_rlp_item(tx.access_list))
    if chain_id != 0 and not typed:
        fields.extend([chain_id, 0, 0])

    encoded = rlp.encode(fields)
    if typed:
        encoded = bytes([tx.type]) + encoded
    return keccak256(encoded)


class EIP155Signer:
    """Signs transactions for a given chain and recovers their senders."""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id

    def recover_sender(self, tx: Transaction) -> Address:
        v = rlp.bytes_to_int(tx.v) & _UINT64
        if v > 1:
            v = (v - 27) & _UINT64
            if v > 1:
                v = (v - self.chain_id * 2 - 8) & _UINT64
        signature = encode_signature(tx.r, tx.s, v)
        return ecrecover(sign_hash(tx, self.chain_id), signature)

    def sign_tx(self, tx: Transaction, key: Key) -> Transaction:
        """Sign ``tx`` in place and return it."""
        signature = key.sign(sign_hash(tx, self.chain_id))
        v = signature[64]
        if tx.type == TransactionType.LEGACY:
            v = (v + 35 + self.chain_id * 2) & _UINT64
        tx.r = trim_bytes_zeros(signature[:32])
        tx.s = trim_bytes_zeros(signature[32:64])
        tx.v = rlp.int_to_bytes(v)
        return tx