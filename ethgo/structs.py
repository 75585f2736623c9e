"""Chain data structures with their JSON and RLP encodings."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum

from . import rlp
from .primitives import Address, Hash, bytes_to_hash, keccak256
from .rlp import RLPError


class TransactionType(IntEnum):
    LEGACY = 0
    ACCESS_LIST = 1
    DYNAMIC_FEE = 2


def _hex_int(value: int) -> str:
    return f"0x{value:x}"


def _hex_bytes(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def _dumps(obj) -> str:
    return json.dumps(obj, separators=(",", ":"))


def _block_number(value: int | str) -> str:
    if isinstance(value, str):
        return value
    if value < 0:
        raise ValueError(f"block number {value} is negative")
    return _hex_int(value)


@dataclass
class AccessEntry:
    address: Address = field(default_factory=Address)
    storage: list[Hash] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "address": str(self.address),
            "storageKeys": [str(key) for key in self.storage],
        }


@dataclass
class Transaction:
    type: TransactionType = TransactionType.LEGACY
    hash: Hash = field(default_factory=Hash)
    from_: Address = field(default_factory=Address)
    input: bytes = b""
    gas_price: int = 0
    gas: int = 0
    value: int | None = None
    nonce: int = 0
    to: Address | None = None
    v: bytes = b""
    r: bytes = b""
    s: bytes = b""
    block_hash: Hash = field(default_factory=Hash)
    block_number: int = 0
    txn_index: int = 0
    chain_id: int | None = None
    access_list: list[AccessEntry] | None = None
    max_priority_fee_per_gas: int | None = None
    max_fee_per_gas: int | None = None

    def to_dict(self) -> dict:
        """Return the JSON-RPC representation as a plain dict."""
        out: dict = {
            "type": _hex_int(self.type),
            "hash": str(self.hash),
            "from": str(self.from_),
        }
        if self.input:
            out["input"] = _hex_bytes(self.input)
        if self.value is not None:
            out["value"] = _hex_int(self.value)
        if self.type == TransactionType.DYNAMIC_FEE:
            if self.max_priority_fee_per_gas is not None:
                out["maxPriorityFeePerGas"] = _hex_int(self.max_priority_fee_per_gas)
            if self.max_fee_per_gas is not None:
                out["maxFeePerGas"] = _hex_int(self.max_fee_per_gas)
        else:
            out["gasPrice"] = _hex_int(self.gas_price)
        if self.gas:
            out["gas"] = _hex_int(self.gas)
        if self.nonce:
            out["nonce"] = _hex_int(self.nonce)
        out["to"] = None if self.to is None else str(self.to)
        out["v"] = _hex_bytes(self.v)
        out["r"] = _hex_bytes(self.r)
        out["s"] = _hex_bytes(self.s)
        if self.block_hash == Hash():
            # pending transaction
            out["blockHash"] = None
            out["blockNumber"] = None
            out["transactionIndex"] = None
        else:
            out["blockHash"] = str(self.block_hash)
            out["blockNumber"] = _hex_int(self.block_number)
            out["transactionIndex"] = _hex_int(self.txn_index)
        if self.chain_id is not None:
            out["chainId"] = _hex_int(self.chain_id)
        if self.access_list is not None:
            out["accessList"] = [entry.to_dict() for entry in self.access_list]
        return out

    def to_json(self) -> str:
        return _dumps(self.to_dict())

    def _rlp_fields(self) -> list:
        typed = self.type != TransactionType.LEGACY
        fields: list = []
        if typed:
            fields.append(self.chain_id or 0)
        fields.append(self.nonce)
        if self.type == TransactionType.DYNAMIC_FEE:
            fields.append(self.max_priority_fee_per_gas or 0)
            fields.append(self.max_fee_per_gas or 0)
        else:
            fields.append(self.gas_price)
        fields.append(self.gas)
        fields.append(b"" if self.to is None else bytes(self.to))
        fields.append(self.value or 0)
        fields.append(bytes(self.input))
        if typed:
            fields.append(access_list_rlp_item(self.access_list))
        fields.extend([bytes(self.v), bytes(self.r), bytes(self.s)])
        return fields

    def marshal_rlp(self) -> bytes:
        """Encode the signed transaction, prefixed by its type byte if typed."""
        raw = rlp.encode(self._rlp_fields())
        if self.type == TransactionType.LEGACY:
            return raw
        return bytes([self.type]) + raw

    def get_hash(self) -> Hash:
        return bytes_to_hash(keccak256(self.marshal_rlp()))


_ELEMENT_COUNTS = {
    TransactionType.LEGACY: 9,
    TransactionType.ACCESS_LIST: 11,
    TransactionType.DYNAMIC_FEE: 12,
}


def _as_bytes(item, name: str) -> bytes:
    if not isinstance(item, bytes):
        raise RLPError(f"{name}: expected bytes but found a list")
    return item


def _as_list(item, name: str) -> list:
    if not isinstance(item, list):
        raise RLPError(f"{name}: expected a list but found bytes")
    return item


def _as_uint64(item, name: str) -> int:
    raw = _as_bytes(item, name)
    if len(raw) > 8:
        raise RLPError(f"{name}: value does not fit in 64 bits")
    return rlp.bytes_to_int(raw)


def _as_bigint(item, name: str) -> int:
    return rlp.bytes_to_int(_as_bytes(item, name))


def decode_transaction_rlp(data: bytes) -> Transaction:
    """Decode a signed transaction; the hash is computed from ``data``."""
    data = bytes(data)
    tx = Transaction(hash=bytes_to_hash(keccak256(data)))
    if not data:
        raise RLPError("expecting 1 byte but 0 byte provided")
    if data[0] <= 0x7F:
        if data[0] not in (TransactionType.ACCESS_LIST, TransactionType.DYNAMIC_FEE):
            raise RLPError(f"type byte {data[0]} not found")
        tx.type = TransactionType(data[0])
        data = data[1:]

    elements = _as_list(rlp.decode(data), "transaction")
    expected = _ELEMENT_COUNTS[tx.type]
    if len(elements) != expected:
        raise RLPError(
            "not enough elements to decode transaction, "
            f"expected {expected} but found {len(elements)}"
        )
    items = iter(elements)
    typed = tx.type != TransactionType.LEGACY

    if typed:
        tx.chain_id = _as_bigint(next(items), "chainId")
    tx.nonce = _as_uint64(next(items), "nonce")
    if tx.type == TransactionType.DYNAMIC_FEE:
        tx.max_priority_fee_per_gas = _as_bigint(next(items), "maxPriorityFeePerGas")
        tx.max_fee_per_gas = _as_bigint(next(items), "maxFeePerGas")
    else:
        tx.gas_price = _as_uint64(next(items), "gasPrice")
    tx.gas = _as_uint64(next(items), "gas")
    to_raw = next(items)
    tx.to = Address(to_raw) if isinstance(to_raw, bytes) and len(to_raw) == 20 else None
    tx.value = _as_bigint(next(items), "value")
    tx.input = _as_bytes(next(items), "input")
    if typed:
        tx.access_list = access_list_from_rlp_item(next(items))
    tx.v = _as_bytes(next(items), "v")
    tx.r = _as_bytes(next(items), "r")
    tx.s = _as_bytes(next(items), "s")
    return tx


def access_list_rlp_item(entries: list[AccessEntry] | None) -> list:
    """Return the RLP item (nested lists of bytes) for an access list."""
    return [
        [bytes(entry.address), [bytes(key) for key in entry.storage]]
        for entry in entries or ()
    ]


def access_list_from_rlp_item(item) -> list[AccessEntry]:
    """Build access list entries from a decoded RLP item."""
    entries = []
    for element in _as_list(item, "access list"):
        account = _as_list(element, "access entry")
        if len(account) != 2:
            raise RLPError(f"two elems expected but {len(account)} found")
        address = _as_bytes(account[0], "address")
        if len(address) != 20:
            raise RLPError(f"address must be 20 bytes but {len(address)} found")
        storage = []
        for key in _as_list(account[1], "storage"):
            raw = _as_bytes(key, "storage key")
            if len(raw) != 32:
                raise RLPError(f"storage key must be 32 bytes but {len(raw)} found")
            storage.append(Hash(raw))
        entries.append(AccessEntry(address=Address(address), storage=storage))
    return entries


def encode_access_list(entries: list[AccessEntry] | None) -> bytes:
    return rlp.encode(access_list_rlp_item(entries))


def decode_access_list(data: bytes) -> list[AccessEntry]:
    return access_list_from_rlp_item(rlp.decode(data))


@dataclass
class Log:
    removed: bool = False
    log_index: int = 0
    transaction_index: int = 0
    transaction_hash: Hash = field(default_factory=Hash)
    block_hash: Hash = field(default_factory=Hash)
    block_number: int = 0
    address: Address = field(default_factory=Address)
    data: bytes = b""
    topics: list[Hash] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "removed": self.removed,
            "logIndex": _hex_int(self.log_index),
            "transactionIndex": _hex_int(self.transaction_index),
            "transactionHash": str(self.transaction_hash),
            "blockHash": str(self.block_hash),
            "blockNumber": _hex_int(self.block_number),
            "address": str(self.address),
            "data": _hex_bytes(self.data),
            "topics": [str(topic) for topic in self.topics],
        }

    def to_json(self) -> str:
        return _dumps(self.to_dict())


@dataclass
class Block:
    number: int = 0
    hash: Hash = field(default_factory=Hash)
    parent_hash: Hash = field(default_factory=Hash)
    sha3_uncles: Hash = field(default_factory=Hash)
    transactions_root: Hash = field(default_factory=Hash)
    state_root: Hash = field(default_factory=Hash)
    receipts_root: Hash = field(default_factory=Hash)
    miner: Address = field(default_factory=Address)
    gas_limit: int = 0
    gas_used: int = 0
    timestamp: int = 0
    difficulty: int = 0
    extra_data: bytes = b""
    mix_hash: Hash = field(default_factory=Hash)
    nonce: bytes = bytes(8)
    base_fee: int | None = None
    uncles: list[Hash] = field(default_factory=list)
    transactions_hashes: list[Hash] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)

    def to_dict(self) -> dict:
        out: dict = {
            "number": _hex_int(self.number),
            "hash": str(self.hash),
            "parentHash": str(self.parent_hash),
            "sha3Uncles": str(self.sha3_uncles),
            "transactionsRoot": str(self.transactions_root),
            "stateRoot": str(self.state_root),
            "receiptsRoot": str(self.receipts_root),
            "miner": str(self.miner),
            "gasLimit": _hex_int(self.gas_limit),
            "gasUsed": _hex_int(self.gas_used),
            "timestamp": _hex_int(self.timestamp),
            "difficulty": _hex_int(self.difficulty or 0),
            "extraData": _hex_bytes(self.extra_data),
            "mixHash": _hex_bytes(self.mix_hash),
            "nonce": _hex_bytes(self.nonce),
        }
        if self.base_fee is not None:
            out["baseFee"] = _hex_int(self.base_fee)
        if self.uncles:
            out["uncles"] = [str(uncle) for uncle in self.uncles]
        if self.transactions_hashes:
            out["transactions"] = [str(h) for h in self.transactions_hashes]
        if self.transactions:
            out["transactions"] = [txn.to_dict() for txn in self.transactions]
        return out

    def to_json(self) -> str:
        return _dumps(self.to_dict())


@dataclass
class Receipt:
    transaction_hash: Hash = field(default_factory=Hash)
    transaction_index: int = 0
    contract_address: Address = field(default_factory=Address)
    block_hash: Hash = field(default_factory=Hash)
    block_number: int = 0
    gas_used: int = 0
    cumulative_gas_used: int = 0
    logs_bloom: bytes = b""
    logs: list[Log] = field(default_factory=list)
    status: int = 0
    from_: Address = field(default_factory=Address)
    to: Address | None = None


@dataclass
class CallMsg:
    from_: Address = field(default_factory=Address)
    to: Address | None = None
    data: bytes = b""
    gas_price: int = 0
    gas: int | None = None
    value: int | None = None

    def to_json(self) -> str:
        out: dict = {"from": str(self.from_)}
        if self.to is not None:
            out["to"] = str(self.to)
        if self.data:
            out["data"] = _hex_bytes(self.data)
        if self.gas_price:
            out["gasPrice"] = _hex_int(self.gas_price)
        if self.value is not None:
            out["value"] = _hex_int(self.value)
        if self.gas is not None:
            out["gas"] = _hex_int(self.gas)
        return _dumps(out)


@dataclass
class LogFilter:
    """Log query; block bounds are numbers or tags such as ``"latest"``."""

    address: list[Address] = field(default_factory=list)
    topics: list[list[Hash | None] | None] = field(default_factory=list)
    block_hash: Hash | None = None
    from_block: int | str | None = None
    to_block: int | str | None = None

    def set_from_block(self, number: int | str) -> None:
        self.from_block = number

    def set_to_block(self, number: int | str) -> None:
        self.to_block = number

    def to_json(self) -> str:
        out: dict = {}
        if len(self.address) == 1:
            out["address"] = str(self.address[0])
        elif self.address:
            out["address"] = [str(addr) for addr in self.address]
        out["topics"] = [
            None
            if group is None
            else [None if topic is None else str(topic) for topic in group]
            for group in self.topics
        ]
        if self.block_hash is not None:
            out["blockHash"] = str(self.block_hash)
        if self.from_block is not None:
            out["fromBlock"] = _block_number(self.from_block)
        if self.to_block is not None:
            out["toBlock"] = _block_number(self.to_block)
        return _dumps(out)


@dataclass
class OverrideAccount:
    nonce: int | None = None
    balance: int | None = None
    code: bytes | None = None
    state: dict[Hash, Hash] | None = None
    state_diff: dict[Hash, Hash] | None = None


def state_override_to_json(overrides: dict[Address, OverrideAccount]) -> str:
    """Encode a mapping of account overrides for an ``eth_call``."""
    out: dict = {}
    for address, account in overrides.items():
        entry: dict = {}
        if account.nonce is not None:
            entry["nonce"] = _hex_int(account.nonce)
        if account.balance is not None:
            entry["balance"] = _hex_int(account.balance)
        if account.code is not None:
            entry["code"] = _hex_bytes(account.code)
        if account.state is not None:
            entry["state"] = {str(k): str(v) for k, v in account.state.items()}
        if account.state_diff is not None:
            entry["stateDiff"] = {str(k): str(v) for k, v in account.state_diff.items()}
        out[str(address)] = entry
    return _dumps(out)