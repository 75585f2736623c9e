"""Decoding of JSON-RPC objects into chain data structures."""

from __future__ import annotations

import json
import re
from typing import Any

from .primitives import ADDRESS_LENGTH, HASH_LENGTH, Address, Hash
from .structs import (
    AccessEntry,
    Block,
    Log,
    LogFilter,
    Receipt,
    Transaction,
    TransactionType,
)

_UNSIGNED = re.compile(r"[0-9a-fA-F]+")
_SIGNED = re.compile(r"[+-]?[0-9a-fA-F]+")
_HEX_BYTES = re.compile(r"(?:[0-9a-fA-F]{2})*")

_UINT64_MAX = (1 << 64) - 1
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1

_MISSING = object()


class DecodeError(ValueError):
    """Raised when a JSON object cannot be decoded into a structure."""


def _load(data: Any) -> dict:
    if isinstance(data, dict):
        return data
    try:
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8")
        value = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError, TypeError) as exc:
        raise DecodeError(f"unable to parse input, {exc}") from exc
    if not isinstance(value, dict):
        raise DecodeError("expected a JSON object")
    return value


def _is_set(obj: dict, key: str) -> bool:
    return obj.get(key) is not None


def _text(obj: dict, key: str) -> str:
    """Return the raw text of a field the way it appears, quotes removed."""
    value = obj.get(key, _MISSING)
    if value is _MISSING:
        raise DecodeError(f"field '{key}' not found")
    if isinstance(value, str):
        text = value
    else:
        text = json.dumps(value, separators=(",", ":"))
    return text.strip('"')


def _hex_digits(obj: dict, key: str) -> str:
    text = _text(obj, key)
    if not text.startswith("0x"):
        raise DecodeError(f"field '{key}' does not have 0x prefix: '{text}'")
    return text[2:]


def _uint(obj: dict, key: str) -> int:
    digits = _hex_digits(obj, key) or "0"
    if not _UNSIGNED.fullmatch(digits) or int(digits, 16) > _UINT64_MAX:
        raise DecodeError(f"field '{key}' failed to decode uint: {digits}")
    return int(digits, 16)


def _int64(obj: dict, key: str) -> int:
    digits = _hex_digits(obj, key) or "0"
    if not _SIGNED.fullmatch(digits):
        raise DecodeError(f"field '{key}' failed to decode int64: {digits}")
    number = int(digits, 16)
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise DecodeError(f"field '{key}' failed to decode int64: {digits}")
    return number


def _bigint(obj: dict, key: str) -> int:
    text = _text(obj, key)
    if not text.startswith("0x"):
        raise DecodeError(f"field '{key}' does not have 0x prefix: '{text}'")
    if not _SIGNED.fullmatch(text[2:]):
        raise DecodeError(f"field '{key}' failed to decode big int: '{text}'")
    return int(text[2:], 16)


def _bytes(obj: dict, key: str, size: int | None = None) -> bytes:
    digits = _hex_digits(obj, key)
    if len(digits) % 2:
        digits = "0" + digits
    if not _HEX_BYTES.fullmatch(digits):
        raise DecodeError(f"field '{key}' is not valid hex: {digits}")
    raw = bytes.fromhex(digits)
    if size is not None and len(raw) != size:
        raise DecodeError(
            f"field '{key}' invalid length, expected {size} "
            f"but found {len(raw)}: {digits}"
        )
    return raw


def _fixed(text: str, size: int) -> bytes:
    text = text.strip('"')
    if not text.startswith("0x"):
        raise DecodeError("0x prefix not found")
    digits = text[2:]
    if not _HEX_BYTES.fullmatch(digits):
        raise DecodeError(f"invalid hex: {digits}")
    raw = bytes.fromhex(digits)
    if len(raw) != size:
        raise DecodeError(f"length {len(raw)} is not correct, expected {size}")
    return raw


def _string(obj: dict, key: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str) or not value:
        raise DecodeError(f"field '{key}' not found")
    return value


def _hash(obj: dict, key: str) -> Hash:
    return Hash(_fixed(_string(obj, key), HASH_LENGTH))


def _address(obj: dict, key: str) -> Address:
    return Address(_fixed(_string(obj, key), ADDRESS_LENGTH))


def _nonce(obj: dict, key: str) -> bytes:
    return _fixed(_string(obj, key), 8)


def _bool(obj: dict, key: str) -> bool:
    text = _text(obj, key)
    value = obj[key]
    if value is True or text == "true" and not isinstance(value, str):
        return True
    if value is False or text == "false" and not isinstance(value, str):
        return False
    raise DecodeError(f"field '{key}' with content '{text}' cannot be decoded as bool")


def _array(obj: dict, key: str) -> list:
    value = obj.get(key)
    return value if isinstance(value, list) else []


def _hash_item(value: Any) -> Hash:
    if not isinstance(value, str):
        raise DecodeError("value doesn't contain string")
    return Hash(_fixed(value, HASH_LENGTH))


def _address_item(value: Any) -> Address:
    if not isinstance(value, str):
        raise DecodeError("value doesn't contain string")
    return Address(_fixed(value, ADDRESS_LENGTH))


def decode_block(data: Any) -> Block:
    """Decode a block from JSON text, bytes or an already parsed object."""
    obj = _load(data)
    block = Block(
        hash=_hash(obj, "hash"),
        parent_hash=_hash(obj, "parentHash"),
        sha3_uncles=_hash(obj, "sha3Uncles"),
        transactions_root=_hash(obj, "transactionsRoot"),
        state_root=_hash(obj, "stateRoot"),
        receipts_root=_hash(obj, "receiptsRoot"),
        miner=_address(obj, "miner"),
        number=_uint(obj, "number"),
        gas_limit=_uint(obj, "gasLimit"),
        gas_used=_uint(obj, "gasUsed"),
        mix_hash=_hash(obj, "mixHash"),
        nonce=_nonce(obj, "nonce"),
        timestamp=_uint(obj, "timestamp"),
        difficulty=_bigint(obj, "difficulty"),
        extra_data=_bytes(obj, "extraData"),
    )
    if "baseFee" in obj:
        block.base_fee = _bigint(obj, "baseFee")

    transactions = _array(obj, "transactions")
    if transactions:
        if isinstance(transactions[0], str):
            block.transactions_hashes = [_hash_item(item) for item in transactions]
        else:
            block.transactions = [_transaction(_object(item)) for item in transactions]

    block.uncles = [_hash_item(item) for item in _array(obj, "uncles")]
    return block


def _object(value: Any) -> dict:
    if not isinstance(value, dict):
        raise DecodeError("expected a JSON object")
    return value


def decode_transaction(data: Any) -> Transaction:
    """Decode a transaction from JSON text, bytes or an already parsed object."""
    return _transaction(_load(data))


def _transaction_type(obj: dict) -> TransactionType:
    if _is_set(obj, "type"):
        raw = _uint(obj, "type")
        try:
            return TransactionType(raw)
        except ValueError as exc:
            raise DecodeError(f"transaction type {raw} not found") from exc
    if _is_set(obj, "chainId"):
        if _is_set(obj, "maxFeePerGas"):
            return TransactionType.DYNAMIC_FEE
        return TransactionType.ACCESS_LIST
    return TransactionType.LEGACY


def _transaction(obj: dict) -> Transaction:
    tx = Transaction(type=_transaction_type(obj))
    tx.hash = _hash(obj, "hash")
    tx.from_ = _address(obj, "from")
    if tx.type == TransactionType.DYNAMIC_FEE:
        tx.max_priority_fee_per_gas = _bigint(obj, "maxPriorityFeePerGas")
        tx.max_fee_per_gas = _bigint(obj, "maxFeePerGas")
    else:
        tx.gas_price = _uint(obj, "gasPrice")
    tx.input = _bytes(obj, "input")
    tx.value = _bigint(obj, "value")
    tx.nonce = _uint(obj, "nonce")
    if _is_set(obj, "to"):
        tx.to = _address(obj, "to")
    tx.v = _bytes(obj, "v")
    tx.r = _bytes(obj, "r")
    tx.s = _bytes(obj, "s")
    if tx.type != TransactionType.LEGACY:
        tx.chain_id = _bigint(obj, "chainId")
        if _is_set(obj, "accessList"):
            tx.access_list = _access_list(obj["accessList"])
    tx.gas = _uint(obj, "gas")

    # a pending transaction carries no block metadata
    if _is_set(obj, "blockHash"):
        tx.block_hash = _hash(obj, "blockHash")
        tx.block_number = _uint(obj, "blockNumber")
        tx.txn_index = _uint(obj, "transactionIndex")
    return tx


def _access_list(value: Any) -> list[AccessEntry]:
    if not isinstance(value, list):
        raise DecodeError("value doesn't contain array")
    entries = []
    for element in value:
        element = _object(element)
        address = _address(element, "address")
        keys = element.get("storageKeys")
        if not isinstance(keys, list):
            raise DecodeError("value doesn't contain array")
        entries.append(
            AccessEntry(address=address, storage=[_hash_item(key) for key in keys])
        )
    return entries


def decode_receipt(data: Any) -> Receipt:
    """Decode a transaction receipt."""
    obj = _load(data)
    receipt = Receipt(from_=_address(obj, "from"))
    if _is_set(obj, "contractAddress"):
        receipt.contract_address = _address(obj, "contractAddress")
    receipt.transaction_hash = _hash(obj, "transactionHash")
    receipt.block_hash = _hash(obj, "blockHash")
    receipt.transaction_index = _uint(obj, "transactionIndex")
    receipt.block_number = _uint(obj, "blockNumber")
    receipt.gas_used = _uint(obj, "gasUsed")
    receipt.cumulative_gas_used = _uint(obj, "cumulativeGasUsed")
    receipt.logs_bloom = _bytes(obj, "logsBloom", 256)
    if "status" in obj:
        # post-byzantium receipts
        receipt.status = _uint(obj, "status")
    if _is_set(obj, "to"):
        receipt.to = _address(obj, "to")
    receipt.logs = [_log(_object(item)) for item in _array(obj, "logs")]
    return receipt


def decode_log(data: Any) -> Log:
    """Decode a single log entry."""
    return _log(_load(data))


def _log(obj: dict) -> Log:
    log = Log()
    if "removed" in obj:
        log.removed = _bool(obj, "removed")
    log.log_index = _uint(obj, "logIndex")
    log.block_number = _uint(obj, "blockNumber")
    log.transaction_index = _uint(obj, "transactionIndex")
    log.transaction_hash = _hash(obj, "transactionHash")
    if "blockHash" in obj:
        log.block_hash = _hash(obj, "blockHash")
    log.address = _address(obj, "address")
    log.data = _bytes(obj, "data")
    log.topics = [_hash_item(topic) for topic in _array(obj, "topics")]
    return log


def decode_log_filter(data: Any) -> LogFilter:
    """Decode a log filter; block bounds must be hex numbers."""
    obj = _load(data)
    log_filter = LogFilter()

    address = obj.get("address")
    if isinstance(address, list):
        log_filter.address = [_address_item(item) for item in address]
    elif isinstance(address, str):
        log_filter.address = [_address_item(address)]

    if "blockHash" in obj:
        log_filter.block_hash = _hash(obj, "blockHash")
    if "fromBlock" in obj:
        log_filter.from_block = _int64(obj, "fromBlock")
    if "toBlock" in obj:
        log_filter.to_block = _int64(obj, "toBlock")

    topics: list[list[Hash | None] | None] = []
    for group in _array(obj, "topics"):
        if group is None:
            topics.append(None)
            continue
        if not isinstance(group, list):
            raise DecodeError("value doesn't contain array")
        topics.append([_hash_item(topic) for topic in group])
    log_filter.topics = topics
    return log_filter