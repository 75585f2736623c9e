# ethgo

Ethereum building blocks for Python:

- `Address` and `Hash` values with their text forms (`str(Address)` gives the
  checksummed form), `keccak256`, the `ether` / `gwei` unit helpers, and the
  parsers `hex_to_address`, `hex_to_hash`, `parse_address`, `parse_hash`
  (`ethgo.primitives`).
- RLP encoding and decoding: `encode`, `decode`, `RLPError` (`ethgo.rlp`).
- Blocks, transactions, receipts, logs, call messages, log filters and state
  overrides as dataclasses. They encode to JSON-RPC form (`to_dict`,
  `to_json`, `state_override_to_json`), and transactions and access lists
  encode to and decode from RLP (`Transaction.marshal_rlp`,
  `decode_transaction_rlp`, `encode_access_list`, `decode_access_list`)
  (`ethgo.structs`).
- Decoding of JSON-RPC objects back into those structures: `decode_block`,
  `decode_transaction`, `decode_receipt`, `decode_log`, `decode_log_filter`,
  which take JSON text, bytes or an already parsed dict and raise
  `DecodeError` (`ethgo.decoding`).
- secp256k1 keys with deterministic signing and public-key recovery
  (`ethgo.wallet.key`), and EIP-155 / typed transaction signing with sender
  recovery (`ethgo.wallet.signer`).
- A contract event tracker that syncs logs in batches and follows chain
  reorganisations (`ethgo.tracking`). Its state can live in memory, in SQLite
  or in LMDB (`ethgo.store`).
- Test helpers: an in-memory mock chain, Solidity source builders for test
  contracts and log/block comparison functions (`ethgo.testutil`).

## Install

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Examples

Unit conversions and hashing:

```python
from ethgo.primitives import ether, gwei, keccak256, hex_to_address

ether(1)            # 1000000000000000000
gwei(2)             # 2000000000
keccak256(b"")      # 32-byte digest
hex_to_address("0x015f68893a39b3ba0681584387670ff8b00f4db2")
```

Signing and recovering a message:

```python
from ethgo.wallet.key import generate_key, ecrecover_msg

key = generate_key()
signature = key.sign_msg(b"hello world")
assert ecrecover_msg(b"hello world", signature) == key.address()
```

Signing a transaction and recovering its sender:

```python
from ethgo.structs import Transaction, decode_transaction_rlp
from ethgo.wallet.key import generate_key
from ethgo.wallet.signer import EIP155Signer

key = generate_key()
signer = EIP155Signer(1337)
tx = signer.sign_tx(Transaction(value=10), key)
assert signer.recover_sender(tx) == key.address()
raw = tx.marshal_rlp()
assert decode_transaction_rlp(raw).hash == tx.get_hash()
```

Decoding JSON-RPC data:

```python
from ethgo.decoding import decode_log

log = decode_log(log_json)      # str, bytes or dict
print(log.to_json())
```

Storing tracker logs:

```python
from ethgo.store.inmem import InmemStore
from ethgo.store.sql_store import open_sqlite_store
from ethgo.store.lmdb_store import LMDBStore
from ethgo.structs import Log

store = InmemStore()
entry = store.get_entry("filter")
entry.store_logs([Log(block_number=10)])
assert entry.last_index() == 1

with open_sqlite_store("tracker.db") as sql_store:
    sql_store.set("key", "value")

with LMDBStore("tracker.lmdb") as lmdb_store:
    lmdb_store.get_entry("filter").store_log(Log(block_number=10))
```

## Tracking contract events

`ethgo.tracking.tracker.Tracker` needs two collaborators:

- a provider: any object with `block_number`, `get_block_by_hash`,
  `get_block_by_number`, `get_logs` and `chain_id` (see
  `ethgo.tracking.config.Provider`). `ethgo.testutil.mock.MockClient` is one,
  serving blocks and logs added to it.
- a block tracker implementing `ethgo.tracking.config.BlockTracking`
  (`init`, `acquire_lock`, `last_blocked`, `blocks_blocked`,
  `max_block_backlog`, `subscribe`, `handle_block_event`, ...), passed as
  `block_tracker=`. Without one, `batch_sync` raises `ValueError`.

```python
import threading
from ethgo.tracking.config import FilterConfig
from ethgo.tracking.tracker import Tracker

tracker = Tracker(
    provider,
    block_tracker=block_tracker,
    filter=FilterConfig(address=[contract_address], async_=True),
    batch_size=100,
)
cancel = threading.Event()
tracker.batch_sync(cancel)      # bulk sync up to the head
logs = tracker.entry().logs()   # with the default in-memory store
```

`Tracker.sync(cancel)` runs `batch_sync` and then applies block events from
the block tracker's subscription until `cancel` is set, at which point it
raises `concurrent.futures.CancelledError`. Events are delivered on queues:
`event_ch` (log `Event`s with `added` / `removed`), `block_ch`, `sync_ch` and
`done_ch`. Requests that fail with a `ProviderError` whose message is
"query returned more than 10000 results" are retried with half the batch size.

## What the package does not do

- It has no JSON-RPC client to talk to a node, and no block tracker
  implementation; both must be supplied by the caller.
- The tracker does not look up a starting block through a block explorer; it
  starts from `FilterConfig.start` when set, otherwise from genesis. The
  `etherscan_api_key` config field is accepted but not used.
- The contract helpers only produce Solidity source text (`Contract.source`);
  they do not compile or deploy contracts.
- There is no PostgreSQL store; the SQL store uses SQLite.
- There is no command-line program.