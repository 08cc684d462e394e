from papertrader.persistence.codec import StateDecodeError, decode_state, encode_state
from papertrader.persistence.db import SqliteLedgerStore
from papertrader.persistence.store import LedgerStore, LedgerStoreError, MemoryLedgerStore

__all__ = [
    "LedgerStore",
    "LedgerStoreError",
    "MemoryLedgerStore",
    "SqliteLedgerStore",
    "StateDecodeError",
    "decode_state",
    "encode_state",
]
