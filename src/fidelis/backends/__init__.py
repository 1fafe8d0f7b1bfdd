from fidelis.backends.factory import StoreKind
from fidelis.backends.memory import MemoryKeyValueStore
from fidelis.backends.sqlite import SqliteKeyValueStore

__all__ = ["StoreKind", "MemoryKeyValueStore", "SqliteKeyValueStore"]
