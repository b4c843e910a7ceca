from globalsim.store.base import KeyValueStore, StoreUnavailableError
from globalsim.store.memory import InMemoryStore
from globalsim.store.redis_store import RedisStore

__all__ = ["KeyValueStore", "StoreUnavailableError", "InMemoryStore", "RedisStore"]
