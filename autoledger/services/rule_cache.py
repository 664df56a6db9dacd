"""Per-tenant, TTL-boxed cache of active classification rules."""

import asyncio
import time
from collections.abc import Callable
from typing import NamedTuple

import structlog

from autoledger.services.rule_store import RuleStore
from autoledger.services.rule_types import ALL_TENANTS, Rule

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 300.0  # 5 minutes


class CacheEntry(NamedTuple):
    rules: tuple[Rule, ...]
    expires_at: float


class RuleCache:
    """Lazily populated rule cache keyed by tenant id.

    An entry is valid iff ``now < expires_at``. Entries are replaced as a
    whole, so readers see either the old or the new rule set.
    """

    def __init__(
        self,
        store: RuleStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        # Bumped on every invalidation; a load started before it is not stored
        self._generation = 0

    async def get_rules(self, tenant_id: str) -> list[Rule]:
        """Active rules of one tenant."""
        return await self._get_or_load(tenant_id, lambda: self.store.get_rules_by_tenant(tenant_id))

    async def get_all_rules(self) -> list[Rule]:
        """Active rules of every tenant (administrator passes only)."""
        return await self._get_or_load(ALL_TENANTS, self.store.get_all_active_rules)

    def invalidate(self, tenant_id: str) -> None:
        self._generation += 1
        self._entries.pop(tenant_id, None)
        lock = self._locks.get(tenant_id)
        if lock is not None and not lock.locked():
            del self._locks[tenant_id]
        logger.debug("rule_cache_invalidated", tenant_id=tenant_id)

    def clear_all(self) -> None:
        self._generation += 1
        self._entries.clear()
        # Locks held by an in-flight load are kept
        self._locks = {key: lock for key, lock in self._locks.items() if lock.locked()}
        logger.debug("rule_cache_cleared")

    def _fresh(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is not None and self._clock() < entry.expires_at:
            return entry
        return None

    async def _get_or_load(self, key: str, load) -> list[Rule]:
        entry = self._fresh(key)
        if entry is not None:
            logger.debug("rule_cache_hit", tenant_id=key, rules=len(entry.rules))
            return list(entry.rules)

        # One loader per key; concurrent misses wait and reuse its result
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            entry = self._fresh(key)
            if entry is None:
                logger.debug("rule_cache_miss", tenant_id=key)
                generation = self._generation
                rules = tuple(await load())
                entry = CacheEntry(rules=rules, expires_at=self._clock() + self.ttl_seconds)
                if generation == self._generation:
                    self._entries[key] = entry
                logger.info("rules_loaded", tenant_id=key, rules=len(rules))
        return list(entry.rules)
