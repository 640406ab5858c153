# orderflow/data/memory_store.py
import asyncio
import copy
from typing import Any, Dict, List, Sequence

from orderflow.data.store import (
    Condition,
    ConditionFailedError,
    FailureReason,
    OperationFailure,
    RecordKey,
    RecordStore,
    TransactDelete,
    TransactItem,
    TransactPut,
    TransactUpdate,
    TransactionCancelledError,
    apply_update,
    check_distinct_keys,
)
from orderflow.utils.logging import get_logger

logger = get_logger(__name__)


class MemoryRecordStore(RecordStore):
    """
    Store w pamieci procesu (testy, lokalne uruchomienie).

    Kazde wywolanie oddaje sterowanie petli zdarzen (await), a potem wykonuje
    sie bez przerwy - tak samo jak pojedyncze zapytanie do prawdziwej bazy.
    """

    def __init__(self, latency: float = 0.0):
        self._records: Dict[RecordKey, Dict[str, Any]] = {}
        self._lookup: Dict[RecordKey, str] = {}
        self.latency = latency
        self.transact_calls = 0

    async def _io(self) -> None:
        await asyncio.sleep(self.latency)

    def _read(self, key: RecordKey) -> Dict[str, Any] | None:
        item = self._records.get(key)
        return copy.deepcopy(item) if item is not None else None

    @staticmethod
    def _check(key: RecordKey, current, condition: Condition | None) -> None:
        if condition is not None and not condition.holds(current):
            raise ConditionFailedError(key)

    async def get(self, key):
        await self._io()
        return self._read(key)

    async def batch_get(self, keys):
        await self._io()
        found = {}
        for key in keys:
            item = self._read(key)
            if item is not None:
                found[key] = item
        return found

    async def put(self, key, item, condition=None, lookup_key=None):
        await self._io()
        self._check(key, self._records.get(key), condition)
        self._write(key, item, lookup_key)

    async def update(self, key, set_values=None, increments=None, condition=None):
        await self._io()
        current = self._records.get(key)
        self._check(key, current, condition)
        updated = apply_update(current or {}, set_values or {}, increments or {})
        self._records[key] = copy.deepcopy(updated)
        return copy.deepcopy(updated)

    async def delete(self, key, condition=None):
        await self._io()
        self._check(key, self._records.get(key), condition)
        self._records.pop(key, None)
        self._lookup.pop(key, None)

    async def query(self, pk: str, sk_prefix: str = "") -> List[Dict[str, Any]]:
        await self._io()
        keys = sorted(k for k in self._records if k.pk == pk and k.sk.startswith(sk_prefix))
        return [self._read(k) for k in keys]

    async def query_lookup(self, lookup_key: str) -> List[Dict[str, Any]]:
        await self._io()
        return [self._read(k) for k, v in self._lookup.items() if v == lookup_key]

    async def transact(self, items: Sequence[TransactItem]) -> None:
        check_distinct_keys(items)
        await self._io()
        self.transact_calls += 1

        # najpierw wszystkie warunki, potem zapis - nic nie jest widoczne czesciowo
        failures = [
            OperationFailure(item, FailureReason.CONDITION_FAILED)
            for item in items
            if item.condition is not None and not item.condition.holds(self._records.get(item.key))
        ]
        if failures:
            logger.debug(f"Memory transaction cancelled: {[str(f.tag) for f in failures]}")
            raise TransactionCancelledError(failures)

        for item in items:
            if isinstance(item, TransactPut):
                self._write(item.key, item.item, item.lookup_key)
            elif isinstance(item, TransactUpdate):
                current = self._records.get(item.key) or {}
                self._records[item.key] = copy.deepcopy(
                    apply_update(current, item.set_values, item.increments)
                )
            elif isinstance(item, TransactDelete):
                self._records.pop(item.key, None)
                self._lookup.pop(item.key, None)

    def _write(self, key: RecordKey, item: Dict[str, Any], lookup_key: str | None) -> None:
        self._records[key] = copy.deepcopy(item)
        if lookup_key is not None:
            self._lookup[key] = lookup_key
