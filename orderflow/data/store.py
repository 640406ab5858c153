# orderflow/data/store.py
"""
Record store primitives shared by every backend.

Records are JSON-safe dicts addressed by ``(pk, sk)``. Every write can carry a
condition that is evaluated against the current record (or ``None`` when the
record is absent); ``transact`` applies a batch of writes all-or-nothing and
reports failed items by their tag, not by their position in the batch.
"""
import abc
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, NamedTuple, Sequence


class RecordKey(NamedTuple):
    pk: str
    sk: str


# ---------------------------------------------------------------------------
# conditions
# ---------------------------------------------------------------------------
class Condition(abc.ABC):
    @abc.abstractmethod
    def holds(self, item: Dict[str, Any] | None) -> bool:
        ...


@dataclass(frozen=True)
class Exists(Condition):
    def holds(self, item):
        return item is not None


@dataclass(frozen=True)
class NotExists(Condition):
    def holds(self, item):
        return item is None


@dataclass(frozen=True)
class AttrEquals(Condition):
    name: str
    value: Any

    def holds(self, item):
        return item is not None and item.get(self.name) == self.value


@dataclass(frozen=True)
class AttrAtLeast(Condition):
    name: str
    value: Any

    def holds(self, item):
        if item is None or item.get(self.name) is None:
            return False
        return item[self.name] >= self.value


@dataclass(frozen=True)
class AttrLessThan(Condition):
    name: str
    value: Any

    def holds(self, item):
        if item is None or item.get(self.name) is None:
            return False
        return item[self.name] < self.value


@dataclass(frozen=True)
class AllOf(Condition):
    conditions: tuple

    def __init__(self, *conditions: Condition):
        object.__setattr__(self, "conditions", conditions)

    def holds(self, item):
        return all(c.holds(item) for c in self.conditions)


@dataclass(frozen=True)
class AnyOf(Condition):
    conditions: tuple

    def __init__(self, *conditions: Condition):
        object.__setattr__(self, "conditions", conditions)

    def holds(self, item):
        return any(c.holds(item) for c in self.conditions)


# ---------------------------------------------------------------------------
# transaction items
# ---------------------------------------------------------------------------
class OpRole(str, Enum):
    ORDER_CREATE = "order-create"
    STOCK_DECREMENT = "stock-decrement"
    CART_DELETE = "cart-delete"
    IDEMPOTENCY_RESERVE = "idempotency-reserve"


@dataclass(frozen=True)
class OpTag:
    """Logical role of a transaction item, used to attribute failures."""

    role: OpRole
    line_index: int | None = None
    product_id: str | None = None

    def __str__(self) -> str:
        if self.line_index is None:
            return self.role.value
        return f"{self.role.value}[{self.line_index}]"


@dataclass(frozen=True)
class TransactPut:
    key: RecordKey
    item: Dict[str, Any]
    tag: OpTag
    condition: Condition | None = None
    lookup_key: str | None = None


@dataclass(frozen=True)
class TransactUpdate:
    key: RecordKey
    tag: OpTag
    set_values: Dict[str, Any] = field(default_factory=dict)
    increments: Dict[str, int] = field(default_factory=dict)
    condition: Condition | None = None


@dataclass(frozen=True)
class TransactDelete:
    key: RecordKey
    tag: OpTag
    condition: Condition | None = None


TransactItem = TransactPut | TransactUpdate | TransactDelete


class FailureReason(str, Enum):
    CONDITION_FAILED = "ConditionalCheckFailed"
    DUPLICATE_KEY = "DuplicateKey"


@dataclass(frozen=True)
class OperationFailure:
    item: TransactItem
    reason: FailureReason

    @property
    def tag(self) -> OpTag:
        return self.item.tag


# ---------------------------------------------------------------------------
# errors
# ---------------------------------------------------------------------------
class StoreError(Exception):
    pass


class ConditionFailedError(StoreError):
    def __init__(self, key: RecordKey):
        super().__init__(f"Condition failed for {key.pk}/{key.sk}")
        self.key = key


class TransactionCancelledError(StoreError):
    def __init__(self, failures: Sequence[OperationFailure]):
        self.failures = list(failures)
        roles = ", ".join(str(f.tag) for f in self.failures) or "unknown"
        super().__init__(f"Transaction cancelled ({roles})")

    def failed_roles(self) -> set[OpRole]:
        return {f.tag.role for f in self.failures}


def check_distinct_keys(items: Iterable[TransactItem]) -> None:
    seen = set()
    for item in items:
        if item.key in seen:
            raise ValueError(f"Transaction touches {item.key.pk}/{item.key.sk} more than once")
        seen.add(item.key)


def apply_update(
    current: Dict[str, Any], set_values: Dict[str, Any], increments: Dict[str, int]
) -> Dict[str, Any]:
    updated = dict(current)
    updated.update(set_values)
    for name, delta in increments.items():
        updated[name] = updated.get(name, 0) + delta
    return updated


class RecordStore(abc.ABC):
    """Interface of the backing store handed to every repository."""

    @abc.abstractmethod
    async def get(self, key: RecordKey) -> Dict[str, Any] | None:
        ...

    @abc.abstractmethod
    async def batch_get(self, keys: Sequence[RecordKey]) -> Dict[RecordKey, Dict[str, Any]]:
        ...

    @abc.abstractmethod
    async def put(
        self,
        key: RecordKey,
        item: Dict[str, Any],
        condition: Condition | None = None,
        lookup_key: str | None = None,
    ) -> None:
        ...

    @abc.abstractmethod
    async def update(
        self,
        key: RecordKey,
        set_values: Dict[str, Any] | None = None,
        increments: Dict[str, int] | None = None,
        condition: Condition | None = None,
    ) -> Dict[str, Any]:
        ...

    @abc.abstractmethod
    async def delete(self, key: RecordKey, condition: Condition | None = None) -> None:
        ...

    @abc.abstractmethod
    async def query(self, pk: str, sk_prefix: str = "") -> List[Dict[str, Any]]:
        ...

    @abc.abstractmethod
    async def query_lookup(self, lookup_key: str) -> List[Dict[str, Any]]:
        ...

    @abc.abstractmethod
    async def transact(self, items: Sequence[TransactItem]) -> None:
        ...

    async def close(self) -> None:
        return None
