# orderflow/data/sql_store.py
from typing import Any, Dict, List, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orderflow.data.models.record import RecordModel
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
from orderflow.utils.retry import store_retry

logger = get_logger(__name__)


class SqlRecordStore(RecordStore):
    """
    Record store on a single ``records`` table.

    Conditional writes lock the row (``SELECT ... FOR UPDATE`` on dialects that
    support it), evaluate the condition, then write inside the same database
    transaction. On SQLite the engine from ``build_engine`` opens every
    transaction with ``BEGIN IMMEDIATE`` instead. A racing insert of the same
    key surfaces as a condition failure rather than an IntegrityError.
    """

    def __init__(self, sessionmaker: async_sessionmaker):
        self.sessionmaker = sessionmaker

    @staticmethod
    async def _load(session: AsyncSession, key: RecordKey, lock: bool = False) -> RecordModel | None:
        stmt = select(RecordModel).where(RecordModel.pk == key.pk, RecordModel.sk == key.sk)
        if lock:
            stmt = stmt.with_for_update()
        return (await session.execute(stmt)).scalar_one_or_none()

    @staticmethod
    def _check(key: RecordKey, row: RecordModel | None, condition: Condition | None) -> None:
        if condition is not None and not condition.holds(row.data if row is not None else None):
            raise ConditionFailedError(key)

    # ---------------------------------------------------------------- reads
    @store_retry()
    async def get(self, key: RecordKey) -> Dict[str, Any] | None:
        async with self.sessionmaker() as session:
            row = await self._load(session, key)
            return dict(row.data) if row is not None else None

    @store_retry()
    async def batch_get(self, keys: Sequence[RecordKey]) -> Dict[RecordKey, Dict[str, Any]]:
        if not keys:
            return {}
        wanted = set(keys)
        stmt = select(RecordModel).where(
            RecordModel.pk.in_(sorted({k.pk for k in wanted})),
            RecordModel.sk.in_(sorted({k.sk for k in wanted})),
        )
        async with self.sessionmaker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        found = {}
        for row in rows:
            key = RecordKey(row.pk, row.sk)
            if key in wanted:
                found[key] = dict(row.data)
        return found

    @store_retry()
    async def query(self, pk: str, sk_prefix: str = "") -> List[Dict[str, Any]]:
        stmt = (
            select(RecordModel)
            .where(RecordModel.pk == pk, RecordModel.sk.startswith(sk_prefix, autoescape=True))
            .order_by(RecordModel.sk)
        )
        async with self.sessionmaker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [dict(row.data) for row in rows]

    @store_retry()
    async def query_lookup(self, lookup_key: str) -> List[Dict[str, Any]]:
        stmt = select(RecordModel).where(RecordModel.lookup_key == lookup_key)
        async with self.sessionmaker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [dict(row.data) for row in rows]

    # --------------------------------------------------------------- writes
    async def put(self, key, item, condition=None, lookup_key=None):
        async with self.sessionmaker() as session:
            try:
                async with session.begin():
                    row = await self._load(session, key, lock=True)
                    self._check(key, row, condition)
                    self._write(session, key, row, item, lookup_key)
                    await session.flush()
            except IntegrityError as exc:
                # ktos wstawil ten sam klucz rownolegle
                raise ConditionFailedError(key) from exc

    async def update(self, key, set_values=None, increments=None, condition=None):
        async with self.sessionmaker() as session:
            async with session.begin():
                row = await self._load(session, key, lock=True)
                self._check(key, row, condition)
                current = row.data if row is not None else {}
                updated = apply_update(current, set_values or {}, increments or {})
                self._write(session, key, row, updated, None)
        return updated

    async def delete(self, key, condition=None):
        async with self.sessionmaker() as session:
            async with session.begin():
                row = await self._load(session, key, lock=True)
                self._check(key, row, condition)
                if row is not None:
                    await session.delete(row)

    async def transact(self, items: Sequence[TransactItem]) -> None:
        check_distinct_keys(items)

        async with self.sessionmaker() as session:
            async with session.begin():
                # blokady zawsze w tej samej kolejnosci kluczy, inaczej dwa zamowienia
                # z {p1, p2} i {p2, p1} zakleszcza sie na wierszach produktow
                rows: Dict[RecordKey, RecordModel | None] = {}
                for key in sorted(item.key for item in items):
                    rows[key] = await self._load(session, key, lock=True)

                failures = []
                for item in items:
                    row = rows[item.key]
                    current = row.data if row is not None else None
                    if item.condition is not None and not item.condition.holds(current):
                        failures.append(OperationFailure(item, FailureReason.CONDITION_FAILED))

                if failures:
                    # wyjatek wewnatrz session.begin() robi rollback
                    raise TransactionCancelledError(failures)

                for item in items:
                    row = rows[item.key]
                    if isinstance(item, TransactPut):
                        self._write(session, item.key, row, item.item, item.lookup_key)
                        try:
                            await session.flush()
                        except IntegrityError as exc:
                            raise TransactionCancelledError(
                                [OperationFailure(item, FailureReason.DUPLICATE_KEY)]
                            ) from exc
                    elif isinstance(item, TransactUpdate):
                        current = row.data if row is not None else {}
                        updated = apply_update(current, item.set_values, item.increments)
                        self._write(session, item.key, row, updated, None)
                    elif isinstance(item, TransactDelete):
                        if row is not None:
                            await session.delete(row)

        logger.debug(f"Committed transaction with {len(items)} items")

    @staticmethod
    def _write(
        session: AsyncSession,
        key: RecordKey,
        row: RecordModel | None,
        item: Dict[str, Any],
        lookup_key: str | None,
    ) -> None:
        if row is None:
            session.add(RecordModel(pk=key.pk, sk=key.sk, lookup_key=lookup_key, data=dict(item)))
            return
        # nowy dict, zeby SQLAlchemy zauwazyl zmiane w kolumnie JSON
        row.data = dict(item)
        if lookup_key is not None:
            row.lookup_key = lookup_key
