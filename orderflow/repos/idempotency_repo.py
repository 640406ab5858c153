# orderflow/repos/idempotency_repo.py
from datetime import datetime

from orderflow.data.store import (
    AnyOf,
    AttrLessThan,
    NotExists,
    OpRole,
    OpTag,
    RecordKey,
    RecordStore,
    TransactPut,
)
from orderflow.domain.models import IdempotencyRecord


def idempotency_key(key: str) -> RecordKey:
    return RecordKey(f"IDEMPOTENCY#{key}", "ORDER")


class IdempotencyRepo:
    def __init__(self, store: RecordStore):
        self.store = store

    async def get(self, key: str) -> IdempotencyRecord | None:
        item = await self.store.get(idempotency_key(key))
        return IdempotencyRecord.model_validate(item) if item is not None else None

    def reserve_in_transaction(self, record: IdempotencyRecord, now: datetime) -> TransactPut:
        # wolny klucz albo rekord po terminie - przeterminowany moze byc nadpisany
        return TransactPut(
            key=idempotency_key(record.key),
            item=record.model_dump(mode="json"),
            tag=OpTag(OpRole.IDEMPOTENCY_RESERVE),
            condition=AnyOf(NotExists(), AttrLessThan("expires_at", int(now.timestamp()) + 1)),
        )
