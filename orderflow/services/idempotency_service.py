# orderflow/services/idempotency_service.py
from datetime import datetime, timedelta
from typing import Callable

from orderflow.data.store import TransactPut
from orderflow.domain.models import IdempotencyRecord, OrderAggregate, utcnow
from orderflow.repos.idempotency_repo import IdempotencyRepo
from orderflow.repos.order_repo import OrderRepo
from orderflow.utils.logging import get_logger
from orderflow.utils.settings import IDEMPOTENCY_TTL_SECONDS

logger = get_logger(__name__)


class IdempotencyLedger:
    """
    Maps a client token to the order it produced.

    A token belongs to one user only; a lookup by anyone else is a miss. Records
    older than ``ttl_seconds`` are ignored, so the same token may create a new
    order once the window has passed.
    """

    def __init__(
        self,
        repo: IdempotencyRepo,
        orders: OrderRepo,
        ttl_seconds: int = IDEMPOTENCY_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = repo
        self.orders = orders
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    async def check(self, user_id: str, key: str) -> OrderAggregate | None:
        record = await self.repo.get(key)
        if record is None:
            return None

        if record.user_id != user_id:
            logger.warning(f"Idempotency key {key} belongs to a different user, treating as miss")
            return None

        if record.is_expired(self.clock()):
            logger.info(f"Idempotency key {key} expired, ignoring")
            return None

        return await self.orders.get_order(user_id, record.order_id)

    def reserve(self, user_id: str, key: str, order_id: str) -> TransactPut:
        """Conditional insert of the key, to be composed into the order commit."""
        now = self.clock()
        record = IdempotencyRecord(
            key=key,
            user_id=user_id,
            order_id=order_id,
            created_at=now,
            expires_at=int((now + timedelta(seconds=self.ttl_seconds)).timestamp()),
        )
        return self.repo.reserve_in_transaction(record, now)
