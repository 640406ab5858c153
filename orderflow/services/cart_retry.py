# orderflow/services/cart_retry.py
from typing import Awaitable, Callable

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential

from orderflow.domain.errors import ConflictError
from orderflow.domain.models import CartAggregate
from orderflow.repos.cart_repo import CartStore, VersionConflict
from orderflow.utils.logging import get_logger
from orderflow.utils.settings import CART_RETRY_BASE_DELAY, CART_SAVE_MAX_ATTEMPTS

logger = get_logger(__name__)

# dostaje najnowszy stan koszyka (albo None gdy koszyk zniknal) i odtwarza ta sama operacje
RebuildCart = Callable[[CartAggregate | None], Awaitable[CartAggregate]]


class CartRetryCoordinator:
    """
    Zapis koszyka z optimistic locking i ponawianiem.

    Po konflikcie wersji: backoff (base, 2*base, 4*base...), ponowny odczyt
    koszyka i ``rebuild`` na swiezym stanie - nigdy nie nadpisujemy na slepo
    i nie uzywamy decyzji podjetej na starych danych.
    """

    def __init__(
        self,
        cart_store: CartStore,
        max_attempts: int = CART_SAVE_MAX_ATTEMPTS,
        base_delay: float = CART_RETRY_BASE_DELAY,
    ):
        self.cart_store = cart_store
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    async def execute(
        self,
        initial_cart: CartAggregate,
        rebuild: RebuildCart,
        max_attempts: int | None = None,
    ) -> CartAggregate:
        attempts = max_attempts or self.max_attempts
        user_id = initial_cart.user_id
        cart = initial_cart

        try:
            async for attempt in self._retrying(attempts):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        latest = await self.cart_store.get(user_id)
                        cart = await rebuild(latest)
                    return await self.cart_store.save(cart, cart.version)
        except VersionConflict as exc:
            logger.error(f"Cart save for user {user_id} gave up after {attempts} attempts")
            raise ConflictError(
                "Cart was modified by another request. Please retry.",
                details={"user_id": user_id, "attempts": attempts},
            ) from exc

    def _retrying(self, attempts: int) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(VersionConflict),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2, min=0),
            before_sleep=self._log_conflict(attempts),
            reraise=True,
        )

    @staticmethod
    def _log_conflict(attempts: int) -> Callable[[RetryCallState], None]:
        def log(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception()
            logger.warning(
                f"Cart save conflict (attempt {retry_state.attempt_number}/{attempts}) "
                f"user={exc.user_id} version={exc.expected_version}"
            )

        return log
