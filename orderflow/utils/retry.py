# orderflow/utils/retry.py
from sqlalchemy.exc import OperationalError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from orderflow.utils.settings import STORE_RETRY_ATTEMPTS


def store_retry():
    """Retry for transient database errors (lost connection, lock timeout) on reads."""
    return retry(
        reraise=True,
        stop=stop_after_attempt(STORE_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(OperationalError),
    )
