# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Transactional apply with bounded retries on concurrency conflicts.

Every mutation goes through `TransactionCoordinator.run`: a transaction is
opened against the current configuration version, the unit of work issues its
calls inside it, and the transaction is committed. When a concurrent writer
moved the configuration version in between, the whole attempt is discarded and
replayed in a fresh transaction, up to MAX_ATTEMPTS times with RETRY_DELAY
seconds between attempts. Nothing below the coordinator retries.
"""

import logging
import typing

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from .context import OperationContext
from .dataplane import DataplaneClient
from .exceptions import (
    DataplaneVersionConflictError,
    OperationCancelledError,
    ProviderError,
    TransactionAbortedError,
    TransactionRetryExhaustedError,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 10
RETRY_DELAY = 2

T = typing.TypeVar("T")

# Error messages of the Data Plane API meaning the transaction was based on a stale version.
RETRYABLE_MESSAGES = (
    ("transaction", "outdated"),
    ("transaction does not exist",),
    ("version mismatch",),
    ("version or transaction not specified",),
    ("validation error", "defaults section"),
)


def _error_chain(error: BaseException) -> typing.Iterator[BaseException]:
    """Iterate over an error and its causes.

    Args:
        error: The outermost error.

    Yields:
        The error, then each __cause__ in turn.
    """
    seen: set[int] = set()
    current: typing.Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


def is_retryable_error(error: BaseException) -> bool:
    """Tell whether a failed attempt may succeed in a fresh transaction.

    A 409 from the API is a version conflict. Other errors are matched against
    the known conflict messages, case-sensitively.

    Args:
        error: The error that ended the attempt.

    Returns:
        bool: True for concurrency conflicts.
    """
    for current in _error_chain(error):
        if isinstance(current, DataplaneVersionConflictError):
            return True
        message = str(current)
        for fragments in RETRYABLE_MESSAGES:
            if all(fragment in message for fragment in fragments):
                return True
    return False


class TransactionCoordinator:
    """Run units of work inside Data Plane API transactions.

    Attrs:
        client: The Data Plane API client.
        max_attempts: Number of transactions opened before giving up.
        retry_delay: Seconds waited between attempts.
    """

    def __init__(
        self,
        client: DataplaneClient,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = RETRY_DELAY,
    ):
        """Initialize the coordinator.

        Args:
            client: The Data Plane API client.
            max_attempts: Number of transactions opened before giving up.
            retry_delay: Seconds waited between attempts.

        Raises:
            ValueError: When max_attempts is lower than 1.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    def run(
        self,
        unit_of_work: typing.Callable[[str], T],
        ctx: typing.Optional[OperationContext] = None,
    ) -> T:
        """Run a unit of work in a transaction and commit it.

        Args:
            unit_of_work: Callable issuing the calls of the transaction, given its ID.
            ctx: Cancellation context.

        Raises:
            OperationCancelledError: When the context gets cancelled. The open
                transaction, if any, is abandoned.
            TransactionRetryExhaustedError: When every attempt hit a concurrency conflict.
            TransactionAbortedError: When an attempt failed with any other provider error.

        Returns:
            The result of the unit of work from the committed attempt.
        """
        ctx = ctx if ctx is not None else OperationContext()
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.retry_delay),
            retry=retry_if_exception_type(ProviderError) & retry_if_exception(is_retryable_error),
            sleep=ctx.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )
        try:
            return retrying(self._attempt, unit_of_work, ctx)
        except OperationCancelledError:
            raise
        except RetryError as exc:
            attempt = exc.last_attempt
            error = typing.cast(BaseException, attempt.exception())
            logger.error(
                "Transaction failed after %d attempts: %s", attempt.attempt_number, error
            )
            raise TransactionRetryExhaustedError(
                f"transaction failed after {attempt.attempt_number} attempts: {error}",
                error=error,
                attempts=attempt.attempt_number,
            ) from error
        except ProviderError as exc:
            attempts = retrying.statistics.get("attempt_number", 1)
            logger.error(
                "Transaction attempt %d failed with a non retryable error: %s", attempts, exc
            )
            raise TransactionAbortedError(
                f"transaction failed: {exc}", error=exc, attempts=attempts
            ) from exc

    def _attempt(self, unit_of_work: typing.Callable[[str], T], ctx: OperationContext) -> T:
        """Run one attempt in a fresh transaction, rolling it back on failure.

        Args:
            unit_of_work: Callable issuing the calls of the transaction, given its ID.
            ctx: Cancellation context.

        Returns:
            The result of the unit of work once committed.
        """
        ctx.raise_if_cancelled()
        transaction_id = self.client.begin_transaction(ctx=ctx)
        try:
            result = unit_of_work(transaction_id)
            self.client.commit_transaction(transaction_id, ctx=ctx)
        except OperationCancelledError:
            logger.warning("Operation cancelled, abandoning transaction %s", transaction_id)
            raise
        except Exception as exc:
            self._rollback(transaction_id, exc, ctx)
            raise
        return result

    def _rollback(
        self, transaction_id: str, error: BaseException, ctx: OperationContext
    ) -> None:
        """Roll a failed transaction back without masking the error that failed it.

        Args:
            transaction_id: The transaction ID.
            error: The error that ended the attempt.
            ctx: Cancellation context.
        """
        try:
            self.client.rollback_transaction(transaction_id, ctx=ctx)
        except ProviderError as rollback_error:
            logger.warning(
                "Failed to roll back transaction %s: %s", transaction_id, rollback_error
            )
            error.add_note(f"rollback of transaction {transaction_id} failed: {rollback_error}")
