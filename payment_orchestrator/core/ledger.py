"""
Transaction ledger backed by day buckets in the cache store.

Layout:
    <namespace>_<DD_MM_YYYY>  ->  {"<transaction id>": TransactionRecord, ...}

Each bucket is one JSON blob with no expiration. The store has no
per-field update or compare-and-swap, so every mutation reads the whole
bucket, changes it in memory and writes it back. Two writers touching
the same bucket at the same time can lose one update; this is accepted
in exchange for keeping date-range listing a single read.

Webhooks may arrive before the payment request has written its record.
append_status therefore retries under a bounded RetryPolicy and then
drops the status without raising.
"""
import asyncio
from dataclasses import dataclass
from datetime import date, datetime
from typing import Awaitable, Callable, Dict, List, Optional, Union

import structlog
from pydantic import TypeAdapter, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from payment_orchestrator.cache import CacheMiss, CacheStore
from payment_orchestrator.core.models import PENDING_STATUS, StatusEntry, TransactionRecord
from payment_orchestrator.exceptions import (
    LedgerCorruptionError,
    PaymentValidationError,
    RecordNotYetVisible,
)
from payment_orchestrator.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

DATE_FORMAT = "%d_%m_%Y"
DEFAULT_NAMESPACE = "transactions"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 2.0

Bucket = Dict[str, TransactionRecord]
_bucket_adapter = TypeAdapter(Bucket)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded fixed-delay retry for records that are not yet visible."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS


def local_now() -> datetime:
    """Current local time with its UTC offset."""
    return datetime.now().astimezone()


class TransactionLedger:
    """
    Owns transaction records and their status timelines.

    No other component reads or writes bucket blobs.
    """

    def __init__(
        self,
        cache: CacheStore,
        namespace: str = DEFAULT_NAMESPACE,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = local_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the ledger.

        Args:
            cache: Cache store holding the day buckets
            namespace: Prefix of the bucket keys
            retry_policy: Bounds for not-yet-visible retries
            clock: Source of the current time (bucket day and status stamps)
            sleep: Awaitable used between retries
        """
        self.cache = cache
        self.namespace = namespace
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock
        self._sleep = sleep

    def bucket_key(self, day: Union[date, datetime]) -> str:
        """Cache key of the bucket holding transactions of the given day."""
        return f"{self.namespace}_{day.strftime(DATE_FORMAT)}"

    @staticmethod
    def normalize_date(value: str) -> str:
        """
        Normalise a DD_MM_YYYY (or DD/MM/YYYY) date string.

        Unpadded input such as 5_3_2024 is zero-padded to match the
        stored bucket keys.

        Raises:
            PaymentValidationError: If the date cannot be parsed
        """
        candidate = value.strip().replace("/", "_")
        try:
            parsed = datetime.strptime(candidate, DATE_FORMAT)
        except ValueError:
            raise PaymentValidationError(
                f"Invalid date '{value}'. Expected format DD_MM_YYYY", date=value
            )
        return parsed.strftime(DATE_FORMAT)

    async def _load_bucket(self, key: str) -> Bucket:
        """Read and decode a bucket. A missing bucket is an empty one."""
        try:
            raw = await self.cache.get(key)
        except CacheMiss:
            return {}

        try:
            return _bucket_adapter.validate_json(raw)
        except ValidationError as e:
            logger.error("ledger_bucket_corrupted", bucket_key=key, error=str(e))
            raise LedgerCorruptionError(f"Bucket {key} cannot be decoded", bucket_key=key) from e

    async def _store_bucket(self, key: str, bucket: Bucket) -> None:
        """Serialize and write a whole bucket with no expiration."""
        await self.cache.set(key, _bucket_adapter.dump_json(bucket, by_alias=True), 0)

    async def create_transaction(
        self, transaction_id: str, amount: float, currency: str
    ) -> TransactionRecord:
        """
        Record a new transaction with a single "pending" status.

        An existing record with the same id in today's bucket is replaced.

        Args:
            transaction_id: Provider-assigned transaction id
            amount: Payment amount
            currency: Currency code

        Returns:
            TransactionRecord: The stored record

        Raises:
            CacheError: If the bucket read (other than a miss) or the write fails
            LedgerCorruptionError: If the stored bucket cannot be decoded
        """
        now = self.clock()
        key = self.bucket_key(now)
        record = TransactionRecord(
            id=transaction_id,
            amount=amount,
            currency=currency,
            status_history=[
                StatusEntry(status=PENDING_STATUS, timestamp=now.isoformat(timespec="seconds"))
            ],
        )

        bucket = await self._load_bucket(key)
        bucket[transaction_id] = record
        await self._store_bucket(key, bucket)

        metrics.record_bucket_write("create")
        logger.info(
            "ledger_transaction_created",
            transaction_id=transaction_id,
            bucket_key=key,
            amount=amount,
            currency=currency,
        )
        return record

    async def _append_once(self, key: str, transaction_id: str, status: str) -> TransactionRecord:
        bucket = await self._load_bucket(key)
        record = bucket.get(transaction_id)
        if record is None:
            raise RecordNotYetVisible(transaction_id, key)

        # Stamped at write time so a retried append never predates its predecessor
        stamped_at = self.clock().isoformat(timespec="seconds")
        record.status_history.append(StatusEntry(status=status, timestamp=stamped_at))
        await self._store_bucket(key, bucket)
        return record

    def _before_retry(self, retry_state: RetryCallState) -> None:
        metrics.record_reconcile_retry()
        logger.info(
            "ledger_record_not_yet_visible",
            attempt=retry_state.attempt_number,
            max_attempts=self.retry_policy.max_attempts,
            delay_seconds=self.retry_policy.delay_seconds,
        )

    async def append_status(self, transaction_id: str, status: str) -> Optional[TransactionRecord]:
        """
        Append a status to an existing transaction in today's bucket.

        If the record is not there yet the lookup is retried under the
        retry policy. Once the attempts are exhausted the status is
        dropped and None is returned without raising.

        Args:
            transaction_id: Provider transaction id
            status: Status label to append

        Returns:
            Optional[TransactionRecord]: Updated record, or None if dropped

        Raises:
            CacheError: If the cache fails for a reason other than a miss
            LedgerCorruptionError: If the stored bucket cannot be decoded
        """
        key = self.bucket_key(self.clock())

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_policy.max_attempts),
            wait=wait_fixed(self.retry_policy.delay_seconds),
            retry=retry_if_exception_type(RecordNotYetVisible),
            before_sleep=self._before_retry,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    record = await self._append_once(key, transaction_id, status)
        except RecordNotYetVisible:
            metrics.record_reconcile_dropped()
            logger.warning(
                "ledger_status_dropped",
                transaction_id=transaction_id,
                status=status,
                bucket_key=key,
                attempts=self.retry_policy.max_attempts,
            )
            return None

        metrics.record_bucket_write("append")
        logger.info(
            "ledger_status_appended",
            transaction_id=transaction_id,
            status=status,
            bucket_key=key,
            history_length=len(record.status_history),
        )
        return record

    async def list_by_date(self, day: str) -> List[TransactionRecord]:
        """
        List all transactions recorded on a day.

        Args:
            day: Date in DD_MM_YYYY format

        Returns:
            List[TransactionRecord]: Records in bucket order; empty if none

        Raises:
            PaymentValidationError: If the date is malformed
        """
        key = f"{self.namespace}_{self.normalize_date(day)}"
        bucket = await self._load_bucket(key)
        logger.info("ledger_transactions_listed", bucket_key=key, count=len(bucket))
        return list(bucket.values())

    async def list_today(self) -> List[TransactionRecord]:
        """List today's transactions."""
        return await self.list_by_date(self.clock().strftime(DATE_FORMAT))
