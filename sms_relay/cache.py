import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Optional, TypeVar

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from sms_relay.errors import (
    CorruptRecord,
    InvalidRecord,
    NoCodeFound,
    SerializationFailed,
    SmsNotFound,
    StoreReadFailed,
    StoreUnavailable,
    StoreWriteFailed,
)
from sms_relay.extractor import CodeExtractor
from sms_relay.schemas import SmsRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 120


def describe_error(e: BaseException) -> str:
    """Exception class and message, e.g. "ConnectionError: refused"."""
    message = str(e)
    return f"{type(e).__name__}: {message}" if message else type(e).__name__


def historic_key(sender: str, received_at: int) -> str:
    """Key of the entry for one message: sms:<sender>:<received_at>."""
    return f"sms:{sender}:{received_at}"


def latest_key(sender: str) -> str:
    """Key of the pointer to the sender's most recently written message."""
    return f"latest_sms:{sender}"


@dataclass(frozen=True)
class RecordOutcome:
    """
    Result of a successful record() call.

    The historic write always succeeded. latest_write_error is set when the
    follow-up latest-key write failed; the caller still gets the record, but
    latest() may return an older one until the next message arrives.
    """
    historic_key: str
    record: SmsRecord
    latest_write_error: Optional[str] = None

    @property
    def latest_written(self) -> bool:
        return self.latest_write_error is None


class SmsCacheStore:
    """
    Stores extracted verification codes in Redis under two keys.

    - sms:<sender>:<received_at> holds every message (until it expires)
    - latest_sms:<sender> holds whichever message was written last

    Both keys share the same payload and TTL. The latest pointer is
    last-write-wins: a message with an older received_at that arrives later
    still replaces it.

    Args:
        redis_client: asyncio Redis client (or any object with async get/set)
        extractor: CodeExtractor applied to raw message text
        ttl_seconds: Lifetime of both keys
        read_timeout: Upper bound for a single GET, in seconds
        write_timeout: Upper bound for a single SET, in seconds
    """

    def __init__(
        self,
        redis_client,
        extractor: Optional[CodeExtractor] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        read_timeout: Optional[float] = None,
        write_timeout: Optional[float] = None,
    ) -> None:
        self._redis = redis_client
        self.extractor = extractor or CodeExtractor()
        self.ttl_seconds = ttl_seconds
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    # =========================================================================
    # Write path
    # =========================================================================

    async def record(self, sender: str, raw_content: str, received_at: int) -> RecordOutcome:
        """
        Extract the code from raw_content and store it for sender.

        Args:
            sender: Sender identifier (already validated, non-empty)
            raw_content: Original SMS text; only the extracted code is kept
            received_at: Receipt time in milliseconds since epoch

        Returns:
            RecordOutcome with the historic key and the stored record

        Raises:
            NoCodeFound: No code in raw_content; nothing was written
            InvalidRecord: sender is empty or received_at is outside the int64 range
            SerializationFailed: The record could not be encoded
            StoreUnavailable: Redis unreachable or the historic write timed out
            StoreWriteFailed: Redis rejected the historic write
        """
        code = self.extractor.extract(raw_content)
        if code is None:
            logger.info(f"No verification code found in SMS from {sender}")
            raise NoCodeFound("content must contain a 4-8 digit verification code")

        try:
            record = SmsRecord(sender=sender, code=code, received_at=received_at)
        except ValidationError as e:
            logger.error(f"Rejected SMS record from {sender!r}: {e.error_count()} validation error(s)")
            raise InvalidRecord(f"invalid sender or received_at: {e}") from e
        payload = self.serialize(record)

        key = historic_key(sender, received_at)
        try:
            await self._bounded(
                self._redis.set(key, payload, ex=self.ttl_seconds), self.write_timeout
            )
        except (RedisConnectionError, RedisTimeoutError, asyncio.TimeoutError) as e:
            logger.error(f"Redis unavailable writing {key}: {describe_error(e)}")
            raise StoreUnavailable(f"failed to write {key}: {describe_error(e)}") from e
        except RedisError as e:
            logger.error(f"Redis rejected write of {key}: {e}")
            raise StoreWriteFailed(f"failed to write {key}: {describe_error(e)}") from e
        logger.debug(f"Historic key written: {key}")

        latest_error = await self._write_latest(sender, payload)

        return RecordOutcome(historic_key=key, record=record, latest_write_error=latest_error)

    async def _write_latest(self, sender: str, payload: str) -> Optional[str]:
        """Write the latest pointer; failures are logged and returned, never raised."""
        key = latest_key(sender)
        try:
            await self._bounded(
                self._redis.set(key, payload, ex=self.ttl_seconds), self.write_timeout
            )
        except (RedisError, asyncio.TimeoutError) as e:
            logger.warning(
                f"Latest key write failed, pointer for {sender} is stale until the next message",
                extra={"cache_key": key, "error": describe_error(e)},
            )
            return describe_error(e)
        logger.debug(f"Latest key written: {key}")
        return None

    @staticmethod
    def serialize(record: SmsRecord) -> str:
        """Encode a record as the cache payload: {"from", "content", "received_at"}."""
        try:
            return record.model_dump_json(by_alias=True)
        except (PydanticSerializationError, ValueError) as e:
            logger.error(f"Failed to serialize SMS record: {e}")
            raise SerializationFailed(str(e)) from e

    # =========================================================================
    # Read path
    # =========================================================================

    async def latest(self, sender: str) -> SmsRecord:
        """
        Fetch the most recently written record for sender.

        Raises:
            SmsNotFound: Nothing stored for sender, or the entry expired
            StoreUnavailable: Redis unreachable or the read timed out
            StoreReadFailed: Redis returned an error
            CorruptRecord: The stored payload is not a valid record
        """
        key = latest_key(sender)
        try:
            payload = await self._bounded(self._redis.get(key), self.read_timeout)
        except (RedisConnectionError, RedisTimeoutError, asyncio.TimeoutError) as e:
            logger.error(f"Redis unavailable reading {key}: {describe_error(e)}")
            raise StoreUnavailable(f"failed to read {key}: {describe_error(e)}") from e
        except RedisError as e:
            logger.error(f"Redis rejected read of {key}: {e}")
            raise StoreReadFailed(f"failed to read {key}: {describe_error(e)}") from e

        if payload is None:
            logger.info(f"No latest SMS for {sender}")
            raise SmsNotFound(sender)

        return self.deserialize(payload, key)

    @staticmethod
    def deserialize(payload, key: str = "") -> SmsRecord:
        """Decode a cache payload, raising CorruptRecord if it does not hold a valid record."""
        try:
            return SmsRecord.model_validate_json(payload)
        except ValidationError as e:
            logger.error(f"Corrupt SMS record at {key}: {e.error_count()} validation error(s)")
            raise CorruptRecord(f"cannot decode record at {key}") from e

    @staticmethod
    async def _bounded(call: Awaitable[T], timeout: Optional[float]) -> T:
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=timeout)
