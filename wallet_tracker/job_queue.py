"""
Job Queue - Durable at-least-once delivery of TrackingJob on Redis.

============================================================
LAYOUT
============================================================
{queue}              ready list; publish LPUSH, consume from the right
{queue}:processing   deliveries in flight, restored on connect
{queue}:delayed      sorted set scored by due time (epoch seconds)
{queue}:dead         payloads that could not be decoded

A delivery is acked (removed from processing) when the handler returns
and nacked (put back at the head of the ready list) when it raises.
Connection loss is retried forever with a fixed backoff.
============================================================
"""

import asyncio
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .config import QueueConfig
from .exceptions import TransportError
from .models import TrackingJob


logger = logging.getLogger(__name__)


JobHandler = Callable[[TrackingJob], Awaitable[Any]]

# Delayed entries moved to the ready list per consumer iteration
PROMOTE_BATCH_SIZE = 100


def encode_envelope(job: TrackingJob, attempts: int = 0, message_id: Optional[str] = None) -> str:
    return json.dumps({
        "id": message_id or uuid.uuid4().hex,
        "job": job.to_dict(),
        "attempts": attempts,
        "publishedAt": datetime.now(timezone.utc).isoformat(),
    })


def decode_envelope(raw: Any) -> tuple[dict[str, Any], TrackingJob]:
    """
    Parse a queue payload.

    Raises ValueError/KeyError/TypeError when the payload is not a
    valid envelope.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    envelope = json.loads(raw)
    if not isinstance(envelope, dict):
        raise TypeError(f"envelope must be an object, got {type(envelope).__name__}")
    return envelope, TrackingJob.from_dict(envelope["job"])


class RedisJobQueue:
    """
    Reliable queue of tracking jobs.

    Usage:
        queue = RedisJobQueue(config.queue)
        await queue.connect()
        await queue.publish(job, delay=60)
        await queue.consume(service.process_job)
    """

    def __init__(
        self,
        config: Optional[QueueConfig] = None,
        client: Optional[Redis] = None,
    ) -> None:
        self.config = config or QueueConfig()
        self._client = client
        self._owns_client = client is None
        self._connected = False
        self._running = False

        self._stats = {
            "published": 0,
            "delivered": 0,
            "acked": 0,
            "nacked": 0,
            "dead_lettered": 0,
            "reconnects": 0,
        }

    @property
    def name(self) -> str:
        return self.config.queue_name

    @property
    def is_running(self) -> bool:
        return self._running

    def _get_client(self) -> Redis:
        if self._client is None:
            self._client = Redis.from_url(self.config.redis_url, decode_responses=True)
        return self._client

    # =========================================================
    # CONNECTION
    # =========================================================

    async def connect(self) -> None:
        """
        Ping the server and restore in-flight deliveries.

        Raises:
            TransportError: server unreachable
        """
        client = self._get_client()
        try:
            await client.ping()
            restored = await self._recover_processing(client)
        except RedisError as e:
            self._connected = False
            raise TransportError(
                f"Cannot connect to job queue '{self.name}': {e}",
                original_error=e,
                details={"queue": self.name},
            ) from e

        self._connected = True
        if restored:
            logger.warning(f"Restored {restored} in-flight jobs to '{self.name}'")
        logger.info(f"Connected to job queue '{self.name}'")

    async def _recover_processing(self, client: Redis) -> int:
        """Move everything left in the processing list back to the ready head."""
        restored = 0
        while True:
            raw = await client.lmove(
                self.config.processing_key, self.name, "LEFT", "RIGHT"
            )
            if raw is None:
                return restored
            restored += 1

    async def close(self) -> None:
        self._running = False
        self._connected = False
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # =========================================================
    # PRODUCER
    # =========================================================

    async def publish(self, job: TrackingJob, delay: float = 0) -> None:
        """
        Enqueue a job, optionally not deliverable before delay seconds.

        Raises:
            TransportError: the queue rejected the write
        """
        await self._enqueue(encode_envelope(job), delay)
        self._stats["published"] += 1
        logger.debug(
            f"Published job {job.wallet_address} on {job.chain.value} "
            f"fromBlock={job.from_block} delay={delay}s"
        )

    async def _enqueue(self, raw: str, delay: float) -> None:
        client = self._get_client()
        try:
            if delay > 0:
                await client.zadd(self.config.delayed_key, {raw: time.time() + delay})
            else:
                await client.lpush(self.name, raw)
        except RedisError as e:
            raise TransportError(
                f"Failed to publish to '{self.name}': {e}",
                original_error=e,
                details={"queue": self.name, "delay": delay},
            ) from e

    async def _promote_due(self, client: Redis) -> int:
        """Move delayed entries whose due time has passed onto the ready list."""
        due = await client.zrangebyscore(
            self.config.delayed_key, 0, time.time(), start=0, num=PROMOTE_BATCH_SIZE
        )
        promoted = 0
        for raw in due:
            # Only the consumer that removed the entry enqueues it
            if await client.zrem(self.config.delayed_key, raw):
                await client.lpush(self.name, raw)
                promoted += 1
        return promoted

    # =========================================================
    # CONSUMER
    # =========================================================

    async def consume(self, handler: JobHandler) -> None:
        """
        Deliver jobs to handler one at a time until stop() is called.

        Transport failures are logged and retried after a fixed delay;
        this method only returns on stop or cancellation.
        """
        self._running = True
        logger.info(f"Consuming from '{self.name}'")

        while self._running:
            try:
                if not self._connected:
                    await self.connect()

                client = self._get_client()
                await self._promote_due(client)

                raw = await client.blmove(
                    self.name,
                    self.config.processing_key,
                    self.config.poll_timeout_seconds,
                    "RIGHT",
                    "LEFT",
                )
                if raw is None:
                    continue

                await self._deliver(client, raw, handler)

            except (TransportError, RedisError) as e:
                self._connected = False
                self._stats["reconnects"] += 1
                logger.error(
                    f"Job queue '{self.name}' unavailable: {e}. "
                    f"Reconnecting in {self.config.reconnect_delay_seconds}s"
                )
                await asyncio.sleep(self.config.reconnect_delay_seconds)

        logger.info(f"Stopped consuming from '{self.name}'")

    async def _deliver(self, client: Redis, raw: Any, handler: JobHandler) -> None:
        self._stats["delivered"] += 1

        try:
            envelope, job = decode_envelope(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Undecodable job on '{self.name}', dead-lettering: {e}")
            await client.lrem(self.config.processing_key, 1, raw)
            await client.lpush(self.config.dead_letter_key, raw)
            self._stats["dead_lettered"] += 1
            return

        try:
            await handler(job)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Handler failed for job {envelope.get('id')}: {e}")
            await self._nack(client, raw, envelope, job)
            return

        await self._ack(client, raw)

    async def _ack(self, client: Redis, raw: Any) -> None:
        await client.lrem(self.config.processing_key, 1, raw)
        self._stats["acked"] += 1

    async def _nack(
        self,
        client: Redis,
        raw: Any,
        envelope: dict[str, Any],
        job: TrackingJob,
    ) -> None:
        attempts = int(envelope.get("attempts") or 0) + 1
        await client.lrem(self.config.processing_key, 1, raw)
        await client.rpush(
            self.name,
            encode_envelope(job, attempts=attempts, message_id=envelope.get("id")),
        )
        self._stats["nacked"] += 1

    def stop(self) -> None:
        """Ask consume() to return after the current iteration."""
        self._running = False

    # =========================================================
    # INSPECTION
    # =========================================================

    async def depth(self) -> dict[str, int]:
        """Entries per list, for health reporting."""
        client = self._get_client()
        try:
            return {
                "ready": await client.llen(self.name),
                "processing": await client.llen(self.config.processing_key),
                "delayed": await client.zcard(self.config.delayed_key),
                "dead": await client.llen(self.config.dead_letter_key),
            }
        except RedisError as e:
            raise TransportError(
                f"Failed to inspect '{self.name}': {e}",
                original_error=e,
            ) from e

    def get_stats(self) -> dict[str, Any]:
        return {
            "queue": self.name,
            "connected": self._connected,
            "running": self._running,
            **self._stats,
        }
