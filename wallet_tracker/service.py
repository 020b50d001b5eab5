"""
Wallet Tracking Service - Main orchestrator for the tracker.

Coordinates:
- Chain adapters (via the registry)
- Persistence gateway (cursors and transaction rows)
- Job queue (initial, follow-up and retry jobs)

Each tracked wallet cycles Untracked -> Active -> Stopped. An active
wallet re-schedules itself after every successful poll; a failed poll is
retried later without moving the cursor.
"""

import asyncio
import logging
from typing import Any, Optional, Union

from .adapters import AdapterRegistry
from .config import TrackingConfig
from .exceptions import TransportError, UnsupportedChainError, WalletTrackerError
from .job_queue import RedisJobQueue
from .models import Chain, OperationResult, TrackingJob
from .persistence import PersistenceGateway


logger = logging.getLogger(__name__)


class WalletTrackingService:
    """
    Orchestrates tracking cycles for every active wallet.

    Usage:
        service = WalletTrackingService(registry, gateway, queue)
        result = await service.track_wallet("0xabc", "aptos")
        if result:
            print(result.message)

        # Long-lived consumer
        await service.start_consumer()
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        gateway: PersistenceGateway,
        queue: RedisJobQueue,
        config: Optional[TrackingConfig] = None,
    ) -> None:
        self.registry = registry
        self.gateway = gateway
        self.queue = queue
        self.config = config or TrackingConfig()

        self._consumer_running = False

        # Statistics
        self._stats = {
            "cycles": 0,
            "successful_cycles": 0,
            "failed_cycles": 0,
            "dropped_jobs": 0,
            "transfers_saved": 0,
            "swaps_saved": 0,
        }

    # =========================================================
    # START / STOP
    # =========================================================

    async def track_wallet(
        self,
        address: str,
        chain: Union[Chain, str],
    ) -> OperationResult:
        """
        Start tracking a wallet from the look-back window below the tip.

        Never raises; failures come back as an unsuccessful result.
        """
        chain_label = chain.value if isinstance(chain, Chain) else str(chain)

        try:
            adapter = self.registry.resolve(chain)
            current_height = await adapter.current_height()

            start_block = max(current_height - self.config.lookback_blocks, 0)

            await self.gateway.upsert_cursor(address, adapter.chain, start_block, active=True)
            await self.queue.publish(
                TrackingJob(
                    wallet_address=address,
                    chain=adapter.chain,
                    from_block=start_block,
                )
            )
        except UnsupportedChainError as e:
            logger.error(f"Error tracking wallet {address} on {chain_label}: {e}")
            return OperationResult(False, e.message, {"chain": chain_label})
        except Exception as e:
            logger.error(f"Error tracking wallet {address} on {chain_label}: {e}")
            return OperationResult(
                False,
                f"Failed to start tracking wallet {address} on {chain_label}",
                {"error_type": type(e).__name__},
            )

        logger.info(f"Started tracking wallet {address} on {chain_label} from block {start_block}")
        return OperationResult(
            True,
            f"Started tracking wallet {address} on {chain_label}",
            {"fromBlock": start_block, "currentHeight": current_height},
        )

    async def stop_tracking_wallet(
        self,
        address: str,
        chain: Union[Chain, str],
    ) -> OperationResult:
        """
        Mark a wallet inactive.

        A cycle already running finishes but will not schedule another.
        """
        chain_label = chain.value if isinstance(chain, Chain) else str(chain)

        try:
            existed = await self.gateway.deactivate(address, chain_label)
        except Exception as e:
            logger.error(f"Error stopping wallet tracking for {address} on {chain_label}: {e}")
            return OperationResult(
                False,
                f"Failed to stop tracking wallet {address} on {chain_label}",
                {"error_type": type(e).__name__},
            )

        if not existed:
            logger.warning(f"Stop requested for untracked wallet {address} on {chain_label}")

        logger.info(f"Stopped tracking wallet {address} on {chain_label}")
        return OperationResult(
            True,
            f"Stopped tracking wallet {address} on {chain_label}",
            {"existed": existed},
        )

    # =========================================================
    # POLL CYCLE
    # =========================================================

    async def process_job(self, job: TrackingJob) -> None:
        """
        Run one poll cycle for a wallet.

        Returns normally once the job is handled, including when it was
        handed back to the queue for retry. Raises only if the retry
        itself cannot be published.
        """
        address = job.wallet_address
        chain = job.chain

        try:
            cursor = await self.gateway.find_active_cursor(address, chain)
            if cursor is None:
                self._stats["dropped_jobs"] += 1
                logger.warning(f"Wallet {address} on {chain.value} is not active or does not exist")
                return

            self._stats["cycles"] += 1

            adapter = self.registry.resolve(chain)
            current_height = await adapter.current_height()

            if job.from_block is not None:
                start_block = job.from_block
            else:
                start_block = cursor.last_processed_block or 0

            transfers = await adapter.token_transfers(address, start_block, current_height)
            swaps = await adapter.token_swaps(address, start_block, current_height)

            if transfers:
                saved = await self.gateway.insert_events(transfers, chain, address)
                self._stats["transfers_saved"] += saved
                logger.info(f"Saved {saved} transfers for wallet {address} on {chain.value}")

            if swaps:
                saved = await self.gateway.insert_events(swaps, chain, address)
                self._stats["swaps_saved"] += saved
                logger.info(f"Saved {saved} swaps for wallet {address} on {chain.value}")

            wallet = await self.gateway.advance_cursor(address, chain, current_height)

        except WalletTrackerError as e:
            await self._schedule_retry(job, e)
            return
        except Exception as e:
            logger.exception(f"Unexpected error in poll cycle for {address} on {chain.value}")
            await self._schedule_retry(job, e)
            return

        self._stats["successful_cycles"] += 1
        logger.debug(
            f"Processed {address} on {chain.value} blocks {start_block}..{current_height}"
        )

        # Stop may have landed while the cycle was running
        if wallet is None or not wallet.is_active:
            logger.info(f"Wallet {address} on {chain.value} stopped, not rescheduling")
            return

        await self.queue.publish(
            TrackingJob(wallet_address=address, chain=chain, from_block=current_height),
            delay=self.config.poll_interval_seconds,
        )

    async def _schedule_retry(self, job: TrackingJob, error: Exception) -> None:
        """Republish the original job unchanged after the retry delay."""
        self._stats["failed_cycles"] += 1
        logger.error(
            f"Error processing wallet tracking job for {job.wallet_address} "
            f"on {job.chain.value}: {error}. Retrying in {self.config.retry_delay_seconds}s"
        )
        await self.queue.publish(job, delay=self.config.retry_delay_seconds)

    # =========================================================
    # CONSUMER
    # =========================================================

    async def start_consumer(self) -> None:
        """
        Connect to the queue and consume jobs until stop().

        Bootstrap failures are retried every bootstrap_retry_seconds,
        forever.
        """
        self._consumer_running = True

        while self._consumer_running:
            try:
                await self.queue.connect()
            except TransportError as e:
                logger.error(
                    f"Error starting wallet tracking consumer: {e}. "
                    f"Retrying in {self.config.bootstrap_retry_seconds}s"
                )
                await asyncio.sleep(self.config.bootstrap_retry_seconds)
                continue

            logger.info("Started wallet tracking consumer")
            await self.queue.consume(self.process_job)
            break

    def stop(self) -> None:
        self._consumer_running = False
        self.queue.stop()

    def get_stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "consumer_running": self._consumer_running,
            "queue": self.queue.get_stats(),
            "adapters": self.registry.get_stats(),
        }
