"""PriceKeeper: Main orchestrator for Pyth price updates.

Each cycle:
    - Loads the keeper config (cached, refreshed at its own refresh rate)
    - Fetches the current price of every configured feed from the price service
    - Reads the last recorded price of every feed from the Pyth contract
    - Runs the update engine to pick the feeds that are stale or drifted
    - Builds an ``updatePriceFeedsIfNecessary`` call for those feeds

A cycle that cannot decide safely abstains with a message instead of building
a partial update.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from web3.exceptions import Web3Exception

from .errors import KeeperError, UpdateEngineError
from .PythContract import PythContract
from .sources import BaseHttpSource, PriceServiceClient, SourceError
from .TxSubmitter import CallData, TxSubmitter
from .UpdateEngine import compute_update_set

if TYPE_CHECKING:
    from web3 import Web3

    from .ConfigStore import ConfigStore

logger = logging.getLogger(__name__)


@dataclass
class KeeperResult:
    """Outcome of one keeper cycle.

    :ivar can_exec: True if there are calls to execute.
    :ivar call_data: Calls to execute.
    :ivar message: Reason for abstaining.
    """

    can_exec: bool
    call_data: list[CallData] = field(default_factory=list)
    message: str | None = None

    @classmethod
    def abstain(cls, message: str) -> KeeperResult:
        """Build a result that performs no action."""
        return cls(can_exec=False, message=message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to an executor-friendly dict."""
        if not self.can_exec:
            return {"canExec": False, "message": self.message}
        return {
            "canExec": True,
            "callData": [
                {"to": call.to, "data": call.data, "value": str(call.value)}
                for call in self.call_data
            ],
        }


class PriceKeeper:
    """Decides and builds Pyth price updates.

    :ivar config_store: Source of the keeper config.
    :ivar w3: Web3 instance for on-chain reads.
    :ivar submitter: Optional submitter; None runs in dry-run mode.
    :ivar interval: Seconds between cycles in ``run()``.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        w3: Web3,
        price_service_factory: Callable[[str], PriceServiceClient] = PriceServiceClient,
        contract_factory: Callable[[Web3, str], PythContract] = PythContract,
        submitter: TxSubmitter | None = None,
        interval: int = 60,
    ) -> None:
        """Initialize the keeper.

        :param config_store: Source of the keeper config.
        :param w3: Web3 instance for on-chain reads.
        :param price_service_factory: Builds a price service client for an endpoint.
        :param contract_factory: Builds a Pyth contract wrapper for an address.
        :param submitter: Optional submitter for executable calls.
        :param interval: Seconds between cycles (minimum: 1, default: 60).
        """
        self.config_store = config_store
        self.w3 = w3
        self.price_service_factory = price_service_factory
        self.contract_factory = contract_factory
        self.submitter = submitter
        self.interval = max(1, interval)
        self._saved_log_level: int | None = None

    def _apply_debug(self, debug: bool) -> None:
        """Raise the keeper log level while ``debug`` is set, restoring it after."""
        keeper_logger = logging.getLogger("keeper")
        if debug:
            if self._saved_log_level is None:
                self._saved_log_level = keeper_logger.level
            keeper_logger.setLevel(logging.DEBUG)
        elif self._saved_log_level is not None:
            keeper_logger.setLevel(self._saved_log_level)
            self._saved_log_level = None

    async def run_once(self) -> KeeperResult:
        """Run a single keeper cycle.

        :returns: KeeperResult with the update call, or the reason for abstaining.
        """
        try:
            config = await self.config_store.load()
        except (KeeperError, OSError, ValueError) as e:
            return KeeperResult.abstain(f"Error fetching config: {e}")

        self._apply_debug(config.debug)
        if config.debug:
            logger.debug(f"config: {config}")

        feed_ids = config.items.all_feed_ids()
        price_service = self.price_service_factory(config.price_service_endpoint)

        logger.debug(f"Fetching current prices for feeds: {feed_ids}")
        try:
            current = await price_service.get_latest_snapshots(feed_ids)
        except SourceError as e:
            return KeeperResult.abstain(
                f"Error fetching latest price feeds for ids: {feed_ids}: {e}"
            )

        missing = [feed_id for feed_id in feed_ids if feed_id not in current]
        if missing:
            logger.error(f"Missing latest price feed info for {missing}")
            return KeeperResult.abstain("Not all prices available")

        contract = self.contract_factory(self.w3, config.pyth_network_address)
        try:
            last = contract.get_last_snapshots(feed_ids)
        except (Web3Exception, OSError, ValueError) as e:
            return KeeperResult.abstain(f"Error reading last prices from chain: {e}")

        logger.debug(f"current prices: {current}, last prices: {last}")

        try:
            update_set = compute_update_set(
                config.items,
                current,
                last,
                config.valid_time_period_seconds,
                config.deviation_threshold_bps,
            )
        except UpdateEngineError as e:
            return KeeperResult.abstain(f"Error computing price updates: {e}")

        if not update_set:
            return KeeperResult.abstain(
                f"No conditions met for price initialization or update for ids: {feed_ids}"
            )

        update_ids = update_set.to_list()
        publish_times = [current[feed_id].publish_time for feed_id in update_ids]
        try:
            update_data = await price_service.get_update_data(update_ids)
        except SourceError as e:
            return KeeperResult.abstain(f"Error fetching update data for ids: {update_ids}: {e}")

        try:
            fee = contract.get_update_fee(update_data)
            data = contract.encode_update_call(update_data, update_ids, publish_times)
        except (Web3Exception, OSError, ValueError) as e:
            return KeeperResult.abstain(f"Error quoting update fee for ids: {update_ids}: {e}")
        logger.info(f"Updating {len(update_ids)} feeds: {update_ids} (fee={fee} wei)")

        return KeeperResult(
            can_exec=True,
            call_data=[CallData(to=contract.address, data=data, value=fee)],
        )

    def handle_result(self, result: KeeperResult) -> None:
        """Submit or log the outcome of a cycle.

        :param result: Result of ``run_once()``.
        """
        if not result.can_exec:
            logger.info(f"No update: {result.message}")
            return

        for call in result.call_data:
            if self.submitter is None:
                logger.info(f"Dry run: would call {call.to} with value {call.value}")
                continue
            try:
                outcome = self.submitter.submit(call)
                logger.info(f"Update submitted to {call.to}. Result: {outcome}")
            except Exception as e:
                logger.error(f"Failed to submit update to {call.to}: {e}")

    async def run(self) -> None:
        """Run keeper cycles forever, ``interval`` seconds apart."""
        logger.info(f"Starting keeper loop (interval={self.interval}s)")
        try:
            while True:
                try:
                    self.handle_result(await self.run_once())
                except Exception as e:
                    logger.error(f"Keeper cycle failed: {e}")
                await asyncio.sleep(self.interval)
        finally:
            # Clean up shared HTTP client
            await BaseHttpSource.close_shared_client()
