"""Unit tests for PriceKeeper."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from web3.exceptions import ContractLogicError, Web3Exception

from keeper.src.errors import ConfigError
from keeper.src.KeeperConfig import KeeperConfig
from keeper.src.PriceKeeper import KeeperResult, PriceKeeper
from keeper.src.PriceSnapshot import PriceSnapshot
from keeper.src.sources import SourceError
from keeper.src.TxSubmitter import CallData

A = "0x" + "aa" * 32
B = "0x" + "bb" * 32
PYTH_ADDRESS = "0xff1a0f4744e8582DF1aE09D5611b887B6a12925C"


def make_config(**overrides: object) -> KeeperConfig:
    raw = {
        "pythNetworkAddress": PYTH_ADDRESS,
        "priceServiceEndpoint": "https://hermes.example",
        "validTimePeriodSeconds": 3600,
        "deviationThresholdBps": 400,
        "priceIds": {
            "BTC/ETH": [{"id": A}, {"id": B, "action": "div"}],
        },
    }
    raw.update(overrides)
    return KeeperConfig.from_dict(raw)


class FakeConfigStore:
    def __init__(self, config: KeeperConfig | None = None, error: Exception | None = None) -> None:
        self.config = config
        self.error = error

    async def load(self) -> KeeperConfig:
        if self.error is not None:
            raise self.error
        assert self.config is not None
        return self.config


class FakePriceService:
    def __init__(self, current: dict[str, PriceSnapshot]) -> None:
        self.current = current
        self.get_latest_snapshots = AsyncMock(side_effect=lambda ids: dict(self.current))
        self.get_update_data = AsyncMock(side_effect=lambda ids: [bytes([i]) for i in range(len(ids))])


class FakeContract:
    def __init__(self, last: dict[str, PriceSnapshot]) -> None:
        self.address = PYTH_ADDRESS
        self.get_last_snapshots = MagicMock(return_value=last)
        self.get_update_fee = MagicMock(return_value=2)
        self.encode_update_call = MagicMock(return_value="0xcafe")


def make_keeper(
    current: dict[str, PriceSnapshot],
    last: dict[str, PriceSnapshot],
    config: KeeperConfig | None = None,
    **kwargs: object,
) -> tuple[PriceKeeper, FakePriceService, FakeContract]:
    price_service = FakePriceService(current)
    contract = FakeContract(last)
    keeper = PriceKeeper(
        config_store=FakeConfigStore(config or make_config()),  # type: ignore[arg-type]
        w3=MagicMock(),
        price_service_factory=lambda endpoint: price_service,  # type: ignore[arg-type,return-value]
        contract_factory=lambda w3, address: contract,  # type: ignore[arg-type,return-value]
        **kwargs,  # type: ignore[arg-type]
    )
    return keeper, price_service, contract


class TestKeeperResult:
    """Test KeeperResult conversion."""

    def test_abstain_dict(self) -> None:
        """Abstaining results carry a message."""
        assert KeeperResult.abstain("nothing").to_dict() == {
            "canExec": False,
            "message": "nothing",
        }

    def test_exec_dict(self) -> None:
        """Executable results list calls with string values."""
        result = KeeperResult(can_exec=True, call_data=[CallData("0x1", "0x2", 3)])
        assert result.to_dict() == {
            "canExec": True,
            "callData": [{"to": "0x1", "data": "0x2", "value": "3"}],
        }


class TestPriceKeeperRunOnce:
    """Test single keeper cycles."""

    def test_builds_update_on_deviation(self) -> None:
        """A drifted item produces an update call for all its feeds."""
        current = {A: PriceSnapshot(50000, 0, 200), B: PriceSnapshot(2000, 0, 201)}
        last = {A: PriceSnapshot(48000, 0, 100), B: PriceSnapshot(2000, 0, 100)}
        keeper, price_service, contract = make_keeper(current, last)

        result = asyncio.run(keeper.run_once())

        assert result.can_exec
        assert result.call_data == [CallData(to=PYTH_ADDRESS, data="0xcafe", value=2)]
        price_service.get_update_data.assert_awaited_once_with([A, B])
        contract.get_update_fee.assert_called_once_with([b"\x00", b"\x01"])
        contract.encode_update_call.assert_called_once_with([b"\x00", b"\x01"], [A, B], [200, 201])

    def test_no_update(self) -> None:
        """Quiet items abstain with a message."""
        current = {A: PriceSnapshot(50000, 0, 200), B: PriceSnapshot(2000, 0, 201)}
        last = {A: PriceSnapshot(49000, 0, 100), B: PriceSnapshot(2000, 0, 100)}
        keeper, price_service, _ = make_keeper(current, last)

        result = asyncio.run(keeper.run_once())

        assert not result.can_exec
        assert result.message.startswith("No conditions met")
        price_service.get_update_data.assert_not_awaited()

    def test_stale_item_updates(self) -> None:
        """A stale feed updates the whole item even without drift."""
        current = {A: PriceSnapshot(50000, 0, 10000), B: PriceSnapshot(2000, 0, 100)}
        last = {A: PriceSnapshot(50000, 0, 100), B: PriceSnapshot(2000, 0, 100)}
        keeper, price_service, _ = make_keeper(current, last)

        result = asyncio.run(keeper.run_once())

        assert result.can_exec
        price_service.get_update_data.assert_awaited_once_with([A, B])

    def test_missing_current_prices(self) -> None:
        """Missing current prices abstain before reading the chain."""
        current = {A: PriceSnapshot(50000, 0, 200)}
        keeper, _, contract = make_keeper(current, {})

        result = asyncio.run(keeper.run_once())

        assert result == KeeperResult.abstain("Not all prices available")
        contract.get_last_snapshots.assert_not_called()

    def test_config_error(self) -> None:
        """Config failures abstain."""
        keeper = PriceKeeper(
            config_store=FakeConfigStore(error=ConfigError("No files in gist")),  # type: ignore[arg-type]
            w3=MagicMock(),
        )

        result = asyncio.run(keeper.run_once())
        assert result.message == "Error fetching config: No files in gist"

    def test_price_service_error(self) -> None:
        """Price service failures abstain."""
        keeper, price_service, _ = make_keeper({}, {})
        price_service.get_latest_snapshots.side_effect = SourceError("Request failed")

        result = asyncio.run(keeper.run_once())

        assert not result.can_exec
        assert result.message.startswith("Error fetching latest price feeds")

    def test_chain_read_error(self) -> None:
        """On-chain read failures abstain."""
        current = {A: PriceSnapshot(50000, 0, 200), B: PriceSnapshot(2000, 0, 201)}
        keeper, _, contract = make_keeper(current, {})
        contract.get_last_snapshots.side_effect = Web3Exception("execution reverted")

        result = asyncio.run(keeper.run_once())
        assert result.message.startswith("Error reading last prices from chain")

    def test_chain_connection_error(self) -> None:
        """An unreachable RPC node abstains instead of escaping the cycle."""
        current = {A: PriceSnapshot(50000, 0, 200), B: PriceSnapshot(2000, 0, 201)}
        keeper, _, contract = make_keeper(current, {})
        contract.get_last_snapshots.side_effect = ConnectionError("connection refused")

        result = asyncio.run(keeper.run_once())

        assert not result.can_exec
        assert result.message.startswith("Error reading last prices from chain")

    def test_update_fee_revert(self) -> None:
        """A reverting getUpdateFee abstains without building a call."""
        current = {A: PriceSnapshot(50000, 0, 200), B: PriceSnapshot(2000, 0, 201)}
        last = {A: PriceSnapshot(48000, 0, 100), B: PriceSnapshot(2000, 0, 100)}
        keeper, _, contract = make_keeper(current, last)
        contract.get_update_fee.side_effect = ContractLogicError("execution reverted")

        result = asyncio.run(keeper.run_once())

        assert not result.can_exec
        assert result.message.startswith("Error quoting update fee")
        assert "execution reverted" in result.message
        contract.encode_update_call.assert_not_called()

    def test_encode_error(self) -> None:
        """Call-data encoding failures abstain."""
        current = {A: PriceSnapshot(50000, 0, 200), B: PriceSnapshot(2000, 0, 201)}
        last = {A: PriceSnapshot(48000, 0, 100), B: PriceSnapshot(2000, 0, 100)}
        keeper, _, contract = make_keeper(current, last)
        contract.encode_update_call.side_effect = ValueError("bad update data")

        result = asyncio.run(keeper.run_once())

        assert not result.can_exec
        assert result.message.startswith("Error quoting update fee")

    def test_debug_level_restored(self) -> None:
        """Turning debug off restores the previous keeper log level."""
        current = {A: PriceSnapshot(50000, 0, 200), B: PriceSnapshot(2000, 0, 201)}
        last = {A: PriceSnapshot(49000, 0, 100), B: PriceSnapshot(2000, 0, 100)}
        keeper, _, _ = make_keeper(current, last, config=make_config(debug=True))
        keeper_logger = logging.getLogger("keeper")
        original_level = keeper_logger.level
        keeper_logger.setLevel(logging.WARNING)
        try:
            asyncio.run(keeper.run_once())
            assert keeper_logger.level == logging.DEBUG

            asyncio.run(keeper.run_once())
            assert keeper_logger.level == logging.DEBUG

            keeper.config_store.config = make_config(debug=False)  # type: ignore[attr-defined]
            asyncio.run(keeper.run_once())
            assert keeper_logger.level == logging.WARNING
        finally:
            keeper_logger.setLevel(original_level)

    def test_engine_error(self) -> None:
        """Engine errors abstain with a descriptive message."""
        current = {A: PriceSnapshot(50000, 0, 200), B: PriceSnapshot(2000, 0, 201)}
        keeper, _, _ = make_keeper(current, {A: PriceSnapshot(1, 0, 100)})

        result = asyncio.run(keeper.run_once())

        assert not result.can_exec
        assert result.message.startswith("Error computing price updates")
        assert B in result.message


class TestPriceKeeperHandleResult:
    """Test submission of cycle results."""

    def test_submits_calls(self) -> None:
        """Executable results are handed to the submitter."""
        submitter = MagicMock()
        keeper, _, _ = make_keeper({}, {}, submitter=submitter)
        call = CallData(PYTH_ADDRESS, "0xcafe", 2)

        keeper.handle_result(KeeperResult(can_exec=True, call_data=[call]))
        submitter.submit.assert_called_once_with(call)

    def test_abstain_not_submitted(self) -> None:
        """Abstaining results are not submitted."""
        submitter = MagicMock()
        keeper, _, _ = make_keeper({}, {}, submitter=submitter)

        keeper.handle_result(KeeperResult.abstain("nothing"))
        submitter.submit.assert_not_called()

    def test_submission_error_logged(self) -> None:
        """Submission errors do not propagate."""
        submitter = MagicMock()
        submitter.submit.side_effect = RuntimeError("nonce too low")
        keeper, _, _ = make_keeper({}, {}, submitter=submitter)

        keeper.handle_result(KeeperResult(can_exec=True, call_data=[CallData("0x1", "0x2", 0)]))


class StopLoop(Exception):
    pass


class TestPriceKeeperRun:
    """Test the periodic loop."""

    def test_loop_survives_cycle_error_and_closes_client(self) -> None:
        """Cycle errors are logged and the shared client is closed on exit."""
        keeper, _, _ = make_keeper({}, {}, interval=5)
        keeper.run_once = AsyncMock(side_effect=RuntimeError("boom"))  # type: ignore[method-assign]

        fake_asyncio = MagicMock()
        fake_asyncio.sleep = AsyncMock(side_effect=StopLoop)

        with patch("keeper.src.PriceKeeper.asyncio", fake_asyncio), \
                patch("keeper.src.PriceKeeper.BaseHttpSource.close_shared_client", AsyncMock()) as close:
            with pytest.raises(StopLoop):
                asyncio.run(keeper.run())

        keeper.run_once.assert_awaited_once()
        fake_asyncio.sleep.assert_awaited_once_with(5)
        close.assert_awaited_once()

    def test_interval_minimum(self) -> None:
        """Interval is at least one second."""
        keeper, _, _ = make_keeper({}, {}, interval=0)
        assert keeper.interval == 1
