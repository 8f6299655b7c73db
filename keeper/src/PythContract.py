"""PythContract: Web3 access to the on-chain Pyth contract."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from web3 import Web3

from .FeedId import normalize_feed_id
from .PriceSnapshot import PriceSnapshot

if TYPE_CHECKING:
    from web3.contract import Contract

logger = logging.getLogger(__name__)

# Subset of the IPyth interface used by the keeper.
PYTH_ABI: list[dict] = [
    {
        "type": "function",
        "name": "getPriceUnsafe",
        "stateMutability": "view",
        "inputs": [{"name": "id", "type": "bytes32"}],
        "outputs": [
            {
                "name": "price",
                "type": "tuple",
                "components": [
                    {"name": "price", "type": "int64"},
                    {"name": "conf", "type": "uint64"},
                    {"name": "expo", "type": "int32"},
                    {"name": "publishTime", "type": "uint256"},
                ],
            }
        ],
    },
    {
        "type": "function",
        "name": "getUpdateFee",
        "stateMutability": "view",
        "inputs": [{"name": "updateData", "type": "bytes[]"}],
        "outputs": [{"name": "feeAmount", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "updatePriceFeedsIfNecessary",
        "stateMutability": "payable",
        "inputs": [
            {"name": "updateData", "type": "bytes[]"},
            {"name": "priceIds", "type": "bytes32[]"},
            {"name": "publishTimes", "type": "uint64[]"},
        ],
        "outputs": [],
    },
]


class PythContract:
    """Reads recorded prices from, and encodes updates for, the Pyth contract.

    :ivar w3: Web3 instance.
    :ivar address: Checksummed contract address.
    :ivar contract: web3 contract object.
    """

    def __init__(self, w3: Web3, address: str) -> None:
        """Initialize the contract wrapper.

        :param w3: Web3 instance connected to the target chain.
        :param address: Address of the Pyth contract.
        """
        self.w3 = w3
        self.address = Web3.to_checksum_address(address)
        self.contract: Contract = w3.eth.contract(address=self.address, abi=PYTH_ABI)

    @staticmethod
    def connect(rpc_url: str) -> Web3:
        """Create a Web3 instance for an RPC endpoint.

        :param rpc_url: HTTP RPC URL.
        :returns: Web3 instance.
        """
        return Web3(Web3.HTTPProvider(rpc_url))

    def get_last_snapshots(self, feed_ids: list[str]) -> dict[str, PriceSnapshot]:
        """Read the last recorded price of each feed.

        :param feed_ids: Feed ids to read.
        :returns: Dict mapping normalized feed id to snapshot.
        """
        snapshots: dict[str, PriceSnapshot] = {}
        for feed_id in feed_ids:
            feed_id = normalize_feed_id(feed_id)
            price_info = self.contract.functions.getPriceUnsafe(feed_id).call()
            snapshots[feed_id] = PriceSnapshot.from_chain(price_info)
        return snapshots

    def get_update_fee(self, update_data: list[bytes]) -> int:
        """Quote the fee for submitting update data.

        :param update_data: Signed price updates.
        :returns: Fee in wei.
        """
        return int(self.contract.functions.getUpdateFee(update_data).call())

    def encode_update_call(
        self,
        update_data: list[bytes],
        feed_ids: list[str],
        publish_times: list[int],
    ) -> str:
        """Encode an ``updatePriceFeedsIfNecessary`` call.

        :param update_data: Signed price updates.
        :param feed_ids: Feed ids being updated.
        :param publish_times: Publish time of each feed's update.
        :returns: Hex encoded call data.
        """
        return self.contract.encode_abi(
            "updatePriceFeedsIfNecessary",
            args=[update_data, [normalize_feed_id(f) for f in feed_ids], publish_times],
        )
