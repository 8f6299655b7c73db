"""TxSubmitter: Submission of keeper update calls."""

from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallData:
    """A call for the executor to send.

    :ivar to: Target contract address.
    :ivar data: Hex encoded call data.
    :ivar value: Value to attach, in wei.
    """

    to: str
    data: str
    value: int


class TxSubmitter:
    """Abstract base class for update call submitters."""

    @abstractmethod
    def submit(self, call: CallData) -> Any:
        """Submit a call on-chain.

        :param call: Call to submit.
        :returns: Submission result.
        """
        pass


class Web3TxSubmitter(TxSubmitter):
    """Signs calls with a local key and sends them through Web3.

    :ivar w3: Web3 instance used for sending.
    :ivar account: Local signing account.
    """

    def __init__(self, w3: Web3, private_key: str) -> None:
        """Initialize the submitter.

        :param w3: Web3 instance connected to the target chain.
        :param private_key: Hex private key of the sending account.
        """
        self.w3 = w3
        self.account: LocalAccount = Account.from_key(private_key)
        self.w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(self.account))
        self.w3.eth.default_account = self.account.address

    def submit(self, call: CallData) -> Any:
        """Send the call and wait for its receipt.

        :param call: Call to submit.
        :returns: Dict with the transaction hash and receipt status.
        """
        tx_hash = self.w3.eth.send_transaction(
            {
                "from": self.account.address,
                "to": Web3.to_checksum_address(call.to),
                "data": call.data,
                "value": call.value,
            }
        )
        tx_receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash)
        return {"tx_hash": Web3.to_hex(tx_hash), "status": tx_receipt["status"]}
