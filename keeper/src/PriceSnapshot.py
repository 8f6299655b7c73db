"""PriceSnapshot: A single feed price as ``mantissa * 10^exponent``.

Snapshots come from two places: the price service (freshly observed) and the
on-chain Pyth contract (last recorded). Both are converted into the same
immutable value so the update engine can compare them.

.. code-block:: python

    >>> snap = PriceSnapshot(mantissa=6512345, exponent=-2, publish_time=1700000000)
    >>> snap.value
    Decimal('65123.45')
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

# A SnapshotMap is keyed by normalized feed id.
SnapshotMap = dict[str, "PriceSnapshot"]


@dataclass(frozen=True)
class PriceSnapshot:
    """Price of one feed at one publish time.

    :ivar mantissa: Integer price as reported by Pyth.
    :ivar exponent: Power of ten applied to the mantissa.
    :ivar publish_time: Unix timestamp (seconds) of the price.
    """

    mantissa: int
    exponent: int
    publish_time: int

    @property
    def value(self) -> Decimal:
        """Exact real value of the price."""
        return Decimal(self.mantissa).scaleb(self.exponent)

    @classmethod
    def from_price_service(cls, price: dict[str, Any]) -> PriceSnapshot:
        """Build a snapshot from a price service ``price`` object.

        :param price: Mapping with ``price`` (string), ``expo`` and ``publish_time``.
        :returns: New PriceSnapshot.
        :raises KeyError: If a field is missing.
        :raises ValueError: If a field is not an integer.
        """
        return cls(
            mantissa=int(price["price"]),
            exponent=int(price["expo"]),
            publish_time=int(price["publish_time"]),
        )

    @classmethod
    def from_chain(cls, price_info: Sequence[int]) -> PriceSnapshot:
        """Build a snapshot from the ``getPriceUnsafe`` return tuple.

        :param price_info: ``(price, conf, expo, publishTime)``.
        :returns: New PriceSnapshot.
        """
        return cls(
            mantissa=int(price_info[0]),
            exponent=int(price_info[2]),
            publish_time=int(price_info[3]),
        )
