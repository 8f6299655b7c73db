"""KeeperConfig: Runtime configuration loaded from the remote ``config.yaml``.

Example ``config.yaml``:

.. code-block:: yaml

    pythNetworkAddress: "0xff1a0f4744e8582DF1aE09D5611b887B6a12925C"
    priceServiceEndpoint: "https://hermes.pyth.network"
    validTimePeriodSeconds: 3600
    deviationThresholdBps: 50
    configRefreshRateInSeconds: 300
    debug: false
    priceIds:
      BTC/USD:
        - id: "e62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43"
      BTC/ETH:
        - id: "e62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43"
        - id: "ff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace"
          action: div
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .errors import ConfigError
from .ItemConfig import ItemConfig


def _require(raw: Mapping[str, Any], key: str, kind: type | tuple[type, ...]) -> Any:
    """Fetch a required key and check its type."""
    if key not in raw:
        raise ConfigError(f"Missing required config key '{key}'")
    value = raw[key]
    # bool is an int subclass and never a valid number here
    if isinstance(value, bool) or not isinstance(value, kind):
        raise ConfigError(f"Config key '{key}' has invalid value {value!r}")
    return value


@dataclass(frozen=True)
class KeeperConfig:
    """Validated keeper configuration.

    :ivar pyth_network_address: Address of the Pyth contract.
    :ivar price_service_endpoint: Base URL of the Pyth price service.
    :ivar valid_time_period_seconds: Max publish time gap before a feed is stale.
    :ivar deviation_threshold_bps: Composite move (bps) that triggers an update.
    :ivar config_refresh_rate_seconds: Seconds a cached config stays valid.
    :ivar debug: Enable verbose decision logging.
    :ivar items: Items and their feeds.
    """

    pyth_network_address: str
    price_service_endpoint: str
    valid_time_period_seconds: int
    deviation_threshold_bps: float
    items: ItemConfig
    config_refresh_rate_seconds: float = 0
    debug: bool = False

    @classmethod
    def from_dict(cls, raw: Any) -> KeeperConfig:
        """Validate a parsed ``config.yaml`` document.

        :param raw: Parsed YAML document.
        :returns: New KeeperConfig.
        :raises ConfigError: If required keys are missing or invalid.
        """
        if not isinstance(raw, Mapping):
            raise ConfigError("Keeper config must be a mapping")

        refresh_rate = raw.get("configRefreshRateInSeconds", 0)
        if isinstance(refresh_rate, bool) or not isinstance(refresh_rate, (int, float)):
            raise ConfigError(
                f"Config key 'configRefreshRateInSeconds' has invalid value {refresh_rate!r}"
            )

        debug = raw.get("debug", False)
        if not isinstance(debug, bool):
            raise ConfigError(f"Config key 'debug' has invalid value {debug!r}")

        return cls(
            pyth_network_address=_require(raw, "pythNetworkAddress", str),
            price_service_endpoint=_require(raw, "priceServiceEndpoint", str).rstrip("/"),
            valid_time_period_seconds=_require(raw, "validTimePeriodSeconds", int),
            deviation_threshold_bps=_require(raw, "deviationThresholdBps", (int, float)),
            items=ItemConfig.from_dict(_require(raw, "priceIds", Mapping)),
            config_refresh_rate_seconds=refresh_rate,
            debug=debug,
        )
