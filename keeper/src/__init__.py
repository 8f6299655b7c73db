"""
Pyth Price Keeper - Update Decision Module

This module decides which Pyth price feeds need an on-chain update:
- FeedId: Canonical feed identifiers
- PriceSnapshot: Feed price as mantissa and exponent
- ItemConfig: Items composed of one or more feeds
- UpdateEngine: Staleness and deviation checks, update set building
- ConfigStore: Refresh-rate gated cache of the remote config
- PythContract: On-chain reads and update call encoding
- PriceKeeper: Main orchestrator for keeper cycles
- sources: HTTP collaborators (gist config, price service)
"""

from .ConfigStore import ConfigStore, JsonFileStorage
from .errors import (
    ConfigError,
    DegenerateCompositeError,
    InvalidOperatorError,
    KeeperError,
    MissingFeedSnapshotError,
    UpdateEngineError,
)
from .FeedId import normalize_feed_id
from .ItemConfig import FeedOperator, FeedReference, ItemConfig
from .KeeperConfig import KeeperConfig
from .PriceKeeper import KeeperResult, PriceKeeper
from .PriceSnapshot import PriceSnapshot
from .PythContract import PythContract
from .TxSubmitter import CallData, TxSubmitter, Web3TxSubmitter
from .UpdateEngine import ItemDecision, UpdateSet, compute_update_set

__all__ = [
    "CallData",
    "ConfigError",
    "ConfigStore",
    "DegenerateCompositeError",
    "FeedOperator",
    "FeedReference",
    "InvalidOperatorError",
    "ItemConfig",
    "ItemDecision",
    "JsonFileStorage",
    "KeeperConfig",
    "KeeperError",
    "KeeperResult",
    "MissingFeedSnapshotError",
    "PriceKeeper",
    "PriceSnapshot",
    "PythContract",
    "TxSubmitter",
    "UpdateEngineError",
    "UpdateSet",
    "Web3TxSubmitter",
    "compute_update_set",
    "normalize_feed_id",
]
