"""ConfigStore: Refresh-rate gated cache of the keeper config.

The raw config is fetched from its remote source only when the cached copy is
missing or older than its own ``configRefreshRateInSeconds``. The cache lives
in a small string key-value storage, persisted as a JSON file so it survives
restarts.

.. code-block:: python

    >>> store = ConfigStore(JsonFileStorage(".keeper-storage.json"), GistConfigSource(gist_id))
    >>> config = await store.load()
    >>> config.deviation_threshold_bps
    50
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from .errors import ConfigError
from .KeeperConfig import KeeperConfig

if TYPE_CHECKING:
    from .sources import GistConfigSource

logger = logging.getLogger(__name__)

STORAGE_KEY = "pythConfig"


class JsonFileStorage:
    """String key-value storage backed by a JSON file.

    :ivar path: Path of the JSON file.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the storage.

        :param path: Path of the JSON file; created on first write.
        """
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as file:
                data = json.load(file)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Storage file {self.path} does not hold a JSON object")
        return data

    def get(self, key: str) -> str | None:
        """Get a stored value.

        :param key: Storage key.
        :returns: Stored string, or None if absent.
        """
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one.

        :param key: Storage key.
        :param value: String value.
        """
        data = self._read()
        data[key] = value
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w") as file:
            json.dump(data, file)
        tmp_path.replace(self.path)


class ConfigStore:
    """Loads the keeper config, reusing a cached copy while it is fresh.

    :ivar storage: Key-value storage holding the cached config.
    :ivar source: Remote source providing the raw config.
    """

    def __init__(
        self,
        storage: JsonFileStorage,
        source: GistConfigSource,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        :param storage: Key-value storage holding the cached config.
        :param source: Remote source providing the raw config.
        :param clock: Returns the current unix time in seconds.
        """
        self.storage = storage
        self.source = source
        self.clock = clock

    def _cached(self) -> dict[str, Any]:
        raw = self.storage.get(STORAGE_KEY)
        if not raw:
            return {}
        try:
            cached = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable cached config")
            return {}
        return cached if isinstance(cached, dict) else {}

    def should_fetch(self, cached: dict[str, Any]) -> bool:
        """Check whether the cached config must be refreshed.

        :param cached: Cached ``{timestamp, pythConfig}`` entry, possibly empty.
        :returns: True if nothing is cached or the cache outlived its refresh rate.
        """
        config = cached.get("pythConfig")
        if config is None:
            return True
        refresh_rate = 0
        if isinstance(config, dict):
            refresh_rate = config.get("configRefreshRateInSeconds", 0)
        if not isinstance(refresh_rate, (int, float)):
            refresh_rate = 0
        timestamp = cached.get("timestamp", 0)
        if not isinstance(timestamp, (int, float)):
            return True
        return self.clock() - timestamp > refresh_rate

    async def load(self) -> KeeperConfig:
        """Load the keeper config, fetching it if necessary.

        :returns: Validated KeeperConfig.
        :raises ConfigError: If the config cannot be loaded or is invalid.
        :raises SourceError: If the remote source cannot be reached.
        """
        cached = self._cached()

        if self.should_fetch(cached):
            raw_config = await self.source.fetch_config()
            config = KeeperConfig.from_dict(raw_config)
            value = json.dumps({"timestamp": self.clock(), "pythConfig": raw_config})
            if config.debug:
                logger.debug(f"Storing fetched config: {value}")
            self.storage.set(STORAGE_KEY, value)
            return config

        config = KeeperConfig.from_dict(cached["pythConfig"])
        if config.debug:
            logger.debug("Using config from storage")
        return config
