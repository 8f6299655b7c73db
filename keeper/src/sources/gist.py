"""GitHub gist config source.

Endpoint: https://api.github.com/gists/{gist_id}
The gist must contain a file named ``config.yaml``.
"""

import logging
from typing import Any

import yaml

from ..errors import ConfigError
from .base import BaseHttpSource

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"


class GistConfigSource(BaseHttpSource):
    """Loads the raw keeper config from a GitHub gist.

    :ivar gist_id: Id of the gist holding ``config.yaml``.
    """

    name = "gist"
    BASE_URL = "https://api.github.com"

    def __init__(self, gist_id: str, **kwargs: Any) -> None:
        """Initialize the gist source.

        :param gist_id: Id of the gist holding ``config.yaml``.
        """
        super().__init__(**kwargs)
        self.gist_id = gist_id

    async def fetch_config(self) -> Any:
        """Fetch and parse ``config.yaml`` from the gist.

        :returns: Parsed YAML document.
        :raises ConfigError: If the gist has no files or no ``config.yaml``.
        :raises SourceError: If the request fails.
        """
        response = await self._get(
            f"{self.BASE_URL}/gists/{self.gist_id}",
            headers={"Accept": "application/vnd.github+json"},
        )
        files = response.json().get("files")
        if not files:
            raise ConfigError("No files in gist")

        for file in files.values():
            if file and file.get("filename") == CONFIG_FILENAME and file.get("content"):
                try:
                    return yaml.safe_load(file["content"])
                except yaml.YAMLError as e:
                    raise ConfigError(f"Invalid {CONFIG_FILENAME} in gist: {e}") from e

        raise ConfigError(f"No {CONFIG_FILENAME} loaded for keeper config")
