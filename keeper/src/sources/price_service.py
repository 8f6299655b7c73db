"""Pyth price service client.

Endpoints:
    {endpoint}/api/latest_price_feeds?ids[]=...  (latest prices)
    {endpoint}/api/latest_vaas?ids[]=...         (signed update data, base64)
"""

import base64
import binascii
import logging
from typing import Any

from ..FeedId import normalize_feed_id
from ..PriceSnapshot import PriceSnapshot
from .base import BaseHttpSource, SourceError

logger = logging.getLogger(__name__)


class PriceServiceClient(BaseHttpSource):
    """Client for the Pyth price service.

    :ivar endpoint: Base URL of the price service.
    """

    name = "price-service"

    def __init__(self, endpoint: str, **kwargs: Any) -> None:
        """Initialize the client.

        :param endpoint: Base URL (e.g., "https://hermes.pyth.network").
        """
        super().__init__(**kwargs)
        self.endpoint = endpoint.rstrip("/")

    @staticmethod
    def _ids_params(feed_ids: list[str]) -> list[tuple[str, str]]:
        return [("ids[]", feed_id) for feed_id in feed_ids]

    async def get_latest_snapshots(self, feed_ids: list[str]) -> dict[str, PriceSnapshot]:
        """Fetch the latest price of each feed.

        Feeds the service does not return, or returns without a price, are
        left out of the result.

        :param feed_ids: Feed ids to query.
        :returns: Dict mapping normalized feed id to snapshot.
        :raises SourceError: On request or response format errors.
        """
        response = await self._get(
            f"{self.endpoint}/api/latest_price_feeds",
            params=self._ids_params(feed_ids),
        )
        feeds = response.json()
        if not isinstance(feeds, list):
            raise SourceError(f"Unexpected latest_price_feeds response: {feeds!r}")

        logger.debug(f"[{self.name}] latest price feeds: {feeds}")

        snapshots: dict[str, PriceSnapshot] = {}
        for feed in feeds:
            if not isinstance(feed, dict) or "id" not in feed or not feed.get("price"):
                continue
            try:
                snapshots[normalize_feed_id(feed["id"])] = PriceSnapshot.from_price_service(
                    feed["price"]
                )
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"[{self.name}] Failed to parse price for {feed['id']}: {e}")
        return snapshots

    async def get_update_data(self, feed_ids: list[str]) -> list[bytes]:
        """Fetch the signed price updates to submit on-chain.

        :param feed_ids: Feed ids to fetch update data for.
        :returns: One decoded update (VAA) per feed.
        :raises SourceError: On request or response format errors.
        """
        response = await self._get(
            f"{self.endpoint}/api/latest_vaas",
            params=self._ids_params(feed_ids),
        )
        vaas = response.json()
        if not isinstance(vaas, list):
            raise SourceError(f"Unexpected latest_vaas response: {vaas!r}")
        try:
            return [base64.b64decode(vaa, validate=True) for vaa in vaas]
        except (binascii.Error, TypeError) as e:
            raise SourceError(f"Invalid update data: {e}") from e
