"""
HTTP collaborators of the keeper.

Usage:
    from keeper.src.sources import GistConfigSource, PriceServiceClient

    raw_config = await GistConfigSource(gist_id).fetch_config()
    client = PriceServiceClient("https://hermes.pyth.network")
    snapshots = await client.get_latest_snapshots(["0xe62d..."])
"""

from .base import BaseHttpSource, SourceError, SourceHTTPError
from .gist import GistConfigSource
from .price_service import PriceServiceClient

__all__ = [
    "BaseHttpSource",
    "GistConfigSource",
    "PriceServiceClient",
    "SourceError",
    "SourceHTTPError",
]
