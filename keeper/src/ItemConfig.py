"""ItemConfig: Logical price items and the feeds they are composed of.

Each item maps to an ordered list of feed references. The first reference
seeds the composite price; every following reference multiplies or divides
it, in configuration order.

.. code-block:: python

    >>> items = ItemConfig.from_dict({
    ...     "BTC/USD": [{"id": "e62d"}],
    ...     "BTC/ETH": [{"id": "e62d"}, {"id": "ff61", "action": "div"}],
    ... })
    >>> items.feed_ids("BTC/ETH")
    ['0xe62d', '0xff61']
    >>> items.all_feed_ids()
    ['0xe62d', '0xff61']
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Mapping

from .errors import ConfigError, InvalidOperatorError
from .FeedId import normalize_feed_id


class FeedOperator(Enum):
    """How a feed is combined into the running composite."""

    NONE = ""
    MULTIPLY = "mul"
    DIVIDE = "div"

    @classmethod
    def parse(cls, raw: Any) -> FeedOperator:
        """Parse a config ``action`` value.

        :param raw: Value of the ``action`` key, or None if absent.
        :returns: Matching FeedOperator.
        :raises ValueError: If the value is not a known operator.
        """
        if raw is None or raw == "":
            return cls.NONE
        if not isinstance(raw, str):
            raise ValueError(f"Invalid action {raw!r}")
        return cls(raw.strip().lower())


@dataclass(frozen=True)
class FeedReference:
    """A feed taking part in an item's composite price.

    :ivar id: Normalized feed id.
    :ivar operator: Combination operator, ignored for the seed feed.
    """

    id: str
    operator: FeedOperator = FeedOperator.NONE

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", normalize_feed_id(self.id))


@dataclass
class ItemConfig:
    """Mapping of item name to its ordered feed references.

    :ivar items: Insertion-ordered dict of item name to feed references.
    """

    items: dict[str, tuple[FeedReference, ...]] = field(default_factory=dict)

    def __iter__(self) -> Iterator[tuple[str, tuple[FeedReference, ...]]]:
        return iter(self.items.items())

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, item: str) -> tuple[FeedReference, ...]:
        return self.items[item]

    def feed_ids(self, item: str) -> list[str]:
        """Get the normalized feed ids of an item in composition order.

        :param item: Item name.
        :returns: List of feed ids.
        """
        return [ref.id for ref in self.items[item]]

    def all_feed_ids(self) -> list[str]:
        """Get every feed id referenced by any item, without duplicates.

        :returns: Feed ids in order of first appearance.
        """
        seen: dict[str, None] = {}
        for refs in self.items.values():
            for ref in refs:
                seen.setdefault(ref.id, None)
        return list(seen)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ItemConfig:
        """Validate and build an ItemConfig from the ``priceIds`` config section.

        :param raw: Mapping of item name to list of ``{id, action}`` mappings.
        :returns: New ItemConfig.
        :raises ConfigError: If the structure is malformed.
        :raises InvalidOperatorError: If a non-seed feed has an unknown action.
        """
        if not isinstance(raw, Mapping):
            raise ConfigError("priceIds must be a mapping of item name to feed list")

        items: dict[str, tuple[FeedReference, ...]] = {}
        for item, feeds in raw.items():
            item = str(item)
            if not isinstance(feeds, list) or not feeds:
                raise ConfigError(f"Item {item} must list at least one feed")

            refs: list[FeedReference] = []
            for position, feed in enumerate(feeds):
                if not isinstance(feed, Mapping):
                    raise ConfigError(f"Feed #{position} of item {item} must be a mapping")
                feed_id = feed.get("id")
                if not isinstance(feed_id, str) or not feed_id:
                    raise ConfigError(f"Feed #{position} of item {item} has no id")

                # The seed's action is never applied.
                if position == 0:
                    refs.append(FeedReference(feed_id))
                    continue

                try:
                    operator = FeedOperator.parse(feed.get("action"))
                except ValueError:
                    operator = None
                if operator is None or operator is FeedOperator.NONE:
                    raise InvalidOperatorError(
                        item, normalize_feed_id(feed_id), feed.get("action")
                    )
                refs.append(FeedReference(feed_id, operator))

            items[item] = tuple(refs)

        return cls(items)
