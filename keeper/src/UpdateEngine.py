"""UpdateEngine: Decide which price feeds need an on-chain update.

Algorithm, per configured item:
    1. If any feed of the item has a current publish time more than
       ``valid_time_period_seconds`` past the last recorded one, the item is
       stale and every feed of the item is updated.
    2. Otherwise compose the item's price from the current and from the last
       snapshots, in configuration order (seed, then multiply/divide).
    3. If ``|last - current| * 10000 / last`` reaches
       ``deviation_threshold_bps``, every feed of the item is updated.
    4. A zero or undefined composite counts as requiring an update.

Feed ids shared by several triggered items appear once in the result.

.. code-block:: python

    >>> items = ItemConfig.from_dict({"BTC/ETH": [{"id": "a"}, {"id": "b", "action": "div"}]})
    >>> current = {"0xa": PriceSnapshot(50000, 0, 100), "0xb": PriceSnapshot(2000, 0, 100)}
    >>> last = {"0xa": PriceSnapshot(48000, 0, 90), "0xb": PriceSnapshot(2000, 0, 90)}
    >>> compute_update_set(items, current, last, 3600, 400).to_list()
    ['0xa', '0xb']
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Iterator, Sequence

from .errors import DegenerateCompositeError, InvalidOperatorError, MissingFeedSnapshotError
from .FeedId import normalize_feed_id
from .ItemConfig import FeedOperator, FeedReference, ItemConfig
from .PriceSnapshot import PriceSnapshot, SnapshotMap

logger = logging.getLogger(__name__)

BPS_SCALE = Decimal(10000)

REASON_STALE = "stale"
REASON_DEVIATION = "deviation"
REASON_DEGENERATE = "degenerate"


class UpdateSet:
    """Ordered collection of unique feed ids to update."""

    def __init__(self, feed_ids: Iterable[str] = ()) -> None:
        self._ids: dict[str, None] = {}
        self.update(feed_ids)

    def add(self, feed_id: str) -> None:
        """Add a feed id, keeping the position of its first insertion."""
        self._ids.setdefault(feed_id, None)

    def update(self, feed_ids: Iterable[str]) -> None:
        """Add several feed ids."""
        for feed_id in feed_ids:
            self.add(feed_id)

    def to_list(self) -> list[str]:
        return list(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, feed_id: object) -> bool:
        return feed_id in self._ids

    def __repr__(self) -> str:
        return f"UpdateSet({self.to_list()!r})"


@dataclass
class ItemDecision:
    """Outcome of evaluating one item.

    :ivar item: Item name.
    :ivar feed_ids: Normalized feed ids of the item.
    :ivar reason: Why the item triggers (stale, deviation, degenerate), or None.
    :ivar diff_bps: Composite deviation in basis points, when computed.
    """

    item: str
    feed_ids: list[str] = field(default_factory=list)
    reason: str | None = None
    diff_bps: Decimal | None = None

    @property
    def triggered(self) -> bool:
        """Check if the item's feeds must be updated."""
        return self.reason is not None


def _snapshot(snapshots: SnapshotMap, feed_id: str) -> PriceSnapshot:
    feed_id = normalize_feed_id(feed_id)
    snapshot = snapshots.get(feed_id)
    if snapshot is None:
        raise MissingFeedSnapshotError(feed_id)
    return snapshot


def compose_price(
    item: str,
    refs: Sequence[FeedReference],
    snapshots: SnapshotMap,
) -> Decimal:
    """Compose an item's price from its feeds.

    :param item: Item name, used in error reports.
    :param refs: Feed references in composition order (non-empty).
    :param snapshots: Snapshot map to read feed values from.
    :returns: The composite price.
    :raises MissingFeedSnapshotError: If a feed has no snapshot.
    :raises InvalidOperatorError: If a non-seed feed has no usable operator.
    :raises DegenerateCompositeError: If a divisor feed is zero.
    """
    seed, *rest = refs
    composite = _snapshot(snapshots, seed.id).value

    for ref in rest:
        value = _snapshot(snapshots, ref.id).value
        if ref.operator is FeedOperator.DIVIDE:
            if value == 0:
                raise DegenerateCompositeError(item, f"divisor feed {ref.id} is zero")
            composite = composite / value
        elif ref.operator is FeedOperator.MULTIPLY:
            composite = composite * value
        else:
            raise InvalidOperatorError(item, ref.id, ref.operator)

    return composite


def is_stale(
    refs: Sequence[FeedReference],
    current: SnapshotMap,
    last: SnapshotMap,
    valid_time_period_seconds: int,
) -> bool:
    """Check whether any feed of an item moved past the allowed age.

    :param refs: Feed references of the item.
    :param current: Freshly observed snapshots.
    :param last: Last recorded snapshots.
    :param valid_time_period_seconds: Allowed publish time gap in seconds.
    :returns: True if any feed's gap strictly exceeds the allowed age.
    :raises MissingFeedSnapshotError: If a feed has no snapshot in either map.
    """
    for ref in refs:
        gap = _snapshot(current, ref.id).publish_time - _snapshot(last, ref.id).publish_time
        if gap > valid_time_period_seconds:
            return True
    return False


def deviation_bps(
    composed_last: Decimal,
    composed_current: Decimal,
    item: str = "",
) -> Decimal:
    """Relative move between two composites, in basis points of the last one.

    :raises DegenerateCompositeError: If ``composed_last`` is zero.
    """
    if composed_last == 0:
        raise DegenerateCompositeError(item)
    return abs(composed_last - composed_current) * BPS_SCALE / composed_last


def exceeds_deviation(diff_bps: Decimal, deviation_threshold_bps: float | Decimal) -> bool:
    """Check the deviation against the threshold (inclusive)."""
    return diff_bps >= Decimal(str(deviation_threshold_bps))


def evaluate_item(
    item: str,
    refs: Sequence[FeedReference],
    current: SnapshotMap,
    last: SnapshotMap,
    valid_time_period_seconds: int,
    deviation_threshold_bps: float | Decimal,
) -> ItemDecision:
    """Decide whether one item's feeds need an update.

    :returns: ItemDecision with the trigger reason, if any.
    :raises MissingFeedSnapshotError: If a feed has no snapshot.
    :raises InvalidOperatorError: If a non-seed feed has no usable operator.
    """
    decision = ItemDecision(item=item, feed_ids=[normalize_feed_id(ref.id) for ref in refs])

    if is_stale(refs, current, last, valid_time_period_seconds):
        decision.reason = REASON_STALE
        return decision

    try:
        composed_current = compose_price(item, refs, current)
        composed_last = compose_price(item, refs, last)
        decision.diff_bps = deviation_bps(composed_last, composed_current, item)
    except DegenerateCompositeError as e:
        logger.warning(f"{e}; updating all feeds of {item}")
        decision.reason = REASON_DEGENERATE
        return decision

    if exceeds_deviation(decision.diff_bps, deviation_threshold_bps):
        decision.reason = REASON_DEVIATION
    return decision


def compute_update_set(
    items: ItemConfig,
    current: SnapshotMap,
    last: SnapshotMap,
    valid_time_period_seconds: int,
    deviation_threshold_bps: float | Decimal,
) -> UpdateSet:
    """Collect the feed ids of every item that needs an update.

    :param items: Items and their feed references.
    :param current: Freshly observed snapshots (price service).
    :param last: Last recorded snapshots (on-chain).
    :param valid_time_period_seconds: Staleness bound in seconds.
    :param deviation_threshold_bps: Deviation bound in basis points.
    :returns: UpdateSet of feed ids, in order of first trigger.
    :raises MissingFeedSnapshotError: If any referenced feed has no snapshot.
    :raises InvalidOperatorError: If any non-seed feed has no usable operator.
    """
    update_set = UpdateSet()

    for item, refs in items:
        decision = evaluate_item(
            item, refs, current, last, valid_time_period_seconds, deviation_threshold_bps
        )
        logger.debug(
            f"item: {item}, feeds: {decision.feed_ids}, "
            f"diff_bps: {decision.diff_bps}, reason: {decision.reason}"
        )
        if decision.triggered:
            update_set.update(decision.feed_ids)

    return update_set
