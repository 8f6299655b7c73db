"""FeedId: Canonical form for Pyth price feed identifiers.

The price service returns ids without the ``0x`` prefix while the on-chain
contract and the gist config usually carry it. Every id is normalized before
it is used as a map key or compared.

.. code-block:: python

    >>> normalize_feed_id("e62df6c8")
    '0xe62df6c8'
    >>> normalize_feed_id("0xe62df6c8")
    '0xe62df6c8'
"""

FEED_ID_PREFIX = "0x"


def normalize_feed_id(raw_id: str) -> str:
    """Return the feed id with a leading ``0x``.

    :param raw_id: Feed id as found in the source.
    :returns: The id, prefixed with ``0x`` if it was not already.
    """
    if raw_id.startswith(FEED_ID_PREFIX):
        return raw_id
    return FEED_ID_PREFIX + raw_id
