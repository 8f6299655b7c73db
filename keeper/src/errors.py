"""Exceptions raised by the keeper.

Update engine errors abort a whole evaluation; ``DegenerateCompositeError``
is the only one the engine itself recovers from (the item is updated).
"""


class KeeperError(Exception):
    """Base exception for keeper errors."""

    pass


class ConfigError(KeeperError):
    """Raised when the keeper configuration is missing or malformed."""

    pass


class UpdateEngineError(KeeperError):
    """Base exception for update decision errors."""

    pass


class MissingFeedSnapshotError(UpdateEngineError):
    """Raised when a referenced feed has no snapshot.

    :ivar feed_id: Normalized feed id that is missing.
    """

    def __init__(self, feed_id: str):
        """Initialize the error.

        :param feed_id: Normalized feed id that is missing.
        """
        self.feed_id = feed_id
        super().__init__(f"No price snapshot for feed {feed_id}")


class InvalidOperatorError(UpdateEngineError, ConfigError):
    """Raised when a feed reference carries an unsupported operator.

    :ivar item: Item the feed belongs to.
    :ivar feed_id: Feed id carrying the operator.
    :ivar operator: The offending operator value.
    """

    def __init__(self, item: str, feed_id: str, operator: object = None):
        """Initialize the error.

        :param item: Item the feed belongs to.
        :param feed_id: Feed id carrying the operator.
        :param operator: The offending operator value.
        """
        self.item = item
        self.feed_id = feed_id
        self.operator = operator
        super().__init__(f"Invalid action {operator!r} for feed {feed_id} of item {item}")


class DegenerateCompositeError(UpdateEngineError):
    """Raised when a composite price is zero or undefined.

    :ivar item: Item whose composite is degenerate.
    """

    def __init__(self, item: str, reason: str = "composite price is zero"):
        """Initialize the error.

        :param item: Item whose composite is degenerate.
        :param reason: Human readable cause.
        """
        self.item = item
        super().__init__(f"Degenerate composite for item {item}: {reason}")
