"""Exception taxonomy shared across the tracker.

Only ``SourceUnavailable`` is expected to cross module boundaries. The other
exceptions are raised and handled inside the module that owns the situation.
"""


class WhaleTrackerError(Exception):
    """Base exception for all tracker errors."""


class SourceUnavailable(WhaleTrackerError):
    """The external data source timed out, errored, or returned garbage.

    Recoverable: the affected item or cycle is skipped and retried on the
    next tick.
    """


class ClassificationSkip(WhaleTrackerError):
    """A transaction or balance entry is malformed or irrelevant."""


class PersistenceConflict(WhaleTrackerError):
    """A uniqueness violation on a dedup insert (already processed)."""


class ChannelDeliveryFailure(WhaleTrackerError):
    """A notification channel failed to deliver a message."""

    def __init__(self, channel: str, reason: str) -> None:
        super().__init__(f"{channel}: {reason}")
        self.channel = channel
        self.reason = reason
