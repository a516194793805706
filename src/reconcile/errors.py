"""Error hierarchy for store access and status writes.

This hierarchy lets tenacity retry policies classify transient store
failures (should retry) vs permanent failures (should not retry).

Example usage with tenacity:
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(2)
    ):
        with attempt:
            doc = await store.get(doc_id)
"""


class ReconcileError(Exception):
    """Base exception for all reconciliation errors."""

    pass


class TransientError(ReconcileError):
    """Temporary store failure that may succeed on retry.

    Examples: network timeouts, deadline exceeded, store briefly unavailable.
    """

    pass


class PermanentError(ReconcileError):
    """Failure that won't succeed on retry."""

    pass


class MissingIndexError(PermanentError):
    """The store cannot answer a query on this field without an index.

    Raised per query; the retriever treats it as one failed strategy and
    carries on with the others.
    """

    def __init__(self, field_path: str) -> None:
        super().__init__(f"Query on {field_path!r} requires an index")
        self.field_path = field_path


class SweepWriteError(PermanentError):
    """The status sweep's batch write failed and nothing was applied."""

    pass
