# Correlation Table
# Tracks in-flight execute requests until a result arrives or the deadline passes

from monkey_relay.correlation.table import (
    CompletionStatus,
    CorrelationTable,
    PendingRequest,
    DEFAULT_TIMEOUT_SECONDS,
)

__all__ = [
    "CompletionStatus",
    "CorrelationTable",
    "PendingRequest",
    "DEFAULT_TIMEOUT_SECONDS",
]
