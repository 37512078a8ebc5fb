from .intent import (
    IntentClassificationPayload,
    IntentFilterPayload,
    TimeRangePayload,
)

__all__ = [
    "IntentClassificationPayload",
    "IntentFilterPayload",
    "TimeRangePayload",
]
