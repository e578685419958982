from spendcast.learning.accuracy import (
    AccuracyTracker,
    AccuracyUpdateResult,
    error_percentage,
    rolling_accuracy,
)

__all__ = [
    "AccuracyTracker",
    "AccuracyUpdateResult",
    "error_percentage",
    "rolling_accuracy",
]
