"""
Temporal pattern analysis over a user's recent submission times.
"""

from datetime import datetime, timedelta
from typing import Iterable

from donaro.models.fraud import FraudEvaluation, RiskLevel


BURST_WINDOW = timedelta(minutes=30)
BURST_MAX_PRIOR = 3

IDENTICAL_WINDOW = timedelta(seconds=60)
IDENTICAL_MAX_PRIOR = 1


def count_within(candidate: datetime, history: Iterable[datetime], window: timedelta) -> int:
    """Number of prior timestamps strictly closer than `window` to `candidate`, either side."""
    return sum(1 for ts in history if abs(candidate - ts) < window)


def check_time_patterns(candidate: datetime, history: list[datetime]) -> FraudEvaluation:
    """
    Flag bursts of submissions and submissions made at (nearly) the same time.

    Args:
        candidate: Submission time of the donation under evaluation
        history: Submission times of the user's prior donations

    Returns:
        FraudEvaluation
    """
    result = FraudEvaluation()
    if not history:
        return result

    if count_within(candidate, history, BURST_WINDOW) > BURST_MAX_PRIOR:
        result.flag(
            RiskLevel.MEDIUM,
            "Too many donations in short period - please wait before submitting another donation",
        )

    if count_within(candidate, history, IDENTICAL_WINDOW) > IDENTICAL_MAX_PRIOR:
        result.flag(
            RiskLevel.MEDIUM,
            "Identical submission timing detected - please wait before submitting another donation",
        )

    return result
