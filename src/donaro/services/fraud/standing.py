"""
Account standing checks derived from the user's stored donation history.
"""

from datetime import datetime, timedelta

from donaro.models.fraud import FraudEvaluation, HistoryEntry, RiskLevel
from donaro.services.fraud.temporal import count_within


DAILY_WINDOW = timedelta(hours=24)
DAILY_MAX_PRIOR = 10
DESCRIPTION_MAX_REUSE = 5
REJECTED_MAX = 3


def _normalize(text: str) -> str:
    return " ".join(text.lower().split())


def check_account_standing(candidate: datetime, description: str, history: list[HistoryEntry]) -> FraudEvaluation:
    result = FraudEvaluation()
    if not history:
        return result

    if count_within(candidate, [h.timestamp for h in history], DAILY_WINDOW) > DAILY_MAX_PRIOR:
        result.flag(
            RiskLevel.MEDIUM,
            f"Daily submission limit exceeded - more than {DAILY_MAX_PRIOR} donations in 24 hours",
        )

    wanted = _normalize(description or "")
    if wanted and sum(1 for h in history if _normalize(h.description) == wanted) > DESCRIPTION_MAX_REUSE:
        result.flag(
            RiskLevel.MEDIUM,
            "Repeated description reuse detected - please describe this donation specifically",
        )

    if sum(1 for h in history if h.status == "rejected") > REJECTED_MAX:
        result.flag(
            RiskLevel.MEDIUM,
            "Account has multiple rejected donations - submission needs manual review",
        )

    return result
