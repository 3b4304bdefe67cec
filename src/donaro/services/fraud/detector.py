import logging
from datetime import timedelta
from typing import Callable, Protocol

from donaro.models.fraud import FraudCandidate, FraudEvaluation, HistoryEntry, Platform
from donaro.services.fraud.content import check_content
from donaro.services.fraud.location import check_location
from donaro.services.fraud.spatial import check_location_reuse
from donaro.services.fraud.standing import check_account_standing
from donaro.services.fraud.temporal import check_time_patterns

logger = logging.getLogger(__name__)


class HistoryProvider(Protocol):
    def recent_donations_for(self, user_id: str, window: timedelta) -> list[dict]:
        ...


class FraudDetector:
    """
    Runs the fraud checks against a candidate submission and the owner's
    recent donations, and aggregates them into a single evaluation.

    The detector is stateless: history is read from the provider on every
    call, so a donation only counts towards history once it has been stored.
    """

    def __init__(self, history_provider: HistoryProvider, history_window: timedelta):
        self.history_provider = history_provider
        self.history_window = history_window

    def load_history(self, user_id: str) -> list[HistoryEntry]:
        try:
            items = self.history_provider.recent_donations_for(user_id, self.history_window)
        except Exception:
            logger.exception("Could not load donation history", extra={"user_id": user_id})
            return []

        history = []
        for item in items:
            try:
                history.append(HistoryEntry.from_item(item))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed history item {item.get('donation_id')}: {e}")
        return history

    def evaluate(self, user_id: str, candidate: FraudCandidate, platform: Platform = "mobile") -> FraudEvaluation:
        history = self.load_history(user_id)
        self.review_account_standing(user_id, candidate, history)
        return self.evaluate_with_history(candidate, history, platform)

    def review_account_standing(
        self,
        user_id: str,
        candidate: FraudCandidate,
        history: list[HistoryEntry]
    ) -> FraudEvaluation:
        """
        Advisory account-level signals. They are logged for admins and never
        feed the verdict returned by `evaluate`.
        """
        try:
            standing = check_account_standing(candidate.timestamp, candidate.description, history)
        except Exception:
            logger.exception("Account standing review failed", extra={"user_id": user_id})
            return FraudEvaluation()

        if standing.is_fraudulent:
            logger.warning(
                f"Account standing flagged for {user_id}",
                extra={"code": "account_standing_flag", "user_id": user_id, "reasons": standing.reasons},
            )
        return standing

    def evaluate_with_history(
        self,
        candidate: FraudCandidate,
        history: list[HistoryEntry],
        platform: Platform = "mobile"
    ) -> FraudEvaluation:
        reading = candidate.location
        checks: list[tuple[str, Callable[[], FraudEvaluation]]] = [
            ("location", lambda: check_location(reading, platform)),
            ("time_patterns", lambda: check_time_patterns(
                candidate.timestamp, [h.timestamp for h in history])),
            ("location_reuse", lambda: check_location_reuse(
                reading.coordinates if reading else None, [h.location for h in history])),
            ("content", lambda: check_content(candidate.description)),
        ]

        result = FraudEvaluation()
        for name, check in checks:
            try:
                result.merge(check())
            except Exception:
                # A broken check must not block the submission
                logger.exception(f"Fraud check '{name}' failed")

        if result.is_fraudulent:
            logger.info(
                f"Fraud signals detected: risk={result.risk_level.value}",
                extra={"reasons": result.reasons},
            )
        return result
