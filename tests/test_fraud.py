"""
Tests for the fraud checks and the orchestrating detector.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from donaro.models.fraud import (
    Coordinates,
    FraudCandidate,
    HistoryEntry,
    LocationReading,
    RiskLevel,
    higher_risk,
    parse_coordinates,
)
from donaro.services.fraud import (
    FraudDetector,
    check_account_standing,
    check_content,
    check_location,
    check_location_reuse,
    check_time_patterns,
    haversine_distance,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestRiskLevel:

    def test_total_order(self):
        assert higher_risk(RiskLevel.LOW, RiskLevel.MEDIUM) == RiskLevel.MEDIUM
        assert higher_risk(RiskLevel.HIGH, RiskLevel.MEDIUM) == RiskLevel.HIGH
        assert higher_risk(RiskLevel.LOW, RiskLevel.LOW) == RiskLevel.LOW

    def test_parse_coordinates(self):
        assert parse_coordinates("19.07,72.87") == Coordinates(19.07, 72.87)
        assert parse_coordinates(" 19.07 , 72.87 ") == Coordinates(19.07, 72.87)
        assert parse_coordinates("Andheri West, Mumbai") is None
        assert parse_coordinates("") is None
        assert parse_coordinates("120,10") is None


class TestLocationCheck:

    def test_missing_location_is_high_risk(self):
        result = check_location(None)
        assert result.is_fraudulent is True
        assert result.risk_level == RiskLevel.HIGH
        assert "missing location data" in result.reasons[0].lower()

    def test_zero_coordinates_is_high_risk(self):
        result = check_location(LocationReading(latitude=0, longitude=0, accuracy=10))
        assert result.is_fraudulent is True
        assert result.risk_level == RiskLevel.HIGH
        assert "zero coordinates" in result.reasons[0].lower()

    def test_accurate_reading_passes(self, good_location):
        result = check_location(good_location)
        assert result.is_fraudulent is False
        assert result.reasons == []

    def test_poor_accuracy_on_mobile_is_medium(self):
        result = check_location(LocationReading(latitude=19.07, longitude=72.87, accuracy=1500))
        assert result.risk_level == RiskLevel.MEDIUM
        assert "1500" in result.reasons[0]

    def test_huge_accuracy_is_reported_in_whole_metres(self):
        result = check_location(LocationReading(latitude=19.07, longitude=72.87, accuracy=12345678))
        assert "(12345678m)" in result.reasons[0]
        assert "e+" not in result.reasons[0]

    def test_web_ceiling_is_more_lenient(self):
        reading = LocationReading(latitude=19.07, longitude=72.87, accuracy=1500)
        assert check_location(reading, platform="web").is_fraudulent is False

        result = check_location(
            LocationReading(latitude=19.07, longitude=72.87, accuracy=6000), platform="web")
        assert result.is_fraudulent is True
        assert result.risk_level == RiskLevel.LOW

    def test_missing_accuracy_is_not_flagged(self):
        result = check_location(LocationReading(latitude=19.07, longitude=72.87))
        assert result.is_fraudulent is False

    def test_mocked_location_is_high_risk(self):
        result = check_location(LocationReading(latitude=19.07, longitude=72.87, accuracy=5, mocked=True))
        assert result.risk_level == RiskLevel.HIGH
        assert "mocked location" in result.reasons[0].lower()

    def test_risk_never_decreases(self):
        # zero coordinates (high) followed by poor web accuracy (low)
        reading = LocationReading(latitude=0, longitude=0, accuracy=9000)
        result = check_location(reading, platform="web")
        assert len(result.reasons) == 2
        assert result.risk_level == RiskLevel.HIGH


class TestTimePatterns:

    def test_empty_history_is_clean(self):
        assert check_time_patterns(NOW, []).is_fraudulent is False

    def test_four_recent_donations_flag_burst(self):
        history = [NOW - timedelta(minutes=m) for m in (5, 10, 15, 20)]
        result = check_time_patterns(NOW, history)
        assert result.is_fraudulent is True
        assert result.risk_level == RiskLevel.MEDIUM
        assert result.reasons == [
            "Too many donations in short period - please wait before submitting another donation"
        ]

    def test_three_recent_donations_are_allowed(self):
        history = [NOW - timedelta(minutes=m) for m in (5, 10, 15)]
        assert check_time_patterns(NOW, history).is_fraudulent is False

    def test_old_donations_do_not_count(self):
        history = [NOW - timedelta(minutes=m) for m in (31, 45, 60, 90, 120)]
        assert check_time_patterns(NOW, history).is_fraudulent is False

    def test_identical_timing(self):
        history = [NOW - timedelta(seconds=10), NOW - timedelta(seconds=40)]
        result = check_time_patterns(NOW, history)
        assert result.is_fraudulent is True
        assert "identical submission timing" in result.reasons[0].lower()

    def test_single_close_submission_is_allowed(self):
        assert check_time_patterns(NOW, [NOW - timedelta(seconds=30)]).is_fraudulent is False


class TestLocationReuse:

    def test_haversine_distance(self):
        # one degree of latitude is roughly 111.2 km
        d = haversine_distance(Coordinates(0, 0), Coordinates(1, 0))
        assert d == pytest.approx(111_195, rel=1e-3)
        assert haversine_distance(Coordinates(19.07, 72.87), Coordinates(19.07, 72.87)) == 0

    def test_six_reuses_flagged(self):
        spot = Coordinates(19.07, 72.87)
        history = [Coordinates(19.0701, 72.8701)] * 6
        result = check_location_reuse(spot, history)
        assert result.is_fraudulent is True
        assert result.risk_level == RiskLevel.MEDIUM
        assert "repeated location reuse" in result.reasons[0].lower()

    def test_five_reuses_allowed(self):
        spot = Coordinates(19.07, 72.87)
        assert check_location_reuse(spot, [spot] * 5).is_fraudulent is False

    def test_far_locations_and_unknown_entries_are_skipped(self):
        spot = Coordinates(19.07, 72.87)
        history = [None] * 10 + [Coordinates(19.08, 72.87)] * 10
        assert check_location_reuse(spot, history).is_fraudulent is False

    def test_missing_candidate_location(self):
        assert check_location_reuse(None, [Coordinates(19.07, 72.87)] * 10).is_fraudulent is False


class TestContentCheck:

    def test_genuine_description(self):
        assert check_content("Fresh vegetables for the food bank").is_fraudulent is False

    def test_keyword_is_case_insensitive(self):
        result = check_content("This is a DEMO donation of rice")
        assert result.risk_level == RiskLevel.MEDIUM
        assert '"demo"' in result.reasons[0]

    def test_only_first_keyword_reported(self):
        result = check_content("fake sample trial of old clothes")
        assert len(result.reasons) == 1
        assert '"fake"' in result.reasons[0]

    def test_short_description(self):
        result = check_content("short")
        assert result.is_fraudulent is True
        assert result.risk_level == RiskLevel.LOW
        assert "description too short" in result.reasons[0].lower()

    def test_short_and_keyword_co_trigger(self):
        result = check_content("test")
        assert len(result.reasons) == 2
        assert result.risk_level == RiskLevel.MEDIUM


class TestAccountStanding:

    def _entry(self, minutes_ago=600, description="Warm blankets for the shelter", status="approved"):
        return HistoryEntry(timestamp=NOW - timedelta(minutes=minutes_ago),
                            description=description, status=status)

    def test_clean_history(self):
        history = [self._entry() for _ in range(3)]
        assert check_account_standing(NOW, "Rice bags for the shelter", history).is_fraudulent is False

    def test_daily_limit(self):
        history = [self._entry(minutes_ago=60 * i + 45, description=f"Donation number {i}") for i in range(11)]
        result = check_account_standing(NOW, "Rice bags for the shelter", history)
        assert "daily submission limit" in result.reasons[0].lower()

    def test_description_reuse(self):
        history = [self._entry(minutes_ago=60 * 30) for _ in range(6)]
        result = check_account_standing(NOW, "  warm BLANKETS for the shelter ", history)
        assert result.is_fraudulent is True
        assert "repeated description" in result.reasons[0].lower()

    def test_rejected_history(self):
        history = [self._entry(description=f"Item {i}", status="rejected") for i in range(4)]
        result = check_account_standing(NOW, "Rice bags for the shelter", history)
        assert result.risk_level == RiskLevel.MEDIUM
        assert "rejected donations" in result.reasons[0].lower()


class TestFraudDetector:

    def test_clean_submission(self, fraud_detector, good_location):
        candidate = FraudCandidate(category="food",
                                   description="Fresh vegetables for the food bank",
                                   location=good_location)
        result = fraud_detector.evaluate("user-1", candidate)
        assert result.is_fraudulent is False
        assert result.risk_level == RiskLevel.LOW
        assert result.reasons == []

    def test_reasons_follow_check_order_and_risk_is_max(self, fraud_detector):
        candidate = FraudCandidate(category="food", description="short",
                                   location=LocationReading(latitude=0, longitude=0, accuracy=10))
        result = fraud_detector.evaluate("user-1", candidate)
        assert result.is_fraudulent is True
        assert result.risk_level == RiskLevel.HIGH
        assert "zero coordinates" in result.reasons[0].lower()
        assert "description too short" in result.reasons[-1].lower()

    def test_null_location_always_high(self, fraud_detector):
        candidate = FraudCandidate(category="books", description="Children's story books")
        assert fraud_detector.evaluate("user-1", candidate).risk_level == RiskLevel.HIGH

    def test_fifth_submission_in_half_hour_is_medium(self, fraud_detector, seed_donation, good_location):
        for minutes in (5, 10, 15, 20):
            seed_donation(minutes_ago=minutes, location=f"19.{minutes},72.87",
                          description=f"Blanket batch {minutes}")

        candidate = FraudCandidate(category="food",
                                   description="Fresh vegetables for the food bank",
                                   location=good_location)
        result = fraud_detector.evaluate("user-1", candidate)
        assert result.is_fraudulent is True
        assert result.risk_level == RiskLevel.MEDIUM
        assert any("too many donations in short period" in r.lower() for r in result.reasons)

    def test_history_is_per_user(self, fraud_detector, seed_donation, good_location):
        for minutes in (1, 2, 3, 4, 5, 6):
            seed_donation(user_id="someone-else", minutes_ago=minutes)
        candidate = FraudCandidate(category="food",
                                   description="Fresh vegetables for the food bank",
                                   location=good_location)
        assert fraud_detector.evaluate("user-1", candidate).is_fraudulent is False

    def test_history_provider_failure_does_not_raise(self, good_location):
        class BrokenProvider:
            def recent_donations_for(self, user_id, window):
                raise RuntimeError("table unavailable")

        detector = FraudDetector(BrokenProvider(), timedelta(days=1))
        candidate = FraudCandidate(category="food", description="short", location=good_location)
        result = detector.evaluate("user-1", candidate)
        assert result.risk_level == RiskLevel.LOW
        assert len(result.reasons) == 1

    def test_malformed_history_items_are_skipped(self, good_location):
        class Provider:
            def recent_donations_for(self, user_id, window):
                return [{"donation_id": "x"}, {"created_at": "not a date"}]

        detector = FraudDetector(Provider(), timedelta(days=1))
        candidate = FraudCandidate(category="food",
                                   description="Fresh vegetables for the food bank",
                                   location=good_location)
        assert detector.evaluate("user-1", candidate).is_fraudulent is False

    def test_rejected_history_does_not_change_verdict(self, fraud_detector, seed_donation, good_location, caplog):
        for i in range(4):
            seed_donation(minutes_ago=600 + 100 * i, location=f"18.{i},73.0",
                          description=f"Old batch {i}", status="rejected")

        candidate = FraudCandidate(category="food",
                                   description="Fresh vegetables for the food bank",
                                   location=good_location)
        with caplog.at_level(logging.WARNING, logger="donaro.services.fraud.detector"):
            result = fraud_detector.evaluate("user-1", candidate)

        assert result.is_fraudulent is False
        assert result.reasons == []
        flagged = [r for r in caplog.records if getattr(r, "code", None) == "account_standing_flag"]
        assert len(flagged) == 1
        assert "rejected donations" in flagged[0].reasons[0].lower()

    def test_reused_description_does_not_change_verdict(self, fraud_detector, seed_donation, good_location):
        for i in range(6):
            seed_donation(minutes_ago=60 * 30 + 90 * i, location=f"18.{i},73.0",
                          description="Fresh vegetables for the food bank")

        candidate = FraudCandidate(category="food",
                                   description="Fresh vegetables for the food bank",
                                   location=good_location)
        assert fraud_detector.evaluate("user-1", candidate).is_fraudulent is False

        history = fraud_detector.load_history("user-1")
        standing = fraud_detector.review_account_standing("user-1", candidate, history)
        assert "repeated description" in standing.reasons[0].lower()

    def test_naive_timestamp_is_compared_as_utc(self, fraud_detector, seed_donation, good_location):
        for minutes in (5, 10, 15, 20):
            seed_donation(minutes_ago=minutes, location=f"18.{minutes},73.0",
                          description=f"Blanket batch {minutes}")

        naive_now = datetime.now(timezone.utc).replace(tzinfo=None)
        candidate = FraudCandidate(category="food",
                                   description="Fresh vegetables for the food bank",
                                   location=good_location,
                                   timestamp=naive_now)
        assert candidate.timestamp.tzinfo == timezone.utc

        result = fraud_detector.evaluate("user-1", candidate)
        assert any("too many donations in short period" in r.lower() for r in result.reasons)
