"""
Geolocation validation.

Judges whether a device location reading is usable as evidence for a
donation: present, not the null island, accurate enough for the platform and
not reported as mocked by the device.
"""

from donaro.models.fraud import FraudEvaluation, LocationReading, Platform, RiskLevel


# Web GPS readings are systematically coarser than native ones
MAX_ACCURACY_METERS = {
    "mobile": 1000,
    "web": 5000,
}

LOW_ACCURACY_RISK = {
    "mobile": RiskLevel.MEDIUM,
    "web": RiskLevel.LOW,
}


def check_location(reading: LocationReading | None, platform: Platform = "mobile") -> FraudEvaluation:
    """
    Validate a location reading.

    Args:
        reading: Device location, or None when location services were off
        platform: "mobile" or "web"; selects the accuracy ceiling

    Returns:
        FraudEvaluation with one reason per triggered rule
    """
    result = FraudEvaluation()

    if reading is None:
        result.flag(
            RiskLevel.HIGH,
            "Missing location data - please ensure location services are enabled",
        )
        return result

    if reading.latitude == 0 and reading.longitude == 0:
        result.flag(
            RiskLevel.HIGH,
            "Suspicious zero coordinates detected - please try again in a different location",
        )

    max_accuracy = MAX_ACCURACY_METERS[platform]
    if reading.accuracy is not None and reading.accuracy > max_accuracy:
        result.flag(
            LOW_ACCURACY_RISK[platform],
            f"Low location accuracy detected ({reading.accuracy:.0f}m) - please ensure you're in an open area",
        )

    if reading.mocked:
        result.flag(
            RiskLevel.HIGH,
            "Mocked location detected - please disable location spoofing apps",
        )

    return result
