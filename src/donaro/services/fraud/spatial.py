"""
Spatial repetition analysis: the same spot reused for many submissions.
"""

import math

from donaro.models.fraud import Coordinates, FraudEvaluation, RiskLevel


EARTH_RADIUS_METERS = 6_371_000
SAME_SPOT_METERS = 100
SAME_SPOT_MAX_PRIOR = 5


def haversine_distance(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two coordinates, in metres."""
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = (math.sin(d_phi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2)
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def check_location_reuse(candidate: Coordinates | None, history: list[Coordinates | None]) -> FraudEvaluation:
    result = FraudEvaluation()
    if candidate is None or not history:
        return result

    same_spot = sum(
        1 for previous in history
        if previous is not None and haversine_distance(previous, candidate) < SAME_SPOT_METERS
    )

    if same_spot > SAME_SPOT_MAX_PRIOR:
        result.flag(
            RiskLevel.MEDIUM,
            "Repeated location reuse detected - multiple donations at the same location",
        )

    return result
