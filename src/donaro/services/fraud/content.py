"""
Content plausibility checks on the free-text description.
"""

from donaro.models.fraud import FraudEvaluation, RiskLevel


SUSPICIOUS_KEYWORDS = ["fake", "test", "demo", "sample", "trial"]
MIN_DESCRIPTION_LENGTH = 10


def check_content(description: str) -> FraudEvaluation:
    """
    Look for placeholder keywords and a minimum amount of detail.

    Only the first matching keyword is reported. The length rule is
    evaluated independently and may trigger alongside it.
    """
    result = FraudEvaluation()
    text = description or ""
    lowered = text.lower()

    for keyword in SUSPICIOUS_KEYWORDS:
        if keyword in lowered:
            result.flag(
                RiskLevel.MEDIUM,
                f'Suspicious keyword detected in description: "{keyword}" - please provide a genuine description',
            )
            break

    if len(text) < MIN_DESCRIPTION_LENGTH:
        result.flag(
            RiskLevel.LOW,
            f"Description too short - please provide more details about your donation (minimum {MIN_DESCRIPTION_LENGTH} characters)",
        )

    return result
