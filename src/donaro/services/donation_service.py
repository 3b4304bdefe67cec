import logging

from donaro.core.exceptions import (
    ConflictError,
    ForbiddenError,
    FraudWarningError,
    NotFoundError,
    SuspiciousDonationError,
    ValidationError,
)
from donaro.data_access.dynamodb import DynamoDataAccess
from donaro.models.donation import Donation, utcnow
from donaro.models.fraud import FraudCandidate, FraudEvaluation, LocationReading, Platform, RiskLevel
from donaro.services.credits import credits_for
from donaro.services.fraud import FraudDetector
from donaro.services.notification_service import DONATION_FINALIZED, NotificationPublisher

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "category", "title", "description", "quantity",
    "date", "time", "location", "donation_photo", "selfie_photo",
)
OPTIONAL_FIELDS = ("receiver",)
FINAL_STATUSES = ("approved", "rejected")
DONATION_STATUSES = ("pending",) + FINAL_STATUSES


class DonationService:
    def __init__(
        self,
        data_access: DynamoDataAccess,
        fraud_detector: FraudDetector,
        publisher: NotificationPublisher | None = None
    ):
        self.data_access = data_access
        self.fraud_detector = fraud_detector
        self.publisher = publisher

    def evaluate_fraud(self, owner_id: str, candidate: FraudCandidate, platform: Platform = "mobile") -> FraudEvaluation:
        return self.fraud_detector.evaluate(owner_id, candidate, platform)

    def create_donation(
        self,
        owner_id: str,
        fields: dict,
        location_reading: LocationReading | None = None,
        platform: Platform = "mobile",
        acknowledge_warnings: bool = False
    ) -> dict:
        values = {}
        for name in REQUIRED_FIELDS + OPTIONAL_FIELDS:
            value = fields.get(name)
            if isinstance(value, str):
                value = value.strip()
            values[name] = value or None

        if not values["location"] and location_reading is not None:
            values["location"] = location_reading.as_text()

        missing = [name for name in REQUIRED_FIELDS if not values[name]]
        if missing:
            raise ValidationError(
                "Missing required fields",
                code="missing_fields",
                context={"missing_fields": missing}
            )

        if not self.data_access.get_user_profile(owner_id):
            raise NotFoundError(f"User {owner_id} not found", code="user_not_found")

        candidate = FraudCandidate(
            category=values["category"],
            description=values["description"],
            location=location_reading,
        )
        evaluation = self.evaluate_fraud(owner_id, candidate, platform)

        if evaluation.is_fraudulent:
            if evaluation.risk_level == RiskLevel.HIGH:
                logger.warning(
                    f"High-risk donation blocked for {owner_id}",
                    extra={"code": "fraud_high_risk", "reasons": evaluation.reasons}
                )
                raise SuspiciousDonationError(
                    "Donation flagged for manual review", evaluation)
            if not acknowledge_warnings:
                raise FraudWarningError(
                    "Donation looks suspicious; confirm to submit anyway", evaluation)
            logger.info(
                f"Submitter {owner_id} overrode {evaluation.risk_level.value}-risk warning",
                extra={"reasons": evaluation.reasons}
            )

        donation = Donation(
            user_id=owner_id,
            category=values["category"],
            title=values["title"],
            description=values["description"],
            quantity=values["quantity"],
            receiver=values["receiver"],
            credits=credits_for(values["category"]),
            date=values["date"],
            time=values["time"],
            location=values["location"],
            donation_photo=values["donation_photo"],
            selfie_photo=values["selfie_photo"],
        )
        item = self.data_access.create_donation_record(donation)
        logger.info(f"Created donation {donation.donation_id} for {owner_id} worth {donation.credits} credits")
        return item

    def get_donation(self, donation_id: str, actor_id: str | None = None, actor_is_admin: bool = False) -> dict:
        donation = self.data_access.get_donation(donation_id)
        if not donation:
            raise NotFoundError(f"Donation {donation_id} not found", code="donation_not_found")
        if not actor_is_admin and actor_id is not None and donation["user_id"] != actor_id:
            raise ForbiddenError("Access denied")
        return donation

    def finalize_donation(self, donation_id: str, target: str, actor_is_admin: bool) -> tuple[dict, dict | None]:
        """
        Approve or reject a pending donation.

        Approval credits the owner's total, lifetime and withdrawable balances
        with the donation's stored credits and bumps their donation count,
        atomically with the status change. Rejection only changes the status.

        Returns:
            (donation, user) where user is the owner's fresh snapshot after an
            approval and None after a rejection
        """
        if not actor_is_admin:
            raise ForbiddenError("Only admins can finalize donations")
        if target not in FINAL_STATUSES:
            raise ValidationError(f"Invalid status '{target}'; expected one of {', '.join(FINAL_STATUSES)}")

        donation = self.get_donation(donation_id, actor_is_admin=True)
        if donation["status"] != "pending":
            raise ConflictError(
                f"Donation {donation_id} is already {donation['status']}",
                code="donation_already_finalized"
            )

        now = utcnow()
        user = None
        if target == "approved":
            if not self.data_access.approve_donation(donation_id, donation["user_id"], donation["credits"], now):
                raise ConflictError(
                    f"Donation {donation_id} was finalized concurrently",
                    code="donation_already_finalized"
                )
            donation = self.data_access.get_donation(donation_id)
            user = self.data_access.get_user_profile(donation["user_id"])
            logger.info(f"Approved donation {donation_id}; credited {donation['credits']} to {donation['user_id']}")
        else:
            updated = self.data_access.reject_donation(donation_id, now)
            if updated is None:
                raise ConflictError(
                    f"Donation {donation_id} was finalized concurrently",
                    code="donation_already_finalized"
                )
            donation = updated
            logger.info(f"Rejected donation {donation_id}")

        self._notify(donation, user)
        return donation, user

    def _notify(self, donation: dict, user: dict | None):
        if self.publisher is None:
            return
        # The ledger change is committed; a failed notification is only logged
        try:
            owner = user or self.data_access.get_user_profile(donation["user_id"]) or {}
            self.publisher.publish({
                "type": DONATION_FINALIZED,
                "email_to": owner.get("email"),
                "donation_id": donation["donation_id"],
                "title": donation["title"],
                "status": donation["status"],
                "credits": donation["credits"],
            })
        except Exception:
            logger.exception(f"Could not queue notification for donation {donation['donation_id']}")

    def list_user_donations(self, user_id: str) -> list[dict]:
        return self.data_access.list_donations_by_user(user_id)

    def list_donations_by_status(self, status: str, actor_is_admin: bool) -> list[dict]:
        if not actor_is_admin:
            raise ForbiddenError("Only admins can list donations by status")
        if status not in DONATION_STATUSES:
            raise ValidationError(f"Invalid status '{status}'")
        return self.data_access.list_donations_by_status(status)
