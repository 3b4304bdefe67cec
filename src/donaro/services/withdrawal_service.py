import logging

from donaro.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from donaro.data_access.dynamodb import DynamoDataAccess
from donaro.models.donation import utcnow
from donaro.models.withdrawal import Withdrawal
from donaro.services.notification_service import WITHDRAWAL_PROCESSED, NotificationPublisher

logger = logging.getLogger(__name__)

FINAL_STATUSES = ("processed", "rejected")
WITHDRAWAL_STATUSES = ("pending",) + FINAL_STATUSES


class WithdrawalService:
    def __init__(
        self,
        data_access: DynamoDataAccess,
        refund_rejected: bool = False,
        publisher: NotificationPublisher | None = None
    ):
        self.data_access = data_access
        self.refund_rejected = refund_rejected
        self.publisher = publisher

    def request_withdrawal(self, owner_id: str, actor_id: str, amount: int, date: str) -> dict:
        """
        Create a pending withdrawal and debit the owner's withdrawable credits
        at request time, as one atomic write.
        """
        if actor_id != owner_id:
            raise ForbiddenError("Access denied")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Amount must be a positive whole number of credits")
        if not date:
            raise ValidationError("Missing required fields", code="missing_fields",
                                  context={"missing_fields": ["date"]})

        user = self.data_access.get_user_profile(owner_id)
        if not user:
            raise NotFoundError(f"User {owner_id} not found", code="user_not_found")
        if amount > user["withdrawable_credits"]:
            raise InsufficientFundsError("Insufficient credits")

        withdrawal = Withdrawal(user_id=owner_id, amount=amount, date=date)
        item = self.data_access.create_withdrawal_with_debit(withdrawal)
        if item is None:
            # Balance changed between the read and the conditional write
            raise InsufficientFundsError("Insufficient credits")

        logger.info(f"Created withdrawal {withdrawal.withdrawal_id} of {amount} credits for {owner_id}")
        return item

    def process_withdrawal(self, withdrawal_id: str, target: str, actor_is_admin: bool) -> dict:
        if not actor_is_admin:
            raise ForbiddenError("Only admins can process withdrawals")
        if target not in FINAL_STATUSES:
            raise ValidationError(f"Invalid status '{target}'; expected one of {', '.join(FINAL_STATUSES)}")

        withdrawal = self.data_access.get_withdrawal(withdrawal_id)
        if not withdrawal:
            raise NotFoundError(f"Withdrawal {withdrawal_id} not found", code="withdrawal_not_found")
        if withdrawal["status"] != "pending":
            raise ConflictError(
                f"Withdrawal {withdrawal_id} is already {withdrawal['status']}",
                code="withdrawal_already_processed"
            )

        refund = target == "rejected" and self.refund_rejected
        updated = self.data_access.update_withdrawal_status(
            withdrawal_id,
            target,
            utcnow(),
            refund_to=withdrawal["user_id"] if refund else None,
            refund_amount=withdrawal["amount"] if refund else 0
        )
        if not updated:
            raise ConflictError(
                f"Withdrawal {withdrawal_id} was processed concurrently",
                code="withdrawal_already_processed"
            )

        if target == "rejected" and not refund:
            logger.warning(
                f"Withdrawal {withdrawal_id} rejected; {withdrawal['amount']} credits stay debited from "
                f"{withdrawal['user_id']} pending manual reversal",
                extra={"code": "withdrawal_rejected_unrefunded"}
            )
        else:
            logger.info(f"Withdrawal {withdrawal_id} marked {target}")

        withdrawal = self.data_access.get_withdrawal(withdrawal_id)
        self._notify(withdrawal)
        return withdrawal

    def _notify(self, withdrawal: dict):
        if self.publisher is None:
            return
        try:
            owner = self.data_access.get_user_profile(withdrawal["user_id"]) or {}
            self.publisher.publish({
                "type": WITHDRAWAL_PROCESSED,
                "email_to": owner.get("email"),
                "withdrawal_id": withdrawal["withdrawal_id"],
                "amount": withdrawal["amount"],
                "status": withdrawal["status"],
            })
        except Exception:
            logger.exception(f"Could not queue notification for withdrawal {withdrawal['withdrawal_id']}")

    def list_user_withdrawals(self, user_id: str, actor_id: str, actor_is_admin: bool = False) -> list[dict]:
        if not actor_is_admin and actor_id != user_id:
            raise ForbiddenError("Access denied")
        return self.data_access.list_withdrawals_by_user(user_id)

    def list_withdrawals_by_status(self, status: str, actor_is_admin: bool) -> list[dict]:
        if not actor_is_admin:
            raise ForbiddenError("Only admins can list withdrawals by status")
        if status not in WITHDRAWAL_STATUSES:
            raise ValidationError(f"Invalid status '{status}'")
        return self.data_access.list_withdrawals_by_status(status)
