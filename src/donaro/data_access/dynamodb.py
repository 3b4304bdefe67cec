import logging
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from datetime import datetime, timedelta, timezone

from donaro.models.donation import Donation
from donaro.models.user import UserProfile
from donaro.models.withdrawal import Withdrawal

logger = logging.getLogger(__name__)

USER_PREFIX = "USER#"
DONATION_PREFIX = "DONATION#"
WITHDRAWAL_PREFIX = "WITHDRAWAL#"
DONATION_STATUS_PREFIX = "DONATION_STATUS#"
WITHDRAWAL_STATUS_PREFIX = "WITHDRAWAL_STATUS#"
PROFILE_SK = "PROFILE"
DETAILS_SK = "DETAILS"

OWNER_INDEX = "OwnerIndex"
STATUS_INDEX = "StatusIndex"

LEDGER_FIELDS = ("total_credits", "lifetime_credits", "withdrawable_credits", "total_donations")


def _to_int_fields(item: dict | None, fields) -> dict | None:
    # The resource API hands numbers back as Decimal
    if item is None:
        return None
    for field in fields:
        if field in item:
            item[field] = int(item[field])
    return item


def _is_condition_failure(e: ClientError) -> bool:
    code = e.response['Error']['Code']
    if code == 'ConditionalCheckFailedException':
        return True
    if code == 'TransactionCanceledException':
        reasons = e.response.get('CancellationReasons', [])
        return any(r.get('Code') == 'ConditionalCheckFailed' for r in reasons)
    return False


class DynamoDataAccess:
    def __init__(self, table):
        self.table = table

    @property
    def client(self):
        return self.table.meta.client

    def _query_all(self, **kwargs) -> list[dict]:
        items = []
        while True:
            response = self.table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if "Limit" in kwargs and len(items) >= kwargs["Limit"]:
                return items[:kwargs["Limit"]]
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    # --- users ---

    def create_user_profile(self, profile: UserProfile) -> dict:
        item = {
            "PK": f"{USER_PREFIX}{profile.user_id}",
            "SK": PROFILE_SK,
            "user_id": profile.user_id,
            "name": profile.name,
            "email": profile.email,
            "phone": profile.phone,
            "total_credits": profile.total_credits,
            "lifetime_credits": profile.lifetime_credits,
            "withdrawable_credits": profile.withdrawable_credits,
            "total_donations": profile.total_donations,
            "created_at": profile.created_at.isoformat(),
            "updated_at": profile.updated_at.isoformat()
        }

        try:
            self.table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(PK)"
            )
            return item
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.info(f"User profile already exists for {profile.user_id}")
                return self.get_user_profile(profile.user_id)
            else:
                raise

    def get_user_profile(self, user_id: str) -> dict | None:
        key = {
            "PK": f"{USER_PREFIX}{user_id}",
            "SK": PROFILE_SK
        }
        response = self.table.get_item(Key=key, ConsistentRead=True)
        return _to_int_fields(response.get("Item"), LEDGER_FIELDS)

    def update_user_profile(self, user_id: str, fields: dict, updated_at: datetime) -> dict | None:
        names = {"#updated_at": "updated_at"}
        values = {":updated_at": updated_at.isoformat()}
        assignments = ["#updated_at = :updated_at"]
        for field, value in fields.items():
            names[f"#{field}"] = field
            values[f":{field}"] = value
            assignments.append(f"#{field} = :{field}")

        try:
            response = self.table.update_item(
                Key={"PK": f"{USER_PREFIX}{user_id}", "SK": PROFILE_SK},
                UpdateExpression="SET " + ", ".join(assignments),
                ConditionExpression="attribute_exists(PK)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW"
            )
            return _to_int_fields(response.get("Attributes", {}), LEDGER_FIELDS)
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                return None
            raise

    # --- donations ---

    def create_donation_record(self, donation: Donation) -> dict:
        created = donation.created_at.isoformat()
        item = {
            "PK": f"{DONATION_PREFIX}{donation.donation_id}",
            "SK": DETAILS_SK,
            "GSI1PK": f"{USER_PREFIX}{donation.user_id}",
            "GSI1SK": f"{DONATION_PREFIX}{created}",
            "GSI2PK": f"{DONATION_STATUS_PREFIX}{donation.status}",
            "GSI2SK": created,
            "donation_id": donation.donation_id,
            "user_id": donation.user_id,
            "category": donation.category,
            "title": donation.title,
            "description": donation.description,
            "quantity": donation.quantity,
            "receiver": donation.receiver,
            "status": donation.status,
            "credits": donation.credits,
            "date": donation.date,
            "time": donation.time,
            "location": donation.location,
            "donation_photo": donation.donation_photo,
            "selfie_photo": donation.selfie_photo,
            "created_at": created,
            "updated_at": donation.updated_at.isoformat()
        }

        self.table.put_item(
            Item=item,
            ConditionExpression="attribute_not_exists(PK)"
        )
        return item

    def get_donation(self, donation_id: str) -> dict | None:
        response = self.table.get_item(
            Key={"PK": f"{DONATION_PREFIX}{donation_id}", "SK": DETAILS_SK},
            ConsistentRead=True
        )
        return _to_int_fields(response.get("Item"), ("credits",))

    def list_donations_by_user(self, user_id: str) -> list[dict]:
        items = self._query_all(
            IndexName=OWNER_INDEX,
            KeyConditionExpression=Key("GSI1PK").eq(f"{USER_PREFIX}{user_id}") &
                                 Key("GSI1SK").begins_with(DONATION_PREFIX),
            ScanIndexForward=False
        )
        return [_to_int_fields(item, ("credits",)) for item in items]

    def list_donations_by_status(self, status: str, limit: int | None = None) -> list[dict]:
        kwargs = {
            "IndexName": STATUS_INDEX,
            "KeyConditionExpression": Key("GSI2PK").eq(f"{DONATION_STATUS_PREFIX}{status}"),
            "ScanIndexForward": False,
        }
        if limit:
            kwargs["Limit"] = limit
        items = self._query_all(**kwargs)
        return [_to_int_fields(item, ("credits",)) for item in items]

    def recent_donations_for(self, user_id: str, window: timedelta) -> list[dict]:
        since = (datetime.now(timezone.utc) - window).isoformat()
        try:
            items = self._query_all(
                IndexName=OWNER_INDEX,
                KeyConditionExpression=Key("GSI1PK").eq(f"{USER_PREFIX}{user_id}") &
                                     Key("GSI1SK").between(
                                         f"{DONATION_PREFIX}{since}", f"{DONATION_PREFIX}~"),
            )
            return [_to_int_fields(item, ("credits",)) for item in items]
        except ClientError as e:
            logger.error(f"Error reading donation history for {user_id}: {e}")
            raise

    def approve_donation(self, donation_id: str, user_id: str, credits: int, updated_at: datetime) -> bool:
        """
        Move a pending donation to approved and credit its owner, in one
        transaction. Returns False when the donation was no longer pending
        (or the owner is gone); nothing is written in that case.
        """
        now = updated_at.isoformat()
        try:
            self.client.transact_write_items(
                TransactItems=[
                    {
                        "Update": {
                            "TableName": self.table.name,
                            "Key": {"PK": f"{DONATION_PREFIX}{donation_id}", "SK": DETAILS_SK},
                            "UpdateExpression": "SET #status = :approved, #gsi2pk = :status_key, #updated_at = :now",
                            "ConditionExpression": "#status = :pending",
                            "ExpressionAttributeNames": {
                                "#status": "status",
                                "#gsi2pk": "GSI2PK",
                                "#updated_at": "updated_at"
                            },
                            "ExpressionAttributeValues": {
                                ":approved": "approved",
                                ":pending": "pending",
                                ":status_key": f"{DONATION_STATUS_PREFIX}approved",
                                ":now": now
                            }
                        }
                    },
                    {
                        "Update": {
                            "TableName": self.table.name,
                            "Key": {"PK": f"{USER_PREFIX}{user_id}", "SK": PROFILE_SK},
                            "UpdateExpression": (
                                "SET #updated_at = :now "
                                "ADD #total :credits, #lifetime :credits, #withdrawable :credits, #donations :one"
                            ),
                            "ConditionExpression": "attribute_exists(PK)",
                            "ExpressionAttributeNames": {
                                "#total": "total_credits",
                                "#lifetime": "lifetime_credits",
                                "#withdrawable": "withdrawable_credits",
                                "#donations": "total_donations",
                                "#updated_at": "updated_at"
                            },
                            "ExpressionAttributeValues": {
                                ":credits": credits,
                                ":one": 1,
                                ":now": now
                            }
                        }
                    }
                ]
            )
            return True
        except ClientError as e:
            if _is_condition_failure(e):
                logger.info(f"Approval of donation {donation_id} lost its precondition; nothing written.")
                return False
            logger.error(f"Error approving donation {donation_id}: {e}")
            raise

    def reject_donation(self, donation_id: str, updated_at: datetime) -> dict | None:
        try:
            response = self.table.update_item(
                Key={"PK": f"{DONATION_PREFIX}{donation_id}", "SK": DETAILS_SK},
                UpdateExpression="SET #status = :rejected, #gsi2pk = :status_key, #updated_at = :now",
                ConditionExpression="#status = :pending",
                ExpressionAttributeNames={
                    "#status": "status",
                    "#gsi2pk": "GSI2PK",
                    "#updated_at": "updated_at"
                },
                ExpressionAttributeValues={
                    ":rejected": "rejected",
                    ":pending": "pending",
                    ":status_key": f"{DONATION_STATUS_PREFIX}rejected",
                    ":now": updated_at.isoformat()
                },
                ReturnValues="ALL_NEW"
            )
            return _to_int_fields(response.get("Attributes", {}), ("credits",))
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.info(f"Donation {donation_id} is no longer pending; rejection skipped.")
                return None
            logger.error(f"Error rejecting donation {donation_id}: {e}")
            raise

    # --- withdrawals ---

    def create_withdrawal_with_debit(self, withdrawal: Withdrawal) -> dict | None:
        """
        Store a pending withdrawal and debit the owner's withdrawable balance
        in one transaction. Returns None when the balance no longer covers the
        amount; nothing is written in that case.
        """
        created = withdrawal.created_at.isoformat()
        item = {
            "PK": f"{WITHDRAWAL_PREFIX}{withdrawal.withdrawal_id}",
            "SK": DETAILS_SK,
            "GSI1PK": f"{USER_PREFIX}{withdrawal.user_id}",
            "GSI1SK": f"{WITHDRAWAL_PREFIX}{created}",
            "GSI2PK": f"{WITHDRAWAL_STATUS_PREFIX}{withdrawal.status}",
            "GSI2SK": created,
            "withdrawal_id": withdrawal.withdrawal_id,
            "user_id": withdrawal.user_id,
            "amount": withdrawal.amount,
            "status": withdrawal.status,
            "date": withdrawal.date,
            "created_at": created,
            "updated_at": withdrawal.updated_at.isoformat()
        }

        try:
            self.client.transact_write_items(
                TransactItems=[
                    {
                        "Put": {
                            "TableName": self.table.name,
                            "Item": item,
                            "ConditionExpression": "attribute_not_exists(PK)"
                        }
                    },
                    {
                        "Update": {
                            "TableName": self.table.name,
                            "Key": {"PK": f"{USER_PREFIX}{withdrawal.user_id}", "SK": PROFILE_SK},
                            "UpdateExpression": "SET #withdrawable = #withdrawable - :amount, #updated_at = :now",
                            "ConditionExpression": "attribute_exists(PK) AND #withdrawable >= :amount",
                            "ExpressionAttributeNames": {
                                "#withdrawable": "withdrawable_credits",
                                "#updated_at": "updated_at"
                            },
                            "ExpressionAttributeValues": {
                                ":amount": withdrawal.amount,
                                ":now": created
                            }
                        }
                    }
                ]
            )
            return item
        except ClientError as e:
            if _is_condition_failure(e):
                logger.info(f"Withdrawal debit for {withdrawal.user_id} rejected by balance check.")
                return None
            logger.error(f"Error creating withdrawal: {e}")
            raise

    def get_withdrawal(self, withdrawal_id: str) -> dict | None:
        response = self.table.get_item(
            Key={"PK": f"{WITHDRAWAL_PREFIX}{withdrawal_id}", "SK": DETAILS_SK},
            ConsistentRead=True
        )
        return _to_int_fields(response.get("Item"), ("amount",))

    def list_withdrawals_by_user(self, user_id: str) -> list[dict]:
        items = self._query_all(
            IndexName=OWNER_INDEX,
            KeyConditionExpression=Key("GSI1PK").eq(f"{USER_PREFIX}{user_id}") &
                                 Key("GSI1SK").begins_with(WITHDRAWAL_PREFIX),
            ScanIndexForward=False
        )
        return [_to_int_fields(item, ("amount",)) for item in items]

    def list_withdrawals_by_status(self, status: str) -> list[dict]:
        items = self._query_all(
            IndexName=STATUS_INDEX,
            KeyConditionExpression=Key("GSI2PK").eq(f"{WITHDRAWAL_STATUS_PREFIX}{status}"),
            ScanIndexForward=False
        )
        return [_to_int_fields(item, ("amount",)) for item in items]

    def update_withdrawal_status(
        self,
        withdrawal_id: str,
        status: str,
        updated_at: datetime,
        refund_to: str | None = None,
        refund_amount: int = 0
    ) -> bool:
        """
        Finalize a pending withdrawal. When `refund_to` is given the amount is
        credited back to that user's withdrawable balance in the same
        transaction. Returns False when the withdrawal was no longer pending.
        """
        now = updated_at.isoformat()
        items = [
            {
                "Update": {
                    "TableName": self.table.name,
                    "Key": {"PK": f"{WITHDRAWAL_PREFIX}{withdrawal_id}", "SK": DETAILS_SK},
                    "UpdateExpression": "SET #status = :status, #gsi2pk = :status_key, #updated_at = :now",
                    "ConditionExpression": "#status = :pending",
                    "ExpressionAttributeNames": {
                        "#status": "status",
                        "#gsi2pk": "GSI2PK",
                        "#updated_at": "updated_at"
                    },
                    "ExpressionAttributeValues": {
                        ":status": status,
                        ":pending": "pending",
                        ":status_key": f"{WITHDRAWAL_STATUS_PREFIX}{status}",
                        ":now": now
                    }
                }
            }
        ]
        if refund_to:
            items.append({
                "Update": {
                    "TableName": self.table.name,
                    "Key": {"PK": f"{USER_PREFIX}{refund_to}", "SK": PROFILE_SK},
                    "UpdateExpression": "SET #updated_at = :now ADD #withdrawable :amount",
                    "ConditionExpression": "attribute_exists(PK)",
                    "ExpressionAttributeNames": {
                        "#withdrawable": "withdrawable_credits",
                        "#updated_at": "updated_at"
                    },
                    "ExpressionAttributeValues": {
                        ":amount": refund_amount,
                        ":now": now
                    }
                }
            })

        try:
            self.client.transact_write_items(TransactItems=items)
            return True
        except ClientError as e:
            if _is_condition_failure(e):
                logger.info(f"Withdrawal {withdrawal_id} is no longer pending; status update skipped.")
                return False
            logger.error(f"Error updating withdrawal status: {e}")
            raise
