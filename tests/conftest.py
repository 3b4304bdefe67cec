"""
Pytest configuration and fixtures for Donaro tests.
"""

import copy
import os
import threading
from datetime import datetime, timedelta, timezone

import pytest

# Settings are read from the environment on first use
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("DYNAMODB_TABLE_NAME", "donaro-test")
os.environ.setdefault("API_ROOT_PATH", "")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from donaro.models.donation import Donation
from donaro.models.fraud import LocationReading
from donaro.models.user import UserProfile
from donaro.models.withdrawal import Withdrawal
from donaro.services.donation_service import DonationService
from donaro.services.fraud import FraudDetector
from donaro.services.user_service import UserService
from donaro.services.withdrawal_service import WithdrawalService


def _dump(model) -> dict:
    item = model.model_dump()
    for key, value in item.items():
        if isinstance(value, datetime):
            item[key] = value.isoformat()
    return item


class InMemoryDataAccess:
    """
    Dict-backed stand-in for DynamoDataAccess with the same method contract.
    A single lock plays the role of DynamoDB's conditional writes.
    """

    def __init__(self):
        self.users = {}
        self.donations = {}
        self.withdrawals = {}
        self.lock = threading.Lock()

    # users
    def create_user_profile(self, profile: UserProfile) -> dict:
        with self.lock:
            if profile.user_id not in self.users:
                self.users[profile.user_id] = _dump(profile)
            return copy.deepcopy(self.users[profile.user_id])

    def get_user_profile(self, user_id):
        with self.lock:
            return copy.deepcopy(self.users.get(user_id))

    def update_user_profile(self, user_id, fields, updated_at):
        with self.lock:
            user = self.users.get(user_id)
            if user is None:
                return None
            user.update(fields, updated_at=updated_at.isoformat())
            return copy.deepcopy(user)

    # donations
    def create_donation_record(self, donation: Donation) -> dict:
        with self.lock:
            self.donations[donation.donation_id] = _dump(donation)
            return copy.deepcopy(self.donations[donation.donation_id])

    def get_donation(self, donation_id):
        with self.lock:
            return copy.deepcopy(self.donations.get(donation_id))

    def list_donations_by_user(self, user_id):
        items = [d for d in self.donations.values() if d["user_id"] == user_id]
        return copy.deepcopy(sorted(items, key=lambda d: d["created_at"], reverse=True))

    def list_donations_by_status(self, status, limit=None):
        items = [d for d in self.donations.values() if d["status"] == status]
        items = sorted(items, key=lambda d: d["created_at"], reverse=True)
        return copy.deepcopy(items[:limit] if limit else items)

    def recent_donations_for(self, user_id, window):
        since = (datetime.now(timezone.utc) - window).isoformat()
        return [d for d in self.list_donations_by_user(user_id) if d["created_at"] >= since]

    def approve_donation(self, donation_id, user_id, credits, updated_at):
        with self.lock:
            donation = self.donations.get(donation_id)
            user = self.users.get(user_id)
            if donation is None or donation["status"] != "pending" or user is None:
                return False
            donation.update(status="approved", updated_at=updated_at.isoformat())
            user["total_credits"] += credits
            user["lifetime_credits"] += credits
            user["withdrawable_credits"] += credits
            user["total_donations"] += 1
            return True

    def reject_donation(self, donation_id, updated_at):
        with self.lock:
            donation = self.donations.get(donation_id)
            if donation is None or donation["status"] != "pending":
                return None
            donation.update(status="rejected", updated_at=updated_at.isoformat())
            return copy.deepcopy(donation)

    # withdrawals
    def create_withdrawal_with_debit(self, withdrawal: Withdrawal):
        with self.lock:
            user = self.users.get(withdrawal.user_id)
            if user is None or user["withdrawable_credits"] < withdrawal.amount:
                return None
            user["withdrawable_credits"] -= withdrawal.amount
            self.withdrawals[withdrawal.withdrawal_id] = _dump(withdrawal)
            return copy.deepcopy(self.withdrawals[withdrawal.withdrawal_id])

    def get_withdrawal(self, withdrawal_id):
        with self.lock:
            return copy.deepcopy(self.withdrawals.get(withdrawal_id))

    def list_withdrawals_by_user(self, user_id):
        items = [w for w in self.withdrawals.values() if w["user_id"] == user_id]
        return copy.deepcopy(sorted(items, key=lambda w: w["created_at"], reverse=True))

    def list_withdrawals_by_status(self, status):
        items = [w for w in self.withdrawals.values() if w["status"] == status]
        return copy.deepcopy(sorted(items, key=lambda w: w["created_at"], reverse=True))

    def update_withdrawal_status(self, withdrawal_id, status, updated_at, refund_to=None, refund_amount=0):
        with self.lock:
            withdrawal = self.withdrawals.get(withdrawal_id)
            if withdrawal is None or withdrawal["status"] != "pending":
                return False
            withdrawal.update(status=status, updated_at=updated_at.isoformat())
            if refund_to:
                self.users[refund_to]["withdrawable_credits"] += refund_amount
            return True


class RecordingPublisher:
    def __init__(self):
        self.jobs = []

    def publish(self, job):
        self.jobs.append(job)
        return True


@pytest.fixture
def data_access():
    return InMemoryDataAccess()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def fraud_detector(data_access):
    return FraudDetector(history_provider=data_access, history_window=timedelta(days=7))


@pytest.fixture
def user_service(data_access):
    return UserService(data_access=data_access)


@pytest.fixture
def donation_service(data_access, fraud_detector, publisher):
    return DonationService(data_access=data_access, fraud_detector=fraud_detector, publisher=publisher)


@pytest.fixture
def withdrawal_service(data_access, publisher):
    return WithdrawalService(data_access=data_access, publisher=publisher)


@pytest.fixture
def user(user_service):
    """Registered donor with an empty ledger."""
    return user_service.register_user("user-1", name="Asha", email="asha@example.com", phone="9876543210")


@pytest.fixture
def good_location():
    """Accurate Mumbai reading."""
    return LocationReading(latitude=19.07, longitude=72.87, accuracy=20)


@pytest.fixture
def donation_fields():
    return {
        "category": "food",
        "title": "Vegetables",
        "description": "Fresh vegetables for the food bank",
        "quantity": "5 kg",
        "receiver": "City Food Bank",
        "date": "2026-10-19",
        "time": "10:30",
        "location": "19.07,72.87",
        "donation_photo": "s3://proofs/donation-1.jpg",
        "selfie_photo": "s3://proofs/selfie-1.jpg",
    }


@pytest.fixture
def seed_donation(data_access):
    """Store a prior donation for a user, `minutes_ago` in the past."""
    def _seed(user_id="user-1", minutes_ago=0, location="19.07,72.87",
              description="Warm blankets for the shelter", status="pending"):
        created = datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)
        donation = Donation(
            user_id=user_id,
            category="clothes",
            title="Blankets",
            description=description,
            quantity="3",
            status=status,
            credits=150,
            date="2026-10-19",
            time="09:00",
            location=location,
            donation_photo="p.jpg",
            selfie_photo="s.jpg",
            created_at=created,
            updated_at=created,
        )
        return data_access.create_donation_record(donation)
    return _seed
