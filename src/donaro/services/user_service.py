import logging

from donaro.core.exceptions import NotFoundError, ValidationError
from donaro.data_access.dynamodb import DynamoDataAccess
from donaro.models.donation import utcnow
from donaro.models.user import UserProfile

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "email", "phone")


class UserService:
    def __init__(self, data_access: DynamoDataAccess):
        self.data_access = data_access

    def register_user(self, user_id: str, name: str | None = None,
                      email: str | None = None, phone: str | None = None) -> dict:
        """Create a zero-balance account; an existing account is returned unchanged."""
        if not user_id:
            raise ValidationError("user_id is required")
        profile = UserProfile(user_id=user_id, name=name, email=email, phone=phone)
        return self.data_access.create_user_profile(profile)

    def get_user(self, user_id: str) -> dict:
        user = self.data_access.get_user_profile(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found", code="user_not_found")
        return user

    def update_profile(self, user_id: str, **fields) -> dict:
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        changes = {k: v for k, v in fields.items() if v is not None}
        if not changes:
            return self.get_user(user_id)

        user = self.data_access.update_user_profile(user_id, changes, utcnow())
        if user is None:
            raise NotFoundError(f"User {user_id} not found", code="user_not_found")
        logger.info(f"Updated profile fields {sorted(changes)} for {user_id}")
        return user
