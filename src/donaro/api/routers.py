from fastapi import (
    APIRouter,
    Request,
    Depends,
    HTTPException
)
from fastapi.security import HTTPBearer
from pydantic import ValidationError as PydanticValidationError
from typing import Optional
import logging

from donaro.core.config import get_settings
from donaro.core.dependencies import get_donation_service, get_user_service, get_withdrawal_service
from donaro.models.fraud import FraudCandidate
from donaro.services.donation_service import DonationService
from donaro.services.user_service import UserService
from donaro.services.withdrawal_service import WithdrawalService
from donaro.api.schemas import (
    CognitoUser,
    DonationCreateRequest,
    DonationResponse,
    FinalizeDonationResponse,
    FraudCheckRequest,
    FraudEvaluationResponse,
    RegisterUserRequest,
    StatusUpdateRequest,
    UpdateUserRequest,
    UserResponse,
    WithdrawalCreateRequest,
    WithdrawalResponse,
)

router = APIRouter()
security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)

async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(security)
) -> CognitoUser:
    auth = request.scope.get("aws.event", {}).get("requestContext", {}).get("authorizer", {})
    claims = auth.get("claims", {})

    if not claims:
        raise HTTPException(status_code=401, detail="Could not find user claims")

    try:
        user = CognitoUser(**claims)
    except PydanticValidationError as e:
        raise HTTPException(
            status_code=401,
            detail=f"Invalid authentication credentials: {e}"
        )

    if not user.email_verified:
        raise HTTPException(status_code=403, detail="Email not verified")

    # The admin role is decided here, once, from the group claim
    user.is_admin = get_settings().ADMIN_GROUP in user.groups
    return user

# --- users ---

@router.post("/users", response_model=UserResponse, status_code=201)
def register_user(
    body: RegisterUserRequest,
    user: CognitoUser = Depends(get_current_user),
    users: UserService = Depends(get_user_service)
):
    return users.register_user(
        user_id=user.sub,
        name=body.name or user.name,
        email=user.email,
        phone=body.phone
    )

@router.get("/users/me", response_model=UserResponse)
def get_me(
    user: CognitoUser = Depends(get_current_user),
    users: UserService = Depends(get_user_service)
):
    return users.get_user(user.sub)

@router.put("/users/me", response_model=UserResponse)
def update_me(
    body: UpdateUserRequest,
    user: CognitoUser = Depends(get_current_user),
    users: UserService = Depends(get_user_service)
):
    return users.update_profile(user.sub, **body.model_dump(exclude_none=True))

# --- donations ---

@router.post("/donations/fraud-check", response_model=FraudEvaluationResponse)
def check_donation(
    body: FraudCheckRequest,
    user: CognitoUser = Depends(get_current_user),
    donations: DonationService = Depends(get_donation_service)
):
    candidate = FraudCandidate(
        category=body.category,
        description=body.description,
        location=body.location_reading,
        **({"timestamp": body.timestamp} if body.timestamp else {})
    )
    return donations.evaluate_fraud(user.sub, candidate, body.platform)

@router.post("/donations", response_model=DonationResponse, status_code=201)
def create_donation(
    body: DonationCreateRequest,
    user: CognitoUser = Depends(get_current_user),
    donations: DonationService = Depends(get_donation_service)
):
    fields = body.model_dump(exclude={"location_reading", "platform", "acknowledge_warnings"})
    return donations.create_donation(
        owner_id=user.sub,
        fields=fields,
        location_reading=body.location_reading,
        platform=body.platform,
        acknowledge_warnings=body.acknowledge_warnings
    )

@router.get("/donations/me", response_model=list[DonationResponse])
def list_my_donations(
    user: CognitoUser = Depends(get_current_user),
    donations: DonationService = Depends(get_donation_service)
):
    return donations.list_user_donations(user.sub)

@router.get("/donations/{donation_id}", response_model=DonationResponse)
def get_donation(
    donation_id: str,
    user: CognitoUser = Depends(get_current_user),
    donations: DonationService = Depends(get_donation_service)
):
    return donations.get_donation(donation_id, actor_id=user.sub, actor_is_admin=user.is_admin)

@router.get("/admin/donations", response_model=list[DonationResponse])
def list_donations_by_status(
    status: str = "pending",
    user: CognitoUser = Depends(get_current_user),
    donations: DonationService = Depends(get_donation_service)
):
    return donations.list_donations_by_status(status, actor_is_admin=user.is_admin)

@router.put("/admin/donations/{donation_id}/status", response_model=FinalizeDonationResponse)
def finalize_donation(
    donation_id: str,
    body: StatusUpdateRequest,
    user: CognitoUser = Depends(get_current_user),
    donations: DonationService = Depends(get_donation_service)
):
    donation, owner = donations.finalize_donation(donation_id, body.status, actor_is_admin=user.is_admin)
    return FinalizeDonationResponse(donation=donation, user=owner)

# --- withdrawals ---

@router.post("/withdrawals", response_model=WithdrawalResponse, status_code=201)
def request_withdrawal(
    body: WithdrawalCreateRequest,
    user: CognitoUser = Depends(get_current_user),
    withdrawals: WithdrawalService = Depends(get_withdrawal_service)
):
    return withdrawals.request_withdrawal(
        owner_id=body.user_id or user.sub,
        actor_id=user.sub,
        amount=body.amount,
        date=body.date
    )

@router.get("/withdrawals/me", response_model=list[WithdrawalResponse])
def list_my_withdrawals(
    user: CognitoUser = Depends(get_current_user),
    withdrawals: WithdrawalService = Depends(get_withdrawal_service)
):
    return withdrawals.list_user_withdrawals(user.sub, actor_id=user.sub)

@router.get("/admin/withdrawals", response_model=list[WithdrawalResponse])
def list_withdrawals_by_status(
    status: str = "pending",
    user: CognitoUser = Depends(get_current_user),
    withdrawals: WithdrawalService = Depends(get_withdrawal_service)
):
    return withdrawals.list_withdrawals_by_status(status, actor_is_admin=user.is_admin)

@router.put("/admin/withdrawals/{withdrawal_id}/status", response_model=WithdrawalResponse)
def process_withdrawal(
    withdrawal_id: str,
    body: StatusUpdateRequest,
    user: CognitoUser = Depends(get_current_user),
    withdrawals: WithdrawalService = Depends(get_withdrawal_service)
):
    return withdrawals.process_withdrawal(withdrawal_id, body.status, actor_is_admin=user.is_admin)
