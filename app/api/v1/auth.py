from fastapi import APIRouter, Depends, status

from app.core.dependencies import get_user_service, get_current_user
from app.services.user import UserService
from app.db.schema import User
from app.models.auth import AuthSession, WalletCheck, WalletCheckResult, WalletLogin
from app.models.common import ApiResponse
from app.models.user import UserCreate, UserProfile, UserRead, UserUpdate
from app.utils.wallet import normalize_identity
from app.core.exceptions import InvalidInputError, NotFoundError


router = APIRouter()


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[AuthSession],
    summary="Register a wallet identity",
    description="Creates a user for a new wallet address with exactly one role and opens a session."
)
def register(
    user_in: UserCreate,
    service: UserService = Depends(get_user_service)
):
    session = service.register(user_in)
    return ApiResponse(message="User registered successfully", data=session)


@router.post(
    "/login",
    response_model=ApiResponse[AuthSession],
    status_code=status.HTTP_200_OK,
    summary="Sign in with a wallet",
    description=(
        "Issues a bearer token for a registered, active wallet. When a signed "
        "message is supplied the recovered signer must match the wallet address."
    )
)
def login(
    data: WalletLogin,
    service: UserService = Depends(get_user_service)
):
    session = service.login(data)
    return ApiResponse(message="Login successful", data=session)


@router.post(
    "/check-wallet",
    response_model=ApiResponse[WalletCheckResult],
    status_code=status.HTTP_200_OK,
    summary="Check wallet registration",
    description="Reports whether a wallet address is registered. Never creates a user."
)
def check_wallet(
    data: WalletCheck,
    service: UserService = Depends(get_user_service)
):
    user = service.get_user_by_identity(data.wallet_address)
    result = WalletCheckResult(
        exists=user is not None,
        user=UserRead.model_validate(user) if user else None,
    )
    message = "Wallet is registered" if user else "Wallet not registered"
    return ApiResponse(message=message, data=result)


@router.get(
    "/profile",
    response_model=ApiResponse[UserProfile],
    status_code=status.HTTP_200_OK,
    summary="Get current user",
    description="Returns the profile of the authenticated user with its assigned projects."
)
def get_profile(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return ApiResponse(
        message="Profile retrieved successfully",
        data=service.get_profile(current_user),
    )


@router.put(
    "/profile",
    response_model=ApiResponse[UserRead],
    status_code=status.HTTP_200_OK,
    summary="Update current user"
)
def update_profile(
    payload: UserUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    user = service.update_profile(current_user, payload)
    return ApiResponse(
        message="Profile updated successfully",
        data=UserRead.model_validate(user),
    )


@router.get(
    "/user/{wallet_address}",
    response_model=ApiResponse[UserRead],
    status_code=status.HTTP_200_OK,
    summary="Look up a user by wallet"
)
def get_user_by_wallet(
    wallet_address: str,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    try:
        identity = normalize_identity(wallet_address)
    except ValueError as e:
        raise InvalidInputError(str(e))

    user = service.get_user_by_identity(identity)
    if not user:
        raise NotFoundError("User not found")
    return ApiResponse(message="User retrieved successfully", data=UserRead.model_validate(user))
