"""Users and access token endpoints."""

from fastapi import APIRouter, Header, status

from venue_booking.api.v1.dependencies import (
    CredentialStoreDep,
    CurrentUser,
    IdentityServiceDep,
    OptionalUser,
)
from venue_booking.schemas.common import SuccessResponse
from venue_booking.schemas.venue import TokenResponse, UserCreate, UserResponse

router = APIRouter()


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a user",
    tags=["Users"],
)
async def register_user(
    user_data: UserCreate,
    current_user: OptionalUser,
    identity_service: IdentityServiceDep,
) -> UserResponse:
    """Register a customer or hall owner. Other roles need an administrator."""
    user = await identity_service.register_user(
        user_id=user_data.user_id,
        full_name=user_data.full_name,
        email=user_data.email,
        role=user_data.role,
        requester_id=current_user,
    )
    return UserResponse.model_validate(user)


@router.post(
    "/auth/token",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue an access token",
    tags=["Auth"],
)
async def issue_token(
    current_user: CurrentUser,
    store: CredentialStoreDep,
) -> TokenResponse:
    """Issue a bearer token for the current user."""
    token = await store.issue(current_user)
    return TokenResponse(access_token=token, expires_in=store.policy.ttl_seconds)


@router.delete(
    "/auth/token",
    response_model=SuccessResponse,
    summary="Revoke an access token",
    tags=["Auth"],
)
async def revoke_token(
    current_user: CurrentUser,
    store: CredentialStoreDep,
    authorization: str | None = Header(None),
) -> SuccessResponse:
    """Revoke the bearer token used for this request."""
    if authorization and " " in authorization:
        await store.clear(authorization.split(" ", 1)[1].strip())
    return SuccessResponse(message="Token revoked")
