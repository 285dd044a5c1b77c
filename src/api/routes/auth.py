"""
Auth Router

Account endpoints. All of them are public routes, so AuthMiddleware lets
them through without a bearer token; every one except sign-up is also a
rate-limited route, throttled per client by RateLimitMiddleware.

Login returns a bearer token for the protected /api/tasks routes.
"""

from typing import Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from src.api.deps import UserServiceDep
from src.api.responses import success_response
from src.models.requests import (
    EmailRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignUpRequest,
)
from src.models.responses import LoginResponse, UserResponse
from src.services.users import User


router = APIRouter(
    prefix="/api/auth",
    tags=["Auth"],
)

SIGNUP_EMAIL_FAILED_MESSAGE = (
    "Account created, but failed to send verification email. "
    "Please try 'Resend Verification'."
)


def _user_payload(user: User) -> dict:
    return UserResponse(**user.public_dict()).model_dump(mode="json")


@router.post(
    "/sign-up",
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    description="Returns 202 when the account exists but its verification email failed.",
)
async def sign_up(request: SignUpRequest, service: UserServiceDep) -> JSONResponse:
    result = await service.sign_up(request)
    if not result.email_sent:
        return success_response(
            status.HTTP_202_ACCEPTED, SIGNUP_EMAIL_FAILED_MESSAGE, _user_payload(result.user)
        )
    return success_response(
        status.HTTP_201_CREATED,
        "Signup successful. Please verify your email",
        _user_payload(result.user),
    )


@router.post("/login", summary="Log in")
async def login(request: LoginRequest, service: UserServiceDep) -> JSONResponse:
    """Exchange email and password for a bearer token."""
    token, user = await service.login(request)
    payload = LoginResponse(token=token, user=UserResponse(**user.public_dict()))
    return success_response(status.HTTP_200_OK, "Logged in", payload.model_dump(mode="json"))


@router.get("/verify-email", summary="Verify an email address")
async def verify_email(
    service: UserServiceDep, token: Optional[str] = None
) -> JSONResponse:
    await service.verify_email(token)
    return success_response(status.HTTP_200_OK, "Email verified")


@router.post("/resend-verification", summary="Resend the verification email")
async def resend_verification(
    request: EmailRequest, service: UserServiceDep
) -> JSONResponse:
    await service.resend_verification(request.email)
    return success_response(status.HTTP_200_OK, "Verification email sent to your email")


@router.post("/forgot-password", summary="Request a password reset")
async def forgot_password(request: EmailRequest, service: UserServiceDep) -> JSONResponse:
    await service.forgot_password(request.email)
    return success_response(
        status.HTTP_200_OK, "Reset password email has been sent to your email"
    )


@router.post("/reset-password", summary="Reset a password")
async def reset_password(
    request: ResetPasswordRequest,
    service: UserServiceDep,
    token: Optional[str] = None,
) -> JSONResponse:
    """Set a new password using the token from the reset email."""
    await service.reset_password(token, request)
    return success_response(status.HTTP_200_OK, "Password updated")
