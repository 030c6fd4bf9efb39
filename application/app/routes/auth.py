from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool

from app.core.exceptions import AuthServiceError, DeliveryFailed, StoreUnavailable
from app.core.security import extract_bearer_token
from app.dependencies import get_login_service, get_otp_service, get_registration_service
from app.dto.auth import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
    SendOTPRequest,
    VerifyOTPRequest,
    VerifyOTPResponse,
)
from app.logging.utils import get_app_logger
from app.middlewares.request_context import request_context
from app.services.login_service import LoginService
from app.services.otp_service import OTPService
from app.services.registration_service import RegistrationService

logger = get_app_logger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/send-otp", response_model=MessageResponse)
async def send_otp(request: SendOTPRequest, otp_service: OTPService = Depends(get_otp_service)):
    """
    Issue an OTP for the email and deliver it.
    Steps:
    1. Validate email
    2. Generate and store the OTP (replaces any earlier one)
    3. Send the OTP email
    """
    request_context.email = request.email
    try:
        await run_in_threadpool(otp_service.issue, request.email)
        return MessageResponse(message="OTP sent successfully")
    except AuthServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error in send_otp: {str(e)}", exc_info=True)
        raise DeliveryFailed() from e


@router.post("/verify-otp", response_model=VerifyOTPResponse)
async def verify_otp(request: VerifyOTPRequest, otp_service: OTPService = Depends(get_otp_service)):
    """Consume the OTP and hand back the token `/register` expects."""
    request_context.email = request.email
    try:
        verified_token = await run_in_threadpool(otp_service.verify, request.email, request.otp)
        return VerifyOTPResponse(message="OTP verified successfully", otp_verified_token=verified_token)
    except AuthServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error in verify_otp: {str(e)}", exc_info=True)
        raise StoreUnavailable() from e


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, registration_service: RegistrationService = Depends(get_registration_service)):
    """
    Register a user keyed by phone.
    Steps:
    1. Validate fields and the email verification token
    2. Reject taken phone, then taken email
    3. Hash password and create the user
    4. Return access token and public user
    """
    request_context.email = request.email
    try:
        result = await run_in_threadpool(
            registration_service.register,
            request.name,
            request.email,
            request.phone,
            request.password,
            request.otp_verified_token,
        )
        request_context.user_id = result["user"].uid
        return AuthResponse(message="User registered successfully", token=result["token"], user=result["user"])
    except AuthServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error in register: {str(e)}", exc_info=True)
        raise StoreUnavailable() from e


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, login_service: LoginService = Depends(get_login_service)):
    """Authenticate by email or phone; the response never includes the password hash."""
    try:
        result = await run_in_threadpool(login_service.login, request.email_or_phone, request.password)
        request_context.user_id = result["user"].uid
        return AuthResponse(message="Login successful", token=result["token"], user=result["user"])
    except AuthServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error in login: {str(e)}", exc_info=True)
        raise StoreUnavailable() from e


@router.get("/me", response_model=ProfileResponse)
async def me(request: Request, login_service: LoginService = Depends(get_login_service)):
    token = extract_bearer_token(request.headers.get("authorization"))
    try:
        user = await run_in_threadpool(login_service.profile, token)
        request_context.user_id = user.uid
        return ProfileResponse(message="User fetched successfully", user=user)
    except AuthServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error in me: {str(e)}", exc_info=True)
        raise StoreUnavailable() from e
