from fastapi import APIRouter, HTTPException, status

from app.schemas.two_factor import MfaLoginRequest, MfaVerifyRequest, MfaVerifyResponse
from app.schemas.user import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    MfaSetupResponse,
    PasswordResetRequest,
    RecoveryMethods,
    RecoveryRequest,
    RecoveryRequestResponse,
    RecoveryVerifyRequest,
    RecoveryVerifyResponse,
    RegisterResponse,
    UserCreate,
    UserResponse,
)
from app.services import auth_service
from app.services.auth_service import AccountError

router = APIRouter()


def _http_error(error: AccountError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: UserCreate):
    """
    Регистрирует нового пользователя.

    The account gets a TOTP secret right away. MFA stays off until the user
    confirms a code from their authenticator app at /mfa/verify.
    """
    try:
        user, setup = await auth_service.register_user(
            username=payload.username,
            email=payload.email,
            password=payload.password,
            full_name=payload.full_name,
        )
    except AccountError as e:
        raise _http_error(e)

    return RegisterResponse(
        user=UserResponse.model_validate(user),
        mfa_setup=MfaSetupResponse(**setup),
    )


@router.post("/mfa/verify", response_model=MfaVerifyResponse)
async def verify_mfa(payload: MfaVerifyRequest):
    """Confirm a TOTP code and enable MFA for the account"""
    try:
        await auth_service.verify_mfa(payload.username, payload.code)
    except AccountError as e:
        raise _http_error(e)
    return MfaVerifyResponse(success=True, message="MFA verified successfully")


@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest):
    """Password login, first step when MFA is enabled"""
    try:
        result = await auth_service.login(payload.username, payload.password)
    except AccountError as e:
        raise _http_error(e)

    if result["requires_mfa"]:
        return LoginResponse(requires_mfa=True, temp_token=result["temp_token"], message="MFA code required")
    return LoginResponse(
        access_token=result["access_token"],
        token_type=result["token_type"],
        user=UserResponse.model_validate(result["user"]),
    )


@router.post("/login/mfa", response_model=LoginResponse)
async def login_mfa(payload: MfaLoginRequest):
    """Second login step: MFA token from /login plus the current TOTP code"""
    try:
        result = await auth_service.login_mfa(payload.temp_token, payload.code)
    except AccountError as e:
        raise _http_error(e)

    return LoginResponse(
        access_token=result["access_token"],
        token_type=result["token_type"],
        user=UserResponse.model_validate(result["user"]),
    )


@router.post("/recovery/request", response_model=RecoveryRequestResponse)
async def request_recovery(payload: RecoveryRequest):
    try:
        methods = await auth_service.request_recovery(payload.username)
    except AccountError as e:
        raise _http_error(e)
    return RecoveryRequestResponse(methods_available=RecoveryMethods(**methods))


@router.post("/recovery/verify", response_model=RecoveryVerifyResponse)
async def verify_recovery(payload: RecoveryVerifyRequest):
    try:
        token = await auth_service.verify_recovery(payload.username, payload.token)
    except AccountError as e:
        raise _http_error(e)
    return RecoveryVerifyResponse(token=token)


@router.post("/recovery/reset", response_model=MessageResponse)
async def reset_password(payload: PasswordResetRequest):
    try:
        await auth_service.reset_password(payload.token, payload.new_password)
    except AccountError as e:
        raise _http_error(e)
    return MessageResponse(message="Password changed successfully")
