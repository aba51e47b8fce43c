from fastapi import APIRouter, Depends

from api.deps import get_current_user
from api.schemas import AdminLoginRequest, OtpRequest, RefreshRequest, RegisterRequest, VerifyOtpRequest, envelope
from core.dependencies import get_auth_service
from models.user import PublicUser, User
from services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=201)
def register(body: RegisterRequest, auth_service: AuthService = Depends(get_auth_service)):
    user = auth_service.register(body.email, body.name, body.role, body.phone)
    return envelope(
        {"user_id": user.user_id, "email": user.email},
        "Registration started. Check your email for the verification code.",
    )


@router.post("/request-otp")
def request_otp(body: OtpRequest, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.request_otp(body.email)
    return envelope(message="Verification code sent")


@router.post("/verify-otp")
def verify_otp(body: VerifyOtpRequest, auth_service: AuthService = Depends(get_auth_service)):
    session = auth_service.login(body.email, body.otp, name=body.name, role=body.role)
    return envelope(session, "Email verified")


@router.post("/login")
def login(body: VerifyOtpRequest, auth_service: AuthService = Depends(get_auth_service)):
    return envelope(auth_service.login(body.email, body.otp), "Login successful")


@router.post("/admin/login")
def admin_login(body: AdminLoginRequest, auth_service: AuthService = Depends(get_auth_service)):
    return envelope(auth_service.admin_login(body.email, body.password), "Login successful")


@router.post("/refresh")
def refresh(body: RefreshRequest, auth_service: AuthService = Depends(get_auth_service)):
    return envelope(auth_service.refresh(body.refresh_token))


@router.post("/logout")
def logout(body: RefreshRequest, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.logout(body.refresh_token)
    return envelope(message="Logged out successfully")


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return envelope(PublicUser.from_user(user))
