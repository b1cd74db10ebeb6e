from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import get_current_token, get_current_user, get_notifier
from marketplace.models.user import User
from marketplace.schemas.user import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileUpdate,
    ResetPasswordRequest,
    SignupRequest,
    UserResponse,
)
from marketplace.services.account_service import account_service
from marketplace.services.notification_service import NotificationSender

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        bio=user.bio or "",
        skills=user.skills or [],
        hourly_rate=user.hourly_rate,
        profile_pic=user.profile_pic or "",
    )


@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(req: SignupRequest, db: Session = Depends(get_db)):
    user, session = account_service.signup(db, req)
    return AuthResponse(user=_user_to_response(user), **session)


@router.post("/login", response_model=AuthResponse)
async def login(req: LoginRequest, request: Request, db: Session = Depends(get_db)):
    client_host = request.client.host if request.client else "unknown"
    user, session = account_service.login(db, req.email, req.password, throttle_key=f"login:{client_host}")
    return AuthResponse(user=_user_to_response(user), **session)


@router.post("/logout")
async def logout(token: str = Depends(get_current_token)):
    account_service.logout(token)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return _user_to_response(user)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    req: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _user_to_response(account_service.update_profile(db, user, req))


@router.post("/forgot-password")
def forgot_password(
    req: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    notifier: NotificationSender = Depends(get_notifier),
):
    account_service.request_password_reset(db, req.email, notifier)
    return {"message": "Password reset email sent"}


@router.post("/reset-password")
async def reset_password(req: ResetPasswordRequest, db: Session = Depends(get_db)):
    account_service.reset_password(db, req.token, req.password)
    return {"message": "Password reset successful"}
