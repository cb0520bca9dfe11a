"""Authentication router: signup, login, Google sign-in, OTP password reset."""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

import models
import schemas
import auth
from database import get_db, store_operation
from oauth.google import verify_google_token, GoogleOAuthError
from services import password_reset, users as user_service
from utils.email import send_otp_email, send_password_changed_notification
from utils.rate_limiter import auth_rate_limiter, otp_email_rate_limiter, password_reset_rate_limiter
from utils.validation import get_user_by_email, get_user_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _auth_response(message: str, user: models.User) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        message=message,
        token=auth.create_access_token(user.id, user.email),
        user=schemas.User.model_validate(user)
    )


@router.post("/signup", response_model=schemas.AuthResponse, dependencies=[Depends(auth_rate_limiter)])
def signup(payload: schemas.SignupRequest, db: Session = Depends(get_db)):
    full_name = (payload.full_name or "").strip()
    if not full_name or not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="All fields required")

    if get_user_by_email(db, payload.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = models.User(
        email=payload.email,
        full_name=full_name,
        hashed_password=auth.get_password_hash(payload.password),
        auth_provider="manual"
    )
    with store_operation(db, "signup"):
        db.add(user)
        db.commit()
        db.refresh(user)
    logger.info(f"New account {user.id} registered")

    return _auth_response("Signup is done", user)


@router.post("/login", response_model=schemas.AuthResponse, dependencies=[Depends(auth_rate_limiter)])
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = get_user_by_email(db, payload.email)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid email or password")

    if not user.hashed_password:
        raise HTTPException(
            status_code=400,
            detail="This account was created using Google Sign-In. Please login with Google."
        )

    if not auth.verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Invalid email or password")

    user_service.record_login(db, user)
    return _auth_response("Login successful", user)


@router.post("/google-signin", response_model=schemas.AuthResponse, dependencies=[Depends(auth_rate_limiter)])
def google_signin(payload: schemas.GoogleSignInRequest, db: Session = Depends(get_db)):
    """
    Sign in with a Google ID token.

    An existing account with the same email is linked to the Google identity;
    otherwise a new, already verified account is created.
    """
    try:
        google_info = verify_google_token(payload.id_token)
    except GoogleOAuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid Google token: {str(e)}"
        )

    if not google_info.get('email_verified'):
        raise HTTPException(status_code=400, detail="Google account email must be verified")

    user = get_user_by_email(db, google_info['email'])
    if not user:
        user = models.User(
            email=google_info['email'],
            full_name=google_info['name'] or google_info['email'].split('@')[0],
            hashed_password=None,
            account_status="active",
            email_verified=True
        )
        db.add(user)

    user.google_id = google_info['google_id']
    user.profile_picture = google_info['picture'] or user.profile_picture
    user.auth_provider = "google"
    user.email_verified = True

    with store_operation(db, "google sign-in"):
        db.commit()
        db.refresh(user)
    user_service.record_login(db, user)

    return _auth_response("Google sign-in successful", user)


@router.post(
    "/validate-email",
    dependencies=[Depends(password_reset_rate_limiter), Depends(otp_email_rate_limiter)]
)
async def validate_email(payload: schemas.ValidateEmailRequest, db: Session = Depends(get_db)):
    """Issue a password reset OTP to a registered email address."""
    user = get_user_or_404(db, payload.email)

    otp = password_reset.issue_otp(db, user)
    email_sent = await send_otp_email(user.email, user.full_name or user.email, otp)
    if not email_sent:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send OTP email. Please try again later."
        )

    return {"message": "OTP sent to your email"}


@router.post(
    "/verify-otp",
    response_model=schemas.VerifyOtpResponse,
    dependencies=[Depends(password_reset_rate_limiter), Depends(otp_email_rate_limiter)]
)
def verify_otp(payload: schemas.VerifyOtpRequest, db: Session = Depends(get_db)):
    user = get_user_or_404(db, payload.email)
    reset_token = password_reset.verify_otp(db, user, payload.otp)
    return schemas.VerifyOtpResponse(message="OTP verified", reset_token=reset_token)


@router.post("/reset-password", dependencies=[Depends(password_reset_rate_limiter)])
async def reset_password(payload: schemas.ResetPasswordRequest, db: Session = Depends(get_db)):
    user = get_user_or_404(db, payload.email)
    password_reset.reset_password(db, user, payload.reset_token, payload.new_password)

    # Confirmation is best effort; the password is already changed
    await send_password_changed_notification(user.email, user.full_name or user.email)

    return {"message": "Password reset successfully"}
