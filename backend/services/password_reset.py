"""Password reset by emailed OTP.

An OTP record moves issued -> verified -> used. Issuing a new OTP invalidates
every pending one for the user. A record stops being usable once it expires
or collects OTP_MAX_ATTEMPTS wrong guesses.
"""

import os
import hmac
import logging
from datetime import datetime

from sqlalchemy.orm import Session

import auth
import models
from database import store_operation
from errors import ValidationError

logger = logging.getLogger(__name__)

OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))


def issue_otp(db: Session, user: models.User) -> str:
    """Invalidate pending OTPs and store a fresh one. Returns the plain OTP for delivery."""
    otp = auth.generate_otp()
    with store_operation(db, "otp issue"):
        db.query(models.PasswordResetOtp).filter(
            models.PasswordResetOtp.user_id == user.id,
            models.PasswordResetOtp.used == False
        ).update({"used": True})
        db.add(models.PasswordResetOtp(
            user_id=user.id,
            otp_hash=auth.hash_token(otp),
            expires_at=auth.get_otp_expiry()
        ))
        db.commit()
    logger.info(f"Issued password reset OTP for user {user.id}")
    return otp


def verify_otp(db: Session, user: models.User, otp: str) -> str:
    """Check an OTP against the user's latest pending record and return a single-use reset token."""
    record = db.query(models.PasswordResetOtp).filter(
        models.PasswordResetOtp.user_id == user.id,
        models.PasswordResetOtp.used == False,
        models.PasswordResetOtp.verified == False
    ).order_by(models.PasswordResetOtp.created_at.desc(), models.PasswordResetOtp.id.desc()).first()

    if not record:
        raise ValidationError("No pending OTP. Please request a new one.", field="otp")

    if record.expires_at < datetime.utcnow():
        record.used = True
        db.commit()
        raise ValidationError("OTP has expired. Please request a new one.", field="otp")

    if record.attempts >= OTP_MAX_ATTEMPTS:
        raise ValidationError("Too many incorrect attempts. Please request a new OTP.", field="otp")

    if not hmac.compare_digest(auth.hash_token(otp.strip()), record.otp_hash):
        record.attempts += 1
        db.commit()
        raise ValidationError("Invalid OTP", field="otp")

    reset_token = auth.create_reset_token()
    record.verified = True
    record.reset_token_hash = auth.hash_token(reset_token)
    db.commit()
    return reset_token


def reset_password(db: Session, user: models.User, reset_token: str, new_password: str) -> None:
    record = db.query(models.PasswordResetOtp).filter(
        models.PasswordResetOtp.user_id == user.id,
        models.PasswordResetOtp.reset_token_hash == auth.hash_token(reset_token),
        models.PasswordResetOtp.verified == True,
        models.PasswordResetOtp.used == False
    ).first()

    if not record or record.expires_at < datetime.utcnow():
        raise ValidationError("Invalid or expired reset token", field="resetToken")

    user.hashed_password = auth.get_password_hash(new_password)
    record.used = True
    db.commit()
    logger.info(f"Password reset completed for user {user.id}")
