"""Explicit persistence steps for changes to a user account."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

import auth
import models
from database import store_operation
from errors import ValidationError

logger = logging.getLogger(__name__)


def record_login(db: Session, user: models.User) -> None:
    user.last_login_at = datetime.utcnow()
    db.commit()


def update_details(
    db: Session,
    user: models.User,
    full_name: Optional[str],
    phone_number: Optional[str] = None
) -> models.User:
    full_name = full_name.strip() if full_name else full_name
    if not full_name:
        raise ValidationError("Full name is required", field="fullName")

    user.full_name = full_name
    if phone_number:
        user.phone_number = phone_number
    with store_operation(db, "user update"):
        db.commit()
        db.refresh(user)
    return user


def change_password(
    db: Session,
    user: models.User,
    current_password: Optional[str],
    new_password: Optional[str]
) -> None:
    if not current_password or not new_password:
        raise ValidationError("All fields are required")
    if not user.hashed_password:
        raise ValidationError("Password change not available for Google Sign-in users")
    if not auth.verify_password(current_password, user.hashed_password):
        raise ValidationError("Current password is incorrect", field="currentPassword")

    user.hashed_password = auth.get_password_hash(new_password)
    with store_operation(db, "password change"):
        db.commit()


def set_profile_picture(db: Session, user: models.User, url: str) -> models.User:
    user.profile_picture = url
    with store_operation(db, "profile picture update"):
        db.commit()
        db.refresh(user)
    return user


def delete_account(db: Session, user: models.User) -> None:
    """Delete the user with their group back-references, posts, likes and OTPs.

    Groups keep whatever member entries point at the user.
    """
    user_id = user.id
    with store_operation(db, "account delete"):
        db.query(models.UserGroupRef).filter(models.UserGroupRef.user_id == user_id).delete()
        db.query(models.PostLike).filter(models.PostLike.user_id == user_id).delete()
        for post in db.query(models.Post).filter(models.Post.user_id == user_id).all():
            db.delete(post)
        db.query(models.PasswordResetOtp).filter(models.PasswordResetOtp.user_id == user_id).delete()
        db.delete(user)
        db.commit()
    logger.info(f"Deleted account {user_id}")
