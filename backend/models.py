from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, Float, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship, validates

from database import Base
from utils.phone import normalize_phone


EXPENSE_CATEGORIES = ("travel", "food", "entertainment", "shopping", "others")
SPLIT_TYPES = ("equal", "unequal")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=True)  # NULL for Google-only accounts
    full_name = Column(String, nullable=False)
    phone_number = Column(String, default="", index=True)
    profile_picture = Column(String, default="")
    auth_provider = Column(String, default="manual")  # 'manual' or 'google'
    google_id = Column(String, nullable=True, index=True)
    account_status = Column(String, default="active")
    email_verified = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @validates("phone_number")
    def _normalize_phone(self, key, value):
        return normalize_phone(value)


class UserGroupRef(Base):
    """Back-reference from a user to an expense group they take part in.

    group_id deliberately has no foreign key: the group row is deleted before
    its references are retracted.
    """
    __tablename__ = "user_group_refs"
    __table_args__ = (UniqueConstraint("user_id", "group_id", name="uq_user_group_ref"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    group_id = Column(Integer, index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class ExpenseGroup(Base):
    __tablename__ = "expense_groups"

    id = Column(Integer, primary_key=True, index=True)
    group_code = Column(String, unique=True, index=True, nullable=False)  # e.g. SarvamEx4821
    group_name = Column(String, nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, index=True)

    members = relationship(
        "GroupMember",
        order_by="GroupMember.position",
        cascade="all, delete-orphan",
    )
    expenses = relationship(
        "ExpenseLine",
        order_by="ExpenseLine.position",
        cascade="all, delete-orphan",
    )

    @validates("group_code")
    def _freeze_group_code(self, key, value):
        if self.group_code and value != self.group_code:
            raise ValueError("group_code cannot be reassigned")
        return value


class GroupMember(Base):
    __tablename__ = "group_members"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("expense_groups.id"), index=True, nullable=False)
    position = Column(Integer, default=0)
    user_id = Column(Integer, nullable=True, index=True)  # NULL until the phone's owner registers
    phone = Column(String, default="", index=True)
    name = Column(String, nullable=True)
    joined_at = Column(DateTime, default=datetime.utcnow)

    @validates("phone")
    def _normalize_phone(self, key, value):
        return normalize_phone(value)


class ExpenseLine(Base):
    __tablename__ = "expense_lines"

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("expense_groups.id"), index=True, nullable=False)
    position = Column(Integer, default=0)
    title = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    category = Column(String, default="others")
    paid_by_user_id = Column(Integer, nullable=True)
    paid_by_phone = Column(String, default="")
    split_type = Column(String, default="equal")
    date = Column(DateTime, default=datetime.utcnow)

    splits = relationship(
        "ExpenseSplit",
        order_by="ExpenseSplit.position",
        cascade="all, delete-orphan",
    )

    @validates("paid_by_phone")
    def _normalize_phone(self, key, value):
        return normalize_phone(value)

    @property
    def paid_by(self):
        return {"user_id": self.paid_by_user_id, "phone": self.paid_by_phone or None}


class ExpenseSplit(Base):
    __tablename__ = "expense_splits"

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, ForeignKey("expense_lines.id"), index=True, nullable=False)
    position = Column(Integer, default=0)
    user_id = Column(Integer, nullable=True)
    phone = Column(String, default="")
    amount = Column(Float, default=0)

    @validates("phone")
    def _normalize_phone(self, key, value):
        return normalize_phone(value)


class PasswordResetOtp(Base):
    """One issued password-reset OTP and its progress through verification."""
    __tablename__ = "password_reset_otps"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    otp_hash = Column(String, nullable=False)
    reset_token_hash = Column(String, nullable=True, index=True)
    attempts = Column(Integer, default=0)
    verified = Column(Boolean, default=False)
    used = Column(Boolean, default=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    description = Column(String, nullable=False)
    location = Column(String, nullable=False)
    image_url = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    author = relationship("User")
    likes = relationship("PostLike", cascade="all, delete-orphan")


class PostLike(Base):
    __tablename__ = "post_likes"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_post_like"),)

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
