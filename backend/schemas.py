from datetime import datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from utils.phone import normalize_phone


class CamelModel(BaseModel):
    """Speaks camelCase on the wire, accepts snake_case too, reads ORM objects."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---- Users & auth ----

class SignupRequest(CamelModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None

class LoginRequest(CamelModel):
    email: str
    password: str

class GoogleSignInRequest(CamelModel):
    id_token: str

class User(CamelModel):
    id: int
    full_name: str
    email: str
    profile_picture: Optional[str] = ""
    phone_number: Optional[str] = ""
    auth_provider: str = "manual"

class UserProfile(User):
    account_status: Optional[str] = None
    email_verified: bool = False
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    group_ids: list[int] = []

class AuthResponse(CamelModel):
    message: str
    token: str
    user: User

class ValidateEmailRequest(CamelModel):
    email: EmailStr

class VerifyOtpRequest(CamelModel):
    email: EmailStr
    otp: str

class VerifyOtpResponse(CamelModel):
    message: str
    reset_token: str

class ResetPasswordRequest(CamelModel):
    email: EmailStr
    reset_token: str
    new_password: str = Field(min_length=6)

class UpdateDetailsRequest(CamelModel):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None

class ChangePasswordRequest(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


# ---- Expense groups ----

class ParticipantRef(CamelModel):
    """A participant given by registered user id, by phone, or both."""
    user_id: Optional[int] = None
    phone: Optional[str] = None

    @model_validator(mode="after")
    def require_identifier(self):
        # A phone with no digits normalizes to "" and identifies nobody
        if self.user_id is None and not normalize_phone(self.phone):
            raise ValueError("Either userId or a phone number with digits is required")
        return self

class MemberIn(ParticipantRef):
    name: Optional[str] = None

class SplitTarget(ParticipantRef):
    amount: float = Field(default=0, ge=0)

class ExpenseLineCreate(CamelModel):
    title: str = Field(min_length=1)
    amount: float = Field(ge=0)
    category: Literal["travel", "food", "entertainment", "shopping", "others"] = "others"
    paid_by: ParticipantRef
    split_type: Literal["equal", "unequal"] = "equal"
    split_between: list[SplitTarget] = []
    date: Optional[datetime] = None

    @field_validator("category", "split_type", mode="before")
    @classmethod
    def lowercase(cls, v):
        return v.lower() if isinstance(v, str) else v

class GroupWithExpenseCreate(CamelModel):
    # Presence of the three required inputs is checked by the group service
    group_name: Optional[str] = None
    created_by: Optional[int] = None
    members: list[MemberIn] = []
    expense: Optional[ExpenseLineCreate] = None

class ParticipantOut(CamelModel):
    user_id: Optional[int] = None
    phone: Optional[str] = None

class MemberOut(CamelModel):
    user_id: Optional[int] = None
    phone: str = ""
    name: Optional[str] = None
    joined_at: Optional[datetime] = None

class SplitOut(CamelModel):
    user_id: Optional[int] = None
    phone: str = ""
    amount: float

class ExpenseLineOut(CamelModel):
    id: int
    title: str
    amount: float
    category: str
    paid_by: ParticipantOut
    split_type: str
    split_between: list[SplitOut] = Field(
        default=[],
        validation_alias=AliasChoices("splits", "splitBetween", "split_between"),
        serialization_alias="splitBetween",
    )
    date: Optional[datetime] = None

class ExpenseGroup(CamelModel):
    id: int
    group_id: str = Field(
        validation_alias=AliasChoices("group_code", "groupId", "group_id"),
        serialization_alias="groupId",
    )
    group_name: str
    created_by: int = Field(
        validation_alias=AliasChoices("created_by_id", "createdBy", "created_by"),
        serialization_alias="createdBy",
    )
    members: list[MemberOut] = []
    expenses: list[ExpenseLineOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class GroupDeleteResponse(CamelModel):
    message: str
    group: ExpenseGroup
    back_references_cleared: bool = True


# ---- Posts ----

class PostAuthor(CamelModel):
    id: int
    full_name: str
    profile_picture: Optional[str] = ""

class Post(CamelModel):
    id: int
    user_id: int
    description: str
    location: str
    image_url: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class PostWithLikes(Post):
    author: Optional[PostAuthor] = None
    likes_count: int = 0
    liked: bool = False

class PostList(CamelModel):
    posts: list[PostWithLikes] = []

class PostCreated(CamelModel):
    message: str
    post: Post

class LikeToggle(CamelModel):
    likes_count: int
    liked: bool
