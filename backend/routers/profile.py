"""Profile router: current user, update details, change password, picture upload, account deletion."""

from typing import Annotated
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

import models
import schemas
from database import get_db
from dependencies import get_current_user
from services import users as user_service
from utils.backrefs import group_ids_for_user
from utils.files import PROFILE_IMAGES, read_image_upload
from utils.rate_limiter import profile_update_rate_limiter
from utils.storage import save_image, delete_image


router = APIRouter(prefix="/api/user", tags=["profile"])


@router.get("/me", response_model=schemas.UserProfile)
def get_me(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    profile = schemas.UserProfile.model_validate(current_user)
    profile.group_ids = group_ids_for_user(db, current_user.id)
    return profile


@router.put("/update-details", dependencies=[Depends(profile_update_rate_limiter)])
def update_details(
    payload: schemas.UpdateDetailsRequest,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    user = user_service.update_details(db, current_user, payload.full_name, payload.phone_number)
    return {"success": True, "user": schemas.User.model_validate(user)}


@router.put("/change-password", dependencies=[Depends(profile_update_rate_limiter)])
def change_password(
    payload: schemas.ChangePasswordRequest,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    user_service.change_password(db, current_user, payload.current_password, payload.new_password)
    return {"success": True, "message": "Password updated successfully"}


@router.post("/upload-profile-picture", dependencies=[Depends(profile_update_rate_limiter)])
async def upload_profile_picture(
    current_user: Annotated[models.User, Depends(get_current_user)],
    profilePicture: UploadFile = File(...),
    db: Session = Depends(get_db)
):
    content = await read_image_upload(profilePicture, PROFILE_IMAGES)
    url = save_image(content, PROFILE_IMAGES)

    previous = current_user.profile_picture
    user_service.set_profile_picture(db, current_user, url)
    delete_image(previous)

    return {
        "success": True,
        "message": "Profile picture updated successfully",
        "profilePicture": url
    }


@router.delete("/delete")
def delete_account(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    user_service.delete_account(db, current_user)
    return {"message": "Account deleted successfully"}
