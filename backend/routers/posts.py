"""Posts router: image posts with likes."""

from typing import Annotated, Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session, selectinload

import models
import schemas
from database import get_db, store_operation
from dependencies import get_current_user
from utils.files import POST_IMAGES, read_image_upload
from utils.rate_limiter import profile_update_rate_limiter
from utils.storage import save_image, delete_image
from utils.validation import get_post_or_404, verify_post_ownership


router = APIRouter(prefix="/api/post", tags=["posts"])


def _with_likes(post: models.Post, viewer_id: Optional[int]) -> schemas.PostWithLikes:
    liker_ids = {like.user_id for like in post.likes}
    return schemas.PostWithLikes(
        **schemas.Post.model_validate(post).model_dump(),
        author=schemas.PostAuthor.model_validate(post.author) if post.author else None,
        likes_count=len(liker_ids),
        liked=viewer_id in liker_ids if viewer_id is not None else False
    )


@router.post(
    "/create-post",
    response_model=schemas.PostCreated,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(profile_update_rate_limiter)]
)
async def create_post(
    current_user: Annotated[models.User, Depends(get_current_user)],
    description: str = Form(""),
    location: str = Form(""),
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db)
):
    if not description.strip() or not location.strip():
        raise HTTPException(status_code=400, detail="All fields are required")
    if image is None:
        raise HTTPException(status_code=400, detail="No image provided")

    content = await read_image_upload(image, POST_IMAGES)
    image_url = save_image(content, POST_IMAGES)

    post = models.Post(
        user_id=current_user.id,
        description=description.strip(),
        location=location.strip(),
        image_url=image_url
    )
    with store_operation(db, "post create"):
        db.add(post)
        db.commit()
        db.refresh(post)

    return schemas.PostCreated(message="Post created successfully", post=schemas.Post.model_validate(post))


@router.get("/posts", response_model=schemas.PostList)
def list_posts(userId: Optional[int] = None, db: Session = Depends(get_db)):
    """All posts newest first; `liked` is reported for the given userId."""
    posts = db.query(models.Post).options(
        selectinload(models.Post.author),
        selectinload(models.Post.likes)
    ).order_by(models.Post.created_at.desc(), models.Post.id.desc()).all()

    # Skip posts whose author no longer exists
    return schemas.PostList(posts=[_with_likes(post, userId) for post in posts if post.author is not None])


@router.get("/posts/my", response_model=schemas.PostList)
def my_posts(
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    posts = db.query(models.Post).options(
        selectinload(models.Post.author),
        selectinload(models.Post.likes)
    ).filter(
        models.Post.user_id == current_user.id
    ).order_by(models.Post.created_at.desc(), models.Post.id.desc()).all()
    return schemas.PostList(posts=[_with_likes(post, current_user.id) for post in posts])


@router.post("/{post_id}/like", response_model=schemas.LikeToggle)
def toggle_like(
    post_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    post = get_post_or_404(db, post_id)

    existing = db.query(models.PostLike).filter(
        models.PostLike.post_id == post.id,
        models.PostLike.user_id == current_user.id
    ).first()

    with store_operation(db, "like toggle"):
        if existing:
            db.delete(existing)
        else:
            db.add(models.PostLike(post_id=post.id, user_id=current_user.id))
        db.commit()

    likes_count = db.query(models.PostLike).filter(models.PostLike.post_id == post.id).count()
    return schemas.LikeToggle(likes_count=likes_count, liked=existing is None)


@router.delete("/posts/{post_id}")
def delete_post(
    post_id: int,
    current_user: Annotated[models.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    post = verify_post_ownership(db, post_id, current_user.id)
    image_url = post.image_url

    with store_operation(db, "post delete"):
        db.delete(post)
        db.commit()
    delete_image(image_url)

    return {"message": "Post deleted successfully"}
