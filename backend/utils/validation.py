"""Lookup helpers that raise 404 for missing records."""

from sqlalchemy.orm import Session
from fastapi import HTTPException

import models


def get_user_by_email(db: Session, email: str):
    """Get a user by their email address (case-insensitive)."""
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def get_user_or_404(db: Session, email: str):
    user = get_user_by_email(db, email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def get_post_or_404(db: Session, post_id: int):
    """Get a post by ID or raise 404 if not found."""
    post = db.query(models.Post).filter(models.Post.id == post_id).first()
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


def verify_post_ownership(db: Session, post_id: int, user_id: int):
    """Verify that a user authored a post, raise 403 if not."""
    post = get_post_or_404(db, post_id)
    if post.user_id != user_id:
        raise HTTPException(status_code=403, detail="Not authorized to delete")
    return post
