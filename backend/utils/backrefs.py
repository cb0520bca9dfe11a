"""Maintain users' back-references to the expense groups they belong to."""

from typing import Iterable

from sqlalchemy.orm import Session

import models
from database import store_operation


def add_group_reference(db: Session, user_ids: Iterable[int], group_id: int) -> int:
    """
    Add group_id to each existing user's back-reference set.

    Set-union semantics: users that already reference the group, and ids with
    no user row, are skipped. Returns the number of references added.
    """
    user_ids = set(user_ids)
    if not user_ids:
        return 0

    with store_operation(db, "back-reference update"):
        existing_users = {
            row[0] for row in db.query(models.User.id).filter(models.User.id.in_(user_ids)).all()
        }
        already_linked = {
            row[0] for row in db.query(models.UserGroupRef.user_id).filter(
                models.UserGroupRef.group_id == group_id,
                models.UserGroupRef.user_id.in_(existing_users)
            ).all()
        } if existing_users else set()

        new_refs = [
            models.UserGroupRef(user_id=user_id, group_id=group_id)
            for user_id in sorted(existing_users - already_linked)
        ]
        db.add_all(new_refs)
        db.commit()

    return len(new_refs)


def retract_group_reference(db: Session, group_id: int) -> int:
    """Remove group_id from every user's back-reference set. Absent references are a no-op."""
    with store_operation(db, "back-reference retraction"):
        removed = db.query(models.UserGroupRef).filter(
            models.UserGroupRef.group_id == group_id
        ).delete(synchronize_session=False)
        db.commit()
    return removed


def group_ids_for_user(db: Session, user_id: int) -> list[int]:
    with store_operation(db, "back-reference read"):
        rows = db.query(models.UserGroupRef.group_id).filter(
            models.UserGroupRef.user_id == user_id
        ).order_by(models.UserGroupRef.group_id).all()
    return [row[0] for row in rows]
