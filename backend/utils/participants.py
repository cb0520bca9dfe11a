"""Resolve expense group members to the set of registered user ids."""

from typing import Iterable

from sqlalchemy.orm import Session

import models
from database import store_operation
from utils.phone import normalize_phone


def resolve_participants(db: Session, creator_id: int, members: Iterable) -> set[int]:
    """
    Return the creator plus every member resolvable to a user id.

    Members with a user_id are taken as-is. Members carrying only a phone are
    looked up together in a single query; phones with no registered owner are
    dropped.
    """
    participants = {creator_id}
    pending_phones = set()

    for member in members:
        if member.user_id is not None:
            participants.add(member.user_id)
            continue
        phone = normalize_phone(member.phone)
        if phone:
            pending_phones.add(phone)

    if pending_phones:
        with store_operation(db, "participant lookup"):
            rows = db.query(models.User.id).filter(
                models.User.phone_number.in_(pending_phones)
            ).all()
        participants.update(row[0] for row in rows)

    return participants
