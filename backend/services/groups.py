"""Expense group service: create, find, read and delete groups.

A group and its participants' back-references live in separate tables and are
written in two steps. The group is always committed first, so a failure while
updating back-references leaves a group that can still be fetched by id rather
than a reference to a group that does not exist. Both back-reference steps are
idempotent, so concurrent creates need no locking.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

import models
import schemas
from database import store_operation
from errors import ConflictError, NotFoundError, StoreUnavailableError, ValidationError
from utils.backrefs import add_group_reference, retract_group_reference
from utils.group_codes import GROUP_CODE_MAX_ATTEMPTS, generate_unique_group_code
from utils.participants import resolve_participants
from utils.phone import normalize_phone

logger = logging.getLogger(__name__)


@dataclass
class DeleteGroupResult:
    group: schemas.ExpenseGroup
    back_references_cleared: bool
    references_removed: int = 0


def _build_expense_line(expense: schemas.ExpenseLineCreate, position: int = 0) -> models.ExpenseLine:
    line = models.ExpenseLine(
        position=position,
        title=expense.title,
        amount=expense.amount,
        category=expense.category,
        paid_by_user_id=expense.paid_by.user_id,
        paid_by_phone=expense.paid_by.phone,
        split_type=expense.split_type,
    )
    if expense.date is not None:
        line.date = expense.date
    line.splits = [
        models.ExpenseSplit(position=i, user_id=target.user_id, phone=target.phone, amount=target.amount)
        for i, target in enumerate(expense.split_between)
    ]
    return line


def _insert_with_unique_code(
    db: Session,
    build: Callable[[str], models.ExpenseGroup],
    max_attempts: int = GROUP_CODE_MAX_ATTEMPTS,
) -> models.ExpenseGroup:
    """
    Insert a freshly built group, drawing a new code when a concurrent create
    took the same one between the uniqueness check and the commit.

    Raises:
        ConflictError: If every attempt lost the race
        StoreUnavailableError: On any other store failure
    """
    for attempt in range(1, max_attempts + 1):
        group_code = generate_unique_group_code(db)
        group = build(group_code)
        with store_operation(db, "group create"):
            try:
                db.add(group)
                db.commit()
            except IntegrityError as e:
                if "group_code" not in str(e.orig):
                    raise
                db.rollback()
                logger.info(f"Group code {group_code} taken at insert (attempt {attempt}/{max_attempts})")
                continue
            db.refresh(group)
        return group

    raise ConflictError(f"Could not allocate a unique group id after {max_attempts} attempts")


def create_group_with_expense(
    db: Session,
    group_name: Optional[str],
    created_by: Optional[int],
    members: list[schemas.MemberIn],
    expense: Optional[schemas.ExpenseLineCreate],
) -> models.ExpenseGroup:
    """Create a group together with its first expense line and link every participant to it."""
    group_name = group_name.strip() if group_name else group_name
    if not group_name:
        raise ValidationError("groupName is required", field="groupName")
    if created_by is None:
        raise ValidationError("createdBy is required", field="createdBy")
    if expense is None:
        raise ValidationError("expense is required", field="expense")

    members = members or []
    participants = resolve_participants(db, created_by, members)

    def build(group_code: str) -> models.ExpenseGroup:
        group = models.ExpenseGroup(
            group_code=group_code,
            group_name=group_name,
            created_by_id=created_by,
        )
        group.members = [
            models.GroupMember(position=i, user_id=m.user_id, phone=m.phone, name=m.name)
            for i, m in enumerate(members)
        ]
        group.expenses = [_build_expense_line(expense)]
        return group

    group = _insert_with_unique_code(db, build)
    logger.info(f"Created expense group {group.group_code} (id={group.id}) with {len(participants)} participants")

    add_group_reference(db, participants, group.id)
    return group


def find_groups_for_participant(
    db: Session,
    user_id: Optional[int] = None,
    mobile: Optional[str] = None,
) -> list[models.ExpenseGroup]:
    """Groups whose member list holds the user id or the normalized mobile, most recently updated first."""
    phone = normalize_phone(mobile)
    if user_id is None and not phone:
        raise ValidationError("userId or mobile is required")

    conditions = []
    if user_id is not None:
        conditions.append(models.GroupMember.user_id == user_id)
    if phone:
        conditions.append(models.GroupMember.phone == phone)

    with store_operation(db, "group search"):
        matching_ids = db.query(models.GroupMember.group_id).filter(or_(*conditions))
        return db.query(models.ExpenseGroup).options(
            selectinload(models.ExpenseGroup.members),
            selectinload(models.ExpenseGroup.expenses).selectinload(models.ExpenseLine.splits),
        ).filter(
            models.ExpenseGroup.id.in_(matching_ids)
        ).order_by(
            models.ExpenseGroup.updated_at.desc(),
            models.ExpenseGroup.id.desc()
        ).all()


def get_group_detail(db: Session, group_id: int) -> models.ExpenseGroup:
    with store_operation(db, "group read"):
        group = db.query(models.ExpenseGroup).options(
            selectinload(models.ExpenseGroup.members),
            selectinload(models.ExpenseGroup.expenses).selectinload(models.ExpenseLine.splits),
        ).filter(models.ExpenseGroup.id == group_id).first()
    if not group:
        raise NotFoundError("Group", group_id)
    return group


def delete_group(db: Session, group_id: int) -> DeleteGroupResult:
    """
    Delete a group, then retract its id from every user's back-references.

    The retraction matches on the group id across all users, so references
    added outside of group creation are removed too. A retraction failure is
    logged and reported in the result; the group stays deleted.
    """
    group = get_group_detail(db, group_id)
    snapshot = schemas.ExpenseGroup.model_validate(group)

    with store_operation(db, "group delete"):
        db.delete(group)
        db.commit()
    logger.info(f"Deleted expense group {snapshot.group_id} (id={group_id})")

    try:
        removed = retract_group_reference(db, group_id)
    except StoreUnavailableError as e:
        logger.error(f"Group {group_id} deleted but back-references were not retracted: {e.reason}")
        return DeleteGroupResult(group=snapshot, back_references_cleared=False)

    return DeleteGroupResult(group=snapshot, back_references_cleared=True, references_removed=removed)
