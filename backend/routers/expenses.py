"""Expense groups router: create a group with its first expense, list, read, delete."""

from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

import schemas
from database import get_db
from services import groups as group_service


router = APIRouter(prefix="/api/expenses", tags=["expenses"])


@router.post(
    "/group-with-expense",
    response_model=schemas.ExpenseGroup,
    status_code=status.HTTP_201_CREATED
)
def create_group_with_expense(
    payload: schemas.GroupWithExpenseCreate,
    db: Session = Depends(get_db)
):
    return group_service.create_group_with_expense(
        db,
        group_name=payload.group_name,
        created_by=payload.created_by,
        members=payload.members,
        expense=payload.expense
    )


@router.get("/my-groups", response_model=list[schemas.ExpenseGroup])
def my_groups(
    userId: Optional[int] = None,
    mobile: Optional[str] = None,
    db: Session = Depends(get_db)
):
    return group_service.find_groups_for_participant(db, user_id=userId, mobile=mobile)


@router.get("/groups/{group_id}", response_model=schemas.ExpenseGroup)
def get_group(group_id: int, db: Session = Depends(get_db)):
    return group_service.get_group_detail(db, group_id)


@router.delete("/delete/{group_id}", response_model=schemas.GroupDeleteResponse)
def delete_group(group_id: int, db: Session = Depends(get_db)):
    result = group_service.delete_group(db, group_id)
    message = "Group deleted successfully"
    if not result.back_references_cleared:
        message = "Group deleted, but member references could not be removed"
    return schemas.GroupDeleteResponse(
        message=message,
        group=result.group,
        back_references_cleared=result.back_references_cleared
    )
