"""Human-readable expense group identifiers (``SarvamEx`` + four digits)."""

import os
import logging
import secrets
from typing import Callable

from sqlalchemy.orm import Session

import models
from database import store_operation
from errors import ConflictError

logger = logging.getLogger(__name__)

GROUP_CODE_PREFIX = "SarvamEx"
GROUP_CODE_MAX_ATTEMPTS = int(os.getenv("GROUP_CODE_MAX_ATTEMPTS", "10"))


def random_group_code() -> str:
    return f"{GROUP_CODE_PREFIX}{1000 + secrets.randbelow(9000)}"


def generate_group_code(
    exists: Callable[[str], bool],
    max_attempts: int = GROUP_CODE_MAX_ATTEMPTS,
    candidate: Callable[[], str] = random_group_code,
) -> str:
    """
    Draw candidates until one is unused.

    Args:
        exists: Returns True when a candidate is already taken. Any exception it
            raises (a store failure) aborts generation immediately.
        max_attempts: Upper bound on candidates tried
        candidate: Candidate factory

    Returns:
        str: An unused group code

    Raises:
        ConflictError: If every attempt collided
    """
    for attempt in range(1, max_attempts + 1):
        code = candidate()
        if not exists(code):
            return code
        logger.info(f"Group code {code} already taken (attempt {attempt}/{max_attempts})")

    raise ConflictError(f"Could not allocate a unique group id after {max_attempts} attempts")


def generate_unique_group_code(db: Session, max_attempts: int = GROUP_CODE_MAX_ATTEMPTS) -> str:
    """Generate a group code checked for uniqueness against the expense_groups table."""
    def exists(code: str) -> bool:
        with store_operation(db, "group id check"):
            return db.query(models.ExpenseGroup.id).filter(
                models.ExpenseGroup.group_code == code
            ).first() is not None

    return generate_group_code(exists, max_attempts=max_attempts)
