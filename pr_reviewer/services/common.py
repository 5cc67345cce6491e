# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Helpers shared by the lifecycle services.
"""

from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from pr_reviewer.core.deadline import Deadline
from pr_reviewer.core.errors import ValidationError
from pr_reviewer.core.logging import get_logger
from pr_reviewer.metrics.prometheus import TX_ROLLBACKS
from pr_reviewer.models.domain import Reviewer, User
from pr_reviewer.repositories.base import Transaction, Transactor

logger = get_logger(__name__)


@contextmanager
def unit_of_work(transactor: Transactor, deadline: Optional[Deadline] = None) -> Iterator[Transaction]:
    """Begin a transaction; commit on clean exit, roll back on any exception.

    A failing rollback is logged and never replaces the original error.
    """
    tx = transactor.begin(deadline)
    try:
        yield tx
        transactor.commit(tx)
    except BaseException as exc:
        TX_ROLLBACKS.labels(error=type(exc).__name__).inc()
        try:
            transactor.rollback(tx)
        except Exception as rollback_exc:
            logger.error("Rollback failed after %s: %s", type(exc).__name__, rollback_exc)
        raise


def require(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} must not be empty")
    return value


def to_reviewers(users: Iterable[User]) -> tuple[Reviewer, ...]:
    return tuple(Reviewer(user_id=u.user_id, username=u.username) for u in users)


def user_ids(users: Iterable[User]) -> list[str]:
    return [u.user_id for u in users]
