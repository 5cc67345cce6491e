# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository contracts — the data-access interface the services call against.

Every method takes a trailing optional ``tx``. ``None`` runs the call on
its own; a Transaction handle obtained from ``Transactor.begin`` runs it
inside that open unit of work. Implementations: ``SqlRepository`` and
``InMemoryRepository``.

Lookups that miss raise NotFoundError; uniqueness violations raise
TeamExistsError / PRExistsError / ValidationError; anything else the
storage cannot classify is raised as InternalError.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, Sequence

from pr_reviewer.core.deadline import Deadline
from pr_reviewer.core.errors import InternalError
from pr_reviewer.models.domain import PRStatus, PullRequest, ReviewStat, Team, User


class Transaction:
    """Handle for one open unit of work, owned by the operation that began it."""

    def __init__(self, deadline: Optional[Deadline] = None) -> None:
        self.deadline = deadline
        self.closed = False

    def ensure_usable(self) -> None:
        """Fail fast on a finished transaction or an expired deadline."""
        if self.closed:
            raise InternalError("transaction is already closed")
        if self.deadline is not None:
            self.deadline.check()


class Transactor(ABC):
    @abstractmethod
    def begin(self, deadline: Optional[Deadline] = None) -> Transaction:
        ...

    @abstractmethod
    def commit(self, tx: Transaction) -> None:
        ...

    @abstractmethod
    def rollback(self, tx: Transaction) -> None:
        """Roll back; a no-op on an already closed transaction."""


class TeamRepository(ABC):
    @abstractmethod
    def create_team(self, team_name: str, tx: Optional[Transaction] = None) -> Team:
        ...

    @abstractmethod
    def get_team_by_name(self, team_name: str, tx: Optional[Transaction] = None) -> Team:
        ...

    @abstractmethod
    def get_team_by_id(self, team_id: int, tx: Optional[Transaction] = None) -> Team:
        ...

    @abstractmethod
    def rename_team(self, old_name: str, new_name: str,
                    tx: Optional[Transaction] = None) -> Team:
        ...

    @abstractmethod
    def deactivate_team(self, team_id: int, tx: Optional[Transaction] = None) -> Team:
        ...


class UserRepository(ABC):
    @abstractmethod
    def create_user(self, user: User, tx: Optional[Transaction] = None) -> User:
        ...

    @abstractmethod
    def get_user(self, user_id: str, tx: Optional[Transaction] = None) -> User:
        """Return the user with ``team_name`` filled in."""

    @abstractmethod
    def list_users_by_team(self, team_id: int, tx: Optional[Transaction] = None) -> list[User]:
        ...

    @abstractmethod
    def update_user(self, user: User, tx: Optional[Transaction] = None) -> User:
        """Overwrite username, team and active flag of an existing user."""

    @abstractmethod
    def set_user_active(self, user_id: str, is_active: bool,
                        tx: Optional[Transaction] = None) -> User:
        ...

    @abstractmethod
    def move_user_to_team(self, user_id: str, team_id: int,
                          tx: Optional[Transaction] = None) -> User:
        ...

    @abstractmethod
    def deactivate_users_by_team(self, team_id: int,
                                 tx: Optional[Transaction] = None) -> list[str]:
        """Deactivate every active member; return the ids actually changed."""

    @abstractmethod
    def find_candidates(self, team_id: int, author_id: str, exclude_ids: Sequence[str],
                        limit: int, tx: Optional[Transaction] = None) -> list[User]:
        """Up to ``limit`` active team members, minus the author and ``exclude_ids``."""


class PullRequestRepository(ABC):
    @abstractmethod
    def create_pr(self, pr: PullRequest, tx: Optional[Transaction] = None) -> PullRequest:
        ...

    @abstractmethod
    def get_pr(self, pr_id: str, tx: Optional[Transaction] = None,
               for_update: bool = False) -> PullRequest:
        """Return the PR without reviewers.

        ``for_update`` locks the row until ``tx`` finishes; it serializes
        concurrent reviewer mutations of the same PR.
        """

    @abstractmethod
    def merge_pr(self, pr_id: str, merged_at: datetime,
                 tx: Optional[Transaction] = None) -> PullRequest:
        ...

    @abstractmethod
    def list_reviewers(self, pr_id: str, tx: Optional[Transaction] = None) -> list[User]:
        ...

    @abstractmethod
    def remove_reviewer(self, pr_id: str, user_id: str,
                        tx: Optional[Transaction] = None) -> None:
        ...

    @abstractmethod
    def add_reviewers(self, pr_id: str, user_ids: Sequence[str],
                      tx: Optional[Transaction] = None) -> None:
        ...

    @abstractmethod
    def list_open_prs_by_reviewer(self, user_id: str,
                                  tx: Optional[Transaction] = None) -> list[PullRequest]:
        ...

    @abstractmethod
    def list_prs_by_reviewer(self, user_id: str,
                             tx: Optional[Transaction] = None) -> list[PullRequest]:
        ...

    @abstractmethod
    def list_open_prs_without_reviewers(self,
                                        tx: Optional[Transaction] = None) -> list[PullRequest]:
        ...


class StatsRepository(ABC):
    @abstractmethod
    def review_stats(self, tx: Optional[Transaction] = None) -> list[ReviewStat]:
        """Assignment rows per user, most loaded first."""

    @abstractmethod
    def count_reviews_for_team(self, team_id: int, status: PRStatus,
                               tx: Optional[Transaction] = None) -> int:
        ...

    @abstractmethod
    def count_reviews_for_user(self, user_id: str, status: PRStatus,
                               tx: Optional[Transaction] = None) -> int:
        ...
