# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository: in-memory storage for teams, users, pull requests and reviews.

Implements the same contracts as SqlRepository. A transaction holds the
store's re-entrant lock from begin to commit/rollback, so transactions are
fully serialized; rollback restores the snapshot taken at begin.
"""

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional, Sequence

from pr_reviewer.core.deadline import Deadline
from pr_reviewer.core.errors import (
    DeadlineExceededError,
    InternalError,
    NotFoundError,
    PRExistsError,
    PRMergedError,
    TeamExistsError,
    ValidationError,
)
from pr_reviewer.models.domain import PRStatus, PullRequest, ReviewStat, Team, User
from pr_reviewer.repositories.base import (
    PullRequestRepository,
    StatsRepository,
    TeamRepository,
    Transaction,
    Transactor,
    UserRepository,
)
from pr_reviewer.services.sampling import CandidateSampler


class MemoryTransaction(Transaction):
    def __init__(self, snapshot: tuple, deadline: Optional[Deadline] = None) -> None:
        super().__init__(deadline)
        self.snapshot = snapshot
        self.owner = threading.get_ident()


class InMemoryRepository(Transactor, TeamRepository, UserRepository,
                         PullRequestRepository, StatsRepository):
    """Dict-backed storage; entities are immutable so snapshots are shallow copies."""

    def __init__(self, sampler: Optional[CandidateSampler] = None) -> None:
        self._sampler = sampler or CandidateSampler()
        self._lock = threading.RLock()
        self._teams: dict[int, Team] = {}
        self._users: dict[str, User] = {}
        self._prs: dict[str, PullRequest] = {}
        self._assignments: set[tuple[str, str]] = set()
        self._next_team_id = 1

    # ── Unit of work ──

    def begin(self, deadline: Optional[Deadline] = None) -> MemoryTransaction:
        if deadline is not None:
            deadline.check()
            remaining = deadline.remaining()
            acquired = self._lock.acquire(timeout=remaining if remaining is not None else -1)
            if not acquired:
                raise DeadlineExceededError("timed out waiting for a transaction slot")
        else:
            self._lock.acquire()
        return MemoryTransaction(self._snapshot(), deadline)

    def commit(self, tx: MemoryTransaction) -> None:
        self._check_owner(tx)
        tx.ensure_usable()
        tx.closed = True
        self._lock.release()

    def rollback(self, tx: MemoryTransaction) -> None:
        if tx.closed:
            return
        self._check_owner(tx)
        self._restore(tx.snapshot)
        tx.closed = True
        self._lock.release()

    # ── Teams ──

    def create_team(self, team_name: str, tx: Optional[Transaction] = None) -> Team:
        with self._scope(tx):
            if self._find_team(team_name) is not None:
                raise TeamExistsError(f"team '{team_name}' already exists")
            team = Team(team_id=self._next_team_id, team_name=team_name, is_active=True)
            self._teams[team.team_id] = team
            self._next_team_id += 1
            return team

    def get_team_by_name(self, team_name: str, tx: Optional[Transaction] = None) -> Team:
        with self._scope(tx):
            team = self._find_team(team_name)
            if team is None:
                raise NotFoundError(f"team '{team_name}' not found")
            return team

    def get_team_by_id(self, team_id: int, tx: Optional[Transaction] = None) -> Team:
        with self._scope(tx):
            return self._require_team(team_id)

    def rename_team(self, old_name: str, new_name: str,
                    tx: Optional[Transaction] = None) -> Team:
        with self._scope(tx):
            team = self._find_team(old_name)
            if team is None:
                raise NotFoundError(f"team '{old_name}' not found")
            if new_name != old_name and self._find_team(new_name) is not None:
                raise TeamExistsError(f"team '{new_name}' already exists")
            renamed = team.model_copy(update={"team_name": new_name})
            self._teams[team.team_id] = renamed
            return renamed

    def deactivate_team(self, team_id: int, tx: Optional[Transaction] = None) -> Team:
        with self._scope(tx):
            team = self._require_team(team_id).model_copy(update={"is_active": False})
            self._teams[team_id] = team
            return team

    # ── Users ──

    def create_user(self, user: User, tx: Optional[Transaction] = None) -> User:
        with self._scope(tx):
            self._require_team(user.team_id)
            if user.user_id in self._users or self._username_taken(user.username):
                raise ValidationError(
                    f"user '{user.user_id}' or username '{user.username}' already exists"
                )
            self._users[user.user_id] = user.model_copy(update={"team_name": None})
            return self._with_team_name(self._users[user.user_id])

    def get_user(self, user_id: str, tx: Optional[Transaction] = None) -> User:
        with self._scope(tx):
            return self._with_team_name(self._require_user(user_id))

    def list_users_by_team(self, team_id: int, tx: Optional[Transaction] = None) -> list[User]:
        with self._scope(tx):
            members = [u for u in self._users.values() if u.team_id == team_id]
            return [self._with_team_name(u) for u in sorted(members, key=lambda u: u.username)]

    def update_user(self, user: User, tx: Optional[Transaction] = None) -> User:
        with self._scope(tx):
            self._require_user(user.user_id)
            self._require_team(user.team_id)
            if self._username_taken(user.username, except_id=user.user_id):
                raise ValidationError(f"username '{user.username}' is already taken")
            self._users[user.user_id] = user.model_copy(update={"team_name": None})
            return self._with_team_name(self._users[user.user_id])

    def set_user_active(self, user_id: str, is_active: bool,
                        tx: Optional[Transaction] = None) -> User:
        with self._scope(tx):
            user = self._require_user(user_id).model_copy(update={"is_active": is_active})
            self._users[user_id] = user
            return self._with_team_name(user)

    def move_user_to_team(self, user_id: str, team_id: int,
                          tx: Optional[Transaction] = None) -> User:
        with self._scope(tx):
            self._require_team(team_id)
            user = self._require_user(user_id).model_copy(update={"team_id": team_id})
            self._users[user_id] = user
            return self._with_team_name(user)

    def deactivate_users_by_team(self, team_id: int,
                                 tx: Optional[Transaction] = None) -> list[str]:
        with self._scope(tx):
            ids = sorted(u.user_id for u in self._users.values()
                         if u.team_id == team_id and u.is_active)
            for user_id in ids:
                self._users[user_id] = self._users[user_id].model_copy(update={"is_active": False})
            return ids

    def find_candidates(self, team_id: int, author_id: str, exclude_ids: Sequence[str],
                        limit: int, tx: Optional[Transaction] = None) -> list[User]:
        with self._scope(tx):
            excluded = set(exclude_ids) | {author_id}
            pool = [
                self._with_team_name(u)
                for u in sorted(self._users.values(), key=lambda u: u.user_id)
                if u.team_id == team_id and u.is_active and u.user_id not in excluded
            ]
        return self._sampler.pick(pool, limit)

    # ── Pull requests ──

    def create_pr(self, pr: PullRequest, tx: Optional[Transaction] = None) -> PullRequest:
        with self._scope(tx):
            if pr.pull_request_id in self._prs:
                raise PRExistsError(f"PR '{pr.pull_request_id}' already exists")
            self._require_user(pr.author_id)
            stored = pr.model_copy(update={
                "status": PRStatus.OPEN,
                "created_at": pr.created_at or datetime.now(timezone.utc),
                "merged_at": None,
                "reviewers": (),
            })
            self._prs[stored.pull_request_id] = stored
            return stored

    def get_pr(self, pr_id: str, tx: Optional[Transaction] = None,
               for_update: bool = False) -> PullRequest:
        # for_update is implied: a transaction already holds the store lock
        with self._scope(tx):
            return self._require_pr(pr_id)

    def merge_pr(self, pr_id: str, merged_at: datetime,
                 tx: Optional[Transaction] = None) -> PullRequest:
        with self._scope(tx):
            pr = self._require_pr(pr_id)
            if not pr.is_open:
                raise PRMergedError(f"PR '{pr_id}' is already merged")
            merged = pr.model_copy(update={"status": PRStatus.MERGED, "merged_at": merged_at})
            self._prs[pr_id] = merged
            return merged

    def list_reviewers(self, pr_id: str, tx: Optional[Transaction] = None) -> list[User]:
        with self._scope(tx):
            ids = sorted(uid for pid, uid in self._assignments if pid == pr_id)
            return [self._with_team_name(self._users[uid]) for uid in ids]

    def remove_reviewer(self, pr_id: str, user_id: str,
                        tx: Optional[Transaction] = None) -> None:
        with self._scope(tx):
            self._assignments.discard((pr_id, user_id))

    def add_reviewers(self, pr_id: str, user_ids: Sequence[str],
                      tx: Optional[Transaction] = None) -> None:
        with self._scope(tx):
            self._require_pr(pr_id)
            for user_id in user_ids:
                self._require_user(user_id)
                if (pr_id, user_id) in self._assignments:
                    raise ValidationError(f"reviewer already assigned to PR '{pr_id}'")
            self._assignments.update((pr_id, uid) for uid in user_ids)

    def list_open_prs_by_reviewer(self, user_id: str,
                                  tx: Optional[Transaction] = None) -> list[PullRequest]:
        return [pr for pr in self.list_prs_by_reviewer(user_id, tx) if pr.is_open]

    def list_prs_by_reviewer(self, user_id: str,
                             tx: Optional[Transaction] = None) -> list[PullRequest]:
        with self._scope(tx):
            ids = sorted(pid for pid, uid in self._assignments if uid == user_id)
            return [self._prs[pid] for pid in ids]

    def list_open_prs_without_reviewers(self,
                                        tx: Optional[Transaction] = None) -> list[PullRequest]:
        with self._scope(tx):
            reviewed = {pid for pid, _ in self._assignments}
            prs = [pr for pr in self._prs.values() if pr.is_open and pr.pull_request_id not in reviewed]
            return sorted(prs, key=lambda p: (p.created_at, p.pull_request_id))

    # ── Stats ──

    def review_stats(self, tx: Optional[Transaction] = None) -> list[ReviewStat]:
        with self._scope(tx):
            counts: dict[str, int] = {}
            for _, user_id in self._assignments:
                counts[user_id] = counts.get(user_id, 0) + 1
        stats = [ReviewStat(user_id=uid, review_count=n) for uid, n in counts.items()]
        return sorted(stats, key=lambda s: (-s.review_count, s.user_id))

    def count_reviews_for_team(self, team_id: int, status: PRStatus,
                               tx: Optional[Transaction] = None) -> int:
        with self._scope(tx):
            return sum(
                1 for pid, uid in self._assignments
                if self._users[uid].team_id == team_id and self._prs[pid].status == status
            )

    def count_reviews_for_user(self, user_id: str, status: PRStatus,
                               tx: Optional[Transaction] = None) -> int:
        with self._scope(tx):
            return sum(
                1 for pid, uid in self._assignments
                if uid == user_id and self._prs[pid].status == status
            )

    # ── Lifecycle ──

    def verify_connection(self) -> None:
        return None

    def dispose(self) -> None:
        return None

    def clear(self) -> None:
        with self._lock:
            self._restore(({}, {}, {}, set(), 1))

    # ── Internal ──

    @contextmanager
    def _scope(self, tx: Optional[Transaction]) -> Iterator[None]:
        if tx is not None:
            self._check_owner(tx)
            tx.ensure_usable()
            yield
        else:
            with self._lock:
                yield

    def _check_owner(self, tx: Transaction) -> None:
        if not isinstance(tx, MemoryTransaction) or tx.owner != threading.get_ident():
            raise InternalError("transaction used outside the worker that opened it")

    def _snapshot(self) -> tuple:
        return (dict(self._teams), dict(self._users), dict(self._prs),
                set(self._assignments), self._next_team_id)

    def _restore(self, snapshot: tuple) -> None:
        teams, users, prs, assignments, next_team_id = snapshot
        self._teams = dict(teams)
        self._users = dict(users)
        self._prs = dict(prs)
        self._assignments = set(assignments)
        self._next_team_id = next_team_id

    def _find_team(self, team_name: str) -> Optional[Team]:
        return next((t for t in self._teams.values() if t.team_name == team_name), None)

    def _require_team(self, team_id: int) -> Team:
        team = self._teams.get(team_id)
        if team is None:
            raise NotFoundError(f"team with id '{team_id}' not found")
        return team

    def _require_user(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError(f"user '{user_id}' not found")
        return user

    def _require_pr(self, pr_id: str) -> PullRequest:
        pr = self._prs.get(pr_id)
        if pr is None:
            raise NotFoundError(f"PR '{pr_id}' not found")
        return pr

    def _username_taken(self, username: str, except_id: Optional[str] = None) -> bool:
        return any(u.username == username and u.user_id != except_id for u in self._users.values())

    def _with_team_name(self, user: User) -> User:
        return user.model_copy(update={"team_name": self._teams[user.team_id].team_name})
