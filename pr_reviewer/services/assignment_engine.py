# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Assignment engine — keeps the reviewer set of every OPEN pull
request valid while users and teams change state.

Every operation runs inside a transaction opened by the caller and never
commits or rolls back on its own. Before touching a PR's reviewer rows the
engine locks the PR row; the cascade locks PRs in ascending id order so two
concurrent cascades cannot deadlock on each other.
"""

from typing import Optional, Sequence

from pr_reviewer.core.errors import NotAssignedError, PRMergedError, ValidationError
from pr_reviewer.core.logging import get_logger
from pr_reviewer.metrics.prometheus import PRS_REBALANCED, REVIEWERS_ASSIGNED
from pr_reviewer.models.domain import MAX_REVIEWERS, PullRequest, User
from pr_reviewer.repositories.base import (
    PullRequestRepository,
    TeamRepository,
    Transaction,
    UserRepository,
)
from pr_reviewer.services.common import to_reviewers, user_ids

logger = get_logger(__name__)


class AssignmentEngine:
    """Candidate selection, assignment, reassignment and cascading rebalance."""

    def __init__(
        self,
        team_repo: TeamRepository,
        user_repo: UserRepository,
        pr_repo: PullRequestRepository,
        max_reviewers: int = MAX_REVIEWERS,
    ) -> None:
        self._teams = team_repo
        self._users = user_repo
        self._prs = pr_repo
        self.max_reviewers = max_reviewers

    # ── Selection ──

    def find_candidates(
        self,
        team_id: int,
        author_id: str,
        exclude_ids: Sequence[str],
        limit: int,
        tx: Optional[Transaction] = None,
    ) -> list[User]:
        """Up to ``limit`` active members of the team, never the author."""
        if limit <= 0:
            return []
        return self._users.find_candidates(team_id, author_id, list(exclude_ids), limit, tx)

    # ── Assignment ──

    def assign_initial_reviewers(self, pr: PullRequest, author: User,
                                 tx: Transaction) -> PullRequest:
        candidates = self.find_candidates(author.team_id, author.user_id, [], self.max_reviewers, tx)
        if candidates:
            self._prs.add_reviewers(pr.pull_request_id, user_ids(candidates), tx)
            REVIEWERS_ASSIGNED.labels(source="create").inc(len(candidates))
        else:
            logger.warning("No reviewers available: pr=%s, team_id=%d",
                           pr.pull_request_id, author.team_id)
        return pr.model_copy(update={"reviewers": to_reviewers(candidates)})

    def add_reviewer(self, pr_id: str, user_id: str, tx: Transaction) -> PullRequest:
        """Assign one specific reviewer. Already assigned is a no-op."""
        pr = self._lock_open_pr(pr_id, tx)
        user = self._users.get_user(user_id, tx)
        if not user.is_active:
            raise ValidationError(f"user '{user_id}' is inactive")

        reviewers = self._prs.list_reviewers(pr_id, tx)
        if user_id in user_ids(reviewers):
            return pr.model_copy(update={"reviewers": to_reviewers(reviewers)})
        if user_id == pr.author_id:
            raise ValidationError("the author cannot review their own PR")
        if len(reviewers) >= self.max_reviewers:
            raise ValidationError(
                f"PR '{pr_id}' already has the maximum of {self.max_reviewers} reviewers"
            )

        self._prs.add_reviewers(pr_id, [user_id], tx)
        REVIEWERS_ASSIGNED.labels(source="manual").inc()
        logger.info("Reviewer assigned: pr=%s, user=%s", pr_id, user_id)
        return pr.model_copy(update={"reviewers": to_reviewers([*reviewers, user])})

    def reassign(self, pr_id: str, old_user_id: str, tx: Transaction) -> Optional[str]:
        """Replace ``old_user_id`` with one fresh candidate.

        The old reviewer is removed even when nobody can replace them; the
        return value is the new reviewer's id, or ``None`` in that case.
        """
        pr = self._lock_open_pr(pr_id, tx)
        if old_user_id not in user_ids(self._prs.list_reviewers(pr_id, tx)):
            raise NotAssignedError(f"user '{old_user_id}' is not a reviewer of PR '{pr_id}'")

        self._prs.remove_reviewer(pr_id, old_user_id, tx)
        remaining = user_ids(self._prs.list_reviewers(pr_id, tx))
        author = self._users.get_user(pr.author_id, tx)

        candidates = self.find_candidates(
            author.team_id, author.user_id, [*remaining, old_user_id], 1, tx,
        )
        if not candidates:
            logger.warning("No replacement reviewer: pr=%s, removed=%s", pr_id, old_user_id)
            return None

        new_id = candidates[0].user_id
        self._prs.add_reviewers(pr_id, [new_id], tx)
        REVIEWERS_ASSIGNED.labels(source="reassign").inc()
        logger.info("Reviewer reassigned: pr=%s, old=%s, new=%s", pr_id, old_user_id, new_id)
        return new_id

    # ── Cascade ──

    def rebalance_for_users(self, deactivated_ids: Sequence[str], tx: Transaction) -> int:
        """Strip deactivated users from OPEN PRs and top up emptied ones.

        Returns the number of distinct PRs that received a new reviewer. A PR
        whose author's team is inactive, or that finds no candidate, is left
        without reviewers.
        """
        removals: dict[str, set[str]] = {}
        for user_id in dict.fromkeys(deactivated_ids):
            for pr in self._prs.list_open_prs_by_reviewer(user_id, tx):
                removals.setdefault(pr.pull_request_id, set()).add(user_id)

        rebalanced = 0
        for pr_id in sorted(removals):
            pr = self._prs.get_pr(pr_id, tx, for_update=True)
            if not pr.is_open:
                continue
            for user_id in sorted(removals[pr_id]):
                self._prs.remove_reviewer(pr_id, user_id, tx)

            remaining = user_ids(self._prs.list_reviewers(pr_id, tx))
            if remaining:
                continue
            if self._top_up(pr, remaining, tx):
                rebalanced += 1

        if rebalanced:
            PRS_REBALANCED.inc(rebalanced)
        logger.info("Rebalance finished: users=%d, prs_touched=%d, prs_rebalanced=%d",
                    len(set(deactivated_ids)), len(removals), rebalanced)
        return rebalanced

    # ── Internal ──

    def _lock_open_pr(self, pr_id: str, tx: Transaction) -> PullRequest:
        pr = self._prs.get_pr(pr_id, tx, for_update=True)
        if not pr.is_open:
            raise PRMergedError(f"PR '{pr_id}' is merged; reviewers are frozen")
        return pr

    def _top_up(self, pr: PullRequest, remaining: list[str], tx: Transaction) -> bool:
        author = self._users.get_user(pr.author_id, tx)
        team = self._teams.get_team_by_id(author.team_id, tx)
        if not team.is_active:
            logger.info("Author team inactive, PR left unreviewed: pr=%s, team=%s",
                        pr.pull_request_id, team.team_name)
            return False

        candidates = self.find_candidates(
            team.team_id, author.user_id, remaining, self.max_reviewers - len(remaining), tx,
        )
        if not candidates:
            logger.warning("No candidates for rebalance, PR left unreviewed: pr=%s",
                           pr.pull_request_id)
            return False

        self._prs.add_reviewers(pr.pull_request_id, user_ids(candidates), tx)
        REVIEWERS_ASSIGNED.labels(source="rebalance").inc(len(candidates))
        return True
