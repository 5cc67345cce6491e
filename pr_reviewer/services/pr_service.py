# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Pull request lifecycle — create, merge, assign and reassign.
Each public command is one unit of work; the engine does the reviewer math.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pr_reviewer.core.deadline import Deadline
from pr_reviewer.core.errors import NoCandidateError
from pr_reviewer.core.logging import get_logger
from pr_reviewer.metrics.prometheus import PRS_CREATED, PRS_MERGED, REASSIGNMENTS
from pr_reviewer.models.domain import PullRequest
from pr_reviewer.repositories.base import (
    PullRequestRepository,
    Transaction,
    Transactor,
    UserRepository,
)
from pr_reviewer.services.assignment_engine import AssignmentEngine
from pr_reviewer.services.common import require, to_reviewers, unit_of_work

logger = get_logger(__name__)


class PullRequestService:
    """Business logic for the pull request lifecycle."""

    def __init__(
        self,
        transactor: Transactor,
        user_repo: UserRepository,
        pr_repo: PullRequestRepository,
        engine: AssignmentEngine,
    ) -> None:
        self._transactor = transactor
        self._users = user_repo
        self._prs = pr_repo
        self._engine = engine

    # ── Commands ──

    def create_pr(
        self,
        name: str,
        author_id: str,
        pr_id: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> PullRequest:
        """Open a PR and assign up to two reviewers from the author's team."""
        require(name, "pull_request_name")
        require(author_id, "author_id")
        if pr_id is not None:
            require(pr_id, "pull_request_id")
        # fail fast on an unknown author; re-read below under the transaction
        self._users.get_user(author_id)

        new_pr = PullRequest(
            pull_request_id=pr_id or str(uuid.uuid4()),
            name=name,
            author_id=author_id,
            created_at=datetime.now(timezone.utc),
        )
        with unit_of_work(self._transactor, deadline) as tx:
            author = self._users.get_user(author_id, tx)
            created = self._prs.create_pr(new_pr, tx)
            created = self._engine.assign_initial_reviewers(created, author, tx)

        PRS_CREATED.inc()
        logger.info("PR created: id=%s, author=%s, reviewers=%s",
                    created.pull_request_id, author_id, created.reviewer_ids)
        return created

    def merge_pr(self, pr_id: str, deadline: Optional[Deadline] = None) -> PullRequest:
        """OPEN to MERGED. Merging twice raises PRMergedError."""
        require(pr_id, "pull_request_id")
        with unit_of_work(self._transactor, deadline) as tx:
            self._prs.get_pr(pr_id, tx, for_update=True)
            self._prs.merge_pr(pr_id, datetime.now(timezone.utc), tx)
            merged = self._load(pr_id, tx)

        PRS_MERGED.inc()
        logger.info("PR merged: id=%s", pr_id)
        return merged

    def assign_reviewer(self, pr_id: str, user_id: str,
                        deadline: Optional[Deadline] = None) -> PullRequest:
        require(pr_id, "pull_request_id")
        require(user_id, "user_id")
        with unit_of_work(self._transactor, deadline) as tx:
            return self._engine.add_reviewer(pr_id, user_id, tx)

    def reassign_reviewer(
        self,
        pr_id: str,
        old_user_id: str,
        deadline: Optional[Deadline] = None,
    ) -> tuple[PullRequest, str]:
        """Swap one reviewer for a fresh candidate.

        When no candidate exists the removal is still committed and
        NoCandidateError is raised afterwards.
        """
        require(pr_id, "pull_request_id")
        require(old_user_id, "old_user_id")
        with unit_of_work(self._transactor, deadline) as tx:
            new_id = self._engine.reassign(pr_id, old_user_id, tx)
            pr = self._load(pr_id, tx)

        if new_id is None:
            REASSIGNMENTS.labels(outcome="no_candidate").inc()
            raise NoCandidateError(
                f"reviewer '{old_user_id}' removed from PR '{pr_id}', no replacement available",
                pr_id=pr_id,
                removed_user_id=old_user_id,
            )
        REASSIGNMENTS.labels(outcome="replaced").inc()
        return pr, new_id

    # ── Queries ──

    def get_pr(self, pr_id: str) -> PullRequest:
        with unit_of_work(self._transactor) as tx:
            return self._load(pr_id, tx)

    def list_reviews_for_user(self, user_id: str) -> list[PullRequest]:
        """PRs in either state where the user is currently a reviewer."""
        self._users.get_user(user_id)
        return self._prs.list_prs_by_reviewer(user_id)

    def list_open_without_reviewers(self) -> list[PullRequest]:
        return self._prs.list_open_prs_without_reviewers()

    def _load(self, pr_id: str, tx: Transaction) -> PullRequest:
        pr = self._prs.get_pr(pr_id, tx)
        return pr.model_copy(update={"reviewers": to_reviewers(self._prs.list_reviewers(pr_id, tx))})
