# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Team management — creation with members, rename, deactivation.
"""

import uuid
from typing import Any, Optional

from pr_reviewer.core.deadline import Deadline
from pr_reviewer.core.logging import get_logger
from pr_reviewer.metrics.prometheus import USERS_DEACTIVATED
from pr_reviewer.models.domain import Team, User
from pr_reviewer.repositories.base import TeamRepository, Transaction, Transactor, UserRepository
from pr_reviewer.services.assignment_engine import AssignmentEngine
from pr_reviewer.services.common import require, unit_of_work

logger = get_logger(__name__)


class TeamService:
    """Business logic for teams and their membership."""

    def __init__(
        self,
        transactor: Transactor,
        team_repo: TeamRepository,
        user_repo: UserRepository,
        engine: AssignmentEngine,
    ) -> None:
        self._transactor = transactor
        self._teams = team_repo
        self._users = user_repo
        self._engine = engine

    # ── Commands ──

    def create_team(self, team_name: str, members: Optional[list[dict[str, Any]]] = None) -> Team:
        """Create a team and its members atomically.

        Each member is ``{"username", "user_id"?, "is_active"?}``; a missing
        user_id is generated.
        """
        require(team_name, "team_name")
        members = members or []
        for member in members:
            require(member.get("username"), "username")

        with unit_of_work(self._transactor) as tx:
            team = self._teams.create_team(team_name, tx)
            for member in members:
                self._users.create_user(
                    User(
                        user_id=member.get("user_id") or str(uuid.uuid4()),
                        username=member["username"],
                        team_id=team.team_id,
                        is_active=member.get("is_active", True),
                    ),
                    tx,
                )
            created = self._with_members(team, tx)

        logger.info("Team created: name=%s, members=%d", team_name, len(members))
        return created

    def rename_team(self, old_name: str, new_name: str) -> Team:
        require(old_name, "team_name")
        require(new_name, "new_team_name")
        with unit_of_work(self._transactor) as tx:
            team = self._with_members(self._teams.rename_team(old_name, new_name, tx), tx)
        logger.info("Team renamed: %s -> %s", old_name, new_name)
        return team

    def deactivate_team(self, team_name: str,
                        deadline: Optional[Deadline] = None) -> tuple[int, int]:
        """Deactivate the team and every active member, then rebalance.

        Returns ``(deactivated_user_count, reassigned_pr_count)``. Calling it
        on an already inactive team deactivates nobody new.
        """
        require(team_name, "team_name")
        with unit_of_work(self._transactor, deadline) as tx:
            team = self._teams.get_team_by_name(team_name, tx)
            self._teams.deactivate_team(team.team_id, tx)
            deactivated = self._users.deactivate_users_by_team(team.team_id, tx)
            reassigned = self._engine.rebalance_for_users(deactivated, tx)

        USERS_DEACTIVATED.labels(reason="team").inc(len(deactivated))
        logger.info("Team deactivated: name=%s, users=%d, prs_reassigned=%d",
                    team_name, len(deactivated), reassigned)
        return len(deactivated), reassigned

    # ── Queries ──

    def get_team(self, team_name: str) -> Team:
        require(team_name, "team_name")
        with unit_of_work(self._transactor) as tx:
            return self._with_members(self._teams.get_team_by_name(team_name, tx), tx)

    def _with_members(self, team: Team, tx: Transaction) -> Team:
        members = self._users.list_users_by_team(team.team_id, tx)
        return team.model_copy(update={"members": tuple(members)})
