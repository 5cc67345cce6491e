# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: User management — activation, transfer and profile edits.
Deactivation cascades reviewer rebalancing in the same unit of work.
"""

import uuid
from typing import Optional

from pr_reviewer.core.deadline import Deadline
from pr_reviewer.core.errors import ValidationError
from pr_reviewer.core.logging import get_logger
from pr_reviewer.metrics.prometheus import USERS_DEACTIVATED
from pr_reviewer.models.domain import Team, User
from pr_reviewer.repositories.base import TeamRepository, Transactor, UserRepository
from pr_reviewer.services.assignment_engine import AssignmentEngine
from pr_reviewer.services.common import require, unit_of_work

logger = get_logger(__name__)


class UserService:
    """Business logic for users."""

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

    def add_user(
        self,
        username: str,
        team_name: str,
        is_active: bool = True,
        user_id: Optional[str] = None,
    ) -> User:
        require(username, "username")
        require(team_name, "team_name")
        if user_id is not None:
            require(user_id, "user_id")
        with unit_of_work(self._transactor) as tx:
            team = self._teams.get_team_by_name(team_name, tx)
            self._require_active_team(team)
            user = self._users.create_user(
                User(user_id=user_id or str(uuid.uuid4()), username=username,
                     team_id=team.team_id, is_active=is_active),
                tx,
            )
        logger.info("User added: id=%s, team=%s", user.user_id, team_name)
        return user

    def set_is_active(self, user_id: str, is_active: bool,
                      deadline: Optional[Deadline] = None) -> User:
        """Flip the active flag. Deactivation strips the user from OPEN PRs."""
        require(user_id, "user_id")
        with unit_of_work(self._transactor, deadline) as tx:
            user = self._users.get_user(user_id, tx)
            if user.is_active == is_active:
                return user
            if is_active:
                self._require_active_team(self._teams.get_team_by_id(user.team_id, tx))
                return self._users.set_user_active(user_id, True, tx)
            updated = self._users.set_user_active(user_id, False, tx)
            reassigned = self._engine.rebalance_for_users([user_id], tx)

        USERS_DEACTIVATED.labels(reason="user").inc()
        logger.info("User deactivated: id=%s, prs_reassigned=%d", user_id, reassigned)
        return updated

    def move_user_to_team(self, user_id: str, new_team_name: str) -> User:
        """Transfer an active user to another active team.

        Existing review assignments stay as they are.
        """
        require(user_id, "user_id")
        require(new_team_name, "team_name")
        with unit_of_work(self._transactor) as tx:
            user = self._users.get_user(user_id, tx)
            if not user.can_be_moved():
                raise ValidationError(f"user '{user_id}' is inactive and cannot be moved")
            team = self._teams.get_team_by_name(new_team_name, tx)
            if not team.can_be_moved():
                raise ValidationError(f"team '{new_team_name}' is inactive")
            if team.team_id == user.team_id:
                return user
            moved = self._users.move_user_to_team(user_id, team.team_id, tx)
        logger.info("User moved: id=%s, team=%s", user_id, new_team_name)
        return moved

    def update_user(
        self,
        user_id: str,
        username: Optional[str] = None,
        team_name: Optional[str] = None,
        is_active: Optional[bool] = None,
        deadline: Optional[Deadline] = None,
    ) -> User:
        """Partial edit: rename, move and (de)activate in one transaction."""
        require(user_id, "user_id")
        if username is not None:
            require(username, "username")
        with unit_of_work(self._transactor, deadline) as tx:
            user = self._users.get_user(user_id, tx)
            new_active = user.is_active if is_active is None else is_active
            team = self._teams.get_team_by_id(user.team_id, tx)

            if team_name is not None and team_name != team.team_name:
                if not new_active:
                    raise ValidationError(f"user '{user_id}' is inactive and cannot be moved")
                team = self._teams.get_team_by_name(team_name, tx)
                if not team.can_be_moved():
                    raise ValidationError(f"team '{team_name}' is inactive")
            if new_active and not user.is_active:
                self._require_active_team(team)

            updated = self._users.update_user(
                user.model_copy(update={
                    "username": username or user.username,
                    "team_id": team.team_id,
                    "is_active": new_active,
                }),
                tx,
            )
            deactivating = user.is_active and not new_active
            reassigned = self._engine.rebalance_for_users([user_id], tx) if deactivating else 0

        if deactivating:
            USERS_DEACTIVATED.labels(reason="user").inc()
        logger.info("User updated: id=%s, prs_reassigned=%d", user_id, reassigned)
        return updated

    # ── Queries ──

    def get_user(self, user_id: str) -> User:
        require(user_id, "user_id")
        return self._users.get_user(user_id)

    def _require_active_team(self, team: Team) -> None:
        if not team.is_active:
            raise ValidationError(f"team '{team.team_name}' is inactive")
