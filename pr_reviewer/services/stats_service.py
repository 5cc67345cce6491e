# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Service: Review statistics — read-only aggregates over review assignments.
"""

from pr_reviewer.models.domain import PRStatus, ReviewStat
from pr_reviewer.repositories.base import StatsRepository, TeamRepository, UserRepository
from pr_reviewer.services.common import require


class StatsService:
    def __init__(
        self,
        stats_repo: StatsRepository,
        team_repo: TeamRepository,
        user_repo: UserRepository,
    ) -> None:
        self._stats = stats_repo
        self._teams = team_repo
        self._users = user_repo

    def review_stats(self) -> list[ReviewStat]:
        return self._stats.review_stats()

    def open_review_count_for_team(self, team_name: str) -> int:
        return self._team_count(team_name, PRStatus.OPEN)

    def merged_review_count_for_team(self, team_name: str) -> int:
        return self._team_count(team_name, PRStatus.MERGED)

    def open_review_count_for_user(self, user_id: str) -> int:
        return self._user_count(user_id, PRStatus.OPEN)

    def merged_review_count_for_user(self, user_id: str) -> int:
        return self._user_count(user_id, PRStatus.MERGED)

    def _team_count(self, team_name: str, status: PRStatus) -> int:
        team = self._teams.get_team_by_name(require(team_name, "team_name"))
        return self._stats.count_reviews_for_team(team.team_id, status)

    def _user_count(self, user_id: str, status: PRStatus) -> int:
        user = self._users.get_user(require(user_id, "user_id"))
        return self._stats.count_reviews_for_user(user.user_id, status)
