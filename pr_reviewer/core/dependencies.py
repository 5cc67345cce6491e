# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
FastAPI dependency injection — wire storage, engine and services.
"""

from typing import Union

from pr_reviewer.core.config import settings
from pr_reviewer.core.database import build_engine
from pr_reviewer.core.deadline import Deadline
from pr_reviewer.repositories.memory_repository import InMemoryRepository
from pr_reviewer.repositories.sql_repository import SqlRepository
from pr_reviewer.services.assignment_engine import AssignmentEngine
from pr_reviewer.services.pr_service import PullRequestService
from pr_reviewer.services.sampling import CandidateSampler
from pr_reviewer.services.stats_service import StatsService
from pr_reviewer.services.team_service import TeamService
from pr_reviewer.services.user_service import UserService

Storage = Union[SqlRepository, InMemoryRepository]


def build_storage(backend: str = settings.STORAGE_BACKEND) -> Storage:
    sampler = CandidateSampler(settings.CANDIDATE_SEED)
    if backend == "memory":
        return InMemoryRepository(sampler=sampler)
    if backend == "sql":
        return SqlRepository(build_engine(), sampler=sampler)
    raise ValueError(f"Unknown STORAGE_BACKEND '{backend}' (expected 'sql' or 'memory')")


# ── Singleton storage (one object implements every repository contract) ──
_storage = build_storage()

# ── Service instances (with injected dependencies) ──
_engine = AssignmentEngine(team_repo=_storage, user_repo=_storage, pr_repo=_storage)
_pr_service = PullRequestService(
    transactor=_storage,
    user_repo=_storage,
    pr_repo=_storage,
    engine=_engine,
)
_team_service = TeamService(
    transactor=_storage,
    team_repo=_storage,
    user_repo=_storage,
    engine=_engine,
)
_user_service = UserService(
    transactor=_storage,
    team_repo=_storage,
    user_repo=_storage,
    engine=_engine,
)
_stats_service = StatsService(stats_repo=_storage, team_repo=_storage, user_repo=_storage)


# ── FastAPI dependency functions ──
def get_storage() -> Storage:
    return _storage


def get_pr_service() -> PullRequestService:
    return _pr_service


def get_team_service() -> TeamService:
    return _team_service


def get_user_service() -> UserService:
    return _user_service


def get_stats_service() -> StatsService:
    return _stats_service


def get_deadline() -> Deadline:
    """Per-request deadline; mutating endpoints pass it to their unit of work."""
    return Deadline(settings.REQUEST_TIMEOUT_SECONDS)
