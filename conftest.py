# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Shared pytest fixtures.

The app under test always runs on the in-memory backend; the environment
is pinned here, before any test module imports settings.
"""
import os

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from pr_reviewer.repositories.memory_repository import InMemoryRepository  # noqa: E402
from pr_reviewer.services.assignment_engine import AssignmentEngine  # noqa: E402
from pr_reviewer.services.pr_service import PullRequestService  # noqa: E402
from pr_reviewer.services.sampling import CandidateSampler  # noqa: E402
from pr_reviewer.services.stats_service import StatsService  # noqa: E402
from pr_reviewer.services.team_service import TeamService  # noqa: E402
from pr_reviewer.services.user_service import UserService  # noqa: E402


@pytest.fixture
def repo():
    return InMemoryRepository(sampler=CandidateSampler(seed=42))


@pytest.fixture
def engine(repo):
    return AssignmentEngine(team_repo=repo, user_repo=repo, pr_repo=repo)


@pytest.fixture
def pr_service(repo, engine):
    return PullRequestService(transactor=repo, user_repo=repo, pr_repo=repo, engine=engine)


@pytest.fixture
def team_service(repo, engine):
    return TeamService(transactor=repo, team_repo=repo, user_repo=repo, engine=engine)


@pytest.fixture
def user_service(repo, engine):
    return UserService(transactor=repo, team_repo=repo, user_repo=repo, engine=engine)


@pytest.fixture
def stats_service(repo):
    return StatsService(stats_repo=repo, team_repo=repo, user_repo=repo)


def members(*ids: str) -> list[dict]:
    """Member payloads whose usernames are derived from their ids."""
    return [{"user_id": uid, "username": f"user-{uid.lower()}"} for uid in ids]
