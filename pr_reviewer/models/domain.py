# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Domain models — immutable data structures, NO FastAPI dependency.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

MAX_REVIEWERS = 2


class PRStatus(str, Enum):
    OPEN = "OPEN"
    MERGED = "MERGED"


class User(BaseModel):
    """A team member who may author or review pull requests."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    team_id: int
    team_name: Optional[str] = None
    is_active: bool = True

    def can_be_moved(self) -> bool:
        return self.is_active


class Team(BaseModel):
    """A team; ``members`` is filled only when loaded with its users."""
    model_config = ConfigDict(frozen=True)

    team_id: int
    team_name: str
    is_active: bool = True
    members: tuple[User, ...] = ()

    def can_be_moved(self) -> bool:
        return self.is_active


class Reviewer(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str


class PullRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    pull_request_id: str
    name: str
    author_id: str
    status: PRStatus = PRStatus.OPEN
    created_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    reviewers: tuple[Reviewer, ...] = ()

    @property
    def is_open(self) -> bool:
        return self.status == PRStatus.OPEN

    @property
    def reviewer_ids(self) -> list[str]:
        return [r.user_id for r in self.reviewers]


class ReviewStat(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    review_count: int
