# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Request / Response schemas — API contract definitions.
These are Pydantic models used ONLY at the controller (HTTP) boundary.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from pr_reviewer.models.domain import PullRequest, Team, User


# ── Team Schemas ──

class TeamMemberIn(BaseModel):
    user_id: Optional[str] = Field(default=None, min_length=1, max_length=100)
    username: str = Field(..., min_length=1, max_length=255)
    is_active: bool = True


class TeamCreateRequest(BaseModel):
    team_name: str = Field(..., min_length=1, max_length=100)
    members: list[TeamMemberIn] = Field(default_factory=list)


class TeamEditRequest(BaseModel):
    old_team_name: str = Field(..., min_length=1)
    new_team_name: str = Field(..., min_length=1, max_length=100)


class TeamDeactivateRequest(BaseModel):
    team_name: str = Field(..., min_length=1)


class TeamMemberOut(BaseModel):
    user_id: str
    username: str
    is_active: bool


class TeamResponse(BaseModel):
    team_name: str
    is_active: bool
    members: list[TeamMemberOut]

    @classmethod
    def from_domain(cls, team: Team) -> "TeamResponse":
        return cls(
            team_name=team.team_name,
            is_active=team.is_active,
            members=[
                TeamMemberOut(user_id=m.user_id, username=m.username, is_active=m.is_active)
                for m in team.members
            ],
        )


class TeamDeactivateResponse(BaseModel):
    deactivated_users_count: int
    reassigned_reviews_count: int


# ── User Schemas ──

class UserAddRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, min_length=1, max_length=100)
    username: str = Field(..., min_length=1, max_length=255)
    team_name: str = Field(..., min_length=1)
    is_active: bool = True


class UserEditRequest(BaseModel):
    """Partial update; omitted fields keep their current value."""
    user_id: str = Field(..., min_length=1)
    username: Optional[str] = Field(default=None, min_length=1, max_length=255)
    team_name: Optional[str] = Field(default=None, min_length=1)
    is_active: Optional[bool] = None


class UserSetActiveRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    is_active: bool


class UserMoveRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    new_team_name: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    user_id: str
    username: str
    team_name: Optional[str] = None
    is_active: bool

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(user_id=user.user_id, username=user.username,
                   team_name=user.team_name, is_active=user.is_active)


# ── Pull Request Schemas ──

class PRCreateRequest(BaseModel):
    pull_request_id: Optional[str] = Field(default=None, min_length=1, max_length=100)
    pull_request_name: str = Field(..., min_length=1, max_length=255)
    author_id: str = Field(..., min_length=1)


class PRMergeRequest(BaseModel):
    pull_request_id: str = Field(..., min_length=1)


class PRAssignRequest(BaseModel):
    pull_request_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


class PRReassignRequest(BaseModel):
    pull_request_id: str = Field(..., min_length=1)
    old_user_id: str = Field(..., min_length=1)


class PRShortResponse(BaseModel):
    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: str

    @classmethod
    def from_domain(cls, pr: PullRequest) -> "PRShortResponse":
        return cls(pull_request_id=pr.pull_request_id, pull_request_name=pr.name,
                   author_id=pr.author_id, status=pr.status.value)


class PRResponse(PRShortResponse):
    model_config = ConfigDict(populate_by_name=True)

    assigned_reviewers: list[str]
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    merged_at: Optional[datetime] = Field(default=None, alias="mergedAt")

    @classmethod
    def from_domain(cls, pr: PullRequest) -> "PRResponse":
        return cls(
            pull_request_id=pr.pull_request_id,
            pull_request_name=pr.name,
            author_id=pr.author_id,
            status=pr.status.value,
            assigned_reviewers=pr.reviewer_ids,
            created_at=pr.created_at,
            merged_at=pr.merged_at,
        )


class PRReassignResponse(BaseModel):
    pr: PRResponse
    replaced_by: str


class UserReviewsResponse(BaseModel):
    user_id: str
    pull_requests: list[PRShortResponse]


# ── Stats Schemas ──

class StatItem(BaseModel):
    user_id: str
    review_count: int


class StatsResponse(BaseModel):
    review_stats: list[StatItem]


class CountResponse(BaseModel):
    count: int


# ── Errors ──

class ErrorBody(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorBody
