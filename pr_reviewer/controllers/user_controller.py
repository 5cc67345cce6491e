# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: User endpoints.
Thin HTTP layer — delegates ALL logic to UserService / PullRequestService.
"""

from fastapi import APIRouter, Depends, Query

from pr_reviewer.core.deadline import Deadline
from pr_reviewer.core.dependencies import get_deadline, get_pr_service, get_user_service
from pr_reviewer.schemas.api import (
    PRShortResponse,
    UserAddRequest,
    UserEditRequest,
    UserMoveRequest,
    UserResponse,
    UserReviewsResponse,
    UserSetActiveRequest,
)
from pr_reviewer.services.pr_service import PullRequestService
from pr_reviewer.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/add", status_code=201, response_model=UserResponse)
def add_user(
    payload: UserAddRequest,
    service: UserService = Depends(get_user_service),
):
    user = service.add_user(
        payload.username,
        payload.team_name,
        is_active=payload.is_active,
        user_id=payload.user_id,
    )
    return UserResponse.from_domain(user)


@router.post("/edit", response_model=UserResponse)
def edit_user(
    payload: UserEditRequest,
    service: UserService = Depends(get_user_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Rename, move or (de)activate a user; omitted fields are unchanged."""
    user = service.update_user(
        payload.user_id,
        username=payload.username,
        team_name=payload.team_name,
        is_active=payload.is_active,
        deadline=deadline,
    )
    return UserResponse.from_domain(user)


@router.post("/setIsActive", response_model=UserResponse)
def set_is_active(
    payload: UserSetActiveRequest,
    service: UserService = Depends(get_user_service),
    deadline: Deadline = Depends(get_deadline),
):
    user = service.set_is_active(payload.user_id, payload.is_active, deadline=deadline)
    return UserResponse.from_domain(user)


@router.post("/moveToTeam", response_model=UserResponse)
def move_to_team(
    payload: UserMoveRequest,
    service: UserService = Depends(get_user_service),
):
    return UserResponse.from_domain(
        service.move_user_to_team(payload.user_id, payload.new_team_name)
    )


@router.get("/getReview", response_model=UserReviewsResponse)
def get_reviews(
    user_id: str = Query(..., min_length=1),
    service: PullRequestService = Depends(get_pr_service),
):
    """PRs where the user is currently assigned as a reviewer."""
    prs = service.list_reviews_for_user(user_id)
    return UserReviewsResponse(
        user_id=user_id,
        pull_requests=[PRShortResponse.from_domain(pr) for pr in prs],
    )
