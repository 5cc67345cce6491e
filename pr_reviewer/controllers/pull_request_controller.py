# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: Pull request endpoints.
Thin HTTP layer — delegates ALL logic to PullRequestService.
"""

from fastapi import APIRouter, Depends

from pr_reviewer.core.deadline import Deadline
from pr_reviewer.core.dependencies import get_deadline, get_pr_service
from pr_reviewer.schemas.api import (
    PRAssignRequest,
    PRCreateRequest,
    PRMergeRequest,
    PRReassignRequest,
    PRReassignResponse,
    PRResponse,
    PRShortResponse,
)
from pr_reviewer.services.pr_service import PullRequestService

router = APIRouter(prefix="/pullRequest", tags=["Pull Requests"])


@router.post("/create", status_code=201, response_model=PRResponse)
def create_pr(
    payload: PRCreateRequest,
    service: PullRequestService = Depends(get_pr_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Open a PR; up to two reviewers are picked from the author's team."""
    pr = service.create_pr(
        payload.pull_request_name,
        payload.author_id,
        pr_id=payload.pull_request_id,
        deadline=deadline,
    )
    return PRResponse.from_domain(pr)


@router.get("/get/{pr_id}", response_model=PRResponse)
def get_pr(
    pr_id: str,
    service: PullRequestService = Depends(get_pr_service),
):
    return PRResponse.from_domain(service.get_pr(pr_id))


@router.post("/merge", response_model=PRResponse)
def merge_pr(
    payload: PRMergeRequest,
    service: PullRequestService = Depends(get_pr_service),
    deadline: Deadline = Depends(get_deadline),
):
    return PRResponse.from_domain(service.merge_pr(payload.pull_request_id, deadline=deadline))


@router.post("/assign", response_model=PRResponse)
def assign_reviewer(
    payload: PRAssignRequest,
    service: PullRequestService = Depends(get_pr_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Add one specific reviewer to an open PR."""
    pr = service.assign_reviewer(payload.pull_request_id, payload.user_id, deadline=deadline)
    return PRResponse.from_domain(pr)


@router.post("/reassign", response_model=PRReassignResponse)
def reassign_reviewer(
    payload: PRReassignRequest,
    service: PullRequestService = Depends(get_pr_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Replace one reviewer; 409 NO_CANDIDATE means the removal still happened."""
    pr, new_id = service.reassign_reviewer(
        payload.pull_request_id, payload.old_user_id, deadline=deadline,
    )
    return PRReassignResponse(pr=PRResponse.from_domain(pr), replaced_by=new_id)


@router.get("/openWithoutReviewers", response_model=list[PRShortResponse])
def open_without_reviewers(
    service: PullRequestService = Depends(get_pr_service),
):
    return [PRShortResponse.from_domain(pr) for pr in service.list_open_without_reviewers()]
