# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: Team endpoints.
Thin HTTP layer — delegates ALL logic to TeamService; domain errors are
mapped to responses by the handlers registered in main.py.
"""

from fastapi import APIRouter, Depends, Query

from pr_reviewer.core.deadline import Deadline
from pr_reviewer.core.dependencies import get_deadline, get_team_service
from pr_reviewer.schemas.api import (
    TeamCreateRequest,
    TeamDeactivateRequest,
    TeamDeactivateResponse,
    TeamEditRequest,
    TeamResponse,
)
from pr_reviewer.services.team_service import TeamService

router = APIRouter(prefix="/team", tags=["Teams"])


@router.post("/add", status_code=201, response_model=TeamResponse)
def add_team(
    payload: TeamCreateRequest,
    service: TeamService = Depends(get_team_service),
):
    """Create a team together with its members."""
    team = service.create_team(
        payload.team_name,
        members=[m.model_dump() for m in payload.members],
    )
    return TeamResponse.from_domain(team)


@router.get("/get", response_model=TeamResponse)
def get_team(
    team_name: str = Query(..., min_length=1),
    service: TeamService = Depends(get_team_service),
):
    return TeamResponse.from_domain(service.get_team(team_name))


@router.post("/edit", response_model=TeamResponse)
def edit_team(
    payload: TeamEditRequest,
    service: TeamService = Depends(get_team_service),
):
    """Rename a team."""
    return TeamResponse.from_domain(
        service.rename_team(payload.old_team_name, payload.new_team_name)
    )


@router.post("/deactivate", response_model=TeamDeactivateResponse)
def deactivate_team(
    payload: TeamDeactivateRequest,
    service: TeamService = Depends(get_team_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Deactivate a team, all its members, and rebalance their open reviews."""
    deactivated, reassigned = service.deactivate_team(payload.team_name, deadline=deadline)
    return TeamDeactivateResponse(
        deactivated_users_count=deactivated,
        reassigned_reviews_count=reassigned,
    )
