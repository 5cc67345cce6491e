# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Controller: Review statistics.
"""

from fastapi import APIRouter, Depends

from pr_reviewer.core.dependencies import get_stats_service
from pr_reviewer.schemas.api import CountResponse, StatItem, StatsResponse
from pr_reviewer.services.stats_service import StatsService

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("", response_model=StatsResponse)
def review_stats(service: StatsService = Depends(get_stats_service)):
    """Assignment count per user, busiest first."""
    return StatsResponse(review_stats=[
        StatItem(user_id=s.user_id, review_count=s.review_count)
        for s in service.review_stats()
    ])


@router.get("/team/{team_name}/openReviewCount", response_model=CountResponse)
def team_open_reviews(team_name: str, service: StatsService = Depends(get_stats_service)):
    return CountResponse(count=service.open_review_count_for_team(team_name))


@router.get("/team/{team_name}/mergedReviewCount", response_model=CountResponse)
def team_merged_reviews(team_name: str, service: StatsService = Depends(get_stats_service)):
    return CountResponse(count=service.merged_review_count_for_team(team_name))


@router.get("/user/{user_id}/openReviewCount", response_model=CountResponse)
def user_open_reviews(user_id: str, service: StatsService = Depends(get_stats_service)):
    return CountResponse(count=service.open_review_count_for_user(user_id))


@router.get("/user/{user_id}/mergedReviewCount", response_model=CountResponse)
def user_merged_reviews(user_id: str, service: StatsService = Depends(get_stats_service)):
    return CountResponse(count=service.merged_review_count_for_user(user_id))
