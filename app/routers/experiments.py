from typing import List

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.models.schemas.assignment import AssignmentModel
from app.models.schemas.experiment import (
    ExperimentAnalysisModel,
    ExperimentAnalyzeRequestModel,
    ExperimentCreateModel,
    ExperimentResponseModel,
    ExperimentTimeSeriesModel,
    RecommendationModel,
)
from app.services.experiment_service import ExperimentService

router = APIRouter(prefix="/experiments", tags=["experiments"])


@router.post(
    "",
    response_model=ExperimentResponseModel,
    status_code=status.HTTP_201_CREATED,
    summary="Create an experiment with its variants.",
)
def post_experiments(experiment_data: ExperimentCreateModel, db: Session = Depends(get_db)):
    return ExperimentService(db).create_experiment(experiment_data)


@router.get("", response_model=List[ExperimentResponseModel], summary="List experiments.")
def get_experiments(db: Session = Depends(get_db)):
    return ExperimentService(db).list_experiments()


@router.get("/{experiment_id}", response_model=ExperimentResponseModel, summary="Get an experiment.")
def get_experiment(
    experiment_id: str = Path(..., description="The ID of the experiment."),
    db: Session = Depends(get_db),
):
    return ExperimentService(db).get_experiment(experiment_id)


@router.get(
    "/{experiment_id}/assignment/{user_id}",
    response_model=AssignmentModel,
    status_code=status.HTTP_200_OK,
    summary="Get user assignment",
)
def get_user_variant_assignment(
    experiment_id: str = Path(..., description="The ID of the experiment."),
    user_id: str = Path(..., description="The ID of the user."),
    db: Session = Depends(get_db),
):
    """
    Retrieves a user's variant assignment. If no assignment exists, a new,
    persistent assignment is generated based on traffic allocation rules.
    """
    return ExperimentService(db).get_user_assignment(experiment_id=experiment_id, user_id=user_id)


@router.get(
    "/{experiment_id}/results",
    response_model=ExperimentAnalysisModel,
    summary="A/B analysis from stored assignments and conversions.",
)
def get_experiment_results(
    experiment_id: str = Path(..., description="The ID of the experiment."),
    db: Session = Depends(get_db),
):
    return ExperimentService(db).get_experiment_results(experiment_id)


@router.get(
    "/{experiment_id}/timeseries",
    response_model=ExperimentTimeSeriesModel,
    summary="Assignments and conversions per variant over time.",
)
def get_experiment_time_series(
    experiment_id: str = Path(..., description="The ID of the experiment."),
    granularity: str = Query("day", description="day, week or month"),
    db: Session = Depends(get_db),
):
    return ExperimentService(db).get_time_series(experiment_id, granularity)


@router.get(
    "/{experiment_id}/recommendation",
    response_model=RecommendationModel,
    summary="Suggested next action for an experiment.",
)
def get_experiment_recommendation(
    experiment_id: str = Path(..., description="The ID of the experiment."),
    db: Session = Depends(get_db),
):
    return ExperimentService(db).get_recommendation(experiment_id)


@router.post(
    "/{experiment_id}/analyze",
    response_model=ExperimentAnalysisModel,
    summary="A/B analysis of supplied per-variant conversion counts.",
)
def post_experiment_analysis(
    request: ExperimentAnalyzeRequestModel,
    experiment_id: str = Path(..., description="The ID of the experiment."),
    db: Session = Depends(get_db),
):
    return ExperimentService(db).analyze_conversions(experiment_id, request.variants)
