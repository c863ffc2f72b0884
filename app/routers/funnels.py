from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.models.schemas.analytics import (
    FunnelAnalyzeRequestModel,
    FunnelBreakdownModel,
    FunnelBreakdownRequestModel,
    FunnelCreateModel,
    FunnelModel,
    FunnelResultModel,
    StepTimingModel,
)
from app.models.schemas.common import UTCDateTime
from app.services.funnel_service import FunnelService

router = APIRouter(prefix="/funnels", tags=["funnels"])


@router.post(
    "",
    response_model=FunnelModel,
    status_code=status.HTTP_201_CREATED,
    summary="Save a funnel definition.",
)
def post_funnel(funnel_data: FunnelCreateModel, db: Session = Depends(get_db)):
    return FunnelService(db).create_funnel(funnel_data)


@router.get("", response_model=List[FunnelModel], summary="List saved funnels.")
def get_funnels(db: Session = Depends(get_db)):
    return FunnelService(db).list_funnels()


@router.post(
    "/analyze",
    response_model=FunnelResultModel,
    summary="Analyze an ad-hoc funnel.",
)
def post_funnel_analysis(request: FunnelAnalyzeRequestModel, db: Session = Depends(get_db)):
    return FunnelService(db).analyze(
        request.steps, request.start_date, request.end_date, request.cohort_id
    )


@router.get(
    "/{funnel_id}/analysis",
    response_model=FunnelResultModel,
    summary="Analyze a saved funnel.",
)
def get_saved_funnel_analysis(
    funnel_id: str = Path(..., description="The ID of the saved funnel."),
    start_date: UTCDateTime = Query(...),
    end_date: UTCDateTime = Query(...),
    cohort_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return FunnelService(db).analyze_saved(funnel_id, start_date, end_date, cohort_id)


@router.post(
    "/timings",
    response_model=List[StepTimingModel],
    summary="Time taken between consecutive funnel steps.",
)
def post_funnel_timings(request: FunnelAnalyzeRequestModel, db: Session = Depends(get_db)):
    return FunnelService(db).timings(request.steps, request.start_date, request.end_date)


@router.post(
    "/breakdown",
    response_model=FunnelBreakdownModel,
    summary="Funnel counts per value of an event attribute.",
)
def post_funnel_breakdown(request: FunnelBreakdownRequestModel, db: Session = Depends(get_db)):
    return FunnelService(db).breakdown(
        request.steps, request.start_date, request.end_date, request.breakdown_property
    )
