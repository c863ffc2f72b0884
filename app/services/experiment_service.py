# services/experiment_service.py
import logging
import random
from collections import Counter
from datetime import datetime
from typing import List, Sequence

from sqlalchemy.orm import Session

from app.analytics.ab_test import VariantRecord, analyze_experiment, recommend, variant_time_series
from app.core.exceptions import InvalidInputError, NotFoundError
from app.core.settings import config_settings
from app.models.orm.experiment import ExperimentORM, VariantORM
from app.models.schemas.assignment import AssignmentModel
from app.models.schemas.experiment import (
    ExperimentAnalysisModel,
    ExperimentCreateModel,
    ExperimentResponseModel,
    ExperimentTimeSeriesModel,
    ExperimentVariantConfigResponseModel,
    RecommendationModel,
    VariantConversionModel,
)
from app.repositories.assignment_repo import AssignmentRepository
from app.repositories.experiment_repo import ExperimentRepository

logger = logging.getLogger(__name__)

TIME_SERIES_GRANULARITIES = ("day", "week", "month")


def to_response_model(experiment: ExperimentORM) -> ExperimentResponseModel:
    return ExperimentResponseModel(
        experiment_id=experiment.experiment_id,
        name=experiment.name,
        description=experiment.description,
        status=experiment.status.value,
        start_time=experiment.start_time,
        end_time=experiment.end_time,
        variants=[
            ExperimentVariantConfigResponseModel.model_validate(variant)
            for variant in experiment.variants
        ],
        goal_event=experiment.goal_event,
        total_traffic_allocation=sum(v.traffic_allocation_percent for v in experiment.variants),
    )


class ExperimentService:
    def __init__(self, db: Session):
        self.assignment_repo = AssignmentRepository(db)
        self.experiment_repo = ExperimentRepository(db)
        self.db = db

    def create_experiment(self, experiment_data: ExperimentCreateModel) -> ExperimentResponseModel:
        """
        Handles the business logic and delegation for creating a new experiment.

        The repository enforces the 100% allocation rule and raises ValueError
        when it is broken.
        """
        try:
            experiment_orm = self.experiment_repo.create_experiment(experiment_data)
        except ValueError as e:
            raise InvalidInputError(str(e))

        logger.info(
            "Created experiment %s (%s) with %d variants",
            experiment_orm.experiment_id, experiment_orm.name, len(experiment_orm.variants),
        )
        return to_response_model(experiment_orm)

    def list_experiments(self) -> List[ExperimentResponseModel]:
        return [to_response_model(e) for e in self.experiment_repo.list_experiments()]

    def _require_experiment(self, experiment_id: str) -> ExperimentORM:
        experiment = self.experiment_repo.get_experiment_with_variants(experiment_id)
        if not experiment:
            raise NotFoundError("Experiment", experiment_id)
        return experiment

    def get_experiment(self, experiment_id: str) -> ExperimentResponseModel:
        return to_response_model(self._require_experiment(experiment_id))

    def _allocate_variant(self, variants: Sequence[VariantORM]) -> VariantORM:
        """
        Selects a variant based on configured traffic allocation percentages.
        """
        total_weight = sum(v.traffic_allocation_percent for v in variants)
        if total_weight == 0:
            raise InvalidInputError("Experiment has no allocated traffic.")

        r = random.uniform(0, total_weight)

        cumulative_weight = 0.0
        for variant in variants:
            cumulative_weight += variant.traffic_allocation_percent
            if r <= cumulative_weight:
                return variant

        # Float rounding can leave r just above the last boundary
        return variants[-1]

    def get_user_assignment(self, experiment_id: str, user_id: str) -> AssignmentModel:
        """
        Gets a user's variant assignment, ensuring idempotency.

        1. Check for existing assignment.
        2. If none, draw a variant weighted by traffic allocation.
        3. Persist the new assignment.
        """
        experiment = self._require_experiment(experiment_id)

        assignment = self.assignment_repo.get_assignment(experiment_id, user_id)
        if assignment:
            logger.debug("User %s already assigned to %s", user_id, assignment.variant_id)
            variant = assignment.variant
        else:
            variant = self._allocate_variant(experiment.variants)
            try:
                assignment = self.assignment_repo.create_assignment(
                    experiment_id=experiment_id,
                    user_id=user_id,
                    variant_id=variant.variant_id,
                )
            except ValueError:
                # A concurrent request assigned the user first; that assignment wins
                assignment = self.assignment_repo.get_assignment(experiment_id, user_id)
                variant = assignment.variant
            else:
                logger.info(
                    "Assigned user %s to variant %s of experiment %s",
                    user_id, variant.variant_name, experiment_id,
                )

        return AssignmentModel(
            experiment_id=assignment.experiment_id,
            user_id=assignment.user_id,
            variant_id=assignment.variant_id,
            variant_name=variant.variant_name,
            assignment_timestamp=assignment.assignment_timestamp,
        )

    def _variant_records(self, experiment: ExperimentORM) -> List[VariantRecord]:
        assignments = self.assignment_repo.get_assignments_for_experiment(experiment.experiment_id)
        conversions = self.assignment_repo.first_conversions(
            experiment.experiment_id, experiment.goal_event
        )

        users = Counter(a.variant_id for a in assignments)
        converted = Counter(variant_id for variant_id, _ in conversions.values())
        return [
            VariantRecord(v.variant_name, users[v.variant_id], converted[v.variant_id])
            for v in experiment.variants
        ]

    def _analyze(self, experiment: ExperimentORM, records: Sequence) -> ExperimentAnalysisModel:
        try:
            analysis = analyze_experiment(
                records,
                confidence_level=config_settings.AB_CONFIDENCE_LEVEL,
                lift_threshold=config_settings.AB_LIFT_THRESHOLD_PERCENT,
                min_sample_size=config_settings.AB_MIN_SAMPLE_SIZE,
                min_conversions=config_settings.AB_MIN_CONVERSIONS,
            )
        except ValueError as e:
            raise InvalidInputError(str(e))

        return ExperimentAnalysisModel(
            experiment_id=experiment.experiment_id,
            experiment_name=experiment.name,
            goal_event=experiment.goal_event,
            **analysis,
        )

    def get_experiment_results(self, experiment_id: str) -> ExperimentAnalysisModel:
        """Analysis of the stored assignments and goal-event conversions."""
        experiment = self._require_experiment(experiment_id)
        return self._analyze(experiment, self._variant_records(experiment))

    def analyze_conversions(
        self, experiment_id: str, variants: List[VariantConversionModel]
    ) -> ExperimentAnalysisModel:
        """Analysis of caller-supplied per-variant counts; the first one is the control."""
        experiment = self._require_experiment(experiment_id)
        names = [v.variant for v in variants]
        if len(set(names)) != len(names):
            raise InvalidInputError("Variant names must be unique.")
        return self._analyze(experiment, variants)

    def get_time_series(self, experiment_id: str, granularity: str = "day") -> ExperimentTimeSeriesModel:
        if granularity not in TIME_SERIES_GRANULARITIES:
            raise InvalidInputError(f"Unsupported granularity: {granularity}")

        experiment = self._require_experiment(experiment_id)
        names = {v.variant_id: v.variant_name for v in experiment.variants}
        assignments = self.assignment_repo.get_assignments_for_experiment(experiment_id)
        conversions = self.assignment_repo.first_conversions(experiment_id, experiment.goal_event)

        series = variant_time_series(
            [v.variant_name for v in experiment.variants],
            [(names[a.variant_id], a.assignment_timestamp) for a in assignments],
            [(names[variant_id], converted_at) for variant_id, converted_at in conversions.values()],
            granularity,
        )
        return ExperimentTimeSeriesModel(
            experiment_id=experiment_id, granularity=granularity, variants=series
        )

    def get_recommendation(self, experiment_id: str) -> RecommendationModel:
        experiment = self._require_experiment(experiment_id)
        analysis = self._analyze(experiment, self._variant_records(experiment))

        started = experiment.start_time or experiment.created_at
        finished = experiment.end_time if experiment.end_time and experiment.end_time < datetime.utcnow() else datetime.utcnow()
        days_running = max((finished - started).days, 0)

        return RecommendationModel(
            experiment_id=experiment_id,
            **recommend(analysis.model_dump(), days_running),
        )
