"""
Two-stage query sequencer.

The symptom checker runs two dependent AI calls: symptom analysis, then a
remedy recommendation built from the analysis result. UI state is an
immutable ``CheckerState`` advanced by ``reduce(state, event)``; the
``SymptomChecker`` controller turns user actions into events, runs the
provider calls, and resolves each call through a completion callback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Optional, Union

from pydantic import ValidationError

from pydantic_models import (
    LocationForm,
    RemedyRequest,
    RemedyResponse,
    SymptomAnalysisRequest,
    SymptomAnalysisResponse,
    SymptomForm,
    field_errors,
)

logger = logging.getLogger(__name__)

ANALYSIS_FAILED = "Failed to analyze symptoms. Please try again."
REMEDIES_FAILED = "Failed to recommend remedies. Please try again."
ANALYSIS_REQUIRED = "Symptom analysis is required before recommending remedies."

CONDITION_SEPARATOR = ", "

Analyzer = Callable[[SymptomAnalysisRequest], Optional[SymptomAnalysisResponse]]
Recommender = Callable[[RemedyRequest], Optional[RemedyResponse]]


class Phase(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    RECOMMENDING = "recommending"
    RECOMMENDED = "recommended"
    ERROR = "error"


@dataclass(frozen=True)
class CheckerState:
    phase: Phase = Phase.IDLE
    current_symptoms: str = ""
    analysis_result: Optional[SymptomAnalysisResponse] = None
    remedy_result: Optional[RemedyResponse] = None
    error: Optional[str] = None
    field_errors: Dict[str, str] = field(default_factory=dict)

    @property
    def is_loading_analysis(self) -> bool:
        return self.phase is Phase.ANALYZING

    @property
    def is_loading_remedies(self) -> bool:
        return self.phase is Phase.RECOMMENDING

    @property
    def can_recommend(self) -> bool:
        return self.analysis_result is not None and bool(self.current_symptoms)


# --- events ---

@dataclass(frozen=True)
class SymptomsSubmitted:
    symptoms: str


@dataclass(frozen=True)
class AnalysisSucceeded:
    result: SymptomAnalysisResponse


@dataclass(frozen=True)
class AnalysisFailed:
    reason: str = ""


@dataclass(frozen=True)
class LocationSubmitted:
    location: str


@dataclass(frozen=True)
class RemediesSucceeded:
    result: RemedyResponse


@dataclass(frozen=True)
class RemediesFailed:
    reason: str = ""


@dataclass(frozen=True)
class ValidationFailed:
    errors: Dict[str, str]


Event = Union[
    SymptomsSubmitted, AnalysisSucceeded, AnalysisFailed,
    LocationSubmitted, RemediesSucceeded, RemediesFailed, ValidationFailed,
]


def join_conditions(analysis: SymptomAnalysisResponse) -> str:
    return CONDITION_SEPARATOR.join(analysis.condition_names())


def reduce(state: CheckerState, event: Event) -> CheckerState:
    """Return the state that follows ``state`` after ``event``."""
    if isinstance(event, SymptomsSubmitted):
        if state.is_loading_analysis:
            return state
        # a new submission discards both results so remedies never outlive their symptoms
        return replace(
            state,
            phase=Phase.ANALYZING,
            current_symptoms=event.symptoms,
            analysis_result=None,
            remedy_result=None,
            error=None,
            field_errors={},
        )

    if isinstance(event, AnalysisSucceeded):
        if not state.is_loading_analysis:
            return state
        return replace(state, phase=Phase.ANALYZED, analysis_result=event.result)

    if isinstance(event, AnalysisFailed):
        if not state.is_loading_analysis:
            return state
        return replace(state, phase=Phase.ERROR, analysis_result=None, error=ANALYSIS_FAILED)

    if isinstance(event, LocationSubmitted):
        if state.is_loading_remedies or state.is_loading_analysis:
            return state
        if not state.can_recommend:
            return replace(state, error=ANALYSIS_REQUIRED)
        return replace(
            state,
            phase=Phase.RECOMMENDING,
            remedy_result=None,
            error=None,
            field_errors={},
        )

    if isinstance(event, RemediesSucceeded):
        if not state.is_loading_remedies:
            return state
        return replace(state, phase=Phase.RECOMMENDED, remedy_result=event.result)

    if isinstance(event, RemediesFailed):
        if not state.is_loading_remedies:
            return state
        # the analysis result survives so the remedy step can be retried alone
        return replace(state, phase=Phase.ERROR, remedy_result=None, error=REMEDIES_FAILED)

    if isinstance(event, ValidationFailed):
        return replace(state, field_errors=dict(event.errors))

    raise TypeError(f"Unknown event {event!r}")


class SymptomChecker:
    """
    Controller for one user session.

    Args:
        analyze:   provider call for symptom analysis.
        recommend: provider call for remedy recommendation.
        state:     starting state, e.g. restored from the UI session.
    """

    def __init__(self, analyze: Analyzer, recommend: Recommender,
                 state: Optional[CheckerState] = None) -> None:
        self.analyze = analyze
        self.recommend = recommend
        self.state = state or CheckerState()

    def dispatch(self, event: Event) -> CheckerState:
        before = self.state.phase
        self.state = reduce(self.state, event)
        logger.debug("%s: %s -> %s", type(event).__name__, before.value, self.state.phase.value)
        return self.state

    def submit_symptoms(self, symptoms: str) -> bool:
        """Validate and run the analysis call. Returns True when a call was made."""
        try:
            form = SymptomForm(symptoms=symptoms)
        except ValidationError as exc:
            self.dispatch(ValidationFailed(field_errors(exc)))
            return False
        if self.state.is_loading_analysis:
            logger.info("Symptom analysis already in flight; ignoring submission")
            return False

        self.dispatch(SymptomsSubmitted(form.symptoms))
        request = SymptomAnalysisRequest(symptoms=form.symptoms)
        try:
            result = self.analyze(request)
        except Exception as exc:
            logger.exception("Symptom analysis error")
            self._on_analysis_done(None, exc)
        else:
            self._on_analysis_done(result, None)
        return True

    def submit_location(self, location: str) -> bool:
        """Validate and run the remedy call. Returns True when a call was made."""
        try:
            form = LocationForm(location=location)
        except ValidationError as exc:
            self.dispatch(ValidationFailed(field_errors(exc)))
            return False

        self.dispatch(LocationSubmitted(form.location))
        if not self.state.is_loading_remedies:
            return False

        request = self.build_remedy_request(form.location)
        try:
            result = self.recommend(request)
        except Exception as exc:
            logger.exception("Remedy recommendation error")
            self._on_remedies_done(None, exc)
        else:
            self._on_remedies_done(result, None)
        return True

    def build_remedy_request(self, location: str) -> RemedyRequest:
        return RemedyRequest(
            symptoms=self.state.current_symptoms,
            location=location,
            possible_conditions=join_conditions(self.state.analysis_result),
        )

    def _on_analysis_done(self, result: Optional[SymptomAnalysisResponse],
                          exc: Optional[BaseException]) -> None:
        if exc is None and result is None:
            logger.error("Symptom analysis returned no output")
        if result is None:
            self.dispatch(AnalysisFailed(str(exc) if exc else "no output"))
        else:
            self.dispatch(AnalysisSucceeded(result))

    def _on_remedies_done(self, result: Optional[RemedyResponse],
                          exc: Optional[BaseException]) -> None:
        if exc is None and result is None:
            logger.error("Remedy recommendation returned no output")
        if result is None:
            self.dispatch(RemediesFailed(str(exc) if exc else "no output"))
        else:
            self.dispatch(RemediesSucceeded(result))
