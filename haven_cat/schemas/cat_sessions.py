"""
Pydantic schemas for CAT session endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from haven_cat.core.cat.models import SessionStatus, StopReason, TestResult


class StartSessionRequest(BaseModel):
    """Schema for starting (or resuming) a CAT session."""

    candidate_id: str = Field(
        ..., min_length=1, max_length=128, description="Candidate taking the test"
    )
    min_questions: Optional[int] = Field(
        None, ge=1, description="Minimum items before a precision stop (default from settings)"
    )
    max_questions: Optional[int] = Field(
        None, ge=1, description="Maximum items (default from settings)"
    )
    time_limit_seconds: Optional[float] = Field(
        None,
        gt=0,
        allow_inf_nan=False,
        description="Total answering time allowed (default from settings)",
    )
    passing_theta: Optional[float] = Field(
        None, ge=-4.0, le=4.0, description="Cut score on the logit scale"
    )

    @field_validator("candidate_id")
    @classmethod
    def strip_candidate_id(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Candidate ID cannot be blank")
        return stripped


class ItemPayload(BaseModel):
    """Item presented to the candidate. Calibration parameters are withheld."""

    id: str = Field(..., description="Item ID")
    item_type: str = Field(..., description="Item type used for grading")
    category_id: str = Field(..., description="Content category")


class CategoryPerformanceResponse(BaseModel):
    correct: int = Field(..., description="Correct responses in this category")
    total: int = Field(..., description="Responses in this category")


class CATSessionResponse(BaseModel):
    """Schema for CAT session state."""

    session_id: str = Field(..., description="CAT session ID")
    candidate_id: str = Field(..., description="Candidate ID")
    status: SessionStatus = Field(..., description="Session status (in_progress, completed)")
    theta: float = Field(..., description="Current ability estimate")
    standard_error: float = Field(..., description="Standard error of the estimate")
    ci_lower: float = Field(..., description="Lower bound of the 95% confidence interval")
    ci_upper: float = Field(..., description="Upper bound of the 95% confidence interval")
    passing_probability: float = Field(
        ..., description="Probability that true ability is at or above the cut score"
    )
    questions_answered: int = Field(..., description="Items answered so far")
    questions_correct: int = Field(..., description="Items answered correctly")
    time_spent_seconds: float = Field(..., description="Accumulated answering time")
    min_questions: int = Field(..., description="Minimum items for this session")
    max_questions: int = Field(..., description="Maximum items for this session")
    time_limit_seconds: float = Field(..., description="Time limit for this session")
    passing_theta: float = Field(..., description="Cut score for this session")
    result: Optional[TestResult] = Field(
        None, description="Final verdict (only present once completed)"
    )
    stop_reason: Optional[StopReason] = Field(
        None, description="Stopping rule that ended the session (only once completed)"
    )
    started_at: datetime = Field(..., description="Session start timestamp")
    completed_at: Optional[datetime] = Field(
        None, description="Session completion timestamp"
    )
    category_performance: Dict[str, CategoryPerformanceResponse] = Field(
        default_factory=dict, description="Correct/total per content category"
    )
    difficulty_distribution: Dict[str, int] = Field(
        default_factory=dict, description="Items answered per difficulty band"
    )
    version: int = Field(..., description="Optimistic concurrency version")


class SessionStateResponse(BaseModel):
    """Schema for starting, resuming or checking a session."""

    session: CATSessionResponse = Field(..., description="CAT session state")
    current_item: Optional[ItemPayload] = Field(
        None, description="Item to answer next (null once the session is completed)"
    )


class SubmitResponseRequest(BaseModel):
    """Schema for submitting a single response during a CAT session."""

    item_id: str = Field(..., min_length=1, description="ID of the item being answered")
    answer: Any = Field(..., description="Candidate's answer payload")
    time_spent_seconds: float = Field(
        0.0, ge=0, allow_inf_nan=False, description="Time spent on this item in seconds"
    )


class SubmitResponseResponse(BaseModel):
    """Schema for the response to a submitted answer.

    When completed is False, next_item contains the next item to present.
    When completed is True, result and stop_reason carry the final verdict.
    """

    is_correct: bool = Field(..., description="Whether the answer was correct")
    partial_score: float = Field(..., description="Partial credit in [0, 1]")
    theta: float = Field(..., description="Updated ability estimate")
    standard_error: float = Field(..., description="Standard error of the estimate")
    ci_lower: float = Field(..., description="Lower bound of the 95% confidence interval")
    ci_upper: float = Field(..., description="Upper bound of the 95% confidence interval")
    passing_probability: float = Field(..., description="Probability of passing")
    questions_answered: int = Field(..., description="Items answered so far")
    questions_correct: int = Field(..., description="Items answered correctly")
    completed: bool = Field(False, description="Whether the test has ended")
    result: Optional[TestResult] = Field(
        None, description="Final verdict (only present when completed)"
    )
    stop_reason: Optional[StopReason] = Field(
        None, description="Reason the test stopped (only present when completed)"
    )
    next_item: Optional[ItemPayload] = Field(
        None, description="Next item to present (null when completed)"
    )


class CategoryReportResponse(BaseModel):
    category_id: str
    correct: int
    total: int
    accuracy: float = Field(..., description="Fraction correct in [0, 1]")
    proficiency: str = Field(
        ..., description="mastered, proficient, developing or needs_improvement"
    )
    performance: str = Field(..., description="above, at or below the passing standard")


class TrajectoryPointResponse(BaseModel):
    question_number: int
    item_id: str
    difficulty: float
    difficulty_band: str
    is_correct: bool
    theta_after: float
    se_after: float


class TimingSummaryResponse(BaseModel):
    total_seconds: float
    average_seconds: float
    fastest_seconds: Optional[float] = None
    slowest_seconds: Optional[float] = None
    slow_incorrect_questions: List[int] = Field(
        default_factory=list,
        description="Question numbers answered incorrectly after more than 90 seconds",
    )


class SessionReportResponse(BaseModel):
    """Schema for the end-of-test report."""

    session_id: str
    candidate_id: str
    passed: bool
    result: Optional[TestResult] = None
    stop_reason: Optional[StopReason] = None
    questions_answered: int
    questions_correct: int
    theta: float
    standard_error: float
    ci_lower: float
    ci_upper: float
    passing_probability: float
    categories: List[CategoryReportResponse]
    strengths: List[str]
    weaknesses: List[str]
    recommendations: List[str]
    difficulty_distribution: Dict[str, int]
    trajectory: List[TrajectoryPointResponse]
    timing: TimingSummaryResponse
