"""
Computerized Adaptive Testing (CAT) session endpoints.
"""
import dataclasses
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status

from haven_cat.core.cat.engine import CATSessionManager, SubmissionResult
from haven_cat.core.cat.exceptions import (
    ConcurrentSubmissionError,
    ItemAlreadyAnsweredError,
    ItemNotFoundError,
    NoItemsAvailableError,
    SessionNotCompletedError,
    SessionNotFoundError,
    SessionNotInProgressError,
    StaleSessionError,
)
from haven_cat.core.cat.models import BankItem, TestSession
from haven_cat.core.error_responses import (
    ErrorMessages,
    raise_bad_request,
    raise_conflict,
    raise_not_configured,
    raise_not_found,
)
from haven_cat.schemas.cat_sessions import (
    CategoryPerformanceResponse,
    CATSessionResponse,
    ItemPayload,
    SessionReportResponse,
    SessionStateResponse,
    StartSessionRequest,
    SubmitResponseRequest,
    SubmitResponseResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_session_manager(request: Request) -> CATSessionManager:
    """Dependency returning the application's CATSessionManager."""
    return request.app.state.session_manager


def build_item_payload(item: Optional[BankItem]) -> Optional[ItemPayload]:
    if item is None:
        return None
    return ItemPayload(id=item.id, item_type=item.item_type, category_id=item.category_id)


def build_session_response(
    session: TestSession, confidence_z: float
) -> CATSessionResponse:
    """Convert a TestSession into its API representation."""
    return CATSessionResponse(
        session_id=session.session_id,
        candidate_id=session.candidate_id,
        status=session.status,
        theta=session.theta,
        standard_error=session.standard_error,
        ci_lower=session.theta - confidence_z * session.standard_error,
        ci_upper=session.theta + confidence_z * session.standard_error,
        passing_probability=session.passing_probability,
        questions_answered=session.questions_answered,
        questions_correct=session.questions_correct,
        time_spent_seconds=session.time_spent_seconds,
        min_questions=session.min_questions,
        max_questions=session.max_questions,
        time_limit_seconds=session.time_limit_seconds,
        passing_theta=session.passing_theta,
        result=session.result,
        stop_reason=session.stop_reason,
        started_at=session.started_at,
        completed_at=session.completed_at,
        category_performance={
            category_id: CategoryPerformanceResponse(
                correct=perf.correct, total=perf.total
            )
            for category_id, perf in session.category_performance.items()
        },
        difficulty_distribution=dict(session.difficulty_distribution),
        version=session.version,
    )


def build_submission_response(result: SubmissionResult) -> SubmitResponseResponse:
    return SubmitResponseResponse(
        is_correct=result.is_correct,
        partial_score=result.partial_score,
        theta=result.theta,
        standard_error=result.standard_error,
        ci_lower=result.ci_lower,
        ci_upper=result.ci_upper,
        passing_probability=result.passing_probability,
        questions_answered=result.questions_answered,
        questions_correct=result.questions_correct,
        completed=result.completed,
        result=result.result,
        stop_reason=result.stop_reason,
        next_item=build_item_payload(result.next_item),
    )


@router.post(
    "/sessions",
    response_model=SessionStateResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_session(
    request_body: StartSessionRequest,
    manager: CATSessionManager = Depends(get_session_manager),
):
    """
    Start a new CAT session, or resume the candidate's session in progress.

    The first item is selected at the population mean ability.

    Returns:
        Session state and the item to answer first
    """
    try:
        session, item = manager.start_session(
            candidate_id=request_body.candidate_id,
            min_questions=request_body.min_questions,
            max_questions=request_body.max_questions,
            time_limit_seconds=request_body.time_limit_seconds,
            passing_theta=request_body.passing_theta,
        )
    except NoItemsAvailableError:
        logger.error("Cannot start CAT session: item bank is empty")
        raise_not_configured(ErrorMessages.ITEM_BANK_EMPTY)
    except ValueError as e:
        raise_bad_request(ErrorMessages.invalid_session_limits(str(e)))

    return SessionStateResponse(
        session=build_session_response(session, manager.config.CAT_CONFIDENCE_Z),
        current_item=build_item_payload(item),
    )


@router.post("/sessions/{session_id}/responses", response_model=SubmitResponseResponse)
def submit_response(
    session_id: str,
    request_body: SubmitResponseRequest,
    manager: CATSessionManager = Depends(get_session_manager),
):
    """
    Submit the answer to one item and advance the session.

    Re-estimates ability, evaluates stopping rules and either returns the
    next item or the final verdict.

    Returns:
        Updated estimate with the next item, or the verdict once completed
    """
    try:
        result = manager.submit_response(
            session_id=session_id,
            item_id=request_body.item_id,
            raw_answer=request_body.answer,
            time_spent_seconds=request_body.time_spent_seconds,
        )
    except SessionNotFoundError:
        raise_not_found(ErrorMessages.CAT_SESSION_NOT_FOUND)
    except ItemNotFoundError as e:
        raise_not_found(ErrorMessages.item_not_found(e.item_id))
    except SessionNotInProgressError as e:
        raise_bad_request(ErrorMessages.session_already_completed(e.status))
    except ItemAlreadyAnsweredError as e:
        raise_conflict(ErrorMessages.item_already_answered(e.item_id))
    except ConcurrentSubmissionError:
        raise_conflict(ErrorMessages.CONCURRENT_SUBMISSION)
    except StaleSessionError:
        raise_conflict(ErrorMessages.STALE_SESSION)

    return build_submission_response(result)


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
def get_session(
    session_id: str,
    manager: CATSessionManager = Depends(get_session_manager),
):
    """
    Get the state of a CAT session and the item currently awaiting an answer.
    """
    try:
        session = manager.get_session(session_id)
    except SessionNotFoundError:
        raise_not_found(ErrorMessages.CAT_SESSION_NOT_FOUND)

    return SessionStateResponse(
        session=build_session_response(session, manager.config.CAT_CONFIDENCE_Z),
        current_item=build_item_payload(manager.get_current_item(session)),
    )


@router.get("/sessions/{session_id}/report", response_model=SessionReportResponse)
def get_session_report(
    session_id: str,
    manager: CATSessionManager = Depends(get_session_manager),
):
    """
    Get the end-of-test report for a completed CAT session.

    Includes per-category proficiency, strengths, weaknesses, study
    recommendations, the ability trajectory and response timing.
    """
    try:
        report = manager.build_report(session_id)
    except SessionNotFoundError:
        raise_not_found(ErrorMessages.CAT_SESSION_NOT_FOUND)
    except SessionNotCompletedError:
        raise_bad_request(ErrorMessages.SESSION_NOT_COMPLETED)

    return SessionReportResponse.model_validate(dataclasses.asdict(report))
