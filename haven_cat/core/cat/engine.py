"""
CATSessionManager: Orchestrator for adaptive test sessions.

Wires the item bank, grading, ability estimation, stopping rules, item
selection and the session store into one step per submitted response:

    load -> validate -> grade -> record -> estimate -> stop? -> select/finalize -> save

Each step runs on a copy of the stored session and is persisted with a
single versioned save, so a rejected or failed step leaves the stored
session untouched. Writes are single-writer-per-session: a per-session lock
rejects a second in-flight submission, and the store's version check rejects
a write from a stale copy.
"""

import logging
import math
import random
import threading
import uuid
from dataclasses import dataclass
from typing import AbstractSet, Any, Callable, Dict, List, Optional, Tuple

from haven_cat.core.cat.ability_estimation import (
    SE_SENTINEL,
    Response,
    estimate_ability,
)
from haven_cat.core.cat.exceptions import (
    ConcurrentSubmissionError,
    ItemAlreadyAnsweredError,
    ItemNotFoundError,
    NoItemsAvailableError,
    SessionNotCompletedError,
    SessionNotFoundError,
    SessionNotInProgressError,
)
from haven_cat.core.cat.exposure_control import ExposureMonitor
from haven_cat.core.cat.grading import GradingResult, grade_answer
from haven_cat.core.cat.item_bank import ItemBank
from haven_cat.core.cat.item_selection import select_next_item
from haven_cat.core.cat.models import (
    BankItem,
    CategoryPerformance,
    EstimationMethod,
    ResponseRecord,
    SessionStatus,
    StopReason,
    TestResult,
    TestSession,
    difficulty_band,
)
from haven_cat.core.cat.passing_probability import passing_probability
from haven_cat.core.cat.report import SessionReport, build_session_report
from haven_cat.core.cat.session_store import SessionStore
from haven_cat.core.cat.stopping_rules import check_stopping_criteria, classify
from haven_cat.core.config import Settings, settings
from haven_cat.core.datetime_utils import utc_now

logger = logging.getLogger(__name__)

Grader = Callable[[str, Any, Any], GradingResult]

# Starts for the same candidate share a stripe
START_LOCK_STRIPES = 64


@dataclass
class SubmissionResult:
    """Outcome of processing a single response."""

    session_id: str
    item_id: str
    is_correct: bool
    partial_score: float
    theta: float
    standard_error: float
    ci_lower: float
    ci_upper: float
    passing_probability: float
    questions_answered: int
    questions_correct: int
    completed: bool
    result: Optional[TestResult]
    stop_reason: Optional[StopReason]
    next_item: Optional[BankItem]
    session_version: int


class CATSessionManager:
    """
    Orchestrator for Computerized Adaptive Testing sessions.

    Manages:
    - Session creation (and resumption) with the first item chosen at the prior
    - Response grading and ability re-estimation over the full history
    - Stopping criteria evaluation and final pass/fail verdict
    - Next-item selection with content balancing and exposure control
    - End-of-test reports
    """

    def __init__(
        self,
        item_bank: ItemBank,
        session_store: SessionStore,
        grader: Grader = grade_answer,
        rng: Optional[random.Random] = None,
        config: Optional[Settings] = None,
        exposure_monitor: Optional[ExposureMonitor] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.item_bank = item_bank
        self.session_store = session_store
        self.grader = grader
        self.rng = rng if rng is not None else random.Random()
        self.config = config if config is not None else settings
        self.exposure_monitor = exposure_monitor
        self._id_factory = id_factory

        self._locks_guard = threading.Lock()
        self._session_locks: Dict[str, threading.Lock] = {}
        self._start_locks = [threading.Lock() for _ in range(START_LOCK_STRIPES)]

        logger.info(
            f"CATSessionManager initialized (method={self.config.CAT_ESTIMATION_METHOD}, "
            f"questions={self.config.CAT_MIN_QUESTIONS}-{self.config.CAT_MAX_QUESTIONS}, "
            f"se_threshold={self.config.CAT_SE_THRESHOLD}, "
            f"randomesque_k={self.config.CAT_RANDOMESQUE_K})"
        )

    # ── Item selection ──────────────────────────────────────────────────────

    def _select(
        self,
        theta: float,
        answered_item_ids: AbstractSet[str],
        category_counts: Optional[Dict[str, int]],
    ) -> Optional[BankItem]:
        return select_next_item(
            self.item_bank.get_available_items(answered_item_ids),
            theta_estimate=theta,
            answered_item_ids=answered_item_ids,
            category_counts=category_counts,
            rng=self.rng,
            randomesque_k=self.config.CAT_RANDOMESQUE_K,
            boost_floor=self.config.CAT_CONTENT_BOOST_FLOOR,
            boost_ceiling=self.config.CAT_CONTENT_BOOST_CEILING,
            boost_slope=self.config.CAT_CONTENT_BOOST_SLOPE,
        )

    def select_initial_item(self) -> BankItem:
        """
        Select the first item of a session at the population mean ability.

        Raises:
            NoItemsAvailableError: If the item bank is empty.
        """
        item = self._select(self.config.CAT_PRIOR_MEAN, frozenset(), None)
        if item is None:
            raise NoItemsAvailableError()
        return item

    def _record_exposure(self, item: Optional[BankItem]) -> None:
        """Count an item as exposed once the session handing it out is persisted."""
        if item is not None and self.exposure_monitor is not None:
            self.exposure_monitor.record_selection(item.id)

    # ── Session lifecycle ───────────────────────────────────────────────────

    def start_session(
        self,
        candidate_id: str,
        min_questions: Optional[int] = None,
        max_questions: Optional[int] = None,
        time_limit_seconds: Optional[float] = None,
        passing_theta: Optional[float] = None,
    ) -> Tuple[TestSession, Optional[BankItem]]:
        """
        Start a new session, or resume the candidate's session in progress.

        Per-session limits default to the configured values.

        Returns:
            Tuple of (session, current item).

        Raises:
            NoItemsAvailableError: If the item bank is empty.
            ValueError: If min_questions exceeds max_questions or a limit is
                not positive.
        """
        with self._start_lock(candidate_id):
            existing = self._find_in_progress(candidate_id)
            if existing is not None:
                logger.info(
                    f"Resuming CAT session {existing.session_id} for candidate {candidate_id}",
                    extra={"session_id": existing.session_id, "candidate_id": candidate_id},
                )
                return existing, self.get_current_item(existing)

            session = self._new_session(
                candidate_id, min_questions, max_questions, time_limit_seconds, passing_theta
            )
            first_item = self.select_initial_item()
            session.current_item_id = first_item.id
            session = self.session_store.create(session)

        self._record_exposure(first_item)

        logger.info(
            f"Started CAT session {session.session_id} for candidate {candidate_id} "
            f"(questions={session.min_questions}-{session.max_questions}, "
            f"first item {first_item.id})",
            extra={
                "session_id": session.session_id,
                "candidate_id": candidate_id,
                "item_id": first_item.id,
            },
        )
        return session, first_item

    def _start_lock(self, candidate_id: str) -> threading.Lock:
        return self._start_locks[hash(candidate_id) % START_LOCK_STRIPES]

    def _new_session(
        self,
        candidate_id: str,
        min_questions: Optional[int],
        max_questions: Optional[int],
        time_limit_seconds: Optional[float],
        passing_theta: Optional[float],
    ) -> TestSession:
        session = TestSession(
            session_id=self._id_factory(),
            candidate_id=candidate_id,
            min_questions=(
                min_questions if min_questions is not None else self.config.CAT_MIN_QUESTIONS
            ),
            max_questions=(
                max_questions if max_questions is not None else self.config.CAT_MAX_QUESTIONS
            ),
            time_limit_seconds=(
                time_limit_seconds
                if time_limit_seconds is not None
                else self.config.CAT_TIME_LIMIT_SECONDS
            ),
            passing_theta=(
                passing_theta if passing_theta is not None else self.config.CAT_PASSING_THETA
            ),
            started_at=utc_now(),
            theta=self.config.CAT_PRIOR_MEAN,
            standard_error=SE_SENTINEL,
        )
        session.passing_probability = passing_probability(
            session.theta, session.standard_error, session.passing_theta
        )
        return session

    def _find_in_progress(self, candidate_id: str) -> Optional[TestSession]:
        for session_id in self.session_store.list_session_ids(candidate_id):
            session = self.session_store.load(session_id)
            if session is not None and not session.is_completed:
                return session
        return None

    def get_session(self, session_id: str) -> TestSession:
        """
        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        session = self.session_store.load(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_current_item(self, session: TestSession) -> Optional[BankItem]:
        """The item last handed out, or None once the session is completed."""
        if session.current_item_id is None:
            return None
        return self.item_bank.get_item(session.current_item_id)

    def build_report(self, session_id: str) -> SessionReport:
        """
        Raises:
            SessionNotFoundError: If the session does not exist.
            SessionNotCompletedError: If the session is still in progress.
        """
        session = self.get_session(session_id)
        if not session.is_completed:
            raise SessionNotCompletedError(session_id)
        return build_session_report(session, confidence_z=self.config.CAT_CONFIDENCE_Z)

    # ── Response processing ─────────────────────────────────────────────────

    def _session_lock(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._session_locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._session_locks[session_id] = lock
            return lock

    def _discard_session_lock(self, session_id: str) -> None:
        with self._locks_guard:
            self._session_locks.pop(session_id, None)

    def submit_response(
        self,
        session_id: str,
        item_id: str,
        raw_answer: Any,
        time_spent_seconds: float = 0.0,
    ) -> SubmissionResult:
        """
        Grade a response and advance the session by exactly one step.

        Args:
            session_id: Session being answered.
            item_id: Item the answer belongs to.
            raw_answer: Answer payload passed to the grader.
            time_spent_seconds: Time spent on this item (>= 0).

        Returns:
            SubmissionResult with the updated estimate and either the next
            item or the final verdict.

        Raises:
            ValueError: If time_spent_seconds is negative.
            ConcurrentSubmissionError: If another submission for the same
                session is in flight.
            SessionNotFoundError: If the session does not exist.
            SessionNotInProgressError: If the session is already completed.
            ItemNotFoundError: If the item is not in the item bank.
            ItemAlreadyAnsweredError: If the item was already answered.
            StaleSessionError: If the session changed since it was loaded.
        """
        if not math.isfinite(time_spent_seconds) or time_spent_seconds < 0:
            raise ValueError(
                f"time_spent_seconds must be finite and non-negative, "
                f"got {time_spent_seconds}"
            )

        # Locks are only created for sessions that exist
        self.get_session(session_id)

        lock = self._session_lock(session_id)
        if not lock.acquire(blocking=False):
            logger.warning(
                f"Rejected concurrent submission for session {session_id}",
                extra={"session_id": session_id, "item_id": item_id},
            )
            raise ConcurrentSubmissionError(session_id)
        completed = False
        try:
            result = self._process_response(
                session_id, item_id, raw_answer, time_spent_seconds
            )
            completed = result.completed
            return result
        finally:
            lock.release()
            if completed:
                self._discard_session_lock(session_id)

    def _process_response(
        self,
        session_id: str,
        item_id: str,
        raw_answer: Any,
        time_spent_seconds: float,
    ) -> SubmissionResult:
        session = self.get_session(session_id)
        if session.status != SessionStatus.IN_PROGRESS:
            raise SessionNotInProgressError(session_id, session.status.value)

        item = self.item_bank.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        if item_id in session.answered_item_ids:
            raise ItemAlreadyAnsweredError(session_id, item_id)

        expected_version = session.version
        grading = self.grader(item.item_type, raw_answer, item.answer_key)

        theta_before = session.theta
        se_before = session.standard_error

        history: List[Response] = [
            (r.params.discrimination, r.params.difficulty, r.params.guessing, r.is_correct)
            for r in session.responses
        ]
        history.append(
            (
                item.params.discrimination,
                item.params.difficulty,
                item.params.guessing,
                grading.is_correct,
            )
        )
        estimate = estimate_ability(
            history,
            method=EstimationMethod(self.config.CAT_ESTIMATION_METHOD),
            prior_mean=self.config.CAT_PRIOR_MEAN,
            prior_sd=self.config.CAT_PRIOR_SD,
            start_theta=theta_before,
            confidence_z=self.config.CAT_CONFIDENCE_Z,
        )

        self._record_response(
            session,
            item,
            grading.is_correct,
            time_spent_seconds,
            theta_before=theta_before,
            se_before=se_before,
            theta_after=estimate.theta,
            se_after=estimate.standard_error,
        )

        decision = check_stopping_criteria(
            theta=session.theta,
            se=session.standard_error,
            num_answered=session.questions_answered,
            elapsed_seconds=session.time_spent_seconds,
            min_questions=session.min_questions,
            max_questions=session.max_questions,
            time_limit_seconds=session.time_limit_seconds,
            passing_theta=session.passing_theta,
            se_threshold=self.config.CAT_SE_THRESHOLD,
            confidence_z=self.config.CAT_CONFIDENCE_Z,
        )

        next_item: Optional[BankItem] = None
        if decision.reason is not None:
            self._finalize(session, decision.reason, decision.result)
        else:
            next_item = self._select(
                session.theta, session.answered_item_ids, session.category_counts()
            )
            if next_item is None:
                logger.warning(
                    f"Item pool exhausted for session {session_id} after "
                    f"{session.questions_answered} questions",
                    extra={"session_id": session_id},
                )
                self._finalize(
                    session,
                    StopReason.ITEM_POOL_EXHAUSTED,
                    classify(session.theta, session.passing_theta),
                )
            else:
                session.current_item_id = next_item.id

        saved = self.session_store.save(session, expected_version)
        self._record_exposure(next_item)

        logger.debug(
            f"Session {session_id}: response #{saved.questions_answered} "
            f"({item_id}, correct={grading.is_correct}) -> "
            f"theta={saved.theta:.3f}, SE={saved.standard_error:.3f}, "
            f"completed={saved.is_completed}",
            extra={
                "session_id": session_id,
                "item_id": item_id,
                "theta": saved.theta,
                "standard_error": saved.standard_error,
            },
        )

        return SubmissionResult(
            session_id=session_id,
            item_id=item_id,
            is_correct=grading.is_correct,
            partial_score=grading.partial_score,
            theta=saved.theta,
            standard_error=saved.standard_error,
            ci_lower=estimate.ci_lower,
            ci_upper=estimate.ci_upper,
            passing_probability=saved.passing_probability,
            questions_answered=saved.questions_answered,
            questions_correct=saved.questions_correct,
            completed=saved.is_completed,
            result=saved.result,
            stop_reason=saved.stop_reason,
            next_item=next_item,
            session_version=saved.version,
        )

    def _record_response(
        self,
        session: TestSession,
        item: BankItem,
        is_correct: bool,
        time_spent_seconds: float,
        theta_before: float,
        se_before: float,
        theta_after: float,
        se_after: float,
    ) -> None:
        """Append the response and update running totals on the working copy."""
        session.questions_answered += 1
        if is_correct:
            session.questions_correct += 1
        session.time_spent_seconds += time_spent_seconds

        perf = session.category_performance.setdefault(
            item.category_id, CategoryPerformance()
        )
        perf.total += 1
        if is_correct:
            perf.correct += 1

        band = difficulty_band(item.params.difficulty)
        session.difficulty_distribution[band] = (
            session.difficulty_distribution.get(band, 0) + 1
        )

        session.answered_item_ids.add(item.id)
        session.responses.append(
            ResponseRecord(
                item_id=item.id,
                is_correct=is_correct,
                time_spent_seconds=time_spent_seconds,
                theta_before=theta_before,
                theta_after=theta_after,
                se_before=se_before,
                se_after=se_after,
                question_number=session.questions_answered,
                category_id=item.category_id,
                params=item.params,
            )
        )

        session.theta = theta_after
        session.standard_error = se_after
        session.passing_probability = passing_probability(
            theta_after, se_after, session.passing_theta
        )

    def _finalize(
        self, session: TestSession, stop_reason: StopReason, result: TestResult
    ) -> None:
        session.status = SessionStatus.COMPLETED
        session.stop_reason = stop_reason
        session.result = result
        session.current_item_id = None
        session.completed_at = utc_now()

        logger.info(
            f"Session {session.session_id}: completed with {result.value} "
            f"({stop_reason.value}) after {session.questions_answered} questions "
            f"(theta={session.theta:.3f}, SE={session.standard_error:.3f}, "
            f"P(pass)={session.passing_probability:.3f})",
            extra={
                "session_id": session.session_id,
                "candidate_id": session.candidate_id,
                "theta": session.theta,
                "standard_error": session.standard_error,
                "stop_reason": stop_reason.value,
            },
        )

        if self.exposure_monitor is not None:
            self.exposure_monitor.check_and_alert()
