"""
CAT (Computerized Adaptive Testing) engine for Haven.

Pure functions for the 3PL model, ability estimation, item selection,
stopping rules and passing probability, plus the CATSessionManager that
orchestrates them per submitted response.
"""

from .ability_estimation import (
    AbilityEstimate,
    confidence_interval,
    estimate_ability,
    estimate_ability_eap,
    estimate_ability_mle,
    standard_error,
)
from .content_balancing import apply_content_boost, category_boost
from .engine import CATSessionManager, SubmissionResult
from .exceptions import (
    CATError,
    ConcurrentSubmissionError,
    ItemAlreadyAnsweredError,
    ItemNotFoundError,
    NoItemsAvailableError,
    SessionNotCompletedError,
    SessionNotFoundError,
    SessionNotInProgressError,
    StaleSessionError,
)
from .exposure_control import ExposureMonitor, ItemCandidate, apply_randomesque
from .grading import GradingResult, grade_answer
from .irt_model import fisher_information_3pl, probability_3pl
from .item_bank import InMemoryItemBank, ItemBank
from .item_selection import select_next_item
from .models import (
    BankItem,
    EstimationMethod,
    ItemParameters,
    ResponseRecord,
    SessionStatus,
    StopReason,
    TestResult,
    TestSession,
)
from .passing_probability import passing_probability
from .report import SessionReport, build_session_report
from .session_store import InMemorySessionStore, SessionStore
from .stopping_rules import StoppingDecision, check_stopping_criteria

__all__ = [
    "probability_3pl",
    "fisher_information_3pl",
    "AbilityEstimate",
    "estimate_ability",
    "estimate_ability_eap",
    "estimate_ability_mle",
    "standard_error",
    "confidence_interval",
    "category_boost",
    "apply_content_boost",
    "ExposureMonitor",
    "ItemCandidate",
    "apply_randomesque",
    "select_next_item",
    "StoppingDecision",
    "check_stopping_criteria",
    "passing_probability",
    "GradingResult",
    "grade_answer",
    "ItemBank",
    "InMemoryItemBank",
    "SessionStore",
    "InMemorySessionStore",
    "SessionReport",
    "build_session_report",
    "CATSessionManager",
    "SubmissionResult",
    "BankItem",
    "EstimationMethod",
    "ItemParameters",
    "ResponseRecord",
    "SessionStatus",
    "StopReason",
    "TestResult",
    "TestSession",
    "CATError",
    "ConcurrentSubmissionError",
    "ItemAlreadyAnsweredError",
    "ItemNotFoundError",
    "NoItemsAvailableError",
    "SessionNotCompletedError",
    "SessionNotFoundError",
    "SessionNotInProgressError",
    "StaleSessionError",
]
