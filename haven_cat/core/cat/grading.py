"""
Answer grading for NextGen NCLEX item types.

The CAT engine only consumes ``is_correct``; ``partial_score`` (0-1) is kept
for reporting. Malformed answers are graded as incorrect, never raised.

Supported item types:
    multiple_choice       single option id
    multiple_response     all-or-nothing set match (alias: select_all)
    fill_blank            case- and whitespace-insensitive text match
    ordered_response      exact sequence match
    hot_spot              click point inside any answer region
    cloze_dropdown        every blank matches (alias shape: matrix)
    highlight             exact set of highlighted phrases
    bow_tie               causes, actions and parameters all correct
    case_study            every sub-question correct
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradingResult:
    is_correct: bool
    partial_score: float


INCORRECT = GradingResult(is_correct=False, partial_score=0.0)


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _grade_multiple_choice(raw_answer: Any, answer_key: Any) -> GradingResult:
    correct = answer_key[0] if isinstance(answer_key, (list, tuple)) else answer_key
    is_correct = raw_answer == correct
    return GradingResult(is_correct, 1.0 if is_correct else 0.0)


def _grade_multiple_response(raw_answer: Any, answer_key: Any) -> GradingResult:
    if not isinstance(raw_answer, (list, tuple)) or not isinstance(
        answer_key, (list, tuple)
    ):
        return INCORRECT

    selected = set(raw_answer)
    correct = set(answer_key)
    is_correct = selected == correct
    if is_correct:
        return GradingResult(True, 1.0)
    if not correct:
        return INCORRECT

    hits = len(selected & correct)
    misses = len(selected - correct)
    return GradingResult(False, max(0.0, (hits - misses) / len(correct)))


def _grade_fill_blank(raw_answer: Any, answer_key: Any) -> GradingResult:
    if not isinstance(raw_answer, str):
        return INCORRECT
    normalized = raw_answer.strip().lower()
    is_correct = any(
        isinstance(accepted, str) and normalized == accepted.strip().lower()
        for accepted in _as_list(answer_key)
    )
    return GradingResult(is_correct, 1.0 if is_correct else 0.0)


def _grade_ordered_response(raw_answer: Any, answer_key: Any) -> GradingResult:
    if not isinstance(raw_answer, (list, tuple)) or not isinstance(
        answer_key, (list, tuple)
    ):
        return INCORRECT
    if len(raw_answer) != len(answer_key) or not answer_key:
        return INCORRECT

    in_place = sum(1 for given, expected in zip(raw_answer, answer_key) if given == expected)
    return GradingResult(in_place == len(answer_key), in_place / len(answer_key))


def _grade_hot_spot(raw_answer: Any, answer_key: Any) -> GradingResult:
    if not isinstance(raw_answer, dict) or not isinstance(answer_key, dict):
        return INCORRECT
    try:
        x = float(raw_answer["x"])
        y = float(raw_answer["y"])
        is_correct = any(
            region["x"] <= x <= region["x"] + region["width"]
            and region["y"] <= y <= region["y"] + region["height"]
            for region in answer_key.get("regions", [])
        )
    except (KeyError, TypeError, ValueError):
        return INCORRECT
    return GradingResult(is_correct, 1.0 if is_correct else 0.0)


def _grade_keyed_fields(raw_answer: Any, answer_key: Any) -> GradingResult:
    """Cloze dropdowns and matrix grids: one expected value per key."""
    if not isinstance(raw_answer, dict) or not isinstance(answer_key, dict):
        return INCORRECT
    if not answer_key:
        return INCORRECT

    matched = sum(1 for key, expected in answer_key.items() if raw_answer.get(key) == expected)
    return GradingResult(matched == len(answer_key), matched / len(answer_key))


def _grade_highlight(raw_answer: Any, answer_key: Any) -> GradingResult:
    if not isinstance(raw_answer, (list, tuple)) or not isinstance(
        answer_key, (list, tuple)
    ):
        return INCORRECT
    if not all(isinstance(s, str) for s in list(raw_answer) + list(answer_key)):
        return INCORRECT

    selected = {s.strip().lower() for s in raw_answer}
    correct = {s.strip().lower() for s in answer_key}
    if not correct:
        return INCORRECT

    hits = len(selected & correct)
    misses = len(selected - correct)
    if hits == len(correct) and misses == 0:
        return GradingResult(True, 1.0)
    return GradingResult(False, max(0.0, (hits - misses) / len(correct)))


BOW_TIE_PARTS = ("causes", "actions", "parameters")


def _grade_bow_tie(raw_answer: Any, answer_key: Any) -> GradingResult:
    if not isinstance(raw_answer, dict) or not isinstance(answer_key, dict):
        return INCORRECT

    parts = [
        _grade_multiple_response(raw_answer.get(part) or [], answer_key.get(part) or [])
        for part in BOW_TIE_PARTS
    ]
    return GradingResult(
        all(p.is_correct for p in parts),
        sum(p.partial_score for p in parts) / len(parts),
    )


def _grade_case_study(raw_answer: Any, answer_key: Any) -> GradingResult:
    """
    Grade every sub-question of a case study.

    ``answer_key`` maps sub-question ids to ``{"type": ..., "answer": ...}``.
    Ordered-response sub-questions may carry their sequence under ``order``
    and hot-spot sub-questions their regions under ``hot_spot_data``.
    """
    if not isinstance(raw_answer, dict) or not isinstance(answer_key, dict):
        return INCORRECT
    if not answer_key:
        return INCORRECT

    results = []
    for key, sub_key in answer_key.items():
        if not isinstance(sub_key, dict):
            results.append(INCORRECT)
            continue
        sub_type = sub_key.get("type", "multiple_choice")
        expected = sub_key.get("answer")
        if sub_type == "ordered_response" and sub_key.get("order") is not None:
            expected = sub_key["order"]
        elif sub_type == "hot_spot" and sub_key.get("hot_spot_data") is not None:
            expected = sub_key["hot_spot_data"]
        results.append(grade_answer(sub_type, raw_answer.get(key), expected))

    return GradingResult(
        all(r.is_correct for r in results),
        sum(r.partial_score for r in results) / len(results),
    )


_GRADERS: Dict[str, Callable[[Any, Any], GradingResult]] = {
    "multiple_choice": _grade_multiple_choice,
    "multiple_response": _grade_multiple_response,
    "select_all": _grade_multiple_response,
    "fill_blank": _grade_fill_blank,
    "ordered_response": _grade_ordered_response,
    "hot_spot": _grade_hot_spot,
    "cloze_dropdown": _grade_keyed_fields,
    "matrix": _grade_keyed_fields,
    "highlight": _grade_highlight,
    "bow_tie": _grade_bow_tie,
    "case_study": _grade_case_study,
}

SUPPORTED_ITEM_TYPES: Sequence[str] = tuple(_GRADERS)


def grade_answer(item_type: str, raw_answer: Any, answer_key: Any) -> GradingResult:
    """
    Grade a raw answer against an item's answer key.

    Args:
        item_type: One of SUPPORTED_ITEM_TYPES.
        raw_answer: The candidate's answer payload.
        answer_key: The item's correct answer payload.

    Returns:
        GradingResult. Unknown item types grade as incorrect.
    """
    grader = _GRADERS.get(item_type)
    if grader is None:
        logger.warning(f"Unknown item type '{item_type}', grading as incorrect")
        return INCORRECT
    try:
        return grader(raw_answer, answer_key)
    except (TypeError, AttributeError) as e:
        logger.warning(f"Malformed {item_type} answer graded as incorrect: {e}")
        return INCORRECT
