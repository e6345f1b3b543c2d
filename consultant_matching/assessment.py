"""Self-assessment score calculation from questionnaire answers."""

import logging
from typing import Any, Dict, List, Mapping, Sequence

from .errors import InvalidInputError
from .models import DimensionScore, SelfAssessmentScore

logger = logging.getLogger(__name__)

ANSWER_SCALE_MAX = 5  # 5-point Likert scale


def _answer_value(raw: Any) -> float:
    if raw is None or raw == "":
        return 0
    if isinstance(raw, bool):
        raise InvalidInputError(f"Invalid answer value: {raw!r}")
    if isinstance(raw, (int, float)):
        value = raw
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            raise InvalidInputError(f"Invalid answer value: {raw!r}")
    if not 0 <= value <= ANSWER_SCALE_MAX:
        raise InvalidInputError(f"Answer value {value} outside 0-{ANSWER_SCALE_MAX}")
    return value


def calculate_self_assessment_scores(
    answers: Sequence[Mapping[str, Any]],
    questions: Sequence[Mapping[str, Any]],
) -> SelfAssessmentScore:
    """
    Aggregate answers into dimension and total scores.

    Each question contributes answer * weight to its dimension, out of a
    maximum of 5 * weight. Unanswered questions count as 0. Dimensions keep
    the order in which they first appear in `questions`.

    Args:
        answers: [{"question_id": ..., "answer_value": int | str}, ...]
        questions: [{"id": ..., "dimension": ..., "weight": number}, ...]

    Returns:
        SelfAssessmentScore
    """
    by_question: Dict[str, Any] = {}
    for answer in answers:
        by_question[str(answer.get("question_id"))] = answer.get("answer_value")

    dimensions: Dict[str, List[float]] = {}
    for question in questions:
        dimension = " ".join(str(question.get("dimension") or "").split())
        if not dimension:
            raise InvalidInputError(f"Question {question.get('id')} has no dimension")
        weight = question.get("weight", 1)
        if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight < 0:
            raise InvalidInputError(f"Question {question.get('id')} has invalid weight: {weight!r}")

        value = _answer_value(by_question.get(str(question.get("id"))))
        totals = dimensions.setdefault(dimension, [0, 0])
        totals[0] += value * weight
        totals[1] += ANSWER_SCALE_MAX * weight

    dimension_scores = [
        DimensionScore(dimension=name, score=score, max_score=max_score)
        for name, (score, max_score) in dimensions.items()
    ]
    result = SelfAssessmentScore(
        total_score=sum(d.score for d in dimension_scores),
        max_possible_score=sum(d.max_score for d in dimension_scores),
        dimension_scores=dimension_scores,
    )
    logger.debug(
        f"Self-assessment: {result.total_score}/{result.max_possible_score} "
        f"across {len(dimension_scores)} dimensions"
    )
    return result
