"""
Rationale Composer

Selects which criteria a rationale talks about (deterministic) and words it,
either from a template or through an optional TextGenerator. The generator is
called with a timeout and any failure falls back to the template.
"""

import logging
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from typing import List, Optional, Sequence

from .config import (
    CRITERIA_ORDER,
    LLM_CONFIG,
    NOTE_MAX_LENGTH,
    RATIONALE_TOP_K,
    STRENGTH_RATIO,
    WEAKNESS_RATIO,
)
from .models import ConsultantCandidate, ScoreBreakdown
from .text_generator import TextGenerator

logger = logging.getLogger(__name__)

EMPTY_RATIONALE = "추가 분석 정보 없음"


def _fmt(value: float) -> str:
    return f"{value:g}"


def _order(item: ScoreBreakdown) -> int:
    return CRITERIA_ORDER.index(item.key) if item.key in CRITERIA_ORDER else len(CRITERIA_ORDER)


def select_top_criteria(breakdown: Sequence[ScoreBreakdown], k: int = RATIONALE_TOP_K) -> List[ScoreBreakdown]:
    """Top-k contributing criteria by score/max ratio; ties keep criterion order."""
    contributing = [item for item in breakdown if item.score > 0]
    contributing.sort(key=lambda item: (-item.ratio, _order(item)))
    return contributing[:k]


def select_weaknesses(breakdown: Sequence[ScoreBreakdown]) -> List[ScoreBreakdown]:
    return sorted((item for item in breakdown if item.ratio < WEAKNESS_RATIO), key=_order)


def candidate_note(candidate: Optional[ConsultantCandidate]) -> Optional[str]:
    """First NOTE_MAX_LENGTH chars of the consultant's strengths/constraints."""
    if candidate is None or candidate.profile is None:
        return None
    note = (candidate.profile.strengths_constraints or "").strip()
    if not note:
        return None
    if len(note) > NOTE_MAX_LENGTH:
        return note[:NOTE_MAX_LENGTH] + "..."
    return note


def template_rationale(
    top: Sequence[ScoreBreakdown],
    weaknesses: Sequence[ScoreBreakdown],
    note: Optional[str],
) -> str:
    parts = []
    strengths = [item for item in top if item.ratio >= STRENGTH_RATIO]
    if strengths:
        parts.append("강점: " + ", ".join(
            f"{item.criteria}({_fmt(item.score)}/{_fmt(item.max_score)})" for item in strengths
        ) + ".")
    others = [item for item in top if item.ratio < STRENGTH_RATIO]
    if others:
        parts.append("주요 근거: " + ", ".join(
            f"{item.criteria}({_fmt(item.score)}/{_fmt(item.max_score)})" for item in others
        ) + ".")
    if weaknesses:
        parts.append("보완 필요: " + ", ".join(item.criteria for item in weaknesses) + ".")
    if note:
        parts.append(f"특이사항: {note}")
    return " ".join(parts) or EMPTY_RATIONALE


def build_prompt(
    top: Sequence[ScoreBreakdown],
    weaknesses: Sequence[ScoreBreakdown],
    note: Optional[str],
    candidate: Optional[ConsultantCandidate] = None,
) -> str:
    lines = ["Facts about the consultant's fit (criterion: score/max - detail):"]
    for item in top:
        lines.append(f"- {item.criteria}: {_fmt(item.score)}/{_fmt(item.max_score)} - {item.explanation}")
    if weaknesses:
        lines.append("Areas to complement: " + ", ".join(item.criteria for item in weaknesses))
    if note:
        lines.append(f"Consultant note: {note}")
    if candidate is not None and candidate.name:
        lines.append(f"Consultant name: {candidate.name}")
    return "\n".join(lines)


def _generate_with_timeout(generator: TextGenerator, prompt: str, timeout_seconds: float) -> str:
    future: Future = Future()

    def run():
        try:
            future.set_result(generator.generate(prompt))
        except Exception as e:
            future.set_exception(e)

    # Daemon: a hung call is abandoned, never joined.
    threading.Thread(target=run, name="rationale", daemon=True).start()
    return future.result(timeout=timeout_seconds)


def compose(
    breakdown: Sequence[ScoreBreakdown],
    candidate: Optional[ConsultantCandidate] = None,
    text_generator: Optional[TextGenerator] = None,
    timeout_seconds: float = LLM_CONFIG["timeout_seconds"],
) -> str:
    """
    Compose the rationale for one candidate.

    The facts (top criteria, weaknesses, note) are chosen here regardless of
    whether a TextGenerator words them. Generator errors, timeouts and empty
    answers are logged and replaced by the templated rationale.
    """
    top = select_top_criteria(breakdown)
    weaknesses = select_weaknesses(breakdown)
    note = candidate_note(candidate)
    fallback = template_rationale(top, weaknesses, note)

    if text_generator is None or not top:
        return fallback

    user_id = candidate.user_id if candidate is not None else "unknown"
    prompt = build_prompt(top, weaknesses, note, candidate)
    try:
        text = _generate_with_timeout(text_generator, prompt, timeout_seconds)
    except FutureTimeoutError:
        logger.warning(f"Rationale wording timed out after {timeout_seconds}s for {user_id}; using template")
        return fallback
    except Exception as e:
        logger.warning(f"Rationale wording failed for {user_id}: {e}; using template")
        return fallback

    text = (text or "").strip()
    if not text:
        logger.warning(f"Rationale wording returned empty text for {user_id}; using template")
        return fallback
    return text
