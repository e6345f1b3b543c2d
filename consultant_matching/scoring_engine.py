"""
Deterministic Scoring Engine

Every criterion scorer is a pure function of a FeatureSet - same inputs produce
same outputs. No AI/LLM and no I/O is used in this module.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from .config import (
    AVAILABILITY_SPLIT,
    COACHING_METHOD_LABELS,
    CRITERIA,
    CRITERIA_ORDER,
    EXPERIENCE_SATURATION_YEARS,
    EXPERIENCE_TIERS,
    INDUSTRY_PARTIAL_CAP_RATIO,
    INDUSTRY_RELATED_SCORE,
    INDUSTRY_SUB_MATCH_BONUS,
    TEACHING_LEVEL_LABELS,
)
from .errors import InvalidInputError
from .models import ScoreBreakdown
from .normalizer import FeatureSet

logger = logging.getLogger(__name__)

DOMAIN_SOURCE_LABELS = {
    "explicit": "지정 분야",
    "interview": "인터뷰 기반",
    "industry_default": "업종 기본 분야",
    "default": "기본 분야",
}


def _bounded(score: float, max_score: float) -> float:
    """Clamp into [0, max_score] and round for stable comparisons."""
    return round(max(0.0, min(float(max_score), score)), 2)


def _breakdown(key: str, score: float, max_score: float, explanation: str) -> ScoreBreakdown:
    return ScoreBreakdown(
        key=key,
        criteria=CRITERIA[key]["label"],
        score=_bounded(score, max_score),
        max_score=float(max_score),
        explanation=explanation,
    )


def _scale(key: str, max_score: float) -> float:
    """Ratio of the configured max to the default max, for fixed-point bonuses."""
    default = CRITERIA[key]["max_score"]
    return max_score / default if default else 0.0


def _join(labels: List[str], limit: int = 3) -> str:
    shown = ", ".join(labels[:limit])
    return f"{shown} 등" if len(labels) > limit else shown


def calculate_industry_score(features: FeatureSet, max_score: float = CRITERIA["industry"]["max_score"]) -> ScoreBreakdown:
    """
    Industry fit.

    Exact industry match earns the full score. Otherwise a related available
    industry and each overlapping sub-industry add partial credit, capped below
    the full score. No overlap at all scores 0.
    """
    industry_label = features.label(features.company_industry)
    sub_labels = features.labels_for(features.sub_industry_overlap)

    if features.industry_match:
        explanation = f"{industry_label} 업종 경험 있음"
        if sub_labels:
            explanation += f" (세부 업종 일치: {_join(sub_labels)})"
        logger.debug(f"Industry: exact match ({industry_label}), score = {max_score}")
        return _breakdown("industry", max_score, max_score, explanation)

    scale = _scale("industry", max_score)
    partial = 0.0
    reasons = []
    if features.related_industry_hits:
        partial += INDUSTRY_RELATED_SCORE * scale
        reasons.append(f"관련 업종 경험: {_join(features.labels_for(features.related_industry_hits))}")
    if sub_labels:
        partial += INDUSTRY_SUB_MATCH_BONUS * scale * features.sub_industry_overlap_count
        reasons.append(f"세부 업종 일치: {_join(sub_labels)}")

    score = min(partial, max_score * INDUSTRY_PARTIAL_CAP_RATIO)
    if reasons:
        explanation = f"{industry_label} 직접 경험 없음, " + "; ".join(reasons)
    else:
        available = features.labels_for(features.available_industries)
        explanation = f"해당 업종 직접 경험 없음 (가능 업종: {_join(available) or '없음'})"
    logger.debug(f"Industry: partial match, score = {score:.2f}")
    return _breakdown("industry", score, max_score, explanation)


def calculate_expertise_score(features: FeatureSet, max_score: float = CRITERIA["expertise"]["max_score"]) -> ScoreBreakdown:
    """
    Expertise-domain fit: share of required domains the consultant covers.

    Formula: max_score * |required & expertise| / |required|
    """
    required = features.required_domains
    source = DOMAIN_SOURCE_LABELS.get(features.required_domain_source, features.required_domain_source)
    if not required:
        return _breakdown("expertise", 0, max_score, "필요 전문분야 정보 없음")

    matched = required & features.expertise_domains
    score = max_score * len(matched) / len(required)
    if matched:
        explanation = (
            f"{source} {len(required)}개 중 {len(matched)}개 보유 "
            f"({_join(features.labels_for(matched))})"
        )
    else:
        explanation = f"{source}({_join(features.labels_for(required))}) 관련 전문분야 없음"
    logger.debug(f"Expertise: {len(matched)}/{len(required)} required domains, score = {score:.2f}")
    return _breakdown("expertise", score, max_score, explanation)


def calculate_skill_score(features: FeatureSet, max_score: float = CRITERIA["skills"]["max_score"]) -> ScoreBreakdown:
    """
    Skill-tag fit: Jaccard overlap between the consultant's skill tags and the
    skills that address the company's weak self-assessment dimensions.
    """
    target = features.target_skills
    skills = features.skill_tags
    union = target | skills
    if not union:
        return _breakdown("skills", 0, max_score, "역량 정보 없음")

    matched = target & skills
    jaccard = len(matched) / len(union)
    score = max_score * jaccard

    if features.weak_dimensions:
        focus = f"약점 영역({_join(list(features.weak_dimensions))}) 연계 역량"
    else:
        focus = "약점 영역 없음, 핵심 역량"
    explanation = f"{focus} {len(matched)}/{len(target)}개 보유"
    if matched:
        explanation += f" ({_join(features.labels_for(matched))})"
    logger.debug(f"Skills: jaccard {len(matched)}/{len(union)} = {jaccard:.2f}, score = {score:.2f}")
    return _breakdown("skills", score, max_score, explanation)


def experience_tier_label(years: int) -> Optional[str]:
    for min_years, label in EXPERIENCE_TIERS:
        if years >= min_years:
            return label
    return None


def calculate_experience_score(features: FeatureSet, max_score: float = CRITERIA["experience"]["max_score"]) -> ScoreBreakdown:
    """
    Experience fit: linear up to the saturation point, flat after it.

    Raises:
        InvalidInputError: if years_of_experience is negative or not an integer
    """
    years = features.years_of_experience
    if isinstance(years, bool) or not isinstance(years, int):
        raise InvalidInputError(
            f"Consultant {features.candidate_user_id} has non-integer years_of_experience: {years!r}"
        )
    if years < 0:
        raise InvalidInputError(
            f"Consultant {features.candidate_user_id} has negative years_of_experience: {years}"
        )

    score = max_score * min(years, EXPERIENCE_SATURATION_YEARS) / EXPERIENCE_SATURATION_YEARS
    tier = experience_tier_label(years)
    explanation = f"{years}년 경력 ({tier})" if tier else f"{years}년 경력"
    logger.debug(f"Experience: {years} years, score = {score:.2f}")
    return _breakdown("experience", score, max_score, explanation)


def calculate_availability_score(features: FeatureSet, max_score: float = CRITERIA["availability"]["max_score"]) -> ScoreBreakdown:
    """
    Teaching-level and coaching-method fit for the company's size tier and
    AI maturity. Levels are graded by coverage; methods are binary.
    """
    required_levels = features.required_teaching_levels
    covered = [level for level in required_levels if level in features.teaching_levels]
    level_part = max_score * AVAILABILITY_SPLIT["teaching_levels"]
    if required_levels:
        level_part *= len(covered) / len(required_levels)
    method_part = max_score * AVAILABILITY_SPLIT["coaching_methods"] if features.size_match else 0.0
    score = level_part + method_part

    def level_label(level: str) -> str:
        return TEACHING_LEVEL_LABELS.get(level.upper(), level)

    def method_label(method: str) -> str:
        return COACHING_METHOD_LABELS.get(method.upper(), method)

    needed = ", ".join(level_label(l) for l in required_levels)
    offered = ", ".join(level_label(l) for l in sorted(features.teaching_levels)) or "없음"
    parts = [f"{offered} 레벨 강의 가능 (필요: {needed})"]
    methods = [m for m in features.preferred_coaching_methods if m in features.coaching_methods]
    if methods:
        parts.append(f"선호 코칭 방식 보유: {', '.join(method_label(m) for m in methods)}")
    else:
        preferred = ", ".join(method_label(m) for m in features.preferred_coaching_methods)
        parts.append(f"선호 코칭 방식({preferred}) 없음")
    logger.debug(f"Availability: levels {len(covered)}/{len(required_levels)}, methods={features.size_match}, score = {score:.2f}")
    return _breakdown("availability", score, max_score, "; ".join(parts))


SCORERS: Dict[str, Callable[[FeatureSet, float], ScoreBreakdown]] = {
    "industry": calculate_industry_score,
    "expertise": calculate_expertise_score,
    "skills": calculate_skill_score,
    "experience": calculate_experience_score,
    "availability": calculate_availability_score,
}


def calculate_match_score(
    features: FeatureSet,
    weights: Optional[Dict[str, float]] = None,
) -> Tuple[List[ScoreBreakdown], float]:
    """
    Run every criterion scorer for one candidate.

    Args:
        features: Normalized company/consultant features
        weights: Per-criterion max scores (defaults from config)

    Returns:
        (breakdown in criterion order, total score = sum of criterion scores)
    """
    weights = weights or {key: CRITERIA[key]["max_score"] for key in CRITERIA_ORDER}
    breakdown = [SCORERS[key](features, weights[key]) for key in CRITERIA_ORDER]
    total = round(sum(item.score for item in breakdown), 2)
    logger.debug(f"Candidate {features.candidate_user_id}: total score {total:.2f}")
    return breakdown, total
