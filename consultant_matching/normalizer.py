"""
Profile Normalizer

Turns a company profile, its self-assessment and one consultant record into a
FeatureSet of lower-cased, trimmed tag sets and bounded ratios. Scorers only
ever compare values produced here.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .config import (
    COMPANY_SIZE_TIERS,
    DEFAULT_SIZE_TIER,
    DEFAULT_REQUIRED_DOMAINS,
    DIMENSION_SKILL_MAP,
    DOMAIN_KEYWORDS,
    INDUSTRY_DEFAULT_DOMAINS,
    MATURITY_LEVELS,
    PREFERRED_COACHING_METHODS,
    RELATED_INDUSTRIES,
    TOP_MATURITY_LEVEL,
    WEAK_DIMENSION_THRESHOLD,
)
from .errors import InvalidInputError, MissingSelfAssessmentError
from .models import CompanyProfile, ConsultantCandidate, SelfAssessmentScore

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[\s/,·]+")


def normalize_tag(value) -> str:
    """Trim, collapse inner whitespace and lower-case a free-text tag."""
    if value is None:
        return ""
    return " ".join(str(value).split()).lower()


def normalize_tags(values: Optional[Iterable]) -> FrozenSet[str]:
    if not values:
        return frozenset()
    tags = (normalize_tag(getattr(v, "value", v)) for v in values)
    return frozenset(t for t in tags if t)


def tag_tokens(value: str) -> FrozenSet[str]:
    return frozenset(t for t in _TOKEN_SPLIT.split(normalize_tag(value)) if t)


def clamp_ratio(score: float, max_score: float) -> float:
    if max_score <= 0:
        return 0.0
    return max(0.0, min(1.0, score / max_score))


@dataclass(frozen=True)
class FeatureSet:
    candidate_user_id: str
    # industry
    company_industry: str
    industry_match: bool
    related_industry_hits: Tuple[str, ...]
    sub_industry_overlap: Tuple[str, ...]
    # company size / maturity
    size_tier: str
    size_match: bool
    maturity_level: str
    required_teaching_levels: Tuple[str, ...]
    preferred_coaching_methods: Tuple[str, ...]
    # self-assessment
    assessment_ratio: float
    dimension_ratios: Dict[str, float]
    weak_dimensions: Tuple[str, ...]
    # targets derived from the company
    required_domains: FrozenSet[str]
    required_domain_source: str
    target_skills: FrozenSet[str]
    # consultant
    expertise_domains: FrozenSet[str]
    available_industries: FrozenSet[str]
    consultant_sub_industries: FrozenSet[str]
    teaching_levels: FrozenSet[str]
    coaching_methods: FrozenSet[str]
    skill_tags: FrozenSet[str]
    years_of_experience: int
    strengths_constraints: Optional[str] = None
    # normalized tag -> display label, for explanations
    labels: Dict[str, str] = field(default_factory=dict)

    @property
    def sub_industry_overlap_count(self) -> int:
        return len(self.sub_industry_overlap)

    def label(self, tag: str) -> str:
        return self.labels.get(tag, tag)

    def labels_for(self, tags: Iterable[str]) -> List[str]:
        return [self.label(t) for t in sorted(tags)]


def _register_labels(labels: Dict[str, str], values: Optional[Iterable]) -> None:
    for value in values or []:
        raw = getattr(value, "value", value)
        key = normalize_tag(raw)
        if key and key not in labels:
            labels[key] = " ".join(str(raw).split())


def _lookup(table: Dict[str, list], key: str) -> list:
    """Case/whitespace-insensitive dict lookup on a config table."""
    for name, values in table.items():
        if normalize_tag(name) == key:
            return values
    return []


def _keyword_in(keyword: str, text: str) -> bool:
    """Korean keywords match as substrings, ASCII keywords only as whole tokens."""
    keyword = normalize_tag(keyword)
    if keyword.isascii():
        return keyword in tag_tokens(text)
    return keyword in text


def derive_required_domains(company: CompanyProfile) -> Tuple[FrozenSet[str], str, List[str]]:
    """
    Required expertise domains for a company, with the source they came from.

    Order: explicit required_domains, keywords in interview job tasks and pain
    points, the industry's default domains, the global default.
    """
    if company.required_domains:
        return normalize_tags(company.required_domains), "explicit", list(company.required_domains)

    texts = [normalize_tag(f"{t.job_category} {t.task_name}") for t in company.job_tasks]
    texts += [normalize_tag(p.description) for p in company.pain_points]
    texts = [t for t in texts if t]
    if texts:
        found = []
        for domain, keywords in DOMAIN_KEYWORDS.items():
            if any(_keyword_in(k, text) for k in keywords for text in texts):
                found.append(domain)
        if found:
            return normalize_tags(found), "interview", found

    defaults = _lookup(INDUSTRY_DEFAULT_DOMAINS, normalize_tag(company.industry))
    if defaults:
        return normalize_tags(defaults), "industry_default", list(defaults)
    return normalize_tags(DEFAULT_REQUIRED_DOMAINS), "default", list(DEFAULT_REQUIRED_DOMAINS)


def derive_target_skills(weak_dimensions: Iterable[str]) -> Tuple[FrozenSet[str], List[str]]:
    """Skill tags addressing weak dimensions; the full mapped set when none map."""
    skills = []
    for dimension in weak_dimensions:
        for skill in _lookup(DIMENSION_SKILL_MAP, normalize_tag(dimension)):
            if skill not in skills:
                skills.append(skill)
    if not skills:
        for mapped in DIMENSION_SKILL_MAP.values():
            skills.extend(s for s in mapped if s not in skills)
    return normalize_tags(skills), skills


def maturity_level_for(ratio: float) -> str:
    for upper, level in MATURITY_LEVELS:
        if ratio < upper:
            return level
    return TOP_MATURITY_LEVEL


def _dimension_ratios(assessment: SelfAssessmentScore) -> Dict[str, float]:
    ratios: Dict[str, float] = {}
    for item in assessment.dimension_scores:
        name = " ".join(item.dimension.split())
        if not name:
            raise InvalidInputError("Self-assessment contains a dimension without a name")
        ratios[name] = clamp_ratio(item.score, item.max_score)
    return ratios


def _industry_related(tag: str, industry: str, industry_tokens: FrozenSet[str], related: FrozenSet[str]) -> bool:
    if tag == industry or tag in related:
        return True
    return bool(tag_tokens(tag) & industry_tokens)


def normalize(
    company: CompanyProfile,
    self_assessment: Optional[SelfAssessmentScore],
    consultant: ConsultantCandidate,
) -> FeatureSet:
    """
    Build the FeatureSet for one (company, consultant) pair.

    Raises:
        MissingSelfAssessmentError: if self_assessment is None
        InvalidInputError: if the consultant has no profile or the company no industry
    """
    if self_assessment is None:
        raise MissingSelfAssessmentError(
            f"Project {company.project_id} has no completed self-assessment"
        )
    profile = consultant.profile
    if profile is None:
        raise InvalidInputError(f"Consultant {consultant.user_id} has no profile")
    industry = normalize_tag(company.industry)
    if not industry:
        raise InvalidInputError(f"Project {company.project_id} has no industry")

    labels: Dict[str, str] = {}
    for values in (
        [company.industry], company.sub_industries, profile.expertise_domains,
        profile.available_industries, profile.sub_industries, profile.skill_tags,
        profile.teaching_levels, profile.coaching_methods,
    ):
        _register_labels(labels, values)

    available = normalize_tags(profile.available_industries)
    consultant_subs = normalize_tags(profile.sub_industries)
    company_subs = normalize_tags(company.sub_industries)

    related = normalize_tags(_lookup(RELATED_INDUSTRIES, industry))
    industry_tokens = tag_tokens(industry)
    related_hits = sorted(t for t in available if t in related)
    overlap = set(company_subs & consultant_subs)
    overlap.update(
        t for t in consultant_subs if _industry_related(t, industry, industry_tokens, related)
    )

    ratios = _dimension_ratios(self_assessment)
    weak = sorted(
        (name for name, ratio in ratios.items() if ratio < WEAK_DIMENSION_THRESHOLD),
        key=lambda name: (ratios[name], name),
    )
    assessment_ratio = clamp_ratio(self_assessment.total_score, self_assessment.max_possible_score)

    required_domains, domain_source, domain_labels = derive_required_domains(company)
    _register_labels(labels, domain_labels)
    target_skills, skill_labels = derive_target_skills(weak)
    _register_labels(labels, skill_labels)

    size_tier = COMPANY_SIZE_TIERS.get((company.company_size or "").strip(), DEFAULT_SIZE_TIER)
    maturity = maturity_level_for(assessment_ratio)
    required_levels = [maturity]
    if size_tier == "large":
        required_levels.append("LEADER")
    preferred_methods = PREFERRED_COACHING_METHODS.get(size_tier, [])

    coaching_methods = normalize_tags(profile.coaching_methods)
    size_match = any(normalize_tag(m) in coaching_methods for m in preferred_methods)

    features = FeatureSet(
        candidate_user_id=consultant.user_id,
        company_industry=industry,
        industry_match=industry in available,
        related_industry_hits=tuple(related_hits),
        sub_industry_overlap=tuple(sorted(overlap)),
        size_tier=size_tier,
        size_match=size_match,
        maturity_level=maturity,
        required_teaching_levels=tuple(normalize_tag(level) for level in required_levels),
        preferred_coaching_methods=tuple(normalize_tag(m) for m in preferred_methods),
        assessment_ratio=assessment_ratio,
        dimension_ratios=ratios,
        weak_dimensions=tuple(weak),
        required_domains=required_domains,
        required_domain_source=domain_source,
        target_skills=target_skills,
        expertise_domains=normalize_tags(profile.expertise_domains),
        available_industries=available,
        consultant_sub_industries=consultant_subs,
        teaching_levels=normalize_tags(profile.teaching_levels),
        coaching_methods=coaching_methods,
        skill_tags=normalize_tags(profile.skill_tags),
        years_of_experience=profile.years_of_experience,
        strengths_constraints=profile.strengths_constraints,
        labels=labels,
    )
    logger.debug(
        f"Normalized consultant {consultant.user_id}: industry_match={features.industry_match}, "
        f"sub_overlap={features.sub_industry_overlap_count}, tier={size_tier}, maturity={maturity}"
    )
    return features
