"""
Main Matcher Module

Orchestrates one matching run for a project:
1. Load company attributes and self-assessment (preconditions)
2. Filter the consultant pool down to eligible candidates
3. Normalize and score every candidate (bounded thread pool)
4. Rank, keep top-N, compose rationales
5. Hand the batch to the RecommendationStore and return it
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Tuple, TypeVar

from pydantic import ValidationError

from .errors import (
    CompanyNotFoundError,
    InvalidInputError,
    MatchingError,
    MissingSelfAssessmentError,
)
from .config import ELIGIBLE_ROLE, ELIGIBLE_STATUS
from .models import (
    CompanyProfile,
    ConsultantCandidate,
    MatchingRecommendation,
    MatchingResult,
    MatchingSettings,
    MatchingStatus,
    ScoredCandidate,
    SelfAssessmentScore,
)
from .normalizer import normalize
from .ranker import rank
from .rationale import compose
from .repositories import CompanyRepository, ConsultantRepository, RecommendationStore
from .scoring_engine import calculate_match_score
from .text_generator import TextGenerator

logger = logging.getLogger(__name__)

MISSING_SELF_ASSESSMENT_MESSAGE = "자가진단이 완료되지 않았습니다. 자가진단을 먼저 진행해주세요."
NO_CANDIDATES_MESSAGE = "추천 가능한 컨설턴트가 없습니다. 활성화된 컨설턴트 프로필을 확인해주세요."

T = TypeVar("T")


def _load(description: str, loader: Callable[[], T]) -> T:
    """Run a repository read, turning record validation errors into INVALID_INPUT."""
    try:
        return loader()
    except ValidationError as e:
        raise InvalidInputError(f"Malformed {description}: {e}")


def eligibility_issue(candidate: ConsultantCandidate) -> Optional[str]:
    """Why a candidate cannot be matched, or None if eligible."""
    role = getattr(candidate.role, "value", candidate.role)
    status = getattr(candidate.status, "value", candidate.status)
    if role != ELIGIBLE_ROLE:
        return f"role {role}"
    if status != ELIGIBLE_STATUS:
        return f"status {status}"
    if candidate.profile is None:
        return "no profile"
    missing = candidate.profile.missing_required_fields()
    if missing:
        return f"empty required fields: {', '.join(missing)}"
    return None


def filter_eligible(candidates: List[ConsultantCandidate]) -> Tuple[List[ConsultantCandidate], Dict[str, str]]:
    """Split candidates into eligible ones and {user_id: reason} for the rest."""
    eligible = []
    excluded: Dict[str, str] = {}
    for candidate in candidates:
        issue = eligibility_issue(candidate)
        if issue:
            excluded[candidate.user_id] = issue
        else:
            eligible.append(candidate)
    return eligible, excluded


def score_candidate(
    company: CompanyProfile,
    self_assessment: SelfAssessmentScore,
    candidate: ConsultantCandidate,
    weights: Optional[Dict[str, float]] = None,
) -> ScoredCandidate:
    features = normalize(company, self_assessment, candidate)
    breakdown, total = calculate_match_score(features, weights)
    return ScoredCandidate(candidate=candidate, breakdown=breakdown, total_score=total)


class MatchingEngine:
    """
    Consultant matching engine.

    Reads through the repositories, never mutates company, assessment or
    consultant records, and holds no state between runs.
    """

    def __init__(
        self,
        company_repository: CompanyRepository,
        consultant_repository: ConsultantRepository,
        recommendation_store: Optional[RecommendationStore] = None,
        text_generator: Optional[TextGenerator] = None,
        settings: Optional[MatchingSettings] = None,
    ):
        self.company_repository = company_repository
        self.consultant_repository = consultant_repository
        self.recommendation_store = recommendation_store
        self.text_generator = text_generator
        self.settings = settings or MatchingSettings()

    def _resolve_top_n(self, top_n: Optional[int]) -> int:
        if top_n is None:
            return self.settings.default_top_n
        if isinstance(top_n, bool) or not isinstance(top_n, int):
            raise InvalidInputError(f"top_n must be an integer, got {top_n!r}")
        if not 1 <= top_n <= self.settings.max_top_n:
            raise InvalidInputError(f"top_n must be between 1 and {self.settings.max_top_n}, got {top_n}")
        return top_n

    def score_candidates(
        self,
        company: CompanyProfile,
        self_assessment: SelfAssessmentScore,
        candidates: List[ConsultantCandidate],
    ) -> List[ScoredCandidate]:
        """Score candidates concurrently; results keep input order. Any error aborts."""
        if not candidates:
            return []
        weights = self.settings.criteria_weights
        workers = min(self.settings.max_workers, len(candidates))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="matching") as executor:
            return list(executor.map(
                lambda candidate: score_candidate(company, self_assessment, candidate, weights),
                candidates,
            ))

    def generate_recommendations(
        self,
        project_id: str,
        top_n: Optional[int] = None,
        preserve_status: bool = False,
    ) -> MatchingResult:
        """
        Generate a ranked recommendation batch for one project.

        Args:
            project_id: Project (company) to match consultants for
            top_n: Number of recommendations to keep (default from settings)
            preserve_status: Passed to the store; regenerate without
                advancing project status or touching assignments

        Returns:
            MatchingResult; status NO_ELIGIBLE_CANDIDATES with an empty list
            when nobody can be matched

        Raises:
            CompanyNotFoundError, MissingSelfAssessmentError, InvalidInputError
        """
        logger.info("=" * 60)
        logger.info(f"Matching run for project {project_id} (top_n={top_n}, preserve_status={preserve_status})")
        logger.info("=" * 60)

        try:
            if not project_id or not str(project_id).strip():
                raise InvalidInputError("project_id is required")
            top_n = self._resolve_top_n(top_n)

            company = _load("company record", lambda: self.company_repository.get_company(project_id))
            if company is None:
                raise CompanyNotFoundError(f"Project {project_id} not found")

            assessment = _load("self-assessment", lambda: self.company_repository.get_self_assessment(project_id))
            if assessment is None:
                assessment = company.self_assessment
            if assessment is None:
                raise MissingSelfAssessmentError(MISSING_SELF_ASSESSMENT_MESSAGE)

            candidates = _load("consultant record", self.consultant_repository.list_candidates)
            eligible, excluded = filter_eligible(candidates)
            for user_id, reason in excluded.items():
                logger.warning(f"Excluded consultant {user_id}: {reason}")
            logger.info(f"Candidates: {len(candidates)} total, {len(eligible)} eligible")

            if not eligible:
                logger.info(f"No eligible candidates for project {project_id}")
                return MatchingResult(
                    project_id=project_id,
                    status=MatchingStatus.NO_ELIGIBLE_CANDIDATES,
                    top_n=top_n,
                    preserve_status=preserve_status,
                    candidates_total=len(candidates),
                    candidates_eligible=0,
                    message=NO_CANDIDATES_MESSAGE,
                )

            scored = self.score_candidates(company, assessment, eligible)
            ranked = rank(scored, top_n)

            # One wording budget for the whole batch; once spent, the rest use the template.
            deadline = time.monotonic() + self.settings.rationale_timeout_seconds
            recommendations = []
            for item in ranked:
                remaining = deadline - time.monotonic()
                generator = self.text_generator if remaining > 0 else None
                recommendations.append(MatchingRecommendation(
                    project_id=project_id,
                    candidate_user_id=item.scored.user_id,
                    candidate_name=item.scored.candidate.name,
                    total_score=item.scored.total_score,
                    score_breakdown=item.scored.breakdown,
                    rationale=compose(
                        item.scored.breakdown,
                        item.scored.candidate,
                        generator,
                        max(remaining, 0.0),
                    ),
                    rank=item.rank,
                ))
            if self.text_generator is not None and time.monotonic() >= deadline:
                logger.warning(f"Rationale wording budget of {self.settings.rationale_timeout_seconds}s spent for project {project_id}")
        except MatchingError as e:
            logger.error(f"Matching failed for project {project_id} [{e.code}]: {e}", exc_info=True)
            raise

        if self.recommendation_store is not None:
            self.recommendation_store.save_batch(project_id, recommendations, preserve_status=preserve_status)

        logger.info(
            f"MATCHING COMPLETE - {len(recommendations)} recommendations, "
            f"top: {recommendations[0].candidate_user_id} ({recommendations[0].total_score:.2f})"
        )
        return MatchingResult(
            project_id=project_id,
            status=MatchingStatus.GENERATED,
            recommendations=recommendations,
            top_n=top_n,
            preserve_status=preserve_status,
            candidates_total=len(candidates),
            candidates_eligible=len(eligible),
        )


def generate_matching_recommendations(
    project_id: str,
    company_repository: CompanyRepository,
    consultant_repository: ConsultantRepository,
    recommendation_store: Optional[RecommendationStore] = None,
    top_n: Optional[int] = None,
    preserve_status: bool = False,
    text_generator: Optional[TextGenerator] = None,
    settings: Optional[MatchingSettings] = None,
) -> List[MatchingRecommendation]:
    """
    Ranked recommendations for a project, or [] when nobody is eligible.

    Example:
        >>> recs = generate_matching_recommendations("p-1", companies, consultants, top_n=3)
        >>> for rec in recs:
        >>>     print(rec.rank, rec.candidate_user_id, rec.total_score)
    """
    engine = MatchingEngine(
        company_repository,
        consultant_repository,
        recommendation_store=recommendation_store,
        text_generator=text_generator,
        settings=settings,
    )
    return engine.generate_recommendations(project_id, top_n=top_n, preserve_status=preserve_status).recommendations
