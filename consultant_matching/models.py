from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from .config import CRITERIA, TOTAL_MAX_SCORE, DEFAULT_TOP_N, MAX_TOP_N, MAX_WORKERS, LLM_CONFIG, default_weights


class UserRole(str, Enum):
    PUBLIC = "PUBLIC"
    USER_PENDING = "USER_PENDING"
    OPS_ADMIN_PENDING = "OPS_ADMIN_PENDING"
    CONSULTANT_APPROVED = "CONSULTANT_APPROVED"
    OPS_ADMIN = "OPS_ADMIN"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class ProjectStatus(str, Enum):
    NEW = "NEW"
    DIAGNOSED = "DIAGNOSED"
    MATCH_RECOMMENDED = "MATCH_RECOMMENDED"
    ASSIGNED = "ASSIGNED"
    INTERVIEWED = "INTERVIEWED"
    ROADMAP_DRAFTED = "ROADMAP_DRAFTED"
    FINALIZED = "FINALIZED"


class TeachingLevel(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    LEADER = "LEADER"


class CoachingMethod(str, Enum):
    PBL = "PBL"
    WORKSHOP = "WORKSHOP"
    MENTORING = "MENTORING"
    LECTURE = "LECTURE"
    HYBRID = "HYBRID"


class MatchingStatus(str, Enum):
    GENERATED = "GENERATED"
    NO_ELIGIBLE_CANDIDATES = "NO_ELIGIBLE_CANDIDATES"


# Self-assessment
class DimensionScore(BaseModel):
    dimension: str
    score: float = Field(ge=0)
    max_score: float = Field(ge=0)

    @model_validator(mode="after")
    def check_score_within_max(self) -> "DimensionScore":
        if self.score > self.max_score:
            raise ValueError(
                f"Dimension '{self.dimension}' score {self.score} exceeds max_score {self.max_score}"
            )
        return self


class SelfAssessmentScore(BaseModel):
    total_score: float = Field(ge=0)
    max_possible_score: float = Field(ge=0)
    dimension_scores: List[DimensionScore] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_total_within_max(self) -> "SelfAssessmentScore":
        if self.total_score > self.max_possible_score:
            raise ValueError(
                f"total_score {self.total_score} exceeds max_possible_score {self.max_possible_score}"
            )
        return self


# Company side
class JobTask(BaseModel):
    """Interview job task. Only the fields used for domain derivation are required."""
    job_category: str = ""
    task_name: str = ""
    priority: Optional[int] = None


class PainPoint(BaseModel):
    description: str = ""
    severity: Optional[str] = None
    priority: Optional[int] = None


class CompanyProfile(BaseModel):
    project_id: str
    company_name: Optional[str] = None
    industry: str
    sub_industries: List[str] = Field(default_factory=list)
    company_size: Optional[str] = None
    required_domains: List[str] = Field(
        default_factory=list,
        description="Expertise domains the engagement needs; derived when empty",
    )
    job_tasks: List[JobTask] = Field(default_factory=list)
    pain_points: List[PainPoint] = Field(default_factory=list)
    self_assessment: Optional[SelfAssessmentScore] = None


# Consultant side
class ConsultantProfile(BaseModel):
    expertise_domains: List[str] = Field(default_factory=list)
    available_industries: List[str] = Field(default_factory=list)
    sub_industries: List[str] = Field(default_factory=list)
    teaching_levels: List[TeachingLevel] = Field(default_factory=list)
    coaching_methods: List[CoachingMethod] = Field(default_factory=list)
    skill_tags: List[str] = Field(default_factory=list)
    years_of_experience: int = 0
    affiliation: Optional[str] = None
    representative_experience: Optional[str] = None
    strengths_constraints: Optional[str] = None

    @field_validator(
        "expertise_domains", "available_industries", "sub_industries",
        "teaching_levels", "coaching_methods", "skill_tags",
        mode="before",
    )
    @classmethod
    def null_list_as_empty(cls, v):
        # Firestore documents store unset arrays as null
        return [] if v is None else v

    def missing_required_fields(self) -> List[str]:
        """Names of required array fields that are empty."""
        required = ["expertise_domains", "available_industries", "teaching_levels", "skill_tags"]
        return [name for name in required if not getattr(self, name)]


class ConsultantCandidate(BaseModel):
    user_id: str
    name: Optional[str] = None
    role: UserRole = UserRole.CONSULTANT_APPROVED
    status: UserStatus = UserStatus.ACTIVE
    profile: Optional[ConsultantProfile] = None


# Engine output
class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    criteria: str
    score: float
    max_score: float
    explanation: str

    @property
    def ratio(self) -> float:
        if self.max_score <= 0:
            return 0.0
        return self.score / self.max_score


class ScoredCandidate(BaseModel):
    """A candidate with its per-criterion breakdown, before ranking."""
    model_config = ConfigDict(frozen=True)

    candidate: ConsultantCandidate
    breakdown: List[ScoreBreakdown]
    total_score: float

    @property
    def user_id(self) -> str:
        return self.candidate.user_id

    def criterion_score(self, key: str) -> float:
        for item in self.breakdown:
            if item.key == key:
                return item.score
        return 0.0


class RankedCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    scored: ScoredCandidate
    rank: int = Field(ge=1)


class MatchingRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str
    candidate_user_id: str
    candidate_name: Optional[str] = None
    total_score: float = Field(ge=0.0, le=TOTAL_MAX_SCORE)
    score_breakdown: List[ScoreBreakdown]
    rationale: str
    rank: int = Field(ge=1)
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class MatchingResult(BaseModel):
    project_id: str
    status: MatchingStatus
    recommendations: List[MatchingRecommendation] = Field(default_factory=list)
    top_n: int
    preserve_status: bool = False
    candidates_total: int = 0
    candidates_eligible: int = 0
    message: Optional[str] = None


# API / settings
class MatchingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., alias="projectId", min_length=1)
    top_n: int = Field(default=DEFAULT_TOP_N, alias="topN")
    preserve_status: bool = Field(default=False, alias="preserveStatus")


class MatchingResponse(BaseModel):
    success: bool = True
    status: Optional[MatchingStatus] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    code: Optional[str] = None


class MatchingSettings(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    criteria_weights: Dict[str, float] = Field(default_factory=default_weights)
    default_top_n: int = DEFAULT_TOP_N
    max_top_n: int = MAX_TOP_N
    max_workers: int = Field(default=MAX_WORKERS, ge=1)
    rationale_use_llm: bool = False
    rationale_timeout_seconds: float = Field(default=LLM_CONFIG["timeout_seconds"], gt=0)
    openai_api_key: Optional[str] = None
    model_name: str = LLM_CONFIG["model"]

    @field_validator("criteria_weights")
    @classmethod
    def validate_weights(cls, v: Dict[str, float]) -> Dict[str, float]:
        if set(v) != set(CRITERIA):
            raise ValueError(f"criteria_weights must define exactly: {', '.join(CRITERIA)}")
        if any(w < 0 for w in v.values()):
            raise ValueError("criteria_weights must be non-negative")
        if abs(sum(v.values()) - TOTAL_MAX_SCORE) > 1e-6:
            raise ValueError(f"criteria_weights must sum to {TOTAL_MAX_SCORE}")
        return v

    @model_validator(mode="after")
    def check_top_n_bounds(self) -> "MatchingSettings":
        if not 1 <= self.default_top_n <= self.max_top_n:
            raise ValueError("default_top_n must be between 1 and max_top_n")
        return self
