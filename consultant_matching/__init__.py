"""
Consultant Matching Engine

Ranks approved consultants against a company's profile and AI-readiness
self-assessment:
1. Profile normalization into comparable tag sets and ratios
2. Deterministic weighted criterion scoring (100 points)
3. Ranking with a stable tie-break, truncated to top-N
4. Rationale composition (templated, optionally LLM-worded)

Usage:
    from consultant_matching import MatchingEngine

    engine = MatchingEngine(company_repository, consultant_repository)
    result = engine.generate_recommendations("project-1", top_n=3)
    for rec in result.recommendations:
        print(rec.rank, rec.candidate_user_id, rec.total_score)
"""

from .config import CRITERIA
from .errors import (
    CompanyNotFoundError,
    InvalidInputError,
    MatchingError,
    MissingSelfAssessmentError,
)
from .matcher import MatchingEngine, generate_matching_recommendations

__all__ = [
    "CRITERIA",
    "MatchingEngine",
    "generate_matching_recommendations",
    "MatchingError",
    "MissingSelfAssessmentError",
    "InvalidInputError",
    "CompanyNotFoundError",
]
__version__ = "0.1.0"
