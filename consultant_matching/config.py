"""
Configuration for the consultant matching engine.
Adjust weights and lookup tables here.
"""

import json
import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

# Criterion keys in display order. Max scores must sum to 100.
CRITERIA = {
    "industry": {"label": "업종 적합성", "max_score": 30},
    "expertise": {"label": "전문분야 일치도", "max_score": 25},
    "skills": {"label": "역량 매칭", "max_score": 20},
    "experience": {"label": "경력", "max_score": 15},
    "availability": {"label": "강의 레벨/코칭 방식 적합성", "max_score": 10},
}

CRITERIA_ORDER = list(CRITERIA.keys())

TOTAL_MAX_SCORE = 100

# Industry fit
INDUSTRY_RELATED_SCORE = 15  # consultant covers an industry related to the company's
INDUSTRY_SUB_MATCH_BONUS = 5  # per overlapping sub-industry tag
INDUSTRY_PARTIAL_CAP_RATIO = 0.7  # partial credit never reaches full score

RELATED_INDUSTRIES = {
    "제조업": ["유통/물류", "IT/소프트웨어"],
    "서비스업": ["유통/물류", "금융/보험"],
    "유통/물류": ["제조업", "서비스업"],
    "IT/소프트웨어": ["제조업", "서비스업"],
    "금융/보험": ["서비스업", "IT/소프트웨어"],
    "건설/부동산": ["제조업"],
    "의료/헬스케어": ["서비스업"],
    "교육": ["서비스업", "공공/정부"],
    "공공/정부": ["교육"],
}

# Expertise fit
DOMAIN_KEYWORDS = {
    "제조/생산": ["생산", "제조", "공정", "설비"],
    "품질관리": ["품질", "불량", "검사"],
    "영업/마케팅": ["영업", "마케팅", "홍보", "판매"],
    "인사/총무": ["인사", "채용", "총무", "급여"],
    "재무/회계": ["재무", "회계", "정산", "세무"],
    "연구개발": ["연구", "r&d", "설계"],
    "IT/시스템": ["시스템", "erp", "전산", "데이터베이스"],
    "물류/유통": ["물류", "재고", "배송", "유통", "입출고"],
    "고객서비스": ["고객 응대", "상담", "민원", "cs"],
}

INDUSTRY_DEFAULT_DOMAINS = {
    "제조업": ["제조/생산", "품질관리"],
    "서비스업": ["고객서비스", "영업/마케팅"],
    "유통/물류": ["물류/유통", "영업/마케팅"],
    "IT/소프트웨어": ["IT/시스템", "연구개발"],
    "금융/보험": ["재무/회계", "고객서비스"],
    "건설/부동산": ["제조/생산", "재무/회계"],
    "의료/헬스케어": ["고객서비스", "IT/시스템"],
    "교육": ["인사/총무", "고객서비스"],
    "공공/정부": ["인사/총무", "IT/시스템"],
}

DEFAULT_REQUIRED_DOMAINS = ["IT/시스템"]

# Skill fit
WEAK_DIMENSION_THRESHOLD = 0.6

DIMENSION_SKILL_MAP = {
    "데이터 활용": ["데이터 전처리"],
    "업무 프로세스": ["업무자동화", "프로세스 개선"],
    "AI 활용 현황": ["AI 도구 활용"],
    "조직 역량": ["교육/코칭"],
}

# Experience fit
EXPERIENCE_SATURATION_YEARS = 10

EXPERIENCE_TIERS = [
    (10, "시니어급"),
    (5, "중급"),
    (2, "주니어급"),
]

# Availability / method fit
AVAILABILITY_SPLIT = {
    "teaching_levels": 0.6,
    "coaching_methods": 0.4,
}

COMPANY_SIZE_TIERS = {
    "1-9": "small",
    "10-49": "small",
    "50-299": "medium",
    "300-999": "large",
    "1000+": "large",
}

DEFAULT_SIZE_TIER = "medium"

PREFERRED_COACHING_METHODS = {
    "small": ["MENTORING", "PBL", "HYBRID"],
    "medium": ["WORKSHOP", "PBL", "HYBRID"],
    "large": ["LECTURE", "WORKSHOP", "HYBRID"],
}

# Maturity tier from self-assessment total ratio: (upper bound, level)
MATURITY_LEVELS = [
    (0.4, "BEGINNER"),
    (0.7, "INTERMEDIATE"),
]
TOP_MATURITY_LEVEL = "ADVANCED"

TEACHING_LEVEL_LABELS = {
    "BEGINNER": "초급",
    "INTERMEDIATE": "중급",
    "ADVANCED": "고급",
    "LEADER": "리더",
}

COACHING_METHOD_LABELS = {
    "PBL": "PBL",
    "WORKSHOP": "워크숍",
    "MENTORING": "멘토링",
    "LECTURE": "강의",
    "HYBRID": "혼합형",
}

# Ranking
DEFAULT_TOP_N = 3
MAX_TOP_N = 10
MAX_WORKERS = 8

# Rationale
RATIONALE_TOP_K = 3
STRENGTH_RATIO = 0.7
WEAKNESS_RATIO = 0.5
NOTE_MAX_LENGTH = 100

# LLM configuration (rationale wording only)
LLM_CONFIG = {
    "temperature": 0.3,
    "model": "gpt-4o-mini",
    "timeout_seconds": 10.0,
}

# Eligibility
ELIGIBLE_ROLE = "CONSULTANT_APPROVED"
ELIGIBLE_STATUS = "ACTIVE"


def default_weights() -> Dict[str, int]:
    return {key: criterion["max_score"] for key, criterion in CRITERIA.items()}


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_weights() -> Optional[Dict[str, float]]:
    raw = os.getenv("MATCHING_WEIGHTS")
    if not raw:
        return None
    try:
        weights = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in MATCHING_WEIGHTS: {e}")
    if not isinstance(weights, dict):
        raise ValueError("MATCHING_WEIGHTS must be a JSON object")
    return weights


def load_settings():
    """
    Build MatchingSettings from environment variables.

    Reads .env from the working directory and from the package directory
    (if present) without overriding variables already set.
    """
    from .models import MatchingSettings

    load_dotenv()
    load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env", override=False)

    kwargs = dict(
        default_top_n=int(os.getenv("MATCHING_DEFAULT_TOP_N", str(DEFAULT_TOP_N))),
        max_top_n=int(os.getenv("MATCHING_MAX_TOP_N", str(MAX_TOP_N))),
        max_workers=int(os.getenv("MATCHING_MAX_WORKERS", str(MAX_WORKERS))),
        rationale_use_llm=_env_bool("RATIONALE_USE_LLM"),
        rationale_timeout_seconds=float(
            os.getenv("RATIONALE_TIMEOUT_SECONDS", str(LLM_CONFIG["timeout_seconds"]))
        ),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        model_name=os.getenv("OPENAI_MODEL", LLM_CONFIG["model"]),
    )
    weights = _env_weights()
    if weights is not None:
        kwargs["criteria_weights"] = weights
    return MatchingSettings(**kwargs)
