from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .assessment import calculate_self_assessment_scores
from .config import load_settings
from .errors import CompanyNotFoundError, InvalidInputError, MatchingError, MissingSelfAssessmentError
from .matcher import MatchingEngine
from .models import MatchingRequest, MatchingResponse, MatchingSettings, SelfAssessmentScore
from .repositories import RecommendationStore
from .text_generator import build_text_generator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Consultant Matching API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS_CODES = {
    CompanyNotFoundError.code: 404,
    MissingSelfAssessmentError.code: 422,
    InvalidInputError.code: 400,
}

_engine: MatchingEngine = None
_store: RecommendationStore = None


@lru_cache()
def get_settings() -> MatchingSettings:
    return load_settings()


def get_store() -> RecommendationStore:
    global _store
    if _store is None:
        from .firebase_service import FirestoreRecommendationStore, get_firebase_service

        _store = FirestoreRecommendationStore(get_firebase_service())
    return _store


def get_engine(
    settings: MatchingSettings = Depends(get_settings),
    store: RecommendationStore = Depends(get_store),
) -> MatchingEngine:
    global _engine
    if _engine is None:
        from .firebase_service import (
            FirestoreCompanyRepository,
            FirestoreConsultantRepository,
            get_firebase_service,
        )

        service = get_firebase_service()
        _engine = MatchingEngine(
            FirestoreCompanyRepository(service),
            FirestoreConsultantRepository(service),
            recommendation_store=store,
            text_generator=build_text_generator(settings),
            settings=settings,
        )
    return _engine


class AssessmentScoreRequest(BaseModel):
    answers: List[Dict[str, Any]] = Field(default_factory=list)
    questions: List[Dict[str, Any]] = Field(..., min_length=1)


@app.get("/")
async def root():
    return {"status": "ok", "version": "0.1.0"}


@app.post("/api/matching/generate", response_model=MatchingResponse)
def generate_matching(request: MatchingRequest, engine: MatchingEngine = Depends(get_engine)):
    """
    Generate Top-N consultant recommendations for a project.

    Request Body:
        projectId: Project to match
        topN: Number of recommendations (default 3)
        preserveStatus: Regenerate without changing project status

    Returns:
        success/status plus data.recommendations (empty when nobody is eligible)
    """
    try:
        result = engine.generate_recommendations(
            request.project_id,
            top_n=request.top_n,
            preserve_status=request.preserve_status,
        )
    except MatchingError as e:
        raise HTTPException(
            status_code=ERROR_STATUS_CODES.get(e.code, 400),
            detail=e.to_dict(),
        )
    except RuntimeError as e:
        logger.error(f"Matching failed for {request.project_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to generate recommendations: {str(e)}")

    return MatchingResponse(
        success=True,
        status=result.status,
        data={
            "recommendations": [r.model_dump(mode="json") for r in result.recommendations],
            "message": result.message,
            "candidates_total": result.candidates_total,
            "candidates_eligible": result.candidates_eligible,
        },
    )


@app.get("/api/matching/{project_id}/recommendations", response_model=MatchingResponse)
def get_recommendations(project_id: str, store: RecommendationStore = Depends(get_store)):
    """Latest persisted recommendation batch for a project."""
    try:
        batch = store.get_batch(project_id)
    except RuntimeError as e:
        logger.error(f"Failed to fetch recommendations for {project_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch recommendations: {str(e)}")
    return MatchingResponse(
        success=True,
        data={"recommendations": [r.model_dump(mode="json") for r in batch]},
    )


@app.post("/api/self-assessment/score", response_model=SelfAssessmentScore)
def score_self_assessment(request: AssessmentScoreRequest):
    """Compute dimension and total scores from questionnaire answers."""
    try:
        return calculate_self_assessment_scores(request.answers, request.questions)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())
