"""
Collaborator interfaces for the matching engine, with in-memory implementations.

The engine reads companies and consultants and hands finished batches to a
RecommendationStore. Project status and assignment records belong to the store
side; the engine only passes `preserve_status` through.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from .models import (
    CompanyProfile,
    ConsultantCandidate,
    MatchingRecommendation,
    ProjectStatus,
    SelfAssessmentScore,
)

logger = logging.getLogger(__name__)

# Project statuses that a fresh (non-preserving) batch may advance.
ADVANCEABLE_STATUSES = (ProjectStatus.NEW.value, ProjectStatus.DIAGNOSED.value)


class CompanyRepository(ABC):
    @abstractmethod
    def get_company(self, project_id: str) -> Optional[CompanyProfile]:
        """Company attributes for a project, or None if unknown."""

    @abstractmethod
    def get_self_assessment(self, project_id: str) -> Optional[SelfAssessmentScore]:
        """Completed self-assessment scores, or None."""


class ConsultantRepository(ABC):
    @abstractmethod
    def list_candidates(self) -> List[ConsultantCandidate]:
        """Consultant users with their profiles. May include ineligible users."""


class RecommendationStore(ABC):
    @abstractmethod
    def save_batch(
        self,
        project_id: str,
        recommendations: List[MatchingRecommendation],
        preserve_status: bool = False,
    ) -> None:
        """Replace the project's current batch with `recommendations`."""

    @abstractmethod
    def get_batch(self, project_id: str) -> List[MatchingRecommendation]:
        """The latest batch for a project, ordered by rank."""


class InMemoryCompanyRepository(CompanyRepository):
    def __init__(self, companies: Iterable[CompanyProfile] = ()):
        self._companies: Dict[str, CompanyProfile] = {c.project_id: c for c in companies}

    def add(self, company: CompanyProfile) -> None:
        self._companies[company.project_id] = company

    def get_company(self, project_id: str) -> Optional[CompanyProfile]:
        return self._companies.get(project_id)

    def get_self_assessment(self, project_id: str) -> Optional[SelfAssessmentScore]:
        company = self._companies.get(project_id)
        return company.self_assessment if company else None


class InMemoryConsultantRepository(ConsultantRepository):
    def __init__(self, candidates: Iterable[ConsultantCandidate] = ()):
        self._candidates: List[ConsultantCandidate] = list(candidates)

    def list_candidates(self) -> List[ConsultantCandidate]:
        return list(self._candidates)


class InMemoryRecommendationStore(RecommendationStore):
    """
    Keeps every batch per project (latest last) plus simple project records
    ({"status": ..., "assigned_consultant_id": ...}) to mirror the status
    advance a persistent store performs.
    """

    def __init__(self, projects: Optional[Dict[str, dict]] = None):
        self.projects: Dict[str, dict] = projects if projects is not None else {}
        self.batches: Dict[str, List[List[MatchingRecommendation]]] = {}
        self._lock = threading.Lock()

    def save_batch(
        self,
        project_id: str,
        recommendations: List[MatchingRecommendation],
        preserve_status: bool = False,
    ) -> None:
        batch = sorted(recommendations, key=lambda r: r.rank)
        with self._lock:
            self.batches.setdefault(project_id, []).append(batch)
            project = self.projects.get(project_id)
            if not preserve_status and project is not None and project.get("status") in ADVANCEABLE_STATUSES:
                project["status"] = ProjectStatus.MATCH_RECOMMENDED.value
                logger.info(f"Project {project_id} status -> {ProjectStatus.MATCH_RECOMMENDED.value}")
        logger.info(f"Stored {len(batch)} recommendations for project {project_id}")

    def get_batch(self, project_id: str) -> List[MatchingRecommendation]:
        with self._lock:
            history = self.batches.get(project_id)
            return list(history[-1]) if history else []

    def snapshot_project(self, project_id: str) -> Optional[dict]:
        with self._lock:
            project = self.projects.get(project_id)
            return copy.deepcopy(project) if project is not None else None
