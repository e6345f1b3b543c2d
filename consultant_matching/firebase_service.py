"""
Firestore-backed repositories for the matching engine.

Collections:
    projects/{project_id}                 company attributes, status, assignment
    self_assessments (project_id field)   {"scores": SelfAssessmentScore}
    interviews (project_id field)         job_tasks, pain_points
    users/{user_id}                       role, status, name
    consultant_profiles/{user_id}         ConsultantProfile fields
    matching_recommendations              one document per recommendation
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

try:
    import firebase_admin
    from firebase_admin import credentials, firestore
    from google.cloud.firestore_v1.base_query import FieldFilter
    FIREBASE_AVAILABLE = True
except ImportError:
    FIREBASE_AVAILABLE = False

from .config import ELIGIBLE_ROLE, ELIGIBLE_STATUS
from .models import (
    CompanyProfile,
    ConsultantCandidate,
    ConsultantProfile,
    MatchingRecommendation,
    ProjectStatus,
    SelfAssessmentScore,
)
from .repositories import (
    ADVANCEABLE_STATUSES,
    CompanyRepository,
    ConsultantRepository,
    RecommendationStore,
)

logger = logging.getLogger(__name__)

PROJECTS = "projects"
SELF_ASSESSMENTS = "self_assessments"
INTERVIEWS = "interviews"
USERS = "users"
CONSULTANT_PROFILES = "consultant_profiles"
RECOMMENDATIONS = "matching_recommendations"


# Document conversion (no Firestore access)
def company_from_documents(
    project_id: str,
    project: Dict[str, Any],
    interview: Optional[Dict[str, Any]] = None,
) -> CompanyProfile:
    """Build a CompanyProfile from a project document and optional interview document."""
    interview = interview or {}
    return CompanyProfile(
        project_id=project_id,
        company_name=project.get("company_name"),
        industry=project.get("industry") or "",
        sub_industries=project.get("sub_industries") or [],
        company_size=project.get("company_size"),
        required_domains=project.get("required_domains") or [],
        job_tasks=interview.get("job_tasks") or [],
        pain_points=interview.get("pain_points") or [],
    )


def assessment_from_document(document: Optional[Dict[str, Any]]) -> Optional[SelfAssessmentScore]:
    """Self-assessment scores stored under "scores"; None when not completed."""
    if not document or not document.get("scores"):
        return None
    return SelfAssessmentScore(**document["scores"])


def candidate_from_documents(
    user_id: str,
    user: Dict[str, Any],
    profile: Optional[Dict[str, Any]],
) -> ConsultantCandidate:
    return ConsultantCandidate(
        user_id=user_id,
        name=user.get("name"),
        role=user.get("role") or "PUBLIC",
        status=user.get("status") or "SUSPENDED",
        profile=ConsultantProfile(**profile) if profile else None,
    )


def recommendation_to_document(recommendation: MatchingRecommendation) -> Dict[str, Any]:
    return recommendation.model_dump(mode="json")


class FirebaseService:
    """Service for reading matching inputs from and writing batches to Firestore."""

    _app = None
    _db = None

    def __init__(self):
        """Initialize Firebase Admin SDK."""
        if not FIREBASE_AVAILABLE:
            raise ImportError(
                "firebase-admin is not installed. Install it with: pip install firebase-admin"
            )

        if FirebaseService._app is None:
            logger.info("[Firebase] Initializing Firebase app...")
            self._initialize_firebase()

        if FirebaseService._db is None:
            FirebaseService._db = firestore.client()
            logger.info("[Firebase] Firestore client created")

    def _initialize_firebase(self):
        """
        Initialize Firebase Admin SDK with credentials from environment variables.

        Priority:
        1. GOOGLE_APPLICATION_CREDENTIALS_JSON (JSON string directly in env var)
        2. GOOGLE_APPLICATION_CREDENTIALS (file path to JSON file)
        3. FIREBASE_PROJECT_ID (for Application Default Credentials)
        """
        load_dotenv()
        load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env", override=False)

        try:
            FirebaseService._app = firebase_admin.get_app()
            logger.info("[Firebase] Firebase already initialized")
            return
        except ValueError:
            pass

        try:
            firebase_json = os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON")
            if firebase_json:
                logger.info("[Firebase] Using GOOGLE_APPLICATION_CREDENTIALS_JSON")
                try:
                    cred_dict = json.loads(firebase_json)
                except json.JSONDecodeError as e:
                    raise ValueError(f"Invalid JSON in GOOGLE_APPLICATION_CREDENTIALS_JSON: {str(e)}")
                FirebaseService._app = firebase_admin.initialize_app(credentials.Certificate(cred_dict))
                return

            service_account_path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
            if service_account_path:
                path = Path(service_account_path).expanduser()
                if not path.exists():
                    raise FileNotFoundError(f"Service account file not found: {path}")
                logger.info(f"[Firebase] Using service account file: {path}")
                FirebaseService._app = firebase_admin.initialize_app(credentials.Certificate(str(path)))
                return

            project_id = os.getenv("FIREBASE_PROJECT_ID")
            if not project_id:
                raise ValueError(
                    "No Firebase credentials found. Please set one of:\n"
                    "  - GOOGLE_APPLICATION_CREDENTIALS_JSON (JSON string)\n"
                    "  - GOOGLE_APPLICATION_CREDENTIALS (file path)\n"
                    "  - FIREBASE_PROJECT_ID (for Application Default Credentials)"
                )
            logger.info(f"[Firebase] Using project ID: {project_id}")
            FirebaseService._app = firebase_admin.initialize_app(options={"projectId": project_id})
        except Exception as e:
            if isinstance(e, (RuntimeError, ValueError, FileNotFoundError)):
                raise
            raise RuntimeError(f"Failed to initialize Firebase: {str(e)}")

    @property
    def db(self):
        return FirebaseService._db

    def _first_by_project(self, collection: str, project_id: str) -> Optional[Dict[str, Any]]:
        query = (
            self.db.collection(collection)
            .where(filter=FieldFilter("project_id", "==", project_id))
            .limit(1)
        )
        for doc in query.stream():
            return doc.to_dict()
        return None

    def get_project(self, project_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = self.db.collection(PROJECTS).document(project_id).get()
            return doc.to_dict() if doc.exists else None
        except Exception as e:
            raise RuntimeError(f"Failed to fetch project {project_id}: {str(e)}")

    def get_self_assessment(self, project_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self._first_by_project(SELF_ASSESSMENTS, project_id)
        except Exception as e:
            raise RuntimeError(f"Failed to fetch self-assessment for project {project_id}: {str(e)}")

    def get_interview(self, project_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self._first_by_project(INTERVIEWS, project_id)
        except Exception as e:
            raise RuntimeError(f"Failed to fetch interview for project {project_id}: {str(e)}")

    def list_consultants(self) -> List[Dict[str, Any]]:
        """
        Approved, active consultant users with their profile documents.

        Returns:
            [{"id": ..., "user": {...}, "profile": {...} | None}, ...]
        """
        try:
            users_query = (
                self.db.collection(USERS)
                .where(filter=FieldFilter("role", "==", ELIGIBLE_ROLE))
                .where(filter=FieldFilter("status", "==", ELIGIBLE_STATUS))
            )
            users = [(doc.id, doc.to_dict()) for doc in users_query.stream()]
            if not users:
                return []

            refs = [self.db.collection(CONSULTANT_PROFILES).document(user_id) for user_id, _ in users]
            profiles = {doc.id: doc.to_dict() for doc in self.db.get_all(refs) if doc.exists}

            return [
                {"id": user_id, "user": user, "profile": profiles.get(user_id)}
                for user_id, user in users
            ]
        except Exception as e:
            raise RuntimeError(f"Failed to fetch consultants: {str(e)}")

    def replace_recommendations(
        self,
        project_id: str,
        documents: List[Dict[str, Any]],
        preserve_status: bool = False,
    ) -> None:
        """
        Atomically delete the project's previous recommendations and write the
        new batch. Unless preserve_status is set, a NEW/DIAGNOSED project is
        advanced to MATCH_RECOMMENDED. Assignment fields are never written.
        """
        try:
            collection = self.db.collection(RECOMMENDATIONS)
            existing = collection.where(filter=FieldFilter("project_id", "==", project_id)).stream()

            batch = self.db.batch()
            for doc in existing:
                batch.delete(doc.reference)
            for document in documents:
                batch.set(collection.document(), document)

            if not preserve_status:
                project_ref = self.db.collection(PROJECTS).document(project_id)
                project = project_ref.get()
                if project.exists and (project.to_dict() or {}).get("status") in ADVANCEABLE_STATUSES:
                    batch.update(project_ref, {"status": ProjectStatus.MATCH_RECOMMENDED.value})

            batch.commit()
            logger.info(f"[Firebase] Saved {len(documents)} recommendations for project {project_id}")
        except Exception as e:
            logger.error(f"[Firebase] Failed to save recommendations for project {project_id}: {e}", exc_info=True)
            raise RuntimeError(f"Failed to save recommendations for project {project_id}: {str(e)}")

    def get_recommendations(self, project_id: str) -> List[Dict[str, Any]]:
        try:
            query = self.db.collection(RECOMMENDATIONS).where(filter=FieldFilter("project_id", "==", project_id))
            documents = [doc.to_dict() for doc in query.stream()]
            return sorted(documents, key=lambda d: d.get("rank", 0))
        except Exception as e:
            raise RuntimeError(f"Failed to fetch recommendations for project {project_id}: {str(e)}")


class FirestoreCompanyRepository(CompanyRepository):
    def __init__(self, service: FirebaseService):
        self.service = service

    def get_company(self, project_id: str) -> Optional[CompanyProfile]:
        project = self.service.get_project(project_id)
        if project is None:
            return None
        return company_from_documents(project_id, project, self.service.get_interview(project_id))

    def get_self_assessment(self, project_id: str) -> Optional[SelfAssessmentScore]:
        return assessment_from_document(self.service.get_self_assessment(project_id))


class FirestoreConsultantRepository(ConsultantRepository):
    def __init__(self, service: FirebaseService):
        self.service = service

    def list_candidates(self) -> List[ConsultantCandidate]:
        return [
            candidate_from_documents(item["id"], item["user"], item["profile"])
            for item in self.service.list_consultants()
        ]


class FirestoreRecommendationStore(RecommendationStore):
    def __init__(self, service: FirebaseService):
        self.service = service

    def save_batch(
        self,
        project_id: str,
        recommendations: List[MatchingRecommendation],
        preserve_status: bool = False,
    ) -> None:
        documents = [recommendation_to_document(r) for r in sorted(recommendations, key=lambda r: r.rank)]
        self.service.replace_recommendations(project_id, documents, preserve_status=preserve_status)

    def get_batch(self, project_id: str) -> List[MatchingRecommendation]:
        return [MatchingRecommendation(**doc) for doc in self.service.get_recommendations(project_id)]


# Singleton instance
_firebase_service: Optional[FirebaseService] = None


def get_firebase_service() -> FirebaseService:
    """Get or create the Firebase service instance."""
    global _firebase_service
    if _firebase_service is None:
        _firebase_service = FirebaseService()
    return _firebase_service
