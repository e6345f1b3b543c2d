"""
Tests for Firestore document conversion and the Firestore-backed repositories,
using an in-process stand-in for FirebaseService.
"""

import unittest

from consultant_matching.firebase_service import (
    FirestoreCompanyRepository,
    FirestoreConsultantRepository,
    FirestoreRecommendationStore,
    assessment_from_document,
    candidate_from_documents,
    company_from_documents,
    recommendation_to_document,
)
from consultant_matching.matcher import MatchingEngine
from consultant_matching.models import MatchingRecommendation, ScoreBreakdown
from consultant_matching.repositories import ADVANCEABLE_STATUSES
from consultant_matching.tests.factories import make_assessment, make_profile


class FakeFirebaseService:
    """Dict-backed replacement exposing the FirebaseService methods the repositories call."""

    def __init__(self, projects=None, assessments=None, interviews=None, consultants=None):
        self.projects = projects or {}
        self.assessments = assessments or {}
        self.interviews = interviews or {}
        self.consultants = consultants or []
        self.recommendations = {}
        self.replace_calls = []

    def get_project(self, project_id):
        return self.projects.get(project_id)

    def get_self_assessment(self, project_id):
        return self.assessments.get(project_id)

    def get_interview(self, project_id):
        return self.interviews.get(project_id)

    def list_consultants(self):
        return list(self.consultants)

    def replace_recommendations(self, project_id, documents, preserve_status=False):
        self.replace_calls.append((project_id, len(documents), preserve_status))
        self.recommendations[project_id] = list(documents)
        project = self.projects.get(project_id)
        if not preserve_status and project and project.get("status") in ADVANCEABLE_STATUSES:
            project["status"] = "MATCH_RECOMMENDED"

    def get_recommendations(self, project_id):
        return sorted(self.recommendations.get(project_id, []), key=lambda d: d.get("rank", 0))


def recommendation(user_id, rank, total=80.0):
    return MatchingRecommendation(
        project_id="project-1",
        candidate_user_id=user_id,
        total_score=total,
        score_breakdown=[
            ScoreBreakdown(key="industry", criteria="업종 적합성", score=30, max_score=30, explanation="제조업 경험"),
        ],
        rationale="강점: 업종 적합성(30/30).",
        rank=rank,
    )


class TestDocumentConversion(unittest.TestCase):

    def test_company_from_documents(self):
        company = company_from_documents(
            "project-1",
            {"company_name": "한빛정밀", "industry": "제조업", "company_size": "50-299", "status": "DIAGNOSED"},
            {"job_tasks": [{"job_category": "품질", "task_name": "검사"}], "pain_points": [{"description": "불량"}]},
        )
        self.assertEqual(company.industry, "제조업")
        self.assertEqual(company.sub_industries, [])
        self.assertEqual(company.job_tasks[0].job_category, "품질")
        self.assertEqual(company.pain_points[0].description, "불량")

    def test_assessment_from_document(self):
        self.assertIsNone(assessment_from_document(None))
        self.assertIsNone(assessment_from_document({"project_id": "project-1"}))
        scores = make_assessment().model_dump()
        assessment = assessment_from_document({"project_id": "project-1", "scores": scores})
        self.assertEqual(assessment.total_score, scores["total_score"])

    def test_candidate_defaults_are_ineligible(self):
        candidate = candidate_from_documents("c-1", {}, None)
        self.assertEqual(candidate.role.value, "PUBLIC")
        self.assertEqual(candidate.status.value, "SUSPENDED")
        self.assertIsNone(candidate.profile)

    def test_recommendation_document_is_json_ready(self):
        document = recommendation_to_document(recommendation("c-1", 1))
        self.assertEqual(document["candidate_user_id"], "c-1")
        self.assertEqual(document["score_breakdown"][0]["criteria"], "업종 적합성")
        self.assertIsInstance(document["created_at"], str)


class TestFirestoreRepositories(unittest.TestCase):

    def setUp(self):
        self.service = FakeFirebaseService(
            projects={"project-1": {"industry": "제조업", "company_size": "50-299", "status": "DIAGNOSED"}},
            assessments={"project-1": {"project_id": "project-1", "scores": make_assessment().model_dump()}},
            consultants=[
                {
                    "id": "c-1",
                    "user": {"name": "김컨설", "role": "CONSULTANT_APPROVED", "status": "ACTIVE"},
                    "profile": make_profile().model_dump(mode="json"),
                },
                {
                    "id": "c-2",
                    "user": {"name": "이컨설", "role": "CONSULTANT_APPROVED", "status": "ACTIVE"},
                    "profile": None,
                },
            ],
        )

    def test_company_repository(self):
        repo = FirestoreCompanyRepository(self.service)
        self.assertIsNone(repo.get_company("missing"))
        self.assertEqual(repo.get_company("project-1").company_size, "50-299")
        self.assertIsNotNone(repo.get_self_assessment("project-1"))

    def test_consultant_repository(self):
        candidates = FirestoreConsultantRepository(self.service).list_candidates()
        self.assertEqual([c.user_id for c in candidates], ["c-1", "c-2"])
        self.assertIsNone(candidates[1].profile)

    def test_store_writes_ranked_documents(self):
        store = FirestoreRecommendationStore(self.service)
        store.save_batch("project-1", [recommendation("c-2", 2, 70.0), recommendation("c-1", 1)], preserve_status=True)
        self.assertEqual(self.service.replace_calls, [("project-1", 2, True)])
        self.assertEqual(self.service.projects["project-1"]["status"], "DIAGNOSED")
        batch = store.get_batch("project-1")
        self.assertEqual([r.candidate_user_id for r in batch], ["c-1", "c-2"])

    def test_engine_over_firestore_repositories(self):
        store = FirestoreRecommendationStore(self.service)
        engine = MatchingEngine(
            FirestoreCompanyRepository(self.service),
            FirestoreConsultantRepository(self.service),
            recommendation_store=store,
        )
        result = engine.generate_recommendations("project-1")
        self.assertEqual([r.candidate_user_id for r in result.recommendations], ["c-1"])
        self.assertEqual(result.candidates_eligible, 1)
        self.assertEqual(self.service.projects["project-1"]["status"], "MATCH_RECOMMENDED")
        self.assertEqual(store.get_batch("project-1")[0].total_score, result.recommendations[0].total_score)

    def test_null_arrays_in_profile_document(self):
        profile = make_profile().model_dump(mode="json")
        profile["sub_industries"] = None
        profile["coaching_methods"] = None
        self.service.consultants[1]["profile"] = profile
        candidates = FirestoreConsultantRepository(self.service).list_candidates()
        self.assertEqual(candidates[1].profile.sub_industries, [])
        self.assertEqual(candidates[1].profile.coaching_methods, [])

        engine = MatchingEngine(FirestoreCompanyRepository(self.service), FirestoreConsultantRepository(self.service))
        result = engine.generate_recommendations("project-1")
        self.assertEqual(sorted(r.candidate_user_id for r in result.recommendations), ["c-1", "c-2"])

    def test_null_required_array_excludes_only_that_consultant(self):
        profile = make_profile().model_dump(mode="json")
        profile["teaching_levels"] = None
        self.service.consultants[1]["profile"] = profile

        engine = MatchingEngine(FirestoreCompanyRepository(self.service), FirestoreConsultantRepository(self.service))
        result = engine.generate_recommendations("project-1")
        self.assertEqual([r.candidate_user_id for r in result.recommendations], ["c-1"])
        self.assertEqual(result.candidates_total, 2)
        self.assertEqual(result.candidates_eligible, 1)


if __name__ == "__main__":
    unittest.main()
