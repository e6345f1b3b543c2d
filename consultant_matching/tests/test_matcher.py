"""
End-to-end tests for the matching engine with in-memory repositories.
"""

import threading
import time
import unittest
import logging

from consultant_matching import (
    CompanyNotFoundError,
    InvalidInputError,
    MatchingEngine,
    MissingSelfAssessmentError,
    generate_matching_recommendations,
)
from consultant_matching.matcher import eligibility_issue, filter_eligible
from consultant_matching.models import MatchingSettings, MatchingStatus
from consultant_matching.repositories import (
    InMemoryCompanyRepository,
    InMemoryConsultantRepository,
    InMemoryRecommendationStore,
)
from consultant_matching.tests.factories import (
    candidate_pool,
    make_candidate,
    make_company,
)
from consultant_matching.text_generator import TextGenerator

logging.basicConfig(level=logging.INFO)


class BrokenGenerator(TextGenerator):
    def generate(self, prompt: str) -> str:
        raise TimeoutError("upstream timeout")


class StalledGenerator(TextGenerator):
    def generate(self, prompt: str) -> str:
        time.sleep(2.0)
        return "too late"


def build_engine(companies=None, candidates=None, store=None, **kwargs):
    companies = companies if companies is not None else [make_company()]
    candidates = candidates if candidates is not None else candidate_pool()
    return MatchingEngine(
        InMemoryCompanyRepository(companies),
        InMemoryConsultantRepository(candidates),
        recommendation_store=store,
        **kwargs,
    )


def comparable(result):
    return [
        (r.candidate_user_id, r.total_score, r.rank, r.score_breakdown, r.rationale)
        for r in result.recommendations
    ]


class TestEligibility(unittest.TestCase):

    def test_approved_active_with_profile_is_eligible(self):
        self.assertIsNone(eligibility_issue(make_candidate("c-1")))

    def test_ineligible_reasons(self):
        self.assertIn("role", eligibility_issue(make_candidate("c-1", role="USER_PENDING")))
        self.assertIn("status", eligibility_issue(make_candidate("c-1", status="SUSPENDED")))
        self.assertEqual(eligibility_issue(make_candidate("c-1", with_profile=False)), "no profile")
        self.assertIn("skill_tags", eligibility_issue(make_candidate("c-1", skill_tags=[])))

    def test_filter_eligible(self):
        eligible, excluded = filter_eligible([
            make_candidate("c-1"),
            make_candidate("c-2", status="SUSPENDED"),
            make_candidate("c-3", expertise_domains=[]),
        ])
        self.assertEqual([c.user_id for c in eligible], ["c-1"])
        self.assertEqual(set(excluded), {"c-2", "c-3"})


class TestScenarios(unittest.TestCase):

    def test_perfect_match_ranked_first(self):
        result = build_engine().generate_recommendations("project-1")
        self.assertEqual(result.status, MatchingStatus.GENERATED)
        top = result.recommendations[0]
        self.assertEqual(top.candidate_user_id, "c-perfect")
        self.assertEqual(top.rank, 1)
        self.assertAlmostEqual(top.total_score, 100, places=2)

    def test_no_eligible_candidates(self):
        store = InMemoryRecommendationStore()
        result = build_engine(candidates=[], store=store).generate_recommendations("project-1")
        self.assertEqual(result.status, MatchingStatus.NO_ELIGIBLE_CANDIDATES)
        self.assertEqual(result.recommendations, [])
        self.assertEqual(store.get_batch("project-1"), [])

    def test_only_ineligible_candidates(self):
        candidates = [
            make_candidate("c-1", status="SUSPENDED"),
            make_candidate("c-2", role="OPS_ADMIN"),
            make_candidate("c-3", with_profile=False),
            make_candidate("c-4", teaching_levels=[]),
        ]
        result = build_engine(candidates=candidates).generate_recommendations("project-1")
        self.assertEqual(result.recommendations, [])
        self.assertEqual(result.candidates_total, 4)
        self.assertEqual(result.candidates_eligible, 0)

    def test_missing_self_assessment(self):
        store = InMemoryRecommendationStore()
        engine = build_engine(companies=[make_company(with_assessment=False)], store=store)
        with self.assertRaises(MissingSelfAssessmentError) as ctx:
            engine.generate_recommendations("project-1")
        self.assertEqual(ctx.exception.code, "MISSING_SELF_ASSESSMENT")
        self.assertEqual(store.batches, {})

    def test_unknown_project(self):
        with self.assertRaises(CompanyNotFoundError):
            build_engine().generate_recommendations("missing-project")

    def test_partial_industry_overlap(self):
        company = make_company(industry="IT/소프트웨어", sub_industries=[])
        candidate = make_candidate("c-1", available_industries=["교육"], sub_industries=["소프트웨어 개발"])
        result = build_engine(companies=[company], candidates=[candidate]).generate_recommendations("project-1")
        industry = result.recommendations[0].score_breakdown[0]
        self.assertEqual(industry.key, "industry")
        self.assertGreater(industry.score, 0)
        self.assertLess(industry.score, industry.max_score)

    def test_malformed_candidate_aborts_run(self):
        store = InMemoryRecommendationStore()
        candidates = candidate_pool() + [make_candidate("c-bad", years_of_experience=-3)]
        engine = build_engine(candidates=candidates, store=store)
        with self.assertRaises(InvalidInputError):
            engine.generate_recommendations("project-1")
        self.assertEqual(store.batches, {})


class TestRankingProperties(unittest.TestCase):

    def test_top_n_contract(self):
        engine = build_engine()
        for top_n in (1, 2, 4, 10):
            result = engine.generate_recommendations("project-1", top_n=top_n)
            self.assertEqual(len(result.recommendations), min(top_n, 4))
            self.assertEqual([r.rank for r in result.recommendations], list(range(1, len(result.recommendations) + 1)))

    def test_default_top_n(self):
        result = build_engine().generate_recommendations("project-1")
        self.assertEqual(result.top_n, 3)
        self.assertEqual(len(result.recommendations), 3)

    def test_top_n_out_of_range(self):
        engine = build_engine()
        for bad in (0, -1, 11):
            with self.assertRaises(InvalidInputError):
                engine.generate_recommendations("project-1", top_n=bad)

    def test_score_bounds_and_sum(self):
        result = build_engine().generate_recommendations("project-1", top_n=10)
        for rec in result.recommendations:
            for item in rec.score_breakdown:
                self.assertGreaterEqual(item.score, 0)
                self.assertLessEqual(item.score, item.max_score)
            self.assertAlmostEqual(rec.total_score, sum(i.score for i in rec.score_breakdown), places=6)

    def test_monotonic(self):
        result = build_engine().generate_recommendations("project-1", top_n=10)
        totals = [r.total_score for r in result.recommendations]
        self.assertEqual(totals, sorted(totals, reverse=True))

    def test_deterministic_runs(self):
        engine = build_engine()
        first = engine.generate_recommendations("project-1", top_n=4)
        second = engine.generate_recommendations("project-1", top_n=4)
        self.assertEqual(comparable(first), comparable(second))

    def test_tie_break_by_user_id(self):
        candidates = [make_candidate("c-b"), make_candidate("c-a"), make_candidate("c-c")]
        result = build_engine(candidates=candidates).generate_recommendations("project-1")
        self.assertEqual([r.candidate_user_id for r in result.recommendations], ["c-a", "c-b", "c-c"])

    def test_single_worker_matches_pool(self):
        pooled = build_engine().generate_recommendations("project-1", top_n=4)
        serial = build_engine(settings=MatchingSettings(max_workers=1)).generate_recommendations("project-1", top_n=4)
        self.assertEqual(comparable(pooled), comparable(serial))

    def test_custom_weights(self):
        weights = {"industry": 40, "expertise": 20, "skills": 20, "experience": 10, "availability": 10}
        result = build_engine(settings=MatchingSettings(criteria_weights=weights)).generate_recommendations("project-1")
        top = result.recommendations[0]
        self.assertEqual(top.score_breakdown[0].max_score, 40)
        self.assertAlmostEqual(top.total_score, 100, places=2)

    def test_invalid_weights_rejected(self):
        with self.assertRaises(ValueError):
            MatchingSettings(criteria_weights={"industry": 50, "expertise": 25, "skills": 20, "experience": 15, "availability": 10})
        with self.assertRaises(ValueError):
            MatchingSettings(criteria_weights={"industry": 100})


class TestPersistence(unittest.TestCase):

    def test_batch_saved_and_status_advanced(self):
        store = InMemoryRecommendationStore({"project-1": {"status": "DIAGNOSED", "assigned_consultant_id": None}})
        result = build_engine(store=store).generate_recommendations("project-1")
        self.assertEqual(store.get_batch("project-1"), result.recommendations)
        self.assertEqual(store.projects["project-1"]["status"], "MATCH_RECOMMENDED")

    def test_preserve_status_leaves_project_untouched(self):
        for status in ("DIAGNOSED", "ASSIGNED", "INTERVIEWED"):
            project = {"status": status, "assigned_consultant_id": "c-assigned", "assignment_reason": "기존 배정"}
            store = InMemoryRecommendationStore({"project-1": dict(project)})
            build_engine(store=store).generate_recommendations("project-1", preserve_status=True)
            self.assertEqual(store.snapshot_project("project-1"), project)
            self.assertEqual(len(store.get_batch("project-1")), 3)

    def test_assigned_project_not_downgraded(self):
        store = InMemoryRecommendationStore({"project-1": {"status": "ASSIGNED", "assigned_consultant_id": "c-x"}})
        build_engine(store=store).generate_recommendations("project-1")
        self.assertEqual(store.projects["project-1"], {"status": "ASSIGNED", "assigned_consultant_id": "c-x"})

    def test_regeneration_supersedes_batch(self):
        store = InMemoryRecommendationStore()
        engine = build_engine(store=store)
        engine.generate_recommendations("project-1", top_n=2)
        engine.generate_recommendations("project-1", top_n=3, preserve_status=True)
        self.assertEqual(len(store.batches["project-1"]), 2)
        self.assertEqual(len(store.get_batch("project-1")), 3)

    def test_inputs_not_mutated(self):
        company = make_company()
        candidates = candidate_pool()
        before = (company.model_dump(), [c.model_dump() for c in candidates])
        build_engine(companies=[company], candidates=candidates).generate_recommendations("project-1")
        self.assertEqual(before, (company.model_dump(), [c.model_dump() for c in candidates]))

    def test_concurrent_runs(self):
        store = InMemoryRecommendationStore()
        engine = build_engine(store=store)
        results = []

        def run():
            results.append(engine.generate_recommendations("project-1"))

        threads = [threading.Thread(target=run) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(results), 4)
        self.assertTrue(all(comparable(r) == comparable(results[0]) for r in results))
        self.assertEqual(len(store.batches["project-1"]), 4)


class TestRationaleIntegration(unittest.TestCase):

    def test_broken_generator_does_not_fail_run(self):
        result = build_engine(text_generator=BrokenGenerator()).generate_recommendations("project-1")
        self.assertEqual(len(result.recommendations), 3)
        self.assertTrue(result.recommendations[0].rationale.startswith("강점:"))

    def test_stalled_generator_bounded_by_one_budget(self):
        settings = MatchingSettings(rationale_timeout_seconds=0.5)
        engine = build_engine(text_generator=StalledGenerator(), settings=settings)
        started = time.monotonic()
        result = engine.generate_recommendations("project-1", top_n=4)
        elapsed = time.monotonic() - started
        self.assertLess(elapsed, 1.0)
        self.assertEqual(len(result.recommendations), 4)
        templated = build_engine().generate_recommendations("project-1", top_n=4)
        self.assertEqual(
            [r.rationale for r in result.recommendations],
            [r.rationale for r in templated.recommendations],
        )

    def test_convenience_function(self):
        recs = generate_matching_recommendations(
            "project-1",
            InMemoryCompanyRepository([make_company()]),
            InMemoryConsultantRepository(candidate_pool()),
            top_n=2,
        )
        self.assertEqual([r.rank for r in recs], [1, 2])
        self.assertEqual(recs[0].candidate_user_id, "c-perfect")


if __name__ == "__main__":
    unittest.main()
