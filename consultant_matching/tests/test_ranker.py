"""
Unit tests for ranking, truncation and tie-breaking.
"""

import unittest

from consultant_matching.errors import InvalidInputError
from consultant_matching.models import ConsultantCandidate, ScoreBreakdown, ScoredCandidate
from consultant_matching.ranker import rank


def scored(user_id: str, industry: float, rest: float) -> ScoredCandidate:
    breakdown = [
        ScoreBreakdown(key="industry", criteria="업종 적합성", score=industry, max_score=30, explanation=""),
        ScoreBreakdown(key="expertise", criteria="전문분야 일치도", score=rest, max_score=70, explanation=""),
    ]
    return ScoredCandidate(
        candidate=ConsultantCandidate(user_id=user_id),
        breakdown=breakdown,
        total_score=round(industry + rest, 2),
    )


class TestRank(unittest.TestCase):

    def setUp(self):
        self.pool = [
            scored("u-c", 10, 40),  # 50
            scored("u-a", 30, 50),  # 80
            scored("u-d", 5, 20),   # 25
            scored("u-b", 20, 45),  # 65
        ]

    def test_sorted_descending_with_contiguous_ranks(self):
        ranked = rank(self.pool, 10)
        self.assertEqual([r.scored.user_id for r in ranked], ["u-a", "u-b", "u-c", "u-d"])
        self.assertEqual([r.rank for r in ranked], [1, 2, 3, 4])

    def test_monotonic_scores(self):
        ranked = rank(self.pool, 10)
        totals = [r.scored.total_score for r in ranked]
        for i in range(len(totals) - 1):
            self.assertGreaterEqual(totals[i], totals[i + 1])

    def test_truncates_to_top_n(self):
        ranked = rank(self.pool, 2)
        self.assertEqual(len(ranked), 2)
        self.assertEqual([r.scored.user_id for r in ranked], ["u-a", "u-b"])

    def test_fewer_candidates_than_top_n(self):
        ranked = rank(self.pool[:2], 5)
        self.assertEqual(len(ranked), 2)
        self.assertEqual([r.rank for r in ranked], [1, 2])

    def test_empty_pool(self):
        self.assertEqual(rank([], 3), [])

    def test_invalid_top_n(self):
        with self.assertRaises(InvalidInputError):
            rank(self.pool, 0)
        with self.assertRaises(InvalidInputError):
            rank(self.pool, True)

    def test_tie_broken_by_industry_score(self):
        ranked = rank([scored("u-1", 10, 50), scored("u-2", 20, 40)], 2)
        self.assertEqual([r.scored.user_id for r in ranked], ["u-2", "u-1"])

    def test_tie_broken_by_user_id(self):
        ranked = rank([scored("u-2", 20, 40), scored("u-10", 20, 40), scored("u-1", 20, 40)], 3)
        self.assertEqual([r.scored.user_id for r in ranked], ["u-1", "u-10", "u-2"])

    def test_independent_of_input_order(self):
        forward = rank(self.pool, 3)
        backward = rank(list(reversed(self.pool)), 3)
        self.assertEqual(forward, backward)

    def test_deterministic(self):
        self.assertEqual(rank(self.pool, 3), rank(self.pool, 3))


if __name__ == "__main__":
    unittest.main()
