"""
Aggregator & Ranker

Orders scored candidates and assigns contiguous ranks. Ordering never depends
on input order: total score desc, industry-fit sub-score desc, user ID asc.
"""

import logging
from typing import Iterable, List, Tuple

from .errors import InvalidInputError
from .models import RankedCandidate, ScoredCandidate

logger = logging.getLogger(__name__)

TIE_BREAK_CRITERION = "industry"


def ranking_key(candidate: ScoredCandidate) -> Tuple[float, float, str]:
    return (
        -candidate.total_score,
        -candidate.criterion_score(TIE_BREAK_CRITERION),
        candidate.user_id,
    )


def rank(candidates: Iterable[ScoredCandidate], top_n: int) -> List[RankedCandidate]:
    """
    Sort candidates and keep the first `top_n`, ranked 1..K.

    Fewer than `top_n` candidates are all returned; an empty pool yields [].

    Raises:
        InvalidInputError: if top_n < 1
    """
    if isinstance(top_n, bool) or not isinstance(top_n, int) or top_n < 1:
        raise InvalidInputError(f"top_n must be a positive integer, got {top_n!r}")

    ordered = sorted(candidates, key=ranking_key)
    ranked = [
        RankedCandidate(scored=candidate, rank=position)
        for position, candidate in enumerate(ordered[:top_n], 1)
    ]
    if ranked:
        logger.info(
            f"Ranked {len(ordered)} candidates, kept {len(ranked)} "
            f"(top: {ranked[0].scored.user_id} = {ranked[0].scored.total_score:.2f})"
        )
    else:
        logger.info("No candidates to rank")
    return ranked
