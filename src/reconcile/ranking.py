"""Ordering of scored candidates."""

from src.reconcile.models import CandidateLink

DEFAULT_RESULT_LIMIT = 5


def rank_key(link: CandidateLink) -> tuple:
    """Sort key: direct links, then submitted, then score, then most recent week.

    Candidates without a week anchor sort after every dated one in their tier.
    """
    recency = -link.week_anchor.toordinal() if link.week_anchor is not None else 0
    return (
        not link.is_direct_link,
        not link.is_submitted,
        -link.score,
        link.week_anchor is None,
        recency,
    )


def rank(links: list[CandidateLink], limit: int = DEFAULT_RESULT_LIMIT) -> list[CandidateLink]:
    """Return at most ``limit`` candidates in rank order.

    The sort is stable, so candidates with equal keys keep their input order.
    """
    return sorted(links, key=rank_key)[:limit]
