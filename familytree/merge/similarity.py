"""
Name similarity for pairing children across trees.

Scores are on a 0-100 scale:
- exact match (case and whitespace insensitive): 100
- one name contains the other: 80
- same first three letters: 60
- otherwise SequenceMatcher ratio * 100
"""

from difflib import SequenceMatcher
from typing import Optional

from familytree.config import settings
from familytree.merge.models import ChildProfile, SuggestedPair


def _normalize_name(name: str) -> str:
    return " ".join((name or "").lower().split())


def name_similarity(name1: str, name2: str) -> int:
    """Similarity of two names, 0-100. Empty names score 0."""
    n1 = _normalize_name(name1)
    n2 = _normalize_name(name2)
    if not n1 or not n2:
        return 0

    if n1 == n2:
        return 100
    if n1 in n2 or n2 in n1:
        return 80
    if len(n1) >= 3 and len(n2) >= 3 and n1[:3] == n2[:3]:
        return 60
    return round(SequenceMatcher(None, n1, n2).ratio() * 100)


class NameSimilarityOracle:
    """
    Proposes child pairings by name.

    Source children are visited in order; each takes the best-scoring
    unused target child of the same gender, if that score reaches the
    threshold.
    """

    def __init__(self, threshold: Optional[int] = None):
        self.threshold = settings.merge.suggestion_threshold if threshold is None else threshold

    def suggest(
        self,
        source_children: list[ChildProfile],
        target_children: list[ChildProfile]
    ) -> list[SuggestedPair]:
        suggestions = []
        used: set[str] = set()

        for source in source_children:
            available = [
                t for t in target_children
                if t.gender == source.gender and t.id not in used
            ]
            if not available:
                continue

            # max() keeps the first of equal scores, so ties go to list order
            best = max(available, key=lambda t: name_similarity(source.name, t.name))
            score = name_similarity(source.name, best.name)
            if score >= self.threshold:
                suggestions.append(SuggestedPair(source_child=source, target_child=best, similarity=score))
                used.add(best.id)

        return suggestions
