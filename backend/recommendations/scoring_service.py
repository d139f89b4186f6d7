"""
ScoringService: relevance scoring for recommendation candidates.
Implements an additive base + bonus formula where every contributing factor
is individually auditable through Recommendation.metadata.factors.
"""
from datetime import datetime, timezone as dt_timezone
from typing import Iterable, Optional, Tuple

from community.models import Blog
from recommendations.dtos import ScoringWeights
from trips.models import Package
from user.models import BudgetRange, UserProfile


def clamp_score(value: float) -> float:
    """Bounds a score into [0.0, 1.0]."""
    return max(0.0, min(1.0, value))


def _as_aware(value: datetime) -> datetime:
    # Documents read back from MongoDB may carry naive UTC datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=dt_timezone.utc)
    return value


class ScoringService:
    """
    Algorithm Service: computes a bounded relevance score for a candidate
    given a user profile and the reason it was collected.

    Every method is a pure function of its arguments: weights come from the
    ScoringWeights passed at construction and "now" is passed by the caller.
    """

    # Price bracket (inclusive) implied by each budget tier
    BUDGET_RANGES = {
        BudgetRange.BUDGET: (0, 1000),
        BudgetRange.MID_RANGE: (1000, 3000),
        BudgetRange.LUXURY: (3000, 10000),
    }
    DEFAULT_BUDGET = BudgetRange.MID_RANGE

    RECENCY_WINDOW_DAYS = 30

    def __init__(self, weights: Optional[ScoringWeights] = None):
        """Initialize scoring service with custom weights if provided"""
        self.weights = weights or ScoringWeights()

    @classmethod
    def budget_bounds(cls, budget_range: Optional[str]) -> Tuple[float, float]:
        """
        Maps a budget tier to its numeric price range.
        Unset or unknown tiers fall back to Mid-range.
        """
        return cls.BUDGET_RANGES.get(budget_range, cls.BUDGET_RANGES[cls.DEFAULT_BUDGET])

    def blog_score(self, blog: Blog, user: UserProfile, reason: str, now: datetime) -> float:
        """
        Calculates the relevance of a blog post.

        Formula:
        Score = Base + min(views/1000 + likes/100, 1) * W_P
                     + max(1 - days/30, 0) * W_R
                     + W_L if the blog's country is a preferred destination

        Args:
            blog: Blog candidate
            user: UserProfile the score is computed for
            reason: Reason code the blog was collected under
            now: Reference time for the recency term

        Returns:
            float: Score capped at 1.0. The base keeps it at or above 0.5.
        """
        score = self.weights.base_score

        popularity = min((blog.views or 0) / 1000 + (blog.likes_count or 0) / 100, 1)
        score += popularity * self.weights.popularity

        published = blog.published_at or blog.created_at
        if published is not None:
            days_since_published = (now - _as_aware(published)).total_seconds() / 86400
            recency = max(1 - days_since_published / self.RECENCY_WINDOW_DAYS, 0)
            score += recency * self.weights.recency

        if blog.country_code and blog.country_code in user.preferred_destinations:
            score += self.weights.location

        return min(score, 1.0)

    def package_score(self, package: Package, user: UserProfile, reason: str) -> float:
        """
        Calculates the relevance of a travel package.

        Formula:
        Score = Base + Bonus_budget if price is inside the user's budget tier
                     + W_L if the package's country is a preferred destination

        Args:
            package: Package candidate
            user: UserProfile the score is computed for
            reason: Reason code the package was collected under

        Returns:
            float: Score capped at 1.0
        """
        score = self.weights.base_score

        low, high = self.budget_bounds(user.budget_range)
        if low <= package.price <= high:
            score += self.weights.budget_match

        if package.country_code and package.country_code in user.preferred_destinations:
            score += self.weights.location

        return min(score, 1.0)

    def user_similarity(self, user: UserProfile, other: UserProfile) -> float:
        """
        Jaccard similarity between two users' preferred destinations.
        Used directly as the score of similar_interests candidates.
        """
        return self.jaccard(user.preferred_destinations, other.preferred_destinations)

    @staticmethod
    def jaccard(first: Iterable[str], second: Iterable[str]) -> float:
        """
        Formula: |A ∩ B| / |A ∪ B|, or 0.0 when both sets are empty.
        """
        a, b = set(first), set(second)
        union = a | b
        if not union:
            return 0.0
        return len(a & b) / len(union)
