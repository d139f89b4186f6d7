"""
Candidate collectors: bounded queries that propose entities of one type,
each tagged with the reason it was picked.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from django.utils import timezone
from mongoengine import Document

from community.models import Blog
from locations.models import Country
from recommendations.dtos import Candidate, Target
from recommendations.models import Reason
from recommendations.scoring_service import ScoringService
from trips.models import Package
from user.models import FavoritePlace, UserProfile

logger = logging.getLogger(__name__)


class CandidateCollector(ABC):
    """
    Abstract base class for candidate collectors.
    Subclasses query one collection, never return the requesting user or
    anything they authored, and stop at `limit` results.
    """

    reason: str = None
    limit: int = 10
    confidence: float = 0.5
    factors: List[str] = []

    def __init__(self, scoring: ScoringService, clock: Callable[[], datetime] = timezone.now):
        self.scoring = scoring
        self.clock = clock

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def collect(self, user: UserProfile) -> List[Candidate]:
        """
        Proposes scored candidates for a user.

        Args:
            user: UserProfile with preferences and follow list loaded

        Returns:
            List[Candidate]: At most `limit` candidates tagged with `reason`
        """
        pass

    def _candidate(self, document: Document, score: float, personalized_reason: Optional[str]) -> Candidate:
        return Candidate(
            target=Target.of(document),
            reason=self.reason,
            score=score,
            confidence=self.confidence,
            factors=list(self.factors),
            personalized_reason=personalized_reason,
            trending=self.reason == Reason.TRENDING,
        )


class LocationBasedBlogCollector(CandidateCollector):
    """Published blogs geotagged in one of the user's preferred countries."""

    reason = Reason.LOCATION_BASED
    confidence = 0.75
    factors = ['location_match', 'interests']

    def collect(self, user: UserProfile) -> List[Candidate]:
        countries = user.preferred_destinations
        if not countries:
            return []

        blogs = Blog.published()(
            geotag__country_code__in=countries,
            author__ne=user
        ).limit(self.limit)

        now = self.clock()
        return [
            self._candidate(
                blog,
                self.scoring.blog_score(blog, user, self.reason, now),
                f"Because you're interested in {blog.geotag.country or blog.country_code}"
            )
            for blog in blogs
        ]


class TrendingBlogCollector(CandidateCollector):
    """Most viewed published blogs of the last 30 days."""

    reason = Reason.TRENDING
    confidence = 0.65
    factors = ['popularity', 'recency']
    window = timedelta(days=30)

    def collect(self, user: UserProfile) -> List[Candidate]:
        now = self.clock()
        blogs = Blog.published()(
            author__ne=user,
            created_at__gte=now - self.window
        ).order_by('-views', '-likes_count').limit(self.limit)

        return [
            self._candidate(
                blog,
                self.scoring.blog_score(blog, user, self.reason, now),
                "This is trending among travel enthusiasts"
            )
            for blog in blogs
        ]


class FollowedAuthorBlogCollector(CandidateCollector):
    """Latest posts from people the user follows. A direct social signal, so the score is fixed."""

    reason = Reason.FRIENDS_ACTIVITY
    limit = 5
    confidence = 0.9
    factors = ['social_connection']
    score = 0.85

    def collect(self, user: UserProfile) -> List[Candidate]:
        following = user.following_ids()
        if not following:
            return []

        blogs = Blog.published()(author__in=following).order_by('-created_at').limit(self.limit)
        return [self._candidate(blog, self.score, "From someone you follow") for blog in blogs]


class BudgetPackageCollector(CandidateCollector):
    """Packages inside the user's budget tier and located in a preferred country."""

    reason = Reason.PRICE_RANGE
    confidence = 0.8
    factors = ['budget_match', 'location_preference']

    def collect(self, user: UserProfile) -> List[Candidate]:
        countries = user.preferred_destinations
        if not countries:
            return []

        budget_range = user.budget_range or ScoringService.DEFAULT_BUDGET
        low, high = self.scoring.budget_bounds(budget_range)

        packages = Package.objects(
            price__gte=low,
            price__lte=high,
            location__country_code__in=countries,
            created_by__ne=user
        ).limit(self.limit)

        return [
            self._candidate(
                package,
                self.scoring.package_score(package, user, self.reason),
                f"Perfect for your {budget_range.lower()} budget"
            )
            for package in packages
        ]


class PopularPackageCollector(CandidateCollector):
    """Most booked packages published in the last 90 days."""

    reason = Reason.POPULAR_AMONG_SIMILAR_USERS
    confidence = 0.7
    factors = ['popularity']
    window = timedelta(days=90)

    def collect(self, user: UserProfile) -> List[Candidate]:
        packages = Package.objects(
            created_at__gte=self.clock() - self.window,
            created_by__ne=user
        ).order_by('-bookings_count').limit(self.limit)

        return [
            self._candidate(
                package,
                self.scoring.package_score(package, user, self.reason),
                "Popular among travelers like you"
            )
            for package in packages
        ]


class SimilarUserCollector(CandidateCollector):
    """Travelers sharing at least one preferred destination, scored by Jaccard similarity."""

    reason = Reason.SIMILAR_INTERESTS
    confidence = 0.75
    factors = ['interest_overlap']

    def collect(self, user: UserProfile) -> List[Candidate]:
        countries = user.preferred_destinations
        if not countries:
            return []

        others = UserProfile.objects(
            travel_preferences__preferred_destinations__in=countries,
            id__nin=[user.id] + user.following_ids(),
            role__in=[UserProfile.Role.AUTHOR, UserProfile.Role.VISITOR]
        ).limit(self.limit)

        return [
            self._candidate(
                other,
                self.scoring.user_similarity(user, other),
                "Shares similar travel interests"
            )
            for other in others
        ]


class ActiveAuthorCollector(CandidateCollector):
    """Authors the user does not follow yet."""

    reason = Reason.TRENDING
    limit = 5
    confidence = 0.6
    factors = ['activity']
    score = 0.7

    def collect(self, user: UserProfile) -> List[Candidate]:
        authors = UserProfile.objects(
            role=UserProfile.Role.AUTHOR,
            id__nin=[user.id] + user.following_ids()
        ).limit(self.limit)

        return [self._candidate(author, self.score, "Active travel blogger") for author in authors]


class TrendingDestinationCollector(CandidateCollector):
    """
    Countries with the most published blogs, minus the ones the user has
    already saved as favorite places.
    """

    reason = Reason.TRENDING
    confidence = 0.5
    factors = ['trending']
    score = 0.6

    def collect(self, user: UserProfile) -> List[Candidate]:
        pipeline = [
            {'$match': {'status': Blog.Status.PUBLISHED, 'geotag.country_code': {'$ne': None}}},
            {'$group': {'_id': '$geotag.country_code', 'count': {'$sum': 1}}},
            {'$sort': {'count': -1, '_id': 1}},
            {'$limit': self.limit},
        ]
        counts = [(row['_id'], row['count']) for row in Blog.objects.aggregate(pipeline)]

        favorites = set(FavoritePlace.objects(user=user).distinct('country_code'))
        countries = Country.by_codes(code for code, _ in counts)

        candidates = []
        for code, count in counts:
            if code in favorites:
                continue
            country = countries.get(code)
            if country is None:
                logger.debug("No Country document for trending code %s, skipping", code)
                continue
            candidates.append(self._candidate(
                country,
                self.score,
                f"{country.name} is trending with {count} recent posts"
            ))
        return candidates


def default_collectors(scoring: ScoringService, clock: Callable[[], datetime] = timezone.now) -> List[CandidateCollector]:
    """The full collector set used by RecommendationGenerator."""
    return [
        LocationBasedBlogCollector(scoring, clock),
        TrendingBlogCollector(scoring, clock),
        FollowedAuthorBlogCollector(scoring, clock),
        BudgetPackageCollector(scoring, clock),
        PopularPackageCollector(scoring, clock),
        SimilarUserCollector(scoring, clock),
        ActiveAuthorCollector(scoring, clock),
        TrendingDestinationCollector(scoring, clock),
    ]
