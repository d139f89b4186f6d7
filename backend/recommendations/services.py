"""
RecommendationService: the entry point an API layer calls into.
Validates arguments with DRF serializers, checks ownership and delegates
to the generator, the interaction tracker and the query service.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from django.conf import settings
from django.utils import timezone

from recommendations.dtos import parse_object_id
from recommendations.exceptions import InvalidArgument, OwnershipError
from recommendations.generator import RecommendationGenerator
from recommendations.interaction_tracker import InteractionTracker
from recommendations.models import Recommendation
from recommendations.query_service import RecommendationQueryService
from recommendations.serializers import (
    FeedbackSerializer, InteractionSerializer, RecommendationListSerializer, TrendingQuerySerializer
)
from user.models import UserProfile

logger = logging.getLogger(__name__)


class RecommendationService:
    """
    Facade over the recommendation engine.

    Every method takes raw ids and raw parameter dicts the way a view would
    receive them, and raises the errors in recommendations.exceptions.
    """

    REFRESH_BATCH_PREVIEW = 10

    def __init__(
        self,
        generator: Optional[RecommendationGenerator] = None,
        tracker: Optional[InteractionTracker] = None,
        queries: Optional[RecommendationQueryService] = None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.clock = clock
        self.generator = generator or RecommendationGenerator(clock=clock)
        self.tracker = tracker or InteractionTracker(clock=clock)
        self.queries = queries or RecommendationQueryService(clock=clock)

    @staticmethod
    def _validated(serializer_class, data) -> Dict:
        serializer = serializer_class(data=data or {})
        if not serializer.is_valid():
            raise InvalidArgument(serializer.errors)
        return serializer.validated_data

    def _user(self, user_id) -> UserProfile:
        if parse_object_id(user_id) is None:
            raise InvalidArgument({'user_id': [f"'{user_id}' is not a valid id."]})
        return self.generator.load_user(user_id)

    def _owned(self, requester_id, recommendation_id) -> Recommendation:
        recommendation = self.tracker.get(recommendation_id)
        if recommendation.user_id != parse_object_id(requester_id):
            logger.warning(
                "User %s attempted to access recommendation %s owned by %s",
                requester_id, recommendation.id, recommendation.user_id
            )
            raise OwnershipError()
        return recommendation

    def generate(self, user_id) -> List[Recommendation]:
        """
        Runs a full generation for the user.

        Returns:
            List[Recommendation]: The rows written by this run
        """
        user = self._user(user_id)
        return self.generator.generate(user.id)

    def list(self, user_id, params: Optional[Dict] = None) -> Dict:
        """
        Lists a user's active recommendations.

        Args:
            user_id: Owner of the recommendations
            params: Raw query parameters (type, page, limit)

        Returns:
            dict: {'items': [Recommendation], 'pagination': {...}}
        """
        query = self._validated(RecommendationListSerializer, params)
        user = self._user(user_id)

        page = self.queries.list(user, type=query.get('type'), page=query['page'], limit=query['limit'])
        return {'items': page.items, 'pagination': page.pagination()}

    def mark_interaction(self, requester_id, recommendation_id, interaction_type: str) -> Recommendation:
        """Records an implicit interaction on a recommendation the requester owns."""
        data = self._validated(InteractionSerializer, {'interaction_type': interaction_type})
        self._owned(requester_id, recommendation_id)
        return self.tracker.mark_interaction(recommendation_id, data['interaction_type'])

    def stats(self, user_id) -> Dict:
        user = self._user(user_id)
        return self.queries.stats(user)

    def refresh(self, user_id) -> Dict:
        """
        Drops the user's recommendations older than REFRESH_AGE_HOURS and
        generates a fresh set.

        Returns:
            dict: {'count': rows written, 'recommendations': first rows of the batch}
        """
        user = self._user(user_id)
        batch = self.generator.refresh(
            user.id,
            older_than=timedelta(hours=settings.RECOMMENDATIONS['REFRESH_AGE_HOURS'])
        )
        return {
            'count': len(batch),
            'recommendations': batch[:self.REFRESH_BATCH_PREVIEW],
        }

    def trending(self, params: Optional[Dict] = None) -> List:
        """Public listing of trending entities; not tied to any user."""
        query = self._validated(TrendingQuerySerializer, params)
        return self.queries.trending(type=query['type'], limit=query['limit'])

    def submit_feedback(self, requester_id, recommendation_id, data: Optional[Dict] = None) -> Recommendation:
        """Stores helpful/not-helpful feedback on a recommendation the requester owns."""
        feedback = self._validated(FeedbackSerializer, data)
        self._owned(requester_id, recommendation_id)
        return self.tracker.submit_feedback(
            recommendation_id,
            helpful=feedback['helpful'],
            feedback=feedback.get('feedback') or None
        )

    def similar_users(self, user_id, limit: int = 10) -> List[Dict]:
        if limit < 1:
            raise InvalidArgument({'limit': ["Ensure this value is greater than or equal to 1."]})
        user = self._user(user_id)
        return self.queries.similar_users(user, limit=limit)
