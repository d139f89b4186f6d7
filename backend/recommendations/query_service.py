"""
RecommendationQueryService: read side of the engine.
Serves stored recommendations back to callers: paginated listing,
engagement statistics, trending entities and similar travelers.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from django.conf import settings
from django.utils import timezone
from mongoengine import Document

from recommendations.dtos import RecommendationPage
from recommendations.models import InteractionType, Reason, Recommendation, RecommendationType
from user.models import UserProfile

logger = logging.getLogger(__name__)


class RecommendationQueryService:
    """
    Read-only access to persisted recommendations.
    Expired rows are never returned, even before the TTL index removes them.
    """

    def __init__(self, clock: Callable[[], datetime] = timezone.now):
        self.clock = clock

    def _live(self, **filters):
        return Recommendation.objects(expires_at__gt=self.clock(), **filters)

    def list(self, user: UserProfile, type: Optional[str] = None, page: int = 1,
             limit: Optional[int] = None) -> RecommendationPage:
        """
        Lists a user's active recommendations, best first.

        Args:
            user: Owner of the recommendations
            type: Optional RecommendationType filter
            page: 1-based page number
            limit: Page size, defaults to DEFAULT_PAGE_SIZE

        Returns:
            RecommendationPage: The requested page and the total match count
        """
        limit = limit or settings.RECOMMENDATIONS['DEFAULT_PAGE_SIZE']
        filters = {'user': user}
        if type:
            filters['type'] = type

        queryset = self._live(**filters).order_by('-score', '-created_at')
        total = queryset.count()
        items = list(queryset.skip((page - 1) * limit).limit(limit))

        return RecommendationPage(items=items, total=total, page=page, limit=limit)

    def stats(self, user: UserProfile) -> Dict:
        """
        Engagement summary over a user's active recommendations.

        Returns:
            dict: {'overall': {...counts, avg_score}, 'by_type': [{type, count, avg_score}]}
        """
        queryset = self._live(user=user)
        total = queryset.count()

        overall = {'total': total}
        for interaction in InteractionType.CHOICES:
            overall[interaction] = queryset.filter(**{f'user_interaction__{interaction}': True}).count()
        overall['avg_score'] = queryset.average('score') if total else 0.0

        pipeline = [
            {'$group': {'_id': '$type', 'count': {'$sum': 1}, 'avg_score': {'$avg': '$score'}}},
            {'$sort': {'_id': 1}},
        ]
        by_type = [
            {'type': row['_id'], 'count': row['count'], 'avg_score': row['avg_score']}
            for row in queryset.aggregate(pipeline)
        ]

        return {'overall': overall, 'by_type': by_type}

    def trending(self, type: Optional[str] = None, limit: int = 10) -> List[Document]:
        """
        Entities recommended as trending across all users.
        Each target appears at most once, in the order of its best row.
        Targets deleted since they were recommended are skipped.
        """
        filters = {'reason': Reason.TRENDING}
        if type:
            filters['type'] = type

        rows = self._live(**filters).order_by('-score', '-created_at').only('target_id', 'target_model')

        entities = []
        seen = set()
        for row in rows:
            target = row.target
            if target in seen:
                continue
            seen.add(target)

            entity = target.resolve()
            if entity is None:
                logger.debug("Trending target %s:%s no longer exists", target.model, target.id)
                continue
            entities.append(entity)
            if len(entities) >= limit:
                break
        return entities

    def similar_users(self, user: UserProfile, limit: int = 10) -> List[Dict]:
        """
        Travelers recommended to the user for shared interests, with the
        similarity that ranked them.
        """
        rows = self._live(
            user=user,
            type=RecommendationType.USER,
            reason=Reason.SIMILAR_INTERESTS
        ).order_by('-score').limit(limit)

        similar = []
        for row in rows:
            profile = row.target.resolve()
            if profile is None:
                continue
            similar.append({
                'user': profile,
                'similarity_score': row.score,
                'reason': row.contextual_info.personalized_reason if row.contextual_info else None,
            })
        return similar
