"""
InteractionTracker: feedback loop from users back onto stored recommendations.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from django.utils import timezone

from recommendations.dtos import parse_object_id
from recommendations.exceptions import RecommendationNotFound
from recommendations.models import InteractionType, Recommendation

logger = logging.getLogger(__name__)


class InteractionTracker:
    """
    Records implicit interactions (viewed/clicked/liked/dismissed) and
    explicit feedback against a recommendation.
    """

    # Signed change applied to user_interaction.interaction_score
    SCORE_DELTAS = {
        InteractionType.VIEWED: 0.1,
        InteractionType.CLICKED: 0.3,
        InteractionType.LIKED: 0.5,
        InteractionType.DISMISSED: -0.2,
    }

    def __init__(self, clock: Callable[[], datetime] = timezone.now):
        self.clock = clock

    def get(self, recommendation_id) -> Recommendation:
        object_id = parse_object_id(recommendation_id)
        recommendation = Recommendation.objects(id=object_id).first() if object_id else None
        if recommendation is None:
            raise RecommendationNotFound(f"Recommendation {recommendation_id} not found")
        return recommendation

    def mark_interaction(self, recommendation_id, interaction_type: str) -> Recommendation:
        """
        Flags the interaction, stamps its time and adjusts the interaction
        score atomically. Unknown types leave the flags untouched and apply
        a zero delta; callers are expected to reject them beforehand.

        Args:
            recommendation_id: Id of the Recommendation
            interaction_type: One of InteractionType.CHOICES

        Returns:
            Recommendation: The updated document
        """
        recommendation = self.get(recommendation_id)

        update = {
            'inc__user_interaction__interaction_score': self.SCORE_DELTAS.get(interaction_type, 0.0),
        }
        if interaction_type in InteractionType.CHOICES:
            update[f'set__user_interaction__{interaction_type}'] = True
            update[f'set__user_interaction__{interaction_type}_at'] = self.clock()

        Recommendation.objects(id=recommendation.id).update_one(**update)
        recommendation.reload()

        logger.debug("Recorded %s on recommendation %s", interaction_type, recommendation.id)
        return recommendation

    def submit_feedback(self, recommendation_id, helpful: bool, feedback: Optional[str] = None) -> Recommendation:
        """Stores explicit "was this helpful" feedback on a recommendation."""
        recommendation = self.get(recommendation_id)

        update = {
            'set__user_interaction__helpful': helpful,
            'set__user_interaction__feedback_at': self.clock(),
        }
        if feedback is not None:
            update['set__user_interaction__feedback'] = feedback

        Recommendation.objects(id=recommendation.id).update_one(**update)
        recommendation.reload()
        return recommendation
