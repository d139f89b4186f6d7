"""
MongoDB documents owned by the recommendation engine.
"""
from datetime import timedelta

from django.conf import settings
from django.utils import timezone
from mongoengine import (
    Document, EmbeddedDocument, EmbeddedDocumentField, StringField,
    ListField, ReferenceField, DateTimeField, FloatField, BooleanField,
    ObjectIdField, ValidationError
)

from user.models import UserProfile


class RecommendationType:
    """Enumeration for the kind of entity being recommended"""
    BLOG = 'blog'
    PACKAGE = 'package'
    DESTINATION = 'destination'
    USER = 'user'
    ACTIVITY = 'activity'

    CHOICES = (BLOG, PACKAGE, DESTINATION, USER, ACTIVITY)


class TargetModel:
    """Collections a recommendation can point into"""
    BLOG = 'Blog'
    PACKAGE = 'Package'
    COUNTRY = 'Country'
    USER = 'User'
    TRIP_PLAN = 'TripPlan'

    CHOICES = (BLOG, PACKAGE, COUNTRY, USER, TRIP_PLAN)


# Every recommendation type lives in exactly one collection
TYPE_TARGET_MODEL = {
    RecommendationType.BLOG: TargetModel.BLOG,
    RecommendationType.PACKAGE: TargetModel.PACKAGE,
    RecommendationType.DESTINATION: TargetModel.COUNTRY,
    RecommendationType.USER: TargetModel.USER,
    RecommendationType.ACTIVITY: TargetModel.TRIP_PLAN,
}


class Reason:
    """Categorical explanation attached to a recommendation"""
    SIMILAR_INTERESTS = 'similar_interests'
    LOCATION_BASED = 'location_based'
    TRENDING = 'trending'
    FRIENDS_ACTIVITY = 'friends_activity'
    PRICE_RANGE = 'price_range'
    SEASONAL = 'seasonal'
    AI_GENERATED = 'ai_generated'
    POPULAR_AMONG_SIMILAR_USERS = 'popular_among_similar_users'
    RECENTLY_VIEWED = 'recently_viewed'
    WISHLIST_SIMILAR = 'wishlist_similar'

    CHOICES = (
        SIMILAR_INTERESTS, LOCATION_BASED, TRENDING, FRIENDS_ACTIVITY,
        PRICE_RANGE, SEASONAL, AI_GENERATED, POPULAR_AMONG_SIMILAR_USERS,
        RECENTLY_VIEWED, WISHLIST_SIMILAR,
    )


class InteractionType:
    """Implicit user responses to a recommendation"""
    VIEWED = 'viewed'
    CLICKED = 'clicked'
    LIKED = 'liked'
    DISMISSED = 'dismissed'

    CHOICES = (VIEWED, CLICKED, LIKED, DISMISSED)


def default_expiry():
    return timezone.now() + timedelta(days=settings.RECOMMENDATIONS['TTL_DAYS'])


class RecommendationMetadata(EmbeddedDocument):
    confidence = FloatField(min_value=0, max_value=1, null=True)
    # e.g. ['budget_match', 'location_preference']
    factors = ListField(StringField(), default=list)
    ai_model = StringField(null=True)
    generated_at = DateTimeField(default=timezone.now)


class UserInteraction(EmbeddedDocument):
    """
    Implicit engagement flags with their timestamps, the running
    interaction score, and explicit feedback.
    """
    viewed = BooleanField(default=False)
    clicked = BooleanField(default=False)
    liked = BooleanField(default=False)
    dismissed = BooleanField(default=False)
    viewed_at = DateTimeField(null=True)
    clicked_at = DateTimeField(null=True)
    liked_at = DateTimeField(null=True)
    dismissed_at = DateTimeField(null=True)
    interaction_score = FloatField(default=0.0)

    helpful = BooleanField(null=True)
    feedback = StringField(max_length=1000, null=True)
    feedback_at = DateTimeField(null=True)


class LocationSnapshot(EmbeddedDocument):
    country = StringField(null=True)
    city = StringField(null=True)


class ContextualInfo(EmbeddedDocument):
    user_location = EmbeddedDocumentField(LocationSnapshot, null=True)
    seasonality = StringField(null=True)
    trending = BooleanField(default=False)
    # "Because you're interested in Japan"
    personalized_reason = StringField(null=True)


class Recommendation(Document):
    """
    A scored suggestion of one entity for one user.
    Created in bulk by RecommendationGenerator, mutated afterwards only
    through its interaction fields, and expired after TTL_DAYS.
    """
    user = ReferenceField(UserProfile, required=True)
    type = StringField(required=True, choices=RecommendationType.CHOICES)
    target_id = ObjectIdField(required=True)
    target_model = StringField(required=True, choices=TargetModel.CHOICES)
    reason = StringField(required=True, choices=Reason.CHOICES)
    score = FloatField(required=True, min_value=0.0, max_value=1.0)

    metadata = EmbeddedDocumentField(RecommendationMetadata, default=RecommendationMetadata)
    user_interaction = EmbeddedDocumentField(UserInteraction, default=UserInteraction)
    contextual_info = EmbeddedDocumentField(ContextualInfo, default=ContextualInfo)

    created_at = DateTimeField(default=timezone.now)
    updated_at = DateTimeField(default=timezone.now)
    expires_at = DateTimeField(default=default_expiry)

    meta = {
        'collection': 'recommendations',
        'indexes': [
            ('user', '-score'),
            ('user', 'type', '-score'),
            ('target_id', 'target_model'),
            {'fields': ['expires_at'], 'expireAfterSeconds': 0},
            {'fields': ['user', 'target_id', 'reason'], 'unique': True},
        ]
    }

    def __str__(self):
        return f"{self.type}:{self.target_id} for {self.user_id} ({self.reason}, {self.score:.2f})"

    @property
    def user_id(self):
        """Owner id, read without dereferencing the profile."""
        ref = self._data.get('user')
        return getattr(ref, 'id', ref)

    @property
    def target(self):
        from recommendations.dtos import Target
        return Target.from_model(self.target_model, self.target_id)

    def clean(self):
        if TYPE_TARGET_MODEL.get(self.type) != self.target_model:
            raise ValidationError(
                f"Target model {self.target_model} does not match recommendation type {self.type}"
            )
        if self.type == RecommendationType.USER and self.target_id == self.user_id:
            raise ValidationError("A user cannot be recommended to themselves")
