"""
Serializers for the recommendations module.
Input serializers validate service arguments, output serializers shape
documents into API-ready dictionaries.
"""
from django.conf import settings
from rest_framework import serializers

from recommendations.models import InteractionType, RecommendationType


class RecommendationListSerializer(serializers.Serializer):
    """Query parameters for listing a user's recommendations"""
    type = serializers.ChoiceField(choices=RecommendationType.CHOICES, required=False, allow_null=True)
    page = serializers.IntegerField(required=False, default=1, min_value=1)
    limit = serializers.IntegerField(
        required=False,
        default=settings.RECOMMENDATIONS['DEFAULT_PAGE_SIZE'],
        min_value=1,
        max_value=settings.RECOMMENDATIONS['MAX_PAGE_SIZE']
    )


class TrendingQuerySerializer(serializers.Serializer):
    """Query parameters for the public trending listing"""
    type = serializers.ChoiceField(choices=RecommendationType.CHOICES + ('all',), required=False, default='all')
    limit = serializers.IntegerField(required=False, default=10, min_value=1, max_value=100)

    def validate_type(self, value):
        # 'all' means no type filter
        return None if value == 'all' else value


class InteractionSerializer(serializers.Serializer):
    interaction_type = serializers.ChoiceField(choices=InteractionType.CHOICES)


class FeedbackSerializer(serializers.Serializer):
    helpful = serializers.BooleanField(required=True)
    feedback = serializers.CharField(max_length=1000, required=False, allow_blank=True, allow_null=True)


class RecommendationMetadataSerializer(serializers.Serializer):
    confidence = serializers.FloatField(allow_null=True)
    factors = serializers.ListField(child=serializers.CharField(), allow_empty=True)
    ai_model = serializers.CharField(allow_null=True)
    generated_at = serializers.DateTimeField()


class UserInteractionSerializer(serializers.Serializer):
    viewed = serializers.BooleanField()
    clicked = serializers.BooleanField()
    liked = serializers.BooleanField()
    dismissed = serializers.BooleanField()
    viewed_at = serializers.DateTimeField(allow_null=True)
    clicked_at = serializers.DateTimeField(allow_null=True)
    liked_at = serializers.DateTimeField(allow_null=True)
    dismissed_at = serializers.DateTimeField(allow_null=True)
    interaction_score = serializers.FloatField()
    helpful = serializers.BooleanField(allow_null=True)
    feedback = serializers.CharField(allow_null=True)
    feedback_at = serializers.DateTimeField(allow_null=True)


class LocationSnapshotSerializer(serializers.Serializer):
    country = serializers.CharField(allow_null=True)
    city = serializers.CharField(allow_null=True)


class ContextualInfoSerializer(serializers.Serializer):
    user_location = LocationSnapshotSerializer(allow_null=True)
    seasonality = serializers.CharField(allow_null=True)
    trending = serializers.BooleanField()
    personalized_reason = serializers.CharField(allow_null=True)


class RecommendationSerializer(serializers.Serializer):
    """Serializer for a stored Recommendation document"""
    id = serializers.CharField()
    user = serializers.SerializerMethodField()
    type = serializers.CharField()
    target_id = serializers.CharField()
    target_model = serializers.CharField()
    reason = serializers.CharField()
    score = serializers.FloatField()
    metadata = RecommendationMetadataSerializer()
    user_interaction = UserInteractionSerializer()
    contextual_info = ContextualInfoSerializer()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()
    expires_at = serializers.DateTimeField()

    def get_user(self, obj):
        return str(obj.user_id)


class SimilarUserSerializer(serializers.Serializer):
    """Serializer for one entry of RecommendationQueryService.similar_users"""
    user_id = serializers.SerializerMethodField()
    username = serializers.SerializerMethodField()
    similarity_score = serializers.FloatField()
    reason = serializers.CharField(allow_null=True)

    def get_user_id(self, obj):
        return str(obj['user'].id)

    def get_username(self, obj):
        return obj['user'].username
