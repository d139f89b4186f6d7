"""
MongoDB documents for user profiles and their favorite places.
"""
from mongoengine import (
    Document, EmbeddedDocument, EmbeddedDocumentField, StringField,
    ListField, ReferenceField, DateTimeField
)
from django.utils import timezone


class BudgetRange:
    BUDGET = 'Budget'
    MID_RANGE = 'Mid-range'
    LUXURY = 'Luxury'

    CHOICES = (BUDGET, MID_RANGE, LUXURY)


class TravelPreferences(EmbeddedDocument):
    """Travel preferences captured during onboarding."""
    budget_range = StringField(choices=BudgetRange.CHOICES, null=True)
    # ISO 3166-1 alpha-2 country codes
    preferred_destinations = ListField(StringField(max_length=2), default=list)
    travel_style = StringField(
        choices=['Adventure', 'Relaxation', 'Cultural', 'Business'],
        null=True
    )
    group_size = StringField(choices=['Solo', 'Couple', 'Family', 'Group'], null=True)


class UserLocation(EmbeddedDocument):
    country = StringField(null=True)
    city = StringField(null=True)


class UserProfile(Document):
    """
    Profile of a platform member. The recommendation engine only reads it:
    preferences, role and the follow list drive candidate collection.
    """

    class Role:
        VISITOR = 'visitor'
        AUTHOR = 'author'
        ADMIN = 'admin'
        PACKAGE_PROVIDER = 'package_provider'

    username = StringField(required=True, unique=True, max_length=150)
    bio = StringField(max_length=500, default="")
    role = StringField(
        choices=[Role.VISITOR, Role.AUTHOR, Role.ADMIN, Role.PACKAGE_PROVIDER],
        default=Role.VISITOR
    )
    travel_preferences = EmbeddedDocumentField(TravelPreferences, default=TravelPreferences)
    location = EmbeddedDocumentField(UserLocation, null=True)
    following = ListField(ReferenceField('self'), default=list)
    created_at = DateTimeField(default=timezone.now)

    meta = {
        'collection': 'user_profiles',
        'indexes': [
            'role',
            'travel_preferences.preferred_destinations',
        ]
    }

    def __str__(self):
        return self.username

    @property
    def preferred_destinations(self):
        if not self.travel_preferences:
            return []
        return list(self.travel_preferences.preferred_destinations or [])

    @property
    def budget_range(self):
        if not self.travel_preferences:
            return None
        return self.travel_preferences.budget_range

    def following_ids(self):
        """Ids of followed profiles, read without dereferencing them."""
        raw = self.to_mongo().get('following', [])
        return [ref.id if hasattr(ref, 'id') else ref for ref in raw]

    def follow(self, target_profile: "UserProfile"):
        if self != target_profile and not self.is_following(target_profile):
            UserProfile.objects(id=self.id).update_one(add_to_set__following=target_profile)
            self.reload()

    def unfollow(self, target_profile: "UserProfile"):
        if self != target_profile and self.is_following(target_profile):
            UserProfile.objects(id=self.id).update_one(pull__following=target_profile)
            self.reload()

    def is_following(self, target_profile):
        return target_profile.id in self.following_ids()


class FavoritePlace(Document):
    """A place the user bookmarked as a favorite."""
    user = ReferenceField(UserProfile, required=True)
    place_name = StringField(required=True, max_length=255)
    country_code = StringField(required=True, max_length=2)
    city = StringField(null=True)
    description = StringField(max_length=2000, default="")
    created_at = DateTimeField(default=timezone.now)

    meta = {
        'collection': 'favorite_places',
        'indexes': ['user']
    }

    def __str__(self):
        return f"{self.place_name} ({self.country_code})"
