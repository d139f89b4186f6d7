from mongoengine import (
    Document, EmbeddedDocument, EmbeddedDocumentField, StringField,
    ReferenceField, DateTimeField, FloatField, IntField
)
from django.utils import timezone

from user.models import UserProfile


class PackageLocation(EmbeddedDocument):
    name = StringField(required=True)
    country = StringField(null=True)
    country_code = StringField(max_length=2, null=True)
    city = StringField(null=True)


class Package(Document):
    """
    A bookable travel package offered by a provider.
    """
    title = StringField(required=True, max_length=255)
    description = StringField(default="")
    price = FloatField(required=True, min_value=0)
    # e.g. "3 days 2 nights"
    duration = StringField(null=True)
    location = EmbeddedDocumentField(PackageLocation, required=True)
    bookings_count = IntField(min_value=0, default=0)
    created_by = ReferenceField(UserProfile, required=True)
    created_at = DateTimeField(default=timezone.now)

    meta = {
        'collection': 'packages',
        'indexes': [
            'price',
            'location.country_code',
            '-bookings_count',
            '-created_at',
        ]
    }

    def __str__(self):
        return self.title

    @property
    def country_code(self):
        return self.location.country_code if self.location else None


class TripPlan(Document):
    """
    Database entity representing a planned trip; the target of
    activity recommendations.
    """

    class Status:
        DRAFT = 'DRAFT'
        ACTIVE = 'ACTIVE'
        COMPLETED = 'COMPLETED'

    owner = ReferenceField(UserProfile, required=True)
    title = StringField(required=True, max_length=255)
    destination_code = StringField(max_length=2, null=True)
    status = StringField(choices=[Status.DRAFT, Status.ACTIVE, Status.COMPLETED], default=Status.DRAFT)
    created_at = DateTimeField(default=timezone.now)

    meta = {
        'collection': 'trip_plans',
        'indexes': ['owner'],
    }

    def __str__(self):
        return self.title
