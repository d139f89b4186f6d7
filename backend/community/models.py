"""
MongoDB models for the community app using mongoengine.
"""
from mongoengine import (
    Document, EmbeddedDocument, EmbeddedDocumentField, StringField,
    ListField, ReferenceField, DateTimeField, IntField
)
from django.utils import timezone

from user.models import UserProfile


class Geotag(EmbeddedDocument):
    """Where a blog post was written about."""
    country = StringField(null=True)
    # ISO 3166-1 alpha-2 code, matched against user preferred destinations
    country_code = StringField(max_length=2, null=True)
    city = StringField(null=True)


class Blog(Document):
    """
    MongoDB document model for travel blog posts.
    Engagement counters are denormalized onto the post so ranking queries
    can sort on them directly.
    """

    class Status:
        DRAFT = "draft"
        PUBLISHED = "published"
        ARCHIVED = "archived"

    title = StringField(required=True, max_length=200)
    content = StringField(required=True)
    author = ReferenceField(UserProfile, required=True)

    status = StringField(
        choices=[Status.DRAFT, Status.PUBLISHED, Status.ARCHIVED],
        default=Status.DRAFT
    )

    geotag = EmbeddedDocumentField(Geotag, null=True)

    # Tags for categorization and filtering
    tags = ListField(StringField(), default=list)

    views = IntField(min_value=0, default=0)
    likes_count = IntField(min_value=0, default=0)

    published_at = DateTimeField(null=True)
    created_at = DateTimeField(default=timezone.now)

    meta = {
        'collection': 'blogs',
        'indexes': [
            'author',
            'status',
            '-created_at',
            'geotag.country_code',
            ('-views', '-likes_count'),
        ]
    }

    def __str__(self):
        return self.title

    @property
    def country_code(self):
        return self.geotag.country_code if self.geotag else None

    @classmethod
    def published(cls):
        return cls.objects(status=cls.Status.PUBLISHED)
