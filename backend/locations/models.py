from mongoengine import Document, StringField, IntField, DateTimeField
from django.utils import timezone


class Country(Document):
    """
    A destination country. Destination recommendations point at these
    documents, resolved by ISO code from blog geotags.
    """
    name = StringField(required=True, unique=True, max_length=100)
    # ISO 3166-1 alpha-2 code
    code = StringField(required=True, unique=True, max_length=2)
    continent = StringField(required=True)
    region = StringField(null=True)
    popularity = IntField(default=0)
    created_at = DateTimeField(default=timezone.now)

    meta = {
        'collection': 'countries',
        'indexes': ['code'],
    }

    def __str__(self):
        return f"{self.name} ({self.code})"

    @classmethod
    def by_codes(cls, codes):
        """Maps each known code to its Country, skipping unknown codes."""
        return {country.code: country for country in cls.objects(code__in=list(codes))}
