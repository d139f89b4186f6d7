"""
Data Transfer Objects (DTOs) for context passing and results in the recommendation system.
"""
from dataclasses import dataclass, field
from math import ceil
from typing import ClassVar, Dict, List, Optional, Type

from bson import ObjectId
from bson.errors import InvalidId
from django.conf import settings
from mongoengine import Document

from community.models import Blog
from locations.models import Country
from recommendations.models import RecommendationType, TargetModel
from trips.models import Package, TripPlan
from user.models import UserProfile


def parse_object_id(value) -> Optional[ObjectId]:
    """
    Normalizes an id given as ObjectId, string or document.
    Returns None for values that are not valid ObjectIds.
    """
    if isinstance(value, Document):
        return value.pk
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None

@dataclass(frozen=True)
class Target:
    """
    Reference to a recommended entity. Each subclass is one variant of the
    union and fixes the (type, target_model) pair, so only consistent
    combinations can be built.
    """
    id: ObjectId

    type: ClassVar[str]
    model: ClassVar[str]
    document_class: ClassVar[Type[Document]]

    def resolve(self) -> Optional[Document]:
        """Loads the referenced document, or None if it no longer exists."""
        return self.document_class.objects(id=self.id).first()

    @staticmethod
    def variants() -> List[Type["Target"]]:
        return [BlogTarget, PackageTarget, DestinationTarget, UserTarget, ActivityTarget]

    @classmethod
    def of(cls, document: Document) -> "Target":
        for variant in cls.variants():
            if isinstance(document, variant.document_class):
                return variant(document.id)
        raise TypeError(f"{type(document).__name__} cannot be recommended")

    @classmethod
    def from_model(cls, target_model: str, target_id: ObjectId) -> "Target":
        for variant in cls.variants():
            if variant.model == target_model:
                return variant(target_id)
        raise ValueError(f"Unknown target model: {target_model}")


@dataclass(frozen=True)
class BlogTarget(Target):
    type: ClassVar[str] = RecommendationType.BLOG
    model: ClassVar[str] = TargetModel.BLOG
    document_class: ClassVar[Type[Document]] = Blog


@dataclass(frozen=True)
class PackageTarget(Target):
    type: ClassVar[str] = RecommendationType.PACKAGE
    model: ClassVar[str] = TargetModel.PACKAGE
    document_class: ClassVar[Type[Document]] = Package


@dataclass(frozen=True)
class DestinationTarget(Target):
    type: ClassVar[str] = RecommendationType.DESTINATION
    model: ClassVar[str] = TargetModel.COUNTRY
    document_class: ClassVar[Type[Document]] = Country


@dataclass(frozen=True)
class UserTarget(Target):
    type: ClassVar[str] = RecommendationType.USER
    model: ClassVar[str] = TargetModel.USER
    document_class: ClassVar[Type[Document]] = UserProfile


@dataclass(frozen=True)
class ActivityTarget(Target):
    type: ClassVar[str] = RecommendationType.ACTIVITY
    model: ClassVar[str] = TargetModel.TRIP_PLAN
    document_class: ClassVar[Type[Document]] = TripPlan


@dataclass(frozen=True)
class ScoringWeights:
    """
    Weight table used by ScoringService. Passed in explicitly so scoring
    stays a pure function of its inputs.
    """
    similarity: float = 0.30
    popularity: float = 0.20
    recency: float = 0.15
    location: float = 0.15
    interests: float = 0.20
    base_score: float = 0.5
    budget_match: float = 0.3

    @classmethod
    def from_settings(cls) -> "ScoringWeights":
        configured: Dict[str, float] = settings.RECOMMENDATIONS.get('WEIGHTS', {})
        return cls(**configured)


@dataclass
class Candidate:
    """
    An entity proposed by a collector, already scored and explained.
    Turned into a Recommendation row by RecommendationGenerator.
    """
    target: Target
    reason: str
    score: float
    confidence: float
    factors: List[str] = field(default_factory=list)
    personalized_reason: Optional[str] = None
    trending: bool = False

    @property
    def key(self):
        """Identity of the candidate within one generation run"""
        return (self.target, self.reason)


@dataclass
class RecommendationPage:
    """One page of a user's stored recommendations."""
    items: list
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict:
        return {
            'current_page': self.page,
            'total_pages': self.total_pages,
            'count': len(self.items),
            'total_items': self.total,
        }
