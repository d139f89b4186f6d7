"""
Errors raised by the recommendation engine.

Boundary errors extend rest_framework's exceptions so an API layer maps
them to 400/403/404/500 responses without extra glue.
"""
from rest_framework import exceptions, status


class UserNotFound(exceptions.NotFound):
    default_detail = 'User not found.'
    default_code = 'user_not_found'


class RecommendationNotFound(exceptions.NotFound):
    default_detail = 'Recommendation not found.'
    default_code = 'recommendation_not_found'


class OwnershipError(exceptions.PermissionDenied):
    default_detail = 'Access denied.'
    default_code = 'not_owner'


class InvalidArgument(exceptions.ValidationError):
    default_code = 'invalid_argument'


class GenerationFailure(exceptions.APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Failed to generate recommendations'
    default_code = 'generation_failure'


class GenerationInProgress(GenerationFailure):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Recommendations are already being generated for this user'
    default_code = 'generation_in_progress'


class UpstreamFailure(Exception):
    """
    A single collector could not read from the document store.
    Logged by the generator and never surfaced to callers.
    """

    def __init__(self, collector: str, cause: BaseException):
        super().__init__(f"Collector {collector} failed: {cause}")
        self.collector = collector
        self.cause = cause
