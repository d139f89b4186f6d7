"""
Tests for the recommendations module.
"""
import threading
import time
from datetime import timedelta
from unittest import mock

from bson import ObjectId
from django.test import SimpleTestCase
from django.utils import timezone
from mongoengine import ValidationError
from pymongo.errors import ServerSelectionTimeoutError

from community.models import Blog, Geotag
from locations.models import Country
from recommendations.collectors import (
    ActiveAuthorCollector, BudgetPackageCollector, CandidateCollector, FollowedAuthorBlogCollector,
    LocationBasedBlogCollector, PopularPackageCollector, SimilarUserCollector, TrendingBlogCollector,
    TrendingDestinationCollector
)
from recommendations.dtos import (
    BlogTarget, Candidate, DestinationTarget, ScoringWeights, Target, UserTarget, parse_object_id
)
from recommendations.exceptions import (
    GenerationFailure, GenerationInProgress, InvalidArgument, OwnershipError, RecommendationNotFound, UserNotFound
)
from recommendations.generator import RecommendationGenerator, _generation_lock, _user_locks
from recommendations.interaction_tracker import InteractionTracker
from recommendations.models import InteractionType, Reason, Recommendation, RecommendationType, TargetModel
from recommendations.query_service import RecommendationQueryService
from recommendations.scoring_service import ScoringService, clamp_score
from recommendations.serializers import RecommendationSerializer
from recommendations.services import RecommendationService
from trips.models import Package, PackageLocation
from user.models import BudgetRange, FavoritePlace, TravelPreferences, UserProfile


class MongoTestCase(SimpleTestCase):
    """Base test case that starts every test on empty collections"""

    documents = (UserProfile, FavoritePlace, Blog, Country, Package, Recommendation)

    def setUp(self):
        self._drop()
        # Whole milliseconds, the resolution MongoDB stores
        self.now = timezone.now().replace(microsecond=0)
        self.clock = lambda: self.now

    def tearDown(self):
        self._drop()

    def _drop(self):
        for document in self.documents:
            document.drop_collection()

    def make_user(self, username, destinations=(), budget=None, role=UserProfile.Role.VISITOR):
        return UserProfile(
            username=username,
            role=role,
            travel_preferences=TravelPreferences(
                budget_range=budget,
                preferred_destinations=list(destinations)
            )
        ).save()

    def make_blog(self, author, country_code=None, views=0, likes=0, age=timedelta(0),
                  status=Blog.Status.PUBLISHED):
        created = self.now - age
        return Blog(
            title=f"Trip to {country_code or 'somewhere'}",
            content="Notes from the road",
            author=author,
            status=status,
            geotag=Geotag(country_code=country_code) if country_code else None,
            views=views,
            likes_count=likes,
            published_at=created,
            created_at=created,
        ).save()

    def make_package(self, provider, price, country_code='JP', bookings=0, age=timedelta(0)):
        return Package(
            title=f"{country_code} package",
            price=price,
            location=PackageLocation(name="Tour", country_code=country_code),
            bookings_count=bookings,
            created_by=provider,
            created_at=self.now - age,
        ).save()

    def make_recommendation(self, user, target_document, reason=Reason.TRENDING, score=0.5,
                            created_at=None, expires_at=None):
        target = Target.of(target_document)
        return Recommendation(
            user=user,
            type=target.type,
            target_id=target.id,
            target_model=target.model,
            reason=reason,
            score=score,
            created_at=created_at or self.now,
            updated_at=created_at or self.now,
            expires_at=expires_at or self.now + timedelta(days=7),
        ).save()


class ScoringServiceTestCase(SimpleTestCase):
    """Test cases for ScoringService"""

    def setUp(self):
        self.scoring_service = ScoringService()
        self.now = timezone.now()
        self.user = UserProfile(
            username='scorer',
            travel_preferences=TravelPreferences(preferred_destinations=['JP'], budget_range=BudgetRange.MID_RANGE)
        )

    def _blog(self, country_code, views=0, likes=0, days_old=0):
        published = self.now - timedelta(days=days_old)
        return Blog(
            title='t', content='c',
            geotag=Geotag(country_code=country_code),
            views=views, likes_count=likes,
            published_at=published, created_at=published,
        )

    def test_blog_score_combines_every_factor(self):
        """500 views and 20 likes, published now, in a preferred country"""
        blog = self._blog('JP', views=500, likes=20)
        score = self.scoring_service.blog_score(blog, self.user, Reason.LOCATION_BASED, self.now)
        self.assertAlmostEqual(score, 0.94, places=6)

    def test_blog_score_recency_decays_linearly(self):
        blog = self._blog('FR', days_old=15)
        score = self.scoring_service.blog_score(blog, self.user, Reason.TRENDING, self.now)
        self.assertAlmostEqual(score, 0.575, places=6)

        old_blog = self._blog('FR', days_old=60)
        score = self.scoring_service.blog_score(old_blog, self.user, Reason.TRENDING, self.now)
        self.assertAlmostEqual(score, 0.5, places=6)

    def test_blog_score_is_capped(self):
        blog = self._blog('JP', views=50000, likes=900)
        score = self.scoring_service.blog_score(blog, self.user, Reason.LOCATION_BASED, self.now)
        self.assertLessEqual(score, 1.0)
        self.assertGreaterEqual(score, 0.5)

    def test_budget_boundaries_are_inclusive(self):
        """Mid-range covers 1000 to 3000, both ends included"""
        for price, expected in [(999.99, 0.5), (1000, 0.8), (3000, 0.8), (3000.01, 0.5)]:
            package = Package(title='p', price=price, location=PackageLocation(name='x', country_code='FR'))
            self.assertAlmostEqual(
                self.scoring_service.package_score(package, self.user, Reason.PRICE_RANGE), expected,
                msg=f"price {price}"
            )

        budget_user = UserProfile(
            username='saver',
            travel_preferences=TravelPreferences(budget_range=BudgetRange.BUDGET)
        )
        package = Package(title='p', price=1000, location=PackageLocation(name='x', country_code='FR'))
        self.assertAlmostEqual(self.scoring_service.package_score(package, budget_user, Reason.PRICE_RANGE), 0.8)

    def test_package_score_with_location_bonus(self):
        package = Package(title='p', price=1500, location=PackageLocation(name='x', country_code='JP'))
        score = self.scoring_service.package_score(package, self.user, Reason.PRICE_RANGE)
        self.assertAlmostEqual(score, 0.95)

    def test_missing_budget_tier_falls_back_to_mid_range(self):
        self.assertEqual(ScoringService.budget_bounds(None), (1000, 3000))
        self.assertEqual(ScoringService.budget_bounds(BudgetRange.LUXURY), (3000, 10000))

    def test_jaccard_similarity(self):
        """Test Jaccard similarity calculation"""
        self.assertAlmostEqual(ScoringService.jaccard(['JP', 'IT'], ['JP', 'FR']), 1 / 3)
        # Symmetric
        self.assertEqual(ScoringService.jaccard(['JP'], ['JP', 'IT']), ScoringService.jaccard(['JP', 'IT'], ['JP']))
        # Identity
        self.assertEqual(ScoringService.jaccard(['JP', 'IT'], ['IT', 'JP']), 1.0)
        # Empty union
        self.assertEqual(ScoringService.jaccard([], []), 0.0)

    def test_custom_weights(self):
        service = ScoringService(ScoringWeights(base_score=0.2, budget_match=0.1, location=0.0))
        package = Package(title='p', price=1500, location=PackageLocation(name='x', country_code='JP'))
        self.assertAlmostEqual(service.package_score(package, self.user, Reason.PRICE_RANGE), 0.3)

    def test_clamp_score(self):
        self.assertEqual(clamp_score(1.7), 1.0)
        self.assertEqual(clamp_score(-0.3), 0.0)
        self.assertEqual(clamp_score(0.42), 0.42)


class TargetTestCase(MongoTestCase):
    """Test cases for the Target union and Recommendation validation"""

    def test_target_of_document_fixes_type_and_model(self):
        author = self.make_user('author', role=UserProfile.Role.AUTHOR)
        blog = self.make_blog(author, 'JP')
        country = Country(name='Japan', code='JP', continent='Asia').save()

        self.assertEqual(Target.of(blog), BlogTarget(blog.id))
        self.assertEqual(Target.of(country).type, RecommendationType.DESTINATION)
        self.assertEqual(Target.of(country).model, TargetModel.COUNTRY)
        self.assertEqual(Target.of(author), UserTarget(author.id))
        self.assertEqual(Target.from_model(TargetModel.COUNTRY, country.id), DestinationTarget(country.id))
        self.assertEqual(Target.of(blog).resolve(), blog)

    def test_mismatched_target_model_is_rejected(self):
        user = self.make_user('reader')
        recommendation = Recommendation(
            user=user, type=RecommendationType.BLOG, target_id=ObjectId(),
            target_model=TargetModel.PACKAGE, reason=Reason.TRENDING, score=0.5
        )
        with self.assertRaises(ValidationError):
            recommendation.validate()

    def test_user_cannot_be_recommended_to_themselves(self):
        user = self.make_user('reader')
        recommendation = Recommendation(
            user=user, type=RecommendationType.USER, target_id=user.id,
            target_model=TargetModel.USER, reason=Reason.SIMILAR_INTERESTS, score=0.5
        )
        with self.assertRaises(ValidationError):
            recommendation.validate()

    def test_parse_object_id(self):
        oid = ObjectId()
        self.assertEqual(parse_object_id(str(oid)), oid)
        self.assertEqual(parse_object_id(oid), oid)
        self.assertIsNone(parse_object_id('not-an-id'))
        self.assertIsNone(parse_object_id(None))


class CollectorTestCase(MongoTestCase):
    """Test cases for the candidate collectors"""

    def setUp(self):
        super().setUp()
        self.scoring = ScoringService()
        self.user = self.make_user('traveler', destinations=['JP'], budget=BudgetRange.MID_RANGE)
        self.author = self.make_user('writer', destinations=['JP', 'IT'], role=UserProfile.Role.AUTHOR)

    def test_location_collector_skips_own_and_unpublished_blogs(self):
        matching = self.make_blog(self.author, 'JP', views=700)
        self.make_blog(self.author, 'FR')
        self.make_blog(self.author, 'JP', status=Blog.Status.DRAFT)
        self.make_blog(self.user, 'JP')

        candidates = LocationBasedBlogCollector(self.scoring, self.clock).collect(self.user)

        self.assertEqual([c.target for c in candidates], [BlogTarget(matching.id)])
        self.assertEqual(candidates[0].reason, Reason.LOCATION_BASED)
        self.assertEqual(candidates[0].confidence, 0.75)
        self.assertEqual(candidates[0].factors, ['location_match', 'interests'])

    def test_location_collector_without_preferences(self):
        self.make_blog(self.author, 'JP')
        nobody = self.make_user('blank')
        self.assertEqual(LocationBasedBlogCollector(self.scoring, self.clock).collect(nobody), [])

    def test_trending_collector_orders_by_views_within_window(self):
        popular = self.make_blog(self.author, 'IT', views=900)
        quiet = self.make_blog(self.author, 'IT', views=10)
        self.make_blog(self.author, 'IT', views=5000, age=timedelta(days=45))

        candidates = TrendingBlogCollector(self.scoring, self.clock).collect(self.user)

        self.assertEqual([c.target.id for c in candidates], [popular.id, quiet.id])
        self.assertTrue(all(c.trending for c in candidates))

    def test_followed_author_collector(self):
        blog = self.make_blog(self.author, 'IT')
        collector = FollowedAuthorBlogCollector(self.scoring, self.clock)
        self.assertEqual(collector.collect(self.user), [])

        self.user.follow(self.author)
        candidates = collector.collect(self.user)
        self.assertEqual(len(candidates), 1)
        self.assertEqual(candidates[0].target.id, blog.id)
        self.assertEqual(candidates[0].score, 0.85)

    def test_budget_package_collector(self):
        provider = self.make_user('provider', role=UserProfile.Role.PACKAGE_PROVIDER)
        in_budget = self.make_package(provider, 1000)
        self.make_package(provider, 5000)
        self.make_package(provider, 1500, country_code='FR')

        candidates = BudgetPackageCollector(self.scoring, self.clock).collect(self.user)

        self.assertEqual([c.target.id for c in candidates], [in_budget.id])
        self.assertAlmostEqual(candidates[0].score, 0.95)
        self.assertEqual(candidates[0].personalized_reason, "Perfect for your mid-range budget")

    def test_popular_package_collector(self):
        """Recent packages by bookings, excluding stale ones and the requester's own"""
        provider = self.make_user('provider', role=UserProfile.Role.PACKAGE_PROVIDER)
        modest = self.make_package(provider, 1500, country_code='FR', bookings=3)
        popular = self.make_package(provider, 5000, country_code='JP', bookings=9)
        self.make_package(provider, 1500, bookings=99, age=timedelta(days=120))
        self.make_package(self.user, 1500, bookings=50)

        candidates = PopularPackageCollector(self.scoring, self.clock).collect(self.user)

        self.assertEqual([c.target.id for c in candidates], [popular.id, modest.id])
        # Out of budget but preferred country, then in budget only
        self.assertAlmostEqual(candidates[0].score, 0.65)
        self.assertAlmostEqual(candidates[1].score, 0.8)
        self.assertTrue(all(c.reason == Reason.POPULAR_AMONG_SIMILAR_USERS for c in candidates))
        self.assertEqual(candidates[0].confidence, 0.7)

    def test_similar_user_collector_excludes_self_and_followed(self):
        followed = self.make_user('friend', destinations=['JP'])
        self.user.follow(followed)
        self.make_user('stranger', destinations=['BR'])

        candidates = SimilarUserCollector(self.scoring, self.clock).collect(self.user)

        self.assertEqual([c.target for c in candidates], [UserTarget(self.author.id)])
        self.assertAlmostEqual(candidates[0].score, 0.5)

    def test_active_author_collector(self):
        candidates = ActiveAuthorCollector(self.scoring, self.clock).collect(self.user)
        self.assertEqual([c.target for c in candidates], [UserTarget(self.author.id)])

        self.user.follow(self.author)
        self.assertEqual(ActiveAuthorCollector(self.scoring, self.clock).collect(self.user), [])

    def test_trending_destinations_skip_favorites_and_unknown_codes(self):
        japan = Country(name='Japan', code='JP', continent='Asia').save()
        Country(name='Italy', code='IT', continent='Europe').save()
        for _ in range(3):
            self.make_blog(self.author, 'JP')
        self.make_blog(self.author, 'IT')
        self.make_blog(self.author, 'ZZ')
        FavoritePlace(user=self.user, place_name='Rome', country_code='IT').save()

        candidates = TrendingDestinationCollector(self.scoring, self.clock).collect(self.user)

        self.assertEqual([c.target for c in candidates], [DestinationTarget(japan.id)])
        self.assertEqual(candidates[0].score, 0.6)
        self.assertIn('3', candidates[0].personalized_reason)


class StalledCollector(CandidateCollector):
    """Collector that blocks until released, standing in for a hung query"""

    reason = Reason.TRENDING

    def __init__(self, release: threading.Event):
        super().__init__(ScoringService())
        self.release = release

    def collect(self, user):
        self.release.wait(5)
        return []


class RecommendationGeneratorTestCase(MongoTestCase):
    """Test cases for RecommendationGenerator"""

    def setUp(self):
        super().setUp()
        self.user = self.make_user('traveler', destinations=['JP', 'TH'])
        self.author = self.make_user('writer', destinations=['JP', 'IT'], role=UserProfile.Role.AUTHOR)
        self.blog = self.make_blog(self.author, 'JP', views=500, likes=20)
        self.generator = RecommendationGenerator(clock=self.clock)

    def _row(self, reason, target_id=None):
        return Recommendation.objects(user=self.user, target_id=target_id or self.blog.id, reason=reason).first()

    def test_generate_end_to_end(self):
        batch = self.generator.generate(self.user.id)

        self.assertTrue(batch)
        location_row = self._row(Reason.LOCATION_BASED)
        self.assertIsNotNone(location_row)
        self.assertEqual(location_row.type, RecommendationType.BLOG)
        self.assertEqual(location_row.target_model, TargetModel.BLOG)
        self.assertAlmostEqual(location_row.score, 0.94, places=3)
        self.assertEqual(location_row.metadata.confidence, 0.75)
        self.assertFalse(location_row.user_interaction.viewed)
        self.assertEqual(location_row.user_interaction.interaction_score, 0.0)

        for row in batch:
            self.assertGreaterEqual(row.score, 0.0)
            self.assertLessEqual(row.score, 1.0)
            self.assertFalse(row.type == RecommendationType.USER and row.target_id == self.user.id)

    def test_generate_unknown_user(self):
        with self.assertRaises(UserNotFound):
            self.generator.generate(ObjectId())
        with self.assertRaises(UserNotFound):
            self.generator.generate('garbage')

    def test_generate_upserts_and_keeps_interactions(self):
        self.generator.generate(self.user.id)
        first = self._row(Reason.LOCATION_BASED)
        InteractionTracker(clock=self.clock).mark_interaction(first.id, InteractionType.LIKED)

        self.blog.update(set__views=0, set__likes_count=0)
        self.generator.generate(self.user.id)

        rows = Recommendation.objects(user=self.user, target_id=self.blog.id, reason=Reason.LOCATION_BASED)
        self.assertEqual(rows.count(), 1)
        second = rows.first()
        self.assertEqual(second.id, first.id)
        self.assertTrue(second.user_interaction.liked)
        self.assertAlmostEqual(second.user_interaction.interaction_score, 0.5)
        self.assertAlmostEqual(second.score, 0.8, places=3)

    def test_duplicate_candidates_keep_highest_score(self):
        target = BlogTarget(self.blog.id)
        candidates = [
            Candidate(target=target, reason=Reason.TRENDING, score=0.6, confidence=0.5),
            Candidate(target=target, reason=Reason.TRENDING, score=0.9, confidence=0.5),
            Candidate(target=target, reason=Reason.LOCATION_BASED, score=1.4, confidence=0.5),
            Candidate(target=UserTarget(self.user.id), reason=Reason.SIMILAR_INTERESTS, score=1.0, confidence=0.5),
        ]

        batch = self.generator.persist(self.user, candidates, self.now)

        self.assertEqual(len(batch), 2)
        self.assertAlmostEqual(self._row(Reason.TRENDING).score, 0.9)
        self.assertEqual(self._row(Reason.LOCATION_BASED).score, 1.0)
        self.assertIsNone(self._row(Reason.SIMILAR_INTERESTS, target_id=self.user.id))

    def test_failing_collector_does_not_abort_generation(self):
        with mock.patch.object(TrendingBlogCollector, 'collect', side_effect=ServerSelectionTimeoutError('down')):
            batch = self.generator.generate(self.user.id)

        self.assertTrue(batch)
        self.assertIsNotNone(self._row(Reason.LOCATION_BASED))
        self.assertIsNone(self._row(Reason.TRENDING))

    def test_generation_failure_when_persisting_breaks(self):
        with mock.patch.object(RecommendationGenerator, 'persist', side_effect=RuntimeError('boom')):
            with self.assertRaises(GenerationFailure) as ctx:
                self.generator.generate(self.user.id)
        self.assertEqual(str(ctx.exception.detail), 'Failed to generate recommendations')

    def test_expired_rows_are_swept(self):
        stale = self.make_recommendation(
            self.user, self.author, reason=Reason.SEASONAL, expires_at=self.now + timedelta(hours=1)
        )
        later = self.now + timedelta(hours=2)

        removed = self.generator.sweep_expired(self.user, later)

        self.assertEqual(removed, 1)
        self.assertIsNone(Recommendation.objects(id=stale.id).first())

    def test_concurrent_generation_is_rejected(self):
        lock = _generation_lock(self.user.id)
        lock.acquire()
        try:
            with self.assertRaises(GenerationInProgress):
                self.generator.generate(self.user.id, timeout=0.01)
        finally:
            lock.release()

    def test_generation_lock_is_dropped_after_release(self):
        self.generator.generate(self.user.id)
        self.assertNotIn(str(self.user.id), _user_locks)

    def test_collector_missing_deadline_is_dropped(self):
        release = threading.Event()
        generator = RecommendationGenerator(
            collectors=[
                LocationBasedBlogCollector(ScoringService(), self.clock),
                StalledCollector(release),
            ],
            clock=self.clock,
            max_workers=2,
        )

        started = time.monotonic()
        try:
            with self.assertLogs('recommendations.generator', level='WARNING') as logs:
                batch = generator.generate(self.user.id, timeout=0.5)
            elapsed = time.monotonic() - started
        finally:
            release.set()

        self.assertLess(elapsed, 3)
        self.assertEqual([row.reason for row in batch], [Reason.LOCATION_BASED])
        self.assertTrue(any('StalledCollector timed out' in line for line in logs.output))


class InteractionTrackerTestCase(MongoTestCase):
    """Test cases for InteractionTracker"""

    def setUp(self):
        super().setUp()
        self.user = self.make_user('traveler')
        self.author = self.make_user('writer', role=UserProfile.Role.AUTHOR)
        self.recommendation = self.make_recommendation(self.user, self.make_blog(self.author, 'JP'))
        self.tracker = InteractionTracker(clock=self.clock)

    def test_interaction_deltas_accumulate(self):
        self.tracker.mark_interaction(self.recommendation.id, InteractionType.CLICKED)
        updated = self.tracker.mark_interaction(self.recommendation.id, InteractionType.LIKED)
        self.assertAlmostEqual(updated.user_interaction.interaction_score, 0.8)
        self.assertTrue(updated.user_interaction.clicked)
        self.assertTrue(updated.user_interaction.liked)
        self.assertIsNotNone(updated.user_interaction.liked_at)

        updated = self.tracker.mark_interaction(self.recommendation.id, InteractionType.DISMISSED)
        self.assertAlmostEqual(updated.user_interaction.interaction_score, 0.6)
        self.assertTrue(updated.user_interaction.dismissed)

    def test_unknown_interaction_type_is_a_no_op(self):
        updated = self.tracker.mark_interaction(self.recommendation.id, 'shared')
        self.assertEqual(updated.user_interaction.interaction_score, 0.0)
        self.assertFalse(updated.user_interaction.viewed)

    def test_unknown_recommendation(self):
        with self.assertRaises(RecommendationNotFound):
            self.tracker.mark_interaction(ObjectId(), InteractionType.VIEWED)
        with self.assertRaises(RecommendationNotFound):
            self.tracker.get('nope')

    def test_submit_feedback(self):
        updated = self.tracker.submit_feedback(self.recommendation.id, helpful=False, feedback="Already been there")
        self.assertFalse(updated.user_interaction.helpful)
        self.assertEqual(updated.user_interaction.feedback, "Already been there")
        self.assertIsNotNone(updated.user_interaction.feedback_at)


class RecommendationQueryServiceTestCase(MongoTestCase):
    """Test cases for RecommendationQueryService"""

    def setUp(self):
        super().setUp()
        self.user = self.make_user('traveler')
        self.author = self.make_user('writer', role=UserProfile.Role.AUTHOR)
        self.queries = RecommendationQueryService(clock=self.clock)

    def test_list_orders_filters_and_paginates(self):
        blogs = [self.make_blog(self.author, 'JP') for _ in range(3)]
        low = self.make_recommendation(self.user, blogs[0], score=0.3)
        high = self.make_recommendation(self.user, blogs[1], score=0.9)
        mid = self.make_recommendation(self.user, blogs[2], score=0.6)
        self.make_recommendation(self.user, self.author, reason=Reason.SIMILAR_INTERESTS, score=1.0)

        page = self.queries.list(self.user, type=RecommendationType.BLOG, page=1, limit=2)
        self.assertEqual([r.id for r in page.items], [high.id, mid.id])
        self.assertEqual(page.total, 3)
        self.assertEqual(page.pagination(), {'current_page': 1, 'total_pages': 2, 'count': 2, 'total_items': 3})

        page = self.queries.list(self.user, type=RecommendationType.BLOG, page=2, limit=2)
        self.assertEqual([r.id for r in page.items], [low.id])

        self.assertEqual(self.queries.list(self.user).total, 4)

    def test_list_excludes_expired(self):
        blog = self.make_blog(self.author, 'JP')
        self.make_recommendation(self.user, blog, expires_at=self.now + timedelta(hours=1))

        self.assertEqual(self.queries.list(self.user).total, 1)

        later = RecommendationQueryService(clock=lambda: self.now + timedelta(hours=2))
        self.assertEqual(later.list(self.user).total, 0)

    def test_stats(self):
        empty = self.queries.stats(self.user)
        self.assertEqual(empty['overall']['total'], 0)
        self.assertEqual(empty['overall']['avg_score'], 0.0)
        self.assertEqual(empty['by_type'], [])

        first = self.make_recommendation(self.user, self.make_blog(self.author, 'JP'), score=0.4)
        self.make_recommendation(self.user, self.make_blog(self.author, 'IT'), score=0.8)
        self.make_recommendation(self.user, self.author, reason=Reason.SIMILAR_INTERESTS, score=0.6)
        InteractionTracker(clock=self.clock).mark_interaction(first.id, InteractionType.VIEWED)

        stats = self.queries.stats(self.user)

        self.assertEqual(stats['overall']['total'], 3)
        self.assertEqual(stats['overall']['viewed'], 1)
        self.assertEqual(stats['overall']['liked'], 0)
        self.assertAlmostEqual(stats['overall']['avg_score'], 0.6)
        by_type = {row['type']: row for row in stats['by_type']}
        self.assertEqual(by_type[RecommendationType.BLOG]['count'], 2)
        self.assertAlmostEqual(by_type[RecommendationType.BLOG]['avg_score'], 0.6)
        self.assertEqual(by_type[RecommendationType.USER]['count'], 1)

    def test_trending_returns_distinct_targets(self):
        other = self.make_user('other')
        blog = self.make_blog(self.author, 'JP')
        second_blog = self.make_blog(self.author, 'IT')
        self.make_recommendation(self.user, blog, score=0.9)
        self.make_recommendation(other, blog, score=0.8)
        self.make_recommendation(other, second_blog, score=0.7)
        self.make_recommendation(other, self.make_blog(self.author, 'FR'), reason=Reason.LOCATION_BASED, score=1.0)

        trending = self.queries.trending(type=RecommendationType.BLOG)

        self.assertEqual([b.id for b in trending], [blog.id, second_blog.id])
        self.assertEqual(len(self.queries.trending(limit=1)), 1)

    def test_trending_skips_deleted_targets(self):
        blog = self.make_blog(self.author, 'JP')
        self.make_recommendation(self.user, blog)
        blog.delete()
        self.assertEqual(self.queries.trending(), [])

    def test_similar_users(self):
        peer = self.make_user('peer', destinations=['JP'])
        recommendation = self.make_recommendation(self.user, peer, reason=Reason.SIMILAR_INTERESTS, score=0.5)
        recommendation.update(set__contextual_info__personalized_reason="Shares similar travel interests")

        similar = self.queries.similar_users(self.user)

        self.assertEqual(len(similar), 1)
        self.assertEqual(similar[0]['user'], peer)
        self.assertEqual(similar[0]['similarity_score'], 0.5)
        self.assertEqual(similar[0]['reason'], "Shares similar travel interests")


class RecommendationServiceTestCase(MongoTestCase):
    """Test cases for the RecommendationService entry point"""

    def setUp(self):
        super().setUp()
        self.user = self.make_user('traveler', destinations=['JP'])
        self.intruder = self.make_user('intruder')
        self.author = self.make_user('writer', destinations=['JP'], role=UserProfile.Role.AUTHOR)
        self.blog = self.make_blog(self.author, 'JP', views=700)
        self.service = RecommendationService(clock=self.clock)

    def test_list_validates_parameters(self):
        for params in ({'page': 0}, {'limit': 0}, {'limit': 101}, {'type': 'hotel'}):
            with self.assertRaises(InvalidArgument, msg=str(params)):
                self.service.list(self.user.id, params)

        with self.assertRaises(InvalidArgument):
            self.service.list('not-an-id')

    def test_list_after_generate(self):
        self.service.generate(str(self.user.id))

        result = self.service.list(str(self.user.id), {'type': 'blog', 'limit': '5'})

        self.assertTrue(result['items'])
        self.assertTrue(all(r.type == RecommendationType.BLOG for r in result['items']))
        self.assertEqual(result['pagination']['current_page'], 1)
        self.assertEqual(result['pagination']['count'], len(result['items']))

        data = RecommendationSerializer(result['items'][0]).data
        self.assertEqual(data['user'], str(self.user.id))
        self.assertEqual(data['target_id'], str(self.blog.id))
        self.assertIn('personalized_reason', data['contextual_info'])

    def test_mark_interaction_checks_ownership_and_type(self):
        recommendation = self.make_recommendation(self.user, self.blog)

        with self.assertRaises(OwnershipError):
            self.service.mark_interaction(self.intruder.id, recommendation.id, InteractionType.LIKED)
        with self.assertRaises(InvalidArgument):
            self.service.mark_interaction(self.user.id, recommendation.id, 'bookmarked')
        with self.assertRaises(RecommendationNotFound):
            self.service.mark_interaction(self.user.id, ObjectId(), InteractionType.LIKED)

        updated = self.service.mark_interaction(str(self.user.id), str(recommendation.id), InteractionType.VIEWED)
        self.assertTrue(updated.user_interaction.viewed)

    def test_submit_feedback(self):
        recommendation = self.make_recommendation(self.user, self.blog)

        with self.assertRaises(InvalidArgument):
            self.service.submit_feedback(self.user.id, recommendation.id, {'feedback': 'no verdict'})
        with self.assertRaises(InvalidArgument):
            self.service.submit_feedback(self.user.id, recommendation.id, {'helpful': True, 'feedback': 'x' * 1001})
        with self.assertRaises(OwnershipError):
            self.service.submit_feedback(self.intruder.id, recommendation.id, {'helpful': True})

        updated = self.service.submit_feedback(self.user.id, recommendation.id, {'helpful': True, 'feedback': 'Great'})
        self.assertTrue(updated.user_interaction.helpful)
        self.assertEqual(updated.user_interaction.feedback, 'Great')

    def test_refresh_purges_old_rows(self):
        old = self.make_recommendation(
            self.user, self.intruder, reason=Reason.SEASONAL, created_at=self.now - timedelta(hours=30)
        )
        recent = self.make_recommendation(
            self.user, self.intruder, reason=Reason.WISHLIST_SIMILAR, created_at=self.now - timedelta(hours=2)
        )

        result = self.service.refresh(self.user.id)

        self.assertIsNone(Recommendation.objects(id=old.id).first())
        self.assertIsNotNone(Recommendation.objects(id=recent.id).first())
        self.assertGreater(result['count'], 0)
        self.assertLessEqual(len(result['recommendations']), 10)

    def test_refresh_does_not_purge_while_generation_runs(self):
        service = RecommendationService(
            generator=RecommendationGenerator(clock=self.clock, timeout=0.05),
            clock=self.clock
        )
        old = self.make_recommendation(
            self.user, self.intruder, reason=Reason.SEASONAL, created_at=self.now - timedelta(hours=30)
        )

        lock = _generation_lock(self.user.id)
        lock.acquire()
        try:
            with self.assertRaises(GenerationInProgress):
                service.refresh(self.user.id)
        finally:
            lock.release()

        self.assertIsNotNone(Recommendation.objects(id=old.id).first())

    def test_trending_is_public(self):
        self.service.generate(self.user.id)

        entities = self.service.trending({'type': 'blog'})
        self.assertEqual([e.id for e in entities], [self.blog.id])

        everything = self.service.trending()
        self.assertIn(self.blog.id, [e.id for e in everything])

        with self.assertRaises(InvalidArgument):
            self.service.trending({'limit': 0})

    def test_stats_and_similar_users(self):
        self.service.generate(self.user.id)

        stats = self.service.stats(self.user.id)
        self.assertGreater(stats['overall']['total'], 0)

        similar = self.service.similar_users(self.user.id)
        self.assertEqual([entry['user'].id for entry in similar], [self.author.id])
        self.assertAlmostEqual(similar[0]['similarity_score'], 1.0)

        with self.assertRaises(UserNotFound):
            self.service.stats(ObjectId())
