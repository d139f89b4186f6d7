from django.test import SimpleTestCase

from .models import FavoritePlace, TravelPreferences, UserProfile


class UserProfileTests(SimpleTestCase):
    def setUp(self):
        UserProfile.drop_collection()
        FavoritePlace.drop_collection()
        # Create two profiles for testing interactions
        self.profile1 = UserProfile(username='user1').save()
        self.profile2 = UserProfile(username='user2').save()

    def tearDown(self):
        UserProfile.drop_collection()
        FavoritePlace.drop_collection()

    def test_follow_success(self):
        """Test that one user can successfully follow another."""
        self.profile1.follow(self.profile2)

        self.assertTrue(self.profile1.is_following(self.profile2))
        self.assertEqual(self.profile1.following_ids(), [self.profile2.id])
        self.assertFalse(self.profile2.is_following(self.profile1))

    def test_follow_is_idempotent(self):
        self.profile1.follow(self.profile2)
        self.profile1.follow(self.profile2)

        self.profile1.reload()
        self.assertEqual(self.profile1.following_ids(), [self.profile2.id])

    def test_unfollow_success(self):
        """Test that one user can successfully unfollow another."""
        self.profile1.follow(self.profile2)

        self.profile1.unfollow(self.profile2)

        self.assertFalse(self.profile1.is_following(self.profile2))
        self.assertEqual(self.profile1.following_ids(), [])

    def test_cannot_follow_self(self):
        """Test that a user cannot follow themselves."""
        self.profile1.follow(self.profile1)

        self.profile1.reload()
        self.assertFalse(self.profile1.is_following(self.profile1))

    def test_preference_accessors(self):
        profile = UserProfile(
            username='planner',
            travel_preferences=TravelPreferences(preferred_destinations=['JP', 'IT'], budget_range='Luxury')
        ).save()

        self.assertEqual(profile.preferred_destinations, ['JP', 'IT'])
        self.assertEqual(profile.budget_range, 'Luxury')
        self.assertEqual(self.profile1.preferred_destinations, [])
        self.assertIsNone(self.profile1.budget_range)
