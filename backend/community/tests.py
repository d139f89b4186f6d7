"""
Unit tests for community app models.
"""
import unittest

from community.models import Blog, Geotag
from user.models import UserProfile


class BlogTestCase(unittest.TestCase):
    """Test cases for Blog model."""

    def setUp(self):
        """Set up test fixtures."""
        Blog.drop_collection()
        UserProfile.drop_collection()
        self.author = UserProfile(username='writer', role=UserProfile.Role.AUTHOR).save()

    def tearDown(self):
        """Clean up database."""
        Blog.drop_collection()
        UserProfile.drop_collection()

    def test_published_excludes_drafts_and_archived(self):
        """Only published posts are visible to ranking queries."""
        published = Blog(title='Kyoto', content='Temples', author=self.author, status=Blog.Status.PUBLISHED).save()
        Blog(title='Draft', content='...', author=self.author).save()
        Blog(title='Old', content='...', author=self.author, status=Blog.Status.ARCHIVED).save()

        self.assertEqual([blog.id for blog in Blog.published()], [published.id])

    def test_country_code_from_geotag(self):
        blog = Blog(title='Rome', content='Pasta', author=self.author, geotag=Geotag(country='Italy', country_code='IT'))
        self.assertEqual(blog.country_code, 'IT')

        untagged = Blog(title='Nowhere', content='...', author=self.author)
        self.assertIsNone(untagged.country_code)

    def test_default_counters(self):
        blog = Blog(title='Lisbon', content='Trams', author=self.author).save()
        blog.reload()
        self.assertEqual(blog.status, Blog.Status.DRAFT)
        self.assertEqual(blog.views, 0)
        self.assertEqual(blog.likes_count, 0)
