import unittest

from .models import Country


class CountryModelTests(unittest.TestCase):
    def setUp(self):
        Country.drop_collection()
        self.japan = Country(name='Japan', code='JP', continent='Asia', popularity=10).save()
        self.italy = Country(name='Italy', code='IT', continent='Europe').save()

    def tearDown(self):
        Country.drop_collection()

    def test_by_codes_maps_known_codes(self):
        """Test that codes resolve to their countries."""
        countries = Country.by_codes(['JP', 'IT'])
        self.assertEqual(countries, {'JP': self.japan, 'IT': self.italy})

    def test_by_codes_skips_unknown_codes(self):
        """Test that unknown codes are left out instead of failing."""
        countries = Country.by_codes(code for code in ['JP', 'ZZ'])
        self.assertEqual(list(countries), ['JP'])
