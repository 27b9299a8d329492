from decimal import Decimal

from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.test import TestCase

from apps.configuration.models import LibraryConfiguration


class LibraryConfigurationTest(TestCase):
    def setUp(self):
        cache.clear()

    def test_get_solo_creates_defaults(self):
        config = LibraryConfiguration.get_solo()

        self.assertEqual(config.pk, LibraryConfiguration.SINGLETON_ID)
        self.assertEqual(config.standard_loan_days, 7)
        self.assertEqual(config.daily_fine, Decimal('0.50'))
        self.assertEqual(LibraryConfiguration.objects.count(), 1)

    def test_fresh_instance_overwrites_singleton(self):
        LibraryConfiguration.get_solo()

        LibraryConfiguration(standard_loan_days=10, premium_loan_days=21).save()

        self.assertEqual(LibraryConfiguration.objects.count(), 1)
        self.assertEqual(LibraryConfiguration.get_solo().standard_loan_days, 10)

    def test_save_invalidates_cache(self):
        config = LibraryConfiguration.get_solo()
        config.max_renewals = 5
        config.save()

        self.assertEqual(LibraryConfiguration.policy_settings().max_renewals, 5)

    def test_premium_period_cannot_be_shorter(self):
        config = LibraryConfiguration.get_solo()
        config.premium_loan_days = 3

        with self.assertRaises(ValidationError) as ctx:
            config.save()
        self.assertIn('premium_loan_days', ctx.exception.message_dict)

    def test_cannot_delete(self):
        with self.assertRaises(ValidationError):
            LibraryConfiguration.get_solo().delete()

    def test_policy_settings_mirror_fields(self):
        config = LibraryConfiguration.get_solo()
        config.grace_period_days = 2
        config.auto_charge_fines = True
        config.save()

        settings = LibraryConfiguration.policy_settings()

        self.assertEqual(settings.grace_period_days, 2)
        self.assertTrue(settings.auto_charge_fines)
        self.assertEqual(settings.premium_fine_discount, Decimal('0.50'))
