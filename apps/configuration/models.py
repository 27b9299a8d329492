from decimal import Decimal

from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.library import constants
from apps.library.policy import PolicySettings

CONFIG_CACHE_KEY = "configuration:library"


class LibraryConfiguration(models.Model):
    """
    Library-wide circulation settings edited from the admin console.
    A single row is kept; use ``get_solo()`` to read it.
    """
    SINGLETON_ID = 1

    id = models.PositiveSmallIntegerField(
        primary_key=True,
        default=SINGLETON_ID,
        editable=False
    )

    # General Settings
    maintenance_mode = models.BooleanField(default=False, verbose_name=_("Maintenance Mode"))
    support_email = models.EmailField(
        default="help@bookflix.lib",
        verbose_name=_("Support Email")
    )

    # Borrowing Limits
    standard_loan_days = models.PositiveIntegerField(
        default=constants.DEFAULT_STANDARD_LOAN_DAYS,
        validators=[MinValueValidator(1), MaxValueValidator(365)],
        verbose_name=_("Standard Loan Period (days)")
    )
    premium_loan_days = models.PositiveIntegerField(
        default=constants.DEFAULT_PREMIUM_LOAN_DAYS,
        validators=[MinValueValidator(1), MaxValueValidator(365)],
        verbose_name=_("Premium Loan Period (days)")
    )
    standard_max_loans = models.PositiveIntegerField(
        default=constants.DEFAULT_STANDARD_MAX_LOANS,
        validators=[MinValueValidator(1), MaxValueValidator(20)],
        verbose_name=_("Standard Concurrent Loans")
    )
    premium_max_loans = models.PositiveIntegerField(
        default=constants.DEFAULT_PREMIUM_MAX_LOANS,
        validators=[MinValueValidator(1), MaxValueValidator(20)],
        verbose_name=_("Premium Concurrent Loans")
    )
    grace_period_days = models.PositiveIntegerField(
        default=constants.DEFAULT_GRACE_PERIOD_DAYS,
        validators=[MaxValueValidator(30)],
        verbose_name=_("Grace Period (days)"),
        help_text=_("Days past the due date that are not charged")
    )
    max_renewals = models.PositiveIntegerField(
        default=constants.DEFAULT_MAX_RENEWALS,
        validators=[MaxValueValidator(10)],
        verbose_name=_("Maximum Renewals")
    )
    reservation_pickup_days = models.PositiveIntegerField(
        default=constants.DEFAULT_RESERVATION_PICKUP_DAYS,
        validators=[MinValueValidator(1), MaxValueValidator(30)],
        verbose_name=_("Reservation Pickup Window (days)")
    )
    reminder_days_before_due = models.PositiveIntegerField(
        default=constants.DEFAULT_REMINDER_DAYS_BEFORE_DUE,
        validators=[MaxValueValidator(14)],
        verbose_name=_("Due Reminder Lead Time (days)")
    )

    # Fine Rates
    daily_fine = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        default=constants.DEFAULT_DAILY_FINE,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
        verbose_name=_("Daily Fine")
    )
    premium_fine_discount = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        default=constants.DEFAULT_PREMIUM_FINE_DISCOUNT,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1"))],
        verbose_name=_("Premium Fine Discount"),
        help_text=_("Fraction taken off the daily fine for premium members (0.50 = 50%)")
    )
    max_fine_cap = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        default=constants.DEFAULT_MAX_FINE_CAP,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1000"))],
        verbose_name=_("Maximum Fine per Loan")
    )
    outstanding_fine_threshold = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        default=constants.DEFAULT_OUTSTANDING_FINE_THRESHOLD,
        validators=[MinValueValidator(Decimal("0"))],
        verbose_name=_("Outstanding Fine Threshold"),
        help_text=_("Members whose unpaid fines exceed this amount cannot borrow")
    )
    auto_charge_fines = models.BooleanField(
        default=False,
        verbose_name=_("Auto Charge Fines"),
        help_text=_("Raise pending fines on overdue loans before they are returned")
    )

    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Last Modification Timestamp"))
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name=_("Last Modified By")
    )

    class Meta:
        db_table = "configuration_library"
        verbose_name = _("Library Configuration")
        verbose_name_plural = _("Library Configuration")

    def __str__(self):
        return "Library Configuration"

    def clean(self):
        """Borrowing limit validation"""
        errors = {}

        if (self.premium_loan_days is not None and self.standard_loan_days is not None
                and self.premium_loan_days < self.standard_loan_days):
            errors['premium_loan_days'] = _('Premium loan period cannot be shorter than the standard period')

        if (self.premium_max_loans is not None and self.standard_max_loans is not None
                and self.premium_max_loans < self.standard_max_loans):
            errors['premium_max_loans'] = _('Premium members cannot be allowed fewer loans than standard members')

        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        self.pk = self.SINGLETON_ID
        if self._state.adding and type(self).objects.filter(pk=self.SINGLETON_ID).exists():
            # Saving a fresh instance overwrites the existing row
            self._state.adding = False
        self.full_clean()
        super().save(*args, **kwargs)
        cache.delete(CONFIG_CACHE_KEY)

    def delete(self, *args, **kwargs):
        raise ValidationError(_("The library configuration cannot be deleted"))

    @classmethod
    def get_solo(cls):
        """Get or create the configuration row, served from cache when possible"""
        config = cache.get(CONFIG_CACHE_KEY)
        if config is None:
            config, created = cls.objects.get_or_create(pk=cls.SINGLETON_ID)
            cache.set(CONFIG_CACHE_KEY, config, getattr(settings, "LIBRARY_CONFIG_CACHE_TIMEOUT", 300))
        return config

    @classmethod
    def reload(cls):
        """Drop the cached row and read it again from the database"""
        cache.delete(CONFIG_CACHE_KEY)
        return cls.get_solo()

    @classmethod
    def policy_settings(cls):
        return cls.get_solo().to_policy_settings()

    def to_policy_settings(self):
        return PolicySettings(
            standard_loan_days=self.standard_loan_days,
            premium_loan_days=self.premium_loan_days,
            standard_max_loans=self.standard_max_loans,
            premium_max_loans=self.premium_max_loans,
            grace_period_days=self.grace_period_days,
            daily_fine=Decimal(self.daily_fine),
            premium_fine_discount=Decimal(self.premium_fine_discount),
            max_fine_cap=Decimal(self.max_fine_cap),
            outstanding_fine_threshold=Decimal(self.outstanding_fine_threshold),
            max_renewals=self.max_renewals,
            reservation_pickup_days=self.reservation_pickup_days,
            auto_charge_fines=self.auto_charge_fines,
        )
