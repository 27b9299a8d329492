"""
Constants for the library circulation module.
Status enums, subscription enums and the default borrowing rules.
"""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


# ============================================================================
# SUBSCRIPTION
# ============================================================================

class SubscriptionTier(models.TextChoices):
    FREE = 'free', _('Free')
    MONTHLY = 'monthly', _('Monthly')
    YEARLY = 'yearly', _('Yearly')


class SubscriptionStatus(models.TextChoices):
    ACTIVE = 'active', _('Active')
    CANCELLED = 'cancelled', _('Cancelled')
    EXPIRED = 'expired', _('Expired')


class EffectiveTier(models.TextChoices):
    STANDARD = 'standard', _('Standard')
    PREMIUM = 'premium', _('Premium')


PREMIUM_TIERS = (SubscriptionTier.MONTHLY, SubscriptionTier.YEARLY)


# ============================================================================
# CIRCULATION STATUS
# ============================================================================

class CopyStatus(models.TextChoices):
    AVAILABLE = 'available', _('Available')
    BORROWED = 'borrowed', _('Borrowed')
    RESERVED = 'reserved', _('Reserved')
    MAINTENANCE = 'maintenance', _('Maintenance')


class CopyCondition(models.TextChoices):
    NEW = 'new', _('New')
    GOOD = 'good', _('Good')
    FAIR = 'fair', _('Fair')
    POOR = 'poor', _('Poor')


class LoanStatus(models.TextChoices):
    ACTIVE = 'active', _('Active')
    RETURNED = 'returned', _('Returned')
    OVERDUE = 'overdue', _('Overdue')

    # Loans still held by the member
    @classmethod
    def open_statuses(cls):
        return [cls.ACTIVE, cls.OVERDUE]


class FineStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    PAID = 'paid', _('Paid')
    WAIVED = 'waived', _('Waived')


class ReservationStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    READY = 'ready', _('Ready for Pickup')
    COMPLETED = 'completed', _('Completed')
    EXPIRED = 'expired', _('Expired')
    CANCELLED = 'cancelled', _('Cancelled')

    @classmethod
    def live_statuses(cls):
        return [cls.PENDING, cls.READY]


# Status transitions (from -> to)
RESERVATION_TRANSITIONS = {
    ReservationStatus.PENDING: [ReservationStatus.READY, ReservationStatus.CANCELLED],
    ReservationStatus.READY: [
        ReservationStatus.COMPLETED,
        ReservationStatus.EXPIRED,
        ReservationStatus.CANCELLED,
    ],
    ReservationStatus.COMPLETED: [],  # Final state
    ReservationStatus.EXPIRED: [],  # Final state
    ReservationStatus.CANCELLED: [],  # Final state
}


# ============================================================================
# DEFAULT BORROWING RULES
# ============================================================================

DEFAULT_STANDARD_LOAN_DAYS = 7
DEFAULT_PREMIUM_LOAN_DAYS = 20
DEFAULT_STANDARD_MAX_LOANS = 1
DEFAULT_PREMIUM_MAX_LOANS = 4
DEFAULT_GRACE_PERIOD_DAYS = 0
DEFAULT_DAILY_FINE = Decimal('0.50')
DEFAULT_PREMIUM_FINE_DISCOUNT = Decimal('0.50')
DEFAULT_MAX_FINE_CAP = Decimal('20.00')
DEFAULT_OUTSTANDING_FINE_THRESHOLD = Decimal('0.00')
DEFAULT_MAX_RENEWALS = 2
DEFAULT_RESERVATION_PICKUP_DAYS = 3
DEFAULT_REMINDER_DAYS_BEFORE_DUE = 2
