"""
Borrowing eligibility and fine policy.

Pure decision functions used by the circulation services. Nothing in this
module touches the database: callers pass in counts, dates and the current
``PolicySettings`` (built from the admin configuration) and persist the
outcome themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Optional, Tuple

from apps.library import constants
from apps.library.constants import (
    EffectiveTier,
    LoanStatus,
    ReservationStatus,
    SubscriptionStatus,
    SubscriptionTier,
)

CENTS = Decimal('0.01')
ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class PolicySettings:
    """Admin-editable knobs consumed by the policy functions."""
    standard_loan_days: int = constants.DEFAULT_STANDARD_LOAN_DAYS
    premium_loan_days: int = constants.DEFAULT_PREMIUM_LOAN_DAYS
    standard_max_loans: int = constants.DEFAULT_STANDARD_MAX_LOANS
    premium_max_loans: int = constants.DEFAULT_PREMIUM_MAX_LOANS
    grace_period_days: int = constants.DEFAULT_GRACE_PERIOD_DAYS
    daily_fine: Decimal = constants.DEFAULT_DAILY_FINE
    premium_fine_discount: Decimal = constants.DEFAULT_PREMIUM_FINE_DISCOUNT
    max_fine_cap: Decimal = constants.DEFAULT_MAX_FINE_CAP
    outstanding_fine_threshold: Decimal = constants.DEFAULT_OUTSTANDING_FINE_THRESHOLD
    max_renewals: int = constants.DEFAULT_MAX_RENEWALS
    reservation_pickup_days: int = constants.DEFAULT_RESERVATION_PICKUP_DAYS
    auto_charge_fines: bool = False


@dataclass(frozen=True)
class Envelope:
    """The resolved borrowing limits for one member."""
    tier: EffectiveTier
    max_concurrent_loans: int
    loan_period_days: int
    daily_fine_rate: Decimal
    fine_cap: Decimal
    grace_period_days: int = 0

    @property
    def is_premium(self) -> bool:
        return self.tier == EffectiveTier.PREMIUM


class DenialReason(str, Enum):
    NO_COPY_AVAILABLE = 'NoCopyAvailable'
    LOAN_LIMIT_REACHED = 'LoanLimitReached'
    OUTSTANDING_FINE_BLOCK = 'OutstandingFineBlock'
    RENEWAL_LIMIT_REACHED = 'RenewalLimitReached'
    LOAN_OVERDUE_CANNOT_RENEW = 'LoanOverdueCannotRenew'


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check. Denials carry a reason, never raise."""
    allowed: bool
    reason: Optional[DenialReason] = None
    message: str = ''
    due_date: Optional[datetime] = None

    @classmethod
    def allow(cls, due_date: datetime) -> 'Decision':
        return cls(allowed=True, due_date=due_date)

    @classmethod
    def deny(cls, reason: DenialReason, message: str) -> 'Decision':
        return cls(allowed=False, reason=reason, message=message)

    def __bool__(self) -> bool:
        return self.allowed


# ==================== TIER RESOLUTION ====================

def coerce_tier(value) -> SubscriptionTier:
    """Map a raw value onto the closed tier enum; unknown values are errors."""
    try:
        return SubscriptionTier(value)
    except ValueError:
        raise ValueError(f"Unknown subscription tier: {value!r}") from None


def coerce_status(value) -> SubscriptionStatus:
    try:
        return SubscriptionStatus(value)
    except ValueError:
        raise ValueError(f"Unknown subscription status: {value!r}") from None


def effective_tier(tier: SubscriptionTier, status: SubscriptionStatus) -> EffectiveTier:
    tier = coerce_tier(tier)
    status = coerce_status(status)

    if tier in constants.PREMIUM_TIERS:
        if status == SubscriptionStatus.ACTIVE:
            return EffectiveTier.PREMIUM
        # Cancelled or expired premium degrades to standard limits
        return EffectiveTier.STANDARD
    if tier == SubscriptionTier.FREE:
        return EffectiveTier.STANDARD
    raise AssertionError(f"Unhandled subscription tier: {tier!r}")


def premium_fine_rate(settings: PolicySettings) -> Decimal:
    return Decimal(settings.daily_fine) * (Decimal('1') - Decimal(settings.premium_fine_discount))


def resolve_envelope(
    tier: SubscriptionTier,
    status: SubscriptionStatus,
    settings: Optional[PolicySettings] = None,
) -> Envelope:
    """Return the borrowing envelope for a member's tier and status."""
    settings = settings or PolicySettings()

    if effective_tier(tier, status) == EffectiveTier.PREMIUM:
        return Envelope(
            tier=EffectiveTier.PREMIUM,
            max_concurrent_loans=settings.premium_max_loans,
            loan_period_days=settings.premium_loan_days,
            daily_fine_rate=premium_fine_rate(settings),
            fine_cap=Decimal(settings.max_fine_cap),
            grace_period_days=settings.grace_period_days,
        )

    return Envelope(
        tier=EffectiveTier.STANDARD,
        max_concurrent_loans=settings.standard_max_loans,
        loan_period_days=settings.standard_loan_days,
        daily_fine_rate=Decimal(settings.daily_fine),
        fine_cap=Decimal(settings.max_fine_cap),
        grace_period_days=settings.grace_period_days,
    )


# ==================== BORROWING ====================

def due_date_for(start: datetime, envelope: Envelope) -> datetime:
    return start + timedelta(days=envelope.loan_period_days)


def authorize_borrow(
    active_loan_count: int,
    envelope: Envelope,
    available_copies: int,
    borrowed_date: datetime,
    pending_fine_total: Decimal = Decimal('0'),
    outstanding_fine_threshold: Decimal = constants.DEFAULT_OUTSTANDING_FINE_THRESHOLD,
) -> Decision:
    """
    Decide whether a member may borrow a book now.

    Checks run in a fixed order: copy availability, the concurrent loan
    limit, then the outstanding fine threshold.
    """
    if available_copies <= 0:
        return Decision.deny(
            DenialReason.NO_COPY_AVAILABLE,
            'No available copies of this book. You can reserve it instead.',
        )

    if active_loan_count >= envelope.max_concurrent_loans:
        return Decision.deny(
            DenialReason.LOAN_LIMIT_REACHED,
            f'Borrowing limit reached. You can borrow up to '
            f'{envelope.max_concurrent_loans} book(s) at a time.',
        )

    if Decimal(pending_fine_total) > Decimal(outstanding_fine_threshold):
        return Decision.deny(
            DenialReason.OUTSTANDING_FINE_BLOCK,
            f'You have ${Decimal(pending_fine_total).quantize(CENTS)} in unpaid fines. '
            f'Please pay your fines to continue borrowing books.',
        )

    return Decision.allow(due_date_for(borrowed_date, envelope))


def authorize_renewal(
    renewal_count: int,
    status: LoanStatus,
    envelope: Envelope,
    now: datetime,
    due_date: Optional[datetime] = None,
    max_renewals: int = constants.DEFAULT_MAX_RENEWALS,
) -> Decision:
    """
    Decide whether an existing loan may be extended.

    A loan past its due date counts as overdue even if the stored status
    has not been settled yet.
    """
    overdue = status == LoanStatus.OVERDUE or (
        status == LoanStatus.ACTIVE and due_date is not None and now > due_date
    )
    if overdue:
        return Decision.deny(
            DenialReason.LOAN_OVERDUE_CANNOT_RENEW,
            'Cannot renew overdue book. Please return it first.',
        )

    if renewal_count >= max_renewals:
        return Decision.deny(
            DenialReason.RENEWAL_LIMIT_REACHED,
            f'Maximum renewal limit reached ({max_renewals} renewals).',
        )

    return Decision.allow(due_date_for(now, envelope))


# ==================== FINES ====================

def days_late(due_date: datetime, returned_or_now: datetime) -> int:
    """Whole days elapsed past the due date, floored, never negative."""
    return max(0, (returned_or_now - due_date) // ONE_DAY)


def calculate_fine(due_date: datetime, returned_or_now: datetime, envelope: Envelope) -> Decimal:
    """
    Compute the fine for a loan, returned or still open.

    Re-computable at any time: for an open loan the amount only grows as
    ``returned_or_now`` advances, and never exceeds the envelope's cap.
    """
    chargeable_days = max(0, days_late(due_date, returned_or_now) - envelope.grace_period_days)
    raw_fine = Decimal(chargeable_days) * envelope.daily_fine_rate
    fine = min(raw_fine, envelope.fine_cap)
    return fine.quantize(CENTS, rounding=ROUND_HALF_UP)


# ==================== RESERVATIONS ====================

def next_in_queue(reservations: Iterable):
    """
    Return the pending reservation at the head of the FIFO queue, or None.

    Accepts any objects exposing ``status``, ``queue_position`` and
    ``reserved_date``.
    """
    pending = [r for r in reservations if r.status == ReservationStatus.PENDING]
    if not pending:
        return None
    return min(pending, key=lambda r: (r.queue_position, r.reserved_date))


def pickup_window(now: datetime, pickup_days: int = constants.DEFAULT_RESERVATION_PICKUP_DAYS) -> Tuple[datetime, datetime]:
    """Return ``(ready_date, expiry_date)`` for a reservation promoted at ``now``."""
    return now, now + timedelta(days=pickup_days)


def is_pickup_expired(expiry_date: Optional[datetime], now: datetime) -> bool:
    return expiry_date is not None and now > expiry_date


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in constants.RESERVATION_TRANSITIONS.get(ReservationStatus(current), [])
