from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone
from django.utils.text import slugify
from django.utils.translation import gettext_lazy as _

from apps.core.models import BaseModel
from apps.library import policy
from apps.library.constants import (
    CopyCondition,
    CopyStatus,
    FineStatus,
    LoanStatus,
    ReservationStatus,
    SubscriptionStatus,
    SubscriptionTier,
)


class Member(BaseModel):
    """
    Library member and subscription state
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="library_member",
        verbose_name=_("User")
    )
    member_code = models.CharField(
        max_length=50,
        unique=True,
        db_index=True,
        verbose_name=_("Member ID")
    )
    phone = models.CharField(max_length=20, blank=True, verbose_name=_("Phone"))
    membership_date = models.DateField(default=timezone.localdate, verbose_name=_("Membership Date"))

    # Subscription
    subscription_tier = models.CharField(
        max_length=20,
        choices=SubscriptionTier.choices,
        default=SubscriptionTier.FREE,
        verbose_name=_("Subscription Tier")
    )
    subscription_status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.ACTIVE,
        verbose_name=_("Subscription Status")
    )
    subscription_ends_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_("Subscription Ends At"),
        help_text=_("End of the paid period; an active subscription past this date counts as expired")
    )

    class Meta:
        db_table = "library_members"
        verbose_name = _("Member")
        verbose_name_plural = _("Members")
        ordering = ["member_code"]
        indexes = [
            models.Index(fields=['subscription_tier', 'subscription_status'], name='library_member_subscr_idx'),
        ]

    def __str__(self):
        return f"{self.member_code} - {self.display_name}"

    def save(self, *args, **kwargs):
        if not self.member_code:
            self.member_code = self.generate_member_code()
        super().save(*args, **kwargs)

    def generate_member_code(self):
        """Generate unique member code"""
        prefix = f"BF-{timezone.now().year}-"
        last_member = Member.objects.filter(
            member_code__startswith=prefix
        ).order_by('member_code').last()

        if last_member:
            new_num = int(last_member.member_code.split('-')[-1]) + 1
        else:
            new_num = 1

        return f"{prefix}{new_num:05d}"

    @property
    def display_name(self):
        return self.user.get_full_name() or self.user.get_username()

    def subscription_status_at(self, now=None):
        """Stored status, with a lapsed paid period read as expired"""
        now = now or timezone.now()
        status = SubscriptionStatus(self.subscription_status)
        if (status == SubscriptionStatus.ACTIVE and self.subscription_ends_at
                and now > self.subscription_ends_at):
            return SubscriptionStatus.EXPIRED
        return status

    def envelope(self, policy_settings=None, now=None):
        return policy.resolve_envelope(
            SubscriptionTier(self.subscription_tier),
            self.subscription_status_at(now),
            policy_settings,
        )

    @property
    def effective_tier(self):
        return policy.effective_tier(
            SubscriptionTier(self.subscription_tier),
            self.subscription_status_at(),
        )

    def open_loan_count(self):
        return self.loans.filter(status__in=LoanStatus.open_statuses()).count()

    def pending_fine_total(self):
        total = self.fines.filter(status=FineStatus.PENDING).aggregate(total=Sum('amount'))['total']
        return total or Decimal('0.00')


class Category(BaseModel):
    """
    Book categories for catalogue browsing
    """
    name = models.CharField(max_length=100, unique=True, verbose_name=_("Category Name"))
    slug = models.SlugField(max_length=120, unique=True, verbose_name=_("Slug"))
    description = models.TextField(blank=True, verbose_name=_("Description"))

    class Meta:
        db_table = "library_categories"
        verbose_name = _("Category")
        verbose_name_plural = _("Categories")
        ordering = ["name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)
        super().save(*args, **kwargs)


class Book(BaseModel):
    """
    Catalogue entry; physical copies are BookCopy rows
    """
    title = models.CharField(max_length=500, db_index=True, verbose_name=_("Title"))
    author = models.CharField(max_length=300, db_index=True, verbose_name=_("Author"))
    isbn = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        verbose_name=_("ISBN")
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="books",
        verbose_name=_("Category")
    )
    language = models.CharField(max_length=50, default="English", verbose_name=_("Language"))
    publication_year = models.PositiveIntegerField(null=True, blank=True, verbose_name=_("Publication Year"))
    description = models.TextField(blank=True, verbose_name=_("Description"))
    cover_image = models.URLField(blank=True, verbose_name=_("Cover Image"))

    class Meta:
        db_table = "library_books"
        verbose_name = _("Book")
        verbose_name_plural = _("Books")
        ordering = ["title"]
        indexes = [
            models.Index(fields=['title', 'author'], name='library_book_title_author_idx'),
            models.Index(fields=['language'], name='library_book_language_idx'),
        ]

    def __str__(self):
        return self.title

    @property
    def total_copies(self):
        return self.copies.filter(is_active=True).count()

    @property
    def available_copies(self):
        return self.copies.filter(is_active=True, status=CopyStatus.AVAILABLE).count()


class BookCopy(BaseModel):
    """
    Physical copy of a book
    """
    book = models.ForeignKey(
        Book,
        on_delete=models.CASCADE,
        related_name="copies",
        verbose_name=_("Book")
    )
    copy_number = models.PositiveIntegerField(verbose_name=_("Copy Number"))
    barcode = models.CharField(
        max_length=100,
        unique=True,
        null=True,
        blank=True,
        verbose_name=_("Barcode")
    )
    status = models.CharField(
        max_length=20,
        choices=CopyStatus.choices,
        default=CopyStatus.AVAILABLE,
        db_index=True,
        verbose_name=_("Status")
    )
    condition = models.CharField(
        max_length=10,
        choices=CopyCondition.choices,
        default=CopyCondition.GOOD,
        verbose_name=_("Condition")
    )
    shelf_location = models.CharField(max_length=100, blank=True, verbose_name=_("Shelf Location"))
    notes = models.TextField(blank=True, verbose_name=_("Notes"))

    class Meta:
        db_table = "library_book_copies"
        verbose_name = _("Book Copy")
        verbose_name_plural = _("Book Copies")
        ordering = ["book", "copy_number"]
        constraints = [
            models.UniqueConstraint(fields=['book', 'copy_number'], name='unique_copy_number_per_book'),
        ]
        indexes = [
            models.Index(fields=['book', 'status'], name='library_copy_book_status_idx'),
        ]

    def __str__(self):
        return f"{self.book.title} - Copy {self.copy_number}"


class Loan(BaseModel):
    """
    Borrowing transaction for one physical copy
    """
    member = models.ForeignKey(
        Member,
        on_delete=models.PROTECT,
        related_name="loans",
        verbose_name=_("Member")
    )
    book = models.ForeignKey(
        Book,
        on_delete=models.PROTECT,
        related_name="loans",
        verbose_name=_("Book")
    )
    book_copy = models.ForeignKey(
        BookCopy,
        on_delete=models.PROTECT,
        related_name="loans",
        verbose_name=_("Book Copy")
    )

    borrowed_date = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_("Borrowed Date"))
    due_date = models.DateTimeField(db_index=True, verbose_name=_("Due Date"))
    returned_date = models.DateTimeField(null=True, blank=True, verbose_name=_("Returned Date"))
    status = models.CharField(
        max_length=20,
        choices=LoanStatus.choices,
        default=LoanStatus.ACTIVE,
        db_index=True,
        verbose_name=_("Status")
    )

    # Renewal Information
    renewal_count = models.PositiveIntegerField(default=0, verbose_name=_("Renewal Count"))
    last_renewal_date = models.DateTimeField(null=True, blank=True, verbose_name=_("Last Renewal Date"))

    issued_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="issued_loans",
        verbose_name=_("Issued By")
    )
    returned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="received_loans",
        verbose_name=_("Returned By")
    )
    notes = models.TextField(blank=True, verbose_name=_("Notes"))

    class Meta:
        db_table = "library_loans"
        verbose_name = _("Loan")
        verbose_name_plural = _("Loans")
        ordering = ["-borrowed_date"]
        constraints = [
            models.UniqueConstraint(
                fields=['book_copy'],
                condition=Q(status__in=['active', 'overdue']),
                name='one_open_loan_per_copy',
            ),
        ]
        indexes = [
            models.Index(fields=['member', 'status'], name='library_loan_member_status_idx'),
            models.Index(fields=['status', 'due_date'], name='library_loan_status_due_idx'),
        ]

    def __str__(self):
        return f"{self.member} - {self.book} ({self.status})"

    @property
    def is_open(self):
        return self.status in LoanStatus.open_statuses()

    def is_overdue(self, now=None):
        now = now or timezone.now()
        return self.is_open and now > self.due_date

    def days_overdue(self, now=None):
        if not self.is_open:
            return policy.days_late(self.due_date, self.returned_date) if self.returned_date else 0
        return policy.days_late(self.due_date, now or timezone.now())

    def days_remaining(self, now=None):
        if not self.is_open:
            return 0
        remaining = self.due_date - (now or timezone.now())
        return max(0, remaining.days)

    def refresh_status(self, now=None):
        """Settle an active loan past its due date to overdue"""
        if self.status == LoanStatus.ACTIVE and self.is_overdue(now):
            self.status = LoanStatus.OVERDUE
            self.save(update_fields=['status', 'updated_at'])
            return True
        return False

    def advisory_fine(self, policy_settings=None, now=None):
        """Fine owed so far; final once the loan is returned"""
        end = self.returned_date or now or timezone.now()
        envelope = self.member.envelope(policy_settings, end)
        return policy.calculate_fine(self.due_date, end, envelope)


class Fine(BaseModel):
    """
    Overdue fine charged against a loan. A loan carries at most one pending
    fine; lateness accrued after a fine is settled is charged as a new one.
    """
    member = models.ForeignKey(
        Member,
        on_delete=models.CASCADE,
        related_name="fines",
        verbose_name=_("Member")
    )
    loan = models.ForeignKey(
        Loan,
        on_delete=models.CASCADE,
        related_name="fines",
        verbose_name=_("Loan")
    )
    amount = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        verbose_name=_("Amount")
    )
    days_overdue = models.PositiveIntegerField(default=0, verbose_name=_("Days Overdue"))
    status = models.CharField(
        max_length=20,
        choices=FineStatus.choices,
        default=FineStatus.PENDING,
        db_index=True,
        verbose_name=_("Status")
    )
    issued_date = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_("Issued Date"))
    paid_date = models.DateTimeField(null=True, blank=True, verbose_name=_("Paid Date"))
    waived_date = models.DateTimeField(null=True, blank=True, verbose_name=_("Waived Date"))
    waived_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="waived_fines",
        verbose_name=_("Waived By")
    )
    notes = models.TextField(blank=True, verbose_name=_("Notes"))

    class Meta:
        db_table = "library_fines"
        verbose_name = _("Fine")
        verbose_name_plural = _("Fines")
        ordering = ["-issued_date"]
        indexes = [
            models.Index(fields=['member', 'status'], name='library_fine_member_status_idx'),
            models.Index(fields=['status', 'issued_date'], name='library_fine_status_issued_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['loan'],
                condition=Q(status='pending'),
                name='one_pending_fine_per_loan',
            ),
        ]

    def __str__(self):
        return f"{self.member} - {self.amount} ({self.status})"

    def mark_paid(self, when=None):
        """Settle the fine as paid"""
        if self.status != FineStatus.PENDING:
            raise ValidationError(_("Only pending fines can be paid"))

        self.status = FineStatus.PAID
        self.paid_date = when or timezone.now()
        self.save(update_fields=['status', 'paid_date', 'updated_at'])

    def waive(self, waived_by, reason="", when=None):
        """Waive the fine; administrative action"""
        if self.status != FineStatus.PENDING:
            raise ValidationError(_("Only pending fines can be waived"))

        self.status = FineStatus.WAIVED
        self.waived_date = when or timezone.now()
        self.waived_by = waived_by
        if reason:
            self.notes = f"{self.notes}\nWaiver: {reason}".strip()
        self.save(update_fields=['status', 'waived_date', 'waived_by', 'notes', 'updated_at'])


class Reservation(BaseModel):
    """
    Hold placed on a book with no free copy, served FIFO by queue position
    """
    member = models.ForeignKey(
        Member,
        on_delete=models.CASCADE,
        related_name="reservations",
        verbose_name=_("Member")
    )
    book = models.ForeignKey(
        Book,
        on_delete=models.CASCADE,
        related_name="reservations",
        verbose_name=_("Book")
    )
    book_copy = models.ForeignKey(
        BookCopy,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reservations",
        verbose_name=_("Held Copy")
    )
    status = models.CharField(
        max_length=20,
        choices=ReservationStatus.choices,
        default=ReservationStatus.PENDING,
        db_index=True,
        verbose_name=_("Status")
    )
    queue_position = models.PositiveIntegerField(verbose_name=_("Queue Position"))

    reserved_date = models.DateTimeField(default=timezone.now, db_index=True, verbose_name=_("Reserved Date"))
    ready_date = models.DateTimeField(null=True, blank=True, verbose_name=_("Ready Date"))
    expiry_date = models.DateTimeField(null=True, blank=True, db_index=True, verbose_name=_("Pickup Expiry Date"))
    completed_date = models.DateTimeField(null=True, blank=True, verbose_name=_("Completed Date"))
    cancelled_date = models.DateTimeField(null=True, blank=True, verbose_name=_("Cancelled Date"))
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="cancelled_reservations",
        verbose_name=_("Cancelled By")
    )
    notes = models.TextField(blank=True, verbose_name=_("Notes"))

    class Meta:
        db_table = "library_reservations"
        verbose_name = _("Reservation")
        verbose_name_plural = _("Reservations")
        ordering = ["book", "queue_position"]
        constraints = [
            models.UniqueConstraint(fields=['book', 'queue_position'], name='unique_queue_position_per_book'),
            models.UniqueConstraint(
                fields=['member', 'book'],
                condition=Q(status__in=['pending', 'ready']),
                name='one_live_reservation_per_member_book',
            ),
        ]
        indexes = [
            models.Index(fields=['member', 'status'], name='library_resv_member_status_idx'),
            models.Index(fields=['book', 'status'], name='library_resv_book_status_idx'),
        ]

    def __str__(self):
        return f"{self.member} - {self.book} - {self.status}"

    @property
    def is_live(self):
        return self.status in ReservationStatus.live_statuses()

    def is_expired(self, now=None):
        return self.status == ReservationStatus.READY and policy.is_pickup_expired(
            self.expiry_date, now or timezone.now()
        )

    def days_until_expiry(self, now=None):
        if self.status != ReservationStatus.READY or not self.expiry_date:
            return None
        return max(0, (self.expiry_date - (now or timezone.now())).days)

    def transition_to(self, target, when=None):
        """Move along the reservation state machine or raise"""
        if not policy.can_transition(self.status, target):
            raise ValidationError(
                _("Cannot move reservation from %(current)s to %(target)s") % {
                    'current': self.status,
                    'target': target,
                }
            )
        when = when or timezone.now()
        self.status = target
        if target == ReservationStatus.COMPLETED:
            self.completed_date = when
        elif target == ReservationStatus.CANCELLED:
            self.cancelled_date = when
