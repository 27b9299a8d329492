from datetime import timedelta
from decimal import Decimal

from django.db.models import Sum

from apps.communications.models import Notification
from apps.library.constants import (
    CopyStatus,
    FineStatus,
    LoanStatus,
    SubscriptionTier,
)
from apps.library.models import Fine
from apps.library.policy import DenialReason, PolicySettings
from apps.library.services import (
    CirculationError,
    FineService,
    LoanService,
    PolicyDenied,
    StockService,
)

from .helpers import NOW, LibraryTestCase, make_book, make_member, make_user


class BorrowTest(LibraryTestCase):
    def setUp(self):
        super().setUp()
        self.member = make_member('alice')
        self.book = make_book(copies=2)

    def test_borrow_lends_a_free_copy(self):
        with self.assertLogs('apps.library.services', level='INFO') as logs:
            loan = LoanService.borrow(self.member, self.book, now=NOW)

        self.assertEqual(loan.status, LoanStatus.ACTIVE)
        self.assertEqual(loan.due_date, NOW + timedelta(days=7))
        loan.book_copy.refresh_from_db()
        self.assertEqual(loan.book_copy.status, CopyStatus.BORROWED)
        self.assertEqual(self.book.available_copies, 1)
        self.assertTrue(any('issued' in line for line in logs.output))

    def test_standard_member_cannot_hold_two_loans(self):
        LoanService.borrow(self.member, self.book, now=NOW)
        other = make_book('Emma', copies=3, author='Jane Austen')

        with self.assertRaises(PolicyDenied) as ctx:
            LoanService.borrow(self.member, other, now=NOW)

        self.assertEqual(ctx.exception.reason, DenialReason.LOAN_LIMIT_REACHED)
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.extra, {'limit': 1})
        self.assertEqual(other.available_copies, 3)

    def test_premium_member_may_hold_four_loans(self):
        member = make_member('bob', tier=SubscriptionTier.MONTHLY)
        books = [make_book(f'Book {i}', author='Various') for i in range(5)]

        for book in books[:4]:
            loan = LoanService.borrow(member, book, now=NOW)
            self.assertEqual(loan.due_date, NOW + timedelta(days=20))

        with self.assertRaises(PolicyDenied) as ctx:
            LoanService.borrow(member, books[4], now=NOW)
        self.assertEqual(ctx.exception.reason, DenialReason.LOAN_LIMIT_REACHED)

    def test_lapsed_subscription_borrows_on_standard_terms(self):
        member = make_member('carol', tier=SubscriptionTier.YEARLY)
        member.subscription_ends_at = NOW - timedelta(days=1)
        member.save()

        loan = LoanService.borrow(member, self.book, now=NOW)

        self.assertEqual(loan.due_date, NOW + timedelta(days=7))

    def test_same_book_cannot_be_borrowed_twice(self):
        member = make_member('dave', tier=SubscriptionTier.MONTHLY)
        LoanService.borrow(member, self.book, now=NOW)

        with self.assertRaises(CirculationError) as ctx:
            LoanService.borrow(member, self.book, now=NOW)

        self.assertEqual(ctx.exception.code, 'already_borrowed')
        self.assertEqual(ctx.exception.status_code, 409)

    def test_last_copy_goes_to_one_member(self):
        book = make_book('Solo', copies=1, author='Anon')
        LoanService.borrow(self.member, book, now=NOW)

        with self.assertRaises(PolicyDenied) as ctx:
            LoanService.borrow(make_member('erin'), book, now=NOW)

        self.assertEqual(ctx.exception.reason, DenialReason.NO_COPY_AVAILABLE)
        self.assertEqual(ctx.exception.status_code, 409)

    def test_withdrawn_book_cannot_be_borrowed(self):
        self.book.deactivate()

        with self.assertRaises(CirculationError) as ctx:
            LoanService.borrow(self.member, self.book, now=NOW)
        self.assertEqual(ctx.exception.code, 'book_inactive')

    def test_copies_in_maintenance_are_not_lent(self):
        book = make_book('Fragile', copies=1, author='Anon')
        StockService.set_copy_status(book.copies.get(), CopyStatus.MAINTENANCE, now=NOW)

        with self.assertRaises(PolicyDenied) as ctx:
            LoanService.borrow(self.member, book, now=NOW)
        self.assertEqual(ctx.exception.reason, DenialReason.NO_COPY_AVAILABLE)


class ReturnAndFineTest(LibraryTestCase):
    def setUp(self):
        super().setUp()
        self.member = make_member('alice')
        self.book = make_book(copies=1)
        self.librarian = make_user('librarian', is_staff=True)
        self.loan = LoanService.borrow(self.member, self.book, now=NOW)

    def test_on_time_return_has_no_fine(self):
        loan, fine = LoanService.return_loan(self.loan, returned_by=self.librarian, now=NOW + timedelta(days=3))

        self.assertIsNone(fine)
        self.assertEqual(loan.status, LoanStatus.RETURNED)
        self.assertEqual(loan.returned_by, self.librarian)
        self.assertEqual(self.book.available_copies, 1)

    def test_late_return_issues_a_fine(self):
        loan, fine = LoanService.return_loan(self.loan, now=NOW + timedelta(days=10))

        self.assertEqual(fine.amount, Decimal('1.50'))
        self.assertEqual(fine.days_overdue, 3)
        self.assertEqual(fine.status, FineStatus.PENDING)
        self.assertTrue(Notification.objects.filter(
            recipient=self.member.user, notification_type=Notification.FINE_ISSUED
        ).exists())

    def test_premium_member_pays_discounted_rate(self):
        member = make_member('bob', tier=SubscriptionTier.MONTHLY)
        book = make_book('Emma', author='Jane Austen')
        loan = LoanService.borrow(member, book, now=NOW)

        _, fine = LoanService.return_loan(loan, now=NOW + timedelta(days=25))

        self.assertEqual(fine.amount, Decimal('1.25'))

    def test_loan_cannot_be_returned_twice(self):
        LoanService.return_loan(self.loan, now=NOW + timedelta(days=1))

        with self.assertRaises(CirculationError) as ctx:
            LoanService.return_loan(self.loan, now=NOW + timedelta(days=2))
        self.assertEqual(ctx.exception.code, 'already_returned')

    def test_unpaid_fine_blocks_borrowing_until_paid(self):
        _, fine = LoanService.return_loan(self.loan, now=NOW + timedelta(days=10))

        with self.assertRaises(PolicyDenied) as ctx:
            LoanService.borrow(self.member, self.book, now=NOW + timedelta(days=11))
        self.assertEqual(ctx.exception.reason, DenialReason.OUTSTANDING_FINE_BLOCK)
        self.assertEqual(Decimal(ctx.exception.extra['pendingFines']), Decimal('1.50'))

        fine = FineService.pay(fine, now=NOW + timedelta(days=11))
        self.assertEqual(fine.status, FineStatus.PAID)
        self.assertTrue(Notification.objects.filter(
            recipient=self.member.user, notification_type=Notification.PAYMENT_RECEIVED
        ).exists())

        loan = LoanService.borrow(self.member, self.book, now=NOW + timedelta(days=11))
        self.assertEqual(loan.status, LoanStatus.ACTIVE)

    def test_waive_fine(self):
        _, fine = LoanService.return_loan(self.loan, now=NOW + timedelta(days=10))

        fine = FineService.waive(fine, waived_by=self.librarian, reason='First offence')

        self.assertEqual(fine.status, FineStatus.WAIVED)
        self.assertEqual(fine.waived_by, self.librarian)
        self.assertIn('First offence', fine.notes)
        with self.assertRaises(CirculationError):
            FineService.pay(fine)

    def test_advisory_fine_grows_until_return(self):
        self.assertEqual(self.loan.advisory_fine(now=NOW + timedelta(days=8)), Decimal('0.50'))
        self.assertEqual(self.loan.advisory_fine(now=NOW + timedelta(days=9)), Decimal('1.00'))


class RenewalTest(LibraryTestCase):
    def setUp(self):
        super().setUp()
        self.member = make_member('alice')
        self.loan = LoanService.borrow(self.member, make_book(), now=NOW)

    def test_renewal_restarts_the_loan_period(self):
        renewed_at = NOW + timedelta(days=5)
        loan = LoanService.renew(self.loan, now=renewed_at)

        self.assertEqual(loan.due_date, renewed_at + timedelta(days=7))
        self.assertEqual(loan.renewal_count, 1)
        self.assertEqual(loan.last_renewal_date, renewed_at)

    def test_third_renewal_is_refused(self):
        LoanService.renew(self.loan, now=NOW + timedelta(days=1))
        LoanService.renew(self.loan, now=NOW + timedelta(days=2))

        with self.assertRaises(PolicyDenied) as ctx:
            LoanService.renew(self.loan, now=NOW + timedelta(days=3))

        self.assertEqual(ctx.exception.reason, DenialReason.RENEWAL_LIMIT_REACHED)
        self.assertEqual(ctx.exception.extra, {'maxRenewals': 2})

    def test_overdue_loan_cannot_be_renewed(self):
        with self.assertRaises(PolicyDenied) as ctx:
            LoanService.renew(self.loan, now=NOW + timedelta(days=8))
        self.assertEqual(ctx.exception.reason, DenialReason.LOAN_OVERDUE_CANNOT_RENEW)

    def test_returned_loan_cannot_be_renewed(self):
        LoanService.return_loan(self.loan, now=NOW + timedelta(days=1))

        with self.assertRaises(CirculationError):
            LoanService.renew(self.loan, now=NOW + timedelta(days=2))


class OverdueSweepTest(LibraryTestCase):
    def setUp(self):
        super().setUp()
        self.member = make_member('alice')
        self.loan = LoanService.borrow(self.member, make_book(), now=NOW)

    def test_sweep_marks_overdue_without_charging(self):
        stats = FineService.calculate_overdue_fines(now=NOW + timedelta(days=8))

        self.loan.refresh_from_db()
        self.assertEqual(self.loan.status, LoanStatus.OVERDUE)
        self.assertEqual(stats['overdue'], 1)
        self.assertEqual(stats['created'], 0)
        self.assertFalse(Fine.objects.exists())

    def test_auto_charge_raises_and_refreshes_one_fine(self):
        settings = PolicySettings(auto_charge_fines=True)

        stats = FineService.calculate_overdue_fines(now=NOW + timedelta(days=8), policy_settings=settings)
        self.assertEqual(stats['created'], 1)
        self.assertEqual(Fine.objects.get(loan=self.loan).amount, Decimal('0.50'))

        stats = FineService.calculate_overdue_fines(now=NOW + timedelta(days=10), policy_settings=settings)
        self.assertEqual(stats['updated'], 1)
        self.assertEqual(Fine.objects.get(loan=self.loan).amount, Decimal('1.50'))

        _, fine = LoanService.return_loan(self.loan, now=NOW + timedelta(days=12), policy_settings=settings)
        self.assertEqual(fine.amount, Decimal('2.50'))
        self.assertEqual(Fine.objects.filter(loan=self.loan).count(), 1)


class FineTest(LibraryTestCase):
    """Auto-charged fines settled while the book is still out"""

    def setUp(self):
        super().setUp()
        self.settings = PolicySettings(auto_charge_fines=True)
        self.librarian = make_user('librarian', is_staff=True)
        self.member = make_member('alice')
        self.loan = LoanService.borrow(self.member, make_book(), now=NOW)
        FineService.calculate_overdue_fines(now=NOW + timedelta(days=9), policy_settings=self.settings)
        self.early_fine = Fine.objects.get(loan=self.loan)

    def test_fine_paid_early_keeps_accruing_until_return(self):
        FineService.pay(self.early_fine, now=NOW + timedelta(days=9))
        self.assertEqual(self.early_fine.amount, Decimal('1.00'))

        stats = FineService.calculate_overdue_fines(now=NOW + timedelta(days=12), policy_settings=self.settings)
        self.assertEqual(stats['created'], 1)

        _, fine = LoanService.return_loan(self.loan, now=NOW + timedelta(days=37), policy_settings=self.settings)

        self.assertEqual(fine.amount, Decimal('14.00'))
        self.assertEqual(fine.status, FineStatus.PENDING)
        self.assertEqual(self.loan.fines.aggregate(total=Sum('amount'))['total'], Decimal('15.00'))
        self.assertEqual(self.member.pending_fine_total(), Decimal('14.00'))

    def test_waiver_covers_only_lateness_so_far(self):
        FineService.waive(self.early_fine, waived_by=self.librarian, reason='Storm closure')

        _, fine = LoanService.return_loan(self.loan, now=NOW + timedelta(days=11), policy_settings=self.settings)

        self.assertEqual(fine.amount, Decimal('1.00'))
        self.assertEqual(self.loan.fines.count(), 2)

    def test_nothing_more_owed_when_returned_right_after_paying(self):
        FineService.pay(self.early_fine, now=NOW + timedelta(days=9))

        _, fine = LoanService.return_loan(
            self.loan, now=NOW + timedelta(days=9, hours=1), policy_settings=self.settings
        )

        self.assertIsNone(fine)
        self.assertEqual(self.member.pending_fine_total(), Decimal('0.00'))


class StockTest(LibraryTestCase):
    def test_add_copies_numbers_after_existing(self):
        book = make_book(copies=2)

        copies, result = StockService.add_copies(book, 3, now=NOW)

        self.assertEqual([c.copy_number for c in copies], [3, 4, 5])
        self.assertEqual(book.total_copies, 5)
        self.assertEqual(result.promoted, [])

    def test_add_copies_requires_positive_count(self):
        with self.assertRaises(CirculationError):
            StockService.add_copies(make_book(), 0)

    def test_borrowed_copy_cannot_be_sent_to_maintenance(self):
        book = make_book(copies=1)
        loan = LoanService.borrow(make_member('alice'), book, now=NOW)

        with self.assertRaises(CirculationError) as ctx:
            StockService.set_copy_status(loan.book_copy, CopyStatus.MAINTENANCE)
        self.assertEqual(ctx.exception.code, 'copy_in_circulation')
