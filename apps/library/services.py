"""
Circulation services for Bookflix.

Every state change to copies, loans, reservations and fines goes through
this module. Each operation runs in one transaction holding a row lock on
the affected ``Book``, so copy counts, queue positions and promotions are
decided against a consistent view. Copy claims use conditional updates, so
when two requests race for the last copy exactly one wins.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from django.db import transaction
from django.db.models import Max, Sum
from django.utils import timezone
from rest_framework import status

from apps.communications.models import Notification
from apps.communications.services import NotificationService
from apps.configuration.models import LibraryConfiguration
from apps.core.exceptions import ServiceError
from apps.library import policy
from apps.library.constants import (
    CopyStatus,
    FineStatus,
    LoanStatus,
    ReservationStatus,
)
from apps.library.models import Book, BookCopy, Fine, Loan, Member, Reservation
from apps.library.policy import Decision, DenialReason

logger = logging.getLogger(__name__)


class CirculationError(ServiceError):
    """Request conflicts with the current state of a loan, copy or reservation"""
    default_code = 'circulation_error'


class PolicyDenied(ServiceError):
    """Borrowing policy refused the request"""
    default_code = 'policy_denied'

    def __init__(self, decision: Decision, extra=None):
        status_code = (
            status.HTTP_409_CONFLICT
            if decision.reason == DenialReason.NO_COPY_AVAILABLE
            else status.HTTP_403_FORBIDDEN
        )
        super().__init__(decision.message, code=decision.reason.value, status_code=status_code, extra=extra)
        self.decision = decision
        self.reason = decision.reason


@dataclass
class SettleResult:
    expired: List[Reservation] = field(default_factory=list)
    promoted: List[Reservation] = field(default_factory=list)


# ==================== HELPERS ====================

def _policy_settings(policy_settings=None):
    return policy_settings or LibraryConfiguration.policy_settings()


def _lock_book(book_id) -> Book:
    return Book.objects.select_for_update().get(pk=book_id)


def available_copies(book):
    return BookCopy.objects.filter(book=book, is_active=True, status=CopyStatus.AVAILABLE)


def _claim_copy(book, from_status, to_status, now) -> Optional[BookCopy]:
    """Atomically move one copy of ``book`` between statuses; None if none left"""
    candidates = BookCopy.objects.filter(
        book=book, is_active=True, status=from_status
    ).order_by('copy_number').values_list('pk', flat=True)

    for copy_id in candidates:
        claimed = BookCopy.objects.filter(pk=copy_id, status=from_status).update(
            status=to_status, updated_at=now
        )
        if claimed == 1:
            return BookCopy.objects.get(pk=copy_id)
    return None


def _release_copy(copy_id, from_status, now) -> bool:
    if copy_id is None:
        return False
    return BookCopy.objects.filter(pk=copy_id, status=from_status).update(
        status=CopyStatus.AVAILABLE, updated_at=now
    ) == 1


def _authorize_borrow(member, book_copies_available, now, policy_settings) -> Decision:
    envelope = member.envelope(policy_settings, now)
    return policy.authorize_borrow(
        active_loan_count=member.open_loan_count(),
        envelope=envelope,
        available_copies=book_copies_available,
        borrowed_date=now,
        pending_fine_total=member.pending_fine_total(),
        outstanding_fine_threshold=policy_settings.outstanding_fine_threshold,
    )


def _denial_extra(member, decision, policy_settings, now):
    if decision.reason == DenialReason.LOAN_LIMIT_REACHED:
        return {'limit': member.envelope(policy_settings, now).max_concurrent_loans}
    if decision.reason == DenialReason.OUTSTANDING_FINE_BLOCK:
        return {'pendingFines': str(member.pending_fine_total())}
    if decision.reason == DenialReason.RENEWAL_LIMIT_REACHED:
        return {'maxRenewals': policy_settings.max_renewals}
    return None


# ==================== LOANS ====================

class LoanService:
    """
    Borrow, renew and return
    """

    @staticmethod
    def borrow(member: Member, book: Book, issued_by=None, now=None, policy_settings=None) -> Loan:
        """
        Lend a free copy of ``book`` to ``member``.

        A member collecting a book they hold a ready reservation for is
        routed through the reservation instead of taking another copy.
        """
        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)

        ReservationService.settle_book(book, now=now, policy_settings=policy_settings)

        with transaction.atomic():
            book = _lock_book(book.pk)
            if not book.is_active:
                raise CirculationError('This book is not available for borrowing', code='book_inactive')

            if Loan.objects.filter(member=member, book=book, status__in=LoanStatus.open_statuses()).exists():
                raise CirculationError(
                    'You already have this book borrowed',
                    code='already_borrowed',
                    status_code=status.HTTP_409_CONFLICT,
                )

            held = Reservation.objects.filter(
                member=member, book=book, status=ReservationStatus.READY
            ).first()
            if held is not None:
                return ReservationService.complete(held, issued_by=issued_by, now=now, policy_settings=policy_settings)

            decision = _authorize_borrow(member, available_copies(book).count(), now, policy_settings)
            if not decision:
                logger.info(f"Borrow denied for member {member.member_code} on book {book.pk}: {decision.reason.value}")
                raise PolicyDenied(decision, extra=_denial_extra(member, decision, policy_settings, now))

            copy = _claim_copy(book, CopyStatus.AVAILABLE, CopyStatus.BORROWED, now)
            if copy is None:
                raise PolicyDenied(Decision.deny(
                    DenialReason.NO_COPY_AVAILABLE,
                    'No available copies of this book. You can reserve it instead.',
                ))

            loan = Loan.objects.create(
                member=member,
                book=book,
                book_copy=copy,
                borrowed_date=now,
                due_date=decision.due_date,
                status=LoanStatus.ACTIVE,
                issued_by=issued_by,
            )

            # A waiting reservation is moot once the member holds the book
            for waiting in Reservation.objects.filter(member=member, book=book, status=ReservationStatus.PENDING):
                waiting.transition_to(ReservationStatus.CANCELLED, when=now)
                waiting.notes = 'Cancelled: member borrowed the book directly'
                waiting.save()

        logger.info(f"Loan {loan.pk} issued: member {member.member_code}, copy {copy}, due {loan.due_date:%Y-%m-%d}")
        return loan

    @staticmethod
    def renew(loan: Loan, now=None, policy_settings=None) -> Loan:
        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)

        with transaction.atomic():
            loan = Loan.objects.select_for_update().select_related('member').get(pk=loan.pk)
            if loan.status == LoanStatus.RETURNED:
                raise CirculationError('Cannot renew a returned book', code='already_returned')

            loan.refresh_status(now)
            decision = policy.authorize_renewal(
                renewal_count=loan.renewal_count,
                status=LoanStatus(loan.status),
                envelope=loan.member.envelope(policy_settings, now),
                now=now,
                due_date=loan.due_date,
                max_renewals=policy_settings.max_renewals,
            )
            if not decision:
                logger.info(f"Renewal denied for loan {loan.pk}: {decision.reason.value}")
                raise PolicyDenied(decision, extra=_denial_extra(loan.member, decision, policy_settings, now))

            loan.due_date = decision.due_date
            loan.renewal_count += 1
            loan.last_renewal_date = now
            loan.save(update_fields=['due_date', 'renewal_count', 'last_renewal_date', 'updated_at'])

        logger.info(f"Loan {loan.pk} renewed ({loan.renewal_count}), now due {loan.due_date:%Y-%m-%d}")
        return loan

    @staticmethod
    def return_loan(loan: Loan, returned_by=None, now=None, policy_settings=None):
        """
        Close ``loan``, finalize its fine and hand the copy to the queue.

        Returns ``(loan, fine)``; ``fine`` is None for an on-time return.
        """
        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)

        with transaction.atomic():
            book = _lock_book(loan.book_id)
            loan = Loan.objects.select_for_update().select_related('member__user').get(pk=loan.pk)
            if loan.status == LoanStatus.RETURNED:
                raise CirculationError('Book already returned', code='already_returned')

            loan.status = LoanStatus.RETURNED
            loan.returned_date = now
            loan.returned_by = returned_by
            loan.save(update_fields=['status', 'returned_date', 'returned_by', 'updated_at'])

            fine = FineService.assess(loan, now=now, policy_settings=policy_settings)

            _release_copy(loan.book_copy_id, CopyStatus.BORROWED, now)
            ReservationService.settle_book(book, now=now, policy_settings=policy_settings)

        logger.info(f"Loan {loan.pk} returned by member {loan.member.member_code}"
                    + (f" with fine {fine.amount}" if fine else ""))
        return loan, fine

    @staticmethod
    def settle_overdue(now=None) -> int:
        """Flip active loans past their due date to overdue"""
        now = now or timezone.now()
        return Loan.objects.filter(status=LoanStatus.ACTIVE, due_date__lt=now).update(
            status=LoanStatus.OVERDUE, updated_at=now
        )


# ==================== FINES ====================

class FineService:
    """
    Fine assessment and settlement
    """

    @staticmethod
    def assess(loan: Loan, now=None, policy_settings=None) -> Optional[Fine]:
        """
        Bring the charges on ``loan`` up to the fine owed so far.

        Paid and waived fines count towards what is owed; the remainder sits
        on a single pending fine, created when needed and never lowered.
        Returns that pending fine, or None when nothing is outstanding.
        """
        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)
        end = loan.returned_date or now

        envelope = loan.member.envelope(policy_settings, end)
        owed = policy.calculate_fine(loan.due_date, end, envelope)
        days = policy.days_late(loan.due_date, end)

        charges = Fine.objects.filter(loan=loan)
        settled = charges.exclude(status=FineStatus.PENDING).aggregate(total=Sum('amount'))['total'] or Decimal('0.00')
        amount = max(owed - settled, Decimal('0.00')).quantize(policy.CENTS)

        fine = charges.filter(status=FineStatus.PENDING).first()
        if fine is None:
            if amount <= 0:
                return None
            fine = Fine.objects.create(
                member=loan.member,
                loan=loan,
                amount=amount,
                days_overdue=days,
                status=FineStatus.PENDING,
                issued_date=now,
            )
            NotificationService.send_in_app_notification(
                recipient=loan.member.user,
                title='Fine Issued',
                message=f'A fine of ${amount} has been issued for "{loan.book.title}" ({days} day(s) overdue).',
                notification_type=Notification.FINE_ISSUED,
                priority='HIGH',
                metadata={'fineId': str(fine.pk), 'loanId': str(loan.pk), 'amount': str(amount)},
                related_object=fine,
            )
            logger.info(f"Fine {fine.pk} of {amount} issued for loan {loan.pk}")
            return fine

        if amount > fine.amount or days > fine.days_overdue:
            fine.amount = max(fine.amount, amount)
            fine.days_overdue = max(fine.days_overdue, days)
            fine.save(update_fields=['amount', 'days_overdue', 'updated_at'])
        return fine

    @staticmethod
    def pay(fine: Fine, now=None) -> Fine:
        now = now or timezone.now()
        with transaction.atomic():
            fine = Fine.objects.select_for_update().select_related('member__user').get(pk=fine.pk)
            if fine.status != FineStatus.PENDING:
                raise CirculationError(f'Fine is already {fine.status}', code='fine_settled')
            fine.mark_paid(when=now)
            NotificationService.send_in_app_notification(
                recipient=fine.member.user,
                title='Payment Received',
                message=f'Your payment of ${fine.amount} has been received. Thank you!',
                notification_type=Notification.PAYMENT_RECEIVED,
                metadata={'fineId': str(fine.pk), 'amount': str(fine.amount)},
                related_object=fine,
            )
        logger.info(f"Fine {fine.pk} paid ({fine.amount})")
        return fine

    @staticmethod
    def waive(fine: Fine, waived_by, reason='', now=None) -> Fine:
        now = now or timezone.now()
        with transaction.atomic():
            fine = Fine.objects.select_for_update().get(pk=fine.pk)
            if fine.status != FineStatus.PENDING:
                raise CirculationError(f'Fine is already {fine.status}', code='fine_settled')
            fine.waive(waived_by, reason=reason, when=now)
        logger.info(f"Fine {fine.pk} waived by {waived_by.get_username() if waived_by else 'system'}")
        return fine

    @staticmethod
    def calculate_overdue_fines(now=None, policy_settings=None) -> dict:
        """
        Sweep open loans: settle overdue status and, when auto charging is
        on, raise or refresh pending fines. One failing loan does not stop
        the sweep.
        """
        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)

        stats = {'overdue': LoanService.settle_overdue(now), 'processed': 0, 'created': 0, 'updated': 0, 'errors': 0}
        if not policy_settings.auto_charge_fines:
            return stats

        overdue_loans = Loan.objects.filter(status=LoanStatus.OVERDUE).select_related('member__user', 'book')
        for loan in overdue_loans.iterator():
            stats['processed'] += 1
            try:
                with transaction.atomic():
                    existed = Fine.objects.filter(loan=loan, status=FineStatus.PENDING).exists()
                    fine = FineService.assess(loan, now=now, policy_settings=policy_settings)
                    if fine is not None:
                        stats['updated' if existed else 'created'] += 1
            except Exception as e:
                stats['errors'] += 1
                logger.error(f"Failed to calculate fine for loan {loan.pk}: {e}", exc_info=True)

        logger.info(f"Fine sweep finished: {stats}")
        return stats


# ==================== RESERVATIONS ====================

class ReservationService:
    """
    FIFO reservation queue per book
    """

    @staticmethod
    def reserve(member: Member, book: Book, now=None, policy_settings=None) -> Reservation:
        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)

        ReservationService.settle_book(book, now=now, policy_settings=policy_settings)

        with transaction.atomic():
            book = _lock_book(book.pk)
            if not book.is_active:
                raise CirculationError('This book is not available for reservation', code='book_inactive')

            if Loan.objects.filter(member=member, book=book, status__in=LoanStatus.open_statuses()).exists():
                raise CirculationError(
                    'You already have this book borrowed',
                    code='already_borrowed',
                    status_code=status.HTTP_409_CONFLICT,
                )
            if Reservation.objects.filter(
                member=member, book=book, status__in=ReservationStatus.live_statuses()
            ).exists():
                raise CirculationError(
                    'You already have an active reservation for this book',
                    code='duplicate_reservation',
                    status_code=status.HTTP_409_CONFLICT,
                )
            if available_copies(book).exists():
                raise CirculationError(
                    'Copies are available. Borrow the book instead.',
                    code='copy_available',
                    status_code=status.HTTP_409_CONFLICT,
                )

            last_position = Reservation.objects.filter(book=book).aggregate(
                last=Max('queue_position')
            )['last'] or 0
            reservation = Reservation.objects.create(
                member=member,
                book=book,
                status=ReservationStatus.PENDING,
                queue_position=last_position + 1,
                reserved_date=now,
            )

        logger.info(f"Reservation {reservation.pk} queued at position {reservation.queue_position} for book {book.pk}")
        return reservation

    @staticmethod
    def settle_book(book: Book, now=None, policy_settings=None) -> SettleResult:
        """
        Bring the book's queue up to date: expire lapsed pickups, then
        promote waiting reservations while free copies remain.
        """
        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)
        result = SettleResult()

        with transaction.atomic():
            book = _lock_book(book.pk)

            lapsed = Reservation.objects.select_for_update().select_related('member__user').filter(
                book=book, status=ReservationStatus.READY, expiry_date__lt=now
            )
            for reservation in lapsed:
                _release_copy(reservation.book_copy_id, CopyStatus.RESERVED, now)
                reservation.transition_to(ReservationStatus.EXPIRED, when=now)
                reservation.save()
                result.expired.append(reservation)
                NotificationService.send_in_app_notification(
                    recipient=reservation.member.user,
                    title='Reservation Expired',
                    message=f'Your reservation for "{book.title}" has expired because it was not picked up in time.',
                    notification_type=Notification.RESERVATION_EXPIRED,
                    metadata={'reservationId': str(reservation.pk), 'bookId': str(book.pk)},
                    related_object=reservation,
                )

            result.promoted = ReservationService._promote_waiting(book, now, policy_settings)

        for reservation in result.expired:
            logger.info(f"Reservation {reservation.pk} expired unclaimed")
        return result

    @staticmethod
    def _promote_waiting(book, now, policy_settings) -> List[Reservation]:
        promoted = []
        while True:
            head = policy.next_in_queue(
                Reservation.objects.select_for_update().select_related('member__user').filter(
                    book=book, status=ReservationStatus.PENDING
                ).order_by('queue_position', 'reserved_date')[:1]
            )
            if head is None:
                break

            copy = _claim_copy(book, CopyStatus.AVAILABLE, CopyStatus.RESERVED, now)
            if copy is None:
                break

            ready_date, expiry_date = policy.pickup_window(now, policy_settings.reservation_pickup_days)
            head.transition_to(ReservationStatus.READY, when=now)
            head.ready_date = ready_date
            head.expiry_date = expiry_date
            head.book_copy = copy
            head.save()
            promoted.append(head)

            NotificationService.send_in_app_notification(
                recipient=head.member.user,
                title='Reservation Ready',
                message=f'Your reserved book "{book.title}" is ready for pickup until {expiry_date:%Y-%m-%d}.',
                notification_type=Notification.RESERVATION_READY,
                priority='HIGH',
                metadata={'reservationId': str(head.pk), 'bookId': str(book.pk), 'expiryDate': expiry_date.isoformat()},
                related_object=head,
            )
            logger.info(f"Reservation {head.pk} promoted to ready with copy {copy}")
        return promoted

    @staticmethod
    def mark_ready(reservation: Reservation, now=None, policy_settings=None) -> Reservation:
        """
        Promote the head of the queue. Only the head may be promoted, and
        only while a copy is free.
        """
        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)

        ReservationService.settle_book(reservation.book, now=now, policy_settings=policy_settings)

        with transaction.atomic():
            _lock_book(reservation.book_id)
            reservation = Reservation.objects.select_for_update().get(pk=reservation.pk)

            if reservation.status == ReservationStatus.READY:
                return reservation
            if reservation.status != ReservationStatus.PENDING:
                raise CirculationError(
                    f'Cannot mark a {reservation.status} reservation as ready',
                    code='invalid_transition',
                )

            head = policy.next_in_queue(
                Reservation.objects.filter(book=reservation.book_id, status=ReservationStatus.PENDING)
            )
            if head is None or head.pk != reservation.pk:
                raise CirculationError(
                    'Only the reservation at the head of the queue can be marked ready',
                    code='not_queue_head',
                    status_code=status.HTTP_409_CONFLICT,
                )

            # settle_book already promoted the head if any copy was free
            raise PolicyDenied(Decision.deny(
                DenialReason.NO_COPY_AVAILABLE,
                'No copy of this book is available to hold for pickup.',
            ))

    @staticmethod
    def complete(reservation: Reservation, issued_by=None, now=None, policy_settings=None) -> Loan:
        """Turn a ready reservation into a loan of its held copy"""
        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)

        ReservationService.settle_book(reservation.book, now=now, policy_settings=policy_settings)

        with transaction.atomic():
            _lock_book(reservation.book_id)
            reservation = Reservation.objects.select_for_update().select_related('member', 'book').get(
                pk=reservation.pk
            )
            if reservation.status != ReservationStatus.READY:
                raise CirculationError(
                    f'Cannot complete a {reservation.status} reservation',
                    code='invalid_transition',
                )

            member = reservation.member
            decision = _authorize_borrow(member, 1, now, policy_settings)
            if not decision:
                raise PolicyDenied(decision, extra=_denial_extra(member, decision, policy_settings, now))

            claimed = BookCopy.objects.filter(
                pk=reservation.book_copy_id, status=CopyStatus.RESERVED
            ).update(status=CopyStatus.BORROWED, updated_at=now)
            if claimed != 1:
                raise CirculationError(
                    'The held copy is no longer reserved for this reservation',
                    code='copy_not_held',
                    status_code=status.HTTP_409_CONFLICT,
                )

            loan = Loan.objects.create(
                member=member,
                book=reservation.book,
                book_copy_id=reservation.book_copy_id,
                borrowed_date=now,
                due_date=decision.due_date,
                status=LoanStatus.ACTIVE,
                issued_by=issued_by,
            )
            reservation.transition_to(ReservationStatus.COMPLETED, when=now)
            reservation.save()

        logger.info(f"Reservation {reservation.pk} completed as loan {loan.pk}")
        return loan

    @staticmethod
    def cancel(reservation: Reservation, cancelled_by=None, now=None, policy_settings=None) -> Reservation:
        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)

        with transaction.atomic():
            book = _lock_book(reservation.book_id)
            reservation = Reservation.objects.select_for_update().get(pk=reservation.pk)
            if not reservation.is_live:
                raise CirculationError(
                    f'Cannot cancel a {reservation.status} reservation',
                    code='invalid_transition',
                )

            if reservation.status == ReservationStatus.READY:
                _release_copy(reservation.book_copy_id, CopyStatus.RESERVED, now)

            reservation.transition_to(ReservationStatus.CANCELLED, when=now)
            reservation.cancelled_by = cancelled_by
            reservation.save()

            ReservationService.settle_book(book, now=now, policy_settings=policy_settings)

        logger.info(f"Reservation {reservation.pk} cancelled")
        return reservation

    @staticmethod
    def settle_all(now=None, policy_settings=None) -> dict:
        """Settle every book with a live queue; used by the periodic sweep"""
        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)
        stats = {'books': 0, 'expired': 0, 'promoted': 0, 'errors': 0}

        book_ids = Reservation.objects.filter(
            status__in=ReservationStatus.live_statuses()
        ).order_by().values_list('book_id', flat=True).distinct()

        for book_id in list(book_ids):
            stats['books'] += 1
            try:
                result = ReservationService.settle_book(Book(pk=book_id), now=now, policy_settings=policy_settings)
            except Exception as e:
                stats['errors'] += 1
                logger.error(f"Failed to settle reservations for book {book_id}: {e}", exc_info=True)
                continue
            stats['expired'] += len(result.expired)
            stats['promoted'] += len(result.promoted)

        logger.info(f"Reservation sweep finished: {stats}")
        return stats


# ==================== STOCK ====================

class StockService:
    """
    Catalogue stock changes that feed the reservation queue
    """

    @staticmethod
    def add_copies(book: Book, count: int = 1, now=None, policy_settings=None):
        """Add ``count`` new copies and hand them to waiting reservations"""
        if count < 1:
            raise CirculationError('At least one copy must be added', code='invalid_count')

        now = now or timezone.now()
        policy_settings = _policy_settings(policy_settings)

        with transaction.atomic():
            book = _lock_book(book.pk)
            last_number = BookCopy.objects.filter(book=book).aggregate(
                last=Max('copy_number')
            )['last'] or 0
            copies = BookCopy.objects.bulk_create([
                BookCopy(book=book, copy_number=last_number + offset, status=CopyStatus.AVAILABLE)
                for offset in range(1, count + 1)
            ])
            result = ReservationService.settle_book(book, now=now, policy_settings=policy_settings)

        logger.info(f"Added {count} copies to book {book.pk}; {len(result.promoted)} reservation(s) promoted")
        return copies, result

    @staticmethod
    def set_copy_status(copy: BookCopy, new_status, now=None, policy_settings=None) -> BookCopy:
        """
        Move a copy between available and maintenance. Copies on loan or
        held for pickup change status only through circulation.
        """
        now = now or timezone.now()
        allowed = (CopyStatus.AVAILABLE, CopyStatus.MAINTENANCE)
        if new_status not in allowed:
            raise CirculationError(f'Copies can only be set to {", ".join(allowed)}', code='invalid_status')

        with transaction.atomic():
            book = _lock_book(copy.book_id)
            copy = BookCopy.objects.select_for_update().get(pk=copy.pk)
            if copy.status not in allowed:
                raise CirculationError(
                    f'Copy is {copy.status} and cannot be changed manually',
                    code='copy_in_circulation',
                    status_code=status.HTTP_409_CONFLICT,
                )
            copy.status = new_status
            copy.save(update_fields=['status', 'updated_at'])
            if new_status == CopyStatus.AVAILABLE:
                ReservationService.settle_book(book, now=now, policy_settings=policy_settings)
        return copy
