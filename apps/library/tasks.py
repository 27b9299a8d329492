"""
Background tasks for circulation upkeep using Celery
"""

import logging
from datetime import timedelta
from typing import Dict

from celery import shared_task
from django.contrib.contenttypes.models import ContentType
from django.utils import timezone

from apps.communications.models import Notification
from apps.communications.services import NotificationService
from apps.configuration.models import LibraryConfiguration
from apps.core.utils.context import request_context
from .constants import LoanStatus
from .models import Loan
from .services import FineService, LoanService, ReservationService

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def calculate_fines(self) -> Dict:
    """
    Settle overdue loans and raise pending fines where auto charging is on
    """
    try:
        with request_context(self.request.id or 'calculate_fines'):
            stats = FineService.calculate_overdue_fines()
        return {'success': True, **stats}

    except Exception as e:
        logger.error(f"Error in fine calculation task: {str(e)}", exc_info=True)

        try:
            raise self.retry(exc=e, countdown=60)
        except self.MaxRetriesExceededError:
            return {
                'success': False,
                'error': f'Max retries exceeded: {str(e)}',
                'task_id': self.request.id
            }


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def settle_reservations(self) -> Dict:
    """
    Expire unclaimed pickups and promote the next waiting reservations
    """
    try:
        with request_context(self.request.id or 'settle_reservations'):
            stats = ReservationService.settle_all()
        return {'success': True, **stats}

    except Exception as e:
        logger.error(f"Error in reservation settlement task: {str(e)}", exc_info=True)

        try:
            raise self.retry(exc=e, countdown=60)
        except self.MaxRetriesExceededError:
            return {
                'success': False,
                'error': f'Max retries exceeded: {str(e)}',
                'task_id': self.request.id
            }


@shared_task
def send_due_reminders() -> Dict:
    """
    Notify members about loans falling due soon and loans already overdue.
    Each loan is reminded once per due date and type.
    """
    now = timezone.now()
    config = LibraryConfiguration.get_solo()
    LoanService.settle_overdue(now)

    results = {'due_soon': 0, 'overdue': 0, 'skipped': 0, 'errors': 0}

    due_soon = Loan.objects.filter(
        status=LoanStatus.ACTIVE,
        due_date__gte=now,
        due_date__lte=now + timedelta(days=config.reminder_days_before_due),
    ).select_related('member__user', 'book')
    overdue = Loan.objects.filter(status=LoanStatus.OVERDUE).select_related('member__user', 'book')

    for loans, notification_type, key in (
        (due_soon, Notification.BORROWING_DUE, 'due_soon'),
        (overdue, Notification.BORROWING_OVERDUE, 'overdue'),
    ):
        for loan in loans:
            try:
                if _already_reminded(loan, notification_type):
                    results['skipped'] += 1
                    continue
                _send_loan_reminder(loan, notification_type, now)
                results[key] += 1
            except Exception as e:
                results['errors'] += 1
                logger.error(f"Failed to send reminder for loan {loan.pk}: {str(e)}", exc_info=True)

    logger.info(f"Due reminders sent: {results}")
    return results


def _already_reminded(loan, notification_type) -> bool:
    return Notification.objects.filter(
        content_type=ContentType.objects.get_for_model(Loan),
        object_id=loan.pk,
        notification_type=notification_type,
        metadata__dueDate=loan.due_date.isoformat(),
    ).exists()


def _send_loan_reminder(loan, notification_type, now):
    title = loan.book.title
    if notification_type == Notification.BORROWING_DUE:
        days_left = loan.days_remaining(now)
        subject = 'Book Due Soon'
        message = (f'"{title}" is due on {loan.due_date:%Y-%m-%d}'
                   f' ({days_left} day(s) left). Renew or return it to avoid fines.')
        priority = 'MEDIUM'
    else:
        subject = 'Book Overdue'
        message = (f'"{title}" was due on {loan.due_date:%Y-%m-%d} and is {loan.days_overdue(now)} day(s) overdue. '
                   f'Please return it as soon as possible.')
        priority = 'HIGH'

    NotificationService.send_in_app_notification(
        recipient=loan.member.user,
        title=subject,
        message=message,
        notification_type=notification_type,
        priority=priority,
        metadata={'loanId': str(loan.pk), 'dueDate': loan.due_date.isoformat()},
        related_object=loan,
    )
