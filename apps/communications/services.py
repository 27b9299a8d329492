"""
Notification Service Module
Creates in-app notifications for circulation events and optionally mirrors
them by email once the surrounding transaction commits.
"""

import logging
from typing import Dict, Optional

from django.conf import settings
from django.contrib.contenttypes.models import ContentType
from django.core.mail import send_mail
from django.db import transaction
from django.utils import timezone

from apps.communications.models import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Notification helpers used by the library services and tasks
    """

    @staticmethod
    def send_in_app_notification(
        recipient,
        title: str,
        message: str,
        notification_type: str = Notification.SYSTEM,
        priority: str = "MEDIUM",
        metadata: Optional[Dict] = None,
        related_object=None,
        send_email: Optional[bool] = None,
    ) -> Notification:
        """
        Create an in-app notification for ``recipient``.

        The row is written inside the caller's transaction so it rolls back
        with it. Email delivery, when enabled, is deferred until commit.
        """
        notification = Notification(
            recipient=recipient,
            title=title,
            message=message,
            notification_type=notification_type,
            priority=priority,
            metadata=metadata or {},
        )
        if related_object is not None:
            notification.content_type = ContentType.objects.get_for_model(related_object)
            notification.object_id = related_object.pk
        notification.save()

        logger.info(f"Notification '{notification_type}' queued for {recipient.get_username()}")

        if send_email is None:
            send_email = getattr(settings, 'LIBRARY_SEND_EMAILS', False)
        if send_email:
            transaction.on_commit(lambda: NotificationService.send_email_notification(notification.pk))

        return notification

    @staticmethod
    def send_email_notification(notification_id) -> Dict:
        """
        Mirror a stored notification to the recipient's email address
        """
        try:
            notification = Notification.objects.select_related('recipient').get(pk=notification_id)
        except Notification.DoesNotExist:
            logger.warning(f"Notification {notification_id} vanished before email delivery")
            return {'success': False, 'error': 'Notification not found'}

        recipient_email = notification.recipient.email
        if not recipient_email:
            logger.warning(f"No email address found for recipient: {notification.recipient}")
            return {'success': False, 'error': 'No email address found for recipient'}

        try:
            send_mail(
                subject=notification.title,
                message=notification.message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[recipient_email],
                fail_silently=False,
            )
        except Exception as e:
            logger.error(f"Failed to email notification {notification_id}: {e}", exc_info=True)
            return {'success': False, 'error': str(e)}

        Notification.objects.filter(pk=notification.pk).update(email_sent=True, updated_at=timezone.now())
        return {'success': True, 'recipient': recipient_email}

    @staticmethod
    def mark_all_as_read(user) -> int:
        return Notification.objects.filter(recipient=user, is_read=False).update(
            is_read=True,
            read_at=timezone.now(),
            updated_at=timezone.now(),
        )

    @staticmethod
    def unread_count(user) -> int:
        return Notification.objects.filter(recipient=user, is_read=False).count()
