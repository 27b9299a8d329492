from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings

from apps.communications.models import Notification
from apps.communications.services import NotificationService

User = get_user_model()


class NotificationServiceTest(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='alice', email='alice@example.com', password='pass12345')

    def test_in_app_notification_links_related_object(self):
        other = User.objects.create_user(username='bob', password='pass12345')

        notification = NotificationService.send_in_app_notification(
            recipient=self.user,
            title='Reservation Ready',
            message='Your book is ready',
            notification_type=Notification.RESERVATION_READY,
            metadata={'bookId': 'abc'},
            related_object=other,
        )

        self.assertEqual(notification.related_object, other)
        self.assertEqual(notification.metadata, {'bookId': 'abc'})
        self.assertFalse(notification.is_read)
        self.assertEqual(len(mail.outbox), 0)

    @override_settings(LIBRARY_SEND_EMAILS=True)
    def test_email_sent_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            notification = NotificationService.send_in_app_notification(
                recipient=self.user, title='Fine Issued', message='A fine of $1.50 has been issued.'
            )

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, 'Fine Issued')
        notification.refresh_from_db()
        self.assertTrue(notification.email_sent)

    def test_email_skipped_without_address(self):
        user = User.objects.create_user(username='noemail', password='pass12345')
        notification = NotificationService.send_in_app_notification(recipient=user, title='Hi', message='There')

        result = NotificationService.send_email_notification(notification.pk)

        self.assertFalse(result['success'])
        self.assertEqual(len(mail.outbox), 0)

    def test_unread_count_and_mark_all(self):
        for i in range(3):
            NotificationService.send_in_app_notification(recipient=self.user, title=f'N{i}', message='...')

        self.assertEqual(NotificationService.unread_count(self.user), 3)
        self.assertEqual(NotificationService.mark_all_as_read(self.user), 3)
        self.assertEqual(NotificationService.unread_count(self.user), 0)

    def test_notification_types_cover_circulation_events(self):
        self.assertEqual(
            [value for value, _ in Notification.NOTIFICATION_TYPE_CHOICES],
            [
                'borrowing_due', 'borrowing_overdue', 'reservation_ready',
                'reservation_expired', 'fine_issued', 'payment_received', 'system',
            ],
        )
