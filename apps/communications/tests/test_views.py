from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.communications.services import NotificationService

User = get_user_model()


class NotificationApiTest(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='alice', password='pass12345')
        self.other = User.objects.create_user(username='bob', password='pass12345')
        self.notification = NotificationService.send_in_app_notification(
            recipient=self.user, title='Book Due Soon', message='"Dune" is due tomorrow.'
        )
        NotificationService.send_in_app_notification(recipient=self.other, title='Other', message='...')
        self.client.force_authenticate(user=self.user)

    def test_list_shows_only_own_notifications(self):
        response = self.client.get(reverse('communications:notification-list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n['title'] for n in response.json()['results']], ['Book Due Soon'])

    def test_patch_marks_read(self):
        url = reverse('communications:notification-detail', args=[self.notification.pk])

        response = self.client.patch(url, {}, format='json')

        self.assertTrue(response.json()['is_read'])
        self.assertEqual(
            self.client.get(reverse('communications:notification-unread-count')).json(), {'count': 0}
        )

    def test_mark_all_read(self):
        response = self.client.post(reverse('communications:notification-mark-all-read'))

        self.assertEqual(response.json()['updated'], 1)

    def test_cannot_read_others_notifications(self):
        self.client.force_authenticate(user=self.other)
        url = reverse('communications:notification-detail', args=[self.notification.pk])
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)
