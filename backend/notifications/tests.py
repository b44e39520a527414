from unittest.mock import MagicMock, patch

import requests
from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from common.testing import make_passenger
from notifications.models import Notification
from notifications.tasks import deliver_push_notification


class NotificationAPITests(TestCase):
    def setUp(self):
        cache.clear()
        self.user = make_passenger()
        self.other = make_passenger('other')
        self.client = APIClient()
        self.client.force_authenticate(self.user)

        self.first = Notification.objects.create(user=self.user, type='ride', title='Ride accepted', message='On the way')
        self.second = Notification.objects.create(user=self.user, type='payment', title='Credit added', message='+10.00')
        Notification.objects.create(user=self.other, type='system', title='Welcome', message='Hi')

    def test_list_is_newest_first_with_unread_count(self):
        response = self.client.get('/api/notifications/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual([n["id"] for n in response.data["notifications"]], [self.second.id, self.first.id])
        self.assertEqual(response.data["unread_count"], 2)

    def test_mark_one_read(self):
        response = self.client.patch(f'/api/notifications/{self.first.id}/', {"read": True}, format='json')

        self.assertEqual(response.status_code, 200)
        self.first.refresh_from_db()
        self.assertTrue(self.first.read)
        self.assertEqual(self.client.get('/api/notifications/').data["unread_count"], 1)

    def test_cannot_touch_someone_elses_notification(self):
        foreign = Notification.objects.get(user=self.other)
        response = self.client.patch(f'/api/notifications/{foreign.id}/', {"read": True}, format='json')

        self.assertEqual(response.status_code, 404)
        foreign.refresh_from_db()
        self.assertFalse(foreign.read)

    def test_mark_all_read_only_affects_caller(self):
        response = self.client.post('/api/notifications/read-all/')

        self.assertEqual(response.data["updated"], 2)
        self.assertFalse(Notification.objects.get(user=self.other).read)


class PushDeliveryTests(TestCase):
    def setUp(self):
        self.notification = Notification.objects.create(
            user=make_passenger(), type='offer', title='New offer received', message='20.00', data={"ride_id": 1}
        )

    def test_noop_without_gateway(self):
        with patch('notifications.tasks.requests.post') as post:
            self.assertFalse(deliver_push_notification(self.notification.id))
        post.assert_not_called()

    @override_settings(PUSH_NOTIFICATIONS_URL='https://push.example.test/send', PUSH_NOTIFICATIONS_KEY='k3y')
    def test_posts_to_gateway(self):
        with patch('notifications.tasks.requests.post', return_value=MagicMock(status_code=200)) as post:
            self.assertTrue(deliver_push_notification(self.notification.id))

        args, kwargs = post.call_args
        self.assertEqual(args[0], 'https://push.example.test/send')
        self.assertEqual(kwargs["headers"]["Authorization"], 'Bearer k3y')
        self.assertEqual(kwargs["json"]["title"], 'New offer received')
        self.assertEqual(kwargs["json"]["data"]["ride_id"], 1)

    @override_settings(PUSH_NOTIFICATIONS_URL='https://push.example.test/send')
    def test_gateway_failure_is_reported(self):
        with patch('notifications.tasks.requests.post', side_effect=requests.ConnectionError("down")):
            self.assertFalse(deliver_push_notification(self.notification.id))

    @override_settings(PUSH_NOTIFICATIONS_URL='https://push.example.test/send')
    def test_missing_notification(self):
        with patch('notifications.tasks.requests.post') as post:
            self.assertFalse(deliver_push_notification(424242))
        post.assert_not_called()
