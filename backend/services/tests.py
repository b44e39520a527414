from decimal import Decimal
from unittest.mock import MagicMock, patch

import requests
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.test import TestCase

from common.testing import make_passenger
from notifications.models import Notification
from services.notifications import NotificationDispatcher
from services.pricing import (
    GoogleDistanceMatrixProvider,
    RoutingProviderError,
    estimate_duration_minutes,
    estimate_trip,
    format_distance,
    format_duration,
    suggest_price,
)


class StaticProvider:
    def __init__(self, distance_km=12.0, duration_minutes=25):
        self.result = (distance_km, duration_minutes)

    def route(self, pickup, dropoff):
        return self.result


class FailingProvider:
    def route(self, pickup, dropoff):
        raise RoutingProviderError("OVER_QUERY_LIMIT")


class PricingTests(TestCase):
    def test_fallback_estimate_for_short_city_trip(self):
        estimate = estimate_trip(-23.55, -46.63, -23.56, -46.64)

        self.assertEqual(estimate.source, "haversine")
        self.assertAlmostEqual(estimate.distance_km, 1.5, delta=0.05)
        self.assertEqual(estimate.duration_minutes, 3)
        self.assertAlmostEqual(float(estimate.suggested_price), 8.75, delta=0.05)

    def test_suggested_price_formula(self):
        self.assertEqual(suggest_price(0), Decimal("5.00"))
        self.assertEqual(suggest_price(10), Decimal("30.00"))
        self.assertEqual(suggest_price(1.5), Decimal("8.75"))

    def test_duration_at_thirty_kmh(self):
        self.assertEqual(estimate_duration_minutes(15), 30)
        self.assertEqual(estimate_duration_minutes(0.2), 0)

    def test_provider_result_supersedes_fallback(self):
        estimate = estimate_trip(-23.55, -46.63, -23.56, -46.64, provider=StaticProvider(12.0, 25))

        self.assertEqual(estimate.source, "routing_provider")
        self.assertEqual(estimate.distance_km, 12.0)
        self.assertEqual(estimate.duration_minutes, 25)
        self.assertEqual(estimate.suggested_price, Decimal("35.00"))

    def test_provider_failure_falls_back_silently(self):
        with self.assertLogs('services.pricing.estimator', level='WARNING'):
            estimate = estimate_trip(-23.55, -46.63, -23.56, -46.64, provider=FailingProvider())

        self.assertEqual(estimate.source, "haversine")
        self.assertAlmostEqual(estimate.distance_km, 1.5, delta=0.05)

    def test_formatting_helpers(self):
        self.assertEqual(format_distance(0.45), "450m")
        self.assertEqual(format_distance(12.34), "12.3km")
        self.assertEqual(format_duration(42), "42 min")
        self.assertEqual(format_duration(135), "2h 15min")


class GoogleDistanceMatrixProviderTests(TestCase):
    def _provider(self, payload=None, exc=None):
        session = MagicMock()
        if exc is not None:
            session.get.side_effect = exc
        else:
            session.get.return_value.json.return_value = payload
        return GoogleDistanceMatrixProvider("test-key", session=session), session

    def test_parses_ok_element(self):
        provider, session = self._provider({
            "rows": [{"elements": [{
                "status": "OK",
                "distance": {"value": 4200, "text": "4.2 km"},
                "duration": {"value": 690, "text": "12 mins"},
            }]}]
        })

        self.assertEqual(provider.route((-23.55, -46.63), (-23.56, -46.64)), (4.2, 12))
        params = session.get.call_args.kwargs["params"]
        self.assertEqual(params["origins"], "-23.55,-46.63")
        self.assertEqual(params["key"], "test-key")

    def test_non_ok_element_raises(self):
        provider, _ = self._provider({"rows": [{"elements": [{"status": "ZERO_RESULTS"}]}]})
        with self.assertRaises(RoutingProviderError):
            provider.route((0, 0), (1, 1))

    def test_malformed_body_raises(self):
        provider, _ = self._provider({"status": "REQUEST_DENIED"})
        with self.assertRaises(RoutingProviderError):
            provider.route((0, 0), (1, 1))

    def test_network_error_raises(self):
        provider, _ = self._provider(exc=requests.ConnectionError("unreachable"))
        with self.assertRaises(RoutingProviderError):
            provider.route((0, 0), (1, 1))

    def test_estimate_survives_network_error(self):
        provider, _ = self._provider(exc=requests.Timeout("slow"))
        with self.assertLogs('services.pricing.estimator', level='WARNING'):
            estimate = estimate_trip(-23.55, -46.63, -23.56, -46.64, provider=provider)
        self.assertEqual(estimate.source, "haversine")


class NotificationDispatcherTests(TestCase):
    def setUp(self):
        self.user = make_passenger()
        self.dispatcher = NotificationDispatcher()

    def test_notify_stores_row(self):
        notification = self.dispatcher.notify(self.user.pk, 'system', 'Hello', 'Welcome to Uppi')

        self.assertEqual(Notification.objects.filter(user=self.user).count(), 1)
        self.assertEqual(notification.title, 'Hello')
        self.assertFalse(notification.read)

    def test_forwarded_to_user_group_after_commit(self):
        channel_layer = get_channel_layer()
        channel_name = async_to_sync(channel_layer.new_channel)()
        async_to_sync(channel_layer.group_add)(f"user_{self.user.pk}", channel_name)

        with patch('notifications.tasks.deliver_push_notification.delay') as delay:
            with self.captureOnCommitCallbacks(execute=True):
                notification = self.dispatcher.notify(self.user.pk, 'payment', 'Credit added', '10.00 added')

        message = async_to_sync(channel_layer.receive)(channel_name)
        self.assertEqual(message["type"], "notification_event")
        self.assertEqual(message["notification"]["id"], notification.id)
        delay.assert_called_once_with(notification.id)

    def test_forwarding_failure_is_logged_not_raised(self):
        with patch('realtime.notifications.send_user_event', side_effect=RuntimeError("layer down")), \
                patch('notifications.tasks.deliver_push_notification.delay'):
            with self.assertLogs('services.notifications.dispatcher', level='ERROR'):
                with self.captureOnCommitCallbacks(execute=True):
                    self.dispatcher.notify(self.user.pk, 'system', 'Hi', 'There')

        self.assertEqual(Notification.objects.count(), 1)

    def test_status_change_titles(self):
        ride = MagicMock(id=7)
        with patch.object(self.dispatcher, 'notify') as notify:
            self.dispatcher.notify_status_change(ride, self.user.pk, 'started')
        args = notify.call_args.args
        self.assertEqual(args[:3], (self.user.pk, 'ride', 'Ride started'))

    def test_fan_out_deduplicates_recipients(self):
        other = make_passenger('other')
        sent = self.dispatcher.fan_out([self.user.pk, other.pk, self.user.pk], 'ride', 'New ride', 'Nearby')
        self.assertEqual(len(sent), 2)
