from django.core.cache import cache
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.urls import path
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.test import APIClient, APIRequestFactory

from common.exceptions import Conflict, NotFound, api_exception_handler
from common.ratelimit import RateLimiter, WriteRateThrottle, get_request_identity
from common.utils.geo import bounding_box, encode_geohash, haversine_km


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


calls = []


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([WriteRateThrottle])
def counted_view(request):
    calls.append(1)
    return Response({"ok": True})


urlpatterns = [
    path('counted/', counted_view),
]


class RateLimiterTests(TestCase):
    def setUp(self):
        cache.clear()
        self.clock = FakeClock()
        self.limiter = RateLimiter("writes", interval=60, clock=self.clock)

    def test_sixteenth_request_in_window_is_blocked(self):
        results = [self.limiter.check("user:1", 15) for _ in range(16)]

        self.assertTrue(all(r.allowed for r in results[:15]))
        self.assertEqual(results[14].remaining, 0)
        self.assertFalse(results[15].allowed)
        self.assertGreater(results[15].retry_after, 0)

    def test_remaining_counts_down(self):
        first = self.limiter.check("user:1", 3)
        second = self.limiter.check("user:1", 3)
        self.assertEqual((first.remaining, second.remaining), (2, 1))

    def test_identities_are_counted_separately(self):
        for _ in range(2):
            self.limiter.check("user:1", 2)
        self.assertFalse(self.limiter.check("user:1", 2).allowed)
        self.assertTrue(self.limiter.check("user:2", 2).allowed)

    def test_new_window_resets_counter(self):
        for _ in range(3):
            self.limiter.check("ip:10.0.0.1", 2)
        blocked = self.limiter.check("ip:10.0.0.1", 2)
        self.assertFalse(blocked.allowed)

        self.clock.now = blocked.reset_at
        self.assertTrue(self.limiter.check("ip:10.0.0.1", 2).allowed)

    def test_retry_after_points_at_window_end(self):
        self.clock.now = 1_000_000.0  # 40s into a 60s window
        for _ in range(2):
            self.limiter.check("user:9", 1)
        result = self.limiter.check("user:9", 1)
        self.assertEqual(result.retry_after, 20)

    def test_reset_clears_current_window(self):
        self.limiter.check("user:1", 1)
        self.limiter.reset("user:1")
        self.assertTrue(self.limiter.check("user:1", 1).allowed)


class RequestIdentityTests(TestCase):
    def setUp(self):
        self.factory = APIRequestFactory()

    def test_forwarded_for_takes_first_address(self):
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1')
        self.assertEqual(get_request_identity(request), 'ip:203.0.113.7')

    def test_falls_back_to_remote_addr(self):
        request = self.factory.get('/', REMOTE_ADDR='198.51.100.4')
        self.assertEqual(get_request_identity(request), 'ip:198.51.100.4')


@override_settings(ROOT_URLCONF='common.tests', RATE_LIMITS={'writes': (15, 60)})
class ThrottleTests(TestCase):
    def setUp(self):
        cache.clear()
        calls.clear()
        self.client = APIClient()

    def test_throttled_request_never_reaches_view(self):
        for _ in range(15):
            self.assertEqual(self.client.post('/counted/', REMOTE_ADDR='192.0.2.1').status_code, 200)

        response = self.client.post('/counted/', REMOTE_ADDR='192.0.2.1')

        self.assertEqual(response.status_code, 429)
        self.assertEqual(len(calls), 15)
        self.assertIn('error', response.json())
        self.assertGreater(response.json()['retry_after'], 0)
        self.assertIn('Retry-After', response)


class ExceptionHandlerTests(TestCase):
    def _handle(self, exc):
        return api_exception_handler(exc, {"view": None, "request": None})

    def test_service_error_maps_status_and_message(self):
        response = self._handle(NotFound("Ride not found"))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {"error": "Ride not found"})

        self.assertEqual(self._handle(Conflict()).status_code, 409)

    def test_database_error_hides_details(self):
        with self.assertLogs('common.exceptions', level='ERROR'):
            response = self._handle(DatabaseError("relation rides does not exist"))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data, {"error": "Service temporarily unavailable"})

    def test_unexpected_error_is_generic_500(self):
        with self.assertLogs('common.exceptions', level='ERROR'):
            response = self._handle(KeyError("secret"))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data, {"error": "Internal server error"})


class GeoTests(TestCase):
    def test_haversine_is_symmetric(self):
        points = [(-23.55, -46.63), (-23.56, -46.64), (40.7128, -74.0060), (51.5074, -0.1278), (0.0, 179.9)]
        for a in points:
            for b in points:
                self.assertAlmostEqual(haversine_km(*a, *b), haversine_km(*b, *a), places=9)

    def test_haversine_known_distance(self):
        self.assertAlmostEqual(haversine_km(-23.55, -46.63, -23.56, -46.64), 1.5087, delta=0.01)
        self.assertEqual(haversine_km(10, 10, 10, 10), 0)

    def test_geohash_precision_and_prefix(self):
        fine = encode_geohash(-23.55, -46.63, 7)
        self.assertEqual(len(fine), 7)
        self.assertTrue(fine.startswith(encode_geohash(-23.55, -46.63, 5)))
        self.assertNotEqual(encode_geohash(-23.55, -46.63, 5), encode_geohash(40.71, -74.0, 5))

    def test_bounding_box_widens_longitude_with_latitude(self):
        min_lat, max_lat, min_lon, max_lon = bounding_box(-23.55, -46.63, 11.1)
        self.assertAlmostEqual(max_lat - min_lat, 0.2, places=6)
        self.assertGreater(max_lon - min_lon, 0.2)
        self.assertLess(min_lon, -46.63 - 0.1)

    def test_bounding_box_drops_longitude_at_pole_and_antimeridian(self):
        self.assertEqual(bounding_box(89.99, 10, 5)[2:], (None, None))
        self.assertEqual(bounding_box(0, 179.99, 5)[2:], (None, None))
        self.assertEqual(bounding_box(89.99, 10, 5)[1], 90.0)


@override_settings(REDIS_URL="")
class HealthCheckTests(TestCase):
    def test_reports_each_dependency(self):
        response = APIClient().get('/health/')

        self.assertEqual(response.status_code, 200)
        services = response.data["services"]
        self.assertEqual(services["database"], "healthy")
        self.assertEqual(services["cache"], "healthy")
        self.assertEqual(services["redis"], "not configured")
        self.assertEqual(services["celery"], "healthy")
