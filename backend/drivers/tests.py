from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient

from common.testing import PICKUP, make_driver, make_passenger, make_ride
from common.utils.geo import haversine_km
from drivers import services
from drivers.models import DriverProfile

RIO = (Decimal("-22.900000"), Decimal("-43.200000"))


class NearbyDriversTests(TestCase):
    def setUp(self):
        cache.clear()
        self.close = make_driver('close')
        self.moto = make_driver('moto', vehicle_type='moto',
                                location=(Decimal("-23.560000"), Decimal("-46.630000")))
        make_driver('far', location=RIO)
        make_driver('offline', status='offline')
        make_driver('unapproved', approved=False)
        make_driver('nowhere', location=None)

    def test_only_available_approved_drivers_in_radius(self):
        drivers = services.find_nearby_drivers(float(PICKUP[0]), float(PICKUP[1]), radius_km=5)

        self.assertEqual([d["username"] for d in drivers], ['close', 'moto'])
        self.assertEqual(drivers[0]["distance_km"], 0.0)

    def test_only_drivers_inside_the_bounding_box_are_measured(self):
        make_driver('corner', location=(Decimal("-23.594000"), Decimal("-46.675000")))

        with patch('drivers.services.haversine_km', wraps=haversine_km) as measured:
            drivers = services.find_nearby_drivers(float(PICKUP[0]), float(PICKUP[1]), radius_km=5)

        self.assertEqual([d["username"] for d in drivers], ['close', 'moto'])
        self.assertEqual(measured.call_count, 3)

    def test_vehicle_type_filter(self):
        drivers = services.find_nearby_drivers(float(PICKUP[0]), float(PICKUP[1]), vehicle_type='moto')
        self.assertEqual([d["driver_id"] for d in drivers], [self.moto.pk])

    def test_endpoint(self):
        client = APIClient()
        client.force_authenticate(make_passenger())

        response = client.get('/api/drivers/nearby/', {"lat": "-23.55", "lng": "-46.63", "radius": "2"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual(response.data["search_radius_km"], 2.0)

    def test_endpoint_validates_coordinates(self):
        client = APIClient()
        client.force_authenticate(make_passenger())
        response = client.get('/api/drivers/nearby/', {"lat": "123", "lng": "-46.63"})
        self.assertEqual(response.status_code, 400)


class HotZoneTests(TestCase):
    def setUp(self):
        cache.clear()
        self.driver = make_driver()
        make_ride(make_passenger('p1'))
        make_ride(make_passenger('p2'), status='negotiating')
        make_ride(make_passenger('p3'), status='accepted', driver=make_driver('busy'), final_price=Decimal("15"))
        make_ride(make_passenger('p4'), pickup_latitude=RIO[0], pickup_longitude=RIO[1])

    def test_open_rides_grouped_by_cell(self):
        zones = services.get_hot_zones_for_drivers(float(PICKUP[0]), float(PICKUP[1]), 5)

        self.assertEqual(len(zones), 1)
        self.assertEqual(zones[0]["demand"], 2)
        self.assertEqual(len(zones[0]["geohash"]), services.HOT_ZONE_PRECISION)
        self.assertEqual(zones[0]["latitude"], -23.55)

    def test_endpoint_is_driver_only(self):
        client = APIClient()
        client.force_authenticate(self.driver)
        response = client.get('/api/drivers/hot-zones/', {"lat": "-23.55", "lng": "-46.63"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)

        client.force_authenticate(make_passenger('curious'))
        response = client.get('/api/drivers/hot-zones/', {"lat": "-23.55", "lng": "-46.63"})
        self.assertEqual(response.status_code, 403)


class DriverProfileTests(TestCase):
    def setUp(self):
        cache.clear()
        self.driver = make_driver()
        self.client = APIClient()
        self.client.force_authenticate(self.driver)

    def test_go_offline(self):
        response = self.client.put('/api/drivers/me/status/', {"status": "offline"}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(DriverProfile.objects.get(user=self.driver).status, 'offline')

    def test_cannot_set_busy_by_hand(self):
        response = self.client.put('/api/drivers/me/status/', {"status": "busy"}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_location_update(self):
        response = self.client.post('/api/drivers/me/location/', {"latitude": "-23.5", "longitude": "-46.6"}, format='json')

        self.assertEqual(response.status_code, 200)
        profile = DriverProfile.objects.get(user=self.driver)
        self.assertEqual(profile.current_latitude, Decimal("-23.500000"))
        self.assertIsNotNone(profile.last_location_update)
