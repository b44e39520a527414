from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient

from accounts.models import FavoritePlace, User
from common.testing import make_passenger
from drivers.models import DriverProfile
from engagement.models import Referral


class RegisterTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()

    def test_passenger_registration_returns_tokens(self):
        response = self.client.post('/api/auth/register/', {
            "username": "maria",
            "email": "maria@example.com",
            "password": "senha-forte-1",
            "role": "passenger",
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertIn("access", response.data["tokens"])
        self.assertTrue(response.data["user"]["referral_code"])
        self.assertFalse(DriverProfile.objects.exists())

    def test_driver_needs_vehicle_number(self):
        response = self.client.post('/api/auth/register/', {
            "username": "joao", "password": "senha-forte-1", "role": "driver",
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertIn("vehicle_number", response.data["errors"])

    def test_driver_profile_starts_unapproved(self):
        response = self.client.post('/api/auth/register/', {
            "username": "joao", "password": "senha-forte-1", "role": "driver",
            "vehicle_number": "ABC1D23", "vehicle_type": "moto",
        }, format='json')

        self.assertEqual(response.status_code, 201)
        profile = DriverProfile.objects.get(user__username="joao")
        self.assertFalse(profile.is_approved)
        self.assertEqual(profile.vehicle_type, 'moto')

    def test_registration_with_referral_code(self):
        referrer = make_passenger('referrer')

        response = self.client.post('/api/auth/register/', {
            "username": "friend", "password": "senha-forte-1", "role": "passenger",
            "referral_code": referrer.referral_code,
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertTrue(Referral.objects.filter(referrer=referrer, referred__username="friend").exists())

    def test_bad_referral_code_rolls_back_the_account(self):
        response = self.client.post('/api/auth/register/', {
            "username": "friend", "password": "senha-forte-1", "referral_code": "NOSUCH00",
        }, format='json')

        self.assertEqual(response.status_code, 404)
        self.assertFalse(User.objects.filter(username="friend").exists())


class LoginTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        make_passenger('ana')

    def test_login_and_me(self):
        response = self.client.post('/api/auth/login/', {"username": "ana", "password": "pass1234"}, format='json')
        self.assertEqual(response.status_code, 200)

        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {response.data["tokens"]["access"]}')
        me = self.client.get('/api/auth/me/')

        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.data["username"], "ana")
        self.assertEqual(me.data["role"], "passenger")

    def test_wrong_password_is_401(self):
        response = self.client.post('/api/auth/login/', {"username": "ana", "password": "nope"}, format='json')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["error"], "Invalid username or password")

    def test_refresh(self):
        tokens = self.client.post('/api/auth/login/', {"username": "ana", "password": "pass1234"}, format='json').data["tokens"]

        response = self.client.post('/api/auth/refresh/', {"refresh": tokens["refresh"]}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertIn("access", response.data)

        self.assertEqual(self.client.post('/api/auth/refresh/', {"refresh": "junk"}, format='json').status_code, 401)

    def test_me_requires_authentication(self):
        self.assertEqual(self.client.get('/api/auth/me/').status_code, 401)

    def test_auth_endpoints_are_rate_limited(self):
        statuses = [
            self.client.post('/api/auth/login/', {"username": "ana", "password": "nope"}, format='json').status_code
            for _ in range(11)
        ]
        self.assertEqual(statuses[:10], [401] * 10)
        self.assertEqual(statuses[10], 429)


class FavoritesTests(TestCase):
    def setUp(self):
        cache.clear()
        self.user = make_passenger('ana')
        self.client = APIClient()
        self.client.force_authenticate(self.user)

    def add(self, name="Casa", **extra):
        payload = {"name": name, "address": "Rua Augusta 100", "lat": "-23.55", "lng": "-46.65", **extra}
        return self.client.post('/api/favorites/', payload, format='json')

    def test_add_and_list_newest_first(self):
        first = self.add(type="home")
        self.add("Escritorio", type="work", icon="briefcase")

        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.data["favorite"]["lat"], "-23.550000")
        listed = self.client.get('/api/favorites/')
        self.assertEqual([f["name"] for f in listed.data["favorites"]], ["Escritorio", "Casa"])

    def test_required_fields(self):
        response = self.client.post('/api/favorites/', {"name": "Casa"}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn("address", response.data["errors"])

    def test_delete_only_own(self):
        favorite_id = self.add().data["favorite"]["id"]
        other = make_passenger('bia')
        foreign = FavoritePlace.objects.create(user=other, name="Casa", address="Rua X",
                                               latitude="-23.5", longitude="-46.6")

        self.assertEqual(self.client.delete(f'/api/favorites/?id={foreign.id}').status_code, 404)
        self.assertEqual(self.client.delete('/api/favorites/').status_code, 400)
        self.assertEqual(self.client.delete(f'/api/favorites/?id={favorite_id}').status_code, 200)
        self.assertEqual(list(FavoritePlace.objects.values_list('user_id', flat=True)), [other.pk])
