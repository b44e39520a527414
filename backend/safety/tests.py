from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient

from common.exceptions import Forbidden, NotFound, ValidationError
from common.testing import RecordingNotifier, make_driver, make_passenger, make_ride
from services.context import ServiceContext

from safety import services
from safety.models import EmergencyAlert, EmergencyContact


class EmergencyAlertTests(TestCase):
    def setUp(self):
        self.notifier = RecordingNotifier()
        self.ctx = ServiceContext(notifier=self.notifier)
        self.user = make_passenger()
        self.staff = make_passenger('ops', is_staff=True)

    def test_contacts_and_staff_are_notified(self):
        services.add_contact(self.user, 'Mae', '+5511988887777', 'mother')
        services.add_contact(self.user, 'Irmao', '+5511977776666')

        alert, notified = services.raise_alert(self.user, location_address='Av. Paulista 1000', context=self.ctx)

        self.assertEqual(notified, 2)
        self.assertTrue(alert.contacts_notified)
        self.assertEqual(self.notifier.recipients(), [self.user.pk, self.user.pk, self.staff.pk])
        self.assertIn('Av. Paulista 1000', self.notifier.sent[0]["message"])
        self.assertEqual({n["type"] for n in self.notifier.sent}, {'emergency'})

    def test_without_contacts_only_staff_hears(self):
        alert, notified = services.raise_alert(self.user, context=self.ctx)

        self.assertEqual(notified, 0)
        self.assertFalse(alert.contacts_notified)
        self.assertEqual(self.notifier.recipients(), [self.staff.pk])

    def test_ride_must_be_the_users(self):
        ride = make_ride(make_passenger('other'), status='started', driver=make_driver(), final_price=Decimal("10"))

        with self.assertRaises(Forbidden):
            services.raise_alert(self.user, ride_id=ride.id, context=self.ctx)
        with self.assertRaises(NotFound):
            services.raise_alert(self.user, ride_id=4242, context=self.ctx)

        alert, _ = services.raise_alert(ride.driver, ride_id=ride.id, context=self.ctx)
        self.assertEqual(alert.ride, ride)

    def test_resolve_sets_resolved_at(self):
        alert, _ = services.raise_alert(self.user, context=self.ctx)

        resolved = services.update_alert_status(self.user, alert.id, 'resolved', context=self.ctx)
        self.assertIsNotNone(resolved.resolved_at)

        reopened = services.update_alert_status(self.user, alert.id, 'active', context=self.ctx)
        self.assertIsNone(reopened.resolved_at)

        with self.assertRaises(NotFound):
            services.update_alert_status(self.staff, alert.id, 'resolved', context=self.ctx)
        with self.assertRaises(ValidationError):
            services.update_alert_status(self.user, alert.id, 'panic', context=self.ctx)

    def test_contact_limit(self):
        for i in range(services.MAX_CONTACTS):
            services.add_contact(self.user, f'Contato {i}', f'+55119000000{i}')
        with self.assertRaises(ValidationError):
            services.add_contact(self.user, 'Extra', '+5511900000099')


class SafetyAPITests(TestCase):
    def setUp(self):
        cache.clear()
        self.user = make_passenger()
        self.client = APIClient()
        self.client.force_authenticate(self.user)

    def test_alert_flow(self):
        self.client.post('/api/emergency/contacts/', {"name": "Mae", "phone": "+5511988887777"}, format='json')

        raised = self.client.post('/api/emergency/', {
            "type": "sos", "location_latitude": "-23.55", "location_longitude": "-46.63",
            "location_address": "Praca da Se",
        }, format='json')
        self.assertEqual(raised.status_code, 201)
        self.assertEqual(raised.data["contacts_notified"], 1)

        alert_id = raised.data["alert"]["id"]
        patched = self.client.patch('/api/emergency/', {"alert_id": alert_id, "status": "false_alarm"}, format='json')
        self.assertEqual(patched.data["alert"]["status"], 'false_alarm')

        listed = self.client.get('/api/emergency/')
        self.assertEqual([a["id"] for a in listed.data["alerts"]], [alert_id])

    def test_bad_status_is_400(self):
        alert = EmergencyAlert.objects.create(user=self.user)
        response = self.client.patch('/api/emergency/', {"alert_id": alert.id, "status": "panic"}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_contacts_crud(self):
        created = self.client.post('/api/emergency/contacts/', {
            "name": "Mae", "phone": "+5511988887777", "relationship": "mother",
        }, format='json')
        self.assertEqual(created.status_code, 201)
        self.assertEqual(len(self.client.get('/api/emergency/contacts/').data["contacts"]), 1)

        contact_id = created.data["contact"]["id"]
        self.assertEqual(self.client.delete(f'/api/emergency/contacts/?id={contact_id}').status_code, 200)
        self.assertEqual(self.client.delete(f'/api/emergency/contacts/?id={contact_id}').status_code, 404)
        self.assertFalse(EmergencyContact.objects.exists())

    def test_requires_authentication(self):
        self.assertEqual(APIClient().get('/api/emergency/').status_code, 401)
