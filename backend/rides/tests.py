from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient, APIRequestFactory, force_authenticate

from common.exceptions import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from common.testing import DROPOFF, PICKUP, RecordingNotifier, make_driver, make_passenger, make_ride
from drivers.models import DriverProfile
from notifications.models import Notification
from services.context import ServiceContext
from services.ride_management import (
    accept_offer,
    advance_status,
    cancel_ride,
    compute_cancellation_fee,
    create_ride,
    expire_offer,
    list_offers,
    settle_cancellation_fee,
    submit_offer,
)
from services.wallet import WalletLedger
from wallet.models import WalletTransaction

from .models import PriceOffer, RideMessage
from .services.group_rides import create_group_ride, join_group_ride, list_group_rides
from .services.messages import list_messages, send_message
from .views import accept_offer_view, update_ride_status


class LifecycleTestCase(TestCase):
    def setUp(self):
        self.notifier = RecordingNotifier()
        self.ctx = ServiceContext(notifier=self.notifier, ledger=WalletLedger())
        self.passenger = make_passenger()
        self.driver_one = make_driver('driver_one')
        self.driver_two = make_driver('driver_two')

    def open_ride(self, **extra):
        return create_ride(
            self.passenger,
            PICKUP[0], PICKUP[1], DROPOFF[0], DROPOFF[1],
            pickup_address='Praca da Se',
            dropoff_address='Avenida Paulista',
            context=self.ctx,
            **extra
        ).ride

    def accepted_ride(self, price=Decimal("100.00"), **extra):
        ride = self.open_ride(**extra)
        offer = submit_offer(self.driver_one, ride.id, price, context=self.ctx).offer
        accept_offer(self.passenger, offer.id, context=self.ctx)
        ride.refresh_from_db()
        self.notifier.sent.clear()
        return ride


class CreateRideTests(LifecycleTestCase):
    def test_ride_stores_estimate_and_starts_pending(self):
        ride = self.open_ride()

        self.assertEqual(ride.status, 'pending')
        self.assertIsNone(ride.driver_id)
        self.assertIsNone(ride.final_price)
        self.assertAlmostEqual(float(ride.distance_km), 1.51, delta=0.02)
        self.assertAlmostEqual(float(ride.suggested_price), 8.77, delta=0.05)

    def test_nearby_available_drivers_are_told(self):
        make_driver('far_driver', location=(Decimal("-22.90"), Decimal("-43.20")))
        make_driver('offline_driver', status='offline')

        self.open_ride()

        self.assertEqual(sorted(self.notifier.recipients()), sorted([self.driver_one.pk, self.driver_two.pk]))

    def test_second_active_ride_conflicts(self):
        self.open_ride()
        with self.assertRaises(Conflict):
            self.open_ride()

    def test_drivers_cannot_request_rides(self):
        with self.assertRaises(Forbidden):
            create_ride(self.driver_one, PICKUP[0], PICKUP[1], DROPOFF[0], DROPOFF[1], context=self.ctx)


class OfferTests(LifecycleTestCase):
    def test_first_offer_moves_ride_to_negotiating_and_notifies_passenger(self):
        ride = self.open_ride()
        self.notifier.sent.clear()

        result = submit_offer(self.driver_one, ride.id, Decimal("20.00"), context=self.ctx)

        ride.refresh_from_db()
        self.assertEqual(ride.status, 'negotiating')
        self.assertEqual(result.offer.status, 'pending')
        self.assertEqual(self.notifier.recipients(), [self.passenger.pk])
        self.assertAlmostEqual(
            (result.offer.expires_at - result.offer.created_at).total_seconds(), 300, delta=5
        )

    def test_unapproved_driver_cannot_offer(self):
        ride = self.open_ride()
        rookie = make_driver('rookie', approved=False)
        with self.assertRaises(Forbidden):
            submit_offer(rookie, ride.id, 20, context=self.ctx)

    def test_passenger_cannot_offer(self):
        ride = self.open_ride()
        with self.assertRaises(Forbidden):
            submit_offer(self.passenger, ride.id, 20, context=self.ctx)

    def test_duplicate_pending_offer_conflicts(self):
        ride = self.open_ride()
        submit_offer(self.driver_one, ride.id, 20, context=self.ctx)
        with self.assertRaises(Conflict):
            submit_offer(self.driver_one, ride.id, 19, context=self.ctx)

    def test_offer_on_closed_ride_is_invalid_state(self):
        ride = self.accepted_ride()
        with self.assertRaises(InvalidState):
            submit_offer(self.driver_two, ride.id, 15, context=self.ctx)

    def test_missing_ride_is_not_found(self):
        with self.assertRaises(NotFound):
            submit_offer(self.driver_one, 9999, 15, context=self.ctx)

    def test_list_offers_cheapest_first_for_passenger_only(self):
        ride = self.open_ride()
        submit_offer(self.driver_one, ride.id, 20, context=self.ctx)
        submit_offer(self.driver_two, ride.id, 18, context=self.ctx)

        offers = list_offers(self.passenger, ride.id, context=self.ctx)

        self.assertEqual([o.offered_price for o in offers], [Decimal("18.00"), Decimal("20.00")])
        with self.assertRaises(Forbidden):
            list_offers(self.driver_one, ride.id, context=self.ctx)


class AcceptOfferTests(LifecycleTestCase):
    def test_accepting_cheaper_offer_rejects_the_other(self):
        ride = self.open_ride()
        offer1 = submit_offer(self.driver_one, ride.id, Decimal("20.00"), context=self.ctx).offer
        offer2 = submit_offer(self.driver_two, ride.id, Decimal("18.00"), context=self.ctx).offer
        self.notifier.sent.clear()

        accept_offer(self.passenger, offer2.id, context=self.ctx)

        ride.refresh_from_db()
        offer1.refresh_from_db()
        offer2.refresh_from_db()
        self.assertEqual(ride.final_price, Decimal("18.00"))
        self.assertEqual(ride.driver_id, offer2.driver_id)
        self.assertEqual(ride.status, 'accepted')
        self.assertEqual(offer1.status, 'rejected')
        self.assertEqual(offer2.status, 'accepted')
        self.assertEqual(PriceOffer.objects.filter(ride=ride, status='accepted').count(), 1)
        self.assertEqual(DriverProfile.objects.get(user=self.driver_two).status, 'busy')
        self.assertEqual(self.notifier.recipients(), [self.driver_two.pk])

    def test_reaccepting_is_invalid_state(self):
        ride = self.open_ride()
        offer = submit_offer(self.driver_one, ride.id, 20, context=self.ctx).offer
        accept_offer(self.passenger, offer.id, context=self.ctx)

        with self.assertRaises(InvalidState):
            accept_offer(self.passenger, offer.id, context=self.ctx)

    def test_only_ride_passenger_may_accept(self):
        ride = self.open_ride()
        offer = submit_offer(self.driver_one, ride.id, 20, context=self.ctx).offer
        stranger = make_passenger('stranger')

        with self.assertRaises(Forbidden):
            accept_offer(stranger, offer.id, context=self.ctx)

        offer.refresh_from_db()
        ride.refresh_from_db()
        self.assertEqual(offer.status, 'pending')
        self.assertIsNone(ride.driver_id)

    def test_expired_offer_cannot_be_accepted(self):
        ride = self.open_ride()
        offer = submit_offer(self.driver_one, ride.id, 20, context=self.ctx).offer
        later = ServiceContext(notifier=self.notifier, clock=lambda: timezone.now() + timedelta(minutes=10))

        with self.assertRaises(InvalidState):
            accept_offer(self.passenger, offer.id, context=later)

    def test_missing_offer_is_not_found(self):
        with self.assertRaises(NotFound):
            accept_offer(self.passenger, 4242, context=self.ctx)

    def test_driver_already_on_a_ride_cannot_be_accepted_again(self):
        ride_a = self.open_ride()
        other = make_passenger('other_passenger')
        ride_b = create_ride(other, PICKUP[0], PICKUP[1], DROPOFF[0], DROPOFF[1], context=self.ctx).ride
        offer_a = submit_offer(self.driver_one, ride_a.id, 20, context=self.ctx).offer
        offer_b = submit_offer(self.driver_one, ride_b.id, 22, context=self.ctx).offer

        manager = DriverProfile.objects
        with patch.object(manager, 'select_for_update', wraps=manager.select_for_update) as locked:
            accept_offer(self.passenger, offer_a.id, context=self.ctx)
        locked.assert_called_once_with()

        with self.assertRaises(InvalidState):
            accept_offer(other, offer_b.id, context=self.ctx)

        ride_b.refresh_from_db()
        offer_b.refresh_from_db()
        self.assertIsNone(ride_b.driver_id)
        self.assertEqual(ride_b.status, 'negotiating')
        self.assertEqual(offer_b.status, 'pending')


class AdvanceStatusTests(LifecycleTestCase):
    def test_driver_starts_and_completes(self):
        ride = self.accepted_ride()

        advance_status(self.driver_one, ride.id, 'started', context=self.ctx)
        self.assertEqual(self.notifier.recipients(), [self.passenger.pk])
        advance_status(self.driver_one, ride.id, 'completed', context=self.ctx)

        ride.refresh_from_db()
        self.passenger.refresh_from_db()
        self.assertEqual(ride.status, 'completed')
        self.assertEqual(ride.final_price, Decimal("100.00"))
        self.assertIsNotNone(ride.started_at)
        self.assertIsNotNone(ride.completed_at)
        self.assertEqual(self.passenger.completed_rides, 1)
        self.assertEqual(DriverProfile.objects.get(user=self.driver_one).status, 'available')

    def test_each_transition_notifies_counterparty_once(self):
        ride = self.accepted_ride()
        advance_status(self.driver_one, ride.id, 'on_way', context=self.ctx)

        ride.refresh_from_db()
        self.assertEqual(ride.status, 'started')
        self.assertEqual(len(self.notifier.sent), 1)
        self.assertEqual(self.notifier.sent[0]["user_id"], self.passenger.pk)
        self.assertEqual(self.notifier.sent[0]["status"], 'started')

    def test_unknown_status_is_validation_error_and_ride_unchanged(self):
        ride = self.accepted_ride()
        with self.assertRaises(ValidationError):
            advance_status(self.driver_one, ride.id, 'teleported', context=self.ctx)
        ride.refresh_from_db()
        self.assertEqual(ride.status, 'accepted')
        self.assertEqual(self.notifier.sent, [])

    def test_backwards_transition_is_invalid_state(self):
        ride = self.accepted_ride()
        with self.assertRaises(InvalidState):
            advance_status(self.driver_one, ride.id, 'pending', context=self.ctx)
        with self.assertRaises(InvalidState):
            advance_status(self.driver_one, ride.id, 'completed', context=self.ctx)

    def test_passenger_cannot_start_ride(self):
        ride = self.accepted_ride()
        with self.assertRaises(Forbidden):
            advance_status(self.passenger, ride.id, 'started', context=self.ctx)

    def test_outsider_is_forbidden(self):
        ride = self.accepted_ride()
        with self.assertRaises(Forbidden):
            advance_status(self.driver_two, ride.id, 'started', context=self.ctx)

    def test_wallet_ride_settles_on_completion(self):
        ride = self.accepted_ride(price=Decimal("42.00"), payment_method='wallet')
        advance_status(self.driver_one, ride.id, 'started', context=self.ctx)
        advance_status(self.driver_one, ride.id, 'completed', context=self.ctx)

        ledger = WalletLedger()
        self.assertEqual(ledger.get_balance(self.passenger), Decimal("-42.00"))
        self.assertEqual(ledger.get_balance(self.driver_one), Decimal("42.00"))

    def test_cash_ride_leaves_wallet_alone(self):
        ride = self.accepted_ride(payment_method='cash')
        advance_status(self.driver_one, ride.id, 'started', context=self.ctx)
        advance_status(self.driver_one, ride.id, 'completed', context=self.ctx)
        self.assertFalse(WalletTransaction.objects.exists())

    def test_cancelled_target_delegates_to_cancel(self):
        ride = self.accepted_ride()
        result = advance_status(self.passenger, ride.id, 'cancelled', reason='Changed plans', context=self.ctx)
        self.assertEqual(result.ride.status, 'cancelled')
        self.assertEqual(result.extra["cancellation_fee"], Decimal("10.00"))


class CancelRideTests(LifecycleTestCase):
    def test_fee_is_ten_percent_once_accepted(self):
        ride = self.accepted_ride(price=Decimal("100.00"))
        self.assertEqual(compute_cancellation_fee(ride), Decimal("10.00"))

        result = cancel_ride(self.passenger, ride.id, reason='Too slow', context=self.ctx)

        ride.refresh_from_db()
        self.assertEqual(result.extra["cancellation_fee"], Decimal("10.00"))
        self.assertEqual(ride.cancellation_fee, Decimal("10.00"))
        self.assertEqual(ride.cancelled_by, self.passenger)
        self.assertEqual(ride.cancellation_reason, 'Too slow')
        self.assertIsNone(ride.final_price)
        self.assertEqual(self.notifier.recipients(), [self.driver_one.pk])
        self.assertEqual(DriverProfile.objects.get(user=self.driver_one).status, 'available')

    def test_pending_ride_cancels_free(self):
        ride = self.open_ride()
        self.notifier.sent.clear()
        result = cancel_ride(self.passenger, ride.id, context=self.ctx)

        self.assertEqual(result.extra["cancellation_fee"], Decimal("0.00"))
        self.assertEqual(self.notifier.sent, [])

    def test_negotiating_ride_expires_pending_offers(self):
        ride = self.open_ride()
        offer = submit_offer(self.driver_one, ride.id, 20, context=self.ctx).offer

        cancel_ride(self.passenger, ride.id, context=self.ctx)

        offer.refresh_from_db()
        self.assertEqual(offer.status, 'expired')

    def test_completed_ride_cannot_be_cancelled(self):
        ride = make_ride(self.passenger, status='completed', driver=self.driver_one, final_price=Decimal("30"))
        with self.assertRaises(InvalidState):
            cancel_ride(self.passenger, ride.id, context=self.ctx)

    def test_non_participant_cannot_cancel(self):
        ride = self.accepted_ride()
        with self.assertRaises(Forbidden):
            cancel_ride(self.driver_two, ride.id, context=self.ctx)


class SettleCancellationFeeTests(LifecycleTestCase):
    def test_canceller_pays_counterparty_once(self):
        ride = self.accepted_ride(price=Decimal("100.00"))
        cancel_ride(self.passenger, ride.id, context=self.ctx)

        settle_cancellation_fee(self.passenger, ride.id, context=self.ctx)

        ledger = WalletLedger()
        self.assertEqual(ledger.get_balance(self.passenger), Decimal("-10.00"))
        self.assertEqual(ledger.get_balance(self.driver_one), Decimal("10.00"))
        ride.refresh_from_db()
        self.assertTrue(ride.cancellation_fee_settled)

        with self.assertRaises(Conflict):
            settle_cancellation_fee(self.driver_one, ride.id, context=self.ctx)
        self.assertEqual(WalletTransaction.objects.count(), 2)

    def test_driver_cancellation_charges_driver(self):
        ride = self.accepted_ride(price=Decimal("50.00"))
        cancel_ride(self.driver_one, ride.id, context=self.ctx)
        settle_cancellation_fee(self.driver_one, ride.id, context=self.ctx)

        ledger = WalletLedger()
        self.assertEqual(ledger.get_balance(self.driver_one), Decimal("-5.00"))
        self.assertEqual(ledger.get_balance(self.passenger), Decimal("5.00"))

    def test_nothing_to_settle_for_free_cancellation(self):
        ride = self.open_ride()
        cancel_ride(self.passenger, ride.id, context=self.ctx)
        with self.assertRaises(InvalidState):
            settle_cancellation_fee(self.passenger, ride.id, context=self.ctx)

    def test_active_ride_has_no_fee_to_settle(self):
        ride = self.accepted_ride()
        with self.assertRaises(InvalidState):
            settle_cancellation_fee(self.passenger, ride.id, context=self.ctx)


class OfferExpiryTests(LifecycleTestCase):
    def test_overdue_offer_expires_and_ride_reopens(self):
        ride = self.open_ride()
        offer = submit_offer(self.driver_one, ride.id, 20, context=self.ctx).offer
        later = ServiceContext(notifier=self.notifier, clock=lambda: timezone.now() + timedelta(minutes=6))

        self.assertTrue(expire_offer(offer.id, context=later))

        offer.refresh_from_db()
        ride.refresh_from_db()
        self.assertEqual(offer.status, 'expired')
        self.assertEqual(ride.status, 'pending')

    def test_offer_not_yet_due_is_left_alone(self):
        ride = self.open_ride()
        offer = submit_offer(self.driver_one, ride.id, 20, context=self.ctx).offer

        self.assertFalse(expire_offer(offer.id, context=self.ctx))
        offer.refresh_from_db()
        self.assertEqual(offer.status, 'pending')

    def test_process_offer_timeouts_command(self):
        ride = self.open_ride()
        stale = submit_offer(self.driver_one, ride.id, 20, context=self.ctx).offer
        fresh = submit_offer(self.driver_two, ride.id, 22, context=self.ctx).offer
        PriceOffer.objects.filter(pk=stale.pk).update(expires_at=timezone.now() - timedelta(seconds=15))

        call_command('process_offer_timeouts')

        stale.refresh_from_db()
        fresh.refresh_from_db()
        ride.refresh_from_db()
        self.assertEqual(stale.status, 'expired')
        self.assertIsNotNone(stale.responded_at)
        self.assertEqual(fresh.status, 'pending')
        self.assertEqual(ride.status, 'negotiating')


class RideAPITests(TestCase):
    def setUp(self):
        cache.clear()
        self.factory = APIRequestFactory()
        self.passenger = make_passenger()
        self.driver_one = make_driver('driver_one')
        self.driver_two = make_driver('driver_two')
        self.client = APIClient()

    def as_user(self, user):
        self.client.force_authenticate(user)
        return self.client

    def create_ride(self):
        response = self.as_user(self.passenger).post('/api/rides/', {
            "pickup_latitude": "-23.55", "pickup_longitude": "-46.63",
            "dropoff_latitude": "-23.56", "dropoff_longitude": "-46.64",
            "pickup_address": "Praca da Se", "dropoff_address": "Avenida Paulista",
            "vehicle_type": "car",
        }, format='json')
        self.assertEqual(response.status_code, 201, response.content)
        return response.data["ride"]["id"]

    def test_full_negotiation_flow(self):
        ride_id = self.create_ride()

        first = self.as_user(self.driver_one).post(f'/api/rides/{ride_id}/offers/', {"offered_price": "20.00"}, format='json')
        second = self.as_user(self.driver_two).post(f'/api/rides/{ride_id}/offers/', {"offered_price": "18.00"}, format='json')
        self.assertEqual((first.status_code, second.status_code), (201, 201))

        offers = self.as_user(self.passenger).get(f'/api/rides/{ride_id}/offers/')
        self.assertEqual([o["offered_price"] for o in offers.data["offers"]], ["18.00", "20.00"])

        accepted = self.as_user(self.passenger).post(f'/api/offers/{second.data["offer"]["id"]}/accept/')
        self.assertEqual(accepted.status_code, 200)
        self.assertEqual(accepted.data["ride"]["final_price"], "18.00")

        again = self.as_user(self.passenger).post(f'/api/offers/{second.data["offer"]["id"]}/accept/')
        self.assertEqual(again.status_code, 400)

        started = self.as_user(self.driver_two).patch(f'/api/rides/{ride_id}/status/', {"status": "started"}, format='json')
        self.assertEqual(started.status_code, 200)
        self.assertEqual(started.data["ride"]["status"], "started")

        titles = list(Notification.objects.filter(user=self.passenger).values_list('title', flat=True))
        self.assertIn('Ride started', titles)

    def test_vehicle_alias_and_estimate_in_response(self):
        response = self.as_user(self.passenger).post('/api/rides/', {
            "pickup_latitude": "-23.55", "pickup_longitude": "-46.63",
            "dropoff_latitude": "-23.56", "dropoff_longitude": "-46.64",
            "pickup_address": "Praca da Se", "dropoff_address": "Avenida Paulista",
            "vehicle_type": "car",
        }, format='json')

        self.assertEqual(response.data["ride"]["vehicle_type"], "economy")
        self.assertEqual(response.data["estimate"]["duration_minutes"], 3)
        self.assertEqual(response.data["notified_drivers"], 2)

    def test_invalid_coordinates_are_400(self):
        response = self.as_user(self.passenger).post('/api/rides/', {
            "pickup_latitude": "-123.55", "pickup_longitude": "-46.63",
            "dropoff_latitude": "-23.56", "dropoff_longitude": "-46.64",
            "pickup_address": "Praca da Se", "dropoff_address": "Avenida Paulista",
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.data)
        self.assertIn("pickup_latitude", response.data["errors"])

    def test_invalid_status_is_400_and_ride_unchanged(self):
        ride = make_ride(self.passenger, status='accepted', driver=self.driver_one, final_price=Decimal("25.00"))

        request = self.factory.patch(f'/api/rides/{ride.id}/status/', {"status": "flying"}, format='json')
        force_authenticate(request, user=self.driver_one)
        response = update_ride_status(request, ride_id=ride.id)

        self.assertEqual(response.status_code, 400)
        ride.refresh_from_db()
        self.assertEqual(ride.status, 'accepted')

    def test_accept_offer_forbidden_for_other_passenger(self):
        ride = make_ride(self.passenger, status='negotiating')
        offer = PriceOffer.objects.create(
            ride=ride, driver=self.driver_one, offered_price=Decimal("20.00"),
            expires_at=timezone.now() + timedelta(minutes=5),
        )
        stranger = make_passenger('stranger')

        request = self.factory.post(f'/api/offers/{offer.id}/accept/')
        force_authenticate(request, user=stranger)
        response = accept_offer_view(request, offer_id=offer.id)

        self.assertEqual(response.status_code, 403)

    def test_cancel_returns_fee(self):
        ride = make_ride(self.passenger, status='accepted', driver=self.driver_one, final_price=Decimal("100.00"))

        response = self.as_user(self.passenger).post(f'/api/rides/{ride.id}/cancel/', {"reason": "Wrong address"}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["cancellation_fee"], Decimal("10.00"))
        self.assertEqual(response.data["ride"]["status"], "cancelled")

    def test_ride_detail_hidden_from_outsiders(self):
        ride = make_ride(self.passenger, status='accepted', driver=self.driver_one, final_price=Decimal("10"))
        stranger = make_passenger('stranger')

        self.assertEqual(self.as_user(self.passenger).get(f'/api/rides/{ride.id}/').status_code, 200)
        self.assertEqual(self.as_user(stranger).get(f'/api/rides/{ride.id}/').status_code, 403)
        self.assertEqual(self.as_user(stranger).get('/api/rides/999999/').status_code, 404)

    def test_offer_endpoint_is_rate_limited(self):
        ride_id = self.create_ride()
        client = self.as_user(self.driver_one)

        statuses = [
            client.post(f'/api/rides/{ride_id}/offers/', {"offered_price": "20.00"}, format='json').status_code
            for _ in range(6)
        ]

        self.assertEqual(statuses[0], 201)
        self.assertEqual(statuses[-1], 429)
        self.assertEqual(PriceOffer.objects.filter(ride_id=ride_id).count(), 1)

    def test_estimate_endpoint(self):
        response = self.as_user(self.passenger).post('/api/rides/estimate/', {
            "pickup_latitude": "-23.55", "pickup_longitude": "-46.63",
            "dropoff_latitude": "-23.56", "dropoff_longitude": "-46.64",
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["source"], "haversine")
        self.assertEqual(response.data["distance_text"], "1.5km")

    def test_current_ride(self):
        self.assertFalse(self.as_user(self.passenger).get('/api/rides/current/').data["has_active_ride"])
        ride_id = self.create_ride()
        response = self.as_user(self.passenger).get('/api/rides/current/')
        self.assertEqual(response.data["ride"]["id"], ride_id)


class GroupRideTests(TestCase):
    def setUp(self):
        cache.clear()
        self.notifier = RecordingNotifier()
        self.ctx = ServiceContext(notifier=self.notifier)
        self.owner = make_passenger('owner')
        self.friend = make_passenger('friend')

    def test_creator_is_first_participant(self):
        group = create_group_ride(self.owner, max_passengers=3, stops={"pickup_address": "Rua Augusta"})

        self.assertEqual(len(group.invite_code), 6)
        self.assertEqual(group.status, 'open')
        self.assertEqual(list(group.participants.values_list('user_id', flat=True)), [self.owner.pk])
        self.assertEqual(group.participants.get().pickup_address, 'Rua Augusta')

    def test_join_notifies_creator_and_second_join_conflicts(self):
        group = create_group_ride(self.owner)

        join_group_ride(self.friend, group.invite_code.lower(), context=self.ctx)
        with self.assertRaises(Conflict):
            join_group_ride(self.friend, group.invite_code, context=self.ctx)

        self.assertEqual(group.participants.count(), 2)
        self.assertEqual(self.notifier.recipients(), [self.owner.pk])

    def test_group_fills_up(self):
        group = create_group_ride(self.owner, max_passengers=2)
        join_group_ride(self.friend, group.invite_code, context=self.ctx)

        group.refresh_from_db()
        self.assertEqual(group.status, 'full')
        with self.assertRaises(InvalidState):
            join_group_ride(make_passenger('late'), group.invite_code, context=self.ctx)

    def test_unknown_and_expired_codes(self):
        with self.assertRaises(NotFound):
            join_group_ride(self.friend, 'NOPE00', context=self.ctx)

        group = create_group_ride(self.owner)
        later = ServiceContext(notifier=self.notifier, clock=lambda: timezone.now() + timedelta(days=2))
        with self.assertRaises(InvalidState):
            join_group_ride(self.friend, group.invite_code, context=later)

    def test_only_own_ride_can_be_shared(self):
        ride = make_ride(self.friend)
        with self.assertRaises(Forbidden):
            create_group_ride(self.owner, ride_id=ride.id)
        with self.assertRaises(ValidationError):
            create_group_ride(self.owner, max_passengers=1)

    def test_list_includes_joined_groups(self):
        mine = create_group_ride(self.owner)
        theirs = create_group_ride(self.friend)
        join_group_ride(self.owner, theirs.invite_code, context=self.ctx)
        create_group_ride(make_passenger('stranger'))

        self.assertEqual([g.id for g in list_group_rides(self.owner)], [theirs.id, mine.id])

    def test_endpoints(self):
        client = APIClient()
        client.force_authenticate(self.owner)
        created = client.post('/api/group-rides/', {"max_passengers": 3}, format='json')
        self.assertEqual(created.status_code, 201)
        code = created.data["group_ride"]["invite_code"]

        client.force_authenticate(self.friend)
        joined = client.post('/api/group-rides/join/', {"invite_code": code}, format='json')
        again = client.post('/api/group-rides/join/', {"invite_code": code}, format='json')

        self.assertEqual(joined.status_code, 200)
        self.assertEqual(len(joined.data["group_ride"]["participants"]), 2)
        self.assertEqual(again.status_code, 409)
        self.assertEqual(client.get('/api/group-rides/', {"invite_code": "NOPE00"}).status_code, 404)
        self.assertEqual(len(client.get('/api/group-rides/').data["group_rides"]), 1)


class RideMessageTests(TestCase):
    def setUp(self):
        cache.clear()
        self.notifier = RecordingNotifier()
        self.ctx = ServiceContext(notifier=self.notifier)
        self.passenger = make_passenger()
        self.driver = make_driver()
        self.ride = make_ride(self.passenger, status='accepted', driver=self.driver, final_price=Decimal("15.00"))

    def test_participants_chat_and_counterparty_is_notified(self):
        send_message(self.passenger, self.ride.id, 'I am at the gate', context=self.ctx)
        send_message(self.driver, self.ride.id, '  Two minutes  ', context=self.ctx)

        messages = list_messages(self.driver, self.ride.id)
        self.assertEqual([m.message for m in messages], ['I am at the gate', 'Two minutes'])
        self.assertEqual(self.notifier.recipients(), [self.driver.pk, self.passenger.pk])
        self.assertEqual(self.notifier.sent[0]["type"], 'message')

    def test_outsiders_and_missing_rides(self):
        with self.assertRaises(Forbidden):
            send_message(make_passenger('nosy'), self.ride.id, 'hi', context=self.ctx)
        with self.assertRaises(NotFound):
            list_messages(self.passenger, 4242)
        with self.assertRaises(ValidationError):
            send_message(self.passenger, self.ride.id, '   ', context=self.ctx)
        self.assertFalse(RideMessage.objects.exists())

    def test_no_driver_yet_means_no_notification(self):
        open_ride = make_ride(make_passenger('early'))
        send_message(open_ride.passenger, open_ride.id, 'Anyone?', context=self.ctx)
        self.assertEqual(self.notifier.sent, [])

    def test_endpoints(self):
        client = APIClient()
        client.force_authenticate(self.passenger)

        sent = client.post('/api/messages/', {"ride_id": self.ride.id, "message": "Hello"}, format='json')
        listed = client.get('/api/messages/', {"ride_id": self.ride.id})
        missing_param = client.get('/api/messages/')

        self.assertEqual(sent.status_code, 201)
        self.assertEqual(listed.data["messages"][0]["sender"]["id"], self.passenger.pk)
        self.assertEqual(missing_param.status_code, 400)

        client.force_authenticate(make_passenger('nosy'))
        self.assertEqual(client.get('/api/messages/', {"ride_id": self.ride.id}).status_code, 403)
