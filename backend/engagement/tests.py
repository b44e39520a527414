from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from common.exceptions import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from common.testing import RecordingNotifier, make_driver, make_passenger, make_ride
from services.context import ServiceContext
from services.ride_management import advance_status
from services.wallet import get_balance

from engagement import services
from engagement.models import Coupon, Referral, UserAchievement, UserCoupon

User = get_user_model()


class RatingTests(TestCase):
    def setUp(self):
        self.passenger = make_passenger()
        self.driver = make_driver()
        self.ride = make_ride(self.passenger, status='completed', driver=self.driver, final_price=Decimal("20.00"))

    def test_rating_updates_average(self):
        services.rate_ride(self.passenger, self.ride.id, self.driver.pk, 5)
        other = make_passenger('other')
        second = make_ride(other, status='completed', driver=self.driver, final_price=Decimal("15.00"))
        services.rate_ride(other, second.id, self.driver.pk, 4, comment="Ok", tags=["polite"])

        self.driver.refresh_from_db()
        self.assertEqual(self.driver.rating, Decimal("4.50"))
        self.assertEqual(self.driver.total_rides, 2)
        self.assertEqual(services.ratings_received(self.driver.pk).count(), 2)

    def test_driver_can_rate_passenger(self):
        rating = services.rate_ride(self.driver, self.ride.id, self.passenger.pk, 3)
        self.assertEqual(rating.reviewed_id, self.passenger.pk)

    def test_second_rating_conflicts(self):
        services.rate_ride(self.passenger, self.ride.id, self.driver.pk, 5)
        with self.assertRaises(Conflict):
            services.rate_ride(self.passenger, self.ride.id, self.driver.pk, 1)

    def test_only_completed_rides(self):
        ride = make_ride(make_passenger('early'), status='started', driver=self.driver, final_price=Decimal("9"))
        with self.assertRaises(InvalidState):
            services.rate_ride(ride.passenger, ride.id, self.driver.pk, 5)

    def test_must_rate_the_other_participant(self):
        with self.assertRaises(ValidationError):
            services.rate_ride(self.passenger, self.ride.id, self.passenger.pk, 5)

    def test_outsiders_cannot_rate(self):
        with self.assertRaises(Forbidden):
            services.rate_ride(make_passenger('outsider'), self.ride.id, self.driver.pk, 5)

    def test_missing_ride(self):
        with self.assertRaises(NotFound):
            services.rate_ride(self.passenger, 31337, self.driver.pk, 5)


class ReferralTests(TestCase):
    def setUp(self):
        self.referrer = make_passenger('referrer')
        self.newcomer = make_passenger('newcomer')

    def test_apply_code_case_insensitively(self):
        referral = services.apply_referral_code(self.newcomer, self.referrer.referral_code.lower())

        self.newcomer.refresh_from_db()
        self.assertEqual(referral.referrer, self.referrer)
        self.assertEqual(referral.bonus_amount, Decimal("10.00"))
        self.assertEqual(self.newcomer.referred_by, self.referrer)
        self.assertFalse(referral.is_completed)

    def test_rejects_own_unknown_and_repeated_codes(self):
        with self.assertRaises(ValidationError):
            services.apply_referral_code(self.referrer, self.referrer.referral_code)
        with self.assertRaises(NotFound):
            services.apply_referral_code(self.newcomer, "NOPE0000")

        services.apply_referral_code(self.newcomer, self.referrer.referral_code)
        with self.assertRaises(Conflict):
            services.apply_referral_code(self.newcomer, make_passenger('third').referral_code)

    def test_first_completed_ride_pays_both_sides_once(self):
        services.apply_referral_code(self.newcomer, self.referrer.referral_code)
        driver = make_driver()
        ride = make_ride(self.newcomer, status='started', driver=driver, final_price=Decimal("12.00"))
        ctx = ServiceContext(notifier=RecordingNotifier())

        advance_status(driver, ride.id, 'completed', context=ctx)

        self.assertEqual(get_balance(self.referrer), Decimal("10.00"))
        self.assertEqual(get_balance(self.newcomer), Decimal("10.00"))
        self.assertTrue(Referral.objects.get(referred=self.newcomer).is_completed)
        self.assertIsNone(services.complete_referral_for(self.newcomer, context=ctx))
        self.assertEqual(get_balance(self.referrer), Decimal("10.00"))

    def test_code_is_refused_after_completed_rides(self):
        driver = make_driver()
        ctx = ServiceContext(notifier=RecordingNotifier())
        for _ in range(3):
            ride = make_ride(self.newcomer, status='started', driver=driver, final_price=Decimal("12.00"))
            advance_status(driver, ride.id, 'completed', context=ctx)

        with self.assertRaises(InvalidState):
            services.apply_referral_code(self.newcomer, self.referrer.referral_code)

        ride = make_ride(self.newcomer, status='started', driver=driver, final_price=Decimal("12.00"))
        advance_status(driver, ride.id, 'completed', context=ctx)

        self.assertFalse(Referral.objects.filter(referred=self.newcomer).exists())
        self.assertEqual(get_balance(self.referrer), Decimal("0.00"))

    def test_drivers_with_completed_rides_cannot_apply_codes(self):
        driver = make_driver()
        make_ride(self.newcomer, status='completed', driver=driver, final_price=Decimal("12.00"))

        with self.assertRaises(InvalidState):
            services.apply_referral_code(driver, self.referrer.referral_code)

    def test_reciprocal_referral_is_rejected(self):
        services.apply_referral_code(self.newcomer, self.referrer.referral_code)

        with self.assertRaises(ValidationError):
            services.apply_referral_code(self.referrer, self.newcomer.referral_code)
        self.assertFalse(Referral.objects.filter(referred=self.referrer).exists())

    def test_summary_counts_completed_credits(self):
        services.apply_referral_code(self.newcomer, self.referrer.referral_code)
        services.complete_referral_for(self.newcomer)

        summary = services.referral_summary(self.referrer)

        self.assertEqual(summary["total_referrals"], 1)
        self.assertEqual(summary["referral_credits"], Decimal("10.00"))


class LeaderboardTests(TestCase):
    def setUp(self):
        cache.clear()
        self.alice = make_passenger('alice')
        self.bruno = make_driver('bruno')
        self.carla = make_passenger('carla')
        User.objects.filter(pk=self.alice.pk).update(completed_rides=3, rating=Decimal("4.20"), total_rides=2)
        User.objects.filter(pk=self.bruno.pk).update(completed_rides=7, rating=Decimal("4.90"), total_rides=6)

    def test_total_rides_ranking(self):
        board = services.get_leaderboard('total_rides')

        self.assertEqual([e["username"] for e in board], ['bruno', 'alice'])
        self.assertEqual([e["rank"] for e in board], [1, 2])
        self.assertEqual(board[0]["score"], 7)

    def test_rating_ranking_skips_unrated_users(self):
        board = services.get_leaderboard('rating')
        self.assertEqual([e["username"] for e in board], ['bruno', 'alice'])
        self.assertEqual(board[0]["score"], 4.9)

    def test_referral_ranking(self):
        Referral.objects.create(referrer=self.carla, referred=self.alice, code=self.carla.referral_code,
                                bonus_amount=Decimal("10.00"), is_completed=True)
        board = services.get_leaderboard('referrals')
        self.assertEqual([(e["username"], e["score"]) for e in board], [('carla', 1)])

    def test_unknown_category(self):
        with self.assertRaises(ValidationError):
            services.get_leaderboard('speed')

    def test_endpoint_returns_callers_rank(self):
        client = APIClient()
        client.force_authenticate(self.alice)

        response = client.get('/api/leaderboard/', {"category": "total_rides"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["user_rank"]["rank"], 2)
        self.assertEqual(client.get('/api/leaderboard/', {"category": "speed"}).status_code, 400)


class AchievementTests(TestCase):
    def setUp(self):
        cache.clear()
        self.user = make_passenger()

    def test_grants_each_achievement_once(self):
        User.objects.filter(pk=self.user.pk).update(completed_rides=10)

        granted = services.check_and_grant_achievements(self.user)

        self.assertEqual(sorted(a.code for a in granted), ['first_ride', 'ten_rides'])
        self.assertEqual(services.check_and_grant_achievements(self.user), [])
        self.assertEqual(UserAchievement.objects.filter(user=self.user).count(), 2)

    def test_top_rated_needs_enough_ratings(self):
        User.objects.filter(pk=self.user.pk).update(rating=Decimal("4.95"), total_rides=9)
        self.assertEqual(services.check_and_grant_achievements(self.user), [])

        User.objects.filter(pk=self.user.pk).update(total_rides=10)
        self.assertEqual([a.code for a in services.check_and_grant_achievements(self.user)], ['top_rated'])

    def test_endpoint_lists_achievements(self):
        User.objects.filter(pk=self.user.pk).update(completed_rides=1)
        client = APIClient()
        client.force_authenticate(self.user)

        response = client.get('/api/achievements/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual([a["code"] for a in response.data["achievements"]], ['first_ride'])


class EngagementAPITests(TestCase):
    def setUp(self):
        cache.clear()
        self.passenger = make_passenger()
        self.driver = make_driver()
        self.client = APIClient()
        self.client.force_authenticate(self.passenger)

    def test_rate_with_legacy_field_name(self):
        ride = make_ride(self.passenger, status='completed', driver=self.driver, final_price=Decimal("20.00"))

        response = self.client.post('/api/ratings/', {
            "ride_id": ride.id, "reviewed_id": self.driver.pk, "rating": 4,
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["rating"]["score"], 4)
        listed = self.client.get('/api/ratings/', {"user_id": self.driver.pk})
        self.assertEqual(len(listed.data["ratings"]), 1)

    def test_rating_out_of_range(self):
        ride = make_ride(self.passenger, status='completed', driver=self.driver, final_price=Decimal("20.00"))
        response = self.client.post('/api/ratings/', {
            "ride_id": ride.id, "reviewed_id": self.driver.pk, "score": 6,
        }, format='json')
        self.assertEqual(response.status_code, 400)

    def test_apply_referral_endpoint(self):
        referrer = make_passenger('referrer')

        response = self.client.post('/api/referrals/', {"referral_code": referrer.referral_code}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])

        again = self.client.post('/api/referrals/', {"referral_code": referrer.referral_code}, format='json')
        self.assertEqual(again.status_code, 409)

        summary = APIClient()
        summary.force_authenticate(referrer)
        self.assertEqual(summary.get('/api/referrals/').data["total_referrals"], 1)


class CouponTests(TestCase):
    def setUp(self):
        cache.clear()
        self.user = make_passenger()
        self.coupon = Coupon.objects.create(
            code='uppi10', discount_value=Decimal("10.00"), valid_until=timezone.now() + timedelta(days=7),
        )

    def test_claim_is_case_insensitive_and_counts_use(self):
        claim = services.claim_coupon(self.user, ' Uppi10 ')

        self.coupon.refresh_from_db()
        self.assertEqual(claim.coupon, self.coupon)
        self.assertEqual(self.coupon.code, 'UPPI10')
        self.assertEqual(self.coupon.current_uses, 1)

    def test_second_claim_conflicts(self):
        services.claim_coupon(self.user, 'UPPI10')
        with self.assertRaises(Conflict):
            services.claim_coupon(self.user, 'UPPI10')
        self.assertEqual(UserCoupon.objects.count(), 1)

    def test_exhausted_expired_and_inactive_coupons(self):
        Coupon.objects.filter(pk=self.coupon.pk).update(max_uses=1, current_uses=1)
        with self.assertRaises(InvalidState):
            services.claim_coupon(self.user, 'UPPI10')

        Coupon.objects.create(code='OLD', discount_value=5, valid_until=timezone.now() - timedelta(days=1))
        Coupon.objects.create(code='OFF', discount_value=5, valid_until=timezone.now() + timedelta(days=1),
                              is_active=False)
        for code in ('OLD', 'OFF', 'NOSUCH'):
            with self.assertRaises(NotFound):
                services.claim_coupon(self.user, code)

    def test_endpoint(self):
        client = APIClient()
        client.force_authenticate(self.user)

        listed = client.get('/api/coupons/')
        claimed = client.post('/api/coupons/', {"code": "uppi10"}, format='json')
        again = client.post('/api/coupons/', {"code": "uppi10"}, format='json')

        self.assertEqual([c["code"] for c in listed.data["coupons"]], ['UPPI10'])
        self.assertEqual(claimed.status_code, 201)
        self.assertEqual(again.status_code, 409)
        self.assertEqual(len(client.get('/api/coupons/').data["my_coupons"]), 1)
