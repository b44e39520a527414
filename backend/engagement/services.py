"""
Ratings, referrals, leaderboard and achievements.

These run against the ORM; callers reach each one through a single function
call, the same way they would call a stored procedure.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Avg, Count, F, Q
from django.utils import timezone

from common.exceptions import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from engagement.models import Coupon, Rating, Referral, UserAchievement, UserCoupon
from rides.models import Ride

logger = logging.getLogger(__name__)

User = get_user_model()

LEADERBOARD_CATEGORIES = ('total_rides', 'rating', 'referrals')
LEADERBOARD_MAX_LIMIT = 100

TOP_RATED_MIN_RATING = Decimal("4.80")
TOP_RATED_MIN_RATINGS = 10


# ---------------------- Ratings ----------------------

@transaction.atomic
def rate_ride(reviewer, ride_id: int, reviewed_id: int, score: int, comment: str = "", tags=None) -> Rating:
    """
    Rate the other participant of a completed ride, then refresh their average.

    Raises:
        NotFound: ride does not exist
        Forbidden: reviewer did not take part in the ride
        InvalidState: ride is not completed
        ValidationError: reviewed user is not the other participant
        Conflict: reviewer already rated this ride
    """
    try:
        ride = Ride.objects.get(pk=ride_id)
    except Ride.DoesNotExist:
        raise NotFound("Ride not found")

    if not ride.is_participant(reviewer):
        raise Forbidden("You are not a participant of this ride")
    if ride.status != 'completed':
        raise InvalidState("Only completed rides can be rated")
    if reviewed_id != ride.counterparty_id(reviewer):
        raise ValidationError("You can only rate the other participant of the ride")

    try:
        with transaction.atomic():
            rating = Rating.objects.create(
                ride=ride,
                reviewer=reviewer,
                reviewed_id=reviewed_id,
                score=score,
                comment=comment,
                tags=tags or [],
            )
    except IntegrityError:
        raise Conflict("You already rated this ride")

    refresh_user_rating(reviewed_id)
    return rating


def refresh_user_rating(user_id: int):
    """Recompute a user's average rating and number of ratings received."""
    stats = Rating.objects.filter(reviewed_id=user_id).aggregate(avg=Avg('score'), count=Count('id'))
    average = Decimal(str(stats['avg'] or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    User.objects.filter(pk=user_id).update(rating=average, total_rides=stats['count'])


def ratings_received(user_id: int):
    return (
        Rating.objects.filter(reviewed_id=user_id)
        .select_related('reviewer', 'ride')
        .order_by('-created_at')
    )


# ---------------------- Referrals ----------------------

def referral_bonus_amount() -> Decimal:
    return Decimal(str(getattr(settings, "REFERRAL_BONUS_AMOUNT", "10.00")))


@transaction.atomic
def apply_referral_code(user, code: str) -> Referral:
    """Register `user` as referred by the owner of `code`."""
    code = (code or "").strip().upper()
    if not code:
        raise ValidationError("Referral code required")

    referrer = User.objects.filter(referral_code=code).first()
    if referrer is None:
        raise NotFound("Invalid referral code")
    if referrer.pk == user.pk:
        raise ValidationError("You cannot use your own referral code")
    if referrer.referred_by_id == user.pk:
        raise ValidationError("You cannot use the code of someone you referred")
    has_ridden = (
        User.objects.filter(pk=user.pk, completed_rides__gt=0).exists()
        or Ride.objects.filter(Q(passenger=user) | Q(driver=user), status='completed').exists()
    )
    if has_ridden:
        raise InvalidState("Referral codes can only be applied before your first completed ride")
    if Referral.objects.filter(referred=user).exists():
        raise Conflict("A referral code was already applied to this account")

    try:
        with transaction.atomic():
            referral = Referral.objects.create(
                referrer=referrer,
                referred=user,
                code=code,
                bonus_amount=referral_bonus_amount(),
            )
    except IntegrityError:
        raise Conflict("A referral code was already applied to this account")

    User.objects.filter(pk=user.pk).update(referred_by=referrer)
    user.referred_by = referrer
    logger.info("User %s referred by %s", user.pk, referrer.pk)
    return referral


def complete_referral_for(user, context=None) -> Optional[Referral]:
    """
    Pay out the referral bonus on the referred user's first completed ride.

    Both users are credited `bonus_amount`. Does nothing when the user has
    no pending referral.
    """
    from services.context import ServiceContext

    ctx = context or ServiceContext.default()

    with transaction.atomic():
        referral = (
            Referral.objects.select_for_update()
            .filter(referred=user, is_completed=False)
            .first()
        )
        if referral is None:
            return None

        referral.is_completed = True
        referral.completed_at = ctx.now()
        referral.save(update_fields=['is_completed', 'completed_at'])

        description = "Referral bonus"
        ctx.ledger.append(referral.referrer_id, referral.bonus_amount, 'referral', description, 'referral', referral.id)
        ctx.ledger.append(referral.referred_id, referral.bonus_amount, 'referral', description, 'referral', referral.id)

    logger.info("Referral %s completed; %s credited to users %s and %s",
                referral.id, referral.bonus_amount, referral.referrer_id, referral.referred_id)
    return referral


def referral_summary(user) -> Dict[str, Any]:
    referrals = Referral.objects.filter(referrer=user).select_related('referred')
    completed = [r for r in referrals if r.is_completed]
    return {
        "referral_code": user.referral_code,
        "referrals": list(referrals),
        "total_referrals": len(referrals),
        "referral_credits": sum((r.bonus_amount for r in completed), Decimal("0.00")),
    }


# ---------------------- Leaderboard ----------------------

def get_leaderboard(category: str = 'total_rides', limit: int = LEADERBOARD_MAX_LIMIT) -> List[Dict[str, Any]]:
    """
    Users ranked by `category`:
        total_rides - completed rides
        rating      - average rating (users with at least one rating)
        referrals   - completed referrals
    """
    if category not in LEADERBOARD_CATEGORIES:
        raise ValidationError(f"Invalid category '{category}'")
    limit = max(1, min(int(limit), LEADERBOARD_MAX_LIMIT))

    qs = User.objects.filter(is_active=True)
    if category == 'total_rides':
        qs = qs.filter(completed_rides__gt=0).order_by('-completed_rides', 'id')
        score_of = lambda u: u.completed_rides  # noqa: E731
    elif category == 'rating':
        qs = qs.filter(total_rides__gt=0).order_by('-rating', '-total_rides', 'id')
        score_of = lambda u: float(u.rating)  # noqa: E731
    else:
        qs = (
            qs.annotate(referral_count=Count('referrals_made', filter=Q(referrals_made__is_completed=True)))
            .filter(referral_count__gt=0)
            .order_by('-referral_count', 'id')
        )
        score_of = lambda u: u.referral_count  # noqa: E731

    return [
        {
            "rank": position,
            "id": user.pk,
            "username": user.username,
            "role": user.role,
            "score": score_of(user),
            "completed_rides": user.completed_rides,
            "rating": float(user.rating),
        }
        for position, user in enumerate(qs[:limit], start=1)
    ]


# ---------------------- Achievements ----------------------

def _earned_achievements(user) -> List[str]:
    earned = []
    if user.completed_rides >= 1:
        earned.append('first_ride')
    if user.completed_rides >= 10:
        earned.append('ten_rides')
    if user.completed_rides >= 50:
        earned.append('fifty_rides')
    if user.total_rides >= TOP_RATED_MIN_RATINGS and user.rating >= TOP_RATED_MIN_RATING:
        earned.append('top_rated')
    if Referral.objects.filter(referrer=user, is_completed=True).exists():
        earned.append('first_referral')
    return earned


def check_and_grant_achievements(user) -> List[UserAchievement]:
    """Grant every catalog achievement the user now qualifies for; returns the new ones."""
    user = User.objects.get(pk=user.pk)
    owned = set(UserAchievement.objects.filter(user=user).values_list('code', flat=True))

    granted = []
    for code in _earned_achievements(user):
        if code in owned:
            continue
        achievement, created = UserAchievement.objects.get_or_create(user=user, code=code)
        if created:
            granted.append(achievement)

    if granted:
        logger.info("User %s unlocked %s", user.pk, [a.code for a in granted])
    return granted


# ---------------------- Coupons ----------------------

def available_coupons(now=None):
    """Active coupons that have not expired, newest first."""
    return Coupon.objects.filter(is_active=True, valid_until__gte=now or timezone.now()).order_by('-created_at', '-id')


@transaction.atomic
def claim_coupon(user, code: str, now=None) -> UserCoupon:
    """
    Add a coupon to the user's wallet of coupons.

    Raises:
        ValidationError: empty code
        NotFound: unknown, inactive or expired coupon
        Conflict: user already holds the coupon
        InvalidState: coupon reached `max_uses`
    """
    code = (code or "").strip().upper()
    if not code:
        raise ValidationError("Coupon code required")

    coupon = available_coupons(now).select_for_update().filter(code=code).first()
    if coupon is None:
        raise NotFound("Invalid or expired coupon")
    if UserCoupon.objects.filter(user=user, coupon=coupon).exists():
        raise Conflict("You already have this coupon")
    if coupon.max_uses is not None and coupon.current_uses >= coupon.max_uses:
        raise InvalidState("This coupon has run out")

    try:
        with transaction.atomic():
            claim = UserCoupon.objects.create(user=user, coupon=coupon)
    except IntegrityError:
        raise Conflict("You already have this coupon")

    Coupon.objects.filter(pk=coupon.pk).update(current_uses=F('current_uses') + 1)
    logger.info("User %s claimed coupon %s", user.pk, coupon.code)
    return claim
