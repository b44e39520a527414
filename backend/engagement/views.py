from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.ratelimit import CouponClaimRateThrottle, LeaderboardRateThrottle, ReadRateThrottle, WriteRateThrottle
from engagement import services
from engagement.models import UserAchievement, UserCoupon
from engagement.serializers import (
    ApplyReferralSerializer,
    ClaimCouponSerializer,
    CouponSerializer,
    LeaderboardQuerySerializer,
    RatingCreateSerializer,
    RatingListQuerySerializer,
    RatingSerializer,
    ReferralSerializer,
    UserAchievementSerializer,
    UserCouponSerializer,
)


class RatingView(APIView):
    """
    GET  ?user_id=  ratings a user received
    POST            rate the other participant of a completed ride
    """
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'POST':
            return [WriteRateThrottle()]
        return [ReadRateThrottle()]

    def get(self, request):
        query = RatingListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        ratings = services.ratings_received(query.validated_data['user_id'])
        return Response({"ratings": RatingSerializer(ratings, many=True).data})

    def post(self, request):
        serializer = RatingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        rating = services.rate_ride(
            request.user,
            data['ride_id'],
            data['reviewed_id'],
            data['score'],
            comment=data['comment'],
            tags=data['tags'],
        )
        return Response({"rating": RatingSerializer(rating).data}, status=status.HTTP_200_OK)


class ReferralView(APIView):
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'POST':
            return [WriteRateThrottle()]
        return [ReadRateThrottle()]

    def get(self, request):
        summary = services.referral_summary(request.user)
        return Response({
            "referral_code": summary["referral_code"],
            "referrals": ReferralSerializer(summary["referrals"], many=True).data,
            "total_referrals": summary["total_referrals"],
            "referral_credits": summary["referral_credits"],
        })

    def post(self, request):
        serializer = ApplyReferralSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        referral = services.apply_referral_code(request.user, serializer.validated_data['referral_code'])
        return Response({
            "success": True,
            "referral": ReferralSerializer(referral).data,
            "message": f"Referral code applied! You will earn {referral.bonus_amount} on your first ride.",
        })


class LeaderboardView(APIView):
    """GET ?category=total_rides|rating|referrals&limit= : ranking plus the caller's own entry."""
    permission_classes = [IsAuthenticated]
    throttle_classes = [LeaderboardRateThrottle]

    def get(self, request):
        query = LeaderboardQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        category = query.validated_data['category']

        leaderboard = services.get_leaderboard(category, query.validated_data['limit'])
        user_rank = next((entry for entry in leaderboard if entry["id"] == request.user.pk), None)

        return Response({
            "leaderboard": leaderboard,
            "user_rank": user_rank,
            "category": category,
        })


class AchievementView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ReadRateThrottle]

    def get(self, request):
        new_achievements = services.check_and_grant_achievements(request.user)
        achievements = UserAchievement.objects.filter(user=request.user).order_by('-unlocked_at')
        return Response({
            "achievements": UserAchievementSerializer(achievements, many=True).data,
            "new_achievements": UserAchievementSerializer(new_achievements, many=True).data,
        })

    def post(self, request):
        new_achievements = services.check_and_grant_achievements(request.user)
        return Response({
            "new_achievements": UserAchievementSerializer(new_achievements, many=True).data,
            "count": len(new_achievements),
        })


class CouponView(APIView):
    """
    GET   active coupons plus the ones the caller already holds
    POST  {"code"} claim a coupon
    """
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'POST':
            return [CouponClaimRateThrottle()]
        return [ReadRateThrottle()]

    def get(self, request):
        claimed = UserCoupon.objects.filter(user=request.user).select_related('coupon')
        return Response({
            "coupons": CouponSerializer(services.available_coupons(), many=True).data,
            "my_coupons": UserCouponSerializer(claimed, many=True).data,
        })

    def post(self, request):
        serializer = ClaimCouponSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        claim = services.claim_coupon(request.user, serializer.validated_data['code'])
        return Response({"coupon": UserCouponSerializer(claim).data}, status=status.HTTP_201_CREATED)
