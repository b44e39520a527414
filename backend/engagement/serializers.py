from rest_framework import serializers

from accounts.serializers import UserBasicSerializer
from engagement.models import Coupon, Rating, Referral, UserAchievement, UserCoupon


class RatingSerializer(serializers.ModelSerializer):
    reviewer = UserBasicSerializer(read_only=True)

    class Meta:
        model = Rating
        fields = ['id', 'ride', 'reviewer', 'reviewed', 'score', 'comment', 'tags', 'created_at']
        read_only_fields = fields


class RatingCreateSerializer(serializers.Serializer):
    ride_id = serializers.IntegerField()
    reviewed_id = serializers.IntegerField()
    # `rating` is the field name older clients send
    score = serializers.IntegerField(min_value=1, max_value=5, required=False)
    rating = serializers.IntegerField(min_value=1, max_value=5, required=False)
    comment = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    tags = serializers.ListField(
        child=serializers.CharField(max_length=30), required=False, default=list, max_length=10
    )

    def validate(self, data):
        score = data.pop('score', None) or data.pop('rating', None)
        data.pop('rating', None)
        if score is None:
            raise serializers.ValidationError({'score': 'This field is required.'})
        data['score'] = score
        return data


class RatingListQuerySerializer(serializers.Serializer):
    user_id = serializers.IntegerField()


class ReferralSerializer(serializers.ModelSerializer):
    referred = UserBasicSerializer(read_only=True)

    class Meta:
        model = Referral
        fields = ['id', 'referred', 'code', 'bonus_amount', 'is_completed', 'completed_at', 'created_at']
        read_only_fields = fields


class ApplyReferralSerializer(serializers.Serializer):
    referral_code = serializers.CharField(max_length=12)


class LeaderboardQuerySerializer(serializers.Serializer):
    category = serializers.ChoiceField(choices=['total_rides', 'rating', 'referrals'], default='total_rides')
    limit = serializers.IntegerField(min_value=1, max_value=100, default=100)


class UserAchievementSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='get_code_display', read_only=True)

    class Meta:
        model = UserAchievement
        fields = ['id', 'code', 'name', 'unlocked_at']
        read_only_fields = fields


class CouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = Coupon
        fields = ['id', 'code', 'description', 'discount_type', 'discount_value', 'min_ride_value',
                  'valid_until', 'max_uses', 'current_uses']
        read_only_fields = fields


class UserCouponSerializer(serializers.ModelSerializer):
    coupon = CouponSerializer(read_only=True)

    class Meta:
        model = UserCoupon
        fields = ['id', 'coupon', 'is_used', 'used_at', 'claimed_at']
        read_only_fields = fields


class ClaimCouponSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=30)
