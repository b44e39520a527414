from django.contrib import admin

from engagement.models import Coupon, Rating, Referral, UserAchievement, UserCoupon


@admin.register(Rating)
class RatingAdmin(admin.ModelAdmin):
    list_display = ['id', 'ride', 'reviewer', 'reviewed', 'score', 'created_at']
    list_filter = ['score']
    search_fields = ['reviewer__username', 'reviewed__username']


@admin.register(Referral)
class ReferralAdmin(admin.ModelAdmin):
    list_display = ['id', 'referrer', 'referred', 'code', 'bonus_amount', 'is_completed', 'completed_at']
    list_filter = ['is_completed']
    search_fields = ['code', 'referrer__username', 'referred__username']


@admin.register(UserAchievement)
class UserAchievementAdmin(admin.ModelAdmin):
    list_display = ['user', 'code', 'unlocked_at']
    list_filter = ['code']


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ['code', 'discount_type', 'discount_value', 'valid_until', 'is_active', 'current_uses', 'max_uses']
    list_filter = ['is_active', 'discount_type']
    search_fields = ['code', 'description']


@admin.register(UserCoupon)
class UserCouponAdmin(admin.ModelAdmin):
    list_display = ['user', 'coupon', 'is_used', 'claimed_at']
    list_filter = ['is_used']
