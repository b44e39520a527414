from django.urls import path

from engagement import views

urlpatterns = [
    path('ratings/', views.RatingView.as_view(), name='ratings'),
    path('referrals/', views.ReferralView.as_view(), name='referrals'),
    path('leaderboard/', views.LeaderboardView.as_view(), name='leaderboard'),
    path('achievements/', views.AchievementView.as_view(), name='achievements'),
    path('coupons/', views.CouponView.as_view(), name='coupons'),
]
