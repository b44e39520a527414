from django.contrib import admin
from django.urls import path, include

from accounts.urls import favorite_urlpatterns
from rides.urls import group_ride_urlpatterns, message_urlpatterns, offer_urlpatterns
from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (register, login, refresh, me)
    path('api/auth/', include('accounts.urls')),
    path('api/favorites/', include(favorite_urlpatterns)),

    # Driver APIs (profile, status, location, nearby search, hot zones, history)
    path('api/drivers/', include('drivers.urls')),

    # Rides, offers and their lifecycle
    path('api/rides/', include('rides.urls')),
    path('api/offers/', include(offer_urlpatterns)),
    path('api/group-rides/', include(group_ride_urlpatterns)),
    path('api/messages/', include(message_urlpatterns)),

    path('api/wallet/', include('wallet.urls')),
    path('api/notifications/', include('notifications.urls')),

    path('api/social/', include('social.urls')),
    path('api/emergency/', include('safety.urls')),

    # Ratings, referrals, leaderboard, achievements, coupons
    path('api/', include('engagement.urls')),
]
