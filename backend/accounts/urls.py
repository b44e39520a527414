from django.urls import path

from .views import FavoritesView, RegisterView, LoginView, RefreshTokenView, MeView

app_name = 'accounts'

urlpatterns = [
    path('register/', RegisterView.as_view(), name='register'),
    path('login/', LoginView.as_view(), name='login'),
    path('refresh/', RefreshTokenView.as_view(), name='refresh'),
    path('me/', MeView.as_view(), name='me'),
]

# Mounted at api/favorites/
favorite_urlpatterns = [
    path('', FavoritesView.as_view(), name='favorites'),
]
