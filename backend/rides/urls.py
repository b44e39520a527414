from django.urls import path
from . import views

urlpatterns = [
    path('', views.RideListCreateView.as_view(), name='ride-list-create'),
    path('estimate/', views.estimate_trip_view, name='ride-estimate'),
    path('current/', views.current_ride, name='current-ride'),
    path('<int:ride_id>/', views.ride_detail, name='ride-detail'),
    path('<int:ride_id>/offers/', views.RideOffersView.as_view(), name='ride-offers'),
    path('<int:ride_id>/status/', views.update_ride_status, name='ride-status'),
    path('<int:ride_id>/cancel/', views.cancel_ride_view, name='cancel-ride'),
    path('<int:ride_id>/settle-cancellation-fee/', views.settle_cancellation_fee_view, name='settle-cancellation-fee'),
]

# Mounted at api/offers/
offer_urlpatterns = [
    path('<int:offer_id>/accept/', views.accept_offer_view, name='accept-offer'),
]

# Mounted at api/group-rides/
group_ride_urlpatterns = [
    path('', views.GroupRideView.as_view(), name='group-rides'),
    path('join/', views.join_group_ride_view, name='join-group-ride'),
]

# Mounted at api/messages/
message_urlpatterns = [
    path('', views.RideMessagesView.as_view(), name='ride-messages'),
]
