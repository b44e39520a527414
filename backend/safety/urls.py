from django.urls import path

from safety import views

urlpatterns = [
    path('', views.EmergencyAlertView.as_view(), name='emergency-alerts'),
    path('contacts/', views.EmergencyContactsView.as_view(), name='emergency-contacts'),
]
