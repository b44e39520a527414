from django.urls import path

from notifications import views

urlpatterns = [
    path('', views.notification_list, name='notification-list'),
    path('read-all/', views.notification_mark_all_read, name='notification-read-all'),
    path('<int:notification_id>/', views.notification_mark_read, name='notification-read'),
]
