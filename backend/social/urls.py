from django.urls import path

from social import views

urlpatterns = [
    path('posts/', views.PostListCreateView.as_view(), name='social-posts'),
    path('posts/<int:post_id>/like/', views.PostLikeView.as_view(), name='social-post-like'),
    path('posts/<int:post_id>/comments/', views.PostCommentsView.as_view(), name='social-post-comments'),
]
