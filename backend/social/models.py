from django.conf import settings
from django.db import models


class SocialPost(models.Model):
    """A user's share in the community feed, e.g. a finished trip or an unlocked achievement"""
    TYPE_CHOICES = [
        ('ride', 'Ride'),
        ('achievement', 'Achievement'),
        ('savings', 'Savings'),
        ('general', 'General'),
    ]
    VISIBILITY_CHOICES = [
        ('public', 'Public'),
        ('private', 'Private'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='social_posts'
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='general')
    title = models.CharField(max_length=120)
    description = models.TextField(blank=True, default='')
    metadata = models.JSONField(default=dict, blank=True)
    visibility = models.CharField(max_length=10, choices=VISIBILITY_CHOICES, default='public')

    # Denormalised counters kept in step by the social services
    likes_count = models.PositiveIntegerField(default=0)
    comments_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'social_posts'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['visibility', '-created_at']),
        ]

    def __str__(self):
        return f"{self.user}: {self.title}"


class PostLike(models.Model):
    post = models.ForeignKey(SocialPost, on_delete=models.CASCADE, related_name='likes')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='post_likes'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'social_post_likes'
        constraints = [
            models.UniqueConstraint(fields=['post', 'user'], name='one_like_per_post_user'),
        ]

    def __str__(self):
        return f"{self.user} likes {self.post_id}"


class PostComment(models.Model):
    post = models.ForeignKey(SocialPost, on_delete=models.CASCADE, related_name='comments')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='post_comments'
    )
    content = models.CharField(max_length=500)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'post_comments'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.user} on {self.post_id}: {self.content[:30]}"
