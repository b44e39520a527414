from django.contrib import admin

from social.models import PostComment, PostLike, SocialPost


@admin.register(SocialPost)
class SocialPostAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'type', 'title', 'visibility', 'likes_count', 'comments_count', 'created_at']
    list_filter = ['type', 'visibility']
    search_fields = ['title', 'user__username']


@admin.register(PostComment)
class PostCommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'post', 'user', 'content', 'created_at']
    search_fields = ['content', 'user__username']


admin.site.register(PostLike)
