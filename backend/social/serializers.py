from rest_framework import serializers

from accounts.serializers import UserBasicSerializer
from social.models import PostComment, SocialPost


class SocialPostSerializer(serializers.ModelSerializer):
    author = UserBasicSerializer(source='user', read_only=True)
    liked_by_me = serializers.SerializerMethodField()

    class Meta:
        model = SocialPost
        fields = ['id', 'author', 'type', 'title', 'description', 'metadata', 'visibility',
                  'likes_count', 'comments_count', 'liked_by_me', 'created_at']
        read_only_fields = fields

    def get_liked_by_me(self, obj):
        return bool(getattr(obj, 'liked_by_me', False))


class SocialPostCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=SocialPost.TYPE_CHOICES)
    title = serializers.CharField(max_length=120)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    metadata = serializers.DictField(required=False, default=dict)
    visibility = serializers.ChoiceField(choices=SocialPost.VISIBILITY_CHOICES, default='public')


class FeedQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=50, default=20)
    offset = serializers.IntegerField(min_value=0, default=0)


class PostCommentSerializer(serializers.ModelSerializer):
    author = UserBasicSerializer(source='user', read_only=True)

    class Meta:
        model = PostComment
        fields = ['id', 'post', 'author', 'content', 'created_at']
        read_only_fields = fields


class PostCommentCreateSerializer(serializers.Serializer):
    # Length is checked by the service after trimming
    content = serializers.CharField(trim_whitespace=False)


class CommentListQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=100, default=50)
    offset = serializers.IntegerField(min_value=0, default=0)


class CommentDeleteQuerySerializer(serializers.Serializer):
    comment_id = serializers.IntegerField()
