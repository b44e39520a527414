from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.ratelimit import ReadRateThrottle, WriteRateThrottle
from social import services
from social.serializers import (
    CommentDeleteQuerySerializer,
    CommentListQuerySerializer,
    FeedQuerySerializer,
    PostCommentCreateSerializer,
    PostCommentSerializer,
    SocialPostCreateSerializer,
    SocialPostSerializer,
)


class PostListCreateView(APIView):
    """
    GET   ?limit=&offset=  the caller's feed
    POST                   share a post
    """
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'POST':
            return [WriteRateThrottle()]
        return [ReadRateThrottle()]

    def get(self, request):
        query = FeedQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        posts = services.get_social_feed(request.user, **query.validated_data)
        return Response({"posts": SocialPostSerializer(posts, many=True).data})

    def post(self, request):
        serializer = SocialPostCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        post = services.create_post(request.user, **serializer.validated_data)
        return Response({"post": SocialPostSerializer(post).data}, status=status.HTTP_201_CREATED)


class PostLikeView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [WriteRateThrottle]

    def post(self, request, post_id):
        like = services.like_post(request.user, post_id)
        return Response({"like": {"id": like.id, "post": like.post_id, "created_at": like.created_at}},
                        status=status.HTTP_201_CREATED)

    def delete(self, request, post_id):
        services.unlike_post(request.user, post_id)
        return Response({"success": True})


class PostCommentsView(APIView):
    """
    GET     ?limit=&offset=  comments, oldest first
    POST                     {"content"}
    DELETE  ?comment_id=     author (or staff) only
    """
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'GET':
            return [ReadRateThrottle()]
        return [WriteRateThrottle()]

    def get(self, request, post_id):
        query = CommentListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        comments, total = services.list_comments(request.user, post_id, **query.validated_data)
        return Response({
            "comments": PostCommentSerializer(comments, many=True).data,
            "total": total,
            **query.validated_data,
        })

    def post(self, request, post_id):
        serializer = PostCommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = services.add_comment(request.user, post_id, serializer.validated_data['content'])
        return Response({"comment": PostCommentSerializer(comment).data}, status=status.HTTP_201_CREATED)

    def delete(self, request, post_id):
        query = CommentDeleteQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        comment_id = query.validated_data['comment_id']
        services.delete_comment(request.user, post_id, comment_id)
        return Response({"success": True, "deleted_id": comment_id})
