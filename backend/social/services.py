"""
Community feed: posts, likes and comments.

Like and comment counters on a post are denormalised; every write that adds
or removes a like or comment adjusts the counter in the same transaction.
"""

import logging
from typing import Dict, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import Exists, F, OuterRef, Q

from common.exceptions import Conflict, Forbidden, NotFound, ValidationError
from services.context import ServiceContext
from social.models import PostComment, PostLike, SocialPost

logger = logging.getLogger(__name__)

FEED_MAX_LIMIT = 50
COMMENT_MAX_LENGTH = 500


def _visible_posts(user):
    return SocialPost.objects.filter(Q(visibility='public') | Q(user=user))


def _get_visible_post(user, post_id: int, lock: bool = False) -> SocialPost:
    qs = _visible_posts(user)
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=post_id)
    except SocialPost.DoesNotExist:
        raise NotFound("Post not found")


def create_post(user, type: str, title: str, description: str = "",
                metadata: Optional[Dict] = None, visibility: str = 'public') -> SocialPost:
    if not (title or "").strip():
        raise ValidationError("Post title is required")
    post = SocialPost.objects.create(
        user=user,
        type=type,
        title=title.strip(),
        description=description or "",
        metadata=metadata or {},
        visibility=visibility or 'public',
    )
    logger.info("User %s posted %s (%s)", user.pk, post.id, post.type)
    return post


def get_social_feed(user, limit: int = 20, offset: int = 0) -> List[SocialPost]:
    """
    Public posts plus the caller's own private ones, newest first.

    Each post carries `liked_by_me`.
    """
    limit = max(1, min(limit, FEED_MAX_LIMIT))
    offset = max(0, offset)
    qs = (
        _visible_posts(user)
        .select_related('user')
        .annotate(liked_by_me=Exists(PostLike.objects.filter(post=OuterRef('pk'), user=user)))
        .order_by('-created_at', '-id')
    )
    return list(qs[offset:offset + limit])


@transaction.atomic
def like_post(user, post_id: int) -> PostLike:
    """
    Raises:
        NotFound: post does not exist or is someone else's private post
        Conflict: the user already liked the post
    """
    post = _get_visible_post(user, post_id, lock=True)
    try:
        with transaction.atomic():
            like = PostLike.objects.create(post=post, user=user)
    except IntegrityError:
        raise Conflict("Already liked")

    SocialPost.objects.filter(pk=post.pk).update(likes_count=F('likes_count') + 1)
    return like


@transaction.atomic
def unlike_post(user, post_id: int) -> bool:
    """Remove the user's like; False when there was none."""
    post = _get_visible_post(user, post_id, lock=True)
    deleted, _ = PostLike.objects.filter(post=post, user=user).delete()
    if not deleted:
        return False
    SocialPost.objects.filter(pk=post.pk, likes_count__gt=0).update(likes_count=F('likes_count') - 1)
    return True


def list_comments(user, post_id: int, limit: int = 50, offset: int = 0):
    post = _get_visible_post(user, post_id)
    qs = PostComment.objects.filter(post=post).select_related('user').order_by('created_at', 'id')
    return list(qs[offset:offset + limit]), qs.count()


@transaction.atomic
def add_comment(user, post_id: int, content: str, context: Optional[ServiceContext] = None) -> PostComment:
    """Comment on a post; the post's author is notified unless they wrote the comment."""
    ctx = context or ServiceContext.default()

    content = (content or "").strip()
    if not content:
        raise ValidationError("Comment content is required")
    if len(content) > COMMENT_MAX_LENGTH:
        raise ValidationError(f"Comments cannot be longer than {COMMENT_MAX_LENGTH} characters")

    post = _get_visible_post(user, post_id, lock=True)
    comment = PostComment.objects.create(post=post, user=user, content=content)
    SocialPost.objects.filter(pk=post.pk).update(comments_count=F('comments_count') + 1)

    if post.user_id != user.pk:
        ctx.notifier.notify(
            post.user_id,
            'social',
            'New comment',
            f"{user.username} commented on your post",
            data={"post_id": post.id, "comment_id": comment.id, "commenter_id": user.pk},
        )
    return comment


@transaction.atomic
def delete_comment(user, post_id: int, comment_id: int) -> None:
    """
    Raises:
        NotFound: no such comment on the post
        Forbidden: caller is neither the comment's author nor staff
    """
    comment = (
        PostComment.objects.select_for_update()
        .filter(pk=comment_id, post_id=post_id)
        .first()
    )
    if comment is None:
        raise NotFound("Comment not found")
    if comment.user_id != user.pk and not user.is_staff:
        raise Forbidden("Only the author can delete this comment")

    comment.delete()
    SocialPost.objects.filter(pk=post_id, comments_count__gt=0).update(comments_count=F('comments_count') - 1)
