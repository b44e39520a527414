from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient

from common.exceptions import Conflict, Forbidden, NotFound, ValidationError
from common.testing import RecordingNotifier, make_passenger
from notifications.models import Notification
from services.context import ServiceContext

from social import services
from social.models import PostComment, PostLike, SocialPost


class FeedTests(TestCase):
    def setUp(self):
        self.ana = make_passenger('ana')
        self.bia = make_passenger('bia')
        self.public = services.create_post(self.bia, 'ride', 'Saved 30% today')
        self.hidden = services.create_post(self.bia, 'general', 'Just for me', visibility='private')
        self.mine = services.create_post(self.ana, 'achievement', 'Ten rides!', visibility='private')

    def test_public_posts_and_own_private_posts_newest_first(self):
        feed = services.get_social_feed(self.ana)
        self.assertEqual([p.id for p in feed], [self.mine.id, self.public.id])

    def test_liked_by_me_flag(self):
        services.like_post(self.ana, self.public.id)

        feed = {p.id: p for p in services.get_social_feed(self.ana)}
        self.assertTrue(feed[self.public.id].liked_by_me)
        self.assertFalse(feed[self.mine.id].liked_by_me)
        self.assertFalse(services.get_social_feed(self.bia)[1].liked_by_me)

    def test_pagination(self):
        self.assertEqual([p.id for p in services.get_social_feed(self.ana, limit=1, offset=1)], [self.public.id])

    def test_blank_title_rejected(self):
        with self.assertRaises(ValidationError):
            services.create_post(self.ana, 'general', '   ')


class LikeTests(TestCase):
    def setUp(self):
        self.author = make_passenger('author')
        self.fan = make_passenger('fan')
        self.post = services.create_post(self.author, 'ride', 'Great trip')

    def test_second_like_conflicts_and_counts_once(self):
        services.like_post(self.fan, self.post.id)
        with self.assertRaises(Conflict):
            services.like_post(self.fan, self.post.id)

        self.post.refresh_from_db()
        self.assertEqual(self.post.likes_count, 1)
        self.assertEqual(PostLike.objects.count(), 1)

    def test_unlike(self):
        services.like_post(self.fan, self.post.id)

        self.assertTrue(services.unlike_post(self.fan, self.post.id))
        self.assertFalse(services.unlike_post(self.fan, self.post.id))
        self.post.refresh_from_db()
        self.assertEqual(self.post.likes_count, 0)

    def test_private_post_of_someone_else_is_not_found(self):
        private = services.create_post(self.author, 'general', 'Diary', visibility='private')
        with self.assertRaises(NotFound):
            services.like_post(self.fan, private.id)


class CommentTests(TestCase):
    def setUp(self):
        self.author = make_passenger('author')
        self.friend = make_passenger('friend')
        self.post = services.create_post(self.author, 'ride', 'Great trip')
        self.notifier = RecordingNotifier()
        self.ctx = ServiceContext(notifier=self.notifier)

    def test_comment_counts_and_notifies_author(self):
        comment = services.add_comment(self.friend, self.post.id, '  Nice!  ', context=self.ctx)

        self.post.refresh_from_db()
        self.assertEqual(comment.content, 'Nice!')
        self.assertEqual(self.post.comments_count, 1)
        self.assertEqual(self.notifier.recipients(), [self.author.pk])
        self.assertEqual(self.notifier.sent[0]["type"], 'social')

    def test_own_comment_does_not_notify(self):
        services.add_comment(self.author, self.post.id, 'Thanks all', context=self.ctx)
        self.assertEqual(self.notifier.sent, [])

    def test_content_validation(self):
        with self.assertRaises(ValidationError):
            services.add_comment(self.friend, self.post.id, '   ', context=self.ctx)
        with self.assertRaises(ValidationError):
            services.add_comment(self.friend, self.post.id, 'x' * 501, context=self.ctx)
        with self.assertRaises(NotFound):
            services.add_comment(self.friend, 999, 'hello', context=self.ctx)

    def test_only_author_deletes(self):
        comment = services.add_comment(self.friend, self.post.id, 'Nice!', context=self.ctx)

        with self.assertRaises(Forbidden):
            services.delete_comment(self.author, self.post.id, comment.id)
        services.delete_comment(self.friend, self.post.id, comment.id)

        self.post.refresh_from_db()
        self.assertEqual(self.post.comments_count, 0)
        with self.assertRaises(NotFound):
            services.delete_comment(self.friend, self.post.id, comment.id)


class SocialAPITests(TestCase):
    def setUp(self):
        cache.clear()
        self.user = make_passenger('ana')
        self.other = make_passenger('bia')
        self.client = APIClient()
        self.client.force_authenticate(self.user)

    def test_create_post_and_read_feed(self):
        response = self.client.post('/api/social/posts/', {
            "type": "savings", "title": "Saved 12.00", "metadata": {"amount": "12.00"},
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["post"]["author"]["username"], 'ana')

        feed = self.client.get('/api/social/posts/')
        self.assertEqual(feed.status_code, 200)
        self.assertEqual(len(feed.data["posts"]), 1)
        self.assertFalse(feed.data["posts"][0]["liked_by_me"])

    def test_missing_title_is_400(self):
        response = self.client.post('/api/social/posts/', {"type": "general"}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_second_like_is_409(self):
        post = SocialPost.objects.create(user=self.other, type='ride', title='Trip')

        first = self.client.post(f'/api/social/posts/{post.id}/like/')
        second = self.client.post(f'/api/social/posts/{post.id}/like/')

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.data["error"], 'Already liked')
        self.assertEqual(self.client.delete(f'/api/social/posts/{post.id}/like/').status_code, 200)

    def test_comment_flow(self):
        post = SocialPost.objects.create(user=self.other, type='ride', title='Trip')

        created = self.client.post(f'/api/social/posts/{post.id}/comments/', {"content": "Top!"}, format='json')
        self.assertEqual(created.status_code, 201)
        self.assertTrue(Notification.objects.filter(user=self.other, type='social').exists())

        listed = self.client.get(f'/api/social/posts/{post.id}/comments/')
        self.assertEqual(listed.data["total"], 1)
        self.assertEqual(listed.data["comments"][0]["content"], 'Top!')

        comment_id = created.data["comment"]["id"]
        deleted = self.client.delete(f'/api/social/posts/{post.id}/comments/?comment_id={comment_id}')
        self.assertEqual(deleted.data["deleted_id"], comment_id)
        self.assertFalse(PostComment.objects.exists())

    def test_comment_on_missing_post_is_404(self):
        response = self.client.post('/api/social/posts/4242/comments/', {"content": "hi"}, format='json')
        self.assertEqual(response.status_code, 404)
