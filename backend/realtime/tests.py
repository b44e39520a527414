from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.test import TestCase
from rest_framework_simplejwt.tokens import AccessToken

from common.testing import make_passenger
from realtime.middleware import JWTAuthMiddleware
from realtime.notifications import user_group_name
from realtime.routing import websocket_urlpatterns


def build_application():
    return JWTAuthMiddleware(URLRouter(websocket_urlpatterns))


class NotificationConsumerTests(TestCase):
    def setUp(self):
        self.user = make_passenger()
        self.token = str(AccessToken.for_user(self.user))

    async def connect(self, query=""):
        communicator = WebsocketCommunicator(build_application(), f"/ws/notifications/{query}")
        connected, _ = await communicator.connect()
        return communicator, connected

    async def test_anonymous_connection_is_rejected(self):
        communicator, connected = await self.connect()
        self.assertFalse(connected)

    async def test_bad_token_is_rejected(self):
        communicator, connected = await self.connect("?token=not-a-jwt")
        self.assertFalse(connected)

    async def test_authenticated_user_gets_greeting_and_pong(self):
        communicator, connected = await self.connect(f"?token={self.token}")
        self.assertTrue(connected)

        greeting = await communicator.receive_json_from()
        self.assertEqual(greeting["type"], "connection_established")
        self.assertEqual(greeting["user_id"], self.user.id)

        await communicator.send_json_to({"type": "ping"})
        self.assertEqual(await communicator.receive_json_from(), {"type": "pong"})

        await communicator.send_json_to({"type": "dance"})
        error = await communicator.receive_json_from()
        self.assertEqual(error["type"], "error")

        await communicator.disconnect()

    async def test_group_events_are_forwarded(self):
        communicator, connected = await self.connect(f"?token={self.token}")
        self.assertTrue(connected)
        await communicator.receive_json_from()

        await get_channel_layer().group_send(user_group_name(self.user.id), {
            "type": "notification_event",
            "notification": {"id": 7, "title": "Ride accepted"},
        })

        message = await communicator.receive_json_from()
        self.assertEqual(message, {"type": "notification", "notification": {"id": 7, "title": "Ride accepted"}})

        await communicator.disconnect()
