"""
Realtime app: WebSocket delivery of per-user notifications.

Key Components:
    - consumers/: WebSocket consumers (notification stream)
    - middleware.py: JWT query-string authentication for sockets
    - notifications.py: helpers to push events to `user_<id>` groups
"""
