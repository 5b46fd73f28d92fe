from django.urls import re_path
from . import consumers

websocket_urlpatterns = [
    # Per-chat socket: ws://<host>/ws/chats/<key>/
    re_path(r"^ws/chats/(?P<chat_key>[\w-]+)/$", consumers.ChatConsumer.as_asgi()),
    # Per-user notifications: ws://<host>/ws/notifications/
    re_path(r"^ws/notifications/$", consumers.UserNotificationsConsumer.as_asgi()),
]
