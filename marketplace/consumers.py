from channels.generic.websocket import AsyncJsonWebsocketConsumer
from channels.db import database_sync_to_async

from .chat import mark_chat_read, message_payload, post_message
from .models import Chat
from .ws_events import chat_group, user_group


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """Per-chat websocket. Group name: chat_<key>.
    Client sends JSON with an 'action' key: 'typing', 'message' or 'read'.
    """

    async def connect(self):
        self.chat_key = self.scope['url_route']['kwargs']['chat_key']
        self.group_name = chat_group(self.chat_key)
        user = self.scope.get('user')

        # Only authenticated participants can join
        if not await self._user_allowed(user, self.chat_key):
            await self.close(code=4403)
            return

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive_json(self, content, **kwargs):
        action = content.get('action')
        user = self.scope.get('user')
        if action == 'typing':
            await self.channel_layer.group_send(self.group_name, {
                'type': 'chat.typing',
                'user_id': user.id,
                'is_typing': bool(content.get('is_typing', True)),
            })
        elif action == 'message':
            text = (content.get('message') or '').strip()
            if text:
                payload, receiver_id = await self._create_message(user, self.chat_key, text)
                await self.channel_layer.group_send(self.group_name, {
                    'type': 'chat.message',
                    'message': payload,
                })
                await self.channel_layer.group_send(user_group(receiver_id), {
                    'type': 'notify',
                    'data': {'event': 'chat.updated', 'chat_key': self.chat_key},
                })
        elif action == 'read':
            if await self._mark_read(user, self.chat_key):
                await self.channel_layer.group_send(self.group_name, {
                    'type': 'chat.read',
                    'user_id': user.id,
                })

    async def chat_message(self, event):
        await self.send_json({'event': 'message.created', 'message': event['message']})

    async def chat_typing(self, event):
        await self.send_json({'event': 'typing', 'user_id': event.get('user_id'), 'is_typing': event.get('is_typing', True)})

    async def chat_read(self, event):
        await self.send_json({'event': 'read', 'user_id': event.get('user_id')})

    @database_sync_to_async
    def _user_allowed(self, user, chat_key):
        if not user or not user.is_authenticated:
            return False
        return Chat.objects.filter(key=chat_key, participants=user).exists()

    @database_sync_to_async
    def _create_message(self, user, chat_key, text):
        chat = Chat.objects.get(key=chat_key)
        msg = post_message(chat, user, text)
        return message_payload(msg), msg.receiver_id

    @database_sync_to_async
    def _mark_read(self, user, chat_key):
        return mark_chat_read(Chat.objects.get(key=chat_key), user)


class UserNotificationsConsumer(AsyncJsonWebsocketConsumer):
    """Per-user notifications channel. Group name: user_<id>. Pushes chat list updates."""

    async def connect(self):
        user = self.scope.get('user')
        if not user or not user.is_authenticated:
            await self.close(code=4403)
            return
        self.group_name = user_group(user.id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def notify(self, event):
        await self.send_json(event.get('data', {}))
