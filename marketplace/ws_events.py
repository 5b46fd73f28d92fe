from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer


def chat_group(chat_key):
    return f"chat_{chat_key}"


def user_group(user_id):
    return f"user_{user_id}"


def broadcast_chat_message(chat_key, message_payload):
    layer = get_channel_layer()
    async_to_sync(layer.group_send)(
        chat_group(chat_key),
        {"type": "chat.message", "message": message_payload},
    )


def broadcast_chat_read(chat_key, user_id):
    layer = get_channel_layer()
    async_to_sync(layer.group_send)(
        chat_group(chat_key),
        {"type": "chat.read", "user_id": user_id},
    )


def notify_user(user_id, data: dict):
    layer = get_channel_layer()
    async_to_sync(layer.group_send)(
        user_group(user_id),
        {"type": "notify", "data": data},
    )
