from django.db import transaction
from django.utils import timezone

from .models import Chat, ChatMessage


def start_chat(user, other_user):
    """Return ``(chat, created)`` for the two users' single shared chat."""
    key = Chat.key_for(user.pk, other_user.pk)
    with transaction.atomic():
        chat, created = Chat.objects.get_or_create(
            key=key,
            defaults={
                "last_message": f"Chat started with {other_user.username}",
                "last_timestamp": timezone.now(),
                "last_sender": user,
            },
        )
        if created:
            chat.participants.add(user, other_user)
    return chat, created


def post_message(chat, sender, message, message_type=ChatMessage.TYPE_TEXT, file_url="", file_name=""):
    receiver = chat.other_participant(sender)
    with transaction.atomic():
        msg = ChatMessage.objects.create(
            chat=chat,
            sender=sender,
            receiver=receiver,
            message=message,
            message_type=message_type,
            file_url=file_url,
            file_name=file_name,
        )
        chat.last_message = message
        chat.last_timestamp = msg.timestamp
        chat.last_sender = sender
        chat.read = False
        chat.save(update_fields=["last_message", "last_timestamp", "last_sender", "read"])
    return msg


def mark_chat_read(chat, user):
    """Mark the chat read when its latest message came from the other participant."""
    if chat.last_sender_id and chat.last_sender_id != user.pk and not chat.read:
        chat.read = True
        chat.save(update_fields=["read"])
        return True
    return False


def message_payload(msg):
    return {
        "id": msg.id,
        "message": msg.message,
        "message_type": msg.message_type,
        "file_url": msg.file_url,
        "file_name": msg.file_name,
        "sender_id": msg.sender_id,
        "receiver_id": msg.receiver_id,
        "sender": msg.sender.username,
        "timestamp": msg.timestamp.isoformat(),
    }
