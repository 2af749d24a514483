from typing import List

import bleach
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from rest_framework.exceptions import ValidationError

from core.models import Transfer, TransferMessage
from core.services.access import ensure_transfer_visible
from core.services.actors import Actor
from core.services.audit import try_log_action


def group_name(transfer_id: int) -> str:
    return f"transfer.{transfer_id}"


def clean_text(text) -> str:
    if not isinstance(text, str):
        raise ValidationError({'message': 'Message must be text'})
    text = bleach.clean(text, tags=[], strip=True).strip()
    if not text:
        raise ValidationError({'message': 'Message cannot be empty'})
    limit = getattr(settings, 'MESSAGE_MAX_LENGTH', 2000)
    if len(text) > limit:
        raise ValidationError({'message': f'Message cannot exceed {limit} characters'})
    return text


def message_to_dict(m: TransferMessage) -> dict:
    return {
        "id": m.id,
        "transferId": m.transfer_id,
        "senderId": m.sender_id,
        "senderName": m.sender.display_name() if m.sender_id else None,
        "senderRole": getattr(m.sender, 'role', None),
        "message": m.message,
        "createdAt": m.created_at.isoformat(),
    }


def post_message(actor: Actor, transfer: Transfer, text) -> TransferMessage:
    ensure_transfer_visible(actor, transfer)
    text = clean_text(text)

    msg = TransferMessage.objects.create(transfer=transfer, sender_id=actor.id, message=text)
    msg = TransferMessage.objects.select_related('sender').get(id=msg.id)
    try_log_action(user_id=actor.id, action='transfer_message', object_type='transfer',
                   object_id=transfer.id, detail={'msgId': msg.id})

    channel_layer = get_channel_layer()
    if channel_layer is not None:
        async_to_sync(channel_layer.group_send)(
            group_name(transfer.id),
            {"type": "transfer.message", "payload": message_to_dict(msg)},
        )
    return msg


def list_messages(actor: Actor, transfer: Transfer) -> List[TransferMessage]:
    ensure_transfer_visible(actor, transfer)
    return list(
        TransferMessage.objects.filter(transfer=transfer).select_related('sender').order_by('created_at', 'id')
    )
