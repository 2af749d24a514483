import json
from channels.generic.websocket import AsyncWebsocketConsumer
from asgiref.sync import sync_to_async
from rest_framework.exceptions import APIException, NotAuthenticated, PermissionDenied, ValidationError

from core.models import Transfer
from core.services.access import can_view_transfer
from core.services.actors import resolve_actor
from core.services.messages import group_name, post_message


async def _ws_error(ws, code: int, message: str, *, close: bool = False):
    """
    Uniform error frame.
    App codes: 4xxx client errors, 5xxx server errors.
    """
    payload = {"type": "error", "code": code, "message": message}
    try:
        await ws.send(json.dumps(payload))
    finally:
        if close:
            await ws.close(code=code)


def _load_transfer(transfer_id: int):
    return Transfer.objects.select_related("patient").filter(id=transfer_id).first()


def _visible(user, transfer) -> bool:
    try:
        return can_view_transfer(resolve_actor(user), transfer)
    except (NotAuthenticated, PermissionDenied):
        return False


class TransferChatConsumer(AsyncWebsocketConsumer):
    """Coordination channel for one transfer, shared by everyone who can view it."""

    async def connect(self):
        try:
            self.transfer_id = int(self.scope["url_route"]["kwargs"].get("transfer_id"))
        except (TypeError, ValueError):
            await self.close(code=4001)
            return

        user = self.scope.get("user")
        transfer = await sync_to_async(_load_transfer)(self.transfer_id)
        if transfer is None:
            await self.close(code=4004)
            return

        allowed = await sync_to_async(_visible)(user, transfer)
        if not allowed:
            await self.close(code=4003)
            return

        self.group_name = group_name(self.transfer_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return

        try:
            data = json.loads(text_data)
        except ValueError:
            await _ws_error(self, 4000, "invalid_json")
            return

        if not isinstance(data, dict):
            await _ws_error(self, 4001, "invalid_payload")
            return

        if data.get("type") != "send":
            await _ws_error(self, 4002, "unsupported_type")
            return

        user = self.scope.get("user")
        try:
            transfer = await sync_to_async(_load_transfer)(self.transfer_id)
            if transfer is None:
                await _ws_error(self, 4004, "transfer_not_found", close=True)
                return
            actor = await sync_to_async(resolve_actor)(user)
            # The service re-checks visibility and broadcasts to the group
            await sync_to_async(post_message)(actor, transfer, data.get("message", ""))
            await self.send(json.dumps({"type": "ack", "ok": True}))
        except ValidationError as e:
            await _ws_error(self, 4005, _first_message(e.detail))
        except (NotAuthenticated, PermissionDenied):
            await _ws_error(self, 4003, "forbidden", close=True)
        except APIException:
            await _ws_error(self, 5000, "server_error")

    async def transfer_message(self, event):
        """
        Relay a group_send event to the client.
            {"type": "transfer.message", "payload": {...}}
        """
        payload = event.get("payload", {})
        await self.send(json.dumps({"type": "message", **payload}))


def _first_message(detail) -> str:
    if isinstance(detail, dict):
        detail = next(iter(detail.values()), "invalid_message")
    if isinstance(detail, list):
        detail = detail[0] if detail else "invalid_message"
    return str(detail)
