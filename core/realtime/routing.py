from django.urls import path

from core.realtime.chat_consumers import TransferChatConsumer

websocket_urlpatterns = [
    path("ws/transfers/<int:transfer_id>/", TransferChatConsumer.as_asgi()),
]
