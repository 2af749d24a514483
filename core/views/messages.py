from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.serializers.messages import MessageCreateSerializer
from core.services.actors import actor_for_request
from core.services.messages import list_messages, message_to_dict, post_message
from core.services.transfers import get_transfer


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def transfer_messages(request, pk: int):
    actor = actor_for_request(request)
    transfer = get_transfer(actor, pk)
    if request.method == 'GET':
        items = list_messages(actor, transfer)
        return Response({'ok': True, 'data': [message_to_dict(m) for m in items]})

    s = MessageCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    msg = post_message(actor, transfer, s.validated_data['message'])
    return Response({'ok': True, 'data': message_to_dict(msg)}, status=status.HTTP_201_CREATED)
