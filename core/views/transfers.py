from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.serializers.transfers import TransferCreateSerializer, TransferListQuerySerializer
from core.services.actors import actor_for_request
from core.services.transfers import (
    accept_transfer,
    cancel_transfer,
    complete_transfer,
    get_transfer,
    list_transfers,
    request_transfer,
    transfer_history,
    transfer_to_dict,
)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def transfers(request):
    actor = actor_for_request(request)
    if request.method == 'GET':
        q = TransferListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        items = list_transfers(actor, status=q.validated_data.get('status'))
        return Response({'ok': True, 'data': [transfer_to_dict(t) for t in items]})

    s = TransferCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    t = request_transfer(
        actor,
        patient_id=vd['patientId'],
        to_hospital_id=vd['toHospitalId'],
        transfer_type=vd['transferType'],
        reason=vd.get('reason'),
    )
    return Response({'ok': True, 'data': transfer_to_dict(t)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def transfer_detail(request, pk: int):
    t = get_transfer(actor_for_request(request), pk)
    return Response({'ok': True, 'data': transfer_to_dict(t)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def transfer_accept(request, pk: int):
    outcome = accept_transfer(actor_for_request(request), pk)
    payload = {
        'ok': True,
        'data': transfer_to_dict(outcome.transfer),
        'admission': {'ok': outcome.admission.ok, 'error': outcome.admission.reason},
    }
    if not outcome.admission.ok:
        payload['warning'] = 'Transfer accepted but the patient admission could not be updated'
    return Response(payload)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def transfer_complete(request, pk: int):
    t = complete_transfer(actor_for_request(request), pk)
    return Response({'ok': True, 'data': transfer_to_dict(t)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def transfer_cancel(request, pk: int):
    t = cancel_transfer(actor_for_request(request), pk)
    return Response({'ok': True, 'data': transfer_to_dict(t), 'message': 'Transfer request cancelled successfully'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def patient_transfers(request, pk: int):
    items = transfer_history(actor_for_request(request), pk)
    return Response({'ok': True, 'data': [transfer_to_dict(t) for t in items]})
