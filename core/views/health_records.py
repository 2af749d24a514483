from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import HealthRecord
from core.serializers.health import HealthRecordCreateSerializer, HealthRecordUpdateSerializer
from core.services.actors import actor_for_request
from core.services.health_records import (
    create_health_record,
    delete_health_record,
    health_record_to_dict,
    list_health_records,
    update_health_record,
)
from core.services.patients import get_patient


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def patient_health_records(request, pk: int):
    actor = actor_for_request(request)
    patient = get_patient(pk)
    if request.method == 'GET':
        items = list_health_records(actor, patient)
        return Response({'ok': True, 'data': [health_record_to_dict(r) for r in items]})

    s = HealthRecordCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    record = create_health_record(actor, patient, **s.to_service_kwargs())
    return Response({'ok': True, 'data': health_record_to_dict(record)}, status=status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def health_record_detail(request, pk: int):
    record = HealthRecord.objects.select_related('patient').filter(id=pk).first()
    if not record:
        raise NotFound('Health record not found')
    actor = actor_for_request(request)
    if request.method == 'PATCH':
        s = HealthRecordUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        record = update_health_record(actor, record, **s.to_service_kwargs())
        return Response({'ok': True, 'data': health_record_to_dict(record)})

    delete_health_record(actor, record)
    return Response({'ok': True, 'message': 'Health record deleted successfully'})
