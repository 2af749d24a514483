"""
Patient directory and admission views.

Hospitals list their admitted patients, look up patients by email and
admit them; patients lazily create their own record.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.permissions import IsHospitalOrDoctor, IsHospitalRole, IsPatientRole
from core.serializers.accounts import NameQuerySerializer, PatientSearchQuerySerializer
from core.services.actors import actor_for_request
from core.services.patients import (
    ensure_patient_record,
    find_patient_by_email,
    get_patient,
    list_admitted_patients,
    patient_to_dict,
)
from core.services.transfers import admit_patient


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsHospitalOrDoctor])
def list_patients(request):
    q = NameQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    items = list_admitted_patients(actor_for_request(request), q=q.validated_data.get('q'))
    return Response({'ok': True, 'data': [patient_to_dict(p) for p in items]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsHospitalRole])
def search_patient(request):
    q = PatientSearchQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    patient = find_patient_by_email(actor_for_request(request), q.validated_data['email'])
    return Response({'ok': True, 'data': patient_to_dict(patient)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def admit(request, pk: int):
    patient = admit_patient(actor_for_request(request), pk)
    return Response({'ok': True, 'data': patient_to_dict(get_patient(patient.id))})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def ensure_record(request):
    patient = ensure_patient_record(actor_for_request(request))
    return Response({'ok': True, 'data': patient_to_dict(get_patient(patient.id))})
