from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.permissions import IsAdminRole, IsHospitalOrDoctor
from core.serializers.accounts import AccountCreateSerializer, DoctorCreateSerializer, NameQuerySerializer
from core.services.accounts import create_account, list_hospitals, user_to_dict
from core.services.actors import actor_for_request
from core.services.doctors import create_doctor, list_doctors


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsHospitalOrDoctor])
def hospital_doctors(request):
    actor = actor_for_request(request)
    if request.method == 'GET':
        q = NameQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        items = list_doctors(actor, q=q.validated_data.get('q'))
        return Response({'ok': True, 'data': [user_to_dict(u) for u in items]})

    s = DoctorCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    doctor = create_doctor(actor, email=vd['email'], password=vd['password'],
                           full_name=vd['fullName'], phone=vd.get('phone'))
    return Response({'ok': True, 'data': user_to_dict(doctor)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def hospitals(request):
    return Response({'ok': True, 'data': [
        {'id': h.id, 'name': h.display_name(), 'email': h.email} for h in list_hospitals()
    ]})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_create_account(request):
    s = AccountCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    user = create_account(
        actor_for_request(request),
        email=vd['email'],
        password=vd['password'],
        role=vd['role'],
        full_name=vd['fullName'],
        phone=vd.get('phone'),
        hospital_id=vd.get('hospitalId'),
    )
    return Response({'ok': True, 'data': user_to_dict(user)}, status=status.HTTP_201_CREATED)
