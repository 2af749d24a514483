from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.services.actors import actor_for_request
from core.services.patients import get_patient
from core.services.summary import generate_health_summary


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def health_summary(request, pk: int):
    result = generate_health_summary(actor_for_request(request), get_patient(pk))
    return Response({'ok': True, **result})

# ScopedRateThrottle reads throttle_scope from the wrapped view class
health_summary.cls.throttle_scope = 'health_summary'
