from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.auth_views import session_payload
from core.serializers.accounts import ProfileUpdateSerializer
from core.serializers.auth import PasswordChangeSerializer
from core.services.profile import change_password, profile_to_dict, update_profile


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def profile(request):
    user = request.user
    if request.method == 'PATCH':
        s = ProfileUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        user = update_profile(user, **s.to_service_kwargs())
    return Response({'ok': True, 'data': profile_to_dict(user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def profile_password(request):
    """Change the caller's password; returns a fresh session since old tokens are revoked."""
    s = PasswordChangeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    revoked = change_password(request.user, current_password=s.validated_data['currentPassword'],
                              new_password=s.validated_data['newPassword'])
    payload = session_payload(request.user)
    payload['revoked'] = revoked
    return Response(payload)

profile_password.cls.throttle_scope = 'login'
