"""
Authentication views and helper functions.

This module defines the login, signup, refresh and logout endpoints.
Token classes live in ``core.authentication`` so that DRF can import
them during settings load without pulling in these views.
"""
from __future__ import annotations

from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from django.contrib.auth import authenticate

from core.serializers.auth import LoginSerializer, SignupSerializer
from core.services.accounts import register_patient, user_to_dict
from core.services.audit import try_log_action

from .models import User


def session_payload(user: User) -> dict:
    # DRF token for legacy clients, JWT pair for everything else
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': user_to_dict(user),
    }


# ---------------------------------------------------------------------
# Email/password login
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """
    Login with email (or username) and password.
    Accepts fields:
      - email or username
      - password
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    account = s.validated_data['account']
    password = s.validated_data['password']

    user = authenticate(request, username=account, password=password)
    if not user:
        try_log_action(user_id=None, action='login', object_type='user',
                       detail={'result': 'fail', 'username': account, 'ip': request.META.get('REMOTE_ADDR')})
        raise AuthenticationFailed('Invalid email or password')

    try_log_action(user_id=user.id, action='login', object_type='user', object_id=user.id,
                   detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})
    return Response(session_payload(user), status=200)

# ScopedRateThrottle reads throttle_scope from the wrapped view class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def signup_view(request):
    """Patient self-registration; other roles are provisioned by hospitals or admins."""
    s = SignupSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    user = register_patient(email=vd['email'], password=vd['password'],
                            full_name=vd.get('fullName', ''), phone=vd.get('phone'))
    return Response(session_payload(user), status=201)

signup_view.cls.throttle_scope = 'login'


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from refresh token."""
    view = TokenRefreshView.as_view()
    resp = view(request._request)
    if isinstance(resp, Response):
        data = dict(resp.data)
        if 'access' in data and 'jwt_access' not in data:
            data['jwt_access'] = data.pop('access')
        return Response(data, status=resp.status_code)
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist current user's refresh tokens (all or a given one)."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError:
            pass
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    try_log_action(user_id=request.user.id, action='logout', object_type='user', object_id=request.user.id,
                   detail={'blacklisted': count})
    return Response({'ok': True, 'blacklisted': count})
