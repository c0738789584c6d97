"""
Authentication views.

Username/password login issues both a DRF token and a JWT pair so that
the portal front end and scripted clients can pick either.  Logout
blacklists the caller's refresh tokens.
"""
from __future__ import annotations

import logging

from django.contrib.auth import authenticate
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from booking.exceptions import AuthorizationError
from booking.serializers.auth import LoginSerializer, LogoutSerializer
from booking.services.audit import client_ip, log_action

logger = logging.getLogger(__name__)


def _user_summary(user) -> dict:
    return {
        'id': user.id,
        'username': user.username,
        'name': user.get_full_name() or user.username,
        'role': user.role,
        'hospitalId': user.hospital_id,
    }


def _issue_credentials(user) -> dict:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {'token': token_obj.key, 'jwt_access': str(refresh.access_token), 'jwt_refresh': str(refresh)}


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """
    Login with username/password.  A ``role`` field in the body is
    ignored; the role always comes from the stored user.
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    username = s.validated_data['username']
    ip = client_ip(request)

    user = authenticate(request, username=username, password=s.validated_data['password'])
    if user is None:
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'username': username, 'ip': ip})
        logger.info('Failed login for %s from %s', username, ip)
        return Response({'ok': False, 'error': {'code': 'invalid_credentials',
                                                'message': 'Invalid username or password'}}, status=400)

    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': ip})

    payload = {'ok': True, **_issue_credentials(user), 'role': user.role, 'user': _user_summary(user)}
    if user.hospital_id:
        payload['hospital'] = {'id': user.hospital.id, 'name': user.hospital.name}
    return Response(payload)

# ScopedRateThrottle reads throttle_scope from the wrapped APIView class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Exchange a refresh token for a new ``jwt_access``."""
    s = TokenRefreshSerializer(data=request.data)
    try:
        s.is_valid(raise_exception=True)
    except TokenError as e:
        raise InvalidToken(e.args[0])
    data = dict(s.validated_data)
    payload = {'ok': True, 'jwt_access': data['access']}
    # present only when ROTATE_REFRESH_TOKENS is on
    if 'refresh' in data:
        payload['jwt_refresh'] = data['refresh']
    return Response(payload)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """
    Blacklist one refresh token when ``refresh`` is given, otherwise every
    outstanding refresh token of the caller.  The DRF token is always
    revoked.
    """
    s = LogoutSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    raw = s.validated_data.get('refresh')
    count = 0
    if raw:
        try:
            token = RefreshToken(raw)
        except TokenError as e:
            return Response({'ok': False, 'error': {'code': 'invalid_token', 'message': str(e)}}, status=400)
        if str(token.get(api_settings.USER_ID_CLAIM)) != str(request.user.pk):
            raise AuthorizationError('Refresh token belongs to another user.')
        token.blacklist()
        count = 1
    else:
        for outstanding in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=outstanding)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    logger.info('User %s logged out, %d refresh token(s) blacklisted', request.user.pk, count)
    return Response({'ok': True, 'blacklisted': count})
