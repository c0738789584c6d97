from rest_framework import serializers


class LoginSerializer(serializers.Serializer):
    """Username/password body.  Any other key (``role`` included) is ignored."""
    username = serializers.CharField(
        max_length=150,
        error_messages={'blank': 'Username is required', 'required': 'Username is required'},
    )
    password = serializers.CharField(
        max_length=128,
        trim_whitespace=False,
        error_messages={'blank': 'Password is required', 'required': 'Password is required'},
    )


class LogoutSerializer(serializers.Serializer):
    """Optional ``refresh``: blacklist just that token instead of every session."""
    refresh = serializers.CharField(required=False, allow_blank=True)
