from rest_framework import serializers


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField(required=False)
    email = serializers.CharField(required=False)
    password = serializers.CharField()

    def validate(self, attrs):
        account = (attrs.get('email') or attrs.get('username') or '').strip()
        if not account:
            raise serializers.ValidationError({'email': 'Email cannot be empty'})
        attrs['account'] = account.lower()
        return attrs

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Password cannot be empty')
        return v


class SignupSerializer(serializers.Serializer):
    email = serializers.CharField(max_length=254)
    password = serializers.CharField(min_length=8, max_length=128)
    fullName = serializers.CharField(max_length=255, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)


class PasswordChangeSerializer(serializers.Serializer):
    currentPassword = serializers.CharField()
    newPassword = serializers.CharField(min_length=8, max_length=128)
    confirmPassword = serializers.CharField()

    def validate(self, attrs):
        if attrs['newPassword'] != attrs['confirmPassword']:
            raise serializers.ValidationError({'confirmPassword': 'New passwords do not match'})
        return attrs
