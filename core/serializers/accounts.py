from rest_framework import serializers

from core.models import User


class DoctorCreateSerializer(serializers.Serializer):
    email = serializers.CharField(max_length=254)
    password = serializers.CharField(min_length=8, max_length=128)
    fullName = serializers.CharField(max_length=255)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)


class AccountCreateSerializer(DoctorCreateSerializer):
    role = serializers.ChoiceField(choices=[c for c, _ in User.ROLE_CHOICES])
    hospitalId = serializers.IntegerField(min_value=1, required=False)


class PatientSearchQuerySerializer(serializers.Serializer):
    email = serializers.CharField(max_length=254)


class NameQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=64, required=False)


class ProfileUpdateSerializer(serializers.Serializer):
    FIELD_MAP = {
        'fullName': 'full_name',
        'phone': 'phone',
        'dateOfBirth': 'date_of_birth',
        'gender': 'gender',
        'address': 'address',
        'emergencyContact': 'emergency_contact',
    }

    fullName = serializers.CharField(max_length=255, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, allow_null=True)
    dateOfBirth = serializers.DateField(required=False, allow_null=True)
    gender = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    address = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    emergencyContact = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Nothing to update')
        return attrs

    def to_service_kwargs(self) -> dict:
        return {self.FIELD_MAP[k]: v for k, v in self.validated_data.items()}
