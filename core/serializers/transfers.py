from rest_framework import serializers

from core.models import Transfer


class TransferCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1)
    toHospitalId = serializers.IntegerField(min_value=1)
    transferType = serializers.ChoiceField(choices=[c for c, _ in Transfer.TYPE_CHOICES])
    reason = serializers.CharField(max_length=2000, required=False, allow_blank=True)


class TransferListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Transfer.STATUS_CHOICES], required=False)
