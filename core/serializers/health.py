from rest_framework import serializers


class HealthRecordCreateSerializer(serializers.Serializer):
    bloodPressureSystolic = serializers.IntegerField(min_value=40, max_value=300, required=False, allow_null=True)
    bloodPressureDiastolic = serializers.IntegerField(min_value=20, max_value=200, required=False, allow_null=True)
    heartRate = serializers.IntegerField(min_value=20, max_value=250, required=False, allow_null=True)
    sugarLevel = serializers.DecimalField(max_digits=6, decimal_places=1, min_value=0, required=False,
                                          allow_null=True)
    recordedAt = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        sys_bp = attrs.get('bloodPressureSystolic')
        dia_bp = attrs.get('bloodPressureDiastolic')
        if (sys_bp is None) != (dia_bp is None):
            raise serializers.ValidationError('Blood pressure needs both systolic and diastolic values')
        if all(attrs.get(k) is None for k in ('bloodPressureSystolic', 'heartRate', 'sugarLevel')):
            raise serializers.ValidationError('At least one vital sign is required')
        return attrs

    def to_service_kwargs(self) -> dict:
        vd = self.validated_data
        return {
            'blood_pressure_systolic': vd.get('bloodPressureSystolic'),
            'blood_pressure_diastolic': vd.get('bloodPressureDiastolic'),
            'heart_rate': vd.get('heartRate'),
            'sugar_level': vd.get('sugarLevel'),
            'recorded_at': vd.get('recordedAt'),
        }


class HealthRecordUpdateSerializer(serializers.Serializer):
    """Partial update; only the keys sent are changed, ``null`` clears a vital."""
    FIELD_MAP = {
        'bloodPressureSystolic': 'blood_pressure_systolic',
        'bloodPressureDiastolic': 'blood_pressure_diastolic',
        'heartRate': 'heart_rate',
        'sugarLevel': 'sugar_level',
    }

    bloodPressureSystolic = serializers.IntegerField(min_value=40, max_value=300, required=False, allow_null=True)
    bloodPressureDiastolic = serializers.IntegerField(min_value=20, max_value=200, required=False, allow_null=True)
    heartRate = serializers.IntegerField(min_value=20, max_value=250, required=False, allow_null=True)
    sugarLevel = serializers.DecimalField(max_digits=6, decimal_places=1, min_value=0, required=False,
                                          allow_null=True)
    recordedAt = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Nothing to update')
        return attrs

    def to_service_kwargs(self) -> dict:
        vd = self.validated_data
        kwargs = {self.FIELD_MAP[k]: v for k, v in vd.items() if k in self.FIELD_MAP}
        if 'recordedAt' in vd:
            kwargs['recorded_at'] = vd['recordedAt']
        return kwargs
