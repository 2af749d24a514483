from rest_framework import serializers


class ReportUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
    reportName = serializers.CharField(max_length=255)
    reportType = serializers.CharField(max_length=100, required=False, allow_blank=True)


class SignedUrlQuerySerializer(serializers.Serializer):
    expiresIn = serializers.IntegerField(min_value=60, max_value=86400, required=False)
