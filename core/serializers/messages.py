from rest_framework import serializers


class MessageCreateSerializer(serializers.Serializer):
    # Length is enforced after sanitising, in the service
    message = serializers.CharField(allow_blank=True, trim_whitespace=False)
