from __future__ import annotations

from rest_framework import serializers


class VerificationHistoryEntrySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    outcome = serializers.CharField()
    verifiedAt = serializers.DateTimeField(source="verified_at")
    ipAddress = serializers.CharField(source="ip_address")
    verifier = serializers.DictField(allow_null=True)
