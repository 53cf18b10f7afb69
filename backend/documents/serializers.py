from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional

from rest_framework import serializers

from .models import Document


# Typed issuance requests: one per document type, built only from validated input.

@dataclass(frozen=True)
class EnrollmentCertificateRequest:
    student_id: Optional[int] = None
    purpose: str = ""

    doc_type: ClassVar[str] = Document.DocType.ENROLLMENT_CERTIFICATE


@dataclass(frozen=True)
class TranscriptRequest:
    student_id: Optional[int] = None

    doc_type: ClassVar[str] = Document.DocType.TRANSCRIPT


@dataclass(frozen=True)
class VerificationLetterRequest:
    purpose: str
    student_id: Optional[int] = None

    doc_type: ClassVar[str] = Document.DocType.VERIFICATION_LETTER


@dataclass(frozen=True)
class ParticipationCertificateRequest:
    student_id: int
    course_id: int
    hours_attended: int
    total_hours: int

    doc_type: ClassVar[str] = Document.DocType.PARTICIPATION_CERTIFICATE


class IssuanceRequestSerializer(serializers.Serializer):
    request_class: ClassVar[type] = None

    def to_request(self):
        return self.request_class(**self.validated_data)


class EnrollmentCertificateRequestSerializer(IssuanceRequestSerializer):
    request_class = EnrollmentCertificateRequest

    studentId = serializers.IntegerField(source="student_id", required=False, min_value=1)
    purpose = serializers.CharField(required=False, allow_blank=True, max_length=500)


class TranscriptRequestSerializer(IssuanceRequestSerializer):
    request_class = TranscriptRequest

    studentId = serializers.IntegerField(source="student_id", required=False, min_value=1)


class VerificationLetterRequestSerializer(IssuanceRequestSerializer):
    request_class = VerificationLetterRequest

    studentId = serializers.IntegerField(source="student_id", required=False, min_value=1)
    purpose = serializers.CharField(min_length=10, max_length=500)


class ParticipationCertificateRequestSerializer(IssuanceRequestSerializer):
    request_class = ParticipationCertificateRequest

    studentId = serializers.IntegerField(source="student_id", min_value=1)
    courseId = serializers.IntegerField(source="course_id", min_value=1)
    hoursAttended = serializers.IntegerField(source="hours_attended", min_value=0)
    totalHours = serializers.IntegerField(source="total_hours", min_value=1)

    def validate(self, attrs):
        if attrs["hours_attended"] > attrs["total_hours"]:
            raise serializers.ValidationError({"hoursAttended": "Hours attended cannot exceed total hours."})
        return attrs


REQUEST_SERIALIZERS = {
    "enrollment-certificate": EnrollmentCertificateRequestSerializer,
    "transcript": TranscriptRequestSerializer,
    "verification-letter": VerificationLetterRequestSerializer,
    "participation-certificate": ParticipationCertificateRequestSerializer,
}


class DocumentSerializer(serializers.ModelSerializer):
    type = serializers.CharField(source="doc_type", read_only=True)
    issuedAt = serializers.DateTimeField(source="issued_at", read_only=True)
    subjectId = serializers.IntegerField(source="subject_id", read_only=True)
    subject = serializers.JSONField(source="subject_snapshot", read_only=True)
    issuerId = serializers.IntegerField(source="issuer_id", read_only=True)
    issuerName = serializers.SerializerMethodField()
    revokedAt = serializers.DateTimeField(source="revoked_at", read_only=True)
    revokedReason = serializers.CharField(source="revoked_reason", read_only=True)
    downloadCount = serializers.IntegerField(source="download_count", read_only=True)

    class Meta:
        model = Document
        fields = [
            "id",
            "type",
            "status",
            "issuedAt",
            "subjectId",
            "subject",
            "issuerId",
            "issuerName",
            "metadata",
            "revokedAt",
            "revokedReason",
            "downloadCount",
        ]
        read_only_fields = fields

    def get_issuerName(self, obj) -> str:
        issuer = obj.issuer
        return issuer.get_full_name() or issuer.username


class RevokeDocumentSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500, default="")
